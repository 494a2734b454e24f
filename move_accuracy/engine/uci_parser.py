"""
Parsing helpers for UCI engine output lines.

Engines stream zero or more ``info`` lines while searching, followed by
exactly one ``bestmove`` line. Only the score announcement and the
suggested move token matter for accuracy analysis.
"""

import re
from typing import Optional

from ..errors import MalformedProtocolLine


# Magnitude used for forced-mate announcements. Must exceed any
# plausible material evaluation.
MATE_SCORE = 100000

_CP_PATTERN = re.compile(r"\bscore\s+cp\s+(-?\d+)\b")
_MATE_PATTERN = re.compile(r"\bscore\s+mate\s+(-?\d+)\b")
_BESTMOVE_PATTERN = re.compile(r"^bestmove(?:\s+(\S+))?")

# Tokens engines send in place of a move when there is none to play
NULL_MOVE_TOKENS = frozenset({"(none)", "0000", "none"})


def mate_to_cp(mate_in: int, mate_score: int = MATE_SCORE) -> int:
    """
    Convert a forced-mate distance to a signed centipawn value.

    Shorter mates are more extreme; the sign keeps track of which side
    delivers mate. ``mate 0`` means the reporting side is already mated.

    Args:
        mate_in: Mate distance as announced by the engine
        mate_score: Magnitude for an immediate mate

    Returns:
        ``sign(mate_in) * (mate_score - |mate_in|)``
    """
    if mate_in == 0:
        return -mate_score
    magnitude = mate_score - abs(mate_in)
    return magnitude if mate_in > 0 else -magnitude


def parse_score(line: str, mate_score: int = MATE_SCORE) -> Optional[int]:
    """
    Extract a centipawn score from an engine output line.

    Args:
        line: One line of engine output
        mate_score: Magnitude used for mate announcements

    Returns:
        Score in centipawns from the engine's reporting perspective,
        or None if the line carries no score

    Raises:
        MalformedProtocolLine: If the line announces a score that cannot be read
    """
    cp_match = _CP_PATTERN.search(line)
    if cp_match:
        return int(cp_match.group(1))

    mate_match = _MATE_PATTERN.search(line)
    if mate_match:
        return mate_to_cp(int(mate_match.group(1)), mate_score)

    if " score " in f" {line} ":
        raise MalformedProtocolLine(line)
    return None


def parse_mate(line: str) -> Optional[int]:
    """Return the announced mate distance, or None for non-mate lines."""
    mate_match = _MATE_PATTERN.search(line)
    return int(mate_match.group(1)) if mate_match else None


def is_bestmove(line: str) -> bool:
    """Check whether a line is the terminal ``bestmove`` line of a search."""
    return _BESTMOVE_PATTERN.match(line) is not None


def parse_bestmove(line: str) -> Optional[str]:
    """
    Extract the suggested move token from a ``bestmove`` line.

    Args:
        line: Terminal search line, e.g. ``bestmove e2e4 ponder e7e5``

    Returns:
        Move token in UCI notation, or None if the engine had no move
    """
    match = _BESTMOVE_PATTERN.match(line)
    if not match:
        return None
    token = match.group(1)
    if token is None or token in NULL_MOVE_TOKENS:
        return None
    return token
