"""
PGN parsing and move replay utilities.
Turns recorded games into per-move records with the board state before
and after every move, and applies engine-suggested moves to positions.
"""

import enum
import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Union

import chess
import chess.pgn

from ..errors import GameReplayError, IllegalSuggestedMoveError

logger = logging.getLogger(__name__)


class MovePolicy(enum.Enum):
    """How strictly moves are checked before they are applied."""
    STRICT = "strict"  # Fully legal moves only
    LENIENT = "lenient"  # Pseudo-legal moves accepted, replay stops at the first bad move


@dataclass
class GameMetadata:
    """Metadata for a chess game."""
    event: str
    site: str
    date: str
    round: str
    white: str
    black: str
    result: str
    white_elo: Optional[int] = None
    black_elo: Optional[int] = None

    @property
    def game_id(self) -> str:
        return f"{self.white} vs {self.black} R{self.round}"


@dataclass(frozen=True)
class MoveRecord:
    """One played move, replayed from the start of its game."""
    index: int  # 1-based ply number
    san: str  # Move in Standard Algebraic Notation
    uci: str  # Move in UCI format
    fen_before: str  # Position before move
    fen_after: str  # Position after move
    mover: chess.Color  # chess.WHITE or chess.BLACK

    @property
    def is_white(self) -> bool:
        return self.mover == chess.WHITE


@dataclass
class ParsedGame:
    """Complete parsed game data."""
    metadata: GameMetadata
    moves: List[MoveRecord]


def apply_uci_move(fen: str, move_token: Optional[str], policy: MovePolicy = MovePolicy.STRICT) -> str:
    """
    Apply a UCI move to a position.

    Args:
        fen: Position in FEN format
        move_token: Move in UCI format (e.g. "e2e4", "e7e8q")
        policy: STRICT requires a legal move, LENIENT a pseudo-legal one

    Returns:
        FEN of the resulting position

    Raises:
        IllegalSuggestedMoveError: If the move is missing, malformed or not allowed
    """
    if not move_token:
        raise IllegalSuggestedMoveError(fen, move_token, "no move suggested")

    try:
        board = chess.Board(fen)
    except ValueError as exc:
        raise IllegalSuggestedMoveError(fen, move_token, f"invalid position: {exc}") from exc

    try:
        move = chess.Move.from_uci(move_token)
    except ValueError as exc:
        raise IllegalSuggestedMoveError(fen, move_token, "malformed move") from exc

    if not move:
        raise IllegalSuggestedMoveError(fen, move_token, "null move")

    if policy is MovePolicy.STRICT:
        allowed = board.is_legal(move)
    else:
        allowed = board.is_pseudo_legal(move)
    if not allowed:
        raise IllegalSuggestedMoveError(fen, move_token, f"not allowed under {policy.value} policy")

    board.push(move)
    return board.fen()


def parse_game_metadata(game: chess.pgn.Game) -> GameMetadata:
    """
    Extract metadata from a chess.pgn.Game object.

    Args:
        game: chess.pgn.Game object

    Returns:
        GameMetadata object
    """
    headers = game.headers

    def _elo(key: str) -> Optional[int]:
        try:
            return int(headers[key]) if key in headers else None
        except (ValueError, TypeError):
            return None

    return GameMetadata(
        event=headers.get("Event", "Unknown"),
        site=headers.get("Site", "Unknown"),
        date=headers.get("Date", "Unknown"),
        round=headers.get("Round", "Unknown"),
        white=headers.get("White", "Unknown"),
        black=headers.get("Black", "Unknown"),
        result=headers.get("Result", "*"),
        white_elo=_elo("WhiteElo"),
        black_elo=_elo("BlackElo"),
    )


def build_move_records(game: chess.pgn.Game, policy: MovePolicy = MovePolicy.STRICT) -> List[MoveRecord]:
    """
    Replay a game's mainline and record every move.

    python-chess stops the mainline at the first move it cannot parse
    and notes the problem in ``game.errors``.

    Args:
        game: chess.pgn.Game object
        policy: STRICT raises on replay errors, LENIENT keeps the moves before them

    Returns:
        List of MoveRecord objects in play order

    Raises:
        GameReplayError: Under STRICT, if the game has replay errors
    """
    if game.errors:
        messages = "; ".join(str(error) for error in game.errors)
        if policy is MovePolicy.STRICT:
            raise GameReplayError(f"Game {game.headers.get('White', '?')} vs "
                                  f"{game.headers.get('Black', '?')} cannot be replayed: {messages}")
        logger.warning("Replaying game up to its first error: %s", messages)

    records = []
    board = game.board()

    for index, node in enumerate(game.mainline(), start=1):
        move = node.move
        if policy is MovePolicy.STRICT and not board.is_legal(move):
            raise GameReplayError(f"Illegal move {move.uci()} at ply {index}")

        fen_before = board.fen()
        mover = board.turn
        san = board.san(move)

        board.push(move)

        records.append(MoveRecord(
            index=index,
            san=san,
            uci=move.uci(),
            fen_before=fen_before,
            fen_after=board.fen(),
            mover=mover,
        ))

    return records


def parse_game(game: chess.pgn.Game, policy: MovePolicy = MovePolicy.STRICT) -> ParsedGame:
    """Parse a complete game into metadata and move records."""
    return ParsedGame(metadata=parse_game_metadata(game), moves=build_move_records(game, policy))


def _read_games(
    handle: io.TextIOBase,
    policy: MovePolicy,
    max_games: Optional[int],
) -> Iterator[ParsedGame]:
    game_count = 0
    while True:
        game = chess.pgn.read_game(handle)
        if game is None:
            break

        yield parse_game(game, policy)

        game_count += 1
        if max_games and game_count >= max_games:
            break


def parse_pgn(
    pgn_text: str,
    policy: MovePolicy = MovePolicy.STRICT,
    max_games: Optional[int] = None,
) -> List[ParsedGame]:
    """
    Parse all games in a PGN string.

    Args:
        pgn_text: PGN text, possibly containing several games
        policy: Replay policy
        max_games: Maximum number of games to parse (None for all)

    Returns:
        List of ParsedGame objects
    """
    return list(_read_games(io.StringIO(pgn_text), policy, max_games))


def read_pgn_file(
    pgn_path: Union[str, Path],
    policy: MovePolicy = MovePolicy.STRICT,
    max_games: Optional[int] = None,
) -> Iterator[ParsedGame]:
    """
    Read and parse all games from a PGN file.

    Args:
        pgn_path: Path to PGN file
        policy: Replay policy
        max_games: Maximum number of games to parse (None for all)

    Yields:
        ParsedGame objects
    """
    with open(pgn_path, encoding="utf-8") as f:
        yield from _read_games(f, policy, max_games)


def count_games(pgn_path: Union[str, Path]) -> int:
    """Quickly count the number of games in a PGN file."""
    count = 0
    with open(pgn_path, encoding="utf-8") as f:
        while chess.pgn.read_game(f) is not None:
            count += 1
    return count
