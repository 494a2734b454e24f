"""
Fixed-depth position evaluation on top of a UCI engine session.
Runs one search per position and extracts the final score and the
engine's suggested move.
"""

import enum
import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional, TYPE_CHECKING

from ..engine.session import SearchRequest
from ..engine.uci_parser import MATE_SCORE, parse_bestmove, parse_mate, parse_score
from ..errors import EngineTimeoutError, MalformedProtocolLine

if TYPE_CHECKING:
    from ..engine.session import ProtocolSession
    from .evaluation_cache import EvaluationCache

logger = logging.getLogger(__name__)


DEFAULT_SEARCH_TIMEOUT = 60.0
DEFAULT_RESYNC_TIMEOUT = 10.0


class ScorePerspective(enum.Enum):
    """Whose point of view the engine reports scores from."""
    SIDE_TO_MOVE = "side_to_move"  # UCI standard
    WHITE = "white"


@dataclass(frozen=True)
class SearchResult:
    """Outcome of one fixed-depth search."""
    best_move: Optional[str]  # UCI token, None if the engine had no move
    score: int  # Centipawns from White's perspective, mates mapped to +-mate_score
    depth: int
    score_announced: bool = True  # False when the engine never sent a score
    mate_in: Optional[int] = None  # Positive = White mates

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def is_black_to_move(fen: str) -> bool:
    """Check the active-color field of a FEN."""
    fields = fen.split()
    return len(fields) > 1 and fields[1] == "b"


class _ScoreTracker:
    """Keeps the most recent score announced during one search."""

    def __init__(self, mate_score: int):
        self.mate_score = mate_score
        self.score: Optional[int] = None
        self.mate_in: Optional[int] = None

    def observe(self, line: str) -> None:
        if not line.startswith("info"):
            return
        try:
            score = parse_score(line, self.mate_score)
        except MalformedProtocolLine as exc:
            logger.debug("%s; keeping previous score %s", exc, self.score)
            return
        if score is not None:
            self.score = score
            self.mate_in = parse_mate(line)


class PositionEvaluator:
    """
    Evaluates positions with a fixed-depth engine search.

    Scores are returned from White's perspective regardless of which side
    is to move, so results for different positions compare directly.
    """

    def __init__(
        self,
        session: "ProtocolSession",
        *,
        search_timeout: float = DEFAULT_SEARCH_TIMEOUT,
        mate_score: int = MATE_SCORE,
        score_perspective: ScorePerspective = ScorePerspective.SIDE_TO_MOVE,
        cache: Optional["EvaluationCache"] = None,
        timeout_retries: int = 0,
        resync_timeout: float = DEFAULT_RESYNC_TIMEOUT,
        engine_id: str = "",
    ):
        """
        Args:
            session: Engine session in the READY state
            search_timeout: Seconds allowed for one search to reach ``bestmove``
            mate_score: Centipawn magnitude of an immediate mate
            score_perspective: How the engine reports scores
            cache: Optional evaluation cache
            timeout_retries: Times a timed-out search is retried after resynchronizing
            resync_timeout: Seconds allowed for resynchronizing the session
            engine_id: Engine command and options, part of the cache namespace
        """
        self.session = session
        self.search_timeout = search_timeout
        self.mate_score = mate_score
        self.score_perspective = ScorePerspective(score_perspective)
        self.cache = cache
        self.timeout_retries = timeout_retries
        self.resync_timeout = resync_timeout
        self.engine_id = engine_id
        self.searches = 0

    @property
    def cache_namespace(self) -> str:
        """Identifies every setting that changes a cached score."""
        return f"{self.engine_id}@mate={self.mate_score},{self.score_perspective.value}"

    async def evaluate(self, fen: str, depth: int) -> SearchResult:
        """
        Search a position to a fixed depth.

        Args:
            fen: Position in FEN format
            depth: Search depth (positive integer)

        Returns:
            SearchResult with White-perspective score and suggested move

        Raises:
            EngineTimeoutError: If ``bestmove`` never arrives, after any retries
        """
        request = SearchRequest(fen=fen, depth=depth)

        if self.cache is not None:
            cached = self.cache.get(fen, depth, self.cache_namespace)
            if cached is not None:
                return cached

        attempt = 0
        while True:
            try:
                result = await self._search(request)
                break
            except EngineTimeoutError as exc:
                if attempt >= self.timeout_retries:
                    raise
                attempt += 1
                logger.warning("%s; resynchronizing and retrying (%d/%d)",
                               exc, attempt, self.timeout_retries)
                await self.session.resynchronize(self.resync_timeout)

        # Unannounced scores are never cached
        if self.cache is not None and result.score_announced:
            self.cache.put(fen, result, self.cache_namespace)
        return result

    async def _search(self, request: SearchRequest) -> SearchResult:
        tracker = _ScoreTracker(self.mate_score)
        line = await self.session.search(request, self.search_timeout, on_line=tracker.observe)
        self.searches += 1

        score = tracker.score
        mate_in = tracker.mate_in
        announced = score is not None
        if not announced:
            logger.debug("No score announced for %s at depth %d, using 0", request.fen, request.depth)
            score = 0

        if self.score_perspective is ScorePerspective.SIDE_TO_MOVE and is_black_to_move(request.fen):
            score = -score
            if mate_in is not None:
                mate_in = -mate_in

        return SearchResult(
            best_move=parse_bestmove(line),
            score=score,
            depth=request.depth,
            score_announced=announced,
            mate_in=mate_in,
        )
