"""
Per-move quality analysis.
Compares every played move with the engine's suggested move and scores
the centipawn loss on a fixed step scale.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, TYPE_CHECKING

import chess

from ..errors import IllegalSuggestedMoveError
from ..parsers.pgn_parser import MovePolicy, MoveRecord, apply_uci_move

if TYPE_CHECKING:
    from .position_evaluator import PositionEvaluator

logger = logging.getLogger(__name__)


# (max centipawn loss, score) bands, checked in order
SCORE_BANDS = (
    (10, 1.00),
    (30, 0.95),
    (60, 0.80),
    (100, 0.60),
    (200, 0.30),
)
FLOOR_SCORE = 0.10

ProgressCallback = Callable[[int, int], None]


@dataclass(frozen=True)
class MoveScore:
    """Quality score for one successfully analysed move."""
    index: int
    centipawn_loss: int  # Never negative
    normalized_score: float  # In (0, 1]
    san: str = ""
    mover: chess.Color = chess.WHITE
    best_move: Optional[str] = None  # Engine's suggestion, UCI format
    eval_best: int = 0  # Mover's perspective
    eval_played: int = 0  # Mover's perspective

    @property
    def is_white(self) -> bool:
        return self.mover == chess.WHITE


def normalized_score(centipawn_loss: float) -> float:
    """
    Map a centipawn loss to a move score in (0, 1].

    Args:
        centipawn_loss: Non-negative centipawn loss

    Returns:
        1.0 for near-perfect moves down to 0.1 for blunders
    """
    if centipawn_loss < 0:
        raise ValueError(f"Centipawn loss cannot be negative: {centipawn_loss}")
    for limit, score in SCORE_BANDS:
        if centipawn_loss <= limit:
            return score
    return FLOOR_SCORE


def centipawn_loss(eval_best: int, eval_played: int, mover: chess.Color) -> int:
    """
    Centipawn loss of a move from the mover's perspective.

    Args:
        eval_best: White-perspective eval after the engine's suggested move
        eval_played: White-perspective eval after the played move
        mover: Side that made the move

    Returns:
        How much worse the played move is, clamped at zero
    """
    sign = 1 if mover == chess.WHITE else -1
    return max(0, eval_best * sign - eval_played * sign)


class MoveQualityAnalyzer:
    """
    Scores a game's moves one at a time against engine suggestions.

    Searches are issued strictly in order, since the engine session
    serves one request at a time.
    """

    def __init__(
        self,
        evaluator: "PositionEvaluator",
        depth: int,
        *,
        move_policy: MovePolicy = MovePolicy.STRICT,
    ):
        if isinstance(depth, bool) or not isinstance(depth, int) or depth <= 0:
            raise ValueError(f"Analysis depth must be a positive integer, got {depth!r}")
        self.evaluator = evaluator
        self.depth = depth
        self.move_policy = MovePolicy(move_policy)
        self.unscored: List[MoveRecord] = []

    async def score_move(self, record: MoveRecord) -> Optional[MoveScore]:
        """
        Score a single move.

        Returns:
            MoveScore, or None if the engine's suggestion could not be applied
        """
        suggestion = await self.evaluator.evaluate(record.fen_before, self.depth)

        try:
            fen_after_best = apply_uci_move(record.fen_before, suggestion.best_move, self.move_policy)
        except IllegalSuggestedMoveError as exc:
            logger.warning("Move %d (%s) left unscored: %s", record.index, record.san, exc)
            return None

        eval_best = await self.evaluator.evaluate(fen_after_best, self.depth)
        eval_played = await self.evaluator.evaluate(record.fen_after, self.depth)

        sign = 1 if record.mover == chess.WHITE else -1
        cpl = centipawn_loss(eval_best.score, eval_played.score, record.mover)

        return MoveScore(
            index=record.index,
            centipawn_loss=cpl,
            normalized_score=normalized_score(cpl),
            san=record.san,
            mover=record.mover,
            best_move=suggestion.best_move,
            eval_best=eval_best.score * sign,
            eval_played=eval_played.score * sign,
        )

    async def analyze(
        self,
        records: Sequence[MoveRecord],
        progress_callback: Optional[ProgressCallback] = None,
    ) -> List[MoveScore]:
        """
        Score every move of a game in index order.

        Args:
            records: Move records of one game
            progress_callback: Optional callback(current_move, total_moves)

        Returns:
            MoveScores for the successfully scored moves, in order
        """
        scores = []
        self.unscored = []
        ordered = sorted(records, key=lambda r: r.index)
        total_moves = len(ordered)

        for i, record in enumerate(ordered):
            if progress_callback:
                progress_callback(i + 1, total_moves)

            move_score = await self.score_move(record)
            if move_score is None:
                self.unscored.append(record)
                continue

            logger.debug("move %d %s: cpl=%d score=%.2f", record.index, record.san,
                         move_score.centipawn_loss, move_score.normalized_score)
            scores.append(move_score)

        return scores
