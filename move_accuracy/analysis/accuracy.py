"""
Accuracy aggregation.
Reduces per-move quality scores to a single game accuracy percentage.
"""

import math
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Union

import chess

from .move_quality import MoveScore, normalized_score

__all__ = ["GameAccuracy", "calculate_accuracy", "normalized_score"]


def calculate_accuracy(scores: Iterable[Union[MoveScore, float]]) -> float:
    """
    Calculate accuracy percentage from per-move scores.

    Accuracy is the mean normalized score scaled to 0-100.

    Args:
        scores: MoveScore objects or plain normalized scores

    Returns:
        Accuracy percentage (0-100), 0.0 if there are no scores
    """
    values = [s.normalized_score if isinstance(s, MoveScore) else float(s) for s in scores]
    if not values:
        return 0.0
    return math.fsum(values) * 100 / len(values)


@dataclass
class GameAccuracy:
    """Accuracy result for one analysed game."""
    percentage: float  # 0-100 over all scored moves
    move_scores: List[MoveScore] = field(default_factory=list)
    total_moves: int = 0
    game_id: Optional[str] = None

    @classmethod
    def from_move_scores(
        cls,
        move_scores: List[MoveScore],
        total_moves: Optional[int] = None,
        game_id: Optional[str] = None,
    ) -> "GameAccuracy":
        return cls(
            percentage=calculate_accuracy(move_scores),
            move_scores=list(move_scores),
            total_moves=len(move_scores) if total_moves is None else total_moves,
            game_id=game_id,
        )

    @property
    def scored_moves(self) -> int:
        return len(self.move_scores)

    @property
    def unscored_moves(self) -> int:
        return max(0, self.total_moves - self.scored_moves)

    @property
    def avg_cpl(self) -> float:
        """Average centipawn loss over scored moves."""
        if not self.move_scores:
            return 0.0
        return sum(m.centipawn_loss for m in self.move_scores) / len(self.move_scores)

    @property
    def white_accuracy(self) -> float:
        return calculate_accuracy(m for m in self.move_scores if m.mover == chess.WHITE)

    @property
    def black_accuracy(self) -> float:
        return calculate_accuracy(m for m in self.move_scores if m.mover == chess.BLACK)
