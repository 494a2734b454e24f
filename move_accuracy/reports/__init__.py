"""
Console reports for move accuracy results.
"""

from .move_report import (
    print_move_report,
    print_games_summary,
)

__all__ = [
    "print_move_report",
    "print_games_summary",
]
