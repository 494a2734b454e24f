"""
Console reports for analysed games.
"""

from typing import List

from ..analysis.accuracy import GameAccuracy


def _format_eval(centipawns: int) -> str:
    return f"{centipawns / 100:+.2f}"


def print_move_report(game_accuracy: GameAccuracy) -> None:
    """Print a per-move table for one analysed game."""
    title = game_accuracy.game_id or "GAME"

    print("\n" + "=" * 80)
    print(f"MOVE ACCURACY: {title}")
    print("=" * 80)

    print(f"\n{'#':<6} {'Move':<10} {'Best':<8} {'Best Eval':<11} "
          f"{'Played':<10} {'CPL':<7} {'Score':<6}")
    print("-" * 64)

    for m in game_accuracy.move_scores:
        side = "." if m.is_white else "..."
        label = f"{(m.index + 1) // 2}{side}"
        print(f"{label:<6} {m.san:<10} {m.best_move or '-':<8} "
              f"{_format_eval(m.eval_best):<11} {_format_eval(m.eval_played):<10} "
              f"{m.centipawn_loss:<7} {m.normalized_score * 100:>5.0f}%")

    print("-" * 64)
    print(f"Accuracy: {game_accuracy.percentage:.1f}%  "
          f"(White {game_accuracy.white_accuracy:.1f}%, Black {game_accuracy.black_accuracy:.1f}%)")
    print(f"Average CPL: {game_accuracy.avg_cpl:.1f}  "
          f"Scored moves: {game_accuracy.scored_moves}/{game_accuracy.total_moves}")


def print_games_summary(results: List[GameAccuracy]) -> None:
    """Print one line per analysed game."""
    print("\n" + "=" * 80)
    print("GAME ACCURACY SUMMARY")
    print("=" * 80)

    print(f"\n{'Game':<40} {'Accuracy':<10} {'White':<8} {'Black':<8} {'Scored':<8}")
    print("-" * 78)

    for r in results:
        name = (r.game_id or "-")[:39]
        scored = f"{r.scored_moves}/{r.total_moves}"
        print(f"{name:<40} {r.percentage:>7.1f}%  {r.white_accuracy:>6.1f}% "
              f"{r.black_accuracy:>6.1f}%  {scored:<8}")
