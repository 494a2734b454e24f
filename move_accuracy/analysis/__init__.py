"""Analysis modules for move accuracy evaluation."""

from .position_evaluator import (
    PositionEvaluator,
    SearchResult,
    ScorePerspective,
)

from .move_quality import (
    MoveQualityAnalyzer,
    MoveScore,
    normalized_score,
    centipawn_loss,
)

from .accuracy import (
    GameAccuracy,
    calculate_accuracy,
)

from .evaluation_cache import EvaluationCache

from .game_analysis import (
    AnalysisSettings,
    analyze_game_accuracy,
    analyze_games,
    analyze_pgn_accuracy,
    run_accuracy_analysis,
)
