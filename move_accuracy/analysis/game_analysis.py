"""
Game-level accuracy analysis.
Owns the engine session for each analysed game and wires the evaluator,
move analyzer and accuracy aggregation together.
"""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, TYPE_CHECKING

from ..engine.session import EngineCommand, open_session
from ..engine.uci_parser import MATE_SCORE
from ..errors import GameReplayError
from ..parsers.pgn_parser import MovePolicy, MoveRecord, ParsedGame, parse_pgn
from .accuracy import GameAccuracy
from .move_quality import MoveQualityAnalyzer, ProgressCallback
from .position_evaluator import PositionEvaluator, ScorePerspective

if TYPE_CHECKING:
    from ..utils.config import Config
    from .evaluation_cache import EvaluationCache

logger = logging.getLogger(__name__)


@dataclass
class AnalysisSettings:
    """Everything needed to run one game analysis."""
    engine_command: EngineCommand = "stockfish"
    depth: int = 18
    engine_options: Dict[str, Any] = field(default_factory=dict)
    handshake_timeout: float = 10.0
    search_timeout: float = 60.0
    quit_grace: float = 2.0
    mate_score: int = MATE_SCORE
    score_perspective: ScorePerspective = ScorePerspective.SIDE_TO_MOVE
    move_policy: MovePolicy = MovePolicy.STRICT
    timeout_retries: int = 0

    def __post_init__(self):
        if isinstance(self.depth, bool) or not isinstance(self.depth, int) or self.depth <= 0:
            raise ValueError(f"Analysis depth must be a positive integer, got {self.depth!r}")
        if self.mate_score <= 0:
            raise ValueError(f"Mate score must be positive, got {self.mate_score!r}")
        self.score_perspective = ScorePerspective(self.score_perspective)
        self.move_policy = MovePolicy(self.move_policy)

    @property
    def engine_id(self) -> str:
        """Engine command and options as one string, e.g. for cache keys."""
        if isinstance(self.engine_command, (str, os.PathLike)):
            parts = [os.fspath(self.engine_command)]
        else:
            parts = [os.fspath(part) for part in self.engine_command]
        options = ",".join(f"{name}={value}" for name, value in sorted(self.engine_options.items()))
        return " ".join(parts) + (f" [{options}]" if options else "")

    @classmethod
    def from_config(cls, config: "Config", **overrides: Any) -> "AnalysisSettings":
        """
        Build settings from a Config, with explicit overrides on top.

        Overrides set to None are ignored, so optional CLI arguments can be
        passed straight through.
        """
        values = dict(
            engine_command=config.engine_path,
            depth=config.engine_depth,
            engine_options=config.engine_options,
            handshake_timeout=config.handshake_timeout,
            search_timeout=config.search_timeout,
            quit_grace=config.quit_grace,
            mate_score=config.mate_score,
            score_perspective=config.score_perspective,
            move_policy=config.move_policy,
            timeout_retries=config.timeout_retries,
        )
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


async def analyze_game_accuracy(
    records: Sequence[MoveRecord],
    settings: AnalysisSettings,
    *,
    cache: Optional["EvaluationCache"] = None,
    game_id: Optional[str] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> GameAccuracy:
    """
    Analyse one game with a dedicated engine process.

    The engine is spawned for this game and terminated on every exit path.

    Args:
        records: Move records of the game
        settings: Engine and analysis settings
        cache: Optional evaluation cache
        game_id: Label carried into the result
        progress_callback: Optional callback(current_move, total_moves)

    Returns:
        GameAccuracy over the successfully scored moves

    Raises:
        ProcessSpawnError: If the engine cannot be launched
        EngineTimeoutError: If a search does not finish in time
    """
    async with open_session(
        settings.engine_command,
        options=settings.engine_options,
        handshake_timeout=settings.handshake_timeout,
        quit_grace=settings.quit_grace,
    ) as session:
        await session.new_game(settings.handshake_timeout)

        evaluator = PositionEvaluator(
            session,
            search_timeout=settings.search_timeout,
            mate_score=settings.mate_score,
            score_perspective=settings.score_perspective,
            cache=cache,
            timeout_retries=settings.timeout_retries,
            resync_timeout=settings.handshake_timeout,
            engine_id=settings.engine_id,
        )
        analyzer = MoveQualityAnalyzer(evaluator, settings.depth, move_policy=settings.move_policy)
        move_scores = await analyzer.analyze(records, progress_callback)

        logger.info("Scored %d of %d moves with %d engine searches",
                    len(move_scores), len(records), evaluator.searches)

    return GameAccuracy.from_move_scores(move_scores, total_moves=len(records), game_id=game_id)


async def analyze_games(
    games: Sequence[ParsedGame],
    settings: AnalysisSettings,
    *,
    concurrency: int = 1,
    cache: Optional["EvaluationCache"] = None,
    verbose: bool = False,
) -> List[GameAccuracy]:
    """
    Analyse several games, each with its own engine process.

    Args:
        games: Parsed games
        settings: Engine and analysis settings
        concurrency: Maximum number of engines running at once
        cache: Optional evaluation cache shared by all games
        verbose: Print progress

    Returns:
        GameAccuracy per game, in input order
    """
    if concurrency < 1:
        raise ValueError(f"Concurrency must be at least 1, got {concurrency}")

    semaphore = asyncio.Semaphore(concurrency)
    total = len(games)

    async def _run(i: int, game: ParsedGame) -> GameAccuracy:
        async with semaphore:
            game_id = game.metadata.game_id
            if verbose:
                print(f"Analyzing game {i + 1}/{total}: {game_id}")
            result = await analyze_game_accuracy(
                game.moves, settings, cache=cache, game_id=game_id
            )
            if verbose:
                print(f"  Accuracy: {result.percentage:.1f}% "
                      f"({result.scored_moves}/{result.total_moves} moves scored)")
            return result

    tasks = [asyncio.ensure_future(_run(i, game)) for i, game in enumerate(games)]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def analyze_pgn_accuracy(pgn_text: str, settings: AnalysisSettings, **kwargs: Any) -> GameAccuracy:
    """
    Analyse the first game of a PGN string.

    Raises:
        GameReplayError: If the PGN contains no game
    """
    games = parse_pgn(pgn_text, settings.move_policy, max_games=1)
    if not games:
        raise GameReplayError("PGN text contains no game")
    game = games[0]
    return await analyze_game_accuracy(game.moves, settings, game_id=game.metadata.game_id, **kwargs)


def run_accuracy_analysis(pgn_text: str, settings: AnalysisSettings, **kwargs: Any) -> GameAccuracy:
    """Blocking wrapper around :func:`analyze_pgn_accuracy`."""
    return asyncio.run(analyze_pgn_accuracy(pgn_text, settings, **kwargs))
