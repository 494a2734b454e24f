#!/usr/bin/env python3
"""
Run engine accuracy analysis on the games of a PGN file.

For every game:
1. Replay the moves from the PGN
2. Ask the engine for its best move before each played move
3. Compare the positions after the best and the played move
4. Report per-move centipawn loss and the game accuracy

Usage:
    python scripts/run_accuracy_analysis.py games.pgn
    python scripts/run_accuracy_analysis.py games.pgn --engine /usr/local/bin/stockfish --depth 14
    python scripts/run_accuracy_analysis.py games.pgn --lenient --concurrency 4 --max-games 10

Engine path, depth and timeouts default to the values in config.yaml.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from move_accuracy.errors import AccuracyAnalysisError, EngineError
from move_accuracy.utils.config import Config
from move_accuracy.parsers.pgn_parser import MovePolicy, read_pgn_file
from move_accuracy.analysis.evaluation_cache import EvaluationCache
from move_accuracy.analysis.game_analysis import AnalysisSettings, analyze_games
from move_accuracy.reports.move_report import print_move_report, print_games_summary


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )


def positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {value}")
    return number


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Score how closely played moves match a UCI engine's suggestions"
    )
    parser.add_argument("pgn", type=Path, help="PGN file with one or more games")
    parser.add_argument("--config", "-c", type=Path, help="Path to config.yaml")
    parser.add_argument("--engine", "-e", type=str, help="Engine binary (overrides config)")
    parser.add_argument("--depth", "-d", type=positive_int, help="Search depth (overrides config)")
    parser.add_argument(
        "--lenient",
        action="store_true",
        help="Accept pseudo-legal engine suggestions and partially replayable games"
    )
    parser.add_argument("--concurrency", "-j", type=positive_int, help="Games analysed at once")
    parser.add_argument("--max-games", "-n", type=positive_int, help="Analyse at most this many games")
    parser.add_argument("--no-cache", action="store_true", help="Do not read or write the evaluation cache")
    parser.add_argument("--summary-only", action="store_true", help="Skip the per-move tables")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log engine traffic")
    args = parser.parse_args(argv)

    config = Config(args.config)
    setup_logging("DEBUG" if args.verbose else config.log_level)

    try:
        settings = AnalysisSettings.from_config(
            config,
            engine_command=args.engine,
            depth=args.depth,
            move_policy=MovePolicy.LENIENT if args.lenient else None,
        )
    except ValueError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 1
    concurrency = args.concurrency if args.concurrency is not None else config.concurrency
    if concurrency < 1:
        print(f"Invalid configuration: concurrency must be at least 1, got {concurrency}", file=sys.stderr)
        return 1

    print(f"Configuration loaded: {config}")
    print(f"Engine: {settings.engine_command}  Depth: {settings.depth}  "
          f"Policy: {settings.move_policy.value}")

    try:
        games = list(read_pgn_file(args.pgn, settings.move_policy, max_games=args.max_games))
    except (OSError, AccuracyAnalysisError) as exc:
        print(f"Could not read games from {args.pgn}: {exc}", file=sys.stderr)
        return 1

    print(f"Loaded {len(games)} games from {args.pgn}")
    if not games:
        print("No games found!")
        return 1

    cache = None
    if not args.no_cache:
        cache = EvaluationCache(config.cache_path)

    try:
        results = asyncio.run(analyze_games(
            games,
            settings,
            concurrency=concurrency,
            cache=cache,
            verbose=True,
        ))
    except EngineError as exc:
        print(f"\nAnalysis aborted: {exc}", file=sys.stderr)
        return 2
    finally:
        if cache is not None:
            cache.save()
            print(f"Cache holds {cache.size} positions ({cache.hits} hits this run)")

    if not args.summary_only:
        for result in results:
            print_move_report(result)
    print_games_summary(results)
    return 0


if __name__ == "__main__":
    sys.exit(main())
