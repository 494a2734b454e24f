"""
End-to-end accuracy analysis against the scripted fake engine.

The fake engine reports scores from the side to move, like Stockfish.
After 1.e4 or 1.d4 Black is to move, so a reported -20 is +20 for White.
"""

import chess
import pytest

from move_accuracy.analysis.evaluation_cache import EvaluationCache
from move_accuracy.analysis.game_analysis import (
    AnalysisSettings,
    analyze_game_accuracy,
    analyze_games,
    analyze_pgn_accuracy,
)
from move_accuracy.errors import EngineTimeoutError, GameReplayError, ProcessSpawnError
from move_accuracy.parsers.pgn_parser import parse_pgn
from tests.helpers import fen_after, fen_key

START = chess.STARTING_FEN
AFTER_E4 = fen_after(START, "e2e4")
AFTER_D4 = fen_after(START, "d2d4")

ONE_MOVE_GAME = """[White "Alice"]
[Black "Bob"]
[Round "1"]
[Result "*"]

1. e4 *
"""


def positions(after_d4, after_e4):
    return {
        "positions": {
            fen_key(START): {"score": 20, "bestmove": "d2d4"},
            fen_key(AFTER_D4): {"score": after_d4, "bestmove": "d7d5"},
            fen_key(AFTER_E4): {"score": after_e4, "bestmove": "e7e5"},
        }
    }


def settings_for(command, **kwargs):
    kwargs.setdefault("depth", 6)
    kwargs.setdefault("search_timeout", 5.0)
    kwargs.setdefault("handshake_timeout", 5.0)
    kwargs.setdefault("quit_grace", 1.0)
    return AnalysisSettings(engine_command=command, **kwargs)


class TestAnalyzeGame:
    """Tests for single-game analysis."""

    @pytest.mark.asyncio
    async def test_best_move_played(self, fake_engine):
        settings = settings_for(fake_engine(positions(after_d4=-20, after_e4=-20)))
        records = parse_pgn(ONE_MOVE_GAME)[0].moves

        result = await analyze_game_accuracy(records, settings, game_id="g1")

        assert result.percentage == 100.0
        assert result.scored_moves == 1
        assert result.move_scores[0].centipawn_loss == 0
        assert result.game_id == "g1"

    @pytest.mark.asyncio
    async def test_inaccurate_move(self, fake_engine):
        # White's view: best line +100, played line -50
        settings = settings_for(fake_engine(positions(after_d4=-100, after_e4=50)))
        records = parse_pgn(ONE_MOVE_GAME)[0].moves

        result = await analyze_game_accuracy(records, settings)

        assert result.move_scores[0].centipawn_loss == 150
        assert result.percentage == pytest.approx(30.0)

    @pytest.mark.asyncio
    async def test_engine_commands(self, fake_engine, command_log):
        script = positions(after_d4=-20, after_e4=-20)
        script["log"] = str(command_log)
        settings = settings_for(fake_engine(script), depth=9, engine_options={"Hash": 16})
        records = parse_pgn(ONE_MOVE_GAME)[0].moves

        await analyze_game_accuracy(records, settings)

        sent = command_log.read_text().splitlines()
        assert "setoption name Hash value 16" in sent
        assert "ucinewgame" in sent
        assert sent.count("go depth 9") == 3
        assert f"position fen {START}" in sent
        assert sent[-1] == "quit"

    @pytest.mark.asyncio
    async def test_missing_engine(self, tmp_path):
        settings = settings_for(str(tmp_path / "missing-engine"))
        with pytest.raises(ProcessSpawnError):
            await analyze_game_accuracy(parse_pgn(ONE_MOVE_GAME)[0].moves, settings)

    @pytest.mark.asyncio
    async def test_search_timeout_aborts(self, fake_engine):
        script = positions(after_d4=0, after_e4=0)
        script["hang_searches"] = 1
        settings = settings_for(fake_engine(script), search_timeout=0.3)

        with pytest.raises(EngineTimeoutError):
            await analyze_game_accuracy(parse_pgn(ONE_MOVE_GAME)[0].moves, settings)

    @pytest.mark.asyncio
    async def test_search_timeout_retried(self, fake_engine):
        script = positions(after_d4=-20, after_e4=-20)
        script["hang_searches"] = 1
        settings = settings_for(fake_engine(script), search_timeout=0.3, timeout_retries=1)

        result = await analyze_game_accuracy(parse_pgn(ONE_MOVE_GAME)[0].moves, settings)
        assert result.percentage == 100.0


class TestAnalyzePgn:
    """Tests for PGN entry points."""

    @pytest.mark.asyncio
    async def test_first_game_of_pgn(self, fake_engine):
        settings = settings_for(fake_engine(positions(after_d4=-20, after_e4=-20)))
        result = await analyze_pgn_accuracy(ONE_MOVE_GAME, settings)

        assert result.game_id == "Alice vs Bob R1"
        assert result.total_moves == 1

    @pytest.mark.asyncio
    async def test_empty_pgn(self, fake_engine):
        with pytest.raises(GameReplayError):
            await analyze_pgn_accuracy("", settings_for(fake_engine()))

    @pytest.mark.asyncio
    async def test_several_games_concurrently(self, fake_engine):
        games = parse_pgn(ONE_MOVE_GAME + "\n" + ONE_MOVE_GAME.replace("Bob", "Carol"))
        settings = settings_for(fake_engine(positions(after_d4=-100, after_e4=50)))

        results = await analyze_games(games, settings, concurrency=2)

        assert [r.game_id for r in results] == ["Alice vs Bob R1", "Alice vs Carol R1"]
        assert all(r.percentage == pytest.approx(30.0) for r in results)

    @pytest.mark.asyncio
    async def test_shared_cache_avoids_repeat_searches(self, fake_engine):
        games = parse_pgn(ONE_MOVE_GAME + "\n" + ONE_MOVE_GAME)
        settings = settings_for(fake_engine(positions(after_d4=-20, after_e4=-20)))
        cache = EvaluationCache()

        await analyze_games(games, settings, cache=cache)

        assert cache.size == 3
        assert cache.hits == 3

    @pytest.mark.asyncio
    async def test_invalid_concurrency(self, fake_engine):
        with pytest.raises(ValueError):
            await analyze_games([], settings_for(fake_engine()), concurrency=0)
