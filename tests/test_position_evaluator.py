"""
Tests for fixed-depth position evaluation.

Uses an in-process session double that replays canned engine output, so
these tests exercise score extraction without spawning a process.
"""

import chess
import pytest

from move_accuracy.analysis.evaluation_cache import EvaluationCache
from move_accuracy.analysis.position_evaluator import (
    PositionEvaluator,
    ScorePerspective,
    SearchResult,
)
from move_accuracy.errors import EngineTimeoutError
from tests.helpers import fen_after

WHITE_TO_MOVE = chess.STARTING_FEN
BLACK_TO_MOVE = fen_after(chess.STARTING_FEN, "e2e4")


class ScriptedSession:
    """Session double: returns canned lines per FEN, optionally timing out first."""

    def __init__(self, outputs, timeouts=0):
        self.outputs = outputs
        self.timeouts = timeouts
        self.requests = []
        self.resyncs = 0

    async def search(self, request, timeout, *, on_line=None):
        self.requests.append(request)
        if self.timeouts > 0:
            self.timeouts -= 1
            raise EngineTimeoutError(timeout, "bestmove")
        lines = self.outputs[request.fen]
        for line in lines:
            if on_line is not None:
                on_line(line)
        return lines[-1]

    async def resynchronize(self, timeout):
        self.resyncs += 1


class TestScoreExtraction:
    """Tests for turning streamed lines into a SearchResult."""

    @pytest.mark.asyncio
    async def test_last_announced_score_wins(self):
        session = ScriptedSession({WHITE_TO_MOVE: [
            "info depth 1 score cp 50 pv d2d4",
            "info depth 2 score cp 34 pv e2e4",
            "bestmove e2e4 ponder e7e5",
        ]})
        result = await PositionEvaluator(session).evaluate(WHITE_TO_MOVE, 2)

        assert result == SearchResult(best_move="e2e4", score=34, depth=2, score_announced=True)
        assert session.requests[0].depth == 2

    @pytest.mark.asyncio
    async def test_black_to_move_is_converted_to_white_perspective(self):
        session = ScriptedSession({BLACK_TO_MOVE: ["info depth 8 score cp 30", "bestmove e7e5"]})
        result = await PositionEvaluator(session).evaluate(BLACK_TO_MOVE, 8)
        assert result.score == -30

    @pytest.mark.asyncio
    async def test_absolute_perspective_engine(self):
        session = ScriptedSession({BLACK_TO_MOVE: ["info depth 8 score cp 30", "bestmove e7e5"]})
        evaluator = PositionEvaluator(session, score_perspective=ScorePerspective.WHITE)
        result = await evaluator.evaluate(BLACK_TO_MOVE, 8)
        assert result.score == 30

    @pytest.mark.asyncio
    async def test_mate_score(self):
        session = ScriptedSession({BLACK_TO_MOVE: ["info depth 20 score mate 3", "bestmove d8h4"]})
        result = await PositionEvaluator(session).evaluate(BLACK_TO_MOVE, 20)

        # Black mates in 3, so White's view is strongly negative
        assert result.score == -99997
        assert result.mate_in == -3

    @pytest.mark.asyncio
    async def test_configurable_mate_score(self):
        session = ScriptedSession({WHITE_TO_MOVE: ["info score mate -2", "bestmove e2e4"]})
        result = await PositionEvaluator(session, mate_score=50000).evaluate(WHITE_TO_MOVE, 4)
        assert result.score == -49998

    @pytest.mark.asyncio
    async def test_no_score_defaults_to_zero(self):
        session = ScriptedSession({WHITE_TO_MOVE: ["info string thinking", "bestmove e2e4"]})
        result = await PositionEvaluator(session).evaluate(WHITE_TO_MOVE, 6)

        assert result.score == 0
        assert not result.score_announced
        assert result.best_move == "e2e4"

    @pytest.mark.asyncio
    async def test_malformed_line_keeps_previous_score(self):
        session = ScriptedSession({WHITE_TO_MOVE: [
            "info depth 3 score cp 40",
            "info depth 4 score cp banana",
            "bestmove g1f3",
        ]})
        result = await PositionEvaluator(session).evaluate(WHITE_TO_MOVE, 4)
        assert result.score == 40

    @pytest.mark.asyncio
    async def test_no_move_available(self):
        session = ScriptedSession({WHITE_TO_MOVE: ["info depth 0 score mate 0", "bestmove (none)"]})
        result = await PositionEvaluator(session).evaluate(WHITE_TO_MOVE, 1)

        assert result.best_move is None
        assert result.score == -100000

    @pytest.mark.asyncio
    async def test_invalid_depth(self):
        session = ScriptedSession({})
        with pytest.raises(ValueError):
            await PositionEvaluator(session).evaluate(WHITE_TO_MOVE, 0)
        assert session.requests == []


class TestTimeouts:
    """Tests for timed-out searches."""

    @pytest.mark.asyncio
    async def test_timeout_propagates_by_default(self):
        session = ScriptedSession({WHITE_TO_MOVE: ["bestmove e2e4"]}, timeouts=1)
        with pytest.raises(EngineTimeoutError):
            await PositionEvaluator(session, search_timeout=0.1).evaluate(WHITE_TO_MOVE, 3)
        assert session.resyncs == 0

    @pytest.mark.asyncio
    async def test_retry_after_resynchronizing(self):
        session = ScriptedSession({WHITE_TO_MOVE: ["info score cp 12", "bestmove e2e4"]}, timeouts=1)
        evaluator = PositionEvaluator(session, search_timeout=0.1, timeout_retries=1)
        result = await evaluator.evaluate(WHITE_TO_MOVE, 3)

        assert result.score == 12
        assert session.resyncs == 1
        assert len(session.requests) == 2

    @pytest.mark.asyncio
    async def test_retries_exhausted(self):
        session = ScriptedSession({WHITE_TO_MOVE: ["bestmove e2e4"]}, timeouts=3)
        evaluator = PositionEvaluator(session, search_timeout=0.1, timeout_retries=2)
        with pytest.raises(EngineTimeoutError):
            await evaluator.evaluate(WHITE_TO_MOVE, 3)
        assert session.resyncs == 2


class TestCaching:
    """Tests for the evaluation cache integration."""

    @pytest.mark.asyncio
    async def test_repeated_position_uses_cache(self):
        session = ScriptedSession({WHITE_TO_MOVE: ["info score cp 18", "bestmove e2e4"]})
        cache = EvaluationCache()
        evaluator = PositionEvaluator(session, cache=cache)

        first = await evaluator.evaluate(WHITE_TO_MOVE, 10)
        second = await evaluator.evaluate(WHITE_TO_MOVE, 10)

        assert first == second
        assert len(session.requests) == 1
        assert cache.hits == 1

    @pytest.mark.asyncio
    async def test_different_depth_is_a_new_search(self):
        session = ScriptedSession({WHITE_TO_MOVE: ["info score cp 18", "bestmove e2e4"]})
        evaluator = PositionEvaluator(session, cache=EvaluationCache())

        await evaluator.evaluate(WHITE_TO_MOVE, 10)
        await evaluator.evaluate(WHITE_TO_MOVE, 12)
        assert len(session.requests) == 2

    @pytest.mark.asyncio
    async def test_cache_separates_mate_scales(self):
        lines = {WHITE_TO_MOVE: ["info depth 20 score mate 3", "bestmove d1h5"]}
        cache = EvaluationCache()

        first = await PositionEvaluator(ScriptedSession(lines), cache=cache).evaluate(WHITE_TO_MOVE, 20)
        session = ScriptedSession(lines)
        second = await PositionEvaluator(session, cache=cache, mate_score=50000).evaluate(WHITE_TO_MOVE, 20)

        assert first.score == 99997
        assert second.score == 49997
        assert len(session.requests) == 1

    @pytest.mark.asyncio
    async def test_persisted_cache_separates_engine_setups(self, tmp_path):
        lines = {BLACK_TO_MOVE: ["info depth 9 score cp 40", "bestmove e7e5"]}
        with EvaluationCache(tmp_path) as cache:
            await PositionEvaluator(ScriptedSession(lines), cache=cache, engine_id="stockfish").evaluate(BLACK_TO_MOVE, 9)

        reloaded = EvaluationCache(tmp_path)
        same = ScriptedSession(lines)
        other_engine = ScriptedSession(lines)
        other_perspective = ScriptedSession(lines)

        await PositionEvaluator(same, cache=reloaded, engine_id="stockfish").evaluate(BLACK_TO_MOVE, 9)
        await PositionEvaluator(other_engine, cache=reloaded, engine_id="lc0").evaluate(BLACK_TO_MOVE, 9)
        absolute = PositionEvaluator(other_perspective, cache=reloaded, engine_id="stockfish",
                                     score_perspective=ScorePerspective.WHITE)
        result = await absolute.evaluate(BLACK_TO_MOVE, 9)

        assert same.requests == []
        assert len(other_engine.requests) == 1
        assert len(other_perspective.requests) == 1
        assert result.score == 40

    @pytest.mark.asyncio
    async def test_unannounced_score_is_not_cached(self):
        session = ScriptedSession({WHITE_TO_MOVE: ["bestmove e2e4"]})
        cache = EvaluationCache()
        evaluator = PositionEvaluator(session, cache=cache)

        await evaluator.evaluate(WHITE_TO_MOVE, 5)
        await evaluator.evaluate(WHITE_TO_MOVE, 5)

        assert len(session.requests) == 2
        assert cache.size == 0
