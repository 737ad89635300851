"""Tests for the move evaluation aggregator.

Uses the ScriptedEvaluator from conftest.py; no Stockfish needed.
"""

from __future__ import annotations

import logging

import chess
import pytest

from challenger.aggregator import build_analysis, evaluate_moves, sort_evaluations
from challenger.models import MoveEvaluation

# Fool's mate: white is checkmated, no legal moves
_MATED_FEN = "rnb1kbnr/pppp1ppp/8/4p3/6Pq/5P2/PPPPP2P/RNBQKBNR w KQkq - 1 3"


# ---------------------------------------------------------------------------
# Sorting and assembly
# ---------------------------------------------------------------------------


class TestSorting:

    def test_descending(self):
        evs = [MoveEvaluation("a", 10), MoveEvaluation("b", 50), MoveEvaluation("c", -5)]
        assert [e.move for e in sort_evaluations(evs)] == ["b", "a", "c"]

    def test_ties_keep_input_order(self):
        evs = [MoveEvaluation("a", 10), MoveEvaluation("b", 10), MoveEvaluation("c", 10)]
        assert [e.move for e in sort_evaluations(evs)] == ["a", "b", "c"]

    def test_build_analysis_rejects_duplicates(self):
        with pytest.raises(ValueError, match="Duplicate"):
            build_analysis([MoveEvaluation("e2e4", 1), MoveEvaluation("e2e4", 2)])


# ---------------------------------------------------------------------------
# evaluate_moves
# ---------------------------------------------------------------------------


class TestEvaluateMoves:

    @pytest.mark.asyncio
    async def test_one_entry_per_legal_move(self, scripted_evaluator):
        board = chess.Board()
        evaluator = scripted_evaluator({"e2e4": 40, "d2d4": 38, "g1f3": 35}, default=-10)
        analysis = await evaluate_moves(board, evaluator)

        legal = {m.uci() for m in board.legal_moves}
        assert set(analysis.moves) == legal
        assert len(analysis.sorted) == len(legal) == 20
        assert [e.move for e in analysis.sorted[:3]] == ["e2e4", "d2d4", "g1f3"]
        cps = [e.cp for e in analysis.sorted]
        assert cps == sorted(cps, reverse=True)

    @pytest.mark.asyncio
    async def test_no_legal_moves(self, scripted_evaluator):
        evaluator = scripted_evaluator()
        analysis = await evaluate_moves(chess.Board(_MATED_FEN), evaluator)
        assert len(analysis) == 0
        assert evaluator.calls == []

    @pytest.mark.asyncio
    async def test_batch_width_bounds_concurrency(self, scripted_evaluator):
        evaluator = scripted_evaluator()
        await evaluate_moves(chess.Board(), evaluator, batch_size=3)
        assert len(evaluator.calls) == 20
        assert evaluator.max_in_flight <= 3

    @pytest.mark.asyncio
    async def test_failure_scores_zero(self, scripted_evaluator, caplog):
        evaluator = scripted_evaluator({"e2e4": 40}, default=15, fail={"e2e4"})
        with caplog.at_level(logging.WARNING, logger="challenger.aggregator"):
            analysis = await evaluate_moves(chess.Board(), evaluator)
        assert analysis.moves["e2e4"].cp == 0
        assert len(analysis) == 20
        assert "e2e4" in caplog.text

    @pytest.mark.asyncio
    async def test_timeout_scores_zero(self, scripted_evaluator):
        evaluator = scripted_evaluator({"g1f3": 90}, default=20, hang={"g1f3"})
        analysis = await evaluate_moves(chess.Board(), evaluator, call_timeout=0.05)
        assert analysis.moves["g1f3"].cp == 0
        assert analysis.best.cp == 20

    @pytest.mark.asyncio
    async def test_board_not_modified(self, scripted_evaluator):
        board = chess.Board()
        board.push_san("e4")
        fen = board.fen()
        await evaluate_moves(board, scripted_evaluator())
        assert board.fen() == fen
        assert len(board.move_stack) == 1

    @pytest.mark.asyncio
    async def test_invalid_batch_size(self, scripted_evaluator):
        with pytest.raises(ValueError, match="batch_size"):
            await evaluate_moves(chess.Board(), scripted_evaluator(), batch_size=0)
