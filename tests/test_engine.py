"""Pytest tests for the Stockfish evaluator.

Tests mock popen_uci so they don't require the actual binary.
Covers: binary discovery, score conversion, the engine pool, restart
after a crash, and (with --e2e) a real Stockfish round trip.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import chess
import chess.engine
import pytest

from challenger.engine import StockfishEvaluator, find_stockfish, score_to_cp


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_mock_engine(cp: int = 35) -> MagicMock:
    """Create a mock UCI protocol whose analyse reports *cp* for white."""
    eng = MagicMock(spec=chess.engine.Protocol)
    eng.configure = AsyncMock()
    eng.quit = AsyncMock()
    eng.analyse = AsyncMock(
        return_value={"score": chess.engine.PovScore(chess.engine.Cp(cp), chess.WHITE)}
    )
    eng.play = AsyncMock(
        return_value=chess.engine.PlayResult(chess.Move.from_uci("e2e4"), None)
    )
    return eng


@pytest.fixture
def mock_popen():
    """Patch popen_uci so every call opens a fresh mock engine."""
    engines: list[MagicMock] = []

    async def _popen(path):
        eng = _make_mock_engine()
        engines.append(eng)
        return MagicMock(), eng

    with patch("chess.engine.popen_uci", side_effect=_popen) as popen:
        yield popen, engines


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


class TestFindStockfish:

    def test_not_found(self, monkeypatch):
        monkeypatch.delenv("CHALLENGER_STOCKFISH_PATH", raising=False)
        with patch("challenger.engine.Path.is_file", return_value=False), \
             patch("challenger.engine.shutil.which", return_value=None):
            with pytest.raises(FileNotFoundError, match="Stockfish not found"):
                find_stockfish()

    def test_found_via_which(self, monkeypatch):
        monkeypatch.delenv("CHALLENGER_STOCKFISH_PATH", raising=False)
        with patch("challenger.engine.Path.is_file", return_value=False), \
             patch("challenger.engine.shutil.which", return_value="/usr/local/bin/stockfish"):
            assert find_stockfish() == "/usr/local/bin/stockfish"

    def test_found_via_known_path(self, monkeypatch):
        monkeypatch.delenv("CHALLENGER_STOCKFISH_PATH", raising=False)
        with patch("challenger.engine.Path.is_file", return_value=True), \
             patch("challenger.engine.shutil.which", return_value=None):
            assert find_stockfish() == "/opt/homebrew/bin/stockfish"

    def test_env_var_wins(self, monkeypatch, tmp_path):
        binary = tmp_path / "stockfish"
        binary.write_text("", encoding="utf-8")
        monkeypatch.setenv("CHALLENGER_STOCKFISH_PATH", str(binary))
        assert find_stockfish() == str(binary)

    def test_env_var_missing_file(self, monkeypatch, tmp_path):
        monkeypatch.setenv("CHALLENGER_STOCKFISH_PATH", str(tmp_path / "nope"))
        with pytest.raises(FileNotFoundError, match="does not point"):
            find_stockfish()


# ---------------------------------------------------------------------------
# Score conversion
# ---------------------------------------------------------------------------


class TestScoreToCp:

    def test_centipawns_from_mover_view(self):
        score = chess.engine.PovScore(chess.engine.Cp(120), chess.WHITE)
        assert score_to_cp(score, chess.WHITE) == 120
        assert score_to_cp(score, chess.BLACK) == -120

    def test_mate_mapped_near_mate_score(self):
        score = chess.engine.PovScore(chess.engine.Mate(1), chess.WHITE)
        assert score_to_cp(score, chess.WHITE) == 99_999
        assert score_to_cp(score, chess.BLACK) == -99_999


# ---------------------------------------------------------------------------
# Evaluator pool
# ---------------------------------------------------------------------------


class TestStockfishEvaluator:

    def test_invalid_pool_size(self):
        with pytest.raises(ValueError, match="pool_size"):
            StockfishEvaluator("/fake/stockfish", pool_size=0)

    @pytest.mark.asyncio
    async def test_start_opens_pool(self, mock_popen):
        popen, engines = mock_popen
        async with StockfishEvaluator("/fake/stockfish", pool_size=3):
            assert popen.call_count == 3
            for eng in engines:
                eng.configure.assert_awaited_once_with({"Threads": 1})
        for eng in engines:
            eng.quit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_evaluate_restricts_root_move(self, mock_popen):
        _, engines = mock_popen
        board = chess.Board()
        async with StockfishEvaluator("/fake/stockfish", pool_size=1) as evaluator:
            cp = await evaluator.evaluate(board, "g1f3", 0.05)

        assert cp == 35
        args, kwargs = engines[0].analyse.call_args
        assert args[0] is board
        assert args[1].time == 0.05
        assert kwargs["root_moves"] == [chess.Move.from_uci("g1f3")]

    @pytest.mark.asyncio
    async def test_evaluate_black_to_move(self, mock_popen):
        board = chess.Board()
        board.push_san("e4")
        async with StockfishEvaluator("/fake/stockfish", pool_size=1) as evaluator:
            assert await evaluator.evaluate(board, "e7e5", 0.05) == -35

    @pytest.mark.asyncio
    async def test_missing_score_raises(self, mock_popen):
        _, engines = mock_popen
        async with StockfishEvaluator("/fake/stockfish", pool_size=1) as evaluator:
            engines[0].analyse.return_value = {}
            with pytest.raises(ValueError, match="no score"):
                await evaluator.evaluate(chess.Board(), "e2e4", 0.05)

    @pytest.mark.asyncio
    async def test_restarts_terminated_engine(self, mock_popen):
        popen, engines = mock_popen
        async with StockfishEvaluator("/fake/stockfish", pool_size=1) as evaluator:
            engines[0].analyse.side_effect = chess.engine.EngineTerminatedError("gone")
            cp = await evaluator.evaluate(chess.Board(), "e2e4", 0.05)
            assert cp == 35
            assert popen.call_count == 2
            # The replacement goes back into the pool
            await evaluator.evaluate(chess.Board(), "d2d4", 0.05)
            assert engines[1].analyse.await_count == 2

    @pytest.mark.asyncio
    async def test_best_move(self, mock_popen):
        async with StockfishEvaluator("/fake/stockfish", pool_size=1) as evaluator:
            move = await evaluator.best_move(chess.Board(), 0.05)
        assert move == chess.Move.from_uci("e2e4")

    @pytest.mark.asyncio
    async def test_best_move_game_over(self, mock_popen):
        board = chess.Board("rnb1kbnr/pppp1ppp/8/4p3/6Pq/5P2/PPPPP2P/RNBQKBNR w KQkq - 1 3")
        async with StockfishEvaluator("/fake/stockfish", pool_size=1) as evaluator:
            with pytest.raises(ValueError, match="already over"):
                await evaluator.best_move(board)


# ---------------------------------------------------------------------------
# Real Stockfish
# ---------------------------------------------------------------------------


@pytest.mark.e2e
class TestRealStockfish:

    @pytest.mark.asyncio
    async def test_round_trip(self, stockfish_path):
        board = chess.Board()
        async with StockfishEvaluator(stockfish_path, pool_size=2) as evaluator:
            good = await evaluator.evaluate(board, "e2e4", 0.1)
            bad = await evaluator.evaluate(board, "g2g4", 0.1)
        assert good > bad
