"""Shared test fixtures with dual-mode support (scripted vs real Stockfish).

Usage:
    pytest tests/                  # Fast, scripted evaluator (no Stockfish)
    pytest tests/ --e2e            # Also run tests that need real Stockfish

Fixtures:
    scripted_evaluator - Factory for ScriptedEvaluator instances.
    stockfish_path     - Real Stockfish binary; skipped without --e2e.
    enable_validation  - Sets CHALLENGER_VALIDATE=1 for schema validation.
"""

from __future__ import annotations

import asyncio
import os
import sys
from pathlib import Path

import chess
import pytest

_PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_PROJECT_ROOT))

from challenger.models import MoveEvaluation, MovesAnalysis  # noqa: E402


# ---------------------------------------------------------------------------
# CLI option and marker registration
# ---------------------------------------------------------------------------


def pytest_addoption(parser):
    """Register --e2e CLI flag for real Stockfish tests."""
    parser.addoption(
        "--e2e",
        action="store_true",
        default=False,
        help="Run with real Stockfish engine (no scripted evaluator).",
    )


def pytest_configure(config):
    """Register the e2e marker."""
    config.addinivalue_line(
        "markers", "e2e: mark test as end-to-end (requires real Stockfish)"
    )


# ---------------------------------------------------------------------------
# Scripted evaluator
# ---------------------------------------------------------------------------


class ScriptedEvaluator:
    """MoveEvaluator returning canned scores.

    Args:
        scores: UCI move -> centipawns. Unlisted moves score *default*.
        default: Score for moves missing from *scores*.
        fail: Moves whose evaluation raises RuntimeError.
        hang: Moves whose evaluation sleeps for *hang_seconds*.
        hang_seconds: Sleep used for *hang* moves.
    """

    def __init__(
        self,
        scores: dict[str, int] | None = None,
        default: int = 0,
        fail: set[str] | None = None,
        hang: set[str] | None = None,
        hang_seconds: float = 10.0,
    ) -> None:
        self.scores = dict(scores or {})
        self.default = default
        self.fail = set(fail or ())
        self.hang = set(hang or ())
        self.hang_seconds = hang_seconds
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def evaluate(self, board: chess.Board, move: str, time_budget: float) -> int:
        self.calls.append(move)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            # Yield so concurrently issued calls overlap
            await asyncio.sleep(0)
            if move in self.hang:
                await asyncio.sleep(self.hang_seconds)
            if move in self.fail:
                raise RuntimeError(f"engine crashed on {move}")
            return self.scores.get(move, self.default)
        finally:
            self.in_flight -= 1


@pytest.fixture()
def scripted_evaluator():
    """Factory fixture: ``scripted_evaluator({"e2e4": 40}, default=-20)``."""
    return ScriptedEvaluator


def make_analysis(scores: dict[str, int]) -> MovesAnalysis:
    """Ranked MovesAnalysis from a UCI -> cp mapping, ties in insertion order."""
    evaluations = [MoveEvaluation(move=m, cp=cp) for m, cp in scores.items()]
    return MovesAnalysis(
        moves={ev.move: ev for ev in evaluations},
        sorted=sorted(evaluations, key=lambda ev: -ev.cp),
    )


def score_all(board: chess.Board, scores: dict[str, int], default: int = 0) -> MovesAnalysis:
    """MovesAnalysis covering every legal move of *board*, unlisted ones at *default*."""
    legal = [m.uci() for m in board.legal_moves]
    unknown = set(scores) - set(legal)
    assert not unknown, f"Not legal on {board.fen()}: {sorted(unknown)}"
    return make_analysis({m: scores.get(m, default) for m in legal})


# ---------------------------------------------------------------------------
# Real Stockfish
# ---------------------------------------------------------------------------


@pytest.fixture()
def stockfish_path(request):
    """Path of a real Stockfish binary. Skips unless --e2e is passed."""
    if not request.config.getoption("--e2e"):
        pytest.skip("needs --e2e and a Stockfish install")
    from challenger.engine import find_stockfish

    try:
        return find_stockfish()
    except FileNotFoundError as exc:
        pytest.skip(str(exc))


# ---------------------------------------------------------------------------
# Schema validation fixture
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def enable_validation():
    """Set CHALLENGER_VALIDATE=1 for the test.

    Restores the original env var value after the test.
    """
    original = os.environ.get("CHALLENGER_VALIDATE")
    os.environ["CHALLENGER_VALIDATE"] = "1"
    yield
    if original is None:
        os.environ.pop("CHALLENGER_VALIDATE", None)
    else:
        os.environ["CHALLENGER_VALIDATE"] = original
