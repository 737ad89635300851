"""CLI tests: argument handling and both subcommands end to end.

Stockfish is replaced by a scripted evaluator and console output is
captured with a recording Rich Console.
"""

from __future__ import annotations

import io
import json

import chess
import pytest
from rich.console import Console

from challenger import cli

from conftest import ScriptedEvaluator

# White to move, Rh8 is mate
_MATE_IN_ONE_FEN = "k7/8/1K6/8/8/8/8/7R w - - 0 1"


class _FakeStockfish(ScriptedEvaluator):
    """ScriptedEvaluator with StockfishEvaluator's constructor and context manager."""

    scores = {"e2e4": 40, "d2d4": 38, "g1f3": 35, "h1h8": 99_999}

    def __init__(self, stockfish_path=None, pool_size=5):
        super().__init__(self.scores, default=-20)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return None


@pytest.fixture()
def console(monkeypatch, tmp_path):
    """Recording console wired into the CLI, with profiles under tmp_path."""
    rec = Console(file=io.StringIO(), width=160, record=True, color_system=None)
    monkeypatch.setattr(cli, "Console", lambda: rec)
    monkeypatch.setattr(cli, "StockfishEvaluator", _FakeStockfish)
    monkeypatch.setenv("CHALLENGER_DATA_DIR", str(tmp_path))
    return rec


def _feed(monkeypatch, console: Console, *lines: str) -> None:
    answers = iter(lines)
    monkeypatch.setattr(console, "input", lambda prompt="": next(answers))


# ---------------------------------------------------------------------------
# Argument handling
# ---------------------------------------------------------------------------


class TestArguments:

    def test_no_command(self, console):
        with pytest.raises(SystemExit) as exc:
            cli.main([])
        assert exc.value.code == 1

    def test_bad_level(self, console):
        with pytest.raises(SystemExit) as exc:
            cli.main(["play", "--level", "godlike"])
        assert exc.value.code == 2

    def test_invalid_fen(self, console):
        with pytest.raises(SystemExit) as exc:
            cli.main(["challenges", "not a fen"])
        assert exc.value.code == 1
        assert "fen" in console.export_text().lower()

    def test_bad_env_setting(self, console, monkeypatch):
        monkeypatch.setenv("CHALLENGER_BATCH_SIZE", "many")
        with pytest.raises(SystemExit) as exc:
            cli.main(["challenges", chess.STARTING_FEN])
        assert exc.value.code == 1
        assert "CHALLENGER_BATCH_SIZE" in console.export_text()


# ---------------------------------------------------------------------------
# challenges
# ---------------------------------------------------------------------------


class TestChallengesCommand:

    def test_start_position(self, console):
        cli.main(["challenges", chess.STARTING_FEN, "--seed", "3"])
        out = console.export_text()
        assert "Evaluated moves (20)" in out
        assert "Evaluation Master" in out

    def test_no_legal_moves(self, console):
        cli.main(["challenges", "rnb1kbnr/pppp1ppp/8/4p3/6Pq/5P2/PPPPP2P/RNBQKBNR w KQkq - 1 3"])
        assert "No legal moves" in console.export_text()


# ---------------------------------------------------------------------------
# play
# ---------------------------------------------------------------------------


class TestPlayCommand:

    def test_mate_records_profile(self, console, monkeypatch, tmp_path):
        _feed(monkeypatch, console, "Rh8#")
        cli.main(["play", "--fen", _MATE_IN_ONE_FEN, "--user", "ann", "--seed", "1"])

        out = console.export_text()
        assert "Game Over: 1-0" in out
        assert "Checkmate bonus" in out

        profiles = json.loads((tmp_path / "profiles.json").read_text(encoding="utf-8"))
        assert profiles["ann"]["games_played"] == 1
        assert profiles["ann"]["games_won"] == 1
        assert profiles["ann"]["total_xp"] > 0

    def test_quit_records_nothing(self, console, monkeypatch, tmp_path):
        _feed(monkeypatch, console, "e2e4", "q")
        cli.main(["play", "--fen", _MATE_IN_ONE_FEN])

        out = console.export_text()
        assert "Illegal move" in out
        assert "Game abandoned" in out
        assert not (tmp_path / "profiles.json").exists()
