"""Stockfish move evaluator for Chess Challenger.

Scores individual candidate moves through python-chess's asyncio UCI
interface. A small pool of engine processes lets the aggregator keep
several evaluations in flight at once; each process serves one call
at a time.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
from pathlib import Path
from typing import Protocol

import chess
import chess.engine

logger = logging.getLogger(__name__)

# Stockfish search paths in priority order
_STOCKFISH_PATHS = [
    "/opt/homebrew/bin/stockfish",
    "/usr/local/bin/stockfish",
    "/usr/games/stockfish",
    "/usr/bin/stockfish",
]

# Mates are reported as +/- (_MATE_SCORE - plies); see detectors.MATE_THRESHOLD
_MATE_SCORE = 100_000


class MoveEvaluator(Protocol):
    """Anything that can score a single candidate move."""

    async def evaluate(
        self, board: chess.Board, move: str, time_budget: float
    ) -> int:
        """Return the centipawn value of playing *move* (UCI) on *board*.

        The score is from the mover's perspective. Implementations may raise
        or hang; callers bound every call with a timeout.
        """
        ...


def find_stockfish() -> str:
    """Auto-detect Stockfish binary path.

    Resolution order:
    1. ``CHALLENGER_STOCKFISH_PATH`` environment variable
    2. known install paths
    3. ``which stockfish`` on ``$PATH``

    Raises:
        FileNotFoundError: If Stockfish is not found anywhere.
    """
    env_val = os.environ.get("CHALLENGER_STOCKFISH_PATH")
    if env_val:
        if Path(env_val).is_file():
            return env_val
        raise FileNotFoundError(
            f"CHALLENGER_STOCKFISH_PATH={env_val!r} does not point to an existing file"
        )

    for path_str in _STOCKFISH_PATHS:
        if Path(path_str).is_file():
            return path_str

    which_result = shutil.which("stockfish")
    if which_result is not None:
        return which_result

    raise FileNotFoundError(
        "Stockfish not found. Install it or set CHALLENGER_STOCKFISH_PATH."
    )


def score_to_cp(score: chess.engine.PovScore, color: chess.Color) -> int:
    """Centipawns for *color*, with mates mapped to +/- _MATE_SCORE."""
    value = score.pov(color).score(mate_score=_MATE_SCORE)
    return int(value or 0)


class StockfishEvaluator:
    """Pool of asyncio Stockfish processes implementing MoveEvaluator.

    Use as an async context manager::

        async with StockfishEvaluator(pool_size=5) as evaluator:
            cp = await evaluator.evaluate(board, "e2e4", 0.1)
    """

    def __init__(self, stockfish_path: str | None = None, pool_size: int = 5) -> None:
        if pool_size < 1:
            raise ValueError(f"pool_size must be >= 1, got {pool_size}")
        self._stockfish_path = stockfish_path or find_stockfish()
        self._pool_size = pool_size
        self._engines: list[chess.engine.Protocol] = []
        self._available: asyncio.Queue[chess.engine.Protocol] | None = None

    @property
    def pool_size(self) -> int:
        return self._pool_size

    async def _open_engine(self) -> chess.engine.Protocol:
        """Open a fresh single-threaded Stockfish process."""
        _, engine = await chess.engine.popen_uci(self._stockfish_path)
        await engine.configure({"Threads": 1})
        return engine

    async def start(self) -> None:
        """Spawn the engine processes. Safe to call more than once."""
        if self._available is not None:
            return
        self._available = asyncio.Queue()
        try:
            for _ in range(self._pool_size):
                engine = await self._open_engine()
                self._engines.append(engine)
                self._available.put_nowait(engine)
        except Exception:
            await self.close()
            raise
        logger.debug("Started %d Stockfish processes from %s",
                     self._pool_size, self._stockfish_path)

    async def _acquire(self) -> chess.engine.Protocol:
        if self._available is None:
            await self.start()
        assert self._available is not None
        return await self._available.get()

    def _release(self, engine: chess.engine.Protocol) -> None:
        if self._available is not None:
            self._available.put_nowait(engine)

    async def _replace(self, engine: chess.engine.Protocol) -> chess.engine.Protocol:
        """Swap a terminated engine for a new process."""
        logger.warning("Stockfish process terminated, restarting")
        fresh = await self._open_engine()
        if engine in self._engines:
            self._engines[self._engines.index(engine)] = fresh
        else:
            self._engines.append(fresh)
        return fresh

    async def evaluate(self, board: chess.Board, move: str, time_budget: float) -> int:
        """Score *move* by searching only that root move for *time_budget* seconds."""
        root_move = chess.Move.from_uci(move)
        limit = chess.engine.Limit(time=time_budget)
        engine = await self._acquire()
        try:
            try:
                info = await engine.analyse(board, limit, root_moves=[root_move])
            except chess.engine.EngineTerminatedError:
                engine = await self._replace(engine)
                info = await engine.analyse(board, limit, root_moves=[root_move])
        finally:
            self._release(engine)

        score = info.get("score")
        if score is None:
            raise ValueError(f"Engine returned no score for {move}")
        return score_to_cp(score, board.turn)

    async def best_move(self, board: chess.Board, time_budget: float = 0.5) -> chess.Move:
        """Return the engine's move for *board*.

        Raises:
            ValueError: If the game is already over.
        """
        if board.is_game_over():
            raise ValueError("Game is already over")

        engine = await self._acquire()
        try:
            result = await engine.play(board, chess.engine.Limit(time=time_budget))
        finally:
            self._release(engine)
        if result.move is None:
            raise ValueError("Engine did not return a move")
        return result.move

    async def close(self) -> None:
        """Shut down every Stockfish process."""
        engines, self._engines = self._engines, []
        self._available = None
        for engine in engines:
            try:
                await engine.quit()
            except chess.engine.EngineTerminatedError:
                pass

    async def __aenter__(self) -> "StockfishEvaluator":
        await self.start()
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()
