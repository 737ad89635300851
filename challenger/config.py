"""Runtime settings for Chess Challenger, read from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

_PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Evaluator calls in flight at once while scoring a position
DEFAULT_BATCH_SIZE = 5
DEFAULT_MOVE_TIME_MS = 100
DEFAULT_CALL_TIMEOUT_S = 2.0
DEFAULT_GENERATION_TIMEOUT_S = 30.0


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name}={raw!r} is not an integer") from None


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name}={raw!r} is not a number") from None


@dataclass(frozen=True)
class Settings:
    """Tunables for challenge generation.

    ``stockfish_path`` of None means auto-detect (see engine.find_stockfish).
    """

    stockfish_path: str | None = None
    batch_size: int = DEFAULT_BATCH_SIZE
    move_time_ms: int = DEFAULT_MOVE_TIME_MS
    call_timeout: float = DEFAULT_CALL_TIMEOUT_S
    generation_timeout: float = DEFAULT_GENERATION_TIMEOUT_S
    data_dir: Path = _PROJECT_ROOT / "data"

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.move_time_ms < 1:
            raise ValueError(f"move_time_ms must be >= 1, got {self.move_time_ms}")
        if self.call_timeout <= 0 or self.generation_timeout <= 0:
            raise ValueError("timeouts must be positive")

    @property
    def time_budget(self) -> float:
        """Per-move engine think time in seconds."""
        return self.move_time_ms / 1000.0

    @classmethod
    def from_env(cls) -> "Settings":
        data_dir = os.environ.get("CHALLENGER_DATA_DIR")
        return cls(
            stockfish_path=os.environ.get("CHALLENGER_STOCKFISH_PATH") or None,
            batch_size=_env_int("CHALLENGER_BATCH_SIZE", DEFAULT_BATCH_SIZE),
            move_time_ms=_env_int("CHALLENGER_MOVE_TIME_MS", DEFAULT_MOVE_TIME_MS),
            call_timeout=_env_float("CHALLENGER_CALL_TIMEOUT_S", DEFAULT_CALL_TIMEOUT_S),
            generation_timeout=_env_float(
                "CHALLENGER_GENERATION_TIMEOUT_S", DEFAULT_GENERATION_TIMEOUT_S
            ),
            data_dir=Path(data_dir) if data_dir else _PROJECT_ROOT / "data",
        )
