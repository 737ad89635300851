"""Player profile persistence for Chess Challenger.

Profiles live in a single JSON object keyed by username. Each finished
game folds its GameSummary into the player's running totals.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
from datetime import datetime, timezone
from pathlib import Path

from challenger.models import GameSummary
from challenger.progression import get_rank

logger = logging.getLogger(__name__)


def new_profile() -> dict:
    return {
        "total_xp": 0,
        "rank": get_rank(0),
        "games_played": 0,
        "games_won": 0,
        "total_points": 0,
        "challenges_completed": 0,
        "longest_streak": 0,
        "best_combo": 0,
        "last_game": None,
    }


class ProfileStore:
    """JSON-backed store of per-player progression."""

    def __init__(self, path: str | Path = "data/profiles.json") -> None:
        """Load profiles from *path*.

        If the file is corrupted, backs it up as .bak and starts fresh.

        Args:
            path: JSON file holding the profiles.
        """
        self._path = Path(path)
        self._profiles: dict[str, dict] = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, dict]:
        if not self._path.exists():
            return {}

        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError("Profiles file must contain a JSON object")
            return data
        except (json.JSONDecodeError, ValueError):
            backup_path = self._path.with_suffix(".bak")
            shutil.copy2(self._path, backup_path)
            logger.warning("Corrupt profiles file %s, backed up to %s", self._path, backup_path)
            return {}

    def _save(self) -> None:
        """Write all profiles with an atomic replace."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(
            json.dumps(self._profiles, indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
        os.replace(tmp_path, self._path)

    def get(self, username: str) -> dict:
        """Profile for *username*; a fresh one if the player is unknown."""
        stored = self._profiles.get(username)
        return dict(stored) if stored is not None else new_profile()

    def usernames(self) -> list[str]:
        return sorted(self._profiles)

    def record_game(self, username: str, summary: GameSummary, is_win: bool) -> dict:
        """Fold a finished game into *username*'s profile and save.

        Args:
            username: Player name.
            summary: Output of GameSession.finish_game.
            is_win: The player won the game.

        Returns:
            The updated profile dict.

        Raises:
            ValueError: If *username* is empty.
        """
        if not username:
            raise ValueError("username must not be empty")

        profile = self.get(username)
        total_xp = profile["total_xp"] + summary.xp_earned
        updated = {
            **profile,
            "total_xp": total_xp,
            "rank": get_rank(total_xp),
            "games_played": profile["games_played"] + 1,
            "games_won": profile["games_won"] + (1 if is_win else 0),
            "total_points": profile["total_points"] + summary.game_points,
            "challenges_completed": profile["challenges_completed"] + summary.challenges_completed,
            "longest_streak": max(profile["longest_streak"], summary.longest_streak),
            "best_combo": max(profile["best_combo"], summary.best_combo),
            "last_game": {
                "finished_at": datetime.now(timezone.utc).isoformat(),
                "won": is_win,
                "game_points": summary.game_points,
                "xp_earned": summary.xp_earned,
                "challenges_presented": summary.challenges_presented,
                "challenges_completed": summary.challenges_completed,
                "completion_rate": round(summary.completion_rate, 3),
            },
        }
        self._profiles[username] = updated
        self._save()

        if updated["rank"] != profile["rank"]:
            logger.info("%s ranked up: %s -> %s", username, profile["rank"], updated["rank"])
        return updated
