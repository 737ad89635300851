"""Per-turn scoring: challenge rewards plus streak and combo bonuses.

A streak counts completed challenges across consecutive turns that each
complete at least one; a turn with no completion resets it. A combo is
the number of challenges completed by a single move.
"""

from __future__ import annotations

from collections.abc import Sequence

from challenger.difficulty import round_half_up
from challenger.models import Challenge, EconomyState, TurnScore

# (minimum streak, bonus fraction of base points), highest first
_STREAK_MULTIPLIERS = [
    (15, 0.75),
    (10, 0.50),
    (5, 0.25),
    (3, 0.10),
]

# (minimum combo size, flat bonus), highest first
_COMBO_BONUSES = [
    (5, 200),
    (4, 100),
    (3, 50),
    (2, 20),
]

_STREAK_BADGES = [
    (15, "Grandmaster Streak"),
    (10, "Legendary"),
    (5, "Unstoppable"),
    (3, "On Fire"),
]

_COMBO_BADGES = [
    (5, "Immortal"),
    (4, "Perfect Move"),
    (3, "Triple Crown"),
    (2, "Double Threat"),
]


def _step(table: list[tuple[int, float]], value: int, default):
    for threshold, result in table:
        if value >= threshold:
            return result
    return default


def streak_multiplier(streak_count: int) -> float:
    return _step(_STREAK_MULTIPLIERS, streak_count, 0.0)


def combo_bonus(combo_size: int) -> int:
    return _step(_COMBO_BONUSES, combo_size, 0)


def streak_badge(streak_count: int) -> str | None:
    return _step(_STREAK_BADGES, streak_count, None)


def combo_badge(combo_size: int) -> str | None:
    return _step(_COMBO_BADGES, combo_size, None)


def score_turn(state: EconomyState, completed: Sequence[Challenge]) -> TurnScore:
    """Award points for the challenges completed by one move.

    Updates *state* in place (streak, game points, records) and returns the
    breakdown for this turn.
    """
    if not completed:
        state.streak_count = 0
        return TurnScore(streak_count=0)

    base = sum(c.reward for c in completed)
    new_streak = state.streak_count + len(completed)
    streak_bonus = base * streak_multiplier(new_streak)
    combo = combo_bonus(len(completed))
    points = round_half_up(base + streak_bonus + combo)

    state.current_game_points += points
    state.streak_count = new_streak
    state.challenges_completed += len(completed)
    state.longest_streak = max(state.longest_streak, new_streak)
    state.best_combo = max(state.best_combo, len(completed))

    return TurnScore(
        completed=list(completed),
        base_points=base,
        streak_bonus=streak_bonus,
        combo_bonus=combo,
        points_awarded=points,
        streak_count=new_streak,
        streak_badge=streak_badge(new_streak),
        combo_badge=combo_badge(len(completed)),
    )
