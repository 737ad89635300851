"""Tests for streak, combo and per-turn scoring."""

from __future__ import annotations

import pytest

from challenger.economy import (
    combo_badge,
    combo_bonus,
    score_turn,
    streak_badge,
    streak_multiplier,
)
from challenger.models import (
    Challenge,
    ChallengeType,
    Difficulty,
    EconomyState,
    MoveEvaluation,
)


def _completed(*rewards: int) -> list[Challenge]:
    return [
        Challenge(
            type=ChallengeType.BEST_CAPTURE,
            description="Make the most valuable capture",
            difficulty=Difficulty.MEDIUM,
            reward=r,
            correct_moves=[MoveEvaluation("e4d5", 100)],
        )
        for r in rewards
    ]


# ---------------------------------------------------------------------------
# Step functions
# ---------------------------------------------------------------------------


class TestTables:

    def test_combo_bonus_steps(self):
        assert [combo_bonus(n) for n in range(7)] == [0, 0, 20, 50, 100, 200, 200]

    @pytest.mark.parametrize("streak,expected", [
        (0, 0.0), (2, 0.0), (3, 0.10), (4, 0.10), (5, 0.25),
        (9, 0.25), (10, 0.50), (14, 0.50), (15, 0.75), (40, 0.75),
    ])
    def test_streak_multiplier(self, streak, expected):
        assert streak_multiplier(streak) == expected

    def test_badges(self):
        assert streak_badge(2) is None
        assert streak_badge(3) == "On Fire"
        assert streak_badge(5) == "Unstoppable"
        assert streak_badge(10) == "Legendary"
        assert streak_badge(15) == "Grandmaster Streak"
        assert combo_badge(1) is None
        assert combo_badge(2) == "Double Threat"
        assert combo_badge(3) == "Triple Crown"
        assert combo_badge(4) == "Perfect Move"
        assert combo_badge(5) == "Immortal"


# ---------------------------------------------------------------------------
# score_turn
# ---------------------------------------------------------------------------


class TestScoreTurn:

    def test_three_completions_on_streak_of_four(self):
        state = EconomyState(streak_count=4, current_game_points=100)
        score = score_turn(state, _completed(10, 10, 10))

        assert score.base_points == 30
        assert score.streak_count == 7
        assert score.streak_bonus == pytest.approx(7.5)
        assert score.combo_bonus == 50
        assert score.points_awarded == 88
        assert score.combo_size == 3
        assert score.streak_badge == "Unstoppable"
        assert score.combo_badge == "Triple Crown"

        assert state.streak_count == 7
        assert state.current_game_points == 188
        assert state.longest_streak == 7
        assert state.best_combo == 3
        assert state.challenges_completed == 3

    def test_empty_turn_resets_streak(self):
        state = EconomyState(streak_count=6, current_game_points=50, longest_streak=6)
        score = score_turn(state, [])
        assert score.points_awarded == 0
        assert state.streak_count == 0
        assert state.current_game_points == 50
        assert state.longest_streak == 6

    def test_single_completion_no_bonus(self):
        state = EconomyState()
        score = score_turn(state, _completed(16))
        assert score.points_awarded == 16
        assert score.streak_bonus == 0
        assert score.combo_bonus == 0
        assert state.streak_count == 1

    def test_streak_accumulates_across_turns(self):
        state = EconomyState()
        for _ in range(3):
            score_turn(state, _completed(5))
        assert state.streak_count == 3
        # Third turn reaches streak 3: 5 + 0.5 -> 6 (half up)
        assert state.current_game_points == 5 + 5 + 6

    def test_records_keep_maximum(self):
        state = EconomyState()
        score_turn(state, _completed(5, 5))
        score_turn(state, [])
        score_turn(state, _completed(5))
        assert state.best_combo == 2
        assert state.longest_streak == 2
        assert state.streak_count == 1
