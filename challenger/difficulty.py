"""Difficulty tiers and rewards for challenges.

Difficulty comes from the centipawn gap between the qualifying move and
its nearest competitor: a large gap makes the right move easy to spot.
Position complexity and game phase then nudge the tier.
"""

from __future__ import annotations

import math

from challenger.models import ChallengeType, Difficulty

# cp gap -> tier (strictly greater than)
_EASY_MIN = 150
_MEDIUM_MIN = 50
_HARD_MIN = 20

_HIGH_MOVE_COUNT = 35
_LOW_MOVE_COUNT = 10
_OPENING_MOVE_LIMIT = 10

_DEFAULT_BASE_REWARD = 9

BASE_REWARDS: dict[ChallengeType, int] = {
    ChallengeType.TACTICAL_SHOT: 10,
    ChallengeType.BEST_CAPTURE: 6,
    ChallengeType.DEFENSIVE_GENIUS: 12,
    ChallengeType.OUTPOST_MASTER: 8,
    ChallengeType.CENTER_CONTROL: 7,
    ChallengeType.WEAK_SQUARE_EXPLOITER: 11,
    ChallengeType.EVALUATION_MASTER: 9,
    ChallengeType.QUIET_BRILLIANCY: 14,
    ChallengeType.KNIGHT_NINJA: 8,
    ChallengeType.BISHOP_BRILLIANCE: 8,
    ChallengeType.ROOK_LIFT: 10,
    ChallengeType.QUEEN_POWER: 7,
    ChallengeType.PAWN_STORM: 6,
    ChallengeType.KING_SAFETY: 8,
    ChallengeType.SPACE_INVADER: 9,
    ChallengeType.BEST_MOVE: 9,
    ChallengeType.WORST_MOVE: 6,
    ChallengeType.BEST_KNIGHT_MOVE: 8,
}

DIFFICULTY_MULTIPLIERS: dict[Difficulty, float] = {
    Difficulty.EASY: 0.5,
    Difficulty.MEDIUM: 1.0,
    Difficulty.HARD: 1.8,
    Difficulty.EXPERT: 3.5,
}

_TIER_ORDER = [Difficulty.EASY, Difficulty.MEDIUM, Difficulty.HARD, Difficulty.EXPERT]


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives (``round`` would go to even)."""
    return int(math.floor(value + 0.5))


def tier_rank(difficulty: Difficulty) -> int:
    """0 for Easy up to 3 for Expert."""
    return _TIER_ORDER.index(difficulty)


def gap_tier(cp_gap: int) -> Difficulty:
    """Unadjusted tier for a centipawn gap."""
    gap = abs(cp_gap)
    if gap > _EASY_MIN:
        return Difficulty.EASY
    if gap > _MEDIUM_MIN:
        return Difficulty.MEDIUM
    if gap > _HARD_MIN:
        return Difficulty.HARD
    return Difficulty.EXPERT


def calculate_difficulty(
    cp_a: int,
    cp_b: int,
    legal_move_count: int,
    move_number: int,
) -> Difficulty:
    """Tier for the gap between two evaluations, adjusted for the position.

    Busy positions (more than 35 legal moves) mask big gaps, so Easy becomes
    Medium. Narrow ones (under 10) sharpen Hard into Expert. Expert is never
    handed out before move 10.
    """
    difficulty = gap_tier(cp_a - cp_b)

    if legal_move_count > _HIGH_MOVE_COUNT and difficulty is Difficulty.EASY:
        difficulty = Difficulty.MEDIUM
    if legal_move_count < _LOW_MOVE_COUNT and difficulty is Difficulty.HARD:
        difficulty = Difficulty.EXPERT

    if move_number < _OPENING_MOVE_LIMIT and difficulty is Difficulty.EXPERT:
        difficulty = Difficulty.HARD

    return difficulty


def base_reward(challenge_type: ChallengeType) -> int:
    return BASE_REWARDS.get(challenge_type, _DEFAULT_BASE_REWARD)


def calculate_reward(challenge_type: ChallengeType, difficulty: Difficulty) -> int:
    return round_half_up(base_reward(challenge_type) * DIFFICULTY_MULTIPLIERS[difficulty])
