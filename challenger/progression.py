"""Rank ladder and end-of-game XP.

Game points plus end-game bonuses, scaled by how much stronger the
opponent is, become XP. Cumulative XP maps onto the rank ladder.
"""

from __future__ import annotations

from dataclasses import dataclass

from challenger.difficulty import round_half_up
from challenger.models import GameBonuses


@dataclass(frozen=True)
class RankInfo:
    rank: str
    xp_required: int
    display_name: str
    color: str


RANK_LADDER: list[RankInfo] = [
    RankInfo("NOVICE", 0, "Novice", "#9CA3AF"),
    RankInfo("AMATEUR", 1_000, "Amateur", "#10B981"),
    RankInfo("CLUB_PLAYER", 3_000, "Club Player", "#3B82F6"),
    RankInfo("EXPERT", 7_000, "Expert", "#8B5CF6"),
    RankInfo("CANDIDATE_MASTER", 15_000, "Candidate Master", "#EC4899"),
    RankInfo("MASTER", 30_000, "Master", "#F59E0B"),
    RankInfo("GRANDMASTER", 60_000, "Grandmaster", "#EF4444"),
    RankInfo("WORLD_CLASS", 100_000, "World Class", "#FCD34D"),
]

_RANK_INDEX = {info.rank: i for i, info in enumerate(RANK_LADDER)}

# XP scaling for games against the built-in engine
AI_DIFFICULTY_MULTIPLIERS: dict[str, float] = {
    "BEGINNER": 0.5,
    "INTERMEDIATE": 0.75,
    "ADVANCED": 1.0,
    "MASTER": 1.25,
}

_WIN_BONUS = 50
_CHECKMATE_BONUS = 25
_PERFECT_GAME_BONUS = 200
_FLAWLESS_VICTORY_BONUS = 150
_SPEED_BONUS = 30
_SPEED_MOVE_LIMIT = 25
_DOMINATION_BONUS = 75
_DOMINATION_LEAD = 150

# (minimum completion rate, bonus) below a perfect game
_COMPLETION_BONUSES = [(0.9, 100), (0.8, 50)]
# (minimum ranks above the player, multiplier)
_OPPONENT_MULTIPLIERS = [(3, 1.50), (2, 1.30), (1, 1.15)]


def rank_index(rank: str) -> int:
    """Position of *rank* on the ladder.

    Raises:
        ValueError: If *rank* is not on the ladder.
    """
    try:
        return _RANK_INDEX[rank]
    except KeyError:
        raise ValueError(f"Unknown rank: {rank}") from None


def get_rank(total_xp: int) -> str:
    for info in reversed(RANK_LADDER):
        if total_xp >= info.xp_required:
            return info.rank
    return RANK_LADDER[0].rank


def get_rank_info(rank: str) -> RankInfo:
    index = _RANK_INDEX.get(rank)
    return RANK_LADDER[index] if index is not None else RANK_LADDER[0]


def progress_to_next_rank(total_xp: int) -> dict:
    """XP earned inside the current rank and XP still needed for the next.

    Returns:
        Dict with current, needed, percentage and next_rank (None at the top).
    """
    index = rank_index(get_rank(total_xp))
    if index == len(RANK_LADDER) - 1:
        return {"current": 0, "needed": 0, "percentage": 100.0, "next_rank": None}

    floor = RANK_LADDER[index].xp_required
    ceiling = RANK_LADDER[index + 1].xp_required
    current = total_xp - floor
    needed = ceiling - floor
    return {
        "current": current,
        "needed": needed,
        "percentage": current / needed * 100,
        "next_rank": RANK_LADDER[index + 1].rank,
    }


def calculate_end_game_bonuses(
    is_win: bool,
    is_checkmate: bool,
    completion_rate: float,
    move_count: int,
    point_lead: int,
    opponent_rank: str,
    player_rank: str,
) -> GameBonuses:
    """Flat bonuses and the opponent-strength multiplier for a finished game.

    Args:
        is_win: The player won.
        is_checkmate: The game ended in checkmate.
        completion_rate: Completed / presented challenges, 0..1.
        move_count: Moves (plies) played in the game.
        point_lead: Player game points minus opponent game points.
        opponent_rank: Opponent's ladder rank.
        player_rank: Player's ladder rank.
    """
    bonuses = GameBonuses(
        win_bonus=_WIN_BONUS if is_win else 0,
        checkmate_bonus=_CHECKMATE_BONUS if is_checkmate else 0,
    )

    if completion_rate >= 1.0:
        bonuses.perfect_game_bonus = _PERFECT_GAME_BONUS
        if is_win:
            bonuses.perfect_game_bonus += _FLAWLESS_VICTORY_BONUS
    else:
        for threshold, bonus in _COMPLETION_BONUSES:
            if completion_rate >= threshold:
                bonuses.completion_bonus = bonus
                break

    if is_win and move_count < _SPEED_MOVE_LIMIT:
        bonuses.speed_bonus = _SPEED_BONUS
    if is_win and point_lead >= _DOMINATION_LEAD:
        bonuses.domination_bonus = _DOMINATION_BONUS

    rank_diff = rank_index(opponent_rank) - rank_index(player_rank)
    for min_diff, multiplier in _OPPONENT_MULTIPLIERS:
        if rank_diff >= min_diff:
            bonuses.opponent_rank_multiplier = multiplier
            break

    return bonuses


def calculate_xp_earned(game_points: int, bonuses: GameBonuses) -> int:
    return round_half_up((game_points + bonuses.flat_total) * bonuses.opponent_rank_multiplier)


def ai_difficulty_multiplier(difficulty: str) -> float:
    """XP multiplier for an engine opponent level.

    Raises:
        ValueError: If *difficulty* is not a known level.
    """
    try:
        return AI_DIFFICULTY_MULTIPLIERS[difficulty.upper()]
    except KeyError:
        raise ValueError(f"Unknown AI difficulty: {difficulty}") from None
