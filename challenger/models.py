"""Shared data models for Chess Challenger.

MoveEvaluation, Challenge and EconomyState are the shared contract
between the challenge engine, the game session and the MCP server.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum


class ChallengeType(str, Enum):
    """Catalogue of challenge types, current and legacy."""

    TACTICAL_SHOT = "Tactical Shot"
    BEST_CAPTURE = "Best Capture"
    DEFENSIVE_GENIUS = "Defensive Genius"
    OUTPOST_MASTER = "Outpost Master"
    CENTER_CONTROL = "Center Control"
    WEAK_SQUARE_EXPLOITER = "Weak Square Exploiter"
    EVALUATION_MASTER = "Evaluation Master"
    QUIET_BRILLIANCY = "Quiet Brilliancy"
    KNIGHT_NINJA = "Knight Ninja"
    BISHOP_BRILLIANCE = "Bishop Brilliance"
    ROOK_LIFT = "Rook Lift"
    QUEEN_POWER = "Queen Power"
    PAWN_STORM = "Pawn Storm"
    KING_SAFETY = "King Safety"
    SPACE_INVADER = "Space Invader"
    # Legacy
    BEST_MOVE = "Best Move"
    WORST_MOVE = "Worst Move"
    BEST_KNIGHT_MOVE = "Best Knight Move"

    @property
    def is_legacy(self) -> bool:
        return self in _LEGACY_TYPES

    @property
    def slug(self) -> str:
        """Lower-case, dash-separated name used in challenge ids."""
        return "-".join(self.value.lower().split())


_LEGACY_TYPES = frozenset({
    ChallengeType.BEST_MOVE,
    ChallengeType.WORST_MOVE,
    ChallengeType.BEST_KNIGHT_MOVE,
})


class Difficulty(str, Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"
    EXPERT = "Expert"


class TimeWindow(str, Enum):
    """Horizon over which a challenge stays attainable."""

    TURN = "Turn"
    GAME = "Game"
    TEN_MOVES = "10 moves"


class ChallengeStatus(str, Enum):
    POSSIBLE = "possible"
    SUCCESS = "success"
    FAIL = "fail"


class CheckKind(str, Enum):
    """How the correct-move set is interpreted."""

    ANY_OPTION = "any option"
    DYNAMIC = "dynamic relative to best option"


class Mandatory(str, Enum):
    MANDATORY = "mandatory"
    OPTIONAL = "optional"
    ACCEPTED = "accepted"


@dataclass(frozen=True)
class MoveEvaluation:
    """Engine score of one legal move, from the mover's perspective."""

    move: str  # UCI, e.g. "e2e4" or "e7e8q"
    cp: int


@dataclass
class MovesAnalysis:
    """Evaluations for every legal move of a position.

    ``sorted`` holds the same entries as ``moves``, best first. Ties keep
    legal-move generation order.
    """

    moves: dict[str, MoveEvaluation] = field(default_factory=dict)
    sorted: list[MoveEvaluation] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.sorted)

    @property
    def best(self) -> MoveEvaluation | None:
        return self.sorted[0] if self.sorted else None

    @property
    def worst(self) -> MoveEvaluation | None:
        return self.sorted[-1] if self.sorted else None


def new_challenge_id(challenge_type: ChallengeType) -> str:
    return f"{challenge_type.slug}-{uuid.uuid4().hex[:8]}"


@dataclass
class Challenge:
    """A secondary objective offered to the player for one position."""

    type: ChallengeType
    description: str
    difficulty: Difficulty
    reward: int
    correct_moves: list[MoveEvaluation]
    check_kind: CheckKind = CheckKind.ANY_OPTION
    time_window: TimeWindow = TimeWindow.TURN
    status: ChallengeStatus = ChallengeStatus.POSSIBLE
    mandatory: Mandatory = Mandatory.OPTIONAL
    id: str = ""

    def __post_init__(self) -> None:
        if not self.correct_moves:
            raise ValueError(f"{self.type.value} challenge needs at least one correct move")
        if not self.id:
            self.id = new_challenge_id(self.type)

    @property
    def is_resolved(self) -> bool:
        return self.status is not ChallengeStatus.POSSIBLE

    def accepts(self, move: str) -> bool:
        """True if playing *move* (UCI) satisfies this challenge."""
        return any(option.move == move for option in self.correct_moves)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "description": self.description,
            "difficulty": self.difficulty.value,
            "reward": self.reward,
            "time_window": self.time_window.value,
            "status": self.status.value,
            "check_kind": self.check_kind.value,
            "mandatory": self.mandatory.value,
            "correct_moves": [
                {"move": m.move, "cp": m.cp} for m in self.correct_moves
            ],
        }


@dataclass
class EconomyState:
    """Per-game, per-player scoring state."""

    streak_count: int = 0
    current_game_points: int = 0
    longest_streak: int = 0
    best_combo: int = 0
    challenges_presented: int = 0
    challenges_completed: int = 0


@dataclass
class TurnScore:
    """Points awarded for the challenges completed by one played move."""

    completed: list[Challenge] = field(default_factory=list)
    base_points: int = 0
    streak_bonus: float = 0.0
    combo_bonus: int = 0
    points_awarded: int = 0
    streak_count: int = 0
    streak_badge: str | None = None
    combo_badge: str | None = None

    @property
    def combo_size(self) -> int:
        return len(self.completed)


@dataclass
class GameBonuses:
    """End-of-game XP bonuses."""

    win_bonus: int = 0
    checkmate_bonus: int = 0
    completion_bonus: int = 0
    perfect_game_bonus: int = 0
    comeback_bonus: int = 0
    speed_bonus: int = 0
    domination_bonus: int = 0
    opponent_rank_multiplier: float = 1.0

    @property
    def flat_total(self) -> int:
        return (
            self.win_bonus
            + self.checkmate_bonus
            + self.completion_bonus
            + self.perfect_game_bonus
            + self.comeback_bonus
            + self.speed_bonus
            + self.domination_bonus
        )


@dataclass
class GameSummary:
    """Everything persistence needs once a game is over."""

    challenges_presented: int
    challenges_completed: int
    longest_streak: int
    best_combo: int
    completion_rate: float
    game_points: int
    bonuses: GameBonuses
    xp_earned: int
    total_xp: int
    previous_rank: str
    new_rank: str

    @property
    def ranked_up(self) -> bool:
        return self.new_rank != self.previous_rank
