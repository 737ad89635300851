"""One player's challenge state for one game.

GameSession ties the pipeline together: evaluate the position, detect
and select challenges, track them against the moves actually played,
score completions, and produce the end-of-game summary.
"""

from __future__ import annotations

import asyncio
import logging
import random

import chess

from challenger.aggregator import evaluate_moves
from challenger.config import Settings
from challenger.difficulty import round_half_up
from challenger.economy import score_turn
from challenger.engine import MoveEvaluator
from challenger.lifecycle import ResolvedCallback, check_challenges, expire_all, succeeded
from challenger.models import (
    Challenge,
    EconomyState,
    GameSummary,
    MovesAnalysis,
    TurnScore,
)
from challenger.progression import (
    ai_difficulty_multiplier,
    calculate_end_game_bonuses,
    calculate_xp_earned,
    get_rank,
)
from challenger.selector import carry_over, make_challenges

logger = logging.getLogger(__name__)


def parse_move(board: chess.Board, text: str) -> chess.Move:
    """Parse a player's move typed as SAN or UCI.

    Raises:
        chess.InvalidMoveError: If *text* is neither SAN nor UCI.
        chess.IllegalMoveError: If the move is not legal on *board*.
    """
    text = text.strip()
    try:
        return board.parse_san(text)
    except chess.InvalidMoveError:
        pass
    move = chess.Move.from_uci(text)
    if move not in board.legal_moves:
        raise chess.IllegalMoveError(f"illegal move: {text!r} in {board.fen()}")
    return move


class GameSession:
    """Challenge generation, tracking and scoring for a single game."""

    def __init__(
        self,
        evaluator: MoveEvaluator,
        settings: Settings | None = None,
        rng: random.Random | None = None,
        on_resolved: ResolvedCallback | None = None,
    ) -> None:
        """
        Args:
            evaluator: Scores candidate moves.
            settings: Generation tunables. Defaults to ``Settings()``.
            rng: Randomness for challenge selection. Seed it for repeatable games.
            on_resolved: Called for every challenge reaching success or fail.
        """
        self._evaluator = evaluator
        self._settings = settings or Settings()
        self._rng = rng or random.Random()
        self._on_resolved = on_resolved
        self._generating = False

        self.economy = EconomyState()
        self.challenges: list[Challenge] = []
        self.completion_records: list[dict] = []
        self.last_analysis: MovesAnalysis | None = None

    @property
    def is_generating(self) -> bool:
        return self._generating

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate_challenges(self, board: chess.Board) -> list[Challenge]:
        """Build the challenge batch for the player to move on *board*.

        Unresolved Game-horizon challenges from the previous batch are kept
        in front. If evaluation exceeds the generation timeout or the
        evaluator breaks down, only those carried challenges are returned.

        Raises:
            RuntimeError: If a generation for this session is already running.
        """
        if self._generating:
            raise RuntimeError("Challenge generation already in progress")

        carried = carry_over(self.challenges)
        self._generating = True
        try:
            analysis = await asyncio.wait_for(
                evaluate_moves(
                    board,
                    self._evaluator,
                    batch_size=self._settings.batch_size,
                    time_budget=self._settings.time_budget,
                    call_timeout=self._settings.call_timeout,
                ),
                timeout=self._settings.generation_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Challenge generation exceeded %.1fs, no new challenges this turn",
                self._settings.generation_timeout,
            )
            analysis = None
        except Exception as exc:
            logger.warning("Challenge generation failed (%s), no new challenges this turn", exc)
            analysis = None
        finally:
            self._generating = False

        self.last_analysis = analysis
        if analysis is None or len(analysis) == 0:
            self.challenges = carried
            return list(carried)

        batch = make_challenges(board, analysis, self._rng, carried)
        self.economy.challenges_presented += len(batch) - len(carried)
        self.challenges = batch
        return list(batch)

    def add_challenge(self, challenge: Challenge) -> None:
        """Put an externally built challenge into the live batch."""
        if any(c.id == challenge.id for c in self.challenges):
            raise ValueError(f"Challenge {challenge.id} is already live")
        self.challenges.append(challenge)
        self.economy.challenges_presented += 1

    # ------------------------------------------------------------------
    # Play
    # ------------------------------------------------------------------

    def _record(self, challenge: Challenge, combo_size: int) -> None:
        self.completion_records.append({
            "challenge_id": challenge.id,
            "type": challenge.type.value,
            "status": challenge.status.value,
            "reward": challenge.reward,
            "streak_count": self.economy.streak_count,
            "combo_size": combo_size,
        })

    def apply_move(self, move: str, is_game_over: bool = False) -> TurnScore:
        """Resolve the live batch against the player's move and score it.

        Args:
            move: The legal move just played, in UCI notation.
            is_game_over: True if the move ended the game.

        Returns:
            The turn's score breakdown.

        Raises:
            RuntimeError: If challenge generation is still running.
        """
        if self._generating:
            raise RuntimeError("Cannot apply a move while challenges are being generated")

        resolved = check_challenges(
            self.challenges, move, is_game_over, on_resolved=self._on_resolved
        )
        completed = succeeded(resolved)
        score = score_turn(self.economy, completed)
        completed_ids = {c.id for c in completed}
        for challenge in resolved:
            self._record(challenge, len(completed) if challenge.id in completed_ids else 0)

        if completed:
            logger.info(
                "%s completed %d challenge(s) for %d points (streak %d)",
                move, len(completed), score.points_awarded, score.streak_count,
            )
        return score

    # ------------------------------------------------------------------
    # End of game
    # ------------------------------------------------------------------

    def finish_game(
        self,
        is_win: bool,
        is_checkmate: bool,
        move_count: int,
        player_total_xp: int = 0,
        opponent_points: int = 0,
        opponent_rank: str = "NOVICE",
        ai_difficulty: str | None = None,
    ) -> GameSummary:
        """Close out the game and work out the XP earned.

        Args:
            is_win: The player won.
            is_checkmate: The game ended in checkmate.
            move_count: Plies played.
            player_total_xp: XP the player had before this game.
            opponent_points: Opponent's game points, for the domination bonus.
            opponent_rank: Opponent's ladder rank.
            ai_difficulty: Engine level when playing the computer; scales XP.

        Returns:
            GameSummary ready for ProfileStore.record_game.
        """
        for challenge in expire_all(self.challenges, on_resolved=self._on_resolved):
            self._record(challenge, 0)

        presented = self.economy.challenges_presented
        completed = self.economy.challenges_completed
        completion_rate = completed / presented if presented else 0.0

        previous_rank = get_rank(player_total_xp)
        bonuses = calculate_end_game_bonuses(
            is_win=is_win,
            is_checkmate=is_checkmate,
            completion_rate=completion_rate,
            move_count=move_count,
            point_lead=self.economy.current_game_points - opponent_points,
            opponent_rank=opponent_rank,
            player_rank=previous_rank,
        )
        xp = calculate_xp_earned(self.economy.current_game_points, bonuses)
        if ai_difficulty is not None:
            xp = round_half_up(xp * ai_difficulty_multiplier(ai_difficulty))

        total_xp = player_total_xp + xp
        summary = GameSummary(
            challenges_presented=presented,
            challenges_completed=completed,
            longest_streak=self.economy.longest_streak,
            best_combo=self.economy.best_combo,
            completion_rate=completion_rate,
            game_points=self.economy.current_game_points,
            bonuses=bonuses,
            xp_earned=xp,
            total_xp=total_xp,
            previous_rank=previous_rank,
            new_rank=get_rank(total_xp),
        )
        logger.info(
            "Game finished: %d/%d challenges, %d points, %d XP",
            completed, presented, summary.game_points, xp,
        )
        return summary
