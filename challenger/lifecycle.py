"""Challenge status transitions driven by the move actually played.

possible -> success | fail. Terminal states never change again.

The "10 moves" window has no rule of its own yet and behaves like
"Game": it stays open until a correct move or the end of the game.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from challenger.models import Challenge, ChallengeStatus, TimeWindow

logger = logging.getLogger(__name__)

ResolvedCallback = Callable[[Challenge], None]


def next_status(challenge: Challenge, move: str, is_game_over: bool) -> ChallengeStatus:
    """Status *challenge* moves to after *move* (UCI) is played."""
    if challenge.is_resolved:
        return challenge.status

    if challenge.accepts(move):
        return ChallengeStatus.SUCCESS

    if challenge.time_window is TimeWindow.TURN:
        return ChallengeStatus.FAIL
    if is_game_over:
        return ChallengeStatus.FAIL
    return ChallengeStatus.POSSIBLE


def _resolve(
    challenge: Challenge,
    status: ChallengeStatus,
    on_resolved: ResolvedCallback | None,
) -> None:
    challenge.status = status
    logger.debug("Challenge %s -> %s", challenge.id, status.value)
    if on_resolved is not None:
        on_resolved(challenge)


def check_challenges(
    challenges: Iterable[Challenge],
    move: str,
    is_game_over: bool = False,
    on_resolved: ResolvedCallback | None = None,
) -> list[Challenge]:
    """Apply a played move to every open challenge.

    Args:
        challenges: The live batch. Updated in place.
        move: The move just played, in UCI notation. Must already be legal.
        is_game_over: True if this move ended the game.
        on_resolved: Called once for each challenge reaching a terminal state.

    Returns:
        Challenges that were resolved by this move, in batch order.
    """
    resolved: list[Challenge] = []
    for challenge in challenges:
        if challenge.is_resolved:
            continue
        status = next_status(challenge, move, is_game_over)
        if status is ChallengeStatus.POSSIBLE:
            continue
        _resolve(challenge, status, on_resolved)
        resolved.append(challenge)
    return resolved


def expire_all(
    challenges: Iterable[Challenge],
    on_resolved: ResolvedCallback | None = None,
) -> list[Challenge]:
    """Fail every challenge still open, e.g. when the game ends without a move."""
    expired: list[Challenge] = []
    for challenge in challenges:
        if challenge.is_resolved:
            continue
        _resolve(challenge, ChallengeStatus.FAIL, on_resolved)
        expired.append(challenge)
    return expired


def succeeded(challenges: Iterable[Challenge]) -> list[Challenge]:
    return [c for c in challenges if c.status is ChallengeStatus.SUCCESS]
