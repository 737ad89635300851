"""Pick the challenges shown to the player for one turn."""

from __future__ import annotations

import logging
import random
from collections.abc import Iterable, Sequence

import chess

from challenger.detectors import detect_all
from challenger.models import Challenge, ChallengeType, MovesAnalysis, TimeWindow

logger = logging.getLogger(__name__)

MIN_CHALLENGES = 2
MAX_CHALLENGES = 4
# Above this many legal moves an Evaluation Master challenge always gets a slot
_EVALUATION_MASTER_MIN_MOVES = 5

_CARRIED_WINDOWS = frozenset({TimeWindow.GAME, TimeWindow.TEN_MOVES})


def carry_over(previous: Iterable[Challenge]) -> list[Challenge]:
    """Unresolved multi-turn challenges that survive into the next batch."""
    return [
        c for c in previous
        if not c.is_resolved and c.time_window in _CARRIED_WINDOWS
    ]


def select_challenges(
    candidates: Sequence[Challenge],
    legal_move_count: int,
    rng: random.Random,
    carried: Iterable[Challenge] = (),
) -> list[Challenge]:
    """Shuffle the candidates and keep between 2 and 4 of them.

    Args:
        candidates: Detector output for the position.
        legal_move_count: Legal moves available to the player.
        rng: Randomness source; seed it to pin the selection.
        carried: Unresolved Game-horizon challenges from the previous batch,
            kept in front of the new selection.

    Returns:
        The new challenge batch.
    """
    pool = list(candidates)
    pinned: list[Challenge] = []
    if legal_move_count > _EVALUATION_MASTER_MIN_MOVES:
        for challenge in pool:
            if challenge.type is ChallengeType.EVALUATION_MASTER:
                pinned.append(challenge)
                pool.remove(challenge)
                break

    rng.shuffle(pool)
    count = min(rng.randint(MIN_CHALLENGES, MAX_CHALLENGES), len(pinned) + len(pool))
    chosen = pinned + pool[:count - len(pinned)]
    rng.shuffle(chosen)

    logger.debug(
        "Selected %d of %d candidate challenges: %s",
        len(chosen), len(candidates), [c.type.value for c in chosen],
    )
    return list(carried) + chosen


def make_challenges(
    board: chess.Board,
    analysis: MovesAnalysis,
    rng: random.Random,
    carried: Iterable[Challenge] = (),
) -> list[Challenge]:
    """Detect and select the challenges for *board*."""
    candidates = detect_all(board, analysis)
    return select_challenges(candidates, len(analysis), rng, carried)
