"""Evaluate every legal move of a position and rank the results.

Calls to the evaluator are issued in fixed-width batches; each batch is
awaited in full before the next one starts. A call that fails or runs
past its timeout scores a neutral 0 instead of failing the batch.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

import chess

from challenger.config import DEFAULT_BATCH_SIZE, DEFAULT_CALL_TIMEOUT_S
from challenger.engine import MoveEvaluator
from challenger.models import MoveEvaluation, MovesAnalysis

logger = logging.getLogger(__name__)

_NEUTRAL_CP = 0


def sort_evaluations(evaluations: Iterable[MoveEvaluation]) -> list[MoveEvaluation]:
    """Best first. ``sorted`` is stable, so ties keep input order."""
    return sorted(evaluations, key=lambda ev: -ev.cp)


def build_analysis(evaluations: Iterable[MoveEvaluation]) -> MovesAnalysis:
    """Assemble a MovesAnalysis, rejecting duplicate move keys."""
    moves: dict[str, MoveEvaluation] = {}
    for ev in evaluations:
        if ev.move in moves:
            raise ValueError(f"Duplicate evaluation for move {ev.move}")
        moves[ev.move] = ev
    return MovesAnalysis(moves=moves, sorted=sort_evaluations(moves.values()))


async def _evaluate_one(
    board: chess.Board,
    move: str,
    evaluator: MoveEvaluator,
    time_budget: float,
    call_timeout: float,
) -> MoveEvaluation:
    try:
        cp = await asyncio.wait_for(
            evaluator.evaluate(board, move, time_budget),
            timeout=call_timeout,
        )
    except asyncio.TimeoutError:
        logger.warning("Evaluation of %s timed out after %.2fs, scoring 0", move, call_timeout)
        cp = _NEUTRAL_CP
    except Exception as exc:
        logger.warning("Evaluation of %s failed (%s), scoring 0", move, exc)
        cp = _NEUTRAL_CP
    return MoveEvaluation(move=move, cp=int(cp))


async def evaluate_moves(
    board: chess.Board,
    evaluator: MoveEvaluator,
    batch_size: int = DEFAULT_BATCH_SIZE,
    time_budget: float = 0.1,
    call_timeout: float = DEFAULT_CALL_TIMEOUT_S,
) -> MovesAnalysis:
    """Score every legal move on *board*.

    Args:
        board: Position to analyse. Not modified.
        evaluator: Scoring oracle (see engine.MoveEvaluator).
        batch_size: Maximum evaluator calls in flight at once.
        time_budget: Engine think time per move, in seconds.
        call_timeout: Hard ceiling per call, in seconds.

    Returns:
        MovesAnalysis with one entry per legal move. Empty when the
        position has no legal moves.
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")

    legal = [move.uci() for move in board.legal_moves]
    if not legal:
        return MovesAnalysis()

    # Evaluators get their own copy so a misbehaving one cannot move our board
    snapshot = board.copy(stack=False)
    evaluations: list[MoveEvaluation] = []
    for start in range(0, len(legal), batch_size):
        batch = legal[start:start + batch_size]
        results = await asyncio.gather(*(
            _evaluate_one(snapshot, move, evaluator, time_budget, call_timeout)
            for move in batch
        ))
        evaluations.extend(results)

    logger.debug("Evaluated %d moves for %s", len(evaluations), board.fen())
    return build_analysis(evaluations)
