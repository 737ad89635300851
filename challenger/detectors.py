"""Challenge pattern detection for chess positions.

Each detector looks at the position, the ranked move evaluations and the
piece-location index, and either returns a ready Challenge or None when
its pattern does not apply. Detectors never raise on empty subsets
(no knights on the board, no captures, ...).
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

import chess

from challenger.difficulty import calculate_difficulty, calculate_reward
from challenger.models import (
    Challenge,
    ChallengeType,
    CheckKind,
    Difficulty,
    MoveEvaluation,
    MovesAnalysis,
)

# Scores at or above this are forced mates (see engine._MATE_SCORE)
MATE_THRESHOLD = 10_000

# Minimum cp gap over the comparison move for each detector
TACTICAL_SHOT_GAP = 300
DEFENSIVE_GENIUS_SWING = 200
QUIET_BRILLIANCY_GAP = 30
KNIGHT_NINJA_GAP = 25
BISHOP_BRILLIANCE_GAP = 30
ROOK_LIFT_GAP = 40
QUEEN_POWER_GAP = 30
PAWN_STORM_GAP = 20
KING_SAFETY_GAP = 25
SPACE_INVADER_GAP = 25

EVALUATION_MASTER_TOLERANCE = 10
# Opponent must lose more than this many legal moves
SPACE_INVADER_MOBILITY_DROP = 2
# Legacy worst-move band
WORST_MOVE_BAND = 400

_CENTER_SQUARES = frozenset({chess.D4, chess.D5, chess.E4, chess.E5})

# Ranks 5/6 from each side's point of view (0-indexed)
_OUTPOST_RANKS = {
    chess.WHITE: frozenset({4, 5}),
    chess.BLACK: frozenset({3, 2}),
}


@dataclass(frozen=True)
class PieceIndex:
    """Squares (UCI names) holding each piece type of the side to move."""

    knights: frozenset[str] = frozenset()
    bishops: frozenset[str] = frozenset()
    rooks: frozenset[str] = frozenset()
    queens: frozenset[str] = frozenset()

    def squares_for(self, piece_type: chess.PieceType) -> frozenset[str]:
        return {
            chess.KNIGHT: self.knights,
            chess.BISHOP: self.bishops,
            chess.ROOK: self.rooks,
            chess.QUEEN: self.queens,
        }.get(piece_type, frozenset())


def build_piece_index(board: chess.Board) -> PieceIndex:
    """Index the mover's knights, bishops, rooks and queens by square."""

    def names(piece_type: chess.PieceType) -> frozenset[str]:
        return frozenset(
            chess.square_name(sq) for sq in board.pieces(piece_type, board.turn)
        )

    return PieceIndex(
        knights=names(chess.KNIGHT),
        bishops=names(chess.BISHOP),
        rooks=names(chess.ROOK),
        queens=names(chess.QUEEN),
    )


Detector = Callable[[chess.Board, MovesAnalysis, PieceIndex], "Challenge | None"]


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _from_square(ev: MoveEvaluation) -> str:
    return ev.move[:2]


def _to_square(ev: MoveEvaluation) -> chess.Square:
    return chess.parse_square(ev.move[2:4])


def _moved_piece_type(board: chess.Board, ev: MoveEvaluation) -> chess.PieceType | None:
    return board.piece_type_at(chess.parse_square(_from_square(ev)))


def _as_move(ev: MoveEvaluation) -> chess.Move:
    return chess.Move.from_uci(ev.move)


def _subset(
    analysis: MovesAnalysis,
    predicate: Callable[[MoveEvaluation], bool],
) -> list[MoveEvaluation]:
    """Evaluations passing *predicate*, still best first."""
    return [ev for ev in analysis.sorted if predicate(ev)]


def _best_and_runner_up(
    moves: list[MoveEvaluation],
) -> tuple[MoveEvaluation, MoveEvaluation] | None:
    """First two entries; the runner-up is the best itself when alone."""
    if not moves:
        return None
    return moves[0], moves[1] if len(moves) > 1 else moves[0]


def _best_alternative(analysis: MovesAnalysis, ev: MoveEvaluation) -> MoveEvaluation:
    """Best move other than *ev*, or *ev* itself for a lone legal move."""
    for other in analysis.sorted:
        if other.move != ev.move:
            return other
    return ev


def _best_outscoring_field(
    analysis: MovesAnalysis,
    predicate: Callable[[MoveEvaluation], bool],
    min_gap: int,
) -> tuple[MoveEvaluation, MoveEvaluation] | None:
    """Best move in the filtered subset if it beats every other move by *min_gap*."""
    candidates = _subset(analysis, predicate)
    if not candidates:
        return None
    best = candidates[0]
    rival = _best_alternative(analysis, best)
    if rival is best or best.cp - rival.cp < min_gap:
        return None
    return best, rival


def _build(
    challenge_type: ChallengeType,
    description: str,
    correct: list[MoveEvaluation],
    difficulty: Difficulty,
    check_kind: CheckKind = CheckKind.ANY_OPTION,
) -> Challenge:
    return Challenge(
        type=challenge_type,
        description=description,
        difficulty=difficulty,
        reward=calculate_reward(challenge_type, difficulty),
        correct_moves=list(correct),
        check_kind=check_kind,
    )


def _build_from_gap(
    board: chess.Board,
    analysis: MovesAnalysis,
    challenge_type: ChallengeType,
    description: str,
    chosen: MoveEvaluation,
    rival: MoveEvaluation,
) -> Challenge:
    difficulty = calculate_difficulty(
        chosen.cp, rival.cp, len(analysis), board.fullmove_number
    )
    return _build(challenge_type, description, [chosen], difficulty)


def _from_subset(
    board: chess.Board,
    analysis: MovesAnalysis,
    challenge_type: ChallengeType,
    description: str,
    predicate: Callable[[MoveEvaluation], bool],
) -> Challenge | None:
    pair = _best_and_runner_up(_subset(analysis, predicate))
    if pair is None:
        return None
    return _build_from_gap(board, analysis, challenge_type, description, *pair)


def _from_piece_field(
    board: chess.Board,
    analysis: MovesAnalysis,
    challenge_type: ChallengeType,
    description: str,
    predicate: Callable[[MoveEvaluation], bool],
    min_gap: int,
) -> Challenge | None:
    pair = _best_outscoring_field(analysis, predicate, min_gap)
    if pair is None:
        return None
    return _build_from_gap(board, analysis, challenge_type, description, *pair)


def _runner_up(analysis: MovesAnalysis) -> MoveEvaluation | None:
    if not analysis.sorted:
        return None
    return analysis.sorted[1] if len(analysis.sorted) > 1 else analysis.sorted[0]


def _opponent_mobility(board: chess.Board) -> int:
    """Legal moves the opponent would have if it were their turn now.

    Not meaningful while the side to move is in check.
    """
    probe = board.copy(stack=False)
    probe.push(chess.Move.null())
    return probe.legal_moves.count()


# ---------------------------------------------------------------------------
# Current catalogue
# ---------------------------------------------------------------------------


def tactical_shot(board: chess.Board, analysis: MovesAnalysis, pieces: PieceIndex) -> Challenge | None:
    """Forced mate, or a best move at least 300cp clear of the rest."""
    best, runner_up = analysis.best, _runner_up(analysis)
    if best is None or runner_up is None:
        return None

    if best.cp >= MATE_THRESHOLD:
        return _build(ChallengeType.TACTICAL_SHOT, "Find the checkmate", [best], Difficulty.EXPERT)

    if best.cp - runner_up.cp < TACTICAL_SHOT_GAP:
        return None
    return _build_from_gap(
        board, analysis, ChallengeType.TACTICAL_SHOT,
        "Execute a powerful tactical blow", best, runner_up,
    )


def best_capture(board: chess.Board, analysis: MovesAnalysis, pieces: PieceIndex) -> Challenge | None:
    return _from_subset(
        board, analysis, ChallengeType.BEST_CAPTURE,
        "Make the most valuable capture",
        lambda ev: board.is_capture(_as_move(ev)),
    )


def defensive_genius(board: chess.Board, analysis: MovesAnalysis, pieces: PieceIndex) -> Challenge | None:
    """Critical positions: the choice of move swings the eval by 200cp or more."""
    best, worst, runner_up = analysis.best, analysis.worst, _runner_up(analysis)
    if best is None or worst is None or runner_up is None:
        return None
    if best.cp - worst.cp < DEFENSIVE_GENIUS_SWING:
        return None
    return _build_from_gap(
        board, analysis, ChallengeType.DEFENSIVE_GENIUS,
        "Defend against the opponent's threat", best, runner_up,
    )


def outpost_master(board: chess.Board, analysis: MovesAnalysis, pieces: PieceIndex) -> Challenge | None:
    minors = pieces.knights | pieces.bishops
    ranks = _OUTPOST_RANKS[board.turn]
    return _from_subset(
        board, analysis, ChallengeType.OUTPOST_MASTER,
        "Establish a strong outpost",
        lambda ev: _from_square(ev) in minors and chess.square_rank(_to_square(ev)) in ranks,
    )


def center_control(board: chess.Board, analysis: MovesAnalysis, pieces: PieceIndex) -> Challenge | None:
    return _from_subset(
        board, analysis, ChallengeType.CENTER_CONTROL,
        "Control the center of the board",
        lambda ev: _to_square(ev) in _CENTER_SQUARES,
    )


def weak_square_exploiter(board: chess.Board, analysis: MovesAnalysis, pieces: PieceIndex) -> Challenge | None:
    """Moves to squares no enemy pawn currently guards."""
    enemy_pawns = board.pieces(chess.PAWN, not board.turn)

    def unguarded(ev: MoveEvaluation) -> bool:
        # Squares an enemy pawn would guard from = our pawn attack pattern
        guard_squares = chess.SquareSet(chess.BB_PAWN_ATTACKS[board.turn][_to_square(ev)])
        return not (guard_squares & enemy_pawns)

    return _from_subset(
        board, analysis, ChallengeType.WEAK_SQUARE_EXPLOITER,
        "Exploit a weakness in opponent's pawn structure",
        unguarded,
    )


def evaluation_master(board: chess.Board, analysis: MovesAnalysis, pieces: PieceIndex) -> Challenge | None:
    """Several moves within 10cp of the best; any of them counts."""
    best = analysis.best
    if best is None:
        return None
    close = _subset(analysis, lambda ev: best.cp - ev.cp <= EVALUATION_MASTER_TOLERANCE)
    if len(close) < 2:
        return None
    return _build(
        ChallengeType.EVALUATION_MASTER,
        f"Find a move within {EVALUATION_MASTER_TOLERANCE}cp of the best",
        close,
        Difficulty.HARD,
        CheckKind.DYNAMIC,
    )


def quiet_brilliancy(board: chess.Board, analysis: MovesAnalysis, pieces: PieceIndex) -> Challenge | None:
    """Best move that neither captures nor checks, clear of the next quiet move."""

    def quiet(ev: MoveEvaluation) -> bool:
        move = _as_move(ev)
        return not board.is_capture(move) and not board.gives_check(move)

    pair = _best_and_runner_up(_subset(analysis, quiet))
    if pair is None:
        return None
    best, runner_up = pair
    if best.cp - runner_up.cp < QUIET_BRILLIANCY_GAP:
        return None
    return _build_from_gap(
        board, analysis, ChallengeType.QUIET_BRILLIANCY,
        "Find a subtle positional move", best, runner_up,
    )


def _piece_detector(
    challenge_type: ChallengeType,
    piece_type: chess.PieceType,
    min_gap: int,
    description: str,
) -> Detector:
    def detect(board: chess.Board, analysis: MovesAnalysis, pieces: PieceIndex) -> Challenge | None:
        squares = pieces.squares_for(piece_type)
        if not squares:
            return None
        return _from_piece_field(
            board, analysis, challenge_type, description,
            lambda ev: _from_square(ev) in squares,
            min_gap,
        )

    detect.__name__ = "_".join(challenge_type.value.lower().split())
    detect.__doc__ = f"Best {chess.piece_name(piece_type)} move, {min_gap}cp clear of any other move."
    return detect


knight_ninja = _piece_detector(
    ChallengeType.KNIGHT_NINJA, chess.KNIGHT, KNIGHT_NINJA_GAP,
    "Execute a tactical knight maneuver",
)
bishop_brilliance = _piece_detector(
    ChallengeType.BISHOP_BRILLIANCE, chess.BISHOP, BISHOP_BRILLIANCE_GAP,
    "Find a powerful diagonal move",
)
rook_lift = _piece_detector(
    ChallengeType.ROOK_LIFT, chess.ROOK, ROOK_LIFT_GAP,
    "Activate your rook with a creative maneuver",
)
queen_power = _piece_detector(
    ChallengeType.QUEEN_POWER, chess.QUEEN, QUEEN_POWER_GAP,
    "Unleash your queen's power",
)


def pawn_storm(board: chess.Board, analysis: MovesAnalysis, pieces: PieceIndex) -> Challenge | None:
    return _from_piece_field(
        board, analysis, ChallengeType.PAWN_STORM,
        "Advance your pawns aggressively",
        lambda ev: _moved_piece_type(board, ev) == chess.PAWN,
        PAWN_STORM_GAP,
    )


def king_safety(board: chess.Board, analysis: MovesAnalysis, pieces: PieceIndex) -> Challenge | None:
    """Castling qualifies outright; otherwise a king move 25cp clear of the rest."""
    castles = _subset(analysis, lambda ev: board.is_castling(_as_move(ev)))
    if castles:
        best = castles[0]
        return _build_from_gap(
            board, analysis, ChallengeType.KING_SAFETY,
            "Castle to secure your king", best, _best_alternative(analysis, best),
        )

    return _from_piece_field(
        board, analysis, ChallengeType.KING_SAFETY,
        "Improve your king's safety",
        lambda ev: _moved_piece_type(board, ev) == chess.KING,
        KING_SAFETY_GAP,
    )


def space_invader(board: chess.Board, analysis: MovesAnalysis, pieces: PieceIndex) -> Challenge | None:
    """Clear best move that also takes away more than two opponent moves."""
    best, runner_up = analysis.best, _runner_up(analysis)
    if best is None or runner_up is None:
        return None
    if best.cp - runner_up.cp < SPACE_INVADER_GAP:
        return None
    if board.is_check():
        return None

    before = _opponent_mobility(board)
    after_board = board.copy(stack=False)
    after_board.push(_as_move(best))
    if after_board.legal_moves.count() >= before - SPACE_INVADER_MOBILITY_DROP:
        return None

    return _build_from_gap(
        board, analysis, ChallengeType.SPACE_INVADER,
        "Restrict your opponent's mobility", best, runner_up,
    )


# ---------------------------------------------------------------------------
# Legacy challenges
# ---------------------------------------------------------------------------


def best_move(board: chess.Board, analysis: MovesAnalysis, pieces: PieceIndex) -> Challenge | None:
    best, runner_up = analysis.best, _runner_up(analysis)
    if best is None or runner_up is None:
        return None
    return _build_from_gap(
        board, analysis, ChallengeType.BEST_MOVE,
        "Make the best move in this position", best, runner_up,
    )


def worst_move(board: chess.Board, analysis: MovesAnalysis, pieces: PieceIndex) -> Challenge | None:
    """Any move in the band around the worst move counts."""
    worst = analysis.worst
    if worst is None:
        return None
    runner_up = analysis.sorted[-2] if len(analysis.sorted) > 1 else worst
    band = _subset(
        analysis,
        lambda ev: ev.cp * worst.cp >= 0 and abs(ev.cp - worst.cp) <= WORST_MOVE_BAND,
    )
    difficulty = calculate_difficulty(
        worst.cp, runner_up.cp, len(analysis), board.fullmove_number
    )
    return _build(
        ChallengeType.WORST_MOVE,
        "Make the worst move in this position",
        band,
        difficulty,
        CheckKind.DYNAMIC,
    )


def best_knight_move(board: chess.Board, analysis: MovesAnalysis, pieces: PieceIndex) -> Challenge | None:
    if not pieces.knights:
        return None
    return _from_subset(
        board, analysis, ChallengeType.BEST_KNIGHT_MOVE,
        "Make the best knight move in this position",
        lambda ev: _from_square(ev) in pieces.knights,
    )


# ---------------------------------------------------------------------------
# Registries
# ---------------------------------------------------------------------------

CATALOGUE: dict[ChallengeType, Detector] = {
    ChallengeType.TACTICAL_SHOT: tactical_shot,
    ChallengeType.BEST_CAPTURE: best_capture,
    ChallengeType.DEFENSIVE_GENIUS: defensive_genius,
    ChallengeType.OUTPOST_MASTER: outpost_master,
    ChallengeType.CENTER_CONTROL: center_control,
    ChallengeType.WEAK_SQUARE_EXPLOITER: weak_square_exploiter,
    ChallengeType.EVALUATION_MASTER: evaluation_master,
    ChallengeType.QUIET_BRILLIANCY: quiet_brilliancy,
    ChallengeType.KNIGHT_NINJA: knight_ninja,
    ChallengeType.BISHOP_BRILLIANCE: bishop_brilliance,
    ChallengeType.ROOK_LIFT: rook_lift,
    ChallengeType.QUEEN_POWER: queen_power,
    ChallengeType.PAWN_STORM: pawn_storm,
    ChallengeType.KING_SAFETY: king_safety,
    ChallengeType.SPACE_INVADER: space_invader,
}

LEGACY_DETECTORS: dict[ChallengeType, Detector] = {
    ChallengeType.BEST_MOVE: best_move,
    ChallengeType.WORST_MOVE: worst_move,
    ChallengeType.BEST_KNIGHT_MOVE: best_knight_move,
}


def detect_all(
    board: chess.Board,
    analysis: MovesAnalysis,
    pieces: PieceIndex | None = None,
) -> list[Challenge]:
    """Run the current catalogue in order.

    Args:
        board: Position the evaluations belong to (side to move = player).
        analysis: Ranked evaluations of every legal move.
        pieces: Precomputed piece index; built from *board* when omitted.

    Returns:
        Challenges whose pattern applies. Empty if there are no moves.
    """
    if not analysis.sorted:
        return []
    if pieces is None:
        pieces = build_piece_index(board)

    found: list[Challenge] = []
    for detector in CATALOGUE.values():
        challenge = detector(board, analysis, pieces)
        if challenge is not None:
            found.append(challenge)
    return found


def detect_legacy(
    board: chess.Board,
    analysis: MovesAnalysis,
    pieces: PieceIndex | None = None,
) -> list[Challenge]:
    """Run the legacy Best/Worst/Best-Knight detectors."""
    if not analysis.sorted:
        return []
    if pieces is None:
        pieces = build_piece_index(board)
    return [
        challenge
        for challenge in (d(board, analysis, pieces) for d in LEGACY_DETECTORS.values())
        if challenge is not None
    ]
