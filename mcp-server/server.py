"""MCP server for Chess Challenger.

Exposes challenge generation and scoring to an LLM agent via FastMCP.
Games are stored in memory keyed by UUID. One shared Stockfish pool
scores candidate moves for every game.
"""

from __future__ import annotations

import asyncio
import logging
import random
import sys
import uuid
from dataclasses import asdict
from pathlib import Path

# Add project root and mcp-server dir to path for imports
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_MCP_SERVER_DIR = Path(__file__).resolve().parent
sys.path.insert(0, str(_PROJECT_ROOT))
sys.path.insert(0, str(_MCP_SERVER_DIR))

import chess
from mcp.server.fastmcp import FastMCP

from challenger.config import Settings
from challenger.engine import MoveEvaluator, StockfishEvaluator
from challenger.models import TurnScore
from challenger.profile import ProfileStore
from challenger.progression import AI_DIFFICULTY_MULTIPLIERS, RANK_LADDER, progress_to_next_rank
from challenger.session import GameSession, parse_move

from response_schemas import (  # noqa: E402
    CHALLENGES_SCHEMA,
    GAME_STATE_SCHEMA,
    PROGRESS_SCHEMA,
    SUMMARY_SCHEMA,
    minify_challenge,
    minify_game_state,
    minify_progress,
    minify_summary,
    minify_turn_score,
    validate_response,
)

logger = logging.getLogger(__name__)

mcp = FastMCP("chess-challenger")

# In-memory game store: game_id -> {session, board, metadata}
_games: dict[str, dict] = {}

_settings = Settings.from_env()

# Shared evaluator, started on first use
_evaluator: MoveEvaluator | None = None
_evaluator_lock = asyncio.Lock()

_RANK_NAMES = {info.rank for info in RANK_LADDER}


def set_evaluator(evaluator: MoveEvaluator | None) -> None:
    """Replace the shared evaluator (None restores lazy Stockfish startup)."""
    global _evaluator
    _evaluator = evaluator


async def _get_evaluator() -> MoveEvaluator:
    global _evaluator
    async with _evaluator_lock:
        if _evaluator is None:
            evaluator = StockfishEvaluator(_settings.stockfish_path, _settings.batch_size)
            await evaluator.start()
            _evaluator = evaluator
    return _evaluator


class _LazyEvaluator:
    """Defers to the shared evaluator, resolved at call time."""

    async def evaluate(self, board: chess.Board, move: str, time_budget: float) -> int:
        evaluator = await _get_evaluator()
        return await evaluator.evaluate(board, move, time_budget)


def _profile_store() -> ProfileStore:
    return ProfileStore(_settings.data_dir / "profiles.json")


def _checked(response: dict, schema: dict) -> dict:
    """Log schema violations (only when validation is enabled) and pass through."""
    errors = validate_response(response, schema)
    if errors:
        logger.warning("Response failed schema validation: %s", errors)
    return response


def _get_game(game_id: str) -> dict | None:
    """Look up a game by ID.

    Args:
        game_id: UUID string.

    Returns:
        Game record dict or None if not found.
    """
    return _games.get(game_id)


def _is_player_turn(game: dict) -> bool:
    return game["board"].turn == game["player_color"]


def _build_game_state(game_id: str, game: dict) -> dict:
    """Build a game state dict from the in-memory game record.

    Args:
        game_id: UUID of the game.
        game: Internal game record with session, board, metadata.

    Returns:
        Full (unminified) game state dict.
    """
    board: chess.Board = game["board"]
    move_list = []
    temp = chess.Board(game["starting_fen"])
    for m in board.move_stack:
        move_list.append(temp.san(m))
        temp.push(m)

    last_move = None
    last_move_san = None
    if board.move_stack:
        last_move = board.move_stack[-1].uci()
        last_move_san = move_list[-1]

    session: GameSession = game["session"]
    return {
        "game_id": game_id,
        "fen": board.fen(),
        "board_display": str(board),
        "move_list": move_list,
        "last_move": last_move,
        "last_move_san": last_move_san,
        "player_color": "white" if game["player_color"] == chess.WHITE else "black",
        "username": game["username"],
        "is_game_over": board.is_game_over(),
        "result": board.result() if board.is_game_over() else None,
        "legal_moves": [board.san(m) for m in board.legal_moves],
        "streak": session.economy.streak_count,
        "game_points": session.economy.current_game_points,
    }


def _turn_score_dict(score: TurnScore) -> dict:
    return {
        "completed": [c.to_dict() for c in score.completed],
        "base_points": score.base_points,
        "streak_bonus": score.streak_bonus,
        "combo_bonus": score.combo_bonus,
        "points_awarded": score.points_awarded,
        "streak_count": score.streak_count,
        "streak_badge": score.streak_badge,
        "combo_badge": score.combo_badge,
    }


def _challenges_response(game_id: str, game: dict) -> dict:
    session: GameSession = game["session"]
    return _checked({
        "game_id": game_id,
        "challenges": [minify_challenge(c.to_dict()) for c in session.challenges],
        "streak": session.economy.streak_count,
        "game_points": session.economy.current_game_points,
    }, CHALLENGES_SCHEMA)


# ---------------------------------------------------------------------------
# Game tools
# ---------------------------------------------------------------------------


@mcp.tool()
def new_game(
    player_color: str = "white",
    starting_fen: str | None = None,
    username: str = "player",
    ai_level: str | None = None,
    seed: int | None = None,
) -> dict:
    """Start a new game with challenge tracking for one player.

    Args:
        player_color: 'white' or 'black'. Default 'white'.
        starting_fen: Optional custom starting position FEN.
        username: Profile that receives XP when the game is finished.
        ai_level: BEGINNER, INTERMEDIATE, ADVANCED or MASTER when the
            opponent is the engine; scales the XP earned.
        seed: Optional seed for repeatable challenge selection.

    Returns:
        Game state dict with the initial position.
    """
    if player_color not in ("white", "black"):
        return {"error": f"player_color must be 'white' or 'black', got {player_color!r}"}
    if ai_level is not None and ai_level.upper() not in AI_DIFFICULTY_MULTIPLIERS:
        return {"error": f"Unknown ai_level: {ai_level}. Use one of {sorted(AI_DIFFICULTY_MULTIPLIERS)}"}

    fen = starting_fen or chess.STARTING_FEN
    try:
        board = chess.Board(fen)
        if not board.is_valid():
            return {"error": f"Invalid FEN position: {fen}"}
    except ValueError as exc:
        return {"error": f"Invalid FEN: {exc}"}

    game_id = str(uuid.uuid4())
    game = {
        "session": GameSession(_LazyEvaluator(), _settings, random.Random(seed)),
        "board": board,
        "player_color": chess.WHITE if player_color == "white" else chess.BLACK,
        "username": username,
        "ai_level": ai_level.upper() if ai_level else None,
        "starting_fen": fen,
        "seed": seed,
        "finished": False,
    }
    _games[game_id] = game

    return _checked(minify_game_state(_build_game_state(game_id, game)), GAME_STATE_SCHEMA)


@mcp.tool()
async def generate_challenges(game_id: str) -> dict:
    """Generate the challenges for the player's next move.

    Unresolved whole-game challenges from earlier turns are kept.

    Args:
        game_id: UUID of the game.

    Returns:
        Dict with the challenge list, current streak and game points.
    """
    game = _get_game(game_id)
    if game is None:
        return {"error": f"Game not found: {game_id}"}
    if game["finished"]:
        return {"error": "Game is already finished"}
    if not _is_player_turn(game):
        return {"error": "Challenges are only generated on the player's turn"}

    session: GameSession = game["session"]
    try:
        await session.generate_challenges(game["board"])
    except RuntimeError as exc:
        return {"error": str(exc)}
    return _challenges_response(game_id, game)


@mcp.tool()
def get_challenges(game_id: str) -> dict:
    """Get the live challenge batch without generating a new one.

    Args:
        game_id: UUID of the game.

    Returns:
        Dict with the challenge list, current streak and game points.
    """
    game = _get_game(game_id)
    if game is None:
        return {"error": f"Game not found: {game_id}"}
    return _challenges_response(game_id, game)


@mcp.tool()
def make_move(game_id: str, move: str) -> dict:
    """Play a move in SAN or UCI notation, for either side.

    Player moves are checked against the live challenges and scored;
    opponent moves only advance the board.

    Args:
        game_id: UUID of the game.
        move: Move in SAN (e.g., 'Nf3', 'O-O') or UCI (e.g., 'g1f3').

    Returns:
        Updated game state dict, plus turn_score for player moves.
    """
    game = _get_game(game_id)
    if game is None:
        return {"error": f"Game not found: {game_id}"}

    board: chess.Board = game["board"]
    if game["finished"] or board.is_game_over():
        return {"error": f"Game is already over. Result: {board.result()}"}

    session: GameSession = game["session"]
    if session.is_generating:
        return {"error": "Challenges are still being generated. Try again shortly."}

    try:
        chess_move = parse_move(board, move)
    except ValueError:
        legal = [board.san(m) for m in board.legal_moves]
        return {"error": f"Illegal move: {move}. Legal moves: {legal}"}

    by_player = _is_player_turn(game)
    board.push(chess_move)
    score = session.apply_move(chess_move.uci(), board.is_game_over()) if by_player else None

    state = minify_game_state(_build_game_state(game_id, game))
    if score is not None:
        state["turn_score"] = minify_turn_score(_turn_score_dict(score))
    return _checked(state, GAME_STATE_SCHEMA)


@mcp.tool()
def finish_game(
    game_id: str,
    opponent_rank: str = "NOVICE",
    opponent_points: int = 0,
) -> dict:
    """End the game, award XP and save it to the player's profile.

    Works on a finished board or to resign an unfinished one (a loss).

    Args:
        game_id: UUID of the game.
        opponent_rank: Opponent's rank for the strength multiplier
            (e.g., 'NOVICE', 'MASTER').
        opponent_points: Opponent's game points, for the domination bonus.

    Returns:
        Game summary dict with bonuses, XP and rank.
    """
    game = _get_game(game_id)
    if game is None:
        return {"error": f"Game not found: {game_id}"}
    if game["finished"]:
        return {"error": "Game is already finished"}
    opponent_rank = opponent_rank.upper()
    if opponent_rank not in _RANK_NAMES:
        return {"error": f"Unknown opponent_rank: {opponent_rank}"}

    board: chess.Board = game["board"]
    session: GameSession = game["session"]
    if session.is_generating:
        return {"error": "Challenges are still being generated. Try again shortly."}

    outcome = board.outcome()
    is_win = outcome is not None and outcome.winner == game["player_color"]
    is_checkmate = is_win and outcome.termination is chess.Termination.CHECKMATE

    store = _profile_store()
    profile = store.get(game["username"])
    summary = session.finish_game(
        is_win=is_win,
        is_checkmate=is_checkmate,
        move_count=len(board.move_stack),
        player_total_xp=profile["total_xp"],
        opponent_points=opponent_points,
        opponent_rank=opponent_rank,
        ai_difficulty=game["ai_level"],
    )
    store.record_game(game["username"], summary, is_win)
    game["finished"] = True

    result = minify_summary(asdict(summary))
    result["game_id"] = game_id
    result["result"] = board.result() if board.is_game_over() else "resigned"
    return _checked(result, SUMMARY_SCHEMA)


@mcp.tool()
def get_progress(username: str = "player") -> dict:
    """Get a player's rank, XP and lifetime challenge stats.

    Args:
        username: Profile name.

    Returns:
        Dict with rank, total_xp, games and XP needed for the next rank.
    """
    profile = _profile_store().get(username)
    progress = progress_to_next_rank(profile["total_xp"])
    return _checked(minify_progress(username, profile, progress), PROGRESS_SCHEMA)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    mcp.run()
