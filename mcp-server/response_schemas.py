"""Response schemas and minification for MCP tool responses.

Minifies MCP tool return values to reduce LLM context token waste.
Correct-move lists stay hidden while a challenge is still open; they
are only revealed once it has been resolved.
"""

from __future__ import annotations

import os


# ---------------------------------------------------------------------------
# Minification functions
# ---------------------------------------------------------------------------


def minify_game_state(state: dict) -> dict:
    """Minify a game state dict for MCP response.

    Compacts move_list to a PGN string and replaces legal_moves with a count.

    Args:
        state: Full game state dict (as produced by the server's _build_game_state).

    Returns:
        Minified dict with reduced token footprint.
    """
    result = {}

    for key in (
        "game_id", "fen", "last_move", "last_move_san", "player_color",
        "is_game_over", "result", "streak", "game_points",
    ):
        if key in state:
            result[key] = state[key]

    move_list = state.get("move_list", [])
    if isinstance(move_list, list):
        result["move_list"] = _moves_to_pgn_string(move_list)
    else:
        result["move_list"] = move_list

    legal_moves = state.get("legal_moves", [])
    result["legal_moves_count"] = len(legal_moves) if isinstance(legal_moves, list) else 0

    # Removed fields: board_display, username, starting_fen

    return result


def minify_challenge(challenge: dict) -> dict:
    """Minify a Challenge dict (from Challenge.to_dict) for MCP response.

    Drops check_kind and mandatory. correct_moves collapses to a plain
    list of UCI moves under "answers", present only for resolved challenges.
    """
    result = {
        "id": challenge.get("id"),
        "type": challenge.get("type"),
        "description": challenge.get("description"),
        "difficulty": challenge.get("difficulty"),
        "reward": challenge.get("reward"),
        "window": challenge.get("time_window"),
        "status": challenge.get("status"),
    }
    if challenge.get("status") != "possible":
        result["answers"] = [m["move"] for m in challenge.get("correct_moves", [])]
    return result


def minify_turn_score(score: dict) -> dict:
    """Minify a turn score dict for MCP response.

    Collapses completed challenges to their types and drops null badges.
    """
    result = {
        "completed": [c.get("type") for c in score.get("completed", [])],
        "points": score.get("points_awarded", 0),
        "streak": score.get("streak_count", 0),
    }
    if score.get("streak_bonus"):
        result["streak_bonus"] = score["streak_bonus"]
    if score.get("combo_bonus"):
        result["combo_bonus"] = score["combo_bonus"]

    badges = [b for b in (score.get("streak_badge"), score.get("combo_badge")) if b]
    if badges:
        result["badges"] = badges
    return result


def minify_summary(summary: dict) -> dict:
    """Minify a GameSummary dict for MCP response.

    Keeps only non-zero bonuses and rounds the completion rate.
    """
    bonuses = summary.get("bonuses", {})
    result = {
        "challenges": f"{summary.get('challenges_completed', 0)}/{summary.get('challenges_presented', 0)}",
        "completion_rate": round(summary.get("completion_rate", 0.0), 3),
        "longest_streak": summary.get("longest_streak", 0),
        "best_combo": summary.get("best_combo", 0),
        "game_points": summary.get("game_points", 0),
        "bonuses": {
            k: v for k, v in bonuses.items()
            if k != "opponent_rank_multiplier" and v
        },
        "xp_earned": summary.get("xp_earned", 0),
        "total_xp": summary.get("total_xp", 0),
        "rank": summary.get("new_rank"),
        "ranked_up": summary.get("new_rank") != summary.get("previous_rank"),
    }
    multiplier = bonuses.get("opponent_rank_multiplier", 1.0)
    if multiplier != 1.0:
        result["multiplier"] = multiplier
    return result


def minify_progress(username: str, profile: dict, progress: dict) -> dict:
    """Minify a stored profile plus rank progress for MCP response.

    Drops last_game and flattens progress to the essentials.
    """
    return {
        "username": username,
        "rank": profile.get("rank"),
        "total_xp": profile.get("total_xp", 0),
        "games_played": profile.get("games_played", 0),
        "games_won": profile.get("games_won", 0),
        "challenges_completed": profile.get("challenges_completed", 0),
        "longest_streak": profile.get("longest_streak", 0),
        "next_rank": progress.get("next_rank"),
        "xp_to_next": progress.get("needed", 0) - progress.get("current", 0),
    }


# ---------------------------------------------------------------------------
# Helper: move list to PGN string
# ---------------------------------------------------------------------------


def _moves_to_pgn_string(moves: list[str], first_move_number: int = 1, black_first: bool = False) -> str:
    """Convert a list of SAN moves to a PGN move string.

    E.g., ['e4', 'e5', 'Nf3', 'Nc6'] -> '1.e4 e5 2.Nf3 Nc6'

    Args:
        moves: List of SAN move strings.
        first_move_number: Full-move number of the first move.
        black_first: The list starts with a black move.

    Returns:
        PGN-formatted move string.
    """
    if not moves:
        return ""

    parts = []
    offset = 1 if black_first else 0
    for i, move in enumerate(moves):
        ply = i + offset
        move_num = first_move_number + ply // 2
        if ply % 2 == 0:
            parts.append(f"{move_num}.{move}")
        elif i == 0:
            parts.append(f"{move_num}...{move}")
        else:
            parts.append(move)

    return " ".join(parts)


# ---------------------------------------------------------------------------
# Validation schemas (dict-based)
# ---------------------------------------------------------------------------

GAME_STATE_SCHEMA = {
    "game_id": str,
    "fen": str,
    "last_move": (str, type(None)),
    "last_move_san": (str, type(None)),
    "player_color": str,
    "is_game_over": bool,
    "result": (str, type(None)),
    "streak": int,
    "game_points": int,
    "move_list": str,
    "legal_moves_count": int,
}

CHALLENGE_SCHEMA = {
    "id": str,
    "type": str,
    "description": str,
    "difficulty": str,
    "reward": int,
    "window": str,
    "status": str,
}

CHALLENGES_SCHEMA = {
    "game_id": str,
    "challenges": list,
    "streak": int,
    "game_points": int,
}

TURN_SCORE_SCHEMA = {
    "completed": list,
    "points": int,
    "streak": int,
}

SUMMARY_SCHEMA = {
    "challenges": str,
    "completion_rate": (int, float),
    "longest_streak": int,
    "best_combo": int,
    "game_points": int,
    "bonuses": dict,
    "xp_earned": int,
    "total_xp": int,
    "rank": str,
    "ranked_up": bool,
}

PROGRESS_SCHEMA = {
    "username": str,
    "rank": str,
    "total_xp": int,
    "games_played": int,
    "games_won": int,
    "challenges_completed": int,
    "longest_streak": int,
    "next_rank": (str, type(None)),
    "xp_to_next": int,
}

ERROR_SCHEMA = {
    "error": str,
}


def validate_response(response: dict, schema: dict) -> list[str]:
    """Validate a response dict against a schema.

    Only runs when CHALLENGER_VALIDATE=1 env var is set.

    Args:
        response: Response dict to validate.
        schema: Dict mapping key names to expected types (or tuple of types).

    Returns:
        List of validation error strings (empty = valid).
    """
    if os.environ.get("CHALLENGER_VALIDATE") != "1":
        return []

    errors = []

    if not isinstance(response, dict):
        errors.append(f"Response is not a dict: {type(response).__name__}")
        return errors

    for key, expected_types in schema.items():
        if key not in response:
            errors.append(f"Missing key: {key}")
            continue

        value = response[key]
        if isinstance(expected_types, tuple):
            if not isinstance(value, expected_types):
                type_names = ", ".join(t.__name__ for t in expected_types)
                errors.append(
                    f"Key '{key}': expected ({type_names}), "
                    f"got {type(value).__name__}"
                )
        elif not isinstance(value, expected_types) or (
            expected_types is int and isinstance(value, bool)
        ):
            errors.append(
                f"Key '{key}': expected {expected_types.__name__}, "
                f"got {type(value).__name__}"
            )

    return errors
