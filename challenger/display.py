"""Rich renderables for the Chess Challenger terminal surface.

Pure functions: each takes model objects and returns something
``Console.print`` can render. Nothing here reads or writes state.
"""

from __future__ import annotations

import chess
from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from challenger.models import (
    Challenge,
    ChallengeStatus,
    Difficulty,
    GameSummary,
    MovesAnalysis,
    TurnScore,
)
from challenger.progression import get_rank_info, progress_to_next_rank

# Unicode piece symbols
_PIECE_SYMBOLS = {
    "K": "♔", "Q": "♕", "R": "♖", "B": "♗",
    "N": "♘", "P": "♙",
    "k": "♚", "q": "♛", "r": "♜", "b": "♝",
    "n": "♞", "p": "♟",
}

_LIGHT_SQ = "grey85"
_DARK_SQ = "grey50"
_HIGHLIGHT = "yellow"

_DIFFICULTY_STYLES = {
    Difficulty.EASY: "green",
    Difficulty.MEDIUM: "yellow",
    Difficulty.HARD: "red",
    Difficulty.EXPERT: "magenta",
}

_STATUS_MARKS = {
    ChallengeStatus.POSSIBLE: Text("•", style="dim"),
    ChallengeStatus.SUCCESS: Text("✓", style="bold green"),
    ChallengeStatus.FAIL: Text("✗", style="red"),
}


def render_board(
    board: chess.Board,
    last_move: chess.Move | None = None,
    flipped: bool = False,
) -> Panel:
    """Render *board* as a Rich Panel, highlighting *last_move*."""
    highlight_squares: set[int] = set()
    if last_move is not None:
        highlight_squares = {last_move.from_square, last_move.to_square}

    table = Table(show_header=False, show_edge=False, pad_edge=False,
                  box=None, padding=(0, 1))

    # Rank label + 8 squares
    table.add_column(width=2, justify="right")
    for _ in range(8):
        table.add_column(width=3, justify="center")

    ranks = range(8) if flipped else range(7, -1, -1)
    files = list(range(7, -1, -1)) if flipped else list(range(8))

    for rank in ranks:
        row: list[Text] = [Text(str(rank + 1), style="bold")]
        for file in files:
            sq = chess.square(file, rank)
            piece = board.piece_at(sq)

            is_light = (rank + file) % 2 == 1
            bg = _LIGHT_SQ if is_light else _DARK_SQ
            if sq in highlight_squares:
                bg = _HIGHLIGHT

            if piece is not None:
                symbol = _PIECE_SYMBOLS.get(piece.symbol(), "?")
                row.append(Text(f" {symbol} ", style=f"on {bg}"))
            else:
                row.append(Text("   ", style=f"on {bg}"))
        table.add_row(*row)

    file_labels = [Text("  ")]
    for f in files:
        file_labels.append(Text(f" {chess.FILE_NAMES[f]} ", style="bold"))
    table.add_row(*file_labels)

    title = "Chess Challenger"
    if board.is_game_over():
        title = f"Game Over: {board.result()}"
    return Panel(table, title=title, border_style="blue")


def render_analysis(analysis: MovesAnalysis, limit: int = 10) -> Table:
    """Top *limit* moves of an evaluated position, best first."""
    title = f"Evaluated moves ({len(analysis)})"
    # Keep the title on one line above the narrow columns
    table = Table(title=title, min_width=len(title) + 4)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Move")
    table.add_column("cp", justify="right")
    for i, ev in enumerate(analysis.sorted[:limit], start=1):
        style = "green" if ev.cp > 0 else "red" if ev.cp < 0 else ""
        table.add_row(str(i), ev.move, Text(f"{ev.cp:+d}", style=style))
    return table


def render_challenges(challenges: list[Challenge], title: str = "Challenges") -> Panel:
    """The live challenge batch, one row per challenge."""
    if not challenges:
        return Panel(Text("No challenges this turn.", style="dim"),
                     title=title, border_style="dim")

    table = Table(show_header=True, box=None, padding=(0, 1))
    table.add_column("")
    table.add_column("Challenge", style="bold")
    table.add_column("Goal")
    table.add_column("Difficulty")
    table.add_column("Reward", justify="right")
    table.add_column("Window", style="dim")

    for challenge in challenges:
        style = _DIFFICULTY_STYLES[challenge.difficulty]
        table.add_row(
            _STATUS_MARKS[challenge.status],
            challenge.type.value,
            challenge.description,
            Text(challenge.difficulty.value, style=style),
            str(challenge.reward),
            challenge.time_window.value,
        )
    return Panel(table, title=title, border_style="cyan")


def render_turn_score(score: TurnScore) -> Text:
    """One-line summary of what the last move earned."""
    if not score.completed:
        return Text("No challenges completed. Streak reset.", style="dim")

    names = ", ".join(c.type.value for c in score.completed)
    text = Text()
    text.append(f"+{score.points_awarded} ", style="bold green")
    text.append(f"({names})")
    if score.streak_bonus:
        text.append(f"  streak +{score.streak_bonus:g}", style="yellow")
    if score.combo_bonus:
        text.append(f"  combo +{score.combo_bonus}", style="cyan")
    text.append(f"  streak {score.streak_count}", style="dim")
    for badge in (score.streak_badge, score.combo_badge):
        if badge:
            text.append(f"  [{badge}]", style="bold magenta")
    return text


def render_summary(summary: GameSummary) -> Panel:
    """End-of-game breakdown: challenges, bonuses, XP and rank."""
    stats = Table(show_header=False, box=None, padding=(0, 1))
    stats.add_column(style="bold")
    stats.add_column(justify="right")

    stats.add_row(
        "Challenges",
        f"{summary.challenges_completed}/{summary.challenges_presented} "
        f"({summary.completion_rate:.0%})",
    )
    stats.add_row("Longest streak", str(summary.longest_streak))
    stats.add_row("Best combo", str(summary.best_combo))
    stats.add_row("Game points", str(summary.game_points))

    bonuses = summary.bonuses
    for label, value in [
        ("Win", bonuses.win_bonus),
        ("Checkmate", bonuses.checkmate_bonus),
        ("Completion", bonuses.completion_bonus),
        ("Perfect game", bonuses.perfect_game_bonus),
        ("Speed", bonuses.speed_bonus),
        ("Domination", bonuses.domination_bonus),
    ]:
        if value:
            stats.add_row(f"  {label} bonus", f"+{value}")
    if bonuses.opponent_rank_multiplier != 1.0:
        stats.add_row("  Opponent multiplier", f"x{bonuses.opponent_rank_multiplier:.2f}")

    stats.add_row("XP earned", Text(f"+{summary.xp_earned}", style="bold green"))

    rank = get_rank_info(summary.new_rank)
    rank_line = Text(rank.display_name, style=f"bold {rank.color}")
    if summary.ranked_up:
        rank_line.append("  RANK UP!", style="bold yellow")
    stats.add_row("Rank", rank_line)
    stats.add_row("", _progress_bar(summary.total_xp))

    return Panel(stats, title="Game Summary", border_style="green")


def render_profile(username: str, profile: dict) -> Panel:
    """A stored player profile with rank progress."""
    rank = get_rank_info(profile["rank"])
    body = Group(
        Text(rank.display_name, style=f"bold {rank.color}"),
        _progress_bar(profile["total_xp"]),
        Text(
            f"Games {profile['games_played']}  Won {profile['games_won']}  "
            f"Challenges {profile['challenges_completed']}  "
            f"Best streak {profile['longest_streak']}"
        ),
    )
    return Panel(body, title=username, border_style="blue")


def _progress_bar(total_xp: int, width: int = 20) -> Text:
    progress = progress_to_next_rank(total_xp)
    filled = int(progress["percentage"] / 100 * width)
    bar = "█" * filled + "░" * (width - filled)
    if progress["next_rank"] is None:
        return Text(f"[{bar}] max rank", style="dim")
    next_name = get_rank_info(progress["next_rank"]).display_name
    return Text(
        f"[{bar}] {progress['current']}/{progress['needed']} XP to {next_name}",
        style="dim",
    )
