"""Command-line interface for Chess Challenger.

    challenger challenges <FEN> [--seed N]
    challenger play [--fen FEN] [--seed N] [--user NAME] [--level LEVEL]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import random
import sys

import chess
from rich.console import Console

from challenger.aggregator import evaluate_moves
from challenger.config import Settings
from challenger.display import (
    render_analysis,
    render_board,
    render_challenges,
    render_profile,
    render_summary,
    render_turn_score,
)
from challenger.engine import StockfishEvaluator
from challenger.profile import ProfileStore
from challenger.progression import AI_DIFFICULTY_MULTIPLIERS
from challenger.selector import make_challenges
from challenger.session import GameSession, parse_move

logger = logging.getLogger(__name__)

# Engine think time for the computer opponent's moves, in seconds
_OPPONENT_TIME = 0.3


async def _cli_challenges(fen: str, seed: int | None, settings: Settings, console: Console) -> None:
    """Evaluate a position and print the challenges it would offer."""
    board = chess.Board(fen)
    async with StockfishEvaluator(settings.stockfish_path, settings.batch_size) as evaluator:
        analysis = await evaluate_moves(
            board,
            evaluator,
            batch_size=settings.batch_size,
            time_budget=settings.time_budget,
            call_timeout=settings.call_timeout,
        )

    console.print(render_board(board))
    if len(analysis) == 0:
        console.print("[yellow]No legal moves in this position.[/yellow]")
        return
    console.print(render_analysis(analysis))
    console.print(render_challenges(make_challenges(board, analysis, random.Random(seed))))


async def _read_move(console: Console, board: chess.Board) -> chess.Move | None:
    """Prompt until the player enters a legal move, or None to quit."""
    while True:
        text = await asyncio.to_thread(console.input, "Your move (SAN or UCI, 'q' to quit): ")
        if text.strip().lower() == "q":
            return None
        try:
            return parse_move(board, text)
        except chess.IllegalMoveError:
            console.print("[red]Illegal move. Try again.[/red]")
        except ValueError:
            console.print("[red]Invalid move format. Use SAN (e.g., e4) or UCI (e.g., e2e4).[/red]")


async def _cli_play(
    fen: str,
    seed: int | None,
    username: str,
    level: str,
    settings: Settings,
    console: Console,
) -> None:
    """Interactive game against Stockfish with challenges every turn."""
    board = chess.Board(fen)
    player = board.turn
    store = ProfileStore(settings.data_dir / "profiles.json")
    profile = store.get(username)

    async with StockfishEvaluator(settings.stockfish_path, settings.batch_size) as evaluator:
        session = GameSession(evaluator, settings, random.Random(seed))
        last_move: chess.Move | None = None

        while not board.is_game_over():
            console.print(render_board(board, last_move, flipped=player == chess.BLACK))

            if board.turn != player:
                last_move = await evaluator.best_move(board, _OPPONENT_TIME)
                console.print(f"Engine plays: [bold]{board.san(last_move)}[/bold]")
                board.push(last_move)
                continue

            with console.status("Finding challenges..."):
                challenges = await session.generate_challenges(board)
            console.print(render_challenges(challenges))

            move = await _read_move(console, board)
            if move is None:
                console.print("Game abandoned. Nothing recorded.")
                return

            board.push(move)
            last_move = move
            console.print(render_turn_score(session.apply_move(move.uci(), board.is_game_over())))

    console.print(render_board(board, last_move, flipped=player == chess.BLACK))
    outcome = board.outcome()
    is_win = outcome is not None and outcome.winner == player
    is_checkmate = is_win and outcome.termination is chess.Termination.CHECKMATE

    summary = session.finish_game(
        is_win=is_win,
        is_checkmate=is_checkmate,
        move_count=len(board.move_stack),
        player_total_xp=profile["total_xp"],
        ai_difficulty=level,
    )
    console.print(render_summary(summary))
    updated = store.record_game(username, summary, is_win)
    console.print(render_profile(username, updated))


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for challenger."""
    parser = argparse.ArgumentParser(
        description="Chess Challenger - secondary objectives for every move"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    challenges_parser = subparsers.add_parser(
        "challenges", help="Show the challenges offered in a FEN position"
    )
    challenges_parser.add_argument("fen", type=str, help="FEN string to analyze")
    challenges_parser.add_argument("--seed", type=int, default=None, help="Selection seed")

    play_parser = subparsers.add_parser("play", help="Play against Stockfish with challenges")
    play_parser.add_argument("--fen", type=str, default=chess.STARTING_FEN, help="Start position")
    play_parser.add_argument("--seed", type=int, default=None, help="Selection seed")
    play_parser.add_argument("--user", type=str, default="player", help="Profile name")
    play_parser.add_argument(
        "--level",
        type=str.upper,
        default="ADVANCED",
        choices=sorted(AI_DIFFICULTY_MULTIPLIERS),
        help="Opponent level, scales XP earned",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    console = Console()
    try:
        settings = Settings.from_env()
        if args.command == "challenges":
            asyncio.run(_cli_challenges(args.fen, args.seed, settings, console))
        elif args.command == "play":
            asyncio.run(_cli_play(args.fen, args.seed, args.user, args.level, settings, console))
        else:
            parser.print_help()
            sys.exit(1)
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[red]{exc}[/red]")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("Interrupted.")
        sys.exit(130)


if __name__ == "__main__":
    main()
