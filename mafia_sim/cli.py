from __future__ import annotations

from pathlib import Path
from typing import Optional

import anyio
import typer
from loguru import logger
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.prompt import Prompt

from .config import Settings
from .console import ConsoleAnnouncer, ConsolePrompter
from .logging_utils import configure_logging
from .models import GameSetupError, Role
from .services.game_service import GameService
from .transcript import FileTranscript, InMemoryTranscript

app = typer.Typer(help="Run a Mafia simulation.", invoke_without_command=False)


@app.callback()
def main() -> None:
    """Mafia simulation."""


@app.command()
def play(
    players: Optional[int] = typer.Option(None, "--players", "-n", help="Number of participants (at least 5)."),
    human: Optional[bool] = typer.Option(None, "--human/--no-human", help="Take a seat at the table."),
    name: Optional[str] = typer.Option(None, "--name", help="Your name when playing."),
    role: Optional[Role] = typer.Option(None, "--role", help="Preferred role when playing; random if omitted."),
    names_file: Optional[Path] = typer.Option(None, "--names-file", help="File with one candidate name per line."),
    log_dir: Optional[Path] = typer.Option(None, "--log-dir", help="Write day/night/result transcripts here."),
    seed: Optional[int] = typer.Option(None, "--seed", help="Seed for a reproducible game."),
    tie_break: Optional[str] = typer.Option(None, "--tie-break", help="sequential or uniform."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
) -> None:
    """Play one game until a faction wins."""
    overrides = {
        "num_players": players,
        "human_player": human,
        "human_name": name,
        "human_role": role,
        "names_file": names_file,
        "log_dir": log_dir,
        "seed": seed,
        "tie_break": tie_break,
    }
    console = Console()
    try:
        settings = Settings(**{key: value for key, value in overrides.items() if value is not None})
    except ValidationError as exc:
        console.print(f"[red]Invalid configuration:[/red] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc

    configure_logging(settings, verbose)

    if settings.human_player and not settings.human_name:
        settings = settings.model_copy(update={"human_name": Prompt.ask("Enter your name", console=console).strip()})

    transcript = FileTranscript(settings.log_dir) if settings.log_dir else InMemoryTranscript()
    try:
        service = GameService(
            settings,
            transcript=transcript,
            prompter=ConsolePrompter(console) if settings.human_player else None,
            announcer=ConsoleAnnouncer(console),
        )
        manager = service.create_game()
    except GameSetupError as exc:
        logger.error("Game setup failed: {}", exc)
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc

    winner = anyio.run(manager.run)
    logger.bind(winner=winner, days=manager.day).info("Simulation complete")


if __name__ == "__main__":  # pragma: no cover
    app()
