from __future__ import annotations

from typing import Sequence

from rich.console import Console
from rich.markup import escape
from rich.prompt import Prompt
from rich.table import Table
from rich.text import Text

from .models import PlayerView


class ConsolePrompter:
    """Asks the human participant for targets and actions on the terminal."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def ask_target(self, player: PlayerView, candidates: Sequence[PlayerView]) -> str:
        alive = ", ".join(candidate.name for candidate in candidates if candidate.is_alive)
        self.console.print(Text(f"Alive: {alive}", style="dim"))
        return Prompt.ask(f"[bold]{escape(player.name)}[/bold], enter the name of your target", console=self.console, default="", show_default=False)

    def ask_action(self, player: PlayerView, actions: Sequence[str]) -> str:
        # No ``choices=``: rich would re-prompt, and an unknown action must count as an abstention.
        return Prompt.ask(f"Choose an action ({'/'.join(actions)})", console=self.console, default="", show_default=False)

    def notify(self, message: str) -> None:
        self.console.print(Text(message, style="bold magenta"))


class ConsoleAnnouncer:
    """Prints the public side of each phase."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def announce(self, event: str, message: dict) -> None:
        handler = getattr(self, f"_on_{event}", None)
        if handler is not None:
            handler(message)

    def _on_game_created(self, message: dict) -> None:
        self.console.rule("Players in this game")
        table = Table()
        table.add_column("Name")
        for player in message["players"]:
            table.add_row(player["name"] + (" (you)" if player["human"] else ""))
        self.console.print(table)

    def _on_day_resolved(self, message: dict) -> None:
        self.console.rule(f"Day {message['round']}")
        votes = Table(title="Day vote")
        votes.add_column("Voter")
        votes.add_column("Target")
        for vote in message["votes"]:
            votes.add_row(vote["voter"], vote["target"] or "-")
        self.console.print(votes)
        for name, count in message["tally"].items():
            self.console.print(Text(f"{name}: {count}"))
        eliminated = message["eliminated"]
        if eliminated is None:
            self.console.print("Nobody was executed today.")
        else:
            verdict = "were Mafia" if message["eliminated_was_mafia"] else "were not Mafia"
            self.console.print(Text(f"{eliminated['name']} was executed. They {verdict}.", style="bold red"))

    def _on_night_resolved(self, message: dict) -> None:
        self.console.rule(f"Morning after night {message['round']}")
        for victim in message["revealed"]:
            self.console.print(Text(f"{victim['name']} was killed last night. They were {victim['label']}.", style="red"))
        for name in message["saved"]:
            self.console.print(Text(f"{name} was saved last night by the Doctor.", style="green"))
        if not message["revealed"] and not message["saved"]:
            self.console.print("A quiet night.")

    def _on_game_finished(self, message: dict) -> None:
        counts = message["counts"]
        winner = message["winner"]
        self.console.rule("Game over")
        self.console.print(Text(f"Winner: {winner or 'nobody'}", style="bold"))
        self.console.print(f"Mafia: {counts['mafia']}  Maniac: {counts['maniac']}  Civilians: {counts['others']}")
        table = Table()
        table.add_column("Name")
        table.add_column("Role")
        table.add_column("Status")
        for player in message["players"]:
            table.add_row(player["name"], player.get("role", "?"), "alive" if player["is_alive"] else "dead")
        self.console.print(table)
