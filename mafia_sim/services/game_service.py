from __future__ import annotations

import random
from typing import Awaitable, Callable, Optional, Protocol, Sequence, TypeVar

import anyio
from loguru import logger

from ..config import Settings
from ..game_logic import count_factions, determine_winner
from ..models import (
    GameAggregate,
    GamePhase,
    GameSetupError,
    GameStatus,
    Player,
    Role,
    RosterSnapshot,
    Winner,
)
from ..names import NameSource
from ..providers import BotProvider, DecisionProvider, InteractiveProvider, Prompter
from ..resolver import TieBreak, resolve_day, resolve_night
from ..roles import CHECK, RoleBehavior, capabilities, is_mafia_aligned
from ..schemas import DayResolution, FactionCounts, NightAction, NightResolution, RoleAssignment, Vote
from ..transcript import InMemoryTranscript, Transcript

T = TypeVar("T")

MAFIA_VARIANTS = (Role.BULL, Role.NINJA, Role.KILLER)

WIN_MESSAGES = {
    Winner.MAFIA: "The Mafia wins!",
    Winner.CIVILIANS: "The civilians win! Every Mafioso and the Maniac are dead.",
    Winner.MANIAC: "The Maniac wins! Only one civilian is left to face him.",
}


class Announcer(Protocol):
    def announce(self, event: str, message: dict) -> None: ...


def _serialize_player(player: Player, *, reveal_role: bool) -> dict:
    data = {"name": player.name, "is_alive": player.is_alive, "human": player.human}
    if reveal_role:
        data["role"] = player.role.value
    return data


def _reveal(player: Player) -> dict:
    return {"name": player.name, "role": player.role.value, "label": capabilities(player.role).reveal_label}


class GameManager:
    """Drives one game: phase machine, decision fan-out, resolution and win checks."""

    def __init__(
        self,
        bundle: GameAggregate,
        transcript: Transcript,
        *,
        rng: random.Random | None = None,
        tie_break: TieBreak = "sequential",
        announcer: Announcer | None = None,
        max_days: int | None = None,
    ):
        self.bundle = bundle
        self.transcript = transcript
        self.rng = rng or random.Random()
        self.tie_break = tie_break
        self.announcer = announcer
        self.max_days = max_days
        self.player_map = {p.name: p for p in bundle.players}
        if len(self.player_map) != len(bundle.players):
            raise GameSetupError("Participant names must be unique")

    @property
    def day(self) -> int:
        return self.bundle.current_round

    @property
    def finished(self) -> bool:
        return self.bundle.status == GameStatus.FINISHED

    def snapshot(self) -> RosterSnapshot:
        return RosterSnapshot.capture(self.bundle.players)

    def faction_counts(self) -> FactionCounts:
        return count_factions(self.bundle.players)

    def serialize_for_broadcast(self, event: str, payload: Optional[dict] = None) -> dict:
        message = {
            "event": event,
            "status": self.bundle.status.value,
            "phase": self.bundle.current_phase.value,
            "round": self.bundle.current_round,
            "winner": self.bundle.winner.value if self.bundle.winner else None,
            "players": [_serialize_player(p, reveal_role=self.finished) for p in self.bundle.players],
        }
        if payload:
            message.update(payload)
        return message

    def broadcast(self, event: str, payload: Optional[dict] = None) -> None:
        message = self.serialize_for_broadcast(event, payload)
        logger.bind(day=self.day, event=event).debug("Broadcasting game state update")
        if self.announcer is not None:
            self.announcer.announce(event, message)

    def notify(self, player: Player, message: str) -> None:
        provider: DecisionProvider | None = player.provider
        if provider is not None:
            provider.notify(message)

    def start(self) -> None:
        if self.bundle.status != GameStatus.PENDING:
            raise GameSetupError("Game already started")
        self.bundle.status = GameStatus.ACTIVE
        self.bundle.current_phase = GamePhase.DAY
        self.bundle.current_round = 1
        logger.bind(players=len(self.bundle.players)).info("Game started")
        self.broadcast("game_started")

    async def _fan_out(self, players: Sequence[Player], decide: Callable[[Player], Awaitable[T]]) -> list[T]:
        # Every task reads only the snapshot taken before this call; nothing
        # is written back until all of them have returned.
        results: list[T] = [None] * len(players)  # type: ignore[list-item]

        async def run(index: int, player: Player) -> None:
            results[index] = await decide(player)

        async with anyio.create_task_group() as tg:
            for index, player in enumerate(players):
                tg.start_soon(run, index, player)
        return results

    async def collect_votes(self, snapshot: RosterSnapshot) -> list[Vote]:
        voters = [p for p in self.bundle.players if p.is_alive]
        filters = {p.name: p.behavior.vote_eligibility() for p in voters}

        async def decide(player: Player) -> Vote:
            me = snapshot.find(player.name)
            target = await player.provider.decide_vote(me, snapshot.players, filters[player.name])
            return Vote(voter=player.name, target=target)

        return await self._fan_out(voters, decide)

    async def collect_night_actions(self, snapshot: RosterSnapshot) -> list[NightAction]:
        actors = [p for p in self.bundle.players if p.is_alive]
        filters = {p.name: p.behavior.night_eligibility() for p in actors}

        async def decide(player: Player) -> NightAction:
            eligible = filters[player.name]
            if eligible is None:
                return NightAction(actor=player.name)
            me = snapshot.find(player.name)
            choice = await player.provider.decide_action(me, snapshot.players, player.behavior.actions, eligible)
            if choice is None:
                return NightAction(actor=player.name)
            action, target = choice
            return NightAction(actor=player.name, action=action, target=target)

        return await self._fan_out(actors, decide)

    def apply_day(self, resolution: DayResolution) -> None:
        if resolution.eliminated:
            self.player_map[resolution.eliminated].die()

    def apply_night(self, resolution: NightResolution) -> None:
        for name in resolution.deaths:
            self.player_map[name].die()

        # Doctor memory moves only on nights the Doctor actually healed.
        if resolution.healer and resolution.heal_target:
            self.player_map[resolution.healer].behavior.record_heal(resolution.heal_target)

        outcome = resolution.commissar
        if outcome and outcome.action == CHECK:
            commissar = self.player_map[outcome.commissar]
            commissar.behavior.record_check(outcome.target, bool(outcome.is_mafia))
            verdict = "Mafia" if outcome.is_mafia else "not Mafia"
            self.notify(commissar, f"Check result: {outcome.target} is {verdict}.")

    async def play_day(self) -> Winner | None:
        self.bundle.current_phase = GamePhase.DAY
        snapshot = self.snapshot()
        votes = await self.collect_votes(snapshot)
        resolution = resolve_day(votes, snapshot, self.rng, day=self.day, policy=self.tie_break)
        self.apply_day(resolution)
        self.transcript.add_log(round=self.day, phase=GamePhase.DAY, message=resolution.narration)
        logger.bind(day=self.day, eliminated=resolution.eliminated).info("Day resolved")
        self.broadcast(
            "day_resolved",
            {
                "votes": [vote.model_dump() for vote in votes],
                "tally": resolution.tally,
                "eliminated": _reveal(self.player_map[resolution.eliminated]) if resolution.eliminated else None,
                "eliminated_was_mafia": (
                    is_mafia_aligned(resolution.eliminated_role) if resolution.eliminated_role else None
                ),
            },
        )
        return self.check_winner()

    async def play_night(self) -> Winner | None:
        self.bundle.current_phase = GamePhase.NIGHT
        snapshot = self.snapshot()
        actions = await self.collect_night_actions(snapshot)
        resolution = resolve_night(actions, snapshot, self.rng, day=self.day, policy=self.tie_break)
        self.apply_night(resolution)
        self.transcript.add_log(round=self.day, phase=GamePhase.NIGHT, message=resolution.narration)
        logger.bind(day=self.day, deaths=resolution.deaths, saved=resolution.saved).info("Night resolved")
        self.broadcast(
            "night_resolved",
            {
                "revealed": [_reveal(self.player_map[name]) for name in resolution.deaths],
                "saved": list(resolution.saved),
            },
        )
        return self.check_winner()

    def check_winner(self) -> Winner | None:
        winner = determine_winner(self.bundle.players)
        if winner:
            self.finish(winner)
        return winner

    def finish(self, winner: Winner | None, reason: str | None = None) -> None:
        counts = self.faction_counts()
        self.bundle.status = GameStatus.FINISHED
        self.bundle.current_phase = GamePhase.RESULT
        self.bundle.winner = winner

        lines = ["GAME RESULT:", reason or WIN_MESSAGES[winner]]
        lines.append(f"Mafia left: {counts.mafia}, Maniac left: {counts.maniac}, civilians left: {counts.others}")
        lines.append("PLAYERS:")
        for player in self.bundle.players:
            status = "alive" if player.is_alive else "dead"
            lines.append(f"{player.name}: {capabilities(player.role).reveal_label} ({player.role.value}), {status}")
        self.transcript.add_log(round=self.day, phase=GamePhase.RESULT, message="\n".join(lines))
        logger.bind(day=self.day, winner=winner).info("Game finished")
        self.broadcast("game_finished", {"counts": counts.model_dump()})

    def is_stalemate(self) -> bool:
        """True when no living participant has anyone left to vote for or act on."""
        snapshot = self.snapshot()
        for player in self.bundle.alive_players:
            for eligible in (player.behavior.vote_eligibility(), player.behavior.night_eligibility()):
                if eligible is not None and any(eligible(view) for view in snapshot.players):
                    return False
        return True

    async def run(self) -> Winner | None:
        if self.bundle.status == GameStatus.PENDING:
            self.start()
        if self.check_winner():
            return self.bundle.winner

        while True:
            if await self.play_day():
                break
            if await self.play_night():
                break
            if self.is_stalemate():
                self.finish(None, reason="Nobody left alive can vote or act.")
                break
            if self.max_days is not None and self.day >= self.max_days:
                self.finish(None, reason=f"Stopped after {self.day} day(s) without a winner.")
                break
            self.bundle.current_round += 1
        return self.bundle.winner


def _take_mafia_seat(rng: random.Random, used: set[Role]) -> Role:
    variant = rng.randrange(4)
    if variant == 0 or used.issuperset(MAFIA_VARIANTS):
        return Role.MAFIA
    role = MAFIA_VARIANTS[variant - 1]
    if role in used:
        return Role.MAFIA
    used.add(role)
    return role


def role_quota(num_players: int) -> dict[Role, int]:
    num_mafia = max(1, num_players // 5)
    return {
        Role.MAFIA: num_mafia,
        Role.DOCTOR: 1,
        Role.COMMISSAR: 1,
        Role.MANIAC: 1,
        Role.CIVILIAN: num_players - num_mafia - 3,
    }


def assign_roles(
    names: Sequence[str],
    rng: random.Random,
    *,
    human_name: str | None = None,
    human_role: Role | None = None,
) -> list[RoleAssignment]:
    """Deal roles: ``max(1, n // 5)`` Mafia seats, one Doctor, Commissar and Maniac, the rest civilians.

    Each Mafia seat is base Mafia or, at most once each, a Bull, Ninja or
    Killer. The human, if any, is seated first and gets their preferred role
    when it is still available.
    """
    seats = ([human_name] if human_name else []) + [name for name in names if name != human_name]
    quota = role_quota(len(seats))
    used: set[Role] = set()
    assignments: list[RoleAssignment] = []

    for name in seats:
        human = name == human_name
        role: Role | None = None
        if human and human_role is not None:
            family = Role.MAFIA if is_mafia_aligned(human_role) else human_role
            if quota[family] > 0 and human_role not in used:
                role = human_role
                quota[family] -= 1
                if human_role in MAFIA_VARIANTS:
                    used.add(human_role)
            else:
                logger.bind(player=name, role=human_role).info("Preferred role unavailable, dealing at random")

        if role is None:
            pick = rng.randrange(sum(quota.values()))
            for family, remaining in quota.items():
                if pick < remaining:
                    break
                pick -= remaining
            quota[family] -= 1
            role = _take_mafia_seat(rng, used) if family == Role.MAFIA else family

        assignments.append(RoleAssignment(name=name, role=role, human=human))
    return assignments


class GameService:
    def __init__(
        self,
        settings: Settings,
        *,
        transcript: Transcript | None = None,
        names: NameSource | None = None,
        rng: random.Random | None = None,
        prompter: Prompter | None = None,
        announcer: Announcer | None = None,
    ):
        self.settings = settings
        self.rng = rng or random.Random(settings.seed)
        self.transcript = transcript or InMemoryTranscript()
        if names is None:
            names = NameSource.from_file(settings.names_file, self.rng) if settings.names_file else NameSource(rng=self.rng)
        self.names = names
        self.prompter = prompter
        self.announcer = announcer

    def build_player(self, assignment: RoleAssignment) -> Player:
        if assignment.human:
            if self.prompter is None:
                raise GameSetupError("An interactive participant needs a console")
            provider: DecisionProvider = InteractiveProvider(self.prompter)
        else:
            provider = BotProvider(self.rng)
        return Player(
            name=assignment.name,
            role=assignment.role,
            human=assignment.human,
            provider=provider,
            behavior=RoleBehavior(assignment.name, assignment.role),
        )

    def create_game(self) -> GameManager:
        settings = self.settings
        human_name = None
        if settings.human_player:
            human_name = (settings.human_name or "").strip()
            if not human_name:
                raise GameSetupError("The interactive participant needs a name")

        drawn = self.names.draw(settings.num_players - (1 if human_name else 0), exclude=[human_name] if human_name else [])
        assignments = assign_roles(drawn, self.rng, human_name=human_name, human_role=settings.human_role)
        players = [self.build_player(assignment) for assignment in assignments]

        for assignment in assignments:
            self.transcript.add_log(
                round=0, phase=GamePhase.DAY, message=f"{assignment.name} was dealt the role: {assignment.role.value}"
            )

        manager = GameManager(
            GameAggregate(players=players),
            self.transcript,
            rng=self.rng,
            tie_break=settings.tie_break,
            announcer=self.announcer,
            max_days=settings.max_days,
        )

        for player in players:
            if player.human and is_mafia_aligned(player.role):
                team = [p.name for p in players if p is not player and is_mafia_aligned(p.role)]
                manager.notify(player, "You are Mafia. Your teammates: " + (", ".join(team) or "none"))

        manager.broadcast("game_created")
        return manager
