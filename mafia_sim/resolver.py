"""Turn one phase's batch of simultaneous decisions into outcomes.

Nothing here touches the roster: the functions read a ``RosterSnapshot`` and
the joined decisions and return a resolution that the orchestrator applies.
"""
from __future__ import annotations

import random
from typing import Iterable, Literal, Sequence

from loguru import logger

from .logging_utils import log_call
from .models import PlayerView, Role, RosterSnapshot
from .roles import CHECK, HEAL, KILL, capabilities, check_reports_mafia, is_mafia_aligned
from .schemas import CommissarOutcome, DayResolution, NightAction, NightResolution, Vote

TieBreak = Literal["sequential", "uniform"]


def tally_votes(targets: Iterable[str | None]) -> dict[str, int]:
    """Count non-empty targets, keeping first-seen order."""
    tally: dict[str, int] = {}
    for target in targets:
        if target:
            tally[target] = tally.get(target, 0) + 1
    return tally


def pick_leader(tally: dict[str, int], rng: random.Random, policy: TieBreak = "sequential") -> str | None:
    """Pick the name with the most votes.

    ``sequential`` walks the tally in order and lets a tied name take the
    lead on a coin flip, so later names among equals are favoured.
    ``uniform`` picks evenly among all names sharing the top count.
    """
    if not tally:
        return None

    if policy == "uniform":
        top = max(tally.values())
        return rng.choice([name for name, count in tally.items() if count == top])

    leader: str | None = None
    best = 0
    for name, count in tally.items():
        if count > best:
            best = count
            leader = name
        elif count == best and rng.random() < 0.5:
            leader = name
    return leader


def _require(snapshot: RosterSnapshot, name: str) -> PlayerView:
    player = snapshot.find(name)
    if player is None:
        raise KeyError(f"{name} is not on the roster")
    return player


@log_call("resolver")
def resolve_day(
    votes: Sequence[Vote],
    snapshot: RosterSnapshot,
    rng: random.Random,
    *,
    day: int,
    policy: TieBreak = "sequential",
) -> DayResolution:
    lines = [f"Day {day} has begun. Voting is open."]
    for vote in votes:
        if not vote.is_abstention:
            lines.append(f"{vote.voter} votes for {vote.target}.")

    tally = tally_votes(vote.target for vote in votes)
    for name, count in tally.items():
        lines.append(f"{name} received {count} vote(s).")

    eliminated = pick_leader(tally, rng, policy)
    if eliminated is None:
        lines.append("Nobody was eliminated.")
        return DayResolution(votes=list(votes), tally=tally, narration="\n".join(lines))

    victim = _require(snapshot, eliminated)
    verdict = "was Mafia" if is_mafia_aligned(victim.role) else "was not Mafia"
    lines.append(f"{eliminated} was executed with {tally[eliminated]} vote(s) and {verdict}.")
    return DayResolution(
        votes=list(votes),
        tally=tally,
        eliminated=eliminated,
        eliminated_role=victim.role,
        narration="\n".join(lines),
    )


@log_call("resolver")
def resolve_night(
    actions: Sequence[NightAction],
    snapshot: RosterSnapshot,
    rng: random.Random,
    *,
    day: int,
    policy: TieBreak = "sequential",
) -> NightResolution:
    lines = [f"Night {day} has fallen. Night actions begin."]
    mafia_targets: list[str] = []
    killer_victim = maniac_victim = maniac_blocked = heal_target = healer = None
    commissar: CommissarOutcome | None = None

    for decision in actions:
        if decision.is_abstention:
            continue
        actor = _require(snapshot, decision.actor)
        target = _require(snapshot, decision.target)
        caps = capabilities(actor.role)
        if decision.action not in caps.actions:
            logger.bind(player=actor.name).warning(
                "{} cannot {}, ignoring", actor.role.value, decision.action
            )
            continue

        lines.append(f"{actor.name} performs {decision.action} on {target.name}.")

        if decision.action == HEAL:
            heal_target, healer = target.name, actor.name
        elif decision.action == CHECK:
            commissar = CommissarOutcome(
                commissar=actor.name,
                action=CHECK,
                target=target.name,
                is_mafia=check_reports_mafia(target.role),
            )
        elif caps.solo_killer:
            killer_victim = target.name
        elif caps.mafia_aligned:
            mafia_targets.append(target.name)
        elif actor.role == Role.MANIAC:
            if capabilities(target.role).maniac_immune:
                maniac_blocked = target.name
                lines.append(f"The Maniac tried to kill {target.name}, but the Bull survived.")
            else:
                maniac_victim = target.name
        elif actor.role == Role.COMMISSAR:
            commissar = CommissarOutcome(commissar=actor.name, action=KILL, target=target.name)

    mafia_votes = tally_votes(mafia_targets)
    mafia_victim = pick_leader(mafia_votes, rng, policy)

    if mafia_victim:
        lines.append(f"The Mafia chose {mafia_victim}.")
    if killer_victim:
        lines.append(f"The Killer chose {killer_victim}.")
    if heal_target:
        lines.append(f"The Doctor heals {heal_target}.")
    if maniac_victim:
        lines.append(f"The Maniac chose {maniac_victim}.")

    commissar_victim = commissar.target if commissar and commissar.action == KILL else None
    queued = [
        ("Mafia", mafia_victim),
        ("Killer", killer_victim),
        ("Maniac", maniac_victim),
        ("Commissar", commissar_victim),
    ]

    deaths: list[str] = []
    for source, victim in queued:
        if victim and victim != heal_target:
            lines.append(f"The {source} killed {victim}.")
            if victim not in deaths:
                deaths.append(victim)

    saved = [heal_target] if heal_target and any(victim == heal_target for _, victim in queued) else []
    for name in saved:
        lines.append(f"{name} was saved by the Doctor.")

    if commissar and commissar.action == CHECK:
        verdict = "Mafia" if commissar.is_mafia else "not Mafia"
        lines.append(f"The Commissar checked {commissar.target}: {verdict}.")

    return NightResolution(
        actions=list(actions),
        mafia_votes=mafia_votes,
        mafia_victim=mafia_victim,
        killer_victim=killer_victim,
        maniac_victim=maniac_victim,
        maniac_blocked=maniac_blocked,
        heal_target=heal_target,
        healer=healer,
        commissar=commissar,
        deaths=deaths,
        saved=saved,
        narration="\n".join(lines),
    )
