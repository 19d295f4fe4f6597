"""Role capability table and the per-participant behaviour built on it.

Every role is a flat tag; what a role may do at night, whom it may vote for
and how it reads to a Commissar are looked up in ``ROLE_TABLE`` instead of
being spread across a class hierarchy.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Callable, Mapping

from .models import PlayerView, Role

HEAL = "heal"
KILL = "kill"
CHECK = "check"

Eligibility = Callable[[PlayerView], bool]


class TargetRule(str, enum.Enum):
    ALIVE_NOT_SELF = "alive_not_self"
    ALIVE_NOT_LAST_HEALED = "alive_not_last_healed"
    ALIVE_NOT_MAFIA = "alive_not_mafia"
    ALIVE_NOT_SELF_NOT_MAFIA = "alive_not_self_not_mafia"
    ALIVE_NOT_SELF_NOT_INNOCENT = "alive_not_self_not_innocent"


@dataclass(frozen=True)
class RoleCapabilities:
    reveal_label: str
    vote_rule: TargetRule
    night_rule: TargetRule | None = None
    actions: tuple[str, ...] = ()
    mafia_aligned: bool = False
    # Reads as "not Mafia" under a Commissar check.
    disguised: bool = False
    maniac_immune: bool = False
    # Kills on its own instead of joining the Mafia tally.
    solo_killer: bool = False


_MAFIA = dict(
    reveal_label="Mafia",
    vote_rule=TargetRule.ALIVE_NOT_SELF_NOT_MAFIA,
    night_rule=TargetRule.ALIVE_NOT_MAFIA,
    actions=(KILL,),
    mafia_aligned=True,
)

ROLE_TABLE: Mapping[Role, RoleCapabilities] = {
    Role.CIVILIAN: RoleCapabilities(reveal_label="Civilian", vote_rule=TargetRule.ALIVE_NOT_SELF),
    Role.DOCTOR: RoleCapabilities(
        reveal_label="Doctor",
        vote_rule=TargetRule.ALIVE_NOT_SELF,
        night_rule=TargetRule.ALIVE_NOT_LAST_HEALED,
        actions=(HEAL,),
    ),
    Role.MAFIA: RoleCapabilities(**_MAFIA),
    Role.BULL: RoleCapabilities(**_MAFIA, maniac_immune=True),
    Role.NINJA: RoleCapabilities(**_MAFIA, disguised=True),
    Role.KILLER: RoleCapabilities(**_MAFIA, solo_killer=True),
    Role.MANIAC: RoleCapabilities(
        reveal_label="Maniac",
        vote_rule=TargetRule.ALIVE_NOT_SELF,
        night_rule=TargetRule.ALIVE_NOT_SELF,
        actions=(KILL,),
    ),
    Role.COMMISSAR: RoleCapabilities(
        reveal_label="Commissar",
        vote_rule=TargetRule.ALIVE_NOT_SELF_NOT_INNOCENT,
        night_rule=TargetRule.ALIVE_NOT_SELF_NOT_INNOCENT,
        actions=(CHECK, KILL),
    ),
}

MAFIA_ROLES = frozenset(role for role, caps in ROLE_TABLE.items() if caps.mafia_aligned)


def capabilities(role: Role) -> RoleCapabilities:
    return ROLE_TABLE[role]


def is_mafia_aligned(role: Role) -> bool:
    return ROLE_TABLE[role].mafia_aligned


def check_reports_mafia(role: Role) -> bool:
    """What a Commissar learns when checking a participant of ``role``."""
    caps = ROLE_TABLE[role]
    return caps.mafia_aligned and not caps.disguised


@dataclass(frozen=True)
class BehaviorState:
    """Frozen copy of one participant's private memory for a single phase."""

    name: str
    last_healed: str | None = None
    known_innocent: frozenset[str] = field(default_factory=frozenset)


def _build_rule(rule: TargetRule, state: BehaviorState) -> Eligibility:
    if rule is TargetRule.ALIVE_NOT_SELF:
        return lambda target: target.is_alive and target.name != state.name
    if rule is TargetRule.ALIVE_NOT_LAST_HEALED:
        return lambda target: target.is_alive and target.name != state.last_healed
    if rule is TargetRule.ALIVE_NOT_MAFIA:
        return lambda target: target.is_alive and not is_mafia_aligned(target.role)
    if rule is TargetRule.ALIVE_NOT_SELF_NOT_MAFIA:
        return lambda target: target.is_alive and target.name != state.name and not is_mafia_aligned(target.role)
    if rule is TargetRule.ALIVE_NOT_SELF_NOT_INNOCENT:
        return lambda target: (
            target.is_alive and target.name != state.name and target.name not in state.known_innocent
        )
    raise ValueError(f"Unknown target rule: {rule}")


class RoleBehavior:
    """Eligibility filters and private memory of a single participant.

    Filters are built from a frozen copy of the private state, so a filter
    handed to a decision task keeps answering the same way even if the
    orchestrator records a heal or a check while other tasks are still
    running.
    """

    def __init__(self, name: str, role: Role):
        self.name = name
        self.role = role
        self.capabilities = capabilities(role)
        self.last_healed: str | None = None
        self.checked: dict[str, bool] = {}

    @property
    def actions(self) -> tuple[str, ...]:
        return self.capabilities.actions

    @property
    def known_innocent(self) -> frozenset[str]:
        return frozenset(name for name, is_mafia in self.checked.items() if not is_mafia)

    def state(self) -> BehaviorState:
        return BehaviorState(name=self.name, last_healed=self.last_healed, known_innocent=self.known_innocent)

    def vote_eligibility(self) -> Eligibility:
        return _build_rule(self.capabilities.vote_rule, self.state())

    def night_eligibility(self) -> Eligibility | None:
        if self.capabilities.night_rule is None:
            return None
        return _build_rule(self.capabilities.night_rule, self.state())

    def record_heal(self, target: str) -> None:
        if HEAL not in self.actions:
            raise ValueError(f"{self.role.value} cannot heal")
        self.last_healed = target

    def record_check(self, target: str, is_mafia: bool) -> None:
        if CHECK not in self.actions:
            raise ValueError(f"{self.role.value} cannot check")
        # Knowledge is append-only: the first verdict for a name stands.
        self.checked.setdefault(target, is_mafia)
