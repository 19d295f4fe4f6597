"""Decision providers: who picks a participant's vote or night action.

Both providers honour the same contract: the answer is either an abstention
(``None``) or a candidate that passes the eligibility predicate, paired with
an action from the offered vocabulary for night decisions.
"""
from __future__ import annotations

import abc
import random
from typing import Protocol, Sequence

from anyio import to_thread
from loguru import logger

from .models import PlayerView
from .roles import Eligibility


class DecisionProvider(abc.ABC):
    interactive: bool = False

    @abc.abstractmethod
    async def decide_vote(
        self, player: PlayerView, candidates: Sequence[PlayerView], eligible: Eligibility
    ) -> str | None: ...

    @abc.abstractmethod
    async def decide_action(
        self,
        player: PlayerView,
        candidates: Sequence[PlayerView],
        actions: Sequence[str],
        eligible: Eligibility,
    ) -> tuple[str, str] | None: ...

    def notify(self, message: str) -> None:
        """Private message for the participant behind this provider."""


class BotProvider(DecisionProvider):
    """Uniform random choice among eligible candidates and actions."""

    def __init__(self, rng: random.Random | None = None):
        self.rng = rng or random.Random()

    async def decide_vote(
        self, player: PlayerView, candidates: Sequence[PlayerView], eligible: Eligibility
    ) -> str | None:
        names = [candidate.name for candidate in candidates if eligible(candidate)]
        if not names:
            return None
        return self.rng.choice(names)

    async def decide_action(
        self,
        player: PlayerView,
        candidates: Sequence[PlayerView],
        actions: Sequence[str],
        eligible: Eligibility,
    ) -> tuple[str, str] | None:
        names = [candidate.name for candidate in candidates if eligible(candidate)]
        if not names or not actions:
            return None
        target = self.rng.choice(names)
        return self.rng.choice(list(actions)), target


class Prompter(Protocol):
    """Blocking source of answers for a human participant."""

    def ask_target(self, player: PlayerView, candidates: Sequence[PlayerView]) -> str: ...

    def ask_action(self, player: PlayerView, actions: Sequence[str]) -> str: ...

    def notify(self, message: str) -> None: ...


def _match_target(choice: str, candidates: Sequence[PlayerView], eligible: Eligibility) -> str | None:
    for candidate in candidates:
        if candidate.name == choice and eligible(candidate):
            return candidate.name
    return None


class InteractiveProvider(DecisionProvider):
    """Reads answers from a ``Prompter`` and turns anything invalid into an abstention.

    The prompter runs in a worker thread so that a human thinking over their
    vote does not hold up the other participants' decision tasks; only the
    phase's join waits for it.
    """

    interactive = True

    def __init__(self, prompter: Prompter):
        self.prompter = prompter

    async def decide_vote(
        self, player: PlayerView, candidates: Sequence[PlayerView], eligible: Eligibility
    ) -> str | None:
        choice = await to_thread.run_sync(self.prompter.ask_target, player, candidates)
        target = _match_target((choice or "").strip(), candidates, eligible)
        if target is None:
            logger.bind(player=player.name).info("Vote {!r} is not an eligible target, abstaining", choice)
        return target

    def _ask_action(self, player: PlayerView, candidates: Sequence[PlayerView], actions: Sequence[str]) -> tuple[str, str]:
        target = self.prompter.ask_target(player, candidates)
        action = self.prompter.ask_action(player, actions)
        return (action or "").strip(), (target or "").strip()

    async def decide_action(
        self,
        player: PlayerView,
        candidates: Sequence[PlayerView],
        actions: Sequence[str],
        eligible: Eligibility,
    ) -> tuple[str, str] | None:
        action, choice = await to_thread.run_sync(self._ask_action, player, candidates, actions)
        target = _match_target(choice, candidates, eligible)
        if target is None or action not in actions:
            logger.bind(player=player.name).info(
                "Night action {!r} on {!r} is not allowed, abstaining", action, choice
            )
            return None
        return action, target

    def notify(self, message: str) -> None:
        self.prompter.notify(message)
