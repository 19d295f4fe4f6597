from __future__ import annotations

import enum
from datetime import UTC, datetime
from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return datetime.now(UTC)


class Role(str, enum.Enum):
    CIVILIAN = "civilian"
    DOCTOR = "doctor"
    MAFIA = "mafia"
    BULL = "bull"
    NINJA = "ninja"
    KILLER = "killer"
    MANIAC = "maniac"
    COMMISSAR = "commissar"


class GameStatus(str, enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    FINISHED = "finished"


class GamePhase(str, enum.Enum):
    DAY = "day"
    NIGHT = "night"
    RESULT = "result"


class Winner(str, enum.Enum):
    MAFIA = "mafia"
    CIVILIANS = "civilians"
    MANIAC = "maniac"


class PlayerView(BaseModel):
    """Read-only row of a roster snapshot handed to decision code."""

    name: str
    role: Role
    is_alive: bool

    model_config = ConfigDict(frozen=True)


class Player(BaseModel):
    name: str
    role: Role = Field(frozen=True)
    is_alive: bool = True
    human: bool = False
    # Runtime collaborators, attached once at construction and never serialised.
    provider: Any = Field(default=None, exclude=True, repr=False)
    behavior: Any = Field(default=None, exclude=True, repr=False)

    model_config = ConfigDict(arbitrary_types_allowed=True, validate_assignment=True)

    def view(self) -> PlayerView:
        return PlayerView(name=self.name, role=self.role, is_alive=self.is_alive)

    def die(self) -> None:
        self.is_alive = False


class Log(BaseModel):
    id: int
    round: int
    phase: GamePhase
    message: str
    timestamp: datetime = Field(default_factory=utc_now)

    model_config = ConfigDict(from_attributes=True)


class GameAggregate(BaseModel):
    """Roster plus the mutable state of the phase machine."""

    players: List[Player]
    status: GameStatus = GameStatus.PENDING
    current_phase: GamePhase = GamePhase.DAY
    current_round: int = 1
    winner: Winner | None = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def alive_players(self) -> list[Player]:
        return [player for player in self.players if player.is_alive]

    def get_player(self, name: str) -> Player:
        for player in self.players:
            if player.name == name:
                return player
        raise KeyError(name)


class RosterSnapshot(BaseModel):
    """Roster as it stood before a phase's decisions were requested."""

    players: tuple[PlayerView, ...]

    model_config = ConfigDict(frozen=True)

    @classmethod
    def capture(cls, players: List[Player]) -> "RosterSnapshot":
        return cls(players=tuple(player.view() for player in players))

    @property
    def names(self) -> list[str]:
        return [player.name for player in self.players]

    def find(self, name: str | None) -> PlayerView | None:
        if not name:
            return None
        for player in self.players:
            if player.name == name:
                return player
        return None


class GameSetupError(ValueError):
    """The game cannot start with the requested table."""
