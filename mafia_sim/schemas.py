from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from .models import Role


class Vote(BaseModel):
    voter: str
    target: Optional[str] = None

    @property
    def is_abstention(self) -> bool:
        return not self.target


class NightAction(BaseModel):
    actor: str
    action: Optional[str] = None
    target: Optional[str] = None

    @model_validator(mode="after")
    def both_or_neither(self) -> "NightAction":
        if not self.action or not self.target:
            self.action = None
            self.target = None
        return self

    @property
    def is_abstention(self) -> bool:
        return self.action is None


class FactionCounts(BaseModel):
    mafia: int = 0
    maniac: int = 0
    others: int = 0

    @property
    def total(self) -> int:
        return self.mafia + self.maniac + self.others


class DayResolution(BaseModel):
    votes: List[Vote]
    tally: Dict[str, int] = Field(default_factory=dict)
    eliminated: Optional[str] = None
    eliminated_role: Optional[Role] = None
    narration: str = ""


class CommissarOutcome(BaseModel):
    commissar: str
    action: str
    target: str
    is_mafia: Optional[bool] = None


class NightResolution(BaseModel):
    actions: List[NightAction]
    mafia_votes: Dict[str, int] = Field(default_factory=dict)
    mafia_victim: Optional[str] = None
    killer_victim: Optional[str] = None
    maniac_victim: Optional[str] = None
    maniac_blocked: Optional[str] = None
    heal_target: Optional[str] = None
    healer: Optional[str] = None
    commissar: Optional[CommissarOutcome] = None
    deaths: List[str] = Field(default_factory=list)
    saved: List[str] = Field(default_factory=list)
    narration: str = ""


class RoleAssignment(BaseModel):
    name: str
    role: Role
    human: bool = False
