from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import Role

MIN_PLAYERS = 5


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="MAFIA_", extra="ignore")

    environment: Literal["development", "staging", "production", "test"] = Field(
        default="production", description="Application environment"
    )
    num_players: int = Field(default=8, description="Number of participants in the game")
    names_file: Path | None = Field(default=None, description="File with one candidate name per line")
    log_dir: Path | None = Field(default=None, description="Directory for day/night/result transcripts")
    seed: int | None = Field(default=None, description="Seed for the game's random generator")
    tie_break: Literal["sequential", "uniform"] = Field(
        default="sequential", description="Policy used to pick one name among equal top vote counts"
    )
    human_player: bool = Field(default=False, description="Seat an interactive participant")
    human_name: str | None = Field(default=None, description="Name of the interactive participant")
    human_role: Role | None = Field(default=None, description="Preferred role of the interactive participant")
    max_days: int | None = Field(default=None, description="Stop after this many days (unlimited when unset)")

    @field_validator("human_role", mode="before")
    @classmethod
    def blank_role_is_random(cls, v: object) -> object:
        if isinstance(v, str):
            v = v.strip().lower()
            return v or None
        return v

    @model_validator(mode="after")
    def validate_table(self) -> "Settings":
        if self.num_players < MIN_PLAYERS:
            raise ValueError(f"MAFIA_NUM_PLAYERS must be at least {MIN_PLAYERS}")

        if self.max_days is not None and self.max_days <= 0:
            raise ValueError("MAFIA_MAX_DAYS must be a positive integer")

        if self.human_player and self.human_name is not None and not self.human_name.strip():
            raise ValueError("MAFIA_HUMAN_NAME must not be blank")

        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]
