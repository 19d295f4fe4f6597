from __future__ import annotations

import random
from pathlib import Path
from typing import Iterable, Sequence

from loguru import logger

from .models import GameSetupError

DEFAULT_NAMES = (
    "Anna", "Boris", "Clara", "Dmitri", "Elena", "Fedor", "Galina", "Igor",
    "Irina", "Konstantin", "Lev", "Marina", "Nikolai", "Olga", "Pavel", "Raisa",
    "Sergei", "Tatiana", "Viktor", "Yulia", "Zakhar", "Vera", "Oleg", "Nadia",
)


def _dedupe(names: Iterable[str]) -> list[str]:
    seen: dict[str, None] = {}
    for name in names:
        name = name.strip()
        if name:
            seen.setdefault(name, None)
    return list(seen)


def load_names(path: Path) -> list[str]:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise GameSetupError(f"Could not read names from {path}") from exc
    names = _dedupe(text.splitlines())
    logger.bind(path=str(path)).debug("Loaded {} candidate names", len(names))
    return names


class NameSource:
    """Deduplicated, shuffled pool of candidate participant names."""

    def __init__(self, names: Sequence[str] = DEFAULT_NAMES, rng: random.Random | None = None):
        self.names = _dedupe(names)
        self.rng = rng or random.Random()

    @classmethod
    def from_file(cls, path: Path, rng: random.Random | None = None) -> "NameSource":
        return cls(load_names(path), rng)

    def draw(self, count: int, *, exclude: Iterable[str] = ()) -> list[str]:
        excluded = set(exclude)
        pool = [name for name in self.names if name not in excluded]
        if len(pool) < count:
            raise GameSetupError(f"Not enough names for the game: need at least {count}, have {len(pool)}")
        self.rng.shuffle(pool)
        return pool[:count]
