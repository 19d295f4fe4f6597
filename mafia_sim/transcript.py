from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from pathlib import Path
from typing import List, Protocol

from loguru import logger

from .logging_utils import log_call
from .models import GamePhase, Log, utc_now


class Transcript(Protocol):
    def add_log(self, *, round: int, phase: GamePhase, message: str, timestamp: datetime | None = None) -> Log: ...
    def list_logs(self, phase: GamePhase | None = None) -> List[Log]: ...
    def reset(self) -> None: ...


class InMemoryTranscript:
    def __init__(self) -> None:
        self.reset()

    @log_call("transcript.memory")
    def reset(self) -> None:
        self._logs: List[Log] = []
        self._counters: defaultdict[str, int] = defaultdict(int)

    def _next_id(self) -> int:
        self._counters["logs"] += 1
        return self._counters["logs"]

    @log_call("transcript.memory", redact=("message",))
    def add_log(self, *, round: int, phase: GamePhase, message: str, timestamp: datetime | None = None) -> Log:
        entry = Log(id=self._next_id(), round=round, phase=phase, message=message, timestamp=timestamp or utc_now())
        self._logs.append(entry)
        return entry

    def list_logs(self, phase: GamePhase | None = None) -> List[Log]:
        if phase is None:
            return list(self._logs)
        return [entry for entry in self._logs if entry.phase == phase]


class FileTranscript(InMemoryTranscript):
    """Appends every entry to ``day_<n>.txt``, ``night_<n>.txt`` or ``results.txt``."""

    def __init__(self, log_dir: Path):
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        super().__init__()

    def path_for(self, round: int, phase: GamePhase) -> Path:
        if phase == GamePhase.RESULT:
            return self.log_dir / "results.txt"
        return self.log_dir / f"{phase.value}_{round}.txt"

    @log_call("transcript.file", redact=("message",))
    def add_log(self, *, round: int, phase: GamePhase, message: str, timestamp: datetime | None = None) -> Log:
        entry = super().add_log(round=round, phase=phase, message=message, timestamp=timestamp)
        path = self.path_for(round, phase)
        with path.open("a", encoding="utf-8") as handle:
            handle.write(message.rstrip("\n") + "\n")
        logger.bind(path=str(path)).debug("Appended transcript entry {}", entry.id)
        return entry
