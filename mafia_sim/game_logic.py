from __future__ import annotations

from typing import Iterable, Protocol

from .logging_utils import log_call
from .models import Role, Winner
from .roles import is_mafia_aligned
from .schemas import FactionCounts


class _Seat(Protocol):
    role: Role
    is_alive: bool


def count_mafia(players: Iterable[_Seat]) -> int:
    return sum(1 for player in players if player.is_alive and is_mafia_aligned(player.role))


def count_maniacs(players: Iterable[_Seat]) -> int:
    return sum(1 for player in players if player.is_alive and player.role == Role.MANIAC)


def count_others(players: Iterable[_Seat]) -> int:
    return sum(
        1
        for player in players
        if player.is_alive and not is_mafia_aligned(player.role) and player.role != Role.MANIAC
    )


def count_factions(players: Iterable[_Seat]) -> FactionCounts:
    seats = list(players)
    return FactionCounts(mafia=count_mafia(seats), maniac=count_maniacs(seats), others=count_others(seats))


def winner_for(counts: FactionCounts) -> Winner | None:
    if counts.mafia > counts.others:
        return Winner.MAFIA
    if counts.mafia == counts.others and counts.maniac == 0:
        return Winner.MAFIA
    if counts.mafia == 0 and counts.maniac == 0:
        return Winner.CIVILIANS
    if counts.maniac == 1 and counts.mafia == 0 and counts.others == 1:
        return Winner.MANIAC
    return None


@log_call("game_logic")
def determine_winner(players: Iterable[_Seat]) -> Winner | None:
    return winner_for(count_factions(players))
