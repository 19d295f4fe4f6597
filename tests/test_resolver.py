from __future__ import annotations

import random

import pytest

from mafia_sim.models import Player, Role, RosterSnapshot
from mafia_sim.resolver import pick_leader, resolve_day, resolve_night, tally_votes
from mafia_sim.schemas import NightAction, Vote


class CoinRng(random.Random):
    """Coin that always lands the same way."""

    def __init__(self, value: float):
        super().__init__(0)
        self.value = value

    def random(self) -> float:
        return self.value


@pytest.fixture
def scenario() -> RosterSnapshot:
    roles = [Role.MAFIA, Role.DOCTOR, Role.COMMISSAR, Role.MANIAC, Role.CIVILIAN]
    return RosterSnapshot.capture([Player(name=f"P{i + 1}", role=role) for i, role in enumerate(roles)])


@pytest.fixture
def big_table() -> RosterSnapshot:
    seats = {
        "Vito": Role.MAFIA,
        "Sonny": Role.MAFIA,
        "Bruno": Role.BULL,
        "Kage": Role.NINJA,
        "Leon": Role.KILLER,
        "Greta": Role.DOCTOR,
        "Maigret": Role.COMMISSAR,
        "Jack": Role.MANIAC,
        "Ann": Role.CIVILIAN,
        "Bob": Role.CIVILIAN,
    }
    return RosterSnapshot.capture([Player(name=name, role=role) for name, role in seats.items()])


def act(actor: str, action: str | None = None, target: str | None = None) -> NightAction:
    return NightAction(actor=actor, action=action, target=target)


def test_tally_votes_skips_abstentions():
    assert tally_votes(["Ann", None, "Bob", "", "Ann"]) == {"Ann": 2, "Bob": 1}


def test_pick_leader_empty_tally():
    assert pick_leader({}, random.Random(1)) is None


def test_pick_leader_strict_majority_wins():
    for seed in range(20):
        assert pick_leader({"Ann": 1, "Bob": 3, "Cid": 2}, random.Random(seed)) == "Bob"
        assert pick_leader({"Ann": 1, "Bob": 3, "Cid": 2}, random.Random(seed), "uniform") == "Bob"


@pytest.mark.parametrize("policy", ["sequential", "uniform"])
def test_pick_leader_only_returns_top_names(policy):
    tally = {"Ann": 2, "Bob": 1, "Cid": 2, "Dan": 2, "Eve": 1}
    picks = {pick_leader(tally, random.Random(seed), policy) for seed in range(200)}
    assert picks == {"Ann", "Cid", "Dan"}


def test_sequential_tie_break_keeps_coin_flip_order_bias():
    # The default policy reproduces the original walk: a tied name replaces
    # the running leader on a coin flip, so later names are favoured.
    tally = {"Ann": 2, "Bob": 2, "Cid": 2}
    assert pick_leader(tally, CoinRng(0.0)) == "Cid"
    assert pick_leader(tally, CoinRng(0.9)) == "Ann"

    rng = random.Random(7)
    wins = {"Ann": 0, "Bob": 0, "Cid": 0}
    for _ in range(4000):
        wins[pick_leader(tally, rng)] += 1
    # Last tied name wins half the time, the other two a quarter each.
    assert 1800 < wins["Cid"] < 2200
    assert 850 < wins["Ann"] < 1150
    assert 850 < wins["Bob"] < 1150


def test_uniform_tie_break_is_even():
    tally = {"Ann": 2, "Bob": 2, "Cid": 2}
    rng = random.Random(7)
    wins = {"Ann": 0, "Bob": 0, "Cid": 0}
    for _ in range(3000):
        wins[pick_leader(tally, rng, "uniform")] += 1
    assert all(800 < count < 1200 for count in wins.values())


def test_resolve_day_eliminates_leader(scenario):
    votes = [
        Vote(voter="P1", target="P5"),
        Vote(voter="P2", target="P1"),
        Vote(voter="P3", target="P1"),
        Vote(voter="P4", target=None),
        Vote(voter="P5", target="P1"),
    ]
    resolution = resolve_day(votes, scenario, random.Random(0), day=1)
    assert resolution.tally == {"P5": 1, "P1": 3}
    assert resolution.eliminated == "P1"
    assert resolution.eliminated_role == Role.MAFIA
    assert "P1 was executed with 3 vote(s) and was Mafia." in resolution.narration


def test_resolve_day_without_votes(scenario):
    votes = [Vote(voter=name) for name in scenario.names]
    resolution = resolve_day(votes, scenario, random.Random(0), day=2)
    assert resolution.eliminated is None
    assert resolution.tally == {}
    assert "Nobody was eliminated." in resolution.narration


def test_resolve_day_does_not_touch_roster(scenario):
    resolve_day([Vote(voter="P2", target="P5")], scenario, random.Random(0), day=1)
    assert scenario.find("P5").is_alive


def test_first_night_scenario(scenario):
    actions = [
        act("P1", "kill", "P5"),
        act("P2", "heal", "P5"),
        act("P3"),
        act("P4", "kill", "P3"),
        act("P5"),
    ]
    resolution = resolve_night(actions, scenario, random.Random(0), day=1)
    assert resolution.mafia_victim == "P5"
    assert resolution.maniac_victim == "P3"
    assert resolution.heal_target == "P5"
    assert resolution.healer == "P2"
    assert resolution.deaths == ["P3"]
    assert resolution.saved == ["P5"]


def test_mafia_votes_are_pooled_but_killer_acts_alone(big_table):
    actions = [
        act("Vito", "kill", "Ann"),
        act("Sonny", "kill", "Ann"),
        act("Bruno", "kill", "Bob"),
        act("Kage", "kill", "Bob"),
        act("Leon", "kill", "Ann"),
    ]
    resolution = resolve_night(actions, big_table, CoinRng(0.9), day=1)
    assert resolution.mafia_votes == {"Ann": 2, "Bob": 2}
    assert resolution.mafia_victim == "Ann"
    assert resolution.killer_victim == "Ann"
    assert resolution.deaths == ["Ann"]


def test_killer_and_mafia_can_kill_different_people(big_table):
    actions = [act("Vito", "kill", "Ann"), act("Leon", "kill", "Bob")]
    resolution = resolve_night(actions, big_table, random.Random(0), day=1)
    assert resolution.deaths == ["Ann", "Bob"]


def test_bull_survives_the_maniac(big_table):
    actions = [act("Jack", "kill", "Bruno")]
    resolution = resolve_night(actions, big_table, random.Random(0), day=1)
    assert resolution.maniac_victim is None
    assert resolution.maniac_blocked == "Bruno"
    assert resolution.deaths == []
    assert "the Bull survived" in resolution.narration


def test_bull_is_not_immune_to_other_killers(big_table):
    actions = [act("Maigret", "kill", "Bruno")]
    resolution = resolve_night(actions, big_table, random.Random(0), day=1)
    assert resolution.deaths == ["Bruno"]


def test_commissar_check_sees_through_everyone_but_ninja(big_table):
    for target, expected in [("Vito", True), ("Bruno", True), ("Leon", True), ("Kage", False), ("Ann", False)]:
        resolution = resolve_night([act("Maigret", "check", target)], big_table, random.Random(0), day=1)
        assert resolution.commissar is not None
        assert resolution.commissar.is_mafia is expected
        assert resolution.deaths == []


def test_heal_blocks_every_queued_kill_on_that_name(big_table):
    actions = [
        act("Vito", "kill", "Ann"),
        act("Jack", "kill", "Ann"),
        act("Maigret", "kill", "Bob"),
        act("Greta", "heal", "Ann"),
    ]
    resolution = resolve_night(actions, big_table, random.Random(0), day=1)
    assert resolution.deaths == ["Bob"]
    assert resolution.saved == ["Ann"]


def test_commissar_kill_can_be_healed(big_table):
    actions = [act("Maigret", "kill", "Vito"), act("Greta", "heal", "Vito")]
    resolution = resolve_night(actions, big_table, random.Random(0), day=1)
    assert resolution.deaths == []
    assert resolution.saved == ["Vito"]


def test_heal_without_attack_saves_nobody(big_table):
    resolution = resolve_night([act("Greta", "heal", "Bob")], big_table, random.Random(0), day=1)
    assert resolution.saved == []
    assert resolution.heal_target == "Bob"


def test_action_outside_vocabulary_is_ignored(big_table):
    actions = [act("Ann", "kill", "Vito"), act("Jack", "heal", "Bob")]
    resolution = resolve_night(actions, big_table, random.Random(0), day=1)
    assert resolution.deaths == []
    assert resolution.heal_target is None


def test_unknown_target_is_an_error(big_table):
    with pytest.raises(KeyError):
        resolve_night([act("Vito", "kill", "Nobody")], big_table, random.Random(0), day=1)
