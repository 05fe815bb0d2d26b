import random

import pytest

from lupus.errors import InsufficientRoles, InvalidRoleCounts
from lupus.game_logic import CoupleState, Room, same_name


def make_room(*names):
    room = Room("ABCD", "Alice", "secret", host_connection="sid-host")
    for name in names:
        room.add_player(name, f"sid-{name.lower()}")
    return room


def snapshot(room):
    return (
        room.game_started,
        room.voting_open,
        room.role_counts,
        room.couple,
        [(p.name, p.role, p.eliminated, p.current_vote) for p in room.players],
    )


def test_same_name_trims_and_ignores_case():
    assert same_name("  BoB ", "bob")
    assert not same_name("Bob", "Bobby")


def test_host_name_is_trimmed():
    room = Room("ABCD", "  Alice ", "secret")
    assert room.host_name == "Alice"
    assert room.is_host_name("ALICE")


def test_find_player_case_insensitive():
    room = make_room("Bob")
    assert room.find_player(" bob").name == "Bob"
    assert room.find_player_by_connection("sid-bob").name == "Bob"
    assert room.find_player("Carol") is None


def test_start_game_deals_to_every_player():
    room = make_room("Bob", "Carol")
    dealt = room.start_game({"wolves": 1, "villagers": 2}, random.Random(5))

    assert room.game_started
    assert not room.voting_open
    assert all(p.role in ("wolf", "villager") for p in room.players)
    assert len(dealt.candidates) == 2
    assert room.role_counts["wolves"] == 1


def test_start_game_with_short_deck_changes_nothing():
    room = make_room("Bob", "Carol", "Dan")
    room.start_game({"villagers": 3}, random.Random(1))
    room.players[0].eliminated = True
    room.open_voting()
    room.players[1].current_vote = "Dan"
    before = snapshot(room)

    with pytest.raises(InsufficientRoles):
        room.start_game({"wolves": 1, "villagers": 1})

    assert snapshot(room) == before


def test_start_game_rejects_invalid_counts_without_mutating():
    room = make_room("Bob")
    before = snapshot(room)
    with pytest.raises(InvalidRoleCounts):
        room.start_game({"wolves": -2})
    assert snapshot(room) == before


def test_restart_then_start_leaves_no_residue():
    room = make_room("Bob", "Carol", "Dan", "Eve")
    counts = {"wolves": 1, "villagers": 1, "couple": 1}
    room.start_game(counts, random.Random(2))
    room.open_voting()
    room.cast_vote(room.players[0], "Carol")
    room.eliminate("Bob")

    room.restart()
    assert not room.game_started
    assert room.role_counts is None
    assert room.couple is None
    assert all(p.role == "" and not p.eliminated and p.current_vote is None for p in room.players)

    room.start_game(counts, random.Random(9))
    assert not any(p.eliminated or p.current_vote for p in room.players)
    assert all(p.role for p in room.players)
    assert room.couple is not None
    assert room.couple.sleep_at == "romeo"
    assert room.tally() == {}


def test_start_game_tracks_first_couple():
    room = make_room("Dan", "Eve")
    dealt = room.start_game({"couple": 1}, random.Random(4))
    roles = {p.name: p.role for p in room.players}
    assert sorted(roles.values()) == ["giulietta", "romeo"]
    assert len(dealt.pairs) == 1
    assert roles[room.couple.romeo] == "romeo"
    assert roles[room.couple.giulietta] == "giulietta"


def test_open_voting_requires_started_game():
    room = make_room("Bob")
    assert room.open_voting() is False
    assert not room.voting_open


def test_open_voting_clears_previous_votes():
    room = make_room("Bob", "Carol")
    room.start_game({"villagers": 2})
    room.open_voting()
    room.cast_vote(room.find_player("Bob"), "Carol")
    room.close_voting()

    room.open_voting()
    assert room.find_player("Bob").current_vote is None


def test_votes_ignored_when_voting_closed():
    room = make_room("Bob", "Carol")
    room.start_game({"villagers": 2})
    assert room.cast_vote(room.find_player("Bob"), "Carol") is False
    assert room.find_player("Bob").current_vote is None


def test_empty_target_retracts_vote():
    room = make_room("Bob", "Carol")
    room.start_game({"villagers": 2})
    room.open_voting()
    bob = room.find_player("Bob")
    room.cast_vote(bob, "carol")
    assert bob.current_vote == "Carol"
    assert room.cast_vote(bob, "  ") is True
    assert bob.current_vote is None


def test_vote_for_unknown_or_dead_target_is_ignored():
    room = make_room("Bob", "Carol")
    room.start_game({"villagers": 2})
    room.open_voting()
    bob = room.find_player("Bob")
    assert room.cast_vote(bob, "Zed") is False
    room.find_player("Carol").eliminated = True
    assert room.cast_vote(bob, "Carol") is False


def test_eliminated_player_cannot_vote():
    room = make_room("Bob", "Carol")
    room.start_game({"villagers": 2})
    room.open_voting()
    bob = room.find_player("Bob")
    bob.eliminated = True
    assert room.cast_vote(bob, "Carol") is False
    assert room.retract_vote(bob) is False


def test_mayor_vote_counts_double():
    room = make_room("Frank", "Grace", "Heidi")
    room.start_game({"villagers": 3})
    room.open_voting()
    frank = room.find_player("Frank")
    room.cast_vote(frank, "Grace")
    room.cast_vote(room.find_player("Heidi"), "Grace")
    assert room.tally()["grace"].votes == 2

    frank.role = "mayor"
    room.cast_vote(frank, "Grace")
    tally = room.tally()["grace"]
    assert tally.votes == 3
    assert tally.voted_by == ["Frank (x2)", "Heidi"]


def test_votes_of_eliminated_voters_do_not_count():
    room = make_room("Bob", "Carol")
    room.start_game({"villagers": 2})
    room.open_voting()
    room.cast_vote(room.find_player("Bob"), "Carol")
    room.find_player("Bob").eliminated = True
    assert room.tally() == {}


def paired_room(sleep_at="romeo"):
    room = make_room("Dan", "Eve", "Mia")
    room.game_started = True
    room.find_player("Dan").role = "romeo"
    room.find_player("Eve").role = "giulietta"
    room.find_player("Mia").role = "medium"
    room.couple = CoupleState("Dan", "Eve", sleep_at)
    return room


def test_sheltered_giulietta_survives():
    room = paired_room()
    outcome = room.eliminate("Eve")
    assert outcome.vetoed
    assert outcome.sheltered_by == "Dan"
    assert not outcome.changed
    assert not room.find_player("Eve").eliminated
    assert not room.find_player("Dan").eliminated


def test_giulietta_dies_alone_when_sleeping_at_home():
    room = paired_room(sleep_at="giulietta")
    outcome = room.eliminate("eve")
    assert not outcome.vetoed
    assert [p.name for p in outcome.eliminated] == ["Eve"]
    assert not outcome.couple_died
    assert not room.find_player("Dan").eliminated


@pytest.mark.parametrize("sleep_at", ["romeo", "giulietta"])
def test_romeo_takes_giulietta_with_him(sleep_at):
    room = paired_room(sleep_at)
    outcome = room.eliminate("Dan")
    assert [p.name for p in outcome.eliminated] == ["Dan", "Eve"]
    assert outcome.couple_died


def test_eliminate_unknown_or_dead_is_noop():
    room = paired_room()
    assert not room.eliminate("Nobody").changed
    room.find_player("Mia").eliminated = True
    assert not room.eliminate("Mia").changed


def test_revive_is_idempotent():
    room = make_room("Bob", "Carol")
    room.start_game({"villagers": 2})
    room.open_voting()
    bob = room.find_player("Bob")
    room.cast_vote(bob, "Carol")
    bob.eliminated = True

    room.revive("bob")
    first = snapshot(room)
    room.revive("bob")
    assert snapshot(room) == first
    assert not bob.eliminated
    assert bob.current_vote is None
    assert room.revive("Nobody") is None


def test_revealed_role_falls_back_to_villager():
    room = paired_room()
    assert room.revealed_role(room.find_player("Dan")) == "romeo"
    room.add_player("Zoe", "sid-zoe")
    assert room.revealed_role(room.find_player("Zoe")) == "villager"


def test_reveal_recipients_are_live_online_mediums():
    room = paired_room()
    assert [p.name for p in room.reveal_recipients()] == ["Mia"]
    room.find_player("Mia").go_offline()
    assert room.reveal_recipients() == []


def test_only_couple_members_choose_where_to_sleep():
    room = paired_room()
    assert room.set_couple_sleep(room.find_player("Mia"), "giulietta") is None
    assert room.set_couple_sleep(room.find_player("Eve"), "Mars") is None
    assert room.set_couple_sleep(room.find_player("Eve"), " Giulietta ") == "giulietta"
    assert room.couple.sleep_at == "giulietta"
    room.find_player("Dan").eliminated = True
    assert room.set_couple_sleep(room.find_player("Dan"), "romeo") is None


def test_non_text_names_are_blank():
    room = make_room("Bob")
    assert room.find_player(42) is None
    assert not room.is_host_name(["Alice"])


def test_couple_sleep_ignores_non_text_side():
    room = paired_room()
    assert room.set_couple_sleep(room.find_player("Eve"), 7) is None
    assert room.couple.sleep_at == "romeo"


def test_oversized_counts_rejected_before_touching_room():
    room = make_room("Bob", "Carol")
    before = snapshot(room)
    with pytest.raises(InvalidRoleCounts):
        room.start_game({"wolves": 10**12})
    assert snapshot(room) == before
