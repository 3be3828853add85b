from datetime import datetime, timedelta

import pytest

from models import Decoration, UserDecoration, Friendship
from shop import purchase_decoration, clamp_position
from friends import (
    are_friends, friend_ids, send_friend_request, accept_friend_request, remove_friend,
    create_task_request, complete_task_request,
)

NOW = datetime(2026, 10, 21, 12, 0)


def _decoration(db, name):
    return db.query(Decoration).filter(Decoration.name == name).one()


def _befriend(db, a, b):
    request = send_friend_request(db, a, b.id)
    accept_friend_request(db, b, request)


# ── shop ──

def test_purchase_deducts_acorns(db, make_profile):
    profile = make_profile("alice", acorns=120)
    purchase_decoration(db, profile, _decoration(db, "bow"))

    db.refresh(profile)
    assert profile.acorns == 20
    assert db.query(UserDecoration).filter(UserDecoration.user_id == profile.id).count() == 1


def test_purchase_twice_is_rejected(db, make_profile):
    profile = make_profile("alice", acorns=500)
    bow = _decoration(db, "bow")
    purchase_decoration(db, profile, bow)

    with pytest.raises(LookupError):
        purchase_decoration(db, profile, bow)
    db.refresh(profile)
    assert profile.acorns == 400


def test_purchase_without_enough_acorns(db, make_profile):
    profile = make_profile("alice", acorns=50)

    with pytest.raises(ValueError):
        purchase_decoration(db, profile, _decoration(db, "whale"))
    db.refresh(profile)
    assert profile.acorns == 50


def test_clamp_position():
    assert clamp_position(-5) == 0
    assert clamp_position(150) == 100
    assert clamp_position(42.5) == 42.5


# ── friendships ──

def test_cannot_befriend_yourself(db, make_profile):
    alice = make_profile("alice")
    with pytest.raises(ValueError):
        send_friend_request(db, alice, alice.id)


def test_duplicate_request_in_either_direction(db, make_profile):
    alice = make_profile("alice")
    bob = make_profile("bob")
    send_friend_request(db, alice, bob.id)

    with pytest.raises(LookupError):
        send_friend_request(db, alice, bob.id)
    with pytest.raises(LookupError):
        send_friend_request(db, bob, alice.id)


def test_accept_makes_one_mutual_friendship(db, make_profile):
    alice = make_profile("alice")
    bob = make_profile("bob")
    request = send_friend_request(db, alice, bob.id)

    assert not are_friends(db, alice.id, bob.id)
    accept_friend_request(db, bob, request)

    assert are_friends(db, alice.id, bob.id)
    assert are_friends(db, bob.id, alice.id)
    assert db.query(Friendship).filter(Friendship.status == "accepted").count() == 1
    assert friend_ids(db, alice.id) == [bob.id]
    assert friend_ids(db, bob.id) == [alice.id]


def test_either_side_can_remove_the_friendship(db, make_profile):
    alice = make_profile("alice")
    bob = make_profile("bob")
    _befriend(db, alice, bob)

    assert remove_friend(db, bob, alice.id) == 1
    assert db.query(Friendship).count() == 0
    assert not are_friends(db, alice.id, bob.id)


def test_rejected_request_can_be_sent_again(db, make_profile):
    alice = make_profile("alice")
    bob = make_profile("bob")
    request = send_friend_request(db, alice, bob.id)
    request.status = "rejected"
    db.commit()

    again = send_friend_request(db, bob, alice.id)
    assert again.id == request.id
    assert (again.user_id, again.friend_id, again.status) == (bob.id, alice.id, "pending")
    assert db.query(Friendship).count() == 1


# ── friend task requests ──

def test_task_request_needs_an_accepted_friend(db, make_profile, make_tree):
    alice = make_profile("alice")
    bob = make_profile("bob")
    tree = make_tree(alice)

    with pytest.raises(ValueError):
        create_task_request(db, alice, tree, bob.id, "Morning Dew", now=NOW)


def test_task_request_validation(db, make_profile, make_tree):
    alice = make_profile("alice")
    bob = make_profile("bob")
    _befriend(db, alice, bob)
    bobs_tree = make_tree(bob)
    alices_tree = make_tree(alice)

    with pytest.raises(ValueError):
        create_task_request(db, alice, bobs_tree, bob.id, "Morning Dew", now=NOW)
    with pytest.raises(ValueError):
        create_task_request(db, alice, alices_tree, bob.id, "Dance", now=NOW)


def test_task_request_expires_after_24_hours(db, make_profile, make_tree):
    alice = make_profile("alice")
    bob = make_profile("bob")
    _befriend(db, alice, bob)
    request = create_task_request(db, alice, make_tree(alice), bob.id, "Petal Performer", now=NOW)

    assert request.expires_at == NOW + timedelta(hours=24)
    assert request.requester_reward_acorns == 200
    assert request.helper_reward_bp == 50
    with pytest.raises(ValueError):
        complete_task_request(db, bob, request, now=NOW + timedelta(hours=25))


def test_only_the_helper_completes(db, make_profile, make_tree):
    alice = make_profile("alice")
    bob = make_profile("bob")
    _befriend(db, alice, bob)
    request = create_task_request(db, alice, make_tree(alice), bob.id, "Morning Dew", now=NOW)

    with pytest.raises(PermissionError):
        complete_task_request(db, alice, request, now=NOW + timedelta(hours=1))


def test_completion_rewards_both_players_and_the_tree(db, make_profile, make_tree):
    alice = make_profile("alice")
    bob = make_profile("bob")
    _befriend(db, alice, bob)
    tree = make_tree(alice, health=50)
    request = create_task_request(db, alice, tree, bob.id, "Morning Dew", now=NOW)

    complete_task_request(db, bob, request, now=NOW + timedelta(hours=1))

    for profile in (alice, bob):
        db.refresh(profile)
        assert profile.acorns == 100
        assert profile.total_xp == 100
        assert profile.level == 2
    db.refresh(tree)
    assert tree.xp_earned == 100
    assert tree.level == 2
    assert tree.health_percentage == 50
    assert request.status == "completed"
    assert request.completed_at == NOW + timedelta(hours=1)

    with pytest.raises(ValueError):
        complete_task_request(db, bob, request, now=NOW + timedelta(hours=2))
