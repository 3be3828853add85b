from datetime import datetime, timedelta

import pytest

from models import Quest, UserQuest, CareTask
from quests import (
    week_start, should_reset_daily, should_reset_weekly,
    sync_weekly_quests, sync_tree_quests, complete_tree_quest,
)

# 2026-10-19 is a Monday
WEDNESDAY_NOON = datetime(2026, 10, 21, 12, 0)
SUNDAY_AFTERNOON = datetime(2026, 10, 25, 20, 0)


def _quest(db, name):
    return db.query(Quest).filter(Quest.name == name).one()


def _by_name(entries):
    return {entry["name"]: entry for entry in entries}


# ── reset boundaries ──

def test_week_start_is_monday_midnight_utc_minus_5():
    assert week_start(WEDNESDAY_NOON) == datetime(2026, 10, 19, 5, 0)


def test_week_start_before_local_monday():
    # Monday 03:00 UTC is still Sunday evening at UTC-5
    assert week_start(datetime(2026, 10, 19, 3, 0)) == datetime(2026, 10, 12, 5, 0)


def test_daily_reset_after_18_hours():
    now = datetime(2026, 10, 20, 12, 0)
    assert should_reset_daily(UserQuest(completed=True, last_reset_at=now - timedelta(hours=19)), now)
    assert not should_reset_daily(UserQuest(completed=True, last_reset_at=now - timedelta(hours=17)), now)
    assert not should_reset_daily(UserQuest(completed=False, last_reset_at=now - timedelta(days=3)), now)


def test_weekly_reset_only_on_sunday():
    sunday = datetime(2026, 10, 18, 17, 0)
    assert should_reset_weekly(UserQuest(completed=True, last_reset_at=datetime(2026, 10, 14, 12, 0)), sunday)
    # last reset already happened this Sunday (01:00 local)
    assert not should_reset_weekly(UserQuest(completed=True, last_reset_at=datetime(2026, 10, 18, 6, 0)), sunday)
    # Monday
    assert not should_reset_weekly(
        UserQuest(completed=True, last_reset_at=datetime(2026, 10, 14, 12, 0)), datetime(2026, 10, 19, 17, 0)
    )
    # Sunday 03:00 UTC is Saturday night locally
    assert not should_reset_weekly(
        UserQuest(completed=True, last_reset_at=datetime(2026, 10, 14, 12, 0)), datetime(2026, 10, 18, 3, 0)
    )


# ── daily tree quests ──

def test_tree_quests_are_instantiated_but_never_auto_completed(db, make_profile, make_tree):
    profile = make_profile("alice")
    tree = make_tree(profile)

    entries = sync_tree_quests(db, profile, tree, now=WEDNESDAY_NOON)

    assert set(_by_name(entries)) == {"Morning Dew", "Petal Performer", "Leaf Collector"}
    assert all(not entry["completed"] for entry in entries)
    assert all(entry["tree_id"] == tree.id for entry in entries)
    assert db.query(UserQuest).filter(UserQuest.tree_id == tree.id).count() == 3


def test_complete_tree_quest_rewards_profile_and_tree(db, make_profile, make_tree):
    profile = make_profile("alice")
    tree = make_tree(profile, health=95, created_at=WEDNESDAY_NOON - timedelta(days=1))

    result = complete_tree_quest(db, profile, tree, _quest(db, "Morning Dew"),
                                 photo_url="https://example.com/dew.jpg", now=WEDNESDAY_NOON)

    assert result["acorns_earned"] == 20
    assert result["xp_earned"] == 25
    assert result["bp_earned"] == 30
    assert result["tree_health_percentage"] == 100
    assert result["tree_health_status"] == "healthy"
    assert result["quest"]["completed"] is True
    assert [a["achievement_name"] for a in result["achievements"]] == ["Life Bringer"]

    db.refresh(profile)
    db.refresh(tree)
    # quest reward + Life Bringer (50 acorns, 50 bp)
    assert profile.acorns == 70
    assert profile.total_xp == 75
    assert tree.xp_earned == 30
    assert tree.health_percentage == 100

    task = db.query(CareTask).filter(CareTask.tree_id == tree.id).one()
    assert task.task_type == "Morning Dew"
    assert task.photo_url == "https://example.com/dew.jpg"


def test_completing_twice_in_one_period_fails(db, make_profile, make_tree):
    profile = make_profile("alice")
    tree = make_tree(profile)
    quest = _quest(db, "Leaf Collector")

    complete_tree_quest(db, profile, tree, quest, now=WEDNESDAY_NOON)
    with pytest.raises(ValueError):
        complete_tree_quest(db, profile, tree, quest, now=WEDNESDAY_NOON + timedelta(hours=2))

    db.refresh(tree)
    assert tree.xp_earned == 40


def test_daily_quest_available_again_after_reset(db, make_profile, make_tree):
    profile = make_profile("alice")
    tree = make_tree(profile)
    quest = _quest(db, "Petal Performer")

    complete_tree_quest(db, profile, tree, quest, now=WEDNESDAY_NOON)

    later = _by_name(sync_tree_quests(db, profile, tree, now=WEDNESDAY_NOON + timedelta(hours=1)))
    assert later["Petal Performer"]["completed"] is True
    assert later["Petal Performer"]["progress"] == 1

    next_day = _by_name(sync_tree_quests(db, profile, tree, now=WEDNESDAY_NOON + timedelta(hours=19)))
    assert next_day["Petal Performer"]["completed"] is False
    assert next_day["Petal Performer"]["progress"] == 0

    complete_tree_quest(db, profile, tree, quest, now=WEDNESDAY_NOON + timedelta(hours=19))
    assert db.query(CareTask).filter(CareTask.user_id == profile.id).count() == 2


def test_weekly_quest_cannot_be_completed_manually(db, make_profile, make_tree):
    profile = make_profile("alice")
    tree = make_tree(profile)

    with pytest.raises(ValueError):
        complete_tree_quest(db, profile, tree, _quest(db, "Busy Bee"), now=WEDNESDAY_NOON)


def test_completions_are_kept_per_tree(db, make_profile, make_tree):
    profile = make_profile("alice")
    first = make_tree(profile, name="First")
    second = make_tree(profile, name="Second")
    quest = _quest(db, "Morning Dew")

    complete_tree_quest(db, profile, first, quest, now=WEDNESDAY_NOON)
    complete_tree_quest(db, profile, second, quest, now=WEDNESDAY_NOON)

    assert db.query(UserQuest).filter(UserQuest.quest_id == quest.id, UserQuest.completed == True).count() == 2


# ── weekly account quests ──

def test_new_life_auto_completes_once(db, make_profile, make_tree):
    profile = make_profile("alice")
    make_tree(profile, created_at=datetime(2026, 10, 20, 12, 0))

    entries = _by_name(sync_weekly_quests(db, profile, now=WEDNESDAY_NOON))

    assert len(entries) == 6
    assert entries["New Life"]["completed"] is True
    assert entries["New Life"]["just_completed"] is True
    assert entries["Busy Bee"]["completed"] is False
    db.refresh(profile)
    assert profile.acorns == 100
    assert profile.total_xp == 150

    again = _by_name(sync_weekly_quests(db, profile, now=WEDNESDAY_NOON + timedelta(hours=1)))
    assert again["New Life"]["completed"] is True
    assert again["New Life"]["just_completed"] is False
    db.refresh(profile)
    assert profile.acorns == 100


def test_tree_planted_last_week_does_not_count(db, make_profile, make_tree):
    profile = make_profile("alice")
    make_tree(profile, created_at=datetime(2026, 10, 15, 12, 0))

    entries = _by_name(sync_weekly_quests(db, profile, now=WEDNESDAY_NOON))
    assert entries["New Life"]["progress"] == 0
    assert entries["New Life"]["completed"] is False


def test_busy_bee_counts_distinct_local_days(db, make_profile, make_tree):
    profile = make_profile("alice")
    tree = make_tree(profile, created_at=datetime(2026, 10, 1, 12, 0))
    for day in range(7):
        for hour in (15, 16):
            completed_at = datetime(2026, 10, 19 + day, hour, 0)
            db.add(CareTask(user_id=profile.id, tree_id=tree.id, task_type="Morning Dew",
                            scheduled_date=completed_at.date(), completed_at=completed_at))
    db.commit()

    midweek = _by_name(sync_weekly_quests(db, profile, now=WEDNESDAY_NOON))
    assert midweek["Busy Bee"]["progress"] == 2
    assert midweek["Busy Bee"]["target"] == 7

    entries = _by_name(sync_weekly_quests(db, profile, now=SUNDAY_AFTERNOON))
    assert entries["Busy Bee"]["progress"] == 7
    assert entries["Busy Bee"]["completed"] is True
    db.refresh(profile)
    assert profile.acorns == 200
    assert profile.total_xp == 300


def test_weekly_quest_resets_on_sunday(db, make_profile, make_tree):
    profile = make_profile("alice")
    make_tree(profile, created_at=datetime(2026, 10, 20, 12, 0))
    sync_weekly_quests(db, profile, now=WEDNESDAY_NOON)

    next_sunday = datetime(2026, 11, 1, 17, 0)
    entries = _by_name(sync_weekly_quests(db, profile, now=next_sunday))

    assert entries["New Life"]["completed"] is False
    assert entries["New Life"]["progress"] == 0
    assert entries["New Life"]["last_reset_at"] == next_sunday


def test_untracked_quests_never_complete(db, make_profile):
    profile = make_profile("alice")
    entries = _by_name(sync_weekly_quests(db, profile, now=WEDNESDAY_NOON))

    for name in ("Social Butterfly", "TOP 10!", "TOP 5!", "ON TOP!"):
        assert entries[name]["completed"] is False
        assert entries[name]["progress"] == 0


def test_sunday_reset_does_not_pay_the_same_week_twice(db, make_profile, make_tree):
    profile = make_profile("alice")
    make_tree(profile, created_at=datetime(2026, 10, 19, 12, 0))

    monday = _by_name(sync_weekly_quests(db, profile, now=datetime(2026, 10, 19, 13, 0)))
    assert monday["New Life"]["just_completed"] is True

    sunday = _by_name(sync_weekly_quests(db, profile, now=datetime(2026, 10, 25, 17, 0)))
    assert sunday["New Life"]["completed"] is False
    assert sunday["New Life"]["progress"] == 0
    db.refresh(profile)
    assert profile.acorns == 100
    assert profile.total_xp == 150

    # a tree planted after the reset belongs to the new period
    make_tree(profile, name="Sunday Elm", created_at=datetime(2026, 10, 25, 18, 0))
    later = _by_name(sync_weekly_quests(db, profile, now=datetime(2026, 10, 25, 19, 0)))
    assert later["New Life"]["just_completed"] is True
    db.refresh(profile)
    assert profile.acorns == 200


def test_busy_bee_counts_only_days_after_a_reset(db, make_profile, make_tree):
    profile = make_profile("alice")
    tree = make_tree(profile, created_at=datetime(2026, 10, 1, 12, 0))
    for day in range(6):
        completed_at = datetime(2026, 10, 19 + day, 15, 0)
        db.add(CareTask(user_id=profile.id, tree_id=tree.id, task_type="Morning Dew",
                        scheduled_date=completed_at.date(), completed_at=completed_at))
    db.commit()
    sync_weekly_quests(db, profile, now=datetime(2026, 10, 19, 10, 0))

    busy_bee = db.query(UserQuest).join(Quest).filter(
        UserQuest.user_id == profile.id, Quest.name == "Busy Bee"
    ).one()
    busy_bee.completed = True
    busy_bee.completed_at = datetime(2026, 10, 24, 16, 0)
    db.commit()

    sunday = datetime(2026, 10, 25, 17, 0)
    reset = _by_name(sync_weekly_quests(db, profile, now=sunday))
    assert reset["Busy Bee"]["progress"] == 0

    db.add(CareTask(user_id=profile.id, tree_id=tree.id, task_type="Morning Dew",
                    scheduled_date=sunday.date(), completed_at=sunday + timedelta(minutes=30)))
    db.commit()

    entries = _by_name(sync_weekly_quests(db, profile, now=sunday + timedelta(hours=1)))
    assert entries["Busy Bee"]["completed"] is False
    assert entries["Busy Bee"]["progress"] == 1
