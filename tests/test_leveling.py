from datetime import datetime, timedelta

from gamification import (
    xp_for_level, total_xp_for_level, level_from_xp, level_progress, check_level_up,
    get_guardian_rank, health_status_for, calculate_tree_age_days, format_tree_age,
    credit_profile, credit_tree,
)
from models import Profile, Tree


def test_xp_for_level_curve():
    assert xp_for_level(1) == 0
    assert xp_for_level(2) == 100
    assert xp_for_level(3) == 519
    assert xp_for_level(4) == 800


def test_level_from_xp_thresholds():
    assert level_from_xp(0) == 1
    assert level_from_xp(99) == 1
    assert level_from_xp(100) == 2
    assert level_from_xp(150) == 2
    assert level_from_xp(618) == 2
    assert level_from_xp(619) == 3


def test_level_from_xp_is_monotonic():
    levels = [level_from_xp(xp) for xp in range(0, 20000, 37)]
    assert levels == sorted(levels)


def test_total_xp_round_trip():
    for level in range(1, 25):
        assert level_from_xp(total_xp_for_level(level)) == level
        if level > 1:
            assert level_from_xp(total_xp_for_level(level) - 1) == level - 1


def test_level_progress_stays_inside_level():
    for xp in range(0, 10000, 53):
        progress = level_progress(xp)
        assert 0 <= progress["current"] < progress["required"]
        assert progress["level"] == level_from_xp(xp)


def test_check_level_up():
    assert check_level_up(90, 110) == {"leveled_up": True, "old_level": 1, "new_level": 2}
    assert check_level_up(110, 120)["leveled_up"] is False


def test_guardian_ranks():
    assert get_guardian_rank(1) == "Seedling"
    assert get_guardian_rank(3) == "Sapling"
    assert get_guardian_rank(12) == "Grove Keeper"
    assert get_guardian_rank(99) == "Ancient Oak"


def test_health_tiers():
    assert health_status_for(100) == "healthy"
    assert health_status_for(70) == "healthy"
    assert health_status_for(69) == "needs_care"
    assert health_status_for(40) == "needs_care"
    assert health_status_for(39) == "critical"
    assert health_status_for(0) == "critical"


def test_tree_age():
    now = datetime(2026, 10, 20, 12, 0)
    assert calculate_tree_age_days(now - timedelta(days=10, hours=3), now) == 10
    assert calculate_tree_age_days(now + timedelta(days=2), now) == 0
    assert format_tree_age(0) == "Planted today"
    assert format_tree_age(1) == "1 day old"
    assert format_tree_age(12) == "12 days old"


def test_credit_profile_recomputes_level_and_rank():
    profile = Profile(acorns=0, total_xp=0, level=1, guardian_rank="Seedling")
    result = credit_profile(profile, acorns=20, xp=150)

    assert profile.acorns == 20
    assert profile.total_xp == 150
    assert profile.level == 2
    assert profile.guardian_rank == "Seedling"
    assert result["leveled_up"] is True


def test_credit_tree_clamps_health():
    tree = Tree(health_percentage=95, health_status="healthy", xp_earned=0, level=1)
    credit_tree(tree, bloom_points=30)

    assert tree.health_percentage == 100
    assert tree.health_status == "healthy"
    assert tree.xp_earned == 30
    assert tree.level == 1


def test_credit_tree_lifts_health_tier():
    tree = Tree(health_percentage=65, health_status="needs_care", xp_earned=90, level=1)
    credit_tree(tree, bloom_points=10)

    assert tree.health_percentage == 75
    assert tree.health_status == "healthy"
    assert tree.level == 2
