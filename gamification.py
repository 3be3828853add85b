"""
=============================================================================
GAMIFICATION.PY — Progression rules
=============================================================================
Handles:
  - XP curve and levels (account level and tree level share it)
  - Guardian ranks
  - Tree health tiers and age
  - Reward application (profile + tree)
  - Achievements (catalog, threshold evaluation, idempotent unlock)

The formulas are pure functions. Everything that writes takes a Session
and leaves committing to the caller, except award_achievement(), which is
its own unit of work.
"""

import math
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session
from models import Profile, Tree, Achievement, UserAchievement, HealthStatus

logger = logging.getLogger("tamagotree.gamification")


# =============================================================================
# ===================== LEVELS ================================================
# =============================================================================
# xp_for_level(L) is the cost of entering level L from level L-1.
# Level 2 costs BASE_XP, from level 3 on: floor(BASE_XP * L^1.5)
#   L2 → 100, L3 → 519, L4 → 800, L5 → 1118 ...

BASE_XP = 100
XP_EXPONENT = 1.5


def xp_for_level(level: int) -> int:
    if level <= 1:
        return 0
    if level == 2:
        return BASE_XP
    return math.floor(BASE_XP * math.pow(level, XP_EXPONENT))


def total_xp_for_level(level: int) -> int:
    """Cumulative XP needed to stand at the start of `level`"""
    return sum(xp_for_level(lvl) for lvl in range(2, level + 1))


def level_from_xp(total_xp: int) -> int:
    """Greedily climbs levels while the next one is affordable"""
    level = 1
    accumulated = 0
    while total_xp >= accumulated + xp_for_level(level + 1):
        accumulated += xp_for_level(level + 1)
        level += 1
    return level


def level_progress(total_xp: int) -> dict:
    """
    Progress inside the current level.

    Returns:
      {"level": 2, "current": 50, "required": 519}
    with 0 <= current < required for any total_xp >= 0.
    """
    level = level_from_xp(total_xp)
    return {
        "level": level,
        "current": total_xp - total_xp_for_level(level),
        "required": xp_for_level(level + 1),
    }


def check_level_up(old_xp: int, new_xp: int) -> dict:
    """Only drives messaging. The stored level is always recomputed anyway."""
    old_level = level_from_xp(old_xp)
    new_level = level_from_xp(new_xp)
    return {
        "leveled_up": new_level > old_level,
        "old_level": old_level,
        "new_level": new_level,
    }


# =============================================================================
# ===================== GUARDIAN RANKS ========================================
# =============================================================================

GUARDIAN_RANKS = {
    1: "Seedling",
    3: "Sapling",
    5: "Sprout Guardian",
    10: "Grove Keeper",
    15: "Canopy Warden",
    20: "Forest Guardian",
    30: "Ancient Oak",
}


def get_guardian_rank(level: int) -> str:
    rank = GUARDIAN_RANKS[1]
    for lvl, name in sorted(GUARDIAN_RANKS.items()):
        if level >= lvl:
            rank = name
    return rank


def get_level_info(profile: Profile) -> dict:
    """Everything the profile header needs"""
    progress = level_progress(profile.total_xp)
    required = progress["required"]
    return {
        "level": progress["level"],
        "total_xp": profile.total_xp,
        "xp_in_level": progress["current"],
        "xp_next_level": required,
        "xp_progress": round(progress["current"] / required * 100, 1) if required > 0 else 100,
        "guardian_rank": get_guardian_rank(progress["level"]),
    }


# =============================================================================
# ===================== TREES: HEALTH AND AGE =================================
# =============================================================================

HEALTHY_THRESHOLD = 70
NEEDS_CARE_THRESHOLD = 40
CARE_HEALTH_BOOST = 10
MAX_HEALTH = 100


def health_status_for(health_percentage: int) -> str:
    if health_percentage >= HEALTHY_THRESHOLD:
        return HealthStatus.healthy.value
    if health_percentage >= NEEDS_CARE_THRESHOLD:
        return HealthStatus.needs_care.value
    return HealthStatus.critical.value


def calculate_tree_age_days(created_at: datetime, now: Optional[datetime] = None) -> int:
    """Whole days since planting, never negative"""
    now = now or datetime.utcnow()
    return max(0, (now - created_at).days)


def format_tree_age(age_days: int) -> str:
    if age_days == 0:
        return "Planted today"
    if age_days == 1:
        return "1 day old"
    return f"{age_days} days old"


# =============================================================================
# ===================== REWARDS ===============================================
# =============================================================================
# These mutate the ORM objects only. The caller commits, so a quest
# completion lands profile + tree + quest row in a single transaction.
# There is no row locking: two concurrent completions by the same user
# can still lose one increment.

def credit_profile(profile: Profile, acorns: int = 0, xp: int = 0) -> dict:
    """
    Adds acorns and XP, then recomputes level and guardian rank.

    Returns the level-up info:
      {"leveled_up": True, "old_level": 1, "new_level": 2}
    """
    old_xp = profile.total_xp or 0
    profile.acorns = (profile.acorns or 0) + acorns
    profile.total_xp = old_xp + xp
    profile.level = level_from_xp(profile.total_xp)
    profile.guardian_rank = get_guardian_rank(profile.level)
    return check_level_up(old_xp, profile.total_xp)


def credit_tree(tree: Tree, bloom_points: int = 0, health_boost: int = CARE_HEALTH_BOOST):
    """Adds bloom points and health (clamped to 100) and refreshes derived fields"""
    tree.xp_earned = (tree.xp_earned or 0) + bloom_points
    tree.level = level_from_xp(tree.xp_earned)
    tree.health_percentage = min(MAX_HEALTH, (tree.health_percentage or 0) + health_boost)
    tree.health_status = health_status_for(tree.health_percentage)


# =============================================================================
# ===================== ACHIEVEMENTS ==========================================
# =============================================================================
# Names are the lookup key. "Arborist" and "Branch Manager" both unlock at
# five trees: they are two different achievements.

ACHIEVEMENTS_DEFINITIONS = [
    # ── Trees planted ──
    {"name": "Life Bringer", "description": "Plant or adopt your first tree", "icon": "🌱", "category": "trees", "acorns": 50, "bp": 50},
    {"name": "Arborist", "description": "Care for 5 trees", "icon": "🌳", "category": "trees", "acorns": 150, "bp": 100},
    {"name": "Branch Manager", "description": "Manage a grove of 5 trees", "icon": "🌿", "category": "trees", "acorns": 150, "bp": 100},
    {"name": "Lean Green Climate Action Machine", "description": "Care for 10 trees", "icon": "🌍", "category": "trees", "acorns": 400, "bp": 250},

    # ── Bloom levels ──
    {"name": "Little Gardener", "description": "Raise a tree to level 5", "icon": "🌼", "category": "bloom", "acorns": 100, "bp": 100},
    {"name": "Forest Tender", "description": "Raise 5 trees to level 5", "icon": "🌸", "category": "bloom", "acorns": 500, "bp": 300},

    # ── Tree age ──
    {"name": "Rising Hope", "description": "Keep a tree for 10 days", "icon": "☀️", "category": "maintenance", "acorns": 100, "bp": 50},
    {"name": "Grove Guardian", "description": "Keep a tree for 50 days", "icon": "🛡️", "category": "maintenance", "acorns": 300, "bp": 200},
    {"name": "Savior", "description": "Keep a tree for 100 days", "icon": "👑", "category": "maintenance", "acorns": 750, "bp": 500},

    # ── Acorns ──
    {"name": "Money doesn't grow on trees.", "description": "Hold 1,000 acorns", "icon": "🌰", "category": "acorns", "acorns": 0, "bp": 100},
    {"name": "Entreepreneur", "description": "Hold 5,000 acorns", "icon": "💰", "category": "acorns", "acorns": 0, "bp": 250},
    {"name": "Making Bark Bank", "description": "Hold 10,000 acorns", "icon": "🏦", "category": "acorns", "acorns": 0, "bp": 500},

    # ── Leaderboard ──
    {"name": "County Leader", "description": "Reach the top 50", "icon": "🥉", "category": "leaderboard", "acorns": 100, "bp": 100},
    {"name": "County Superstar", "description": "Reach the top 10", "icon": "🥈", "category": "leaderboard", "acorns": 300, "bp": 200},
    {"name": "County Legend", "description": "Reach first place", "icon": "🥇", "category": "leaderboard", "acorns": 1000, "bp": 500},
]

TREE_COUNT_THRESHOLDS = [
    (1, "Life Bringer"),
    (5, "Arborist"),
    (5, "Branch Manager"),
    (10, "Lean Green Climate Action Machine"),
]
BLOOM_LEVEL = 5
BLOOM_COUNT_THRESHOLDS = [(1, "Little Gardener"), (5, "Forest Tender")]
TREE_AGE_THRESHOLDS = [(10, "Rising Hope"), (50, "Grove Guardian"), (100, "Savior")]
ACORN_THRESHOLDS = [
    (1000, "Money doesn't grow on trees."),
    (5000, "Entreepreneur"),
    (10000, "Making Bark Bank"),
]


def seed_achievements(db: Session):
    """Inserts the catalog rows that are missing. Runs on startup."""
    for ach_def in ACHIEVEMENTS_DEFINITIONS:
        existing = db.query(Achievement).filter(Achievement.name == ach_def["name"]).first()
        if not existing:
            db.add(Achievement(
                name=ach_def["name"],
                description=ach_def["description"],
                icon=ach_def["icon"],
                category=ach_def["category"],
                acorn_reward=ach_def["acorns"],
                bp_reward=ach_def["bp"],
            ))
    db.commit()
    logger.info(f"✅ {len(ACHIEVEMENTS_DEFINITIONS)} achievements checked in DB")


def tree_achievement_names(trees: list[Tree], now: Optional[datetime] = None) -> list[str]:
    """Tree count, level-5 tree count and oldest tree age thresholds"""
    names = [name for count, name in TREE_COUNT_THRESHOLDS if len(trees) >= count]

    bloomed = len([t for t in trees if (t.level or 1) >= BLOOM_LEVEL])
    names += [name for count, name in BLOOM_COUNT_THRESHOLDS if bloomed >= count]

    oldest = max((calculate_tree_age_days(t.created_at, now) for t in trees), default=0)
    names += [name for days, name in TREE_AGE_THRESHOLDS if oldest >= days]
    return names


def acorn_achievement_names(total_acorns: int) -> list[str]:
    return [name for amount, name in ACORN_THRESHOLDS if total_acorns >= amount]


def leaderboard_achievement_names(rank: int) -> list[str]:
    """rank is 1-indexed"""
    names = []
    if rank <= 50:
        names.append("County Leader")
    if rank <= 10:
        names.append("County Superstar")
    if rank == 1:
        names.append("County Legend")
    return names


def award_achievement(db: Session, profile: Profile, achievement_name: str) -> Optional[dict]:
    """
    Unlocks an achievement once and credits its rewards.

    Protocol: look up by name → check the unlock row → insert it and
    credit the profile, committed together.

    Returns:
      {"achievement_name": ..., "unlocked": True, "acorn_reward": 50, "bp_reward": 50}
      unlocked=False with zero rewards when it was already unlocked,
      None when the name is not in the catalog.
    """
    achievement = db.query(Achievement).filter(Achievement.name == achievement_name).first()
    if not achievement:
        logger.error(f"Achievement not found: {achievement_name}")
        return None

    existing = db.query(UserAchievement).filter(
        UserAchievement.user_id == profile.id,
        UserAchievement.achievement_id == achievement.id
    ).first()
    if existing:
        return {
            "achievement_name": achievement.name,
            "unlocked": False,
            "acorn_reward": 0,
            "bp_reward": 0,
        }

    db.add(UserAchievement(user_id=profile.id, achievement_id=achievement.id))
    credit_profile(profile, acorns=achievement.acorn_reward or 0, xp=achievement.bp_reward or 0)
    db.commit()

    logger.info(f"🏆 {profile.username} unlocked: {achievement.name}")
    return {
        "achievement_name": achievement.name,
        "unlocked": True,
        "acorn_reward": achievement.acorn_reward or 0,
        "bp_reward": achievement.bp_reward or 0,
    }


def _award_all(db: Session, profile: Profile, names: list[str]) -> list[dict]:
    results = []
    for name in names:
        result = award_achievement(db, profile, name)
        if result and result["unlocked"]:
            results.append(result)
    return results


def check_tree_achievements(db: Session, profile: Profile, now: Optional[datetime] = None) -> list[dict]:
    """Returns only the achievements unlocked by this call"""
    trees = db.query(Tree).filter(Tree.user_id == profile.id).all()
    return _award_all(db, profile, tree_achievement_names(trees, now))


def check_acorn_achievements(db: Session, profile: Profile) -> list[dict]:
    return _award_all(db, profile, acorn_achievement_names(profile.acorns or 0))


def check_leaderboard_achievements(db: Session, profile: Profile, rank: int) -> list[dict]:
    return _award_all(db, profile, leaderboard_achievement_names(rank))
