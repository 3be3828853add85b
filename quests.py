"""
=============================================================================
QUESTS.PY — Quest lifecycle
=============================================================================
Per (user, quest, tree-or-NULL) progress row:

  not started ──(instantiate)──→ active ──(target reached)──→ completed
                                    ↑                            │
                                    └──────────(reset)───────────┘

Two scopes, two completion triggers:
  - WEEKLY (account-wide): completed automatically as soon as the computed
    progress reaches the target, rewards applied on the spot.
  - DAILY (tree-specific): completed only when the player confirms it
    (optionally with a photo).

Nothing here runs on a timer. Resets and progress are reconciled when a
quest list is read.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

import pytz
from sqlalchemy.orm import Session

from models import Profile, Tree, Quest, UserQuest, CareTask, QuestType, QuestKind
from gamification import (
    credit_profile, credit_tree, check_tree_achievements, check_acorn_achievements
)

logger = logging.getLogger("tamagotree.quests")


# =============================================================================
# ===================== RESET BOUNDARIES ======================================
# =============================================================================
# The weekly boundary uses a FIXED UTC-5 offset ("EST"), with no daylight
# saving adjustment. All stored datetimes are naive UTC.

DAILY_RESET_INTERVAL = timedelta(hours=18)
RESET_TIMEZONE = pytz.FixedOffset(-5 * 60)
SUNDAY = 6


def to_reset_zone(dt: datetime) -> datetime:
    """Naive UTC → aware datetime in the fixed UTC-5 zone"""
    return pytz.utc.localize(dt).astimezone(RESET_TIMEZONE)


def week_start(now: datetime) -> datetime:
    """Monday 00:00 (UTC-5) of the current week, as naive UTC"""
    local = to_reset_zone(now)
    monday = (local - timedelta(days=local.weekday())).replace(
        hour=0, minute=0, second=0, microsecond=0
    )
    return monday.astimezone(pytz.utc).replace(tzinfo=None)


def should_reset_daily(user_quest: UserQuest, now: datetime) -> bool:
    if not user_quest.completed:
        return False
    return now - user_quest.last_reset_at >= DAILY_RESET_INTERVAL


def should_reset_weekly(user_quest: UserQuest, now: datetime) -> bool:
    """
    Coarse Sunday check: it is Sunday now, the last reset was not on a
    Sunday, and at least one whole day has passed since it.
    """
    if not user_quest.completed:
        return False
    now_local = to_reset_zone(now)
    last_local = to_reset_zone(user_quest.last_reset_at)
    elapsed_days = (now - user_quest.last_reset_at).days
    return now_local.weekday() == SUNDAY and last_local.weekday() != SUNDAY and elapsed_days > 0


def period_start(user_quest: UserQuest, now: datetime) -> datetime:
    """
    Start of the window weekly progress is counted over: Monday 00:00, or
    the last reset if the row was reset later than that. Activity already
    rewarded before a Sunday reset does not count again.
    """
    start = week_start(now)
    was_reset = user_quest.created_at is not None and user_quest.last_reset_at > user_quest.created_at
    if was_reset and user_quest.last_reset_at > start:
        return user_quest.last_reset_at
    return start


def reset_user_quest(user_quest: UserQuest, now: datetime):
    """Rewrites the row in place"""
    user_quest.progress = 0
    user_quest.completed = False
    user_quest.completed_at = None
    user_quest.last_reset_at = now


# =============================================================================
# ===================== CATALOG ===============================================
# =============================================================================

QUEST_DEFINITIONS = [
    # ── Daily, per tree ──
    {"name": "Morning Dew", "description": "Water your tree", "icon": "💧", "category": "care",
     "quest_type": QuestType.daily, "kind": QuestKind.tree_care, "tree_specific": True,
     "acorns": 20, "bp": 30, "xp": 25},
    {"name": "Petal Performer", "description": "Care for your tree's flowers", "icon": "🌸", "category": "care",
     "quest_type": QuestType.daily, "kind": QuestKind.tree_care, "tree_specific": True,
     "acorns": 30, "bp": 20, "xp": 25},
    {"name": "Leaf Collector", "description": "Clean up fallen leaves around your tree", "icon": "🍂", "category": "care",
     "quest_type": QuestType.daily, "kind": QuestKind.tree_care, "tree_specific": True,
     "acorns": 20, "bp": 40, "xp": 25},

    # ── Weekly, account-wide ──
    {"name": "Busy Bee", "description": "Complete a daily quest on 7 different days this week", "icon": "🐝", "category": "weekly",
     "quest_type": QuestType.weekly, "kind": QuestKind.busy_bee, "tree_specific": False,
     "acorns": 200, "bp": 0, "xp": 300},
    {"name": "New Life", "description": "Plant a new tree this week", "icon": "🌱", "category": "weekly",
     "quest_type": QuestType.weekly, "kind": QuestKind.new_life, "tree_specific": False,
     "acorns": 100, "bp": 0, "xp": 150},
    {"name": "Social Butterfly", "description": "Help a friend with their tree", "icon": "🦋", "category": "weekly",
     "quest_type": QuestType.weekly, "kind": QuestKind.social_butterfly, "tree_specific": False,
     "acorns": 100, "bp": 0, "xp": 100},
    {"name": "TOP 10!", "description": "Stay in the top 10 for 3 days", "icon": "🔟", "category": "leaderboard",
     "quest_type": QuestType.weekly, "kind": QuestKind.top_10, "tree_specific": False,
     "acorns": 200, "bp": 0, "xp": 200},
    {"name": "TOP 5!", "description": "Stay in the top 5 for 3 days", "icon": "🏅", "category": "leaderboard",
     "quest_type": QuestType.weekly, "kind": QuestKind.top_5, "tree_specific": False,
     "acorns": 300, "bp": 0, "xp": 300},
    {"name": "ON TOP!", "description": "Stay in first place for 3 days", "icon": "👑", "category": "leaderboard",
     "quest_type": QuestType.weekly, "kind": QuestKind.on_top, "tree_specific": False,
     "acorns": 500, "bp": 0, "xp": 500},
]


def seed_quests(db: Session):
    """Inserts the catalog rows that are missing. Runs on startup."""
    for quest_def in QUEST_DEFINITIONS:
        existing = db.query(Quest).filter(Quest.name == quest_def["name"]).first()
        if not existing:
            db.add(Quest(
                name=quest_def["name"],
                description=quest_def["description"],
                icon=quest_def["icon"],
                category=quest_def["category"],
                quest_type=quest_def["quest_type"].value,
                kind=quest_def["kind"].value,
                tree_specific=quest_def["tree_specific"],
                acorn_reward=quest_def["acorns"],
                bp_reward=quest_def["bp"],
                xp_reward=quest_def["xp"],
            ))
    db.commit()
    logger.info(f"✅ {len(QUEST_DEFINITIONS)} quests checked in DB")


# =============================================================================
# ===================== PROGRESS ==============================================
# =============================================================================
# One rule per QuestKind. Each returns {"current": int, "target": int}.

def _tree_care_progress(db: Session, profile: Profile, user_quest: UserQuest, now: datetime) -> dict:
    return {"current": 1 if user_quest.completed else 0, "target": 1}


def _busy_bee_progress(db: Session, profile: Profile, user_quest: UserQuest, now: datetime) -> dict:
    rows = db.query(CareTask.completed_at).filter(
        CareTask.user_id == profile.id,
        CareTask.completed_at >= period_start(user_quest, now),
        CareTask.completed_at <= now
    ).all()
    days = {to_reset_zone(completed_at).date() for (completed_at,) in rows}
    return {"current": len(days), "target": 7}


def _new_life_progress(db: Session, profile: Profile, user_quest: UserQuest, now: datetime) -> dict:
    planted = db.query(Tree).filter(
        Tree.user_id == profile.id,
        Tree.created_at >= period_start(user_quest, now),
        Tree.created_at <= now
    ).count()
    return {"current": planted, "target": 1}


def _untracked(target: int):
    def rule(db: Session, profile: Profile, user_quest: UserQuest, now: datetime) -> dict:
        return {"current": 0, "target": target}
    return rule


PROGRESS_RULES = {
    QuestKind.tree_care: _tree_care_progress,
    QuestKind.busy_bee: _busy_bee_progress,
    QuestKind.new_life: _new_life_progress,
    # Friend and leaderboard-streak tracking do not exist yet: never complete.
    QuestKind.social_butterfly: _untracked(1),
    QuestKind.top_10: _untracked(3),
    QuestKind.top_5: _untracked(3),
    QuestKind.on_top: _untracked(3),
}


def compute_progress(db: Session, profile: Profile, quest: Quest, user_quest: UserQuest, now: datetime) -> dict:
    try:
        rule = PROGRESS_RULES[QuestKind(quest.kind)]
    except (ValueError, KeyError):
        rule = _untracked(1)
    return rule(db, profile, user_quest, now)


# =============================================================================
# ===================== RECONCILIATION ========================================
# =============================================================================

def ensure_user_quests(db: Session, profile: Profile, quests: list[Quest],
                       tree: Optional[Tree], now: datetime) -> dict:
    """
    Returns {quest_id: UserQuest}, inserting a fresh row for every quest
    that has none yet for this user (and tree).
    """
    query = db.query(UserQuest).filter(
        UserQuest.user_id == profile.id,
        UserQuest.quest_id.in_([q.id for q in quests])
    )
    if tree is not None:
        query = query.filter(UserQuest.tree_id == tree.id)
    else:
        query = query.filter(UserQuest.tree_id.is_(None))

    rows = {uq.quest_id: uq for uq in query.all()}
    for quest in quests:
        if quest.id not in rows:
            user_quest = UserQuest(
                user_id=profile.id,
                quest_id=quest.id,
                tree_id=tree.id if tree is not None else None,
                completed=False,
                progress=0,
                last_reset_at=now,
                created_at=now,
            )
            db.add(user_quest)
            rows[quest.id] = user_quest
    db.flush()
    return rows


def _entry(quest: Quest, user_quest: UserQuest, progress: dict, just_completed: bool = False) -> dict:
    return {
        "id": user_quest.id,
        "quest_id": quest.id,
        "tree_id": user_quest.tree_id,
        "name": quest.name,
        "description": quest.description,
        "icon": quest.icon,
        "quest_type": quest.quest_type,
        "kind": quest.kind,
        "completed": bool(user_quest.completed),
        "completed_at": user_quest.completed_at,
        "last_reset_at": user_quest.last_reset_at,
        "progress": progress["current"],
        "target": progress["target"],
        "acorn_reward": quest.acorn_reward or 0,
        "bp_reward": quest.bp_reward or 0,
        "xp_reward": quest.xp_reward or 0,
        "just_completed": just_completed,
    }


def sync_weekly_quests(db: Session, profile: Profile, now: Optional[datetime] = None) -> list[dict]:
    """
    Page-load reconciliation for account-wide quests:
      1. Insert missing progress rows
      2. Reset rows that crossed the Sunday boundary
      3. Recompute progress
      4. Auto-complete and reward the ones that reached their target
    """
    now = now or datetime.utcnow()
    quests = db.query(Quest).filter(
        Quest.quest_type == QuestType.weekly.value,
        Quest.tree_specific == False
    ).order_by(Quest.id).all()
    rows = ensure_user_quests(db, profile, quests, None, now)

    entries = []
    completed_any = False
    for quest in quests:
        user_quest = rows[quest.id]
        if should_reset_weekly(user_quest, now):
            reset_user_quest(user_quest, now)
            logger.info(f"🔄 Weekly quest reset: {quest.name} ({profile.username})")

        progress = compute_progress(db, profile, quest, user_quest, now)
        user_quest.progress = progress["current"]

        just_completed = False
        if progress["current"] >= progress["target"] and not user_quest.completed:
            user_quest.completed = True
            user_quest.completed_at = now
            credit_profile(profile, acorns=quest.acorn_reward or 0, xp=quest.xp_reward or 0)
            just_completed = completed_any = True
            logger.info(f"🎯 Weekly quest completed: {quest.name} ({profile.username})")

        entries.append(_entry(quest, user_quest, progress, just_completed))

    db.commit()

    if completed_any:
        check_acorn_achievements(db, profile)
    return entries


def sync_tree_quests(db: Session, profile: Profile, tree: Tree, now: Optional[datetime] = None) -> list[dict]:
    """
    Page-load reconciliation for one tree's daily quests.
    Resets after 18h but never completes anything by itself.
    """
    now = now or datetime.utcnow()
    quests = db.query(Quest).filter(
        Quest.quest_type == QuestType.daily.value,
        Quest.tree_specific == True
    ).order_by(Quest.id).all()
    rows = ensure_user_quests(db, profile, quests, tree, now)

    entries = []
    for quest in quests:
        user_quest = rows[quest.id]
        if should_reset_daily(user_quest, now):
            reset_user_quest(user_quest, now)
            logger.info(f"🔄 Daily quest reset: {quest.name} on tree {tree.id}")

        progress = compute_progress(db, profile, quest, user_quest, now)
        user_quest.progress = progress["current"]
        entries.append(_entry(quest, user_quest, progress))

    db.commit()
    return entries


def complete_tree_quest(db: Session, profile: Profile, tree: Tree, quest: Quest,
                        photo_url: Optional[str] = None, now: Optional[datetime] = None) -> dict:
    """
    Player-confirmed completion of a daily tree quest.

    The quest row, the care-task log entry, the profile credit and the tree
    credit are committed together. Achievement checks run afterwards.

    Raises ValueError when the quest is not a daily tree quest or is
    already completed for the current period.
    """
    now = now or datetime.utcnow()
    if quest.quest_type != QuestType.daily.value or not quest.tree_specific:
        raise ValueError("Only daily tree quests can be completed manually")

    user_quest = ensure_user_quests(db, profile, [quest], tree, now)[quest.id]
    if should_reset_daily(user_quest, now):
        reset_user_quest(user_quest, now)
    if user_quest.completed:
        raise ValueError("Quest already completed. Come back later!")

    user_quest.completed = True
    user_quest.completed_at = now
    user_quest.progress = 1

    db.add(CareTask(
        user_id=profile.id,
        tree_id=tree.id,
        task_type=quest.name,
        status="completed",
        scheduled_date=to_reset_zone(now).date(),
        completed_at=now,
        photo_url=photo_url,
        xp_reward=quest.xp_reward or 0,
    ))

    level_up = credit_profile(profile, acorns=quest.acorn_reward or 0, xp=quest.xp_reward or 0)
    credit_tree(tree, bloom_points=quest.bp_reward or 0)

    result = {
        "quest": _entry(quest, user_quest, {"current": 1, "target": 1}, just_completed=True),
        "acorns_earned": quest.acorn_reward or 0,
        "xp_earned": quest.xp_reward or 0,
        "bp_earned": quest.bp_reward or 0,
        "level_up": level_up,
        "tree_health_percentage": tree.health_percentage,
        "tree_health_status": tree.health_status,
        "tree_level": tree.level,
    }
    db.commit()
    logger.info(f"🌳 {profile.username} completed {quest.name} on tree {tree.id}")

    unlocked = check_tree_achievements(db, profile, now)
    unlocked += check_acorn_achievements(db, profile)
    result["achievements"] = unlocked
    return result
