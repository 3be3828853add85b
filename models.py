"""
=============================================================================
MODELS.PY — Database tables
=============================================================================
Each class is one table, each Column one field.

RELATIONSHIPS:
  Profile has many → Trees (owned), UserQuests, UserAchievements,
                     UserDecorations, CareTasks
  Tree has many → TreeDecorations, UserQuests, CareTasks, TreeReports,
                  FriendTaskRequests
  Quest / Achievement / Decoration are catalogs seeded at startup.

  PROFILE
  ├── trees[] ──→ tree_decorations[], user_quests[] (daily), care_tasks[]
  ├── user_quests[] (weekly, tree_id = NULL)
  ├── user_achievements[]
  ├── user_decorations[]
  └── friendships[] (one row per pair)

Ownership is "last writer wins": there is no row versioning anywhere.
"""

from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Boolean, Float, Text, Date,
    DateTime, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import relationship
from database import Base
import enum


# =============================================================================
# ===================== ENUMS =================================================
# =============================================================================

class HealthStatus(str, enum.Enum):
    """Health tier derived from health_percentage"""
    healthy = "healthy"          # >= 70
    needs_care = "needs_care"    # >= 40
    critical = "critical"        # < 40

class QuestType(str, enum.Enum):
    daily = "daily"      # tree-specific, resets 18h after the last reset
    weekly = "weekly"    # account-wide, resets on Sunday (UTC-5)

class QuestKind(str, enum.Enum):
    """
    Stable behavior tag of a catalog quest.
    Progress rules dispatch on this, never on the display name.
    """
    tree_care = "tree_care"                # daily: manual completion
    busy_bee = "busy_bee"                  # days this week with a care task
    new_life = "new_life"                  # trees planted this week
    social_butterfly = "social_butterfly"  # not tracked yet
    top_10 = "top_10"                      # not tracked yet
    top_5 = "top_5"                        # not tracked yet
    on_top = "on_top"                      # not tracked yet

class FriendshipStatus(str, enum.Enum):
    pending = "pending"
    accepted = "accepted"
    rejected = "rejected"

class TaskRequestStatus(str, enum.Enum):
    pending = "pending"
    completed = "completed"

class ReportReason(str, enum.Enum):
    fake = "fake"
    duplicate = "duplicate"
    wrong_location = "wrong_location"
    incorrect_info = "incorrect_info"
    inappropriate = "inappropriate"
    other = "other"


# =============================================================================
# ===================== TABLE 1: PROFILES =====================================
# =============================================================================

class Profile(Base):
    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # ── Account ──
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    username = Column(String(15), unique=True, nullable=False, index=True)

    # ── Public profile ──
    bio = Column(Text, nullable=True)
    avatar_url = Column(String(500), nullable=True)
    profile_private = Column(Boolean, default=False)
    # profile_private → only accepted friends may read the profile

    # ── Progression ──
    acorns = Column(Integer, default=0)
    total_xp = Column(Integer, default=0)
    level = Column(Integer, default=1)
    # level is stored redundantly: recomputed from total_xp on every credit
    guardian_rank = Column(String(50), default="Seedling")

    # ── Timestamps ──
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # ── Relationships ──
    # Trees are NOT cascaded: deleting an account releases them for adoption.
    trees = relationship("Tree", back_populates="owner")
    user_quests = relationship("UserQuest", back_populates="user", cascade="all, delete-orphan")
    user_achievements = relationship("UserAchievement", back_populates="user", cascade="all, delete-orphan")
    user_decorations = relationship("UserDecoration", back_populates="user", cascade="all, delete-orphan")
    care_tasks = relationship("CareTask", back_populates="user", cascade="all, delete-orphan")


# =============================================================================
# ===================== TABLE 2: TREES ========================================
# =============================================================================
# user_id NULL → the tree is available for adoption.

class Tree(Base):
    __tablename__ = "trees"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("profiles.id"), nullable=True, index=True)

    name = Column(String(15), nullable=False)
    species = Column(String(100), nullable=True)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    photo_url = Column(String(500), nullable=True)

    # ── Wellbeing ──
    health_percentage = Column(Integer, default=100)
    # 0..100
    health_status = Column(String(20), default=HealthStatus.healthy.value)

    # ── Bloom points ──
    level = Column(Integer, default=1)
    xp_earned = Column(Integer, default=0)
    # xp_earned → "bloom points", separate from the owner's total_xp
    age_days = Column(Integer, default=0)
    # age_days is refreshed from created_at whenever the tree is read

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    owner = relationship("Profile", back_populates="trees")
    decorations = relationship("TreeDecoration", back_populates="tree", cascade="all, delete-orphan")
    user_quests = relationship("UserQuest", back_populates="tree", cascade="all, delete-orphan")
    care_tasks = relationship("CareTask", back_populates="tree", cascade="all, delete-orphan")
    reports = relationship("TreeReport", back_populates="tree", cascade="all, delete-orphan")
    task_requests = relationship("FriendTaskRequest", back_populates="tree", cascade="all, delete-orphan")


# =============================================================================
# ===================== TABLE 3: QUESTS =======================================
# =============================================================================
# Quest catalog. Immutable once seeded.

class Quest(Base):
    __tablename__ = "quests"

    id = Column(Integer, primary_key=True, autoincrement=True)

    name = Column(String(100), unique=True, nullable=False)
    description = Column(String(300), nullable=False)
    icon = Column(String(10), default="🌳")
    category = Column(String(50), nullable=True)

    quest_type = Column(String(20), nullable=False)
    kind = Column(String(30), nullable=False)
    tree_specific = Column(Boolean, default=False)

    acorn_reward = Column(Integer, default=0)
    bp_reward = Column(Integer, default=0)
    xp_reward = Column(Integer, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)


# =============================================================================
# ===================== TABLE 4: USER_QUESTS ==================================
# =============================================================================
# One live progress row per (user, quest, tree or NULL).
# A reset rewrites the row in place, it never inserts a new one.

class UserQuest(Base):
    __tablename__ = "user_quests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    quest_id = Column(Integer, ForeignKey("quests.id"), nullable=False)
    tree_id = Column(Integer, ForeignKey("trees.id"), nullable=True)

    completed = Column(Boolean, default=False)
    completed_at = Column(DateTime, nullable=True)
    last_reset_at = Column(DateTime, default=datetime.utcnow)
    progress = Column(Integer, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)

    # only binds per-tree rows: weekly rows have tree_id NULL and NULLs never collide
    __table_args__ = (
        UniqueConstraint('user_id', 'quest_id', 'tree_id', name='uq_user_quest_tree'),
    )

    user = relationship("Profile", back_populates="user_quests")
    quest = relationship("Quest")
    tree = relationship("Tree", back_populates="user_quests")


# =============================================================================
# ===================== TABLE 5: CARE_TASKS ===================================
# =============================================================================
# Append-only log of completed daily care quests.
# user_quests is rewritten on reset, this table keeps the history.

class CareTask(Base):
    __tablename__ = "care_tasks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    tree_id = Column(Integer, ForeignKey("trees.id"), nullable=False)

    task_type = Column(String(100), nullable=False)
    # task_type → name of the quest that was completed
    status = Column(String(20), default="completed")
    scheduled_date = Column(Date, nullable=False)
    completed_at = Column(DateTime, default=datetime.utcnow)
    photo_url = Column(String(500), nullable=True)
    notes = Column(Text, nullable=True)
    xp_reward = Column(Integer, default=0)

    user = relationship("Profile", back_populates="care_tasks")
    tree = relationship("Tree", back_populates="care_tasks")


# =============================================================================
# ===================== TABLE 6: ACHIEVEMENTS =================================
# =============================================================================

class Achievement(Base):
    __tablename__ = "achievements"

    id = Column(Integer, primary_key=True, autoincrement=True)

    name = Column(String(100), unique=True, nullable=False)
    # Looked up by name by the evaluator
    description = Column(String(300), nullable=False)
    icon = Column(String(10), default="🏆")
    category = Column(String(50), nullable=True)

    acorn_reward = Column(Integer, default=0)
    bp_reward = Column(Integer, default=0)
    # bp_reward is credited to the profile's total_xp


# =============================================================================
# ===================== TABLE 7: USER_ACHIEVEMENTS ============================
# =============================================================================
# Unlocks are monotonic: rows are inserted, never removed.

class UserAchievement(Base):
    __tablename__ = "user_achievements"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("profiles.id"), nullable=False)
    achievement_id = Column(Integer, ForeignKey("achievements.id"), nullable=False)

    unlocked_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('user_id', 'achievement_id', name='uq_user_achievement'),
    )

    user = relationship("Profile", back_populates="user_achievements")
    achievement = relationship("Achievement")


# =============================================================================
# ===================== TABLE 8: DECORATIONS ==================================
# =============================================================================

class Decoration(Base):
    __tablename__ = "decorations"

    id = Column(Integer, primary_key=True, autoincrement=True)

    name = Column(String(100), unique=True, nullable=False)
    display_name = Column(String(100), nullable=False)
    category = Column(String(50), nullable=False)
    icon = Column(String(10), default="✨")
    price_acorns = Column(Integer, nullable=False)
    is_available = Column(Boolean, default=True)


class UserDecoration(Base):
    __tablename__ = "user_decorations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("profiles.id"), nullable=False)
    decoration_id = Column(Integer, ForeignKey("decorations.id"), nullable=False)

    purchased_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('user_id', 'decoration_id', name='uq_user_decoration'),
    )

    user = relationship("Profile", back_populates="user_decorations")
    decoration = relationship("Decoration")


class TreeDecoration(Base):
    """A placed decoration. Position is a percentage of the tree photo."""
    __tablename__ = "tree_decorations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tree_id = Column(Integer, ForeignKey("trees.id"), nullable=False, index=True)
    decoration_id = Column(Integer, ForeignKey("decorations.id"), nullable=False)

    position_x = Column(Float, default=0)
    position_y = Column(Float, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)

    tree = relationship("Tree", back_populates="decorations")
    decoration = relationship("Decoration")


# =============================================================================
# ===================== TABLE 9: FRIENDSHIPS ==================================
# =============================================================================
# One row per pair of players: user_id sent the request, friend_id received it.

class Friendship(Base):
    __tablename__ = "friendships"

    id = Column(Integer, primary_key=True, autoincrement=True)

    user_id = Column(Integer, ForeignKey("profiles.id"), nullable=False)
    friend_id = Column(Integer, ForeignKey("profiles.id"), nullable=False)

    status = Column(String(20), default=FriendshipStatus.pending.value)

    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('user_id', 'friend_id', name='uq_friendship'),
    )

    user = relationship("Profile", foreign_keys=[user_id])
    friend = relationship("Profile", foreign_keys=[friend_id])


# =============================================================================
# ===================== TABLE 10: FRIEND_TASK_REQUESTS ========================
# =============================================================================

class FriendTaskRequest(Base):
    __tablename__ = "friend_task_requests"

    id = Column(Integer, primary_key=True, autoincrement=True)

    requester_id = Column(Integer, ForeignKey("profiles.id"), nullable=False)
    helper_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    tree_id = Column(Integer, ForeignKey("trees.id"), nullable=False)

    task_type = Column(String(50), nullable=False)
    requester_reward_acorns = Column(Integer, default=0)
    requester_reward_bp = Column(Integer, default=0)
    helper_reward_acorns = Column(Integer, default=0)
    helper_reward_bp = Column(Integer, default=0)

    status = Column(String(20), default=TaskRequestStatus.pending.value)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    completed_at = Column(DateTime, nullable=True)

    requester = relationship("Profile", foreign_keys=[requester_id])
    helper = relationship("Profile", foreign_keys=[helper_id])
    tree = relationship("Tree", back_populates="task_requests")


# =============================================================================
# ===================== TABLE 11: TREE_REPORTS ================================
# =============================================================================

class TreeReport(Base):
    __tablename__ = "tree_reports"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tree_id = Column(Integer, ForeignKey("trees.id"), nullable=False)
    reporter_id = Column(Integer, ForeignKey("profiles.id"), nullable=False)

    reason = Column(String(30), nullable=False)
    details = Column(Text, nullable=True)
    status = Column(String(20), default="pending")

    created_at = Column(DateTime, default=datetime.utcnow)
    reviewed_at = Column(DateTime, nullable=True)

    tree = relationship("Tree", back_populates="reports")
    reporter = relationship("Profile")
