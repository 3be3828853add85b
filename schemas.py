"""
=============================================================================
SCHEMAS.PY — Request/response validation (Pydantic)
=============================================================================
Models (SQLAlchemy) define the TABLES, schemas define what the API ACCEPTS
and RETURNS. A malformed body is rejected with an automatic 422.

Naming convention:
  XxxCreate → body of a POST
  XxxUpdate → body of a PATCH
  XxxResponse → what a GET returns

Name content rules (length, profanity) are NOT here: they live in
name_validation.py and surface as 400s with a readable message.
"""

from pydantic import BaseModel, Field, EmailStr
from datetime import datetime
from typing import Optional

from models import ReportReason


# =============================================================================
# ===================== AUTH ==================================================
# =============================================================================

class UserRegister(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6, description="At least 6 characters")
    username: str

class UserLogin(BaseModel):
    email: EmailStr
    password: str

class EmailLookup(BaseModel):
    username: str

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: int
    username: str


# =============================================================================
# ===================== PROFILES ==============================================
# =============================================================================

class ProfileResponse(BaseModel):
    id: int
    email: str
    username: str
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    profile_private: bool
    acorns: int
    total_xp: int
    level: int
    guardian_rank: str
    created_at: datetime
    model_config = {"from_attributes": True}

class PublicProfileResponse(BaseModel):
    """What other players see. No email."""
    id: int
    username: str
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    acorns: int
    total_xp: int
    level: int
    guardian_rank: str
    created_at: datetime
    model_config = {"from_attributes": True}

class ProfileSearchResult(BaseModel):
    """Friend search hit. Private profiles only carry id and username."""
    id: int
    username: str
    profile_private: bool = False
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    acorns: Optional[int] = None
    total_xp: Optional[int] = None
    level: Optional[int] = None
    guardian_rank: Optional[str] = None
    model_config = {"from_attributes": True}

class ProfileUpdate(BaseModel):
    username: Optional[str] = None
    bio: Optional[str] = Field(default=None, max_length=500)
    avatar_url: Optional[str] = None
    profile_private: Optional[bool] = None


# =============================================================================
# ===================== TREES =================================================
# =============================================================================

class TreeCreate(BaseModel):
    name: str
    species: Optional[str] = None
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    photo_url: Optional[str] = None

class TreeUpdate(BaseModel):
    name: Optional[str] = None
    species: Optional[str] = None
    photo_url: Optional[str] = None

class TreeResponse(BaseModel):
    id: int
    user_id: Optional[int] = None
    name: str
    species: Optional[str] = None
    latitude: float
    longitude: float
    photo_url: Optional[str] = None
    health_percentage: int
    health_status: str
    level: int
    xp_earned: int
    age_days: int
    created_at: datetime
    model_config = {"from_attributes": True}


# =============================================================================
# ===================== TREE REPORTS ==========================================
# =============================================================================

class TreeReportCreate(BaseModel):
    reason: ReportReason
    details: Optional[str] = Field(default=None, max_length=1000)

class TreeReportResponse(BaseModel):
    id: int
    tree_id: int
    reporter_id: int
    reason: str
    details: Optional[str] = None
    status: str
    created_at: datetime
    model_config = {"from_attributes": True}


# =============================================================================
# ===================== QUESTS ================================================
# =============================================================================

class UserQuestResponse(BaseModel):
    id: int
    quest_id: int
    tree_id: Optional[int] = None
    name: str
    description: str
    icon: Optional[str] = None
    quest_type: str
    kind: str
    completed: bool
    completed_at: Optional[datetime] = None
    last_reset_at: datetime
    progress: int
    target: int
    acorn_reward: int
    bp_reward: int
    xp_reward: int
    just_completed: bool = False

class QuestCompleteRequest(BaseModel):
    photo_url: Optional[str] = None

class LevelUpInfo(BaseModel):
    leveled_up: bool
    old_level: int
    new_level: int

class AchievementUnlock(BaseModel):
    achievement_name: str
    unlocked: bool
    acorn_reward: int
    bp_reward: int

class QuestCompleteResponse(BaseModel):
    quest: UserQuestResponse
    acorns_earned: int
    xp_earned: int
    bp_earned: int
    level_up: LevelUpInfo
    tree_health_percentage: int
    tree_health_status: str
    tree_level: int
    achievements: list[AchievementUnlock] = []


# =============================================================================
# ===================== ACHIEVEMENTS ==========================================
# =============================================================================

class AchievementResponse(BaseModel):
    id: int
    name: str
    description: str
    icon: Optional[str] = None
    category: Optional[str] = None
    acorn_reward: int
    bp_reward: int
    unlocked: bool
    unlocked_at: Optional[datetime] = None


# =============================================================================
# ===================== LEADERBOARDS ==========================================
# =============================================================================

class LeaderboardEntry(BaseModel):
    id: int
    username: str
    avatar_url: Optional[str] = None
    value: int
    rank: int

class MyRankResponse(BaseModel):
    rank: int
    total_xp: int
    achievements: list[AchievementUnlock] = []


# =============================================================================
# ===================== SHOP / DECORATIONS ====================================
# =============================================================================

class DecorationResponse(BaseModel):
    id: int
    name: str
    display_name: str
    category: str
    icon: Optional[str] = None
    price_acorns: int
    is_available: bool
    model_config = {"from_attributes": True}

class PurchaseResponse(BaseModel):
    decoration_id: int
    acorns: int

class TreeDecorationCreate(BaseModel):
    decoration_id: int

class TreeDecorationMove(BaseModel):
    """Percentages of the tree photo; clamped to 0..100"""
    position_x: float
    position_y: float

class TreeDecorationResponse(BaseModel):
    id: int
    tree_id: int
    decoration_id: int
    position_x: float
    position_y: float
    created_at: datetime
    model_config = {"from_attributes": True}


# =============================================================================
# ===================== FRIENDS ===============================================
# =============================================================================

class FriendRequestCreate(BaseModel):
    friend_id: int

class FriendshipResponse(BaseModel):
    id: int
    user_id: int
    friend_id: int
    status: str
    created_at: datetime
    model_config = {"from_attributes": True}


# =============================================================================
# ===================== FRIEND TASK REQUESTS ==================================
# =============================================================================

class FriendTaskRequestCreate(BaseModel):
    helper_id: int
    tree_id: int
    task_type: str

class FriendTaskRequestResponse(BaseModel):
    id: int
    requester_id: int
    helper_id: int
    tree_id: int
    task_type: str
    requester_reward_acorns: int
    requester_reward_bp: int
    helper_reward_acorns: int
    helper_reward_bp: int
    status: str
    expires_at: datetime
    created_at: datetime
    completed_at: Optional[datetime] = None
    model_config = {"from_attributes": True}
