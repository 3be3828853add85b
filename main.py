"""
=============================================================================
MAIN.PY — Tamagotree API
=============================================================================
Every REST endpoint of the service.

Sections:
  1. AUTH          → Register, login, email lookup by username
  2. PROFILE       → Own profile, level, other players' profiles
  3. TREES         → Report, list, adopt, edit, delete
  4. TREE REPORTS  → Flag a tree (+ GitHub issue relay)
  5. QUESTS        → Weekly (auto) and daily per-tree (manual) quests
  6. ACHIEVEMENTS  → Catalog with unlock state, re-check
  7. LEADERBOARDS  → Acorns, XP, weekly bloom points, own rank
  8. SHOP          → Decorations catalog and purchases
  9. DECORATIONS   → Placing decorations on trees
  10. FRIENDS      → Search, requests, accept/reject/remove
  11. FRIEND TASKS → Ask a friend to care for your tree
"""

import os
import logging
import traceback
from datetime import datetime
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, HTTPException, status, Request, BackgroundTasks
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from database import get_db, init_db, SessionLocal
from models import (
    Profile, Tree, Quest, UserAchievement, Achievement, Decoration, UserDecoration,
    TreeDecoration, Friendship, FriendTaskRequest, TreeReport,
    FriendshipStatus, TaskRequestStatus
)
from schemas import *
from auth import hash_password, verify_password, create_access_token, get_current_user
from name_validation import validate_username, validate_tree_name
from gamification import (
    seed_achievements, get_level_info, calculate_tree_age_days,
    check_tree_achievements, check_acorn_achievements, check_leaderboard_achievements
)
from quests import seed_quests, sync_weekly_quests, sync_tree_quests, complete_tree_quest, week_start
from shop import seed_decorations, purchase_decoration, owns_decoration, clamp_position
from friends import (
    are_friends, friend_ids, send_friend_request, accept_friend_request, remove_friend,
    create_task_request, complete_task_request
)
from issue_relay import create_tree_report_issue

# ─────────────────────────────────────────────────────────────────────────────
# LOGGING
# ─────────────────────────────────────────────────────────────────────────────

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s"
)
logger = logging.getLogger("tamagotree.api")

ENABLE_SCHEDULER = os.getenv("ENABLE_SCHEDULER", "1") == "1"
LEADERBOARD_SIZE = 10


def seed_catalogs(db: Session):
    seed_achievements(db)
    seed_quests(db)
    seed_decorations(db)


# ─────────────────────────────────────────────────────────────────────────────
# LIFESPAN (startup and shutdown)
# ─────────────────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
      1. Create tables
      2. Seed catalogs (achievements, quests, decorations)
      3. Start the housekeeping scheduler
    """
    logger.info("🚀 Starting Tamagotree...")

    init_db()
    logger.info("✅ Database initialized")

    db = SessionLocal()
    try:
        seed_catalogs(db)
    finally:
        db.close()

    scheduler_started = False
    if ENABLE_SCHEDULER:
        try:
            from scheduler import create_scheduler, start_scheduler
            create_scheduler()
            start_scheduler()
            scheduler_started = True
        except Exception as e:
            logger.error(f"❌ Error starting scheduler: {e}")

    logger.info("🌳 Tamagotree up")

    yield

    logger.info("🛑 Shutting down Tamagotree...")
    if scheduler_started:
        from scheduler import stop_scheduler
        stop_scheduler()
    logger.info("👋 Shutdown complete")


# ─────────────────────────────────────────────────────────────────────────────
# FASTAPI APPLICATION
# ─────────────────────────────────────────────────────────────────────────────

app = FastAPI(
    title="Tamagotree API",
    description="Adopt real trees, care for them, earn acorns and climb the leaderboards",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ─────────────────────────────────────────────────────────────────────────────
# GLOBAL ERROR HANDLER
# ─────────────────────────────────────────────────────────────────────────────

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Unhandled errors come back as JSON instead of a bare 500"""
    error_msg = str(exc)
    error_trace = traceback.format_exc()
    logger.error(f"❌ Unhandled error on {request.url}: {error_msg}\n{error_trace}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": error_msg,
            "type": type(exc).__name__,
            "path": str(request.url)
        }
    )


# ─────────────────────────────────────────────────────────────────────────────
# HELPERS
# ─────────────────────────────────────────────────────────────────────────────

def _check_name(result: dict):
    if not result["valid"]:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result["error"])


def _get_tree(db: Session, tree_id: int) -> Tree:
    tree = db.query(Tree).filter(Tree.id == tree_id).first()
    if not tree:
        raise HTTPException(status_code=404, detail="Tree not found")
    return tree


def _get_owned_tree(db: Session, user: Profile, tree_id: int) -> Tree:
    tree = _get_tree(db, tree_id)
    if tree.user_id != user.id:
        raise HTTPException(status_code=403, detail="This is not your tree")
    return tree


def _can_see_profile(db: Session, owner: Profile, viewer: Profile) -> bool:
    """Private profiles (and their trees) are for the owner and accepted friends"""
    return not owner.profile_private or owner.id == viewer.id or are_friends(db, owner.id, viewer.id)


def _get_visible_tree(db: Session, user: Profile, tree_id: int) -> Tree:
    tree = _get_tree(db, tree_id)
    if tree.owner is not None and not _can_see_profile(db, tree.owner, user):
        raise HTTPException(status_code=403, detail="This tree belongs to a private profile")
    return tree


def _refresh_ages(db: Session, trees: list[Tree]) -> list[Tree]:
    """age_days is stored, but always derived from created_at"""
    changed = False
    for tree in trees:
        age = calculate_tree_age_days(tree.created_at)
        if tree.age_days != age:
            tree.age_days = age
            changed = True
    if changed:
        db.commit()
    return trees


# =============================================================================
# ===================== HEALTH CHECK ==========================================
# =============================================================================

@app.get("/", tags=["Health"])
def health_check():
    return {
        "status": "ok",
        "app": "Tamagotree",
        "version": "1.0.0",
        "timestamp": datetime.utcnow().isoformat()
    }


# =============================================================================
# ===================== SECTION 1: AUTH =======================================
# =============================================================================

@app.post("/auth/register", response_model=TokenResponse, tags=["Auth"])
def register(data: UserRegister, db: Session = Depends(get_db)):
    """
    Creates an account.
      1. Validate the username (length, characters, profanity)
      2. Email and username must be unique
      3. Store the bcrypt hash
      4. Return a token
    """
    _check_name(validate_username(data.username))
    username = data.username.strip()

    if db.query(Profile).filter(Profile.email == data.email).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="An account with this email already exists")
    if db.query(Profile).filter(Profile.username == username).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username is already taken")

    user = Profile(
        email=data.email,
        password_hash=hash_password(data.password),
        username=username,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info(f"👤 New guardian registered: {user.username}")
    return TokenResponse(
        access_token=create_access_token(user.id, user.email),
        user_id=user.id,
        username=user.username
    )


@app.post("/auth/login", response_model=TokenResponse, tags=["Auth"])
def login(data: UserLogin, db: Session = Depends(get_db)):
    user = db.query(Profile).filter(Profile.email == data.email).first()

    if not user or not verify_password(data.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password"
        )

    return TokenResponse(
        access_token=create_access_token(user.id, user.email),
        user_id=user.id,
        username=user.username
    )


def _obfuscate_email(email: str) -> str:
    local, _, domain = email.partition("@")
    return f"{local[:1]}{'*' * max(1, len(local) - 1)}@{domain}"


@app.post("/auth/lookup-email", tags=["Auth"])
def lookup_email(data: EmailLookup, db: Session = Depends(get_db)):
    """
    Username → email, for players who forgot which address they used.
    An unknown username gets the same 200 with a generic message, so the
    response never tells whether an account exists.
    """
    user = db.query(Profile).filter(Profile.username == data.username.strip()).first()
    if not user:
        return {
            "email": None,
            "obfuscated_email": None,
            "message": "If this username exists, a password reset email will be sent.",
        }
    return {
        "email": user.email,
        "obfuscated_email": _obfuscate_email(user.email),
        "message": None,
    }


# =============================================================================
# ===================== SECTION 2: PROFILE ====================================
# =============================================================================

@app.get("/profile/me", response_model=ProfileResponse, tags=["Profile"])
def get_me(user: Profile = Depends(get_current_user)):
    return user


@app.patch("/profile/me", response_model=ProfileResponse, tags=["Profile"])
def update_me(data: ProfileUpdate, user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    if data.username is not None:
        _check_name(validate_username(data.username))
        username = data.username.strip()
        taken = db.query(Profile).filter(Profile.username == username, Profile.id != user.id).first()
        if taken:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username is already taken")
        user.username = username
    if data.bio is not None:
        user.bio = data.bio
    if data.avatar_url is not None:
        user.avatar_url = data.avatar_url
    if data.profile_private is not None:
        user.profile_private = data.profile_private

    db.commit()
    db.refresh(user)
    return user


@app.get("/profile/me/level", tags=["Profile"])
def get_my_level(user: Profile = Depends(get_current_user)):
    return get_level_info(user)


@app.delete("/profile/me", tags=["Profile"])
def delete_account(user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    """
    Deletes the account. Owned trees stay on the map, unowned, available
    for adoption.
    """
    username = user.username
    db.query(Tree).filter(Tree.user_id == user.id).update({Tree.user_id: None}, synchronize_session=False)
    db.query(Friendship).filter(or_(
        Friendship.user_id == user.id, Friendship.friend_id == user.id
    )).delete(synchronize_session=False)
    db.query(FriendTaskRequest).filter(or_(
        FriendTaskRequest.requester_id == user.id, FriendTaskRequest.helper_id == user.id
    )).delete(synchronize_session=False)
    db.query(TreeReport).filter(TreeReport.reporter_id == user.id).delete(synchronize_session=False)
    db.delete(user)
    db.commit()
    logger.info(f"🗑️ Account deleted: {username}")
    return {"message": "Account deleted"}


@app.get("/profiles/{profile_id}", response_model=PublicProfileResponse, tags=["Profile"])
def get_profile(profile_id: int, user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    """Private profiles are only visible to accepted friends"""
    other = db.query(Profile).filter(Profile.id == profile_id).first()
    if not other:
        raise HTTPException(status_code=404, detail="Profile not found")
    if not _can_see_profile(db, other, user):
        raise HTTPException(status_code=403, detail="This profile is private")
    return other


@app.get("/profiles/{profile_id}/trees", response_model=list[TreeResponse], tags=["Profile"])
def get_profile_trees(profile_id: int, user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    other = get_profile(profile_id, user, db)
    trees = db.query(Tree).filter(Tree.user_id == other.id).order_by(Tree.created_at.desc()).all()
    return _refresh_ages(db, trees)


# =============================================================================
# ===================== SECTION 3: TREES ======================================
# =============================================================================

@app.post("/trees", response_model=TreeResponse, tags=["Trees"])
def report_tree(data: TreeCreate, user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    """A reported tree starts owned by its reporter, fully healthy"""
    _check_name(validate_tree_name(data.name))

    tree = Tree(
        user_id=user.id,
        name=data.name.strip(),
        species=data.species or None,
        latitude=data.latitude,
        longitude=data.longitude,
        photo_url=data.photo_url,
        health_percentage=100,
        health_status="healthy",
        level=1,
        xp_earned=0,
        age_days=0,
    )
    db.add(tree)
    db.commit()
    db.refresh(tree)
    logger.info(f"🌱 Tree reported: {tree.name} by {user.username}")

    check_tree_achievements(db, user)
    db.refresh(tree)
    return tree


@app.get("/trees", response_model=list[TreeResponse], tags=["Trees"])
def list_my_trees(user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    trees = db.query(Tree).filter(Tree.user_id == user.id).order_by(Tree.created_at.desc()).all()
    return _refresh_ages(db, trees)


@app.get("/trees/available", response_model=list[TreeResponse], tags=["Trees"])
def list_available_trees(user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    """Unowned trees, up for adoption"""
    trees = db.query(Tree).filter(Tree.user_id.is_(None)).order_by(Tree.created_at.desc()).all()
    return _refresh_ages(db, trees)


@app.get("/trees/{tree_id}", response_model=TreeResponse, tags=["Trees"])
def get_tree(tree_id: int, user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    return _refresh_ages(db, [_get_visible_tree(db, user, tree_id)])[0]


@app.post("/trees/{tree_id}/adopt", response_model=TreeResponse, tags=["Trees"])
def adopt_tree(tree_id: int, user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    tree = _get_tree(db, tree_id)
    if tree.user_id is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="This tree already has a guardian")

    tree.user_id = user.id
    db.commit()
    logger.info(f"🤲 {user.username} adopted tree {tree.id}")

    check_tree_achievements(db, user)
    db.refresh(tree)
    return tree


@app.patch("/trees/{tree_id}", response_model=TreeResponse, tags=["Trees"])
def update_tree(tree_id: int, data: TreeUpdate, user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    tree = _get_owned_tree(db, user, tree_id)

    if data.name is not None:
        _check_name(validate_tree_name(data.name))
        tree.name = data.name.strip()
    if data.species is not None:
        tree.species = data.species or None
    if data.photo_url is not None:
        tree.photo_url = data.photo_url

    db.commit()
    db.refresh(tree)
    return tree


@app.delete("/trees/{tree_id}", tags=["Trees"])
def delete_tree(tree_id: int, user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    """Hard delete, with its placements, quest rows and history"""
    tree = _get_owned_tree(db, user, tree_id)
    name = tree.name
    db.delete(tree)
    db.commit()
    logger.info(f"🪓 Tree deleted: {name} by {user.username}")
    return {"message": f"Tree '{name}' deleted"}


# =============================================================================
# ===================== SECTION 4: TREE REPORTS ===============================
# =============================================================================

@app.post("/trees/{tree_id}/reports", response_model=TreeReportResponse, tags=["Tree Reports"])
def report_tree_issue(
    tree_id: int, data: TreeReportCreate, background_tasks: BackgroundTasks,
    user: Profile = Depends(get_current_user), db: Session = Depends(get_db)
):
    """
    Stores the report, then opens a GitHub issue in the background.
    The relay outcome never changes this response.
    """
    tree = _get_visible_tree(db, user, tree_id)

    report = TreeReport(
        tree_id=tree.id,
        reporter_id=user.id,
        reason=data.reason.value,
        details=data.details,
        status="pending",
    )
    db.add(report)
    db.commit()
    db.refresh(report)
    logger.info(f"🚩 Tree {tree.id} reported by {user.username}: {report.reason}")

    background_tasks.add_task(create_tree_report_issue, {
        "tree_id": tree.id,
        "tree_name": tree.name,
        "reason": report.reason,
        "details": report.details,
        "reporter_username": user.username,
        "latitude": tree.latitude,
        "longitude": tree.longitude,
    })
    return report


# =============================================================================
# ===================== SECTION 5: QUESTS =====================================
# =============================================================================

@app.get("/quests/weekly", response_model=list[UserQuestResponse], tags=["Quests"])
def get_weekly_quests(user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    """Reconciles and returns the weekly quests. May complete and reward some."""
    return sync_weekly_quests(db, user)


@app.get("/trees/{tree_id}/quests", response_model=list[UserQuestResponse], tags=["Quests"])
def get_tree_quests(tree_id: int, user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    tree = _get_owned_tree(db, user, tree_id)
    return sync_tree_quests(db, user, tree)


@app.post("/trees/{tree_id}/quests/{quest_id}/complete", response_model=QuestCompleteResponse, tags=["Quests"])
def complete_quest(
    tree_id: int, quest_id: int, data: QuestCompleteRequest,
    user: Profile = Depends(get_current_user), db: Session = Depends(get_db)
):
    """The player confirms a daily care quest, optionally with a photo"""
    tree = _get_owned_tree(db, user, tree_id)
    quest = db.query(Quest).filter(Quest.id == quest_id).first()
    if not quest:
        raise HTTPException(status_code=404, detail="Quest not found")

    try:
        return complete_tree_quest(db, user, tree, quest, photo_url=data.photo_url)
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


# =============================================================================
# ===================== SECTION 6: ACHIEVEMENTS ===============================
# =============================================================================

@app.get("/achievements", response_model=list[AchievementResponse], tags=["Achievements"])
def get_my_achievements(user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    """Whole catalog, unlocked or not"""
    unlocked_map = {
        ua.achievement_id: ua.unlocked_at
        for ua in db.query(UserAchievement).filter(UserAchievement.user_id == user.id).all()
    }
    return [
        {
            "id": ach.id,
            "name": ach.name,
            "description": ach.description,
            "icon": ach.icon,
            "category": ach.category,
            "acorn_reward": ach.acorn_reward or 0,
            "bp_reward": ach.bp_reward or 0,
            "unlocked": ach.id in unlocked_map,
            "unlocked_at": unlocked_map.get(ach.id),
        }
        for ach in db.query(Achievement).order_by(Achievement.id).all()
    ]


@app.post("/achievements/check", response_model=list[AchievementUnlock], tags=["Achievements"])
def recheck_achievements(user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    """Returns only what this call unlocked"""
    unlocked = check_tree_achievements(db, user)
    unlocked += check_acorn_achievements(db, user)
    return unlocked


# =============================================================================
# ===================== SECTION 7: LEADERBOARDS ===============================
# =============================================================================

def _ranked(rows) -> list[dict]:
    return [
        {"id": row[0], "username": row[1], "avatar_url": row[2], "value": int(row[3] or 0), "rank": i + 1}
        for i, row in enumerate(rows)
    ]


@app.get("/leaderboards/acorns", response_model=list[LeaderboardEntry], tags=["Leaderboards"])
def acorns_leaderboard(db: Session = Depends(get_db)):
    rows = db.query(Profile.id, Profile.username, Profile.avatar_url, Profile.acorns).order_by(
        Profile.acorns.desc(), Profile.id
    ).limit(LEADERBOARD_SIZE).all()
    return _ranked(rows)


@app.get("/leaderboards/xp", response_model=list[LeaderboardEntry], tags=["Leaderboards"])
def xp_leaderboard(db: Session = Depends(get_db)):
    rows = db.query(Profile.id, Profile.username, Profile.avatar_url, Profile.total_xp).order_by(
        Profile.total_xp.desc(), Profile.id
    ).limit(LEADERBOARD_SIZE).all()
    return _ranked(rows)


@app.get("/leaderboards/bloom", response_model=list[LeaderboardEntry], tags=["Leaderboards"])
def bloom_leaderboard(db: Session = Depends(get_db)):
    """Bloom points of trees planted since Monday, summed per guardian"""
    total_bp = func.sum(Tree.xp_earned).label("total_bp")
    rows = db.query(Profile.id, Profile.username, Profile.avatar_url, total_bp).join(
        Tree, Tree.user_id == Profile.id
    ).filter(
        Tree.created_at >= week_start(datetime.utcnow())
    ).group_by(Profile.id, Profile.username, Profile.avatar_url).order_by(
        total_bp.desc(), Profile.id
    ).limit(LEADERBOARD_SIZE).all()
    return _ranked(rows)


@app.get("/leaderboards/me", response_model=MyRankResponse, tags=["Leaderboards"])
def my_rank(user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    """1-indexed XP rank, then the leaderboard achievements for it"""
    ahead = db.query(Profile).filter(Profile.total_xp > (user.total_xp or 0)).count()
    rank = ahead + 1
    unlocked = check_leaderboard_achievements(db, user, rank)
    return {"rank": rank, "total_xp": user.total_xp, "achievements": unlocked}


# =============================================================================
# ===================== SECTION 8: SHOP =======================================
# =============================================================================

@app.get("/shop/decorations", response_model=list[DecorationResponse], tags=["Shop"])
def list_decorations(db: Session = Depends(get_db)):
    return db.query(Decoration).filter(Decoration.is_available == True).order_by(
        Decoration.category, Decoration.price_acorns
    ).all()


@app.get("/shop/owned", response_model=list[DecorationResponse], tags=["Shop"])
def list_owned_decorations(user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    return db.query(Decoration).join(
        UserDecoration, UserDecoration.decoration_id == Decoration.id
    ).filter(UserDecoration.user_id == user.id).order_by(Decoration.category).all()


@app.post("/shop/decorations/{decoration_id}/purchase", response_model=PurchaseResponse, tags=["Shop"])
def buy_decoration(decoration_id: int, user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    decoration = db.query(Decoration).filter(Decoration.id == decoration_id).first()
    if not decoration:
        raise HTTPException(status_code=404, detail="Decoration not found")

    try:
        purchase_decoration(db, user, decoration)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return {"decoration_id": decoration.id, "acorns": user.acorns}


# =============================================================================
# ===================== SECTION 9: TREE DECORATIONS ===========================
# =============================================================================

@app.get("/trees/{tree_id}/decorations", response_model=list[TreeDecorationResponse], tags=["Decorations"])
def list_tree_decorations(tree_id: int, user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    tree = _get_visible_tree(db, user, tree_id)
    return db.query(TreeDecoration).filter(TreeDecoration.tree_id == tree.id).order_by(TreeDecoration.id).all()


@app.post("/trees/{tree_id}/decorations", response_model=TreeDecorationResponse, tags=["Decorations"])
def place_decoration(
    tree_id: int, data: TreeDecorationCreate,
    user: Profile = Depends(get_current_user), db: Session = Depends(get_db)
):
    """New placements start at (0, 0); the player drags them afterwards"""
    tree = _get_owned_tree(db, user, tree_id)
    if not owns_decoration(db, user, data.decoration_id):
        raise HTTPException(status_code=403, detail="You don't own this decoration")

    placed = TreeDecoration(tree_id=tree.id, decoration_id=data.decoration_id, position_x=0, position_y=0)
    db.add(placed)
    db.commit()
    db.refresh(placed)
    return placed


def _get_owned_placement(db: Session, user: Profile, placement_id: int) -> TreeDecoration:
    placed = db.query(TreeDecoration).filter(TreeDecoration.id == placement_id).first()
    if not placed:
        raise HTTPException(status_code=404, detail="Decoration placement not found")
    _get_owned_tree(db, user, placed.tree_id)
    return placed


@app.patch("/tree-decorations/{placement_id}", response_model=TreeDecorationResponse, tags=["Decorations"])
def move_decoration(
    placement_id: int, data: TreeDecorationMove,
    user: Profile = Depends(get_current_user), db: Session = Depends(get_db)
):
    placed = _get_owned_placement(db, user, placement_id)
    placed.position_x = clamp_position(data.position_x)
    placed.position_y = clamp_position(data.position_y)
    db.commit()
    db.refresh(placed)
    return placed


@app.delete("/tree-decorations/{placement_id}", tags=["Decorations"])
def remove_decoration(placement_id: int, user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    placed = _get_owned_placement(db, user, placement_id)
    db.delete(placed)
    db.commit()
    return {"message": "Decoration removed"}


# =============================================================================
# ===================== SECTION 10: FRIENDS ===================================
# =============================================================================

@app.get("/friends/search", response_model=list[ProfileSearchResult], tags=["Friends"])
def search_profiles(q: str, user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    term = q.strip()
    if not term:
        return []
    matches = db.query(Profile).filter(
        Profile.username.ilike(f"%{term}%"),
        Profile.id != user.id
    ).order_by(Profile.username).limit(LEADERBOARD_SIZE).all()

    # private profiles only show who they are
    return [
        ProfileSearchResult.model_validate(p) if _can_see_profile(db, p, user)
        else ProfileSearchResult(id=p.id, username=p.username, profile_private=True)
        for p in matches
    ]


@app.get("/friends", response_model=list[PublicProfileResponse], tags=["Friends"])
def list_friends(user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    ids = friend_ids(db, user.id)
    if not ids:
        return []
    return db.query(Profile).filter(Profile.id.in_(ids)).order_by(Profile.username).all()


@app.post("/friends/requests", response_model=FriendshipResponse, tags=["Friends"])
def create_friend_request(data: FriendRequestCreate, user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    if not db.query(Profile).filter(Profile.id == data.friend_id).first():
        raise HTTPException(status_code=404, detail="Profile not found")
    try:
        return send_friend_request(db, user, data.friend_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@app.get("/friends/requests/incoming", response_model=list[FriendshipResponse], tags=["Friends"])
def incoming_requests(user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    return db.query(Friendship).filter(
        Friendship.friend_id == user.id,
        Friendship.status == FriendshipStatus.pending.value
    ).order_by(Friendship.created_at.desc()).all()


@app.get("/friends/requests/sent", response_model=list[FriendshipResponse], tags=["Friends"])
def sent_requests(user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    return db.query(Friendship).filter(
        Friendship.user_id == user.id,
        Friendship.status == FriendshipStatus.pending.value
    ).order_by(Friendship.created_at.desc()).all()


def _get_incoming_request(db: Session, user: Profile, friendship_id: int) -> Friendship:
    friendship = db.query(Friendship).filter(
        Friendship.id == friendship_id,
        Friendship.friend_id == user.id,
        Friendship.status == FriendshipStatus.pending.value
    ).first()
    if not friendship:
        raise HTTPException(status_code=404, detail="Friend request not found")
    return friendship


@app.post("/friends/requests/{friendship_id}/accept", response_model=FriendshipResponse, tags=["Friends"])
def accept_request(friendship_id: int, user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    friendship = _get_incoming_request(db, user, friendship_id)
    return accept_friend_request(db, user, friendship)


@app.post("/friends/requests/{friendship_id}/reject", response_model=FriendshipResponse, tags=["Friends"])
def reject_request(friendship_id: int, user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    friendship = _get_incoming_request(db, user, friendship_id)
    friendship.status = FriendshipStatus.rejected.value
    db.commit()
    db.refresh(friendship)
    return friendship


@app.delete("/friends/{friend_id}", tags=["Friends"])
def unfriend(friend_id: int, user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    if remove_friend(db, user, friend_id) == 0:
        raise HTTPException(status_code=404, detail="Friendship not found")
    return {"message": "You are no longer friends"}


# =============================================================================
# ===================== SECTION 11: FRIEND TASKS ==============================
# =============================================================================

@app.post("/friend-tasks", response_model=FriendTaskRequestResponse, tags=["Friend Tasks"])
def request_friend_help(data: FriendTaskRequestCreate, user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    tree = _get_tree(db, data.tree_id)
    try:
        return create_task_request(db, user, tree, data.helper_id, data.task_type)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@app.get("/friend-tasks/incoming", response_model=list[FriendTaskRequestResponse], tags=["Friend Tasks"])
def incoming_friend_tasks(user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    return db.query(FriendTaskRequest).filter(
        FriendTaskRequest.helper_id == user.id,
        FriendTaskRequest.status == TaskRequestStatus.pending.value,
        FriendTaskRequest.expires_at >= datetime.utcnow()
    ).order_by(FriendTaskRequest.created_at.desc()).all()


@app.get("/friend-tasks/sent", response_model=list[FriendTaskRequestResponse], tags=["Friend Tasks"])
def sent_friend_tasks(user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    return db.query(FriendTaskRequest).filter(
        FriendTaskRequest.requester_id == user.id,
        FriendTaskRequest.status.in_([TaskRequestStatus.pending.value, TaskRequestStatus.completed.value])
    ).order_by(FriendTaskRequest.created_at.desc()).all()


@app.post("/friend-tasks/{request_id}/complete", response_model=FriendTaskRequestResponse, tags=["Friend Tasks"])
def complete_friend_task(request_id: int, user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    request = db.query(FriendTaskRequest).filter(FriendTaskRequest.id == request_id).first()
    if not request:
        raise HTTPException(status_code=404, detail="Task request not found")
    try:
        return complete_task_request(db, user, request)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
