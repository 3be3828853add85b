"""
=============================================================================
FRIENDS.PY — Friendships and friend task requests
=============================================================================
A friendship is ONE row for the pair, whoever asked first:
  - request: row requester → addressee, status "pending"
  - accept: the same row becomes "accepted"
  - remove: the row is deleted
A pair never has more than one row, in either direction.

A friend task request asks an accepted friend to care for one of your
trees within 24 hours. When the helper completes it, both players and the
tree are rewarded.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import or_, and_
from sqlalchemy.orm import Session

from models import (
    Profile, Tree, Friendship, FriendTaskRequest, FriendshipStatus, TaskRequestStatus
)
from gamification import credit_profile, credit_tree

logger = logging.getLogger("tamagotree.friends")


# =============================================================================
# ===================== FRIENDSHIPS ===========================================
# =============================================================================

def _pair_filter(user_id: int, other_id: int):
    return or_(
        and_(Friendship.user_id == user_id, Friendship.friend_id == other_id),
        and_(Friendship.user_id == other_id, Friendship.friend_id == user_id),
    )


def are_friends(db: Session, user_id: int, other_id: int) -> bool:
    return db.query(Friendship).filter(
        _pair_filter(user_id, other_id),
        Friendship.status == FriendshipStatus.accepted.value
    ).first() is not None


def friend_ids(db: Session, user_id: int) -> list[int]:
    """Ids of every accepted friend, whichever side sent the request"""
    rows = db.query(Friendship).filter(
        or_(Friendship.user_id == user_id, Friendship.friend_id == user_id),
        Friendship.status == FriendshipStatus.accepted.value
    ).all()
    return [row.friend_id if row.user_id == user_id else row.user_id for row in rows]


def send_friend_request(db: Session, profile: Profile, friend_id: int) -> Friendship:
    """
    Raises:
      ValueError → befriending yourself
      LookupError → the pair is already pending or accepted
    A rejected row is reused for the new request.
    """
    if friend_id == profile.id:
        raise ValueError("You cannot add yourself as a friend")

    friendship = db.query(Friendship).filter(_pair_filter(profile.id, friend_id)).first()
    if friendship and friendship.status != FriendshipStatus.rejected.value:
        raise LookupError("A friend request already exists")

    if friendship is None:
        friendship = Friendship()
        db.add(friendship)
    friendship.user_id = profile.id
    friendship.friend_id = friend_id
    friendship.status = FriendshipStatus.pending.value
    friendship.created_at = datetime.utcnow()
    db.commit()
    db.refresh(friendship)
    logger.info(f"👋 Friend request {profile.id} → {friend_id}")
    return friendship


def accept_friend_request(db: Session, profile: Profile, friendship: Friendship) -> Friendship:
    friendship.status = FriendshipStatus.accepted.value
    db.commit()
    db.refresh(friendship)
    logger.info(f"🤝 {profile.username} accepted friend {friendship.user_id}")
    return friendship


def remove_friend(db: Session, profile: Profile, friend_id: int) -> int:
    """Returns the number of rows removed (0 when they were not friends)"""
    deleted = db.query(Friendship).filter(
        _pair_filter(profile.id, friend_id),
        Friendship.status == FriendshipStatus.accepted.value
    ).delete(synchronize_session=False)
    db.commit()
    return deleted


# =============================================================================
# ===================== FRIEND TASK REQUESTS ==================================
# =============================================================================

TASK_REQUEST_TTL = timedelta(hours=24)

TASK_REWARDS = {
    "Morning Dew": {"requester": {"acorns": 100, "bp": 100}, "helper": {"acorns": 100, "bp": 100}},
    "Petal Performer": {"requester": {"acorns": 200, "bp": 50}, "helper": {"acorns": 200, "bp": 50}},
    "Leaf Collector": {"requester": {"acorns": 100, "bp": 200}, "helper": {"acorns": 100, "bp": 200}},
}


def create_task_request(db: Session, profile: Profile, tree: Tree, helper_id: int,
                        task_type: str, now: Optional[datetime] = None) -> FriendTaskRequest:
    """
    Raises ValueError on an unknown task type, a tree the requester does not
    own, or a helper who is not an accepted friend.
    """
    now = now or datetime.utcnow()
    rewards = TASK_REWARDS.get(task_type)
    if rewards is None:
        raise ValueError(f"Unknown task type: {task_type}")
    if tree.user_id != profile.id:
        raise ValueError("You can only ask for help with your own trees")
    if not are_friends(db, profile.id, helper_id):
        raise ValueError("You can only ask friends for help")

    request = FriendTaskRequest(
        requester_id=profile.id,
        helper_id=helper_id,
        tree_id=tree.id,
        task_type=task_type,
        requester_reward_acorns=rewards["requester"]["acorns"],
        requester_reward_bp=rewards["requester"]["bp"],
        helper_reward_acorns=rewards["helper"]["acorns"],
        helper_reward_bp=rewards["helper"]["bp"],
        status=TaskRequestStatus.pending.value,
        created_at=now,
        expires_at=now + TASK_REQUEST_TTL,
    )
    db.add(request)
    db.commit()
    db.refresh(request)
    logger.info(f"🙋 Task request {task_type}: {profile.id} → {helper_id} (tree {tree.id})")
    return request


def complete_task_request(db: Session, profile: Profile, request: FriendTaskRequest,
                          now: Optional[datetime] = None) -> FriendTaskRequest:
    """
    Helper completes the task. Request status, both profile credits and the
    tree's bloom points land in one commit.

    Raises:
      PermissionError → caller is not the helper
      ValueError → already completed or expired
    """
    now = now or datetime.utcnow()
    if request.helper_id != profile.id:
        raise PermissionError("Only the helper can complete this task")
    if request.status != TaskRequestStatus.pending.value:
        raise ValueError("This task was already completed")
    if request.expires_at < now:
        raise ValueError("This task request has expired")

    request.status = TaskRequestStatus.completed.value
    request.completed_at = now

    credit_profile(profile, acorns=request.helper_reward_acorns, xp=request.helper_reward_bp)
    requester = db.query(Profile).filter(Profile.id == request.requester_id).first()
    if requester:
        credit_profile(requester, acorns=request.requester_reward_acorns, xp=request.requester_reward_bp)
    tree = db.query(Tree).filter(Tree.id == request.tree_id).first()
    if tree:
        # bloom points only, friend help does not touch health
        credit_tree(tree, bloom_points=request.requester_reward_bp, health_boost=0)

    db.commit()
    db.refresh(request)
    logger.info(f"✅ Task request {request.id} completed by {profile.username}")
    return request
