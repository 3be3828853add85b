import asyncio
from datetime import datetime, timedelta

from models import FriendTaskRequest
from scheduler import purge_expired_task_requests, create_scheduler

NOW = datetime(2026, 10, 21, 12, 0)


def _request(db, requester, helper, tree, status, expires_at):
    db.add(FriendTaskRequest(
        requester_id=requester.id, helper_id=helper.id, tree_id=tree.id,
        task_type="Morning Dew", requester_reward_acorns=100, requester_reward_bp=100,
        helper_reward_acorns=100, helper_reward_bp=100,
        status=status, created_at=expires_at - timedelta(hours=24), expires_at=expires_at,
    ))
    db.commit()


def test_purge_removes_only_expired_pending_requests(db, make_profile, make_tree):
    alice = make_profile("alice")
    bob = make_profile("bob")
    tree = make_tree(alice)
    _request(db, alice, bob, tree, "pending", NOW - timedelta(minutes=1))
    _request(db, alice, bob, tree, "pending", NOW + timedelta(hours=3))
    _request(db, alice, bob, tree, "completed", NOW - timedelta(hours=3))

    assert purge_expired_task_requests(db, now=NOW) == 1

    remaining = db.query(FriendTaskRequest).order_by(FriendTaskRequest.id).all()
    assert [r.status for r in remaining] == ["pending", "completed"]
    assert purge_expired_task_requests(db, now=NOW) == 0


def test_scheduler_registers_purge_job():
    async def build():
        return create_scheduler()

    scheduler = asyncio.run(build())
    job = scheduler.get_job("purge_expired_task_requests")
    assert job is not None
    assert job.name == "Purge expired friend task requests"
