import os
import tempfile

# Must be set before database.py is imported anywhere
_tmp_dir = tempfile.mkdtemp(prefix="tamagotree-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_tmp_dir, 'test.db')}"
os.environ["ENABLE_SCHEDULER"] = "0"
os.environ.pop("GITHUB_TOKEN", None)

import pytest
from fastapi.testclient import TestClient

from database import Base, engine, SessionLocal
from models import Profile, Tree
from gamification import seed_achievements
from quests import seed_quests
from shop import seed_decorations


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    seed_achievements(session)
    seed_quests(session)
    seed_decorations(session)
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db):
    from main import app
    # No context manager: the lifespan (scheduler, seeding) stays off
    return TestClient(app)


@pytest.fixture
def make_profile(db):
    def _make(username, acorns=0, total_xp=0, private=False):
        profile = Profile(
            email=f"{username}@example.com",
            password_hash="not-a-real-hash",
            username=username,
            acorns=acorns,
            total_xp=total_xp,
            profile_private=private,
        )
        db.add(profile)
        db.commit()
        db.refresh(profile)
        return profile
    return _make


@pytest.fixture
def make_tree(db):
    def _make(owner, name="Old Oak", created_at=None, health=100, xp_earned=0, level=1):
        tree = Tree(
            user_id=owner.id if owner is not None else None,
            name=name,
            latitude=40.4168,
            longitude=-3.7038,
            health_percentage=health,
            health_status="healthy",
            xp_earned=xp_earned,
            level=level,
        )
        if created_at is not None:
            tree.created_at = created_at
        db.add(tree)
        db.commit()
        db.refresh(tree)
        return tree
    return _make


@pytest.fixture
def register(client):
    """Registers through the API, returns (user_id, auth headers)"""
    def _register(username, email=None, password="secret123"):
        response = client.post("/auth/register", json={
            "email": email or f"{username}@example.com",
            "password": password,
            "username": username,
        })
        assert response.status_code == 200, response.text
        body = response.json()
        return body["user_id"], {"Authorization": f"Bearer {body['access_token']}"}
    return _register
