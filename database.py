"""
=============================================================================
DATABASE.PY — Tamagotree storage
=============================================================================
Profiles, trees, quest progress, shop purchases and friendships all live in
one relational database reached through SQLAlchemy.

DATABASE_URL picks the backend: a PostgreSQL URL on the hosted service, and
the local tamagotree.db SQLite file when it is unset. The test suite points
it at a throwaway SQLite file.
"""

import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

# ─────────────────────────────────────────────────────────────────────────────
# CONNECTION
# ─────────────────────────────────────────────────────────────────────────────

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./tamagotree.db")

# Always connect to PostgreSQL through psycopg 3.
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql+psycopg://", 1)
elif DATABASE_URL.startswith("postgresql://"):
    DATABASE_URL = DATABASE_URL.replace("postgresql://", "postgresql+psycopg://", 1)

# ─────────────────────────────────────────────────────────────────────────────
# ENGINE
# ─────────────────────────────────────────────────────────────────────────────
# The SQLite file is shared by the request thread pool and the scheduler jobs.

engine_args = {}
if DATABASE_URL.startswith("sqlite"):
    engine_args["connect_args"] = {"check_same_thread": False}

engine = create_engine(DATABASE_URL, echo=False, **engine_args)

# ─────────────────────────────────────────────────────────────────────────────
# SESSION
# ─────────────────────────────────────────────────────────────────────────────

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# ─────────────────────────────────────────────────────────────────────────────
# BASE
# ─────────────────────────────────────────────────────────────────────────────

Base = declarative_base()


def get_db():
    """
    Request-scoped session for the endpoints; closed once the response is
    sent. Scheduler jobs open their own SessionLocal instead.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Missing tables are created at startup; there are no migrations."""
    Base.metadata.create_all(bind=engine)
