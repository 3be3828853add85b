"""
=============================================================================
SHOP.PY — Decorations
=============================================================================
Acorns buy cosmetic decorations. An owned decoration can be placed on any
of the owner's trees, as many times as they like; each placement stores a
position as a percentage of the tree photo.
"""

import logging

from sqlalchemy.orm import Session
from models import Profile, Decoration, UserDecoration

logger = logging.getLogger("tamagotree.shop")


DECORATION_DEFINITIONS = [
    {"name": "bow", "display_name": "Ribbon Bow", "category": "accessories", "icon": "🎀", "price": 100},
    {"name": "scissors", "display_name": "Pruning Scissors", "category": "accessories", "icon": "✂️", "price": 150},
    {"name": "sun", "display_name": "Little Sun", "category": "sky", "icon": "☀️", "price": 250},
    {"name": "globe", "display_name": "Tiny Globe", "category": "sky", "icon": "🌍", "price": 400},
    {"name": "whale", "display_name": "Sky Whale", "category": "friends", "icon": "🐋", "price": 600},
]


def seed_decorations(db: Session):
    """Inserts the catalog rows that are missing. Runs on startup."""
    for deco_def in DECORATION_DEFINITIONS:
        existing = db.query(Decoration).filter(Decoration.name == deco_def["name"]).first()
        if not existing:
            db.add(Decoration(
                name=deco_def["name"],
                display_name=deco_def["display_name"],
                category=deco_def["category"],
                icon=deco_def["icon"],
                price_acorns=deco_def["price"],
                is_available=True,
            ))
    db.commit()
    logger.info(f"✅ {len(DECORATION_DEFINITIONS)} decorations checked in DB")


def owns_decoration(db: Session, profile: Profile, decoration_id: int) -> bool:
    return db.query(UserDecoration).filter(
        UserDecoration.user_id == profile.id,
        UserDecoration.decoration_id == decoration_id
    ).first() is not None


def purchase_decoration(db: Session, profile: Profile, decoration: Decoration) -> UserDecoration:
    """
    Deducts the price and grants the decoration in one commit.

    Raises:
      LookupError → already owned
      ValueError → not enough acorns, or not for sale
    """
    if not decoration.is_available:
        raise ValueError("This decoration is not for sale")
    if owns_decoration(db, profile, decoration.id):
        raise LookupError("You already own this decoration!")
    if (profile.acorns or 0) < decoration.price_acorns:
        raise ValueError(
            f"You need {decoration.price_acorns} acorns but only have {profile.acorns or 0}."
        )

    profile.acorns = profile.acorns - decoration.price_acorns
    owned = UserDecoration(user_id=profile.id, decoration_id=decoration.id)
    db.add(owned)
    db.commit()
    db.refresh(owned)

    logger.info(f"🛒 {profile.username} bought {decoration.display_name} for {decoration.price_acorns} acorns")
    return owned


def clamp_position(value: float) -> float:
    """Placement coordinates are percentages"""
    return max(0.0, min(100.0, value))
