"""Database module initialization"""

from .db import get_db, get_db_context, init_db, engine, SessionLocal
from .models import (
    Base,
    Game,
    GameRTPSnapshot,
    GameRTPWindow,
    GameRanking,
)

__all__ = [
    # Database utilities
    "get_db",
    "get_db_context",
    "init_db",
    "engine",
    "SessionLocal",
    # Models
    "Base",
    "Game",
    "GameRTPSnapshot",
    "GameRTPWindow",
    "GameRanking",
]
