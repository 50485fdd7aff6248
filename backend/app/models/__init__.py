"""
Learning Games Hub Database Models

Module Structure:
- base.py: Base class, UUID/timestamp helpers and enums
- user.py: User, user_favorites
- game.py: Game, GameRating, GameComment

Usage:
    from app.models import User, Game
"""

# Base utilities and enums
from .base import (
    Base,
    generate_uuid,
    utcnow,
    UserRole,
)

# User-related models
from .user import User, user_favorites

# Catalog models
from .game import Game, GameRating, GameComment

__all__ = [
    # Base
    "Base",
    "generate_uuid",
    "utcnow",
    # Enums
    "UserRole",
    # User
    "User",
    "user_favorites",
    # Catalog
    "Game",
    "GameRating",
    "GameComment",
]
