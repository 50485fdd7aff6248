"""
User-related models

Contains:
- User: Core user account
- user_favorites: Association between users and their favorite games
"""
from sqlalchemy import (
    Column, String, Boolean, DateTime, Enum, ForeignKey, Table
)
from sqlalchemy.orm import relationship

from .base import Base, generate_uuid, utcnow, UserRole


# Association table for User <-> Game favorites
user_favorites = Table(
    "user_favorites",
    Base.metadata,
    Column("user_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("game_id", String(36), ForeignKey("games.id", ondelete="CASCADE"), primary_key=True),
)


class User(Base):
    """
    Account for players and administrators.

    Password-based only; the role decides access to the admin routes.
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    role = Column(Enum(UserRole), default=UserRole.USER, nullable=False)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=utcnow)
    last_login = Column(DateTime, nullable=True)

    favorites = relationship("Game", secondary=user_favorites, lazy="selectin")

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def favorite_ids(self) -> list[str]:
        return [g.id for g in self.favorites]
