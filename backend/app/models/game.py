"""
Game catalog models

Contains:
- Game: One playable learning game with its lesson, quizzes and leaderboard
- GameRating: A user's score for a game (one per user per game)
- GameComment: User comment awaiting or passed moderation
"""
from sqlalchemy import (
    Column, String, Integer, Boolean, DateTime, Text,
    ForeignKey, JSON, Index
)
from sqlalchemy.orm import relationship

from .base import Base, generate_uuid, utcnow


class Game(Base):
    """
    Catalog record for a learning game.

    Created by the bulk import or the single-game upload. Quizzes are stored
    in manifest form ({question, options, answerIndex}). The leaderboard is
    kept sorted by score, highest first, and capped (see LEADERBOARD_SIZE).
    """
    __tablename__ = "games"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    title = Column(String(255), nullable=False, default="Untitled")
    description = Column(Text, default="")
    category = Column(String(100), default="", index=True)
    tags = Column(JSON, default=list)

    # Public reference to the playable entry point (URL or path)
    file_path = Column(String(1000), default="")

    lesson_title = Column(String(255), default="")
    lesson_content = Column(Text, default="")

    quizzes = Column(JSON, default=list)
    leaderboard = Column(JSON, default=list)  # [{user_id, name, score, created_at}]

    created_at = Column(DateTime, default=utcnow, index=True)

    ratings = relationship("GameRating", back_populates="game", cascade="all, delete-orphan", lazy="selectin")
    comments = relationship(
        "GameComment",
        back_populates="game",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="GameComment.created_at",
    )

    @property
    def rating_count(self) -> int:
        return len(self.ratings)

    @property
    def average_rating(self) -> float | None:
        if not self.ratings:
            return None
        return sum(r.score for r in self.ratings) / len(self.ratings)

    @property
    def top_score(self) -> int | None:
        return self.leaderboard[0]["score"] if self.leaderboard else None


class GameRating(Base):
    """A user's rating of a game; re-rating replaces the score"""
    __tablename__ = "game_ratings"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    game_id = Column(String(36), ForeignKey("games.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    score = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    game = relationship("Game", back_populates="ratings")

    __table_args__ = (
        Index("idx_game_rating_user", "game_id", "user_id", unique=True),
    )


class GameComment(Base):
    """Comment on a game; hidden from the public until approved by an admin"""
    __tablename__ = "game_comments"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    game_id = Column(String(36), ForeignKey("games.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    user_email = Column(String(255), nullable=True)
    text = Column(Text, nullable=False)
    approved = Column(Boolean, default=False)

    created_at = Column(DateTime, default=utcnow)

    game = relationship("Game", back_populates="comments")

    __table_args__ = (
        Index("idx_game_comment_game", "game_id"),
        Index("idx_game_comment_approved", "approved"),
    )
