"""
Game catalog service

Creates catalog records (from manifests or the single-game upload form) and
implements the player-facing operations on them: search, quizzes, ratings,
comments, favorites and leaderboards.
"""
from typing import Any, Dict, List, Optional, Sequence, Tuple
import logging

from sqlalchemy import select, or_, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models import Game, GameRating, GameComment, User, utcnow
from app.services.manifest import GameManifest, QuizItem

logger = logging.getLogger(__name__)


class CatalogService:
    """Catalog reads and writes"""

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    @staticmethod
    async def create_game(
        db: AsyncSession,
        title: str,
        file_path: str = "",
        description: str = "",
        category: str = "",
        tags: Optional[Sequence[str]] = None,
        lesson_title: str = "",
        lesson_content: str = "",
        quizzes: Optional[Sequence[QuizItem]] = None,
    ) -> Game:
        """Persist one game and commit it on its own"""
        game = Game(
            title=title,
            description=description,
            category=category,
            tags=list(tags or []),
            file_path=file_path,
            lesson_title=lesson_title,
            lesson_content=lesson_content,
            quizzes=[q.to_record() for q in quizzes or []],
            leaderboard=[],
            ratings=[],
            comments=[],
        )
        db.add(game)
        await db.commit()
        return game

    @staticmethod
    async def create_game_from_manifest(db: AsyncSession, manifest: GameManifest, file_path: str) -> Game:
        """Catalog record for an imported folder. No duplicate check is made."""
        return await CatalogService.create_game(
            db,
            title=manifest.title,
            file_path=file_path,
            description=manifest.description,
            category=manifest.category,
            tags=manifest.tags,
            lesson_title=manifest.lesson_title,
            lesson_content=manifest.lesson_content,
            quizzes=manifest.quizzes,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @staticmethod
    async def get_game(db: AsyncSession, game_id: str) -> Optional[Game]:
        result = await db.execute(select(Game).where(Game.id == game_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def list_games(
        db: AsyncSession,
        q: Optional[str] = None,
        tag: Optional[str] = None,
        category: Optional[str] = None,
        page: int = 1,
        limit: int = 30,
    ) -> List[Game]:
        """Newest first, filtered by text search, tag and category"""
        query = select(Game).order_by(Game.created_at.desc())

        if category:
            query = query.where(Game.category == category)
        if q:
            pattern = f"%{q}%"
            query = query.where(or_(
                Game.title.ilike(pattern),
                Game.description.ilike(pattern),
                Game.lesson_content.ilike(pattern),
            ))

        offset = (page - 1) * limit
        if not tag:
            result = await db.execute(query.offset(offset).limit(limit))
            return list(result.scalars().all())

        # Tags live in a JSON column, so tag matching happens here
        result = await db.execute(query)
        tagged = [g for g in result.scalars().all() if tag in (g.tags or [])]
        return tagged[offset:offset + limit]

    @staticmethod
    async def list_all_games(db: AsyncSession) -> List[Game]:
        result = await db.execute(select(Game).order_by(Game.created_at.desc()))
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Player interactions
    # ------------------------------------------------------------------

    @staticmethod
    def score_quiz(game: Game, answers: Sequence[Any]) -> Tuple[int, int]:
        """Count answers matching each quiz's answerIndex; missing answers are wrong"""
        quizzes = game.quizzes or []
        score = 0
        for i, quiz in enumerate(quizzes):
            if i < len(answers) and answers[i] == quiz.get("answerIndex"):
                score += 1
        return score, len(quizzes)

    @staticmethod
    async def rate_game(db: AsyncSession, game: Game, user: User, score: int) -> float:
        """Set the user's rating (replacing any earlier one) and return the new average"""
        existing = next((r for r in game.ratings if r.user_id == user.id), None)
        if existing:
            existing.score = score
        else:
            game.ratings.append(GameRating(user_id=user.id, score=score))

        await db.commit()
        return game.average_rating

    @staticmethod
    async def add_comment(db: AsyncSession, game: Game, user: User, text: str) -> GameComment:
        comment = GameComment(user_id=user.id, user_email=user.email, text=text, approved=False)
        game.comments.append(comment)
        await db.commit()
        return comment

    @staticmethod
    async def toggle_favorite(db: AsyncSession, user: User, game: Game) -> List[str]:
        """Add the game to the user's favorites, or remove it if already there"""
        if any(g.id == game.id for g in user.favorites):
            user.favorites = [g for g in user.favorites if g.id != game.id]
        else:
            user.favorites.append(game)

        await db.commit()
        return user.favorite_ids

    @staticmethod
    async def submit_score(
        db: AsyncSession,
        game: Game,
        user: User,
        name: str,
        score: float,
    ) -> List[Dict[str, Any]]:
        """
        Add a leaderboard entry and return the full, ranked board.

        sorted() is stable, so equal scores keep their submission order.
        """
        entries = list(game.leaderboard or [])
        entries.append({
            "user_id": user.id,
            "name": name,
            "score": score,
            "created_at": utcnow().isoformat(),
        })
        ranked = sorted(entries, key=lambda e: e["score"], reverse=True)
        game.leaderboard = ranked[:settings.LEADERBOARD_SIZE]

        await db.commit()
        return game.leaderboard

    # ------------------------------------------------------------------
    # Moderation & analytics
    # ------------------------------------------------------------------

    @staticmethod
    async def list_comments(db: AsyncSession) -> List[Tuple[GameComment, Game]]:
        result = await db.execute(
            select(GameComment, Game)
            .join(Game, GameComment.game_id == Game.id)
            .order_by(GameComment.created_at.desc())
        )
        return [(comment, game) for comment, game in result.all()]

    @staticmethod
    async def get_comment(db: AsyncSession, comment_id: str) -> Optional[GameComment]:
        result = await db.execute(select(GameComment).where(GameComment.id == comment_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def analytics(db: AsyncSession, top: int = 10) -> Dict[str, Any]:
        total_games = await db.scalar(select(func.count()).select_from(Game))
        total_users = await db.scalar(select(func.count()).select_from(User))

        games = await CatalogService.list_all_games(db)
        ranked = sorted(
            (g for g in games if g.leaderboard),
            key=lambda g: g.top_score,
            reverse=True,
        )

        return {
            "total_games": total_games or 0,
            "total_users": total_users or 0,
            "top_games": [
                {"id": g.id, "title": g.title, "top_score": g.top_score, "leaderboard": g.leaderboard[:10]}
                for g in ranked[:top]
            ],
        }
