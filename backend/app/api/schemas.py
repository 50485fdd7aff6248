"""
Pydantic schemas for API requests and responses
"""
from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List
from datetime import datetime

from app.models import Game, GameComment, UserRole
from app.services.manifest import QuizItem


# ============ Auth Schemas ============

class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserResponse(BaseModel):
    id: str
    email: str
    role: UserRole
    is_active: bool = True
    favorite_ids: List[str] = []
    created_at: datetime

    class Config:
        from_attributes = True


class LoginResponse(BaseModel):
    """Login/signup response includes user data"""
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class UnlockRequest(BaseModel):
    secret: str = Field(min_length=1)


class UnlockResponse(BaseModel):
    ok: bool = True
    token: str


# ============ Game Schemas ============

class LessonSchema(BaseModel):
    title: str = ""
    content: str = ""


class LeaderboardEntrySchema(BaseModel):
    user_id: Optional[str] = None
    name: str
    score: float
    created_at: Optional[str] = None


class CommentResponse(BaseModel):
    id: str
    user_id: Optional[str]
    user_email: Optional[str]
    text: str
    approved: bool
    created_at: datetime

    class Config:
        from_attributes = True


class GameResponse(BaseModel):
    id: str
    title: str
    description: str = ""
    category: str = ""
    tags: List[str] = []
    file_path: str = ""
    lesson: LessonSchema
    quizzes: List[QuizItem] = []
    average_rating: Optional[float] = None
    rating_count: int = 0
    leaderboard: List[LeaderboardEntrySchema] = []
    created_at: datetime

    @classmethod
    def from_game(cls, game: Game, **extra) -> "GameResponse":
        return cls(
            id=game.id,
            title=game.title,
            description=game.description or "",
            category=game.category or "",
            tags=game.tags or [],
            file_path=game.file_path or "",
            lesson=LessonSchema(title=game.lesson_title or "", content=game.lesson_content or ""),
            quizzes=[QuizItem.model_validate(q) for q in game.quizzes or []],
            average_rating=game.average_rating,
            rating_count=game.rating_count,
            leaderboard=game.leaderboard or [],
            created_at=game.created_at,
            **extra,
        )


class GameDetailResponse(GameResponse):
    """Single game view; only approved comments are included"""
    comments: List[CommentResponse] = []

    @classmethod
    def from_game(cls, game: Game) -> "GameDetailResponse":
        approved = [CommentResponse.model_validate(c) for c in game.comments if c.approved]
        return super().from_game(game, comments=approved)


class ImportResultResponse(BaseModel):
    created: int
    items: List[GameResponse]


# ============ Player Interaction Schemas ============

class QuizSubmission(BaseModel):
    answers: List[Optional[int]] = []


class QuizResult(BaseModel):
    score: int
    total: int


class RatingRequest(BaseModel):
    score: int = Field(ge=1, le=5)


class RatingResponse(BaseModel):
    ok: bool = True
    average: float


class CommentCreate(BaseModel):
    text: str = Field(min_length=1, max_length=5000)


class FavoritesResponse(BaseModel):
    favorites: List[str]


class LeaderboardSubmit(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    score: float


class LeaderboardResponse(BaseModel):
    ok: bool = True
    leaderboard: List[LeaderboardEntrySchema]


class OkResponse(BaseModel):
    ok: bool = True


# ============ Admin Schemas ============

class RoleUpdate(BaseModel):
    role: UserRole


class RoleUpdateResponse(BaseModel):
    ok: bool = True
    user: UserResponse


class AdminCommentResponse(BaseModel):
    game_id: str
    game_title: str
    comment: CommentResponse

    @classmethod
    def from_pair(cls, comment: GameComment, game: Game) -> "AdminCommentResponse":
        return cls(game_id=game.id, game_title=game.title, comment=CommentResponse.model_validate(comment))


class TopGameSchema(BaseModel):
    id: str
    title: str
    top_score: float
    leaderboard: List[LeaderboardEntrySchema] = []


class AnalyticsResponse(BaseModel):
    total_games: int
    total_users: int
    top_games: List[TopGameSchema]
