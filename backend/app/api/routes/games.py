"""
Public catalog routes: browsing, quizzes, ratings, comments, favorites,
leaderboards and the shared-secret unlock
"""
from typing import List, Optional
import hmac

from fastapi import APIRouter, Depends, HTTPException, status, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_current_user, get_db
from app.api.routes.auth import client_ip, enforce_rate_limit
from app.api.schemas import (
    GameResponse, GameDetailResponse, QuizSubmission, QuizResult,
    RatingRequest, RatingResponse, CommentCreate, OkResponse,
    FavoritesResponse, LeaderboardSubmit, LeaderboardResponse,
    UnlockRequest, UnlockResponse,
)
from app.core.config import settings
from app.core.logging import log_security_event
from app.models import Game, User
from app.services.auth import AuthService
from app.services.catalog import CatalogService

router = APIRouter(tags=["Games"])


async def get_game_or_404(game_id: str, db: AsyncSession) -> Game:
    game = await CatalogService.get_game(db, game_id)
    if not game:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
    return game


@router.get("/games", response_model=List[GameResponse])
async def list_games(
    q: Optional[str] = None,
    tag: Optional[str] = None,
    category: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(30, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """Search and list games, newest first"""
    games = await CatalogService.list_games(db, q=q, tag=tag, category=category, page=page, limit=limit)
    return [GameResponse.from_game(g) for g in games]


@router.get("/games/{game_id}", response_model=GameDetailResponse)
async def get_game(
    game_id: str,
    db: AsyncSession = Depends(get_db),
):
    game = await get_game_or_404(game_id, db)
    return GameDetailResponse.from_game(game)


@router.post("/games/{game_id}/quiz", response_model=QuizResult)
async def submit_quiz(
    game_id: str,
    submission: QuizSubmission,
    db: AsyncSession = Depends(get_db),
):
    """Score answers against the game's quizzes; nothing is stored"""
    game = await get_game_or_404(game_id, db)
    score, total = CatalogService.score_quiz(game, submission.answers)
    return QuizResult(score=score, total=total)


@router.post("/games/{game_id}/rate", response_model=RatingResponse)
async def rate_game(
    game_id: str,
    rating: RatingRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    game = await get_game_or_404(game_id, db)
    average = await CatalogService.rate_game(db, game, user, rating.score)
    return RatingResponse(average=average)


@router.post("/games/{game_id}/comment", response_model=OkResponse)
async def comment_on_game(
    game_id: str,
    data: CommentCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Add a comment; it stays hidden until an admin approves it"""
    game = await get_game_or_404(game_id, db)
    await CatalogService.add_comment(db, game, user, data.text)
    return OkResponse()


@router.post("/games/{game_id}/favorite", response_model=FavoritesResponse)
async def toggle_favorite(
    game_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    game = await get_game_or_404(game_id, db)
    favorites = await CatalogService.toggle_favorite(db, user, game)
    return FavoritesResponse(favorites=favorites)


@router.post("/games/{game_id}/leaderboard", response_model=LeaderboardResponse)
async def submit_score(
    game_id: str,
    entry: LeaderboardSubmit,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Record a score and return the top of the board"""
    game = await get_game_or_404(game_id, db)
    board = await CatalogService.submit_score(db, game, user, entry.name, entry.score)
    return LeaderboardResponse(leaderboard=board[:settings.LEADERBOARD_PREVIEW_SIZE])


@router.post("/unlock", response_model=UnlockResponse)
async def unlock(
    data: UnlockRequest,
    request: Request,
    response: Response,
):
    """Exchange the shared game secret for a game access token (also set as a cookie)"""
    await enforce_rate_limit("unlock_attempt", request)

    if not settings.GAME_SECRET or not hmac.compare_digest(data.secret.encode(), settings.GAME_SECRET.encode()):
        log_security_event("unlock", ip_address=client_ip(request), success=False)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Wrong secret")

    token = AuthService.create_game_access_token()
    response.set_cookie(
        "game_access_token",
        token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=False,
        samesite="lax",
    )
    log_security_event("unlock", ip_address=client_ip(request))
    return UnlockResponse(token=token)
