"""
Authentication API routes
"""
from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime, timezone
import logging

from app.db.database import get_db
from app.services.auth import AuthService
from app.services.rate_limiter import rate_limiter, RateLimitExceeded
from app.api.schemas import UserCreate, UserLogin, UserResponse, LoginResponse
from app.api.dependencies import get_current_user
from app.core.config import settings
from app.core.logging import log_security_event
from app.models import User

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Authentication"])


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def enforce_rate_limit(action: str, request: Request) -> None:
    try:
        await rate_limiter.check_rate_limit(action, client_ip(request))
    except RateLimitExceeded as e:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Too many attempts. Try again in {e.retry_after} seconds.",
            headers={"Retry-After": str(e.retry_after)}
        )


def login_response(user: User) -> LoginResponse:
    return LoginResponse(
        access_token=AuthService.create_token(user),
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=UserResponse.model_validate(user),
    )


@router.post("/signup", response_model=LoginResponse)
async def signup(
    user_data: UserCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """Register a new player account with email/password"""
    await enforce_rate_limit("signup", request)

    existing = await AuthService.get_user_by_email(db, user_data.email)
    if existing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User exists",
        )

    user = await AuthService.create_user(db=db, email=user_data.email, password=user_data.password)
    await db.commit()

    log_security_event("signup", user_id=user.id, ip_address=client_ip(request))
    return login_response(user)


@router.post("/login", response_model=LoginResponse)
async def login(
    credentials: UserLogin,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """Login with email/password"""
    await enforce_rate_limit("login_attempt", request)

    user = await AuthService.authenticate_user(
        db=db,
        email=credentials.email,
        password=credentials.password,
    )

    if not user or not user.is_active:
        log_security_event("login", ip_address=client_ip(request), success=False, email=credentials.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    user.last_login = datetime.now(timezone.utc).replace(tzinfo=None)
    await db.commit()

    log_security_event("login", user_id=user.id, ip_address=client_ip(request))
    return login_response(user)


@router.get("/me", response_model=UserResponse)
async def get_me(
    user: User = Depends(get_current_user),
):
    """Get current user profile"""
    return user
