"""
Authentication service: password hashing, JWTs and admin seeding
"""
from datetime import datetime, timezone, timedelta
from typing import Optional
import logging

from jose import jwt, JWTError
import bcrypt
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.core.config import settings
from app.models import User, UserRole

logger = logging.getLogger(__name__)


class AuthService:
    """Handle authentication and tokens"""

    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        return bcrypt.checkpw(
            plain_password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )

    @staticmethod
    def hash_password(password: str) -> str:
        return bcrypt.hashpw(
            password.encode('utf-8'),
            bcrypt.gensalt()
        ).decode('utf-8')

    @staticmethod
    def create_access_token(data: dict, expires_delta: Optional[timedelta] = None, token_type: str = "access") -> str:
        to_encode = data.copy()
        expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
        to_encode.update({"exp": expire, "type": token_type})
        return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

    @staticmethod
    def decode_token(token: str) -> Optional[dict]:
        try:
            return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        except JWTError:
            return None

    @staticmethod
    def create_token(user: User) -> str:
        return AuthService.create_access_token({"sub": user.id, "email": user.email, "role": user.role.value})

    @staticmethod
    def create_game_access_token() -> str:
        """Token granted by the shared game secret; carries no user"""
        return AuthService.create_access_token({}, token_type="game_access")

    @staticmethod
    async def authenticate_user(db: AsyncSession, email: str, password: str) -> Optional[User]:
        user = await AuthService.get_user_by_email(db, email)

        if not user:
            logger.info(f"Login for unknown email: {email}")
            return None

        if not AuthService.verify_password(password, user.hashed_password):
            logger.info(f"Password verification failed for: {email}")
            return None

        return user

    @staticmethod
    async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_user_by_id(db: AsyncSession, user_id: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def create_user(
        db: AsyncSession,
        email: str,
        password: str,
        role: UserRole = UserRole.USER,
    ) -> User:
        user = User(
            email=email,
            hashed_password=AuthService.hash_password(password),
            role=role,
            favorites=[],
        )
        db.add(user)
        await db.flush()
        return user


async def seed_admin_user(db: AsyncSession) -> Optional[User]:
    """
    Create or update the admin account from ADMIN_EMAIL / ADMIN_PASS.
    Called on application startup; does nothing when ADMIN_PASS is unset.
    """
    admin_pass = settings.admin_password
    if not admin_pass:
        logger.info("No ADMIN_PASS configured, skipping admin seeding")
        return None

    admin = await AuthService.get_user_by_email(db, settings.ADMIN_EMAIL)

    if admin:
        logger.info(f"Updating existing admin user: id={admin.id}")
        admin.hashed_password = AuthService.hash_password(admin_pass)
        admin.role = UserRole.ADMIN
        admin.is_active = True
    else:
        logger.info(f"Creating admin user: {settings.ADMIN_EMAIL}")
        admin = User(
            email=settings.ADMIN_EMAIL,
            hashed_password=AuthService.hash_password(admin_pass),
            role=UserRole.ADMIN,
            is_active=True,
            favorites=[],
        )
        db.add(admin)

    await db.commit()
    return admin
