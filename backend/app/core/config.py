"""
Core configuration for Learning Games Hub
"""
from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Optional, List
from functools import lru_cache
import secrets

from app.services.storage import StorageConfig


class Settings(BaseSettings):
    # ===========================================
    # APPLICATION
    # ===========================================

    APP_NAME: str = "Learning Games Hub"
    APP_VERSION: str = "1.0.0"
    APP_DESCRIPTION: str = "Catalog of browser-playable learning games"

    # ===========================================
    # SERVER & INFRASTRUCTURE
    # ===========================================

    DEBUG: bool = False
    BACKEND_HOST: str = "127.0.0.1"  # Bind address (use 0.0.0.0 to expose externally)
    BACKEND_PORT: int = 4000

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173", "http://127.0.0.1:5173"]

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/learning_games.db"

    # ===========================================
    # SECURITY
    # ===========================================

    SECRET_KEY: str = Field(default_factory=lambda: secrets.token_urlsafe(32))
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7  # 7 days

    # Login throttling (per client IP)
    LOGIN_RATE_LIMIT: int = 10
    LOGIN_RATE_WINDOW_SECONDS: int = 60

    def validate_secret_key(self) -> None:
        """
        Warn if SECRET_KEY appears to be auto-generated in production.
        Auto-generated keys change on restart, invalidating all sessions.
        """
        import logging
        logger = logging.getLogger(__name__)

        # 32 bytes base64 = 43 chars
        if len(self.SECRET_KEY) == 43 and not self.DEBUG:
            logger.warning(
                "SECRET_KEY appears to be auto-generated. "
                "Set a stable SECRET_KEY in production to keep tokens valid across restarts."
            )

    # Administrator Account (created on startup if set)
    ADMIN_EMAIL: str = "admin@localhost"
    ADMIN_PASS: Optional[str] = None

    @property
    def admin_password(self) -> Optional[str]:
        """Return None if ADMIN_PASS is empty or not set"""
        if self.ADMIN_PASS and self.ADMIN_PASS.strip():
            return self.ADMIN_PASS
        return None

    # Shared secret that unlocks games without an account (disabled when unset)
    GAME_SECRET: Optional[str] = None

    # ===========================================
    # FILE UPLOADS & STORAGE
    # ===========================================

    MAX_UPLOAD_SIZE_MB: int = 50
    UPLOAD_DIR: str = "./uploads"
    FILES_URL_PREFIX: str = "/games/files"

    # Work areas kept outside UPLOAD_DIR, which is publicly served
    UPLOAD_INCOMING_DIR: str = "./data/incoming"  # uploaded archives awaiting import
    UPLOAD_STAGING_DIR: str = "./data/staging"  # game folders being written

    # Object storage (used instead of UPLOAD_DIR when USE_S3 is true)
    USE_S3: bool = False
    AWS_BUCKET: Optional[str] = None
    AWS_REGION: Optional[str] = None
    S3_ENDPOINT_URL: Optional[str] = None
    S3_KEY_PREFIX: str = ""
    S3_PUBLIC_BASE_URL: Optional[str] = None

    # ===========================================
    # CATALOG
    # ===========================================

    IMPORT_PREVIEW_LIMIT: int = 20
    LEADERBOARD_SIZE: int = 100
    LEADERBOARD_PREVIEW_SIZE: int = 10

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def max_upload_bytes(self) -> int:
        return self.MAX_UPLOAD_SIZE_MB * 1024 * 1024

    @property
    def storage_config(self) -> StorageConfig:
        """Storage backend selection, resolved once at startup"""
        return StorageConfig(
            backend="s3" if self.USE_S3 else "local",
            root=self.UPLOAD_DIR,
            url_prefix=self.FILES_URL_PREFIX,
            staging_root=self.UPLOAD_STAGING_DIR,
            bucket=self.AWS_BUCKET,
            region=self.AWS_REGION,
            endpoint_url=self.S3_ENDPOINT_URL,
            key_prefix=self.S3_KEY_PREFIX,
            public_base_url=self.S3_PUBLIC_BASE_URL,
        )


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
