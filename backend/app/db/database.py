"""
Database session and connection management
"""
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool
from app.core.config import settings
from app.models import Base
import os


# Create async engine for SQLite
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Session factory
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db():
    """Dependency for getting database sessions"""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db():
    """Initialize database tables and the local upload directories"""
    if settings.DATABASE_URL.startswith("sqlite") and ":///" in settings.DATABASE_URL:
        db_path = settings.DATABASE_URL.split(":///", 1)[1]
        db_dir = os.path.dirname(db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    for path in (settings.UPLOAD_DIR, settings.UPLOAD_INCOMING_DIR, settings.UPLOAD_STAGING_DIR):
        os.makedirs(path, exist_ok=True)


async def close_db():
    """Close database connections"""
    await engine.dispose()
