"""
Learning Games Hub - Main FastAPI Application
Catalog of browser-playable learning games with quizzes, ratings, comments,
leaderboards and bulk zip import for admins
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
import logging

from app.db.database import init_db, close_db, async_session_maker
from app.core.config import settings
from app.api.routes import auth, games, admin
from app.api.exception_handlers import setup_exception_handlers
from app.services.auth import seed_admin_user

# Configure logging - reduce noise, keep only important messages
logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Silence noisy loggers
logging.getLogger("uvicorn").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("uvicorn.error").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("botocore").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

# Import runs and security events are worth keeping
logging.getLogger("app.services.game_import").setLevel(logging.INFO)
logging.getLogger("security").setLevel(logging.INFO)

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler"""
    logger.info(f"Starting {settings.APP_NAME}...")
    settings.validate_secret_key()

    await init_db()
    logger.info("Database initialized")

    async with async_session_maker() as db:
        await seed_admin_user(db)

    if settings.USE_S3:
        logger.info(f"Game files stored in S3 bucket {settings.AWS_BUCKET}")
    else:
        logger.info(f"Game files stored in {settings.UPLOAD_DIR}")

    logger.info(f"{settings.APP_NAME} started successfully!")

    yield

    logger.info(f"Shutting down {settings.APP_NAME}...")
    await close_db()


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Setup centralized exception handlers
setup_exception_handlers(app)


@app.middleware("http")
async def security_headers(request: Request, call_next):
    """Games are served from our own origin and may only be framed by it"""
    response = await call_next(request)
    response.headers.setdefault(
        "Content-Security-Policy",
        "default-src 'self'; frame-ancestors 'self';",
    )
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    return response


# Include routers
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(games.router, prefix="/api")  # Routes /api/games/*, /api/unlock
app.include_router(admin.router, prefix="/api", tags=["Admin"])  # Routes /api/admin/*

# Uploaded and imported game files (S3 serves them itself)
if not settings.USE_S3:
    app.mount(
        settings.FILES_URL_PREFIX,
        StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False),
        name="game-files",
    )


@app.get("/api/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "learning-games-hub",
        "version": settings.APP_VERSION,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.BACKEND_HOST,
        port=settings.BACKEND_PORT,
        reload=settings.DEBUG
    )
