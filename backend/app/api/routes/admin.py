"""
Admin routes: game uploads (single and bulk zip), user management,
comment moderation and analytics
"""
from fastapi import APIRouter, Depends, HTTPException, status, UploadFile, File, Form
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from pydantic import TypeAdapter, ValidationError
from typing import Optional, List
from pathlib import Path
import json
import logging
import uuid

from app.api.dependencies import get_admin_user, get_db, get_storage
from app.api.schemas import (
    GameResponse, ImportResultResponse, UserResponse, RoleUpdate, RoleUpdateResponse,
    OkResponse, AdminCommentResponse, AnalyticsResponse,
)
from app.core.config import settings
from app.core.logging import log_security_event
from app.models import User, UserRole
from app.services.catalog import CatalogService
from app.services.game_import import GameImportService
from app.services.manifest import QuizItem
from app.services.storage import StorageBackend
from app.services.validators import (
    ALLOWED_GAME_FILE_EXTENSIONS,
    FileValidationError, validate_file_extension, validate_file_size, safe_filename,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

CHUNK_SIZE = 1024 * 1024
_quiz_list = TypeAdapter(List[QuizItem])


def incoming_dir() -> Path:
    """Where uploaded archives wait to be imported"""
    path = Path(settings.UPLOAD_INCOMING_DIR)
    path.mkdir(parents=True, exist_ok=True)
    return path


async def save_upload(file: UploadFile, destination: Path, max_bytes: int) -> int:
    """
    Stream an upload to disk, enforcing the size limit as it goes.

    Raises:
        FileTooLargeError: If the upload exceeds max_bytes (partial file removed)
    """
    written = 0
    try:
        with open(destination, "wb") as out:
            while chunk := await file.read(CHUNK_SIZE):
                written += len(chunk)
                validate_file_size(written, max_bytes, "upload")
                out.write(chunk)
    except FileValidationError:
        destination.unlink(missing_ok=True)
        raise
    return written


def parse_tags(raw: Optional[str]) -> List[str]:
    return [t.strip() for t in (raw or "").split(",") if t.strip()]


def parse_quizzes(raw: Optional[str]) -> List[QuizItem]:
    if not raw or not raw.strip():
        return []
    try:
        return _quiz_list.validate_python(json.loads(raw))
    except (json.JSONDecodeError, ValidationError) as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid quizzes JSON: {e}",
        )


# =============================================================================
# Games
# =============================================================================

@router.post("/games", response_model=GameResponse)
async def create_game(
    title: str = Form("Untitled"),
    description: str = Form(""),
    category: str = Form(""),
    tags: str = Form(""),
    lessonTitle: str = Form(""),
    lessonContent: str = Form(""),
    quizzes: str = Form(""),
    gameFile: Optional[UploadFile] = File(None),
    admin: User = Depends(get_admin_user),
    storage: StorageBackend = Depends(get_storage),
    db: AsyncSession = Depends(get_db),
):
    """Upload a single game, optionally with its playable file"""
    parsed_quizzes = parse_quizzes(quizzes)

    file_path = ""
    if gameFile is not None and gameFile.filename:
        validate_file_extension(gameFile.filename, ALLOWED_GAME_FILE_EXTENSIONS, "game file")
        contents = await gameFile.read()
        validate_file_size(len(contents), settings.max_upload_bytes, "game file")

        key = f"{uuid.uuid4().hex}_{safe_filename(gameFile.filename)}"
        storage.write(key, contents)
        file_path = storage.public_url(key)

    game = await CatalogService.create_game(
        db,
        title=title or "Untitled",
        file_path=file_path,
        description=description,
        category=category,
        tags=parse_tags(tags),
        lesson_title=lessonTitle,
        lesson_content=lessonContent,
        quizzes=parsed_quizzes,
    )
    logger.info(f"Admin {admin.email} created game {game.id}")
    return GameResponse.from_game(game)


@router.post("/bulk-upload", response_model=ImportResultResponse)
async def bulk_upload(
    zipFile: Optional[UploadFile] = File(None),
    admin: User = Depends(get_admin_user),
    storage: StorageBackend = Depends(get_storage),
    db: AsyncSession = Depends(get_db),
):
    """
    Import a zip holding one folder per game.

    Each folder needs a metadata.json and an index.html. Folders with a
    broken manifest or a failed copy are skipped; only the number created
    is reported.

    The upload name is not checked; the archive reader decides whether
    the bytes are a zip.
    """
    if zipFile is None or not zipFile.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file")

    archive_path = incoming_dir() / f"{uuid.uuid4().hex}.zip"
    size = await save_upload(zipFile, archive_path, settings.max_upload_bytes)
    logger.info(f"Admin {admin.email} uploaded archive {zipFile.filename} ({size} bytes)")

    service = GameImportService(storage)
    result = await service.import_archive(db, archive_path)

    return ImportResultResponse(
        created=result.created,
        items=[GameResponse.from_game(g) for g in result.items],
    )


@router.get("/games", response_model=List[GameResponse])
async def list_all_games(
    admin: User = Depends(get_admin_user),
    db: AsyncSession = Depends(get_db),
):
    games = await CatalogService.list_all_games(db)
    return [GameResponse.from_game(g) for g in games]


# =============================================================================
# Users
# =============================================================================

async def get_user_or_404(db: AsyncSession, user_id: str) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    target = result.scalar_one_or_none()
    if not target:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
    return target


@router.get("/users", response_model=List[UserResponse])
async def list_users(
    admin: User = Depends(get_admin_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(User).order_by(User.created_at.desc()))
    return result.scalars().all()


@router.post("/users/{user_id}/role", response_model=RoleUpdateResponse)
async def change_role(
    user_id: str,
    data: RoleUpdate,
    admin: User = Depends(get_admin_user),
    db: AsyncSession = Depends(get_db),
):
    target = await get_user_or_404(db, user_id)

    if target.id == admin.id and data.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot remove your own admin status",
        )

    target.role = data.role
    await db.commit()

    log_security_event("role_change", user_id=target.id, changed_by=admin.id, role=data.role.value)
    return RoleUpdateResponse(user=UserResponse.model_validate(target))


@router.delete("/users/{user_id}", response_model=OkResponse)
async def delete_user(
    user_id: str,
    admin: User = Depends(get_admin_user),
    db: AsyncSession = Depends(get_db),
):
    target = await get_user_or_404(db, user_id)

    if target.id == admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete your own account",
        )

    await db.delete(target)
    await db.commit()

    log_security_event("user_deleted", user_id=user_id, changed_by=admin.id)
    return OkResponse()


# =============================================================================
# Comment moderation
# =============================================================================

@router.get("/comments", response_model=List[AdminCommentResponse])
async def list_comments(
    admin: User = Depends(get_admin_user),
    db: AsyncSession = Depends(get_db),
):
    """Every comment, newest first, with the game it belongs to"""
    pairs = await CatalogService.list_comments(db)
    return [AdminCommentResponse.from_pair(comment, game) for comment, game in pairs]


@router.post("/comments/{comment_id}/approve", response_model=OkResponse)
async def approve_comment(
    comment_id: str,
    admin: User = Depends(get_admin_user),
    db: AsyncSession = Depends(get_db),
):
    comment = await CatalogService.get_comment(db, comment_id)
    if not comment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")

    comment.approved = True
    await db.commit()
    return OkResponse()


@router.delete("/comments/{comment_id}", response_model=OkResponse)
async def delete_comment(
    comment_id: str,
    admin: User = Depends(get_admin_user),
    db: AsyncSession = Depends(get_db),
):
    comment = await CatalogService.get_comment(db, comment_id)
    if not comment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")

    await db.delete(comment)
    await db.commit()
    return OkResponse()


# =============================================================================
# Analytics
# =============================================================================

@router.get("/analytics", response_model=AnalyticsResponse)
async def analytics(
    admin: User = Depends(get_admin_user),
    db: AsyncSession = Depends(get_db),
):
    return await CatalogService.analytics(db)
