"""
Bulk game import

Drives one archive through the pipeline:

    READING     read_archive()                    -> entries
    SCANNING    find_manifests() then, per folder,
                AssetMaterializer.materialize()   -> public URL
                CatalogService.create_game_from_manifest()
    FINALIZING  delete the uploaded archive, build the summary
    COMPLETED   ImportResult returned

An unreadable archive moves straight from READING to FAILED and raises
ArchiveCorrupt before anything is written to storage. Failures for a single
folder are logged and skipped.
"""
import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import List
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.logging import get_logger, log_duration
from app.models import Game
from app.services.archive_reader import read_archive
from app.services.asset_materializer import AssetMaterializer
from app.services.catalog import CatalogService
from app.services.errors import ArchiveCorrupt, WriteFailed
from app.services.manifest import find_manifests
from app.services.storage import StorageBackend

logger = logging.getLogger(__name__)
import_logger = get_logger("app.services.game_import.events")


class ImportState(str, enum.Enum):
    PENDING = "pending"
    READING = "reading"
    SCANNING = "scanning"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ImportResult:
    """Summary of one import; items is a preview of the created games"""
    created: int
    items: List[Game] = field(default_factory=list)


class GameImportService:
    """Imports a zip of game folders into the catalog"""

    def __init__(self, storage: StorageBackend, preview_limit: int | None = None):
        self.materializer = AssetMaterializer(storage)
        self.preview_limit = preview_limit if preview_limit is not None else settings.IMPORT_PREVIEW_LIMIT
        self.state = ImportState.PENDING

    async def import_archive(self, db: AsyncSession, archive_path: Path) -> ImportResult:
        """
        Import every game folder in the archive at archive_path.

        The archive file is removed once the import completes. It is left in
        place when the archive turns out to be unreadable.

        Raises:
            ArchiveCorrupt: If the archive cannot be opened or parsed
        """
        archive_path = Path(archive_path)
        events = import_logger.with_fields(archive=archive_path.name)

        with log_duration("game_import", logger=events):
            self.state = ImportState.READING
            try:
                entries = read_archive(archive_path.read_bytes())
            except ArchiveCorrupt:
                self.state = ImportState.FAILED
                raise

            self.state = ImportState.SCANNING
            manifests = find_manifests(entries)
            created: List[Game] = []

            for folder, manifest in manifests:
                try:
                    file_path = self.materializer.materialize(folder, entries)
                except WriteFailed as e:
                    events.warning("Folder skipped", folder=folder, reason="write_failed", error=e.message)
                    continue

                try:
                    game = await CatalogService.create_game_from_manifest(db, manifest, file_path)
                except SQLAlchemyError as e:
                    await db.rollback()
                    # rollback expires everything, including games already committed
                    for earlier in created:
                        await db.refresh(earlier)
                    events.warning("Folder skipped", folder=folder, reason="catalog_write_failed", error=str(e))
                    continue

                created.append(game)

            self.state = ImportState.FINALIZING
            archive_path.unlink(missing_ok=True)

            events.info(
                "Archive imported",
                manifests=len(manifests),
                created=len(created),
                skipped=len(manifests) - len(created),
            )

        self.state = ImportState.COMPLETED
        return ImportResult(created=len(created), items=created[:self.preview_limit])
