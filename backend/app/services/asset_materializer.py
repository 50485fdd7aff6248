"""
Copies one game folder from an archive into durable storage.

Files are staged under STAGING_DIR and only moved to their permanent,
publicly referenced folder once every file has been written.
"""
import re
import secrets
import time
import logging
from typing import List, Sequence

from app.services.archive_reader import ArchiveEntry
from app.services.errors import StorageError, WriteFailed
from app.services.storage import STAGING_DIR, StorageBackend

logger = logging.getLogger(__name__)

ENTRY_POINT = "index.html"

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def folder_files(folder: str, entries: Sequence[ArchiveEntry]) -> List[ArchiveEntry]:
    """All file entries inside folder, nested subfolders included"""
    prefix = folder + "/"
    return [e for e in entries if not e.is_dir and e.path.startswith(prefix)]


def allocate_folder_name(folder: str) -> str:
    """
    Unique permanent name for a materialized folder.

    Uses the last segment of the archive folder plus a millisecond
    timestamp and a random token, so repeated or concurrent imports of
    the same folder never collide.
    """
    base = _UNSAFE_NAME_CHARS.sub("_", folder.split("/")[-1]).strip("._") or "game"
    return f"{base}_{int(time.time() * 1000)}{secrets.token_hex(4)}"


class AssetMaterializer:
    """Writes game folders through a storage backend"""

    def __init__(self, storage: StorageBackend):
        self.storage = storage

    def materialize(self, folder: str, entries: Sequence[ArchiveEntry]) -> str:
        """
        Copy a game folder to storage and return the public entry point URL.

        Args:
            folder: Folder identifier inside the archive (e.g. "games/math")
            entries: Every entry of the archive

        Returns:
            Reference to index.html under the finalized folder

        Raises:
            WriteFailed: If any write or the finalize step fails. Files
                already staged are left in place.
        """
        final_name = allocate_folder_name(folder)
        staging = f"{STAGING_DIR}/{final_name}"
        files = folder_files(folder, entries)
        prefix_len = len(folder) + 1

        if not any(f.path[prefix_len:] == ENTRY_POINT for f in files):
            logger.warning(f"Folder {folder} has no {ENTRY_POINT}")

        try:
            for entry in files:
                self.storage.write(f"{staging}/{entry.path[prefix_len:]}", entry.data)
            self.storage.finalize(staging, final_name)
        except (OSError, StorageError) as e:
            raise WriteFailed(f"Failed to store {folder}: {e}", folder=folder) from e

        logger.debug(f"Materialized {len(files)} files from {folder} into {final_name}")
        return self.storage.public_url(f"{final_name}/{ENTRY_POINT}")
