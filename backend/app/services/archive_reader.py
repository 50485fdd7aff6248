"""
Archive reading for bulk game uploads.

Opens a zip archive held in memory, validates it for unsafe entries and
returns its entries as immutable ArchiveEntry records.
"""

import io
import zipfile
import zlib
from dataclasses import dataclass
from typing import List
import logging

from app.services.errors import ArchiveCorrupt

logger = logging.getLogger(__name__)


# Security limits
MAX_FILES_IN_ARCHIVE = 10000
MAX_TOTAL_UNCOMPRESSED_SIZE = 500 * 1024 * 1024  # 500MB
MAX_PATH_DEPTH = 50
MAX_PATH_COMPONENT_LENGTH = 255


@dataclass(frozen=True)
class ArchiveEntry:
    """One entry of an uploaded archive"""
    path: str  # slash-separated, directories keep no trailing slash
    is_dir: bool = False
    data: bytes = b""

    @property
    def segments(self) -> List[str]:
        return self.path.split("/")

    @property
    def name(self) -> str:
        return self.segments[-1]


def validate_entry_path(filename: str) -> None:
    """
    Validate a zip entry path for security issues.

    Checks for null bytes, absolute paths, directory traversal,
    excessive depth and overly long path components.

    Raises:
        ArchiveCorrupt: If the path fails validation
    """
    if '\x00' in filename:
        raise ArchiveCorrupt(f"Null byte in filename: {repr(filename)}")

    if filename.startswith('/') or filename.startswith('\\'):
        raise ArchiveCorrupt(f"Absolute path not allowed: {filename}")

    # Windows drive letter
    if len(filename) > 1 and filename[1] == ':':
        raise ArchiveCorrupt(f"Windows absolute path not allowed: {filename}")

    components = filename.replace('\\', '/').split('/')

    if len(components) > MAX_PATH_DEPTH:
        raise ArchiveCorrupt(f"Path too deep ({len(components)} levels): {filename}")

    for component in components:
        if component == '..':
            raise ArchiveCorrupt(f"Directory traversal not allowed: {filename}")
        if len(component) > MAX_PATH_COMPONENT_LENGTH:
            raise ArchiveCorrupt(f"Path component too long ({len(component)} chars): {component[:50]}...")


def is_symlink(zip_info: zipfile.ZipInfo) -> bool:
    """Symlinks carry Unix mode 0o120000 in the high 16 bits of external_attr"""
    unix_mode = (zip_info.external_attr >> 16) & 0xFFFF
    return (unix_mode & 0o170000) == 0o120000


def is_encrypted(zip_info: zipfile.ZipInfo) -> bool:
    """Bit 0 of the general purpose flags marks an encrypted member"""
    return bool(zip_info.flag_bits & 0x1)


def validate_archive(zf: zipfile.ZipFile) -> None:
    """
    Validate an entire zip archive before anything is extracted.

    Raises:
        ArchiveCorrupt: On too many entries, too much uncompressed data,
            unsafe paths, symlinks or encrypted entries
    """
    info_list = zf.infolist()

    if len(info_list) > MAX_FILES_IN_ARCHIVE:
        raise ArchiveCorrupt(
            f"Too many files in archive: {len(info_list)} (max: {MAX_FILES_IN_ARCHIVE})"
        )

    total_size = 0
    for info in info_list:
        validate_entry_path(info.filename)

        if is_symlink(info):
            raise ArchiveCorrupt(f"Symlinks not allowed: {info.filename}")

        if is_encrypted(info):
            raise ArchiveCorrupt(f"Encrypted entries not supported: {info.filename}")

        total_size += info.file_size
        if total_size > MAX_TOTAL_UNCOMPRESSED_SIZE:
            raise ArchiveCorrupt(
                f"Total uncompressed size exceeds limit: {total_size} bytes "
                f"(max: {MAX_TOTAL_UNCOMPRESSED_SIZE})"
            )


def read_archive(data: bytes) -> List[ArchiveEntry]:
    """
    Read every entry of a zip archive into memory.

    Uploads are capped in size before they reach this point, so the whole
    entry list is materialized rather than streamed.

    Args:
        data: Raw archive bytes

    Returns:
        Entries in archive order

    Raises:
        ArchiveCorrupt: If the bytes are not a readable, safe zip archive
    """
    entries: List[ArchiveEntry] = []

    try:
        with zipfile.ZipFile(io.BytesIO(data), 'r') as zf:
            validate_archive(zf)

            for info in zf.infolist():
                path = info.filename.replace('\\', '/').rstrip('/')
                if not path:
                    continue

                if info.is_dir():
                    entries.append(ArchiveEntry(path=path, is_dir=True))
                    continue

                entries.append(ArchiveEntry(path=path, data=zf.read(info)))
    except (zipfile.BadZipFile, zipfile.LargeZipFile, zlib.error, EOFError, NotImplementedError, RuntimeError) as e:
        # RuntimeError: member needs a password
        raise ArchiveCorrupt(f"Failed to read archive: {e}") from e

    logger.debug(f"Read {len(entries)} entries from archive ({len(data)} bytes)")
    return entries
