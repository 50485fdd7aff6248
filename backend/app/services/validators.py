"""
Input validation utilities for uploads

Provides file extension and size checks for admin uploads.
"""
import os
import mimetypes
from typing import Optional, Tuple, Set

# Allowed file extensions by type
ALLOWED_GAME_FILE_EXTENSIONS: Set[str] = {
    '.html', '.htm', '.zip', '.js', '.wasm', '.swf', '.pdf',
    '.png', '.jpg', '.jpeg', '.gif', '.webp', '.svg',
}


class FileValidationError(Exception):
    """Raised when file validation fails"""
    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class FileTooLargeError(FileValidationError):
    """Raised when an upload exceeds its size limit"""
    pass


def validate_file_extension(
    filename: str,
    allowed_extensions: Set[str],
    category: str = "file"
) -> Tuple[str, str]:
    """
    Validate file extension against allowed list.

    Returns:
        Tuple of (extension, mime_type)

    Raises:
        FileValidationError: If extension not allowed
    """
    if not filename:
        raise FileValidationError("Filename is required")

    _, extension = os.path.splitext(filename.lower())

    if extension not in allowed_extensions:
        raise FileValidationError(
            f"File type '{extension}' not allowed for {category}",
            {"allowed": sorted(allowed_extensions), "received": extension}
        )

    mime_type, _ = mimetypes.guess_type(filename)
    return extension, mime_type or 'application/octet-stream'


def validate_file_size(
    file_size: int,
    max_size: int,
    category: str = "file"
) -> None:
    """
    Raises:
        FileTooLargeError: If file_size exceeds max_size
    """
    if file_size > max_size:
        raise FileTooLargeError(
            f"File too large for {category}. Maximum size is {max_size / (1024*1024):.1f} MB",
            {"max_bytes": max_size, "received_bytes": file_size}
        )


def safe_filename(filename: str) -> str:
    """Strip directories and unsafe characters from a client-supplied name"""
    name = os.path.basename(filename.replace('\\', '/'))
    cleaned = "".join(c if c.isalnum() or c in "._-" else "_" for c in name).strip("._")
    return cleaned or "upload"
