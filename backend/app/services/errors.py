"""
Error taxonomy for the bulk game import pipeline.

Only ArchiveCorrupt aborts an import. ManifestInvalid and WriteFailed are
per-folder: the folder is skipped and the import carries on.
"""


class GameImportError(Exception):
    """Base class for import pipeline errors"""
    def __init__(self, message: str, folder: str = ""):
        self.message = message
        self.folder = folder
        super().__init__(message)


class ArchiveCorrupt(GameImportError):
    """The uploaded archive cannot be opened, parsed or safely extracted"""
    pass


class ManifestInvalid(GameImportError):
    """A metadata.json entry failed decoding, JSON parsing or validation"""
    pass


class WriteFailed(GameImportError):
    """Copying a game folder to storage failed"""
    pass


class StorageError(Exception):
    """Raised by storage backends for non-OS failures (e.g. object storage errors)"""
    pass
