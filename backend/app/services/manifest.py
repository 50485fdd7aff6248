"""
Per-folder game manifests (metadata.json).

A manifest describes one game folder inside a bulk upload archive. Parsing
applies all defaults once, at this boundary, so the rest of the pipeline
works with a fully populated GameManifest.
"""
import json
import logging
from typing import Any, List, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from app.services.archive_reader import ArchiveEntry
from app.services.errors import ManifestInvalid

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "metadata.json"
UNTITLED = "Untitled"


class QuizItem(BaseModel):
    """A multiple-choice question attached to a game"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    question: str = ""
    options: List[str] = Field(default_factory=list)
    answer_index: int = Field(default=0, alias="answerIndex")

    @field_validator("question", mode="before")
    @classmethod
    def _none_question(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("options", mode="before")
    @classmethod
    def _none_options(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("answer_index", mode="before")
    @classmethod
    def _none_answer(cls, v: Any) -> Any:
        return 0 if v is None else v

    def to_record(self) -> dict:
        """Stored/wire shape, matching the manifest keys"""
        return self.model_dump(by_alias=True)


class GameManifest(BaseModel):
    """Parsed metadata.json with defaults applied"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str = UNTITLED
    description: str = ""
    category: str = ""
    tags: List[str] = Field(default_factory=list)
    lesson_title: str = Field(default="", alias="lessonTitle")
    lesson_content: str = Field(default="", alias="lessonContent")
    quizzes: List[QuizItem] = Field(default_factory=list)

    @field_validator("title", mode="before")
    @classmethod
    def _default_title(cls, v: Any) -> Any:
        # Empty titles fall back too, not only missing ones
        if v is None or v == "":
            return UNTITLED
        return v

    @field_validator("description", "category", "lesson_title", "lesson_content", mode="before")
    @classmethod
    def _default_text(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("tags", "quizzes", mode="before")
    @classmethod
    def _default_list(cls, v: Any) -> Any:
        return [] if v is None else v


def parse_manifest(raw: bytes) -> GameManifest:
    """
    Decode and validate one manifest body.

    Raises:
        ManifestInvalid: If the bytes are not UTF-8, not JSON, not a JSON
            object, or any field has the wrong type
    """
    try:
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ManifestInvalid(f"Manifest is not valid UTF-8: {e}") from e

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ManifestInvalid(f"Manifest is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ManifestInvalid(f"Manifest must be a JSON object, got {type(data).__name__}")

    try:
        return GameManifest.model_validate(data)
    except ValidationError as e:
        raise ManifestInvalid(f"Manifest failed validation: {e.error_count()} error(s)") from e


def manifest_folder(entry: ArchiveEntry) -> str | None:
    """Folder identifier for a manifest entry, or None if the entry is not a manifest"""
    if entry.is_dir:
        return None
    segments = entry.segments
    # Manifests at the archive root belong to no game folder
    if len(segments) < 2 or segments[-1] != MANIFEST_FILENAME:
        return None
    return "/".join(segments[:-1])


def find_manifests(entries: Sequence[ArchiveEntry]) -> List[Tuple[str, GameManifest]]:
    """
    Scan entries for game manifests.

    Malformed manifests are skipped so one broken folder cannot block the
    others. Results keep archive order and are not deduplicated.

    Returns:
        (folder identifier, manifest) pairs
    """
    found: List[Tuple[str, GameManifest]] = []

    for entry in entries:
        folder = manifest_folder(entry)
        if folder is None:
            continue

        try:
            manifest = parse_manifest(entry.data)
        except ManifestInvalid as e:
            logger.warning(f"Skipping {entry.path}: {e.message}")
            continue

        found.append((folder, manifest))

    return found
