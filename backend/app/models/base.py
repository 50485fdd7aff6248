"""
Base model utilities and enums for Learning Games Hub

This module contains:
- SQLAlchemy Base class
- UUID and timestamp helpers
- Enum types used across models
"""
from datetime import datetime, timezone
from sqlalchemy.orm import declarative_base
import enum
import uuid

Base = declarative_base()


def generate_uuid() -> str:
    """Generate a new UUID string for model primary keys"""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp (SQLite stores datetimes without zone)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# =============================================================================
# Enums
# =============================================================================

class UserRole(str, enum.Enum):
    """Account role; admins can upload and moderate"""
    USER = "user"
    ADMIN = "admin"
