"""
Declarative base shared by all order models.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy.orm import declarative_base


Base = declarative_base()


def new_id() -> str:
    """Primary key default: a random UUID string."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
