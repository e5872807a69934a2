"""Declarative base model for SQLAlchemy."""
from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy.orm import DeclarativeBase


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def new_uuid() -> str:
    return str(uuid4())


class Base(DeclarativeBase):
    """Base class for all ORM models."""
