"""Shared FastAPI dependencies."""

from __future__ import annotations

from typing import Generator

from sqlalchemy.orm import Session

from .clock import Clock, SystemClock
from .database import SessionLocal

_system_clock = SystemClock()


def get_db() -> Generator[Session, None, None]:
    """Provide a database session for FastAPI routes."""

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_clock() -> Clock:
    """Return the time source; overridden in tests."""

    return _system_clock
