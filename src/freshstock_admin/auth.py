"""Operator session context for privileged operations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from . import crud, models, security
from .clock import Clock
from .config import get_settings
from .dependencies import get_clock, get_db

SESSION_COOKIE = "freshstock_operator"


@dataclass(frozen=True, slots=True)
class OperatorContext:
    """The authenticated operator on whose behalf an operation runs."""

    operator_id: int
    username: str
    is_superuser: bool = False

    @classmethod
    def from_operator(cls, operator: models.Operator) -> "OperatorContext":
        return cls(operator_id=operator.id, username=operator.username, is_superuser=operator.is_superuser)


def login(db: Session, clock: Clock, username: str, password: str) -> tuple[str, models.Operator] | None:
    """Check credentials and return a fresh token for the operator."""

    operator = crud.authenticate_operator(db, username, password)
    if not operator:
        return None
    settings = get_settings()
    token = security.issue_token(operator.username, int(clock.now().timestamp()), settings.secret_key)
    return token, operator


def _token_from_request(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip()
    return request.cookies.get(SESSION_COOKIE)


def resolve_operator(db: Session, clock: Clock, token: Optional[str]) -> Optional[OperatorContext]:
    if not token:
        return None
    settings = get_settings()
    username = security.read_token(
        token,
        settings.secret_key,
        now=int(clock.now().timestamp()),
        max_age=settings.session_max_age,
    )
    if not username:
        return None
    operator = crud.get_operator_by_username(db, username)
    if not operator or not operator.is_active:
        return None
    return OperatorContext.from_operator(operator)


def get_current_operator(
    request: Request,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> OperatorContext:
    """Require an authenticated, active operator."""

    operator = resolve_operator(db, clock, _token_from_request(request))
    if not operator:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return operator


def require_admin(operator: OperatorContext = Depends(get_current_operator)) -> OperatorContext:
    """Require an operator with superuser rights."""

    if not operator.is_superuser:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Administrator rights required")
    return operator
