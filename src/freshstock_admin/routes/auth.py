"""Operator login and logout."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from .. import auth, crud, schemas
from ..clock import Clock
from ..config import get_settings
from ..dependencies import get_clock, get_db

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=schemas.TokenRead)
def login(
    payload: schemas.LoginRequest,
    response: Response,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> schemas.TokenRead:
    result = auth.login(db, clock, payload.username, payload.password)
    if result is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    token, operator = result
    response.set_cookie(
        auth.SESSION_COOKIE,
        token,
        max_age=get_settings().session_max_age,
        httponly=True,
        samesite="lax",
    )
    return schemas.TokenRead(access_token=token, operator=schemas.OperatorRead.model_validate(operator))


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(response: Response) -> None:
    response.delete_cookie(auth.SESSION_COOKIE)


@router.get("/me", response_model=schemas.OperatorRead)
def me(
    operator: auth.OperatorContext = Depends(auth.get_current_operator),
    db: Session = Depends(get_db),
):
    return crud.get_operator_by_username(db, operator.username)
