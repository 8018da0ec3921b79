from __future__ import annotations

import logging
import re

from fastapi import APIRouter, Depends, HTTPException
import psycopg

from ..db import transaction
from ..models import AuthLoginIn, AuthMeOut, AuthSignupIn, AuthTokenOut, Role
from ..security import CurrentUser, create_access_token, current_user, password_hash, password_verify


router = APIRouter(prefix="/api/auth", tags=["api_auth"])

_log = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _validate_email(email: str) -> str:
    e = (email or "").strip().lower()
    if not e or len(e) > 320 or not _EMAIL_RE.match(e):
        raise HTTPException(status_code=400, detail="Invalid email")
    return e


def _token_for(user_id: int, role: Role, display_name: str | None) -> AuthTokenOut:
    return AuthTokenOut(
        access_token=create_access_token(subject=str(user_id), role=role.value),
        user_id=user_id,
        role=role,
        display_name=display_name,
    )


@router.post("/signup", response_model=AuthTokenOut)
def signup(req: AuthSignupIn) -> AuthTokenOut:
    email = _validate_email(req.email)
    display_name = (req.display_name or "").strip()
    if not display_name:
        raise HTTPException(status_code=400, detail="Invalid name")

    pwd_hash = password_hash(req.password)

    try:
        with transaction() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO storefront.app_users (email, display_name, password_hash, role)
                    VALUES (%s, %s, %s, %s)
                    RETURNING user_id;
                    """,
                    (email, display_name, pwd_hash, Role.SHOPPER.value),
                )
                user_id = int(cur.fetchone()[0])
    except psycopg.errors.UniqueViolation:
        raise HTTPException(status_code=409, detail="An account with this email already exists. Please log in.")

    _log.info("signup user_id=%s", user_id)
    return _token_for(user_id, Role.SHOPPER, display_name)


@router.post("/login", response_model=AuthTokenOut)
def login(req: AuthLoginIn) -> AuthTokenOut:
    email = _validate_email(req.email)

    with transaction() as conn:
        with conn.cursor() as cur:
            cur.execute(
                "SELECT user_id, display_name, password_hash, role FROM storefront.app_users WHERE email = %s;",
                (email,),
            )
            row = cur.fetchone()

    if row is None or not password_verify(req.password, str(row[2])):
        _log.warning("login failed email=%s", email)
        raise HTTPException(status_code=401, detail="Invalid email or password")

    return _token_for(int(row[0]), Role(str(row[3])), row[1])


@router.get("/me", response_model=AuthMeOut)
def me(user: CurrentUser = Depends(current_user)) -> AuthMeOut:
    return AuthMeOut(user_id=user.user_id, role=user.role)
