from __future__ import annotations

import base64
import hashlib
import hmac
import os
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

import jwt
from fastapi import Depends, Header, HTTPException

from .models import Role


_PBKDF2_ITERATIONS = 180_000


def _jwt_secret() -> str:
    secret = (os.getenv("JWT_SECRET", "") or "").strip()
    if not secret:
        raise HTTPException(status_code=500, detail="JWT not configured")
    return secret


def _jwt_issuer() -> str:
    return (os.getenv("JWT_ISSUER", "storefront") or "storefront").strip()


def _jwt_audience() -> str:
    return (os.getenv("JWT_AUDIENCE", "storefront") or "storefront").strip()


def _jwt_ttl_minutes() -> int:
    try:
        return int(os.getenv("JWT_TTL_MINUTES", "120"))
    except ValueError:
        return 120


def create_access_token(*, subject: str, role: str) -> str:
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "sub": subject,
        "role": role,
        "iss": _jwt_issuer(),
        "aud": _jwt_audience(),
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=_jwt_ttl_minutes())).timestamp()),
    }
    return jwt.encode(payload, _jwt_secret(), algorithm="HS256")


def decode_access_token(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(
            token,
            _jwt_secret(),
            algorithms=["HS256"],
            audience=_jwt_audience(),
            issuer=_jwt_issuer(),
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")


def parse_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.strip().split(" ", 1)
    if len(parts) != 2:
        return None
    scheme, token = parts[0].strip().lower(), parts[1].strip()
    if scheme != "bearer" or not token:
        return None
    return token


def password_hash(password: str) -> str:
    pwd = (password or "").strip()
    if len(pwd) < 7:
        raise HTTPException(status_code=400, detail="Password must be at least 7 characters")
    if not re.search(r"[A-Z]", pwd):
        raise HTTPException(status_code=400, detail="Password must include at least 1 uppercase letter")
    if not re.search(r"[0-9]", pwd):
        raise HTTPException(status_code=400, detail="Password must include at least 1 number")

    salt = os.urandom(16)
    dk = hashlib.pbkdf2_hmac("sha256", pwd.encode("utf-8"), salt, _PBKDF2_ITERATIONS)

    return "pbkdf2_sha256$%d$%s$%s" % (
        _PBKDF2_ITERATIONS,
        base64.urlsafe_b64encode(salt).decode("utf-8"),
        base64.urlsafe_b64encode(dk).decode("utf-8"),
    )


def password_verify(password: str, stored: str) -> bool:
    parts = (stored or "").split("$", 3)
    if len(parts) != 4 or parts[0] != "pbkdf2_sha256" or not parts[1].isdigit():
        return False
    _, it_s, salt_b64, dk_b64 = parts
    try:
        salt = base64.urlsafe_b64decode(salt_b64.encode("utf-8"))
        expected = base64.urlsafe_b64decode(dk_b64.encode("utf-8"))
    except ValueError:
        return False
    actual = hashlib.pbkdf2_hmac("sha256", (password or "").strip().encode("utf-8"), salt, int(it_s))
    return hmac.compare_digest(actual, expected)


@dataclass(frozen=True)
class CurrentUser:
    user_id: int
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


def current_user(authorization: Optional[str] = Header(None)) -> CurrentUser:
    """Resolve the caller once at the request boundary; 401 if that is not possible."""
    token = parse_bearer_token(authorization)
    if token is None:
        raise HTTPException(status_code=401, detail="Not authenticated")

    payload = decode_access_token(token)
    try:
        return CurrentUser(user_id=int(payload.get("sub")), role=Role(str(payload.get("role") or "")))
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token")


def require_role(*roles: Role) -> Callable[..., CurrentUser]:
    allowed = set(roles)

    def _dependency(user: CurrentUser = Depends(current_user)) -> CurrentUser:
        if user.role not in allowed:
            raise HTTPException(status_code=403, detail="Insufficient role for this operation")
        return user

    return _dependency
