import jwt
import pytest
from fastapi import HTTPException

from storefront.models import Role
from storefront.security import (
    create_access_token,
    current_user,
    decode_access_token,
    parse_bearer_token,
    password_hash,
    password_verify,
)


def test_token_round_trip():
    token = create_access_token(subject="42", role="merchant")
    payload = decode_access_token(token)
    assert payload["sub"] == "42"
    assert payload["role"] == "merchant"


def test_token_signed_with_other_secret_is_rejected():
    forged = jwt.encode({"sub": "1", "role": "admin", "aud": "storefront", "iss": "storefront"}, "another-secret-0123456789abcdef-xyz", algorithm="HS256")
    with pytest.raises(HTTPException) as exc:
        decode_access_token(forged)
    assert exc.value.status_code == 401


def test_expired_token(monkeypatch):
    monkeypatch.setenv("JWT_TTL_MINUTES", "-5")
    token = create_access_token(subject="1", role="shopper")
    with pytest.raises(HTTPException) as exc:
        decode_access_token(token)
    assert exc.value.detail == "Token expired"


def test_missing_secret(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "")
    with pytest.raises(HTTPException) as exc:
        create_access_token(subject="1", role="shopper")
    assert exc.value.status_code == 500


@pytest.mark.parametrize(
    "header,expected",
    [
        ("Bearer abc", "abc"),
        ("bearer   abc ", "abc"),
        ("Basic abc", None),
        ("Bearer", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_bearer_token(header, expected):
    assert parse_bearer_token(header) == expected


def test_current_user_resolves_id_and_role():
    token = create_access_token(subject="7", role="shopper")
    user = current_user(f"Bearer {token}")
    assert user.user_id == 7
    assert user.role == Role.SHOPPER
    assert not user.is_admin


def test_current_user_rejects_unknown_role():
    token = create_access_token(subject="7", role="superuser")
    with pytest.raises(HTTPException) as exc:
        current_user(f"Bearer {token}")
    assert exc.value.status_code == 401


def test_current_user_requires_header():
    with pytest.raises(HTTPException) as exc:
        current_user(None)
    assert exc.value.status_code == 401


def test_password_hash_and_verify():
    stored = password_hash("Secret123!")
    assert stored.startswith("pbkdf2_sha256$")
    assert password_verify("Secret123!", stored)
    assert not password_verify("Secret124!", stored)
    assert not password_verify("Secret123!", "garbage")


@pytest.mark.parametrize("weak", ["short", "alllowercase1", "NoDigitsHere"])
def test_password_policy(weak):
    with pytest.raises(HTTPException) as exc:
        password_hash(weak)
    assert exc.value.status_code == 400
