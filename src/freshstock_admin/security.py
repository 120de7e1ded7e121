"""Password hashing and operator token signing."""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import secrets

_SCHEME = "pbkdf2_sha256"
_ROUNDS = 390_000


def _derive(password: str, salt: bytes, rounds: int) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, rounds)


def hash_password(password: str) -> str:
    """Return ``pbkdf2_sha256$rounds$salt$digest`` for *password*."""

    salt = secrets.token_bytes(16)
    digest = _derive(password, salt, _ROUNDS)
    encoded = [base64.b64encode(part).decode("ascii") for part in (salt, digest)]
    return "$".join([_SCHEME, str(_ROUNDS), *encoded])


def verify_password(password: str, stored_hash: str) -> bool:
    """Check *password* against a hash produced by :func:`hash_password`."""

    try:
        scheme, rounds, salt_b64, digest_b64 = stored_hash.split("$")
        salt = base64.b64decode(salt_b64, validate=True)
        expected = base64.b64decode(digest_b64, validate=True)
        iterations = int(rounds)
    except (ValueError, binascii.Error):
        return False
    if scheme != _SCHEME:
        return False
    return hmac.compare_digest(expected, _derive(password, salt, iterations))


def _signature(payload: str, secret_key: str) -> str:
    digest = hmac.new(secret_key.encode(), payload.encode(), hashlib.sha256).digest()
    return base64.urlsafe_b64encode(digest).decode().rstrip("=")


def issue_token(username: str, issued_at: int, secret_key: str) -> str:
    """Return ``username.issued_at.signature`` for an operator session."""

    payload = f"{username}.{issued_at}"
    return f"{payload}.{_signature(payload, secret_key)}"


def read_token(token: str, secret_key: str, *, now: int, max_age: int) -> str | None:
    """Return the username carried by *token* if it is authentic and fresh."""

    try:
        payload, signature = token.rsplit(".", 1)
        username, issued_raw = payload.rsplit(".", 1)
        issued_at = int(issued_raw)
    except ValueError:
        return None

    if not hmac.compare_digest(_signature(payload, secret_key), signature):
        return None
    if issued_at > now or now - issued_at > max_age:
        return None
    return username
