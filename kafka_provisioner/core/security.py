"""Bearer tokens for the provisioning routes.

``plan`` and ``apply`` act on a cluster on behalf of a CI job or an operator,
so every request carries a token signed with ``PROVISIONER_JWT_SECRET``. The
``sub`` claim names the caller; runs are logged against it.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Tuple

from jose import ExpiredSignatureError, JWTError, jwt  # python-jose

from kafka_provisioner.core.config import get_settings


class TokenValidationError(Exception):
    """Raised when a JWT is missing or invalid."""


def _signing() -> Tuple[str, str]:
    settings = get_settings()
    return settings.jwt_secret, settings.jwt_algorithm


def create_access_token(
    claims: Dict[str, Any],
    *,
    expires_delta: timedelta | None = None,
) -> str:
    """Sign *claims*; ``iat`` and ``exp`` are added."""
    secret, algorithm = _signing()
    if expires_delta is None:
        expires_delta = timedelta(minutes=get_settings().access_token_expire_minutes)
    issued = datetime.now(timezone.utc)
    return jwt.encode({**claims, "iat": issued, "exp": issued + expires_delta}, secret, algorithm=algorithm)


def decode_jwt(token: str) -> Dict[str, Any]:
    """Validate *token* and return its claims.

    Raises
    ------
    TokenValidationError
        If the token is expired, badly signed, or names no caller.
    """
    secret, algorithm = _signing()
    try:
        claims = jwt.decode(token, secret, algorithms=[algorithm])
    except ExpiredSignatureError as exc:
        raise TokenValidationError("token expired") from exc
    except JWTError as exc:
        raise TokenValidationError("invalid token") from exc
    if not claims.get("sub"):
        raise TokenValidationError("token has no subject")
    return claims
