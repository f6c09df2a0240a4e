"""
Caller-token utilities.

Tokens are issued by the upstream authentication service; this service only
verifies them and turns their claims into a Caller. ``create_access_token``
mints compatible tokens for local tooling and tests.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Optional

import jwt

from core.identity import Caller, Role

logger = logging.getLogger(__name__)

JWTPayload = Dict[str, Any]


def verify_jwt_token(token: str, secret_key: str, algorithm: str = "HS256") -> JWTPayload:
    """
    Verify a JWT and return its payload.

    Raises:
        jwt.ExpiredSignatureError: If the token has expired
        jwt.InvalidTokenError: If the token is malformed or the signature is bad
    """
    return jwt.decode(
        token,
        secret_key,
        algorithms=[algorithm],
        options={"require": ["sub", "exp"]},
    )


def create_access_token(
    user_id: str,
    roles: Iterable[str],
    secret_key: str,
    algorithm: str = "HS256",
    expires_minutes: int = 30,
    extra_claims: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Create a signed caller token.

    Args:
        user_id: Caller id placed in ``sub``
        roles: Role names placed in ``roles``
        secret_key: Signing secret
        algorithm: Signing algorithm
        expires_minutes: Lifetime in minutes
        extra_claims: Additional claims to embed

    Returns:
        Encoded JWT
    """
    issued_at = datetime.now(timezone.utc)
    payload: JWTPayload = {
        "sub": str(user_id),
        "roles": [str(getattr(role, "value", role)) for role in roles],
        "iat": issued_at,
        "exp": issued_at + timedelta(minutes=expires_minutes),
        "type": "access",
    }
    if extra_claims:
        payload.update(extra_claims)
    return jwt.encode(payload, secret_key, algorithm=algorithm)


def caller_from_payload(payload: JWTPayload) -> Caller:
    """
    Build a Caller from verified token claims.

    Unknown role names are dropped.

    Raises:
        jwt.InvalidTokenError: If the payload carries no subject
    """
    subject = payload.get("sub")
    if not subject:
        raise jwt.InvalidTokenError("Token missing subject")

    raw_roles = payload.get("roles") or []
    if isinstance(raw_roles, str):
        raw_roles = [raw_roles]

    roles = set()
    for name in raw_roles:
        try:
            roles.add(Role(name))
        except ValueError:
            logger.debug(f"Ignoring unknown role claim: {name}")

    return Caller(id=str(subject), roles=frozenset(roles))
