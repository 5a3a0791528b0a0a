"""Access token validation (ES256).

Tokens are minted by the platform's auth service; this service only
verifies them.  JWT_PUBLIC_KEY holds the issuer's PEM public key.  When it
is unset (dev/test) an ephemeral key pair is generated on import and
create_access_token() can mint tokens locally.

Claims: sub (user UUID), roles, permissions, plus iss/aud/exp/iat/jti.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from medcert.core.config import SETTINGS

ALGORITHM = "ES256"
ISSUER = "medevents-auth"
AUDIENCE = "medevents-api"
ACCESS_TOKEN_TTL_MIN = 15

if SETTINGS.jwt_public_key:
    _private_key: ec.EllipticCurvePrivateKey | None = None
    _public_key = serialization.load_pem_public_key(
        SETTINGS.jwt_public_key.encode("ascii")
    )
else:
    _private_key = ec.generate_private_key(ec.SECP256R1())
    _public_key = _private_key.public_key()


def create_access_token(
    *,
    sub: str,
    roles: list[str] | None = None,
    permissions: list[str] | None = None,
) -> str:
    """Mint a token with the ephemeral key (dev/test only)."""
    if _private_key is None:
        raise RuntimeError(
            "JWT_PUBLIC_KEY is set; tokens are minted by the auth service"
        )
    now = datetime.now(UTC)
    payload = {
        "sub": sub,
        "iss": ISSUER,
        "aud": AUDIENCE,
        "exp": now + timedelta(minutes=ACCESS_TOKEN_TTL_MIN),
        "iat": now,
        "jti": str(uuid.uuid4()),
        "roles": roles or [],
        "permissions": permissions or [],
    }
    return jwt.encode(payload, _private_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature and claims, return the payload.

    The algorithm is pinned to ES256 (no alg:none, no HS/ES switching).
    Raises jwt.ExpiredSignatureError, jwt.InvalidTokenError on failure.
    """
    return jwt.decode(
        token,
        _public_key,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        audience=AUDIENCE,
        options={"require": ["sub", "exp", "iat", "jti"]},
    )
