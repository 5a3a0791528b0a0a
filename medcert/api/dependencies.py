from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from medcert.models.principal import Principal
from medcert.services import token_service

logger = logging.getLogger(__name__)

# auto_error=False: a missing header resolves to the anonymous principal
# instead of an immediate 401.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/oauth/token", auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_principal(
    raw_token: Annotated[str | None, Depends(oauth2_scheme)],
) -> Principal:
    """Resolve the caller: a validated bearer token, or anonymous.

    A token that is present but invalid is rejected rather than downgraded
    to anonymous.
    """
    if not raw_token:
        return Principal.anonymous()

    try:
        claims = token_service.decode_access_token(raw_token)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise _unauthorized("Token expired") from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token rejected: %s", e)
        raise _unauthorized("Invalid token") from None

    try:
        user_id = UUID(str(claims["sub"]))
    except ValueError:
        logger.warning("Token rejected: sub is not a user id")
        raise _unauthorized("Invalid token") from None

    principal = Principal(
        user_id=user_id,
        roles=frozenset(claims.get("roles", [])),
        permissions=frozenset(claims.get("permissions", [])),
    )
    logger.debug(
        "Token validated for user=%s roles=%s",
        principal.user_id,
        sorted(principal.roles),
    )
    return principal


def require_user(
    principal: Annotated[Principal, Depends(get_principal)],
) -> Principal:
    """Any authenticated caller."""
    if principal.is_anonymous:
        raise _unauthorized("Not authenticated")
    return principal


def require_permission(permission: str):
    """Dependency factory: demand a permission.

    Anonymous callers go through the same check; they hold only the
    anonymous permission set.  Missing permission is 401 for anonymous
    callers (authenticating might help) and 403 otherwise.

    Usage: Depends(require_permission("certificate:revoke"))
    """

    def _guard(
        principal: Annotated[Principal, Depends(get_principal)],
    ) -> Principal:
        if principal.has_permission(permission):
            return principal
        if principal.is_anonymous:
            raise _unauthorized("Not authenticated")
        logger.warning(
            "Access denied: user=%s missing permission=%s",
            principal.user_id,
            permission,
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Permission denied",
        )

    return _guard


def actor_id(principal: Principal) -> UUID:
    """The user id recorded as the actor of a write or an owner lookup."""
    if principal.user_id is None:
        raise _unauthorized("Not authenticated")
    return principal.user_id
