"""
Authentication dependencies.

Bearer tokens are issued by the auth service; this API only verifies them.
The token payload carries ``sub`` (user id) and ``role`` (CUSTOMER, OWNER
or STAFF).
"""

import logging
from collections.abc import Callable
from typing import Annotated, Any
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from database.models import UserRole
from scheduling.errors import ForbiddenError
from scheduling.validators.transition_validator import Actor
from shared.config import get_settings

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def get_jwt_secret() -> str:
    """
    Raises:
        RuntimeError: If JWT_SECRET is not set in environment
    """
    secret = get_settings().JWT_SECRET
    if not secret:
        raise RuntimeError("JWT_SECRET must be set in environment variables.")
    return secret


def verify_token(token: str) -> dict[str, Any]:
    """Verify JWT signature and return the payload."""
    try:
        return jwt.decode(token, get_jwt_secret(), algorithms=[get_settings().JWT_ALGORITHM])
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {str(e)}",
        )


async def get_current_actor(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)] = None,
) -> Actor:
    """Dependency resolving the bearer token into an Actor."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = verify_token(credentials.credentials)

    try:
        return Actor(user_id=UUID(str(payload["sub"])), role=UserRole(payload["role"]))
    except (KeyError, ValueError):
        logger.warning("Token payload missing a valid sub or role")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )


CurrentActor = Annotated[Actor, Depends(get_current_actor)]


def require_roles(*roles: UserRole) -> Callable[..., Any]:
    """
    Dependency factory gating a route to the given account roles.

    Example:
        @router.post("/cleanup-expired")
        async def cleanup(actor: Annotated[Actor, Depends(require_roles(UserRole.OWNER))]):
            ...
    """

    async def _require(actor: CurrentActor) -> Actor:
        if actor.role not in roles:
            raise ForbiddenError("Not authorized")
        return actor

    return _require


CustomerActor = Annotated[Actor, Depends(require_roles(UserRole.CUSTOMER))]
OwnerActor = Annotated[Actor, Depends(require_roles(UserRole.OWNER))]
StaffActor = Annotated[Actor, Depends(require_roles(UserRole.STAFF))]
OwnerOrStaffActor = Annotated[Actor, Depends(require_roles(UserRole.OWNER, UserRole.STAFF))]
