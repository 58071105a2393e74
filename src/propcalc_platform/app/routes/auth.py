"""Identity dependencies and user provisioning routes."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from propcalc_platform.domain.enums import UserRole
from propcalc_platform.domain.errors import PlatformError
from propcalc_platform.domain.models import User
from propcalc_platform.domain.schemas import UserResponse
from propcalc_platform.infra.database import get_db
from propcalc_platform.services.user_service import (
    CallerIdentity,
    decode_identity_token,
    get_user_by_token,
    provision_user,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


def http_error(exc: PlatformError) -> HTTPException:
    """Translate a domain error to the HTTP error the client sees."""
    return HTTPException(status_code=exc.status_code, detail=str(exc))


async def get_caller_identity(request: Request) -> CallerIdentity | None:
    """Dependency: caller identity from the Bearer token, or None if anonymous."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    return decode_identity_token(auth_header.removeprefix("Bearer "))


async def require_admin(
    identity: CallerIdentity | None = Depends(get_caller_identity),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Dependency: the caller's user row, which must have the admin role."""
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid token",
        )
    user = await get_user_by_token(db, identity.token_identifier)
    if not user or user.role != UserRole.ADMIN.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user


@router.post("/store", response_model=UserResponse)
async def store_user(
    identity: CallerIdentity | None = Depends(get_caller_identity),
    db: AsyncSession = Depends(get_db),
):
    """Provision (or refresh) the user row for the signed-in caller."""
    try:
        user = await provision_user(db, identity)
    except PlatformError as exc:
        raise http_error(exc)
    return UserResponse.model_validate(user)


@router.get("/me", response_model=UserResponse | None)
async def me(
    identity: CallerIdentity | None = Depends(get_caller_identity),
    db: AsyncSession = Depends(get_db),
):
    if identity is None:
        return None
    user = await get_user_by_token(db, identity.token_identifier)
    return UserResponse.model_validate(user) if user else None
