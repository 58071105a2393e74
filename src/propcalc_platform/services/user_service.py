"""Identity resolution and user provisioning.

Tokens are issued by the external identity provider; this module only
verifies them and maps the token identifier to an internal user row.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from propcalc_platform.app.config import get_settings
from propcalc_platform.domain.enums import UserRole
from propcalc_platform.domain.errors import Unauthenticated, UserNotFound
from propcalc_platform.domain.models import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallerIdentity:
    """Who is calling, as asserted by the identity provider."""

    token_identifier: str
    name: Optional[str] = None
    email: Optional[str] = None


def decode_identity_token(token: str) -> CallerIdentity | None:
    """Verify a bearer token and return the caller identity, or None."""
    settings = get_settings()
    options = {"verify_aud": bool(settings.identity_audience)}
    try:
        claims = jwt.decode(
            token,
            settings.identity_jwt_secret,
            algorithms=[settings.identity_jwt_algorithm],
            audience=settings.identity_audience or None,
            issuer=settings.identity_issuer or None,
            options=options,
        )
    except JWTError as exc:
        logger.info("Rejected identity token: %s", exc)
        return None

    subject = claims.get("sub")
    if not subject:
        return None
    issuer = claims.get("iss")
    return CallerIdentity(
        token_identifier=f"{issuer}|{subject}" if issuer else subject,
        name=claims.get("name"),
        email=claims.get("email"),
    )


async def get_user_by_token(db: AsyncSession, token_identifier: str) -> User | None:
    result = await db.execute(
        select(User).where(User.token_identifier == token_identifier)
    )
    return result.scalar_one_or_none()


async def resolve_user(db: AsyncSession, identity: CallerIdentity | None) -> User:
    """Return the provisioned user for ``identity`` or raise.

    Raises:
        Unauthenticated: No identity.
        UserNotFound: Identity has not been provisioned yet.
    """
    if identity is None:
        raise Unauthenticated()
    user = await get_user_by_token(db, identity.token_identifier)
    if user is None:
        raise UserNotFound()
    return user


async def provision_user(db: AsyncSession, identity: CallerIdentity | None) -> User:
    """Create the user row on first sight, or refresh its name/email.

    Called by the client right after sign-in, before any deal operation.
    """
    if identity is None:
        raise Unauthenticated("Called store user without authentication present")

    settings = get_settings()
    name = identity.name or "Anonymous"
    email = identity.email or ""
    role = UserRole.ADMIN.value if email.lower() in settings.admin_emails_list else UserRole.USER.value

    user = await get_user_by_token(db, identity.token_identifier)
    if user is not None:
        if user.name != name or user.email != email:
            user.name = name
            user.email = email
        if role == UserRole.ADMIN.value:
            user.role = role
        await db.commit()
        return user

    user = User(
        token_identifier=identity.token_identifier,
        name=name,
        email=email,
        role=role,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("Provisioned user %s for %s", user.id, identity.token_identifier)
    return user
