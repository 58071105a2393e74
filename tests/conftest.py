"""Shared test infrastructure for the PropCalc platform test suite.

Provides:
- db_session: async SQLite in-memory session with all tables created
- make_user: factory for provisioned User rows
- identity_for: builds the CallerIdentity a signed-in user presents
- step_payload: valid payloads for each wizard step
"""

import uuid

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Import Base first, then models to register all tables
from propcalc_platform.infra.database import Base

import propcalc_platform.domain.models  # noqa: F401

from propcalc_platform.domain.models import User
from propcalc_platform.services.user_service import CallerIdentity


# ---------------------------------------------------------------------------
# Database session fixture
# ---------------------------------------------------------------------------

@pytest.fixture
async def db_session():
    """Async SQLite in-memory session with all tables created.

    Creates a fresh engine + tables for each test, yields a session,
    then rolls back and tears down.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

def identity_for(user: User) -> CallerIdentity:
    """The identity a provisioned user presents on each request."""
    return CallerIdentity(token_identifier=user.token_identifier, name=user.name, email=user.email)


@pytest.fixture
def make_user(db_session):
    """Factory that creates a provisioned User row.

    Usage:
        user = await make_user(email="dev@example.com")
    """
    async def _factory(
        name: str = "Test Developer",
        email: str = "dev@example.com",
        role: str = "user",
        token_identifier: str | None = None,
    ) -> User:
        user = User(
            id=str(uuid.uuid4()),
            token_identifier=token_identifier or f"https://issuer.test|{uuid.uuid4()}",
            name=name,
            email=email,
            role=role,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _factory


# ---------------------------------------------------------------------------
# Step payloads
# ---------------------------------------------------------------------------

def _pd(completed: bool = True, reasoning: str = "") -> dict:
    return {
        "existing_use": "Office (Class E)",
        "proposed_use": "Residential (C3)",
        "gia": 820.0,
        "storeys": 4,
        "target_units": 14,
        "article_four": False,
        "heritage": False,
        "pd_route": "Class MA permitted",
        "reasoning": reasoning,
        "completed": completed,
    }


def _gdv(completed: bool = True, reasoning: str = "") -> dict:
    return {
        "postcode": "SE1 7PB",
        "property_type": "flat",
        "bedrooms": 2,
        "total_units": 14,
        "avg_sqft": 630.0,
        "new_build_premium": 15.0,
        "total_gdv": 6210000.0,
        "gdv_per_unit": 443571.0,
        "gdv_per_sqft": 704.0,
        "reasoning": reasoning,
        "completed": completed,
    }


def _build_cost(completed: bool = True, reasoning: str = "") -> dict:
    return {
        "total_gia": 820.0,
        "build_type": "conversion",
        "spec_level": "standard",
        "region": "london",
        "storeys": 4,
        "contingency": 10.0,
        "professional_fees": 12.0,
        "total_cost": 2012000.0,
        "cost_per_sqm": 2453.7,
        "reasoning": reasoning,
        "completed": completed,
    }


def _finance(completed: bool = True, reasoning: str = "") -> dict:
    return {
        "purchase_price": 1850000.0,
        "build_cost": 2012000.0,
        "gdv": 6210000.0,
        "term_months": 18,
        "target_ltc": 0.65,
        "require_mezzanine": False,
        "senior_debt_amount": 2510300.0,
        "equity_required": 1351700.0,
        "total_ltc": 65.0,
        "profit_on_cost": 60.8,
        "lender_appetite": "strong",
        "reasoning": reasoning,
        "completed": completed,
    }


_STEP_BUILDERS = {1: _pd, 2: _gdv, 3: _build_cost, 4: _finance}


@pytest.fixture
def step_payload():
    """Factory returning a valid payload for a wizard step.

    Usage:
        payload = step_payload(4, completed=False)
    """
    def _factory(step: int, completed: bool = True, reasoning: str = "") -> dict:
        return _STEP_BUILDERS[step](completed=completed, reasoning=reasoning)

    return _factory
