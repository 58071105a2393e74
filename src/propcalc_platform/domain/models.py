"""SQLAlchemy ORM models for the PropCalc platform.

All models use SQLite-compatible types:
- String(36) for UUID primary keys
- JSON for step sub-records (no JSONB)
- DateTime for timestamps (no TIMESTAMPTZ)
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from propcalc_platform.infra.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """Internal user row mapped from an external identity token."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    token_identifier = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False, default="Anonymous")
    email = Column(String(255), nullable=False, default="")
    role = Column(String(20), nullable=False, default="user")  # user, admin
    created_at = Column(DateTime, default=utcnow)


# ---------------------------------------------------------------------------
# Deals
# ---------------------------------------------------------------------------


class Deal(Base):
    """One property opportunity walked through the four-step wizard."""

    __tablename__ = "deals"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    address = Column(String(500), nullable=False)
    local_authority = Column(String(255), nullable=True)
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)

    # Step sub-records, null until first submitted
    pd_data = Column(JSON, nullable=True)
    gdv_data = Column(JSON, nullable=True)
    build_cost_data = Column(JSON, nullable=True)
    finance_data = Column(JSON, nullable=True)

    ai_summary = Column(Text, nullable=True)

    status = Column(String(30), nullable=False, default="draft", index=True)
    current_step = Column(Integer, nullable=False, default=1)  # 1=PD, 2=GDV, 3=BuildCost, 4=Finance

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow)

    owner = relationship("User")


# ---------------------------------------------------------------------------
# Lead capture
# ---------------------------------------------------------------------------


class CalculatorSubmission(Base):
    """A calculator run captured for lead follow-up.

    At most one row per (user, calculator_slug) for identified users;
    anonymous runs always get a fresh row.
    """

    __tablename__ = "calculator_submissions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    user_email = Column(String(255), nullable=True)
    calculator_type = Column(String(100), nullable=False)
    calculator_slug = Column(String(150), nullable=False, index=True)
    form_data = Column(Text, nullable=False)  # opaque serialized form payload
    source = Column(String(500), nullable=True)
    follow_up_status = Column(String(50), nullable=False, default="pending", index=True)
    follow_up_notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow)


# ---------------------------------------------------------------------------
# Agent activity
# ---------------------------------------------------------------------------


class AgentLog(Base):
    """Audit row for every text-generation call."""

    __tablename__ = "agent_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    agent_name = Column(String(100), nullable=False)
    action = Column(String(100), nullable=False)
    input_summary = Column(Text)
    output_summary = Column(Text)
    tokens_used = Column(Integer, default=0)
    latency_ms = Column(Integer, default=0)
    related_deal_id = Column(String(36), nullable=True, index=True)
    created_at = Column(DateTime, default=utcnow)
