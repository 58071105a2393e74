"""Deal wizard API: create deals, submit steps, read and delete."""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from propcalc_platform.app.routes.auth import get_caller_identity, http_error, require_admin
from propcalc_platform.domain.enums import DealStep
from propcalc_platform.domain.errors import PlatformError
from propcalc_platform.domain.models import User
from propcalc_platform.domain.schemas import (
    DealCreate,
    DealCreatedResponse,
    DealResponse,
    DealStatusUpdate,
    StepSubmitResponse,
)
from propcalc_platform.infra.database import get_db
from propcalc_platform.services.deal_engine import DealProgressionEngine
from propcalc_platform.services.deal_insights import DealInsightService
from propcalc_platform.services.user_service import CallerIdentity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/deals", tags=["deals"])
admin_router = APIRouter(prefix="/api/admin/deals", tags=["admin-deals"])


def get_insight_service(db: AsyncSession = Depends(get_db)) -> DealInsightService:
    return DealInsightService(db)


@router.post("", response_model=DealCreatedResponse, status_code=201)
async def create_deal(
    data: DealCreate,
    identity: CallerIdentity | None = Depends(get_caller_identity),
    db: AsyncSession = Depends(get_db),
):
    try:
        deal = await DealProgressionEngine(db).create_deal(
            identity,
            name=data.name,
            address=data.address,
            local_authority=data.local_authority,
            lat=data.lat,
            lng=data.lng,
        )
    except PlatformError as exc:
        raise http_error(exc)
    return DealCreatedResponse(id=deal.id)


@router.get("", response_model=list[DealResponse])
async def list_my_deals(
    identity: CallerIdentity | None = Depends(get_caller_identity),
    db: AsyncSession = Depends(get_db),
):
    deals = await DealProgressionEngine(db).list_deals_for_caller(identity)
    return [DealResponse.model_validate(d) for d in deals]


@router.get("/{deal_id}", response_model=DealResponse)
async def get_deal(deal_id: str, db: AsyncSession = Depends(get_db)):
    deal = await DealProgressionEngine(db).get_deal(deal_id)
    if deal is None:
        raise HTTPException(status_code=404, detail="Deal not found")
    return DealResponse.model_validate(deal)


@router.put("/{deal_id}/steps/{step}", response_model=StepSubmitResponse)
async def submit_step(
    deal_id: str,
    step: int,
    payload: dict[str, Any] = Body(...),
    augment: bool = Query(True, description="Generate AI reasoning when none is supplied"),
    identity: CallerIdentity | None = Depends(get_caller_identity),
    db: AsyncSession = Depends(get_db),
    insights: DealInsightService = Depends(get_insight_service),
):
    """Save one wizard step.

    The step is committed before any AI call, so a failed or slow
    narrative never loses the submitted numbers.
    """
    try:
        deal = await DealProgressionEngine(db).submit_step(identity, deal_id, step, payload)
    except PlatformError as exc:
        raise http_error(exc)

    insight = None
    stored = getattr(deal, DealStep(step).field_name) or {}
    if augment and not stored.get("reasoning"):
        insight = await insights.augment_step(deal, step)

    return StepSubmitResponse(
        deal_id=deal.id,
        step=step,
        current_step=deal.current_step,
        status=deal.status,
        insight=insight,
    )


@router.delete("/{deal_id}", status_code=204)
async def delete_deal(
    deal_id: str,
    identity: CallerIdentity | None = Depends(get_caller_identity),
    db: AsyncSession = Depends(get_db),
):
    try:
        await DealProgressionEngine(db).delete_deal(identity, deal_id)
    except PlatformError as exc:
        raise http_error(exc)


@admin_router.patch("/{deal_id}/status", response_model=DealResponse)
async def set_deal_status(
    deal_id: str,
    data: DealStatusUpdate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Record a status decided outside the wizard (e.g. lender review)."""
    try:
        deal = await DealProgressionEngine(db).set_external_status(deal_id, data.status)
    except PlatformError as exc:
        raise http_error(exc)
    logger.info("Admin %s set deal %s to %s", admin.id, deal_id, data.status.value)
    return DealResponse.model_validate(deal)
