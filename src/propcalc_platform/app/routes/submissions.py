"""Calculator submission capture and the admin lead dashboard."""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from propcalc_platform.app.routes.auth import get_caller_identity, http_error, require_admin
from propcalc_platform.domain.errors import PlatformError
from propcalc_platform.domain.models import User
from propcalc_platform.domain.schemas import (
    FollowUpUpdate,
    SubmissionCreate,
    SubmissionCreatedResponse,
    SubmissionResponse,
    SubmissionStats,
)
from propcalc_platform.infra.database import get_db
from propcalc_platform.services.submission_service import (
    DEFAULT_ADMIN_PAGE,
    DEFAULT_CALCULATOR_PAGE,
    SubmissionService,
    serialize_submission,
)
from propcalc_platform.services.user_service import CallerIdentity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/calculator-submissions", tags=["submissions"])
admin_router = APIRouter(prefix="/api/admin/calculator-submissions", tags=["admin-submissions"])


@router.post("", response_model=SubmissionCreatedResponse, status_code=201)
async def record_submission(
    data: SubmissionCreate,
    identity: CallerIdentity | None = Depends(get_caller_identity),
    db: AsyncSession = Depends(get_db),
):
    submission_id = await SubmissionService(db).record_submission(
        identity,
        calculator_type=data.calculator_type,
        calculator_slug=data.calculator_slug,
        form_data=data.form_data,
        source=data.source,
    )
    return SubmissionCreatedResponse(id=submission_id)


@router.get("/mine", response_model=list[SubmissionResponse])
async def list_my_submissions(
    identity: CallerIdentity | None = Depends(get_caller_identity),
    db: AsyncSession = Depends(get_db),
):
    rows = await SubmissionService(db).list_mine(identity)
    return [serialize_submission(r) for r in rows]


@router.get("/by-calculator/{calculator_slug}", response_model=list[SubmissionResponse])
async def list_by_calculator(
    calculator_slug: str,
    limit: int = Query(DEFAULT_CALCULATOR_PAGE, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    rows = await SubmissionService(db).list_by_calculator(calculator_slug, limit=limit)
    return [serialize_submission(r) for r in rows]


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


@admin_router.get("", response_model=list[SubmissionResponse])
async def list_submissions(
    limit: int = Query(DEFAULT_ADMIN_PAGE, ge=1, le=500),
    status: str | None = None,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await SubmissionService(db).list_submissions(limit=limit, status=status)


@admin_router.get("/stats", response_model=SubmissionStats)
async def submission_stats(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await SubmissionService(db).stats()


@admin_router.patch("/{submission_id}", response_model=SubmissionResponse)
async def update_follow_up_status(
    submission_id: str,
    data: FollowUpUpdate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        submission = await SubmissionService(db).update_follow_up_status(
            submission_id, data.status, data.notes
        )
    except PlatformError as exc:
        raise http_error(exc)
    logger.info(
        "Admin %s set submission %s follow-up to %s", admin.id, submission_id, data.status
    )
    return serialize_submission(submission)
