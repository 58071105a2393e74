"""Submission Capture - records calculator runs for lead follow-up."""

import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from propcalc_platform.domain.enums import FollowUpStatus
from propcalc_platform.domain.errors import NotFound
from propcalc_platform.domain.models import CalculatorSubmission, User, utcnow
from propcalc_platform.services.user_service import CallerIdentity, get_user_by_token

logger = logging.getLogger(__name__)

RECENT_WINDOW = timedelta(days=7)
DEFAULT_ADMIN_PAGE = 50
DEFAULT_CALCULATOR_PAGE = 20


def serialize_submission(submission: CalculatorSubmission, user: User | None = None) -> dict:
    """Flatten a submission row, with the submitter's name/email when known."""
    return {
        "id": submission.id,
        "user_id": submission.user_id,
        "user_email": submission.user_email,
        "calculator_type": submission.calculator_type,
        "calculator_slug": submission.calculator_slug,
        "form_data": submission.form_data,
        "source": submission.source,
        "follow_up_status": submission.follow_up_status,
        "follow_up_notes": submission.follow_up_notes,
        "created_at": submission.created_at,
        "updated_at": submission.updated_at,
        "user": {"name": user.name, "email": user.email} if user else None,
    }


class SubmissionService:
    """Stores and reports on calculator submissions."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record_submission(
        self,
        identity: CallerIdentity | None,
        calculator_type: str,
        calculator_slug: str,
        form_data: str,
        source: Optional[str] = None,
    ) -> str:
        """Insert a submission, or refresh the caller's existing one for this slug.

        Anonymous callers, and identified callers whose user row has not
        been provisioned yet, always get a new row.

        Returns:
            The id of the inserted or patched submission.
        """
        user_id = None
        user_email = None
        if identity is not None:
            user = await get_user_by_token(self.db, identity.token_identifier)
            if user is not None:
                user_id = user.id
                user_email = user.email
            else:
                user_email = identity.email

        now = utcnow()

        if user_id:
            result = await self.db.execute(
                select(CalculatorSubmission)
                .where(
                    CalculatorSubmission.user_id == user_id,
                    CalculatorSubmission.calculator_slug == calculator_slug,
                )
                .limit(1)
            )
            existing = result.scalar_one_or_none()
            if existing:
                existing.form_data = form_data
                existing.source = source
                existing.updated_at = now
                await self.db.commit()
                return existing.id

        submission = CalculatorSubmission(
            user_id=user_id,
            user_email=user_email,
            calculator_type=calculator_type,
            calculator_slug=calculator_slug,
            form_data=form_data,
            source=source,
            follow_up_status=FollowUpStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        self.db.add(submission)
        await self.db.commit()
        logger.info(
            "Recorded %s submission %s (user=%s)",
            calculator_slug,
            submission.id,
            user_id or "anonymous",
        )
        return submission.id

    async def list_submissions(
        self,
        limit: int = DEFAULT_ADMIN_PAGE,
        status: Optional[str] = None,
    ) -> list[dict]:
        """Admin view: newest first, optionally by follow-up status, with user details."""
        query = (
            select(CalculatorSubmission, User)
            .outerjoin(User, CalculatorSubmission.user_id == User.id)
            .order_by(CalculatorSubmission.created_at.desc())
            .limit(limit)
        )
        if status:
            query = query.where(CalculatorSubmission.follow_up_status == status)

        result = await self.db.execute(query)
        return [serialize_submission(sub, user) for sub, user in result.all()]

    async def list_by_calculator(
        self, calculator_slug: str, limit: int = DEFAULT_CALCULATOR_PAGE
    ) -> list[CalculatorSubmission]:
        result = await self.db.execute(
            select(CalculatorSubmission)
            .where(CalculatorSubmission.calculator_slug == calculator_slug)
            .order_by(CalculatorSubmission.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_mine(self, identity: CallerIdentity | None) -> list[CalculatorSubmission]:
        if identity is None:
            return []
        user = await get_user_by_token(self.db, identity.token_identifier)
        if user is None:
            return []
        result = await self.db.execute(
            select(CalculatorSubmission)
            .where(CalculatorSubmission.user_id == user.id)
            .order_by(CalculatorSubmission.created_at.desc())
        )
        return list(result.scalars().all())

    async def update_follow_up_status(
        self,
        submission_id: str,
        status: str,
        notes: Optional[str] = None,
    ) -> CalculatorSubmission:
        result = await self.db.execute(
            select(CalculatorSubmission).where(CalculatorSubmission.id == submission_id)
        )
        submission = result.scalar_one_or_none()
        if submission is None:
            raise NotFound("Submission", submission_id)

        submission.follow_up_status = status
        submission.follow_up_notes = notes
        submission.updated_at = utcnow()
        await self.db.commit()
        await self.db.refresh(submission)
        return submission

    async def stats(self) -> dict:
        """Counts by calculator and follow-up status, plus the last 7 days."""
        total = await self.db.scalar(select(func.count(CalculatorSubmission.id)))

        by_calculator_rows = await self.db.execute(
            select(CalculatorSubmission.calculator_slug, func.count(CalculatorSubmission.id))
            .group_by(CalculatorSubmission.calculator_slug)
        )
        by_status_rows = await self.db.execute(
            select(CalculatorSubmission.follow_up_status, func.count(CalculatorSubmission.id))
            .where(CalculatorSubmission.follow_up_status.is_not(None))
            .group_by(CalculatorSubmission.follow_up_status)
        )
        recent_count = await self.db.scalar(
            select(func.count(CalculatorSubmission.id))
            .where(CalculatorSubmission.created_at > utcnow() - RECENT_WINDOW)
        )

        return {
            "total": total or 0,
            "by_calculator": {slug: count for slug, count in by_calculator_rows.all()},
            "by_status": {status: count for status, count in by_status_rows.all()},
            "recent_count": recent_count or 0,
        }
