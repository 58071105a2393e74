"""Deal Progression Engine - create deals and walk them through the wizard.

Each wizard step (PD, GDV, Build Cost, Finance) writes its own sub-record
on the Deal. The engine validates the step payload, stores it, moves the
step cursor and, for the Finance step, flips the deal between draft and
complete.

Access rules mirror the product as shipped: creating and listing deals
requires a provisioned user, step submissions and deletes only require an
authenticated caller, and reads are open. Set ``enforce_deal_ownership``
to restrict submissions and deletes to the deal's owner.
"""

import logging
from typing import Any, Optional

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from propcalc_platform.app.config import get_settings
from propcalc_platform.domain.enums import DealStatus, DealStep
from propcalc_platform.domain.errors import (
    NotDealOwner,
    NotFound,
    Unauthenticated,
    ValidationFailed,
)
from propcalc_platform.domain.models import Deal, utcnow
from propcalc_platform.domain.schemas import STEP_PAYLOAD_MODELS, StepData
from propcalc_platform.services.deal_state_machine import DealStateMachine
from propcalc_platform.services.user_service import (
    CallerIdentity,
    get_user_by_token,
    resolve_user,
)

logger = logging.getLogger(__name__)


def parse_step(step: int) -> DealStep:
    try:
        return DealStep(step)
    except ValueError:
        raise ValidationFailed(f"Unknown step {step}; expected 1-4") from None


def parse_step_payload(step: DealStep, payload: Any) -> StepData:
    """Validate a raw step payload against the step's schema."""
    model = STEP_PAYLOAD_MODELS[step]
    if isinstance(payload, model):
        return payload
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        missing = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
        raise ValidationFailed(
            f"Invalid {step.name.lower()} step data: {', '.join(missing)}",
            errors=exc.errors(include_url=False),
        ) from exc


def completed_steps(deal: Deal) -> dict[DealStep, bool]:
    """Map each step to whether its stored sub-record is marked completed."""
    return {
        step: bool((getattr(deal, step.field_name) or {}).get("completed"))
        for step in DealStep
    }


class DealProgressionEngine:
    """Orchestrates the four-step deal wizard against the database."""

    def __init__(
        self,
        db: AsyncSession,
        strict_step_order: Optional[bool] = None,
        enforce_deal_ownership: Optional[bool] = None,
    ):
        settings = get_settings()
        self.db = db
        self.state_machine = DealStateMachine(
            strict_step_order=(
                settings.strict_step_order if strict_step_order is None else strict_step_order
            )
        )
        self.enforce_deal_ownership = (
            settings.enforce_deal_ownership
            if enforce_deal_ownership is None
            else enforce_deal_ownership
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def create_deal(
        self,
        identity: CallerIdentity | None,
        name: str,
        address: str,
        local_authority: Optional[str] = None,
        lat: Optional[float] = None,
        lng: Optional[float] = None,
    ) -> Deal:
        """Start a new draft deal at step 1 for the calling user."""
        user = await resolve_user(self.db, identity)

        now = utcnow()
        deal = Deal(
            user_id=user.id,
            name=name,
            address=address,
            local_authority=local_authority,
            lat=lat,
            lng=lng,
            status=DealStatus.DRAFT.value,
            current_step=int(DealStep.PD),
            created_at=now,
            updated_at=now,
        )
        self.db.add(deal)
        await self.db.commit()
        await self.db.refresh(deal)
        logger.info("Created deal %s for user %s", deal.id, user.id)
        return deal

    async def get_deal(self, deal_id: str) -> Deal | None:
        result = await self.db.execute(select(Deal).where(Deal.id == deal_id))
        return result.scalar_one_or_none()

    async def list_deals_for_caller(self, identity: CallerIdentity | None) -> list[Deal]:
        """Caller's deals newest first; empty when anonymous or unprovisioned."""
        if identity is None:
            return []
        user = await get_user_by_token(self.db, identity.token_identifier)
        if user is None:
            return []
        result = await self.db.execute(
            select(Deal)
            .where(Deal.user_id == user.id)
            .order_by(Deal.created_at.desc())
        )
        return list(result.scalars().all())

    async def delete_deal(self, identity: CallerIdentity | None, deal_id: str) -> None:
        if identity is None:
            raise Unauthenticated()
        deal = await self._get_or_raise(deal_id)
        await self._check_owner(identity, deal)
        await self.db.delete(deal)
        await self.db.commit()
        logger.info("Deleted deal %s", deal_id)

    # ------------------------------------------------------------------
    # Wizard steps
    # ------------------------------------------------------------------

    async def submit_step(
        self,
        identity: CallerIdentity | None,
        deal_id: str,
        step: int,
        payload: Any,
    ) -> Deal:
        """Store a step's data and advance the cursor.

        Returns the updated deal; callers usually only need its id.

        Raises:
            Unauthenticated: No caller identity.
            ValidationFailed: Unknown step or payload missing required fields.
            NotFound: No deal with ``deal_id``.
            StepLocked: Strict mode and an earlier step is incomplete.
            NotDealOwner: Ownership enforced and caller is not the owner.
        """
        if identity is None:
            raise Unauthenticated()
        deal_step = parse_step(step)
        data = parse_step_payload(deal_step, payload)

        deal = await self._get_or_raise(deal_id)
        await self._check_owner(identity, deal)

        self.state_machine.validate_submission(deal_step, completed_steps(deal))

        setattr(deal, deal_step.field_name, data.model_dump(mode="json"))
        progress = completed_steps(deal)
        deal.current_step = self.state_machine.cursor_after_step(
            deal_step, data.completed, progress
        )
        deal.status = self.state_machine.status_after_step(
            DealStatus(deal.status), deal_step, data.completed
        ).value
        deal.updated_at = utcnow()

        await self.db.commit()
        await self.db.refresh(deal)
        logger.info(
            "Deal %s step %d saved (completed=%s) -> current_step=%d status=%s",
            deal.id,
            int(deal_step),
            data.completed,
            deal.current_step,
            deal.status,
        )
        return deal

    async def attach_reasoning(self, deal_id: str, step: int, reasoning: str) -> Deal:
        """Patch only the narrative of an already-written step sub-record."""
        deal_step = parse_step(step)
        deal = await self._get_or_raise(deal_id)
        current = getattr(deal, deal_step.field_name)
        if current is None:
            raise ValidationFailed(f"Step {int(deal_step)} has not been submitted yet")

        # Reassign a copy so SQLAlchemy sees the JSON column change
        setattr(deal, deal_step.field_name, {**current, "reasoning": reasoning})
        deal.updated_at = utcnow()
        await self.db.commit()
        await self.db.refresh(deal)
        return deal

    async def set_external_status(self, deal_id: str, status: DealStatus) -> Deal:
        """Persist a status set by the lender review process."""
        deal = await self._get_or_raise(deal_id)
        deal.status = status.value
        deal.updated_at = utcnow()
        await self.db.commit()
        await self.db.refresh(deal)
        logger.info("Deal %s status set externally to %s", deal_id, status.value)
        return deal

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _get_or_raise(self, deal_id: str) -> Deal:
        deal = await self.get_deal(deal_id)
        if deal is None:
            raise NotFound("Deal", deal_id)
        return deal

    async def _check_owner(self, identity: CallerIdentity, deal: Deal) -> None:
        if not self.enforce_deal_ownership:
            return
        user = await get_user_by_token(self.db, identity.token_identifier)
        if user is None or user.id != deal.user_id:
            raise NotDealOwner()
