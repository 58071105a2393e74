"""Narrative augmentation for wizard steps.

Runs after a step has been committed: asks the Insight Agent for an
analysis and stores its summary as the step's ``reasoning``. Any failure
here is logged and swallowed so the stored metrics are never affected.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from propcalc_platform.agents.insight_agent import InsightAgent
from propcalc_platform.agents.prompts.insights import (
    BUILD_COST_STEP_TEMPLATE,
    DEFAULT_SYSTEM_PROMPT,
    FINANCE_STEP_TEMPLATE,
    FINANCE_SYSTEM_PROMPT,
    GDV_STEP_TEMPLATE,
    GDV_SYSTEM_PROMPT,
    PD_STEP_TEMPLATE,
    PD_SYSTEM_PROMPT,
)
from propcalc_platform.app.config import get_settings
from propcalc_platform.domain.enums import DealStep
from propcalc_platform.domain.errors import PlatformError
from propcalc_platform.domain.models import Deal
from propcalc_platform.domain.schemas import InsightPayload
from propcalc_platform.services.deal_engine import DealProgressionEngine

logger = logging.getLogger(__name__)

STEP_PROMPTS: dict[DealStep, tuple[str, str]] = {
    DealStep.PD: (PD_SYSTEM_PROMPT, PD_STEP_TEMPLATE),
    DealStep.GDV: (GDV_SYSTEM_PROMPT, GDV_STEP_TEMPLATE),
    DealStep.BUILD_COST: (DEFAULT_SYSTEM_PROMPT, BUILD_COST_STEP_TEMPLATE),
    DealStep.FINANCE: (FINANCE_SYSTEM_PROMPT, FINANCE_STEP_TEMPLATE),
}


def _fmt(value) -> str:
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, float):
        return f"{value:,.0f}" if abs(value) >= 1000 else f"{value:g}"
    if isinstance(value, int):
        return f"{value:,}"
    return str(value)


def build_step_prompt(deal: Deal, step: DealStep) -> tuple[str, str]:
    """Return (system_prompt, user_prompt) for a stored step sub-record."""
    system_prompt, template = STEP_PROMPTS[step]
    data = getattr(deal, step.field_name) or {}
    values = {key: _fmt(value) for key, value in data.items()}
    values.update(
        name=deal.name,
        address=deal.address,
        local_authority=deal.local_authority or "local authority not given",
    )
    return system_prompt, template.format(**values)


class DealInsightService:
    """Attaches AI reasoning to freshly submitted wizard steps."""

    def __init__(
        self,
        db: AsyncSession,
        agent: Optional[InsightAgent] = None,
        enabled: Optional[bool] = None,
    ):
        settings = get_settings()
        self.db = db
        self.agent = agent or InsightAgent(timeout=settings.insight_timeout_seconds)
        self.enabled = bool(settings.gemini_api_key) if enabled is None else enabled

    async def augment_step(self, deal: Deal, step: int) -> InsightPayload | None:
        """Generate and store reasoning for ``step``; None when unavailable."""
        if not self.enabled:
            return None

        deal_step = DealStep(step)
        try:
            system_prompt, user_prompt = build_step_prompt(deal, deal_step)
        except KeyError as exc:
            logger.warning("Deal %s step %d missing prompt field %s", deal.id, step, exc)
            return None

        result = await self.agent.generate_insights(
            user_prompt=user_prompt,
            system_prompt=system_prompt,
            deal_id=deal.id,
        )
        if not result.ok:
            logger.warning(
                "Insight generation failed for deal %s step %d: %s",
                deal.id,
                step,
                result.error,
            )
            return None

        payload: InsightPayload = result.data
        try:
            await DealProgressionEngine(self.db).attach_reasoning(deal.id, step, payload.summary)
        except PlatformError as exc:
            logger.warning("Could not store reasoning on deal %s: %s", deal.id, exc)
        return payload
