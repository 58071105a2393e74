"""Free-form AI analysis for any calculator page."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from propcalc_platform.agents.insight_agent import InsightAgent
from propcalc_platform.app.config import get_settings
from propcalc_platform.app.routes.auth import http_error
from propcalc_platform.domain.errors import UpstreamGenerationFailed
from propcalc_platform.domain.schemas import AnalyzeRequest, InsightPayload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai", tags=["ai"])


def get_insight_agent() -> InsightAgent:
    return InsightAgent(timeout=get_settings().insight_timeout_seconds)


@router.post("/analyze", response_model=InsightPayload)
async def analyze(data: AnalyzeRequest, agent: InsightAgent = Depends(get_insight_agent)):
    if not data.system_prompt or not data.user_prompt:
        raise HTTPException(status_code=400, detail="Missing required fields")

    result = await agent.generate_insights(
        user_prompt=data.user_prompt,
        system_prompt=data.system_prompt,
    )
    if not result.ok:
        logger.error("AI analysis failed for %s: %s", data.calculator_id or "unknown", result.error)
        raise http_error(UpstreamGenerationFailed())
    return result.data
