"""Insight Agent - turns calculator inputs into a structured AI analysis.

The model runs in JSON mode against the payload schema, but replies can
still arrive wrapped in prose or code fences, so the first ``{...}`` block
is extracted and validated. Anything that still will not parse degrades to
a fallback payload built from the raw text.
"""

import json
import logging
import re
from typing import Optional

from pydantic import ValidationError

from propcalc_platform.agents.base import AgentResult, BaseAgent
from propcalc_platform.agents.prompts.insights import (
    DEFAULT_SYSTEM_PROMPT,
    INSIGHT_RESPONSE_FORMAT,
)
from propcalc_platform.domain.enums import InsightVerdict
from propcalc_platform.domain.schemas import InsightPayload

logger = logging.getLogger(__name__)

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")
FALLBACK_SUMMARY_CHARS = 500


def insight_response_schema() -> dict:
    """JSON Schema the model is constrained to; ``fallback`` is ours, not the model's."""
    schema = InsightPayload.model_json_schema()
    schema["properties"].pop("fallback", None)
    return schema


def parse_insight_payload(text: Optional[str]) -> InsightPayload:
    """Extract an InsightPayload from model output, never raising."""
    raw = text or ""
    match = _JSON_BLOCK.search(raw)
    if match:
        try:
            return InsightPayload.model_validate(json.loads(match.group(0)))
        except (json.JSONDecodeError, ValidationError) as exc:
            logger.warning("Insight JSON parse failed, using text fallback: %s", exc)
    else:
        logger.warning("No JSON object in insight response, using text fallback")

    return InsightPayload(
        summary=raw[:FALLBACK_SUMMARY_CHARS],
        verdict=InsightVerdict.GOOD,
        fallback=True,
    )


class InsightAgent(BaseAgent):
    """Single-shot analysis of a calculator or wizard step."""

    def __init__(self, timeout: float = 120):
        super().__init__(
            agent_name="insight",
            temperature=0.7,
            max_output_tokens=1024,
            timeout=timeout,
        )

    async def generate_insights(
        self,
        user_prompt: str,
        system_prompt: Optional[str] = None,
        deal_id: Optional[str] = None,
    ) -> AgentResult:
        """Run one analysis.

        Returns:
            AgentResult whose ``data`` is an ``InsightPayload`` on success.
            A failed result means the upstream call itself errored or
            timed out; malformed output is not a failure.
        """
        system_instruction = f"{system_prompt or DEFAULT_SYSTEM_PROMPT}\n{INSIGHT_RESPONSE_FORMAT}"
        result = await self.generate(
            prompt=user_prompt,
            system_instruction=system_instruction,
            json_mode=True,
            response_schema=insight_response_schema(),
            deal_id=deal_id,
        )
        if not result.ok:
            return result

        return AgentResult.success(
            data=parse_insight_payload(result.data),
            tokens_used=result.tokens_used,
            latency_ms=result.latency_ms,
        )
