"""Base agent class for the PropCalc AI agents.

Agents wrap a single Gemini call and provide:

- Gemini model access via the infra.gemini_client wrapper
- A standard AgentResult return type (Result pattern)
- Latency measurement and token tracking
- Database activity logging via AgentLog records
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

logger = logging.getLogger(__name__)

# Strong refs to in-flight activity writes; the loop only keeps weak ones
_background_tasks: set[asyncio.Task] = set()


# ---------------------------------------------------------------------------
# Result type
# ---------------------------------------------------------------------------

@dataclass
class AgentResult:
    """Standard result type for all agent operations.

    Every agent call returns an AgentResult instead of raising. Callers
    check ``result.ok`` to determine success or failure.

    Attributes:
        ok: True if the operation succeeded.
        data: The response payload (text, parsed model, etc.).
        error: Human-readable error description when ``ok`` is False.
        tokens_used: Total tokens consumed (prompt + completion).
        latency_ms: Wall-clock time for the operation in milliseconds.
    """

    ok: bool
    data: Any = None
    error: Optional[str] = None
    tokens_used: int = 0
    latency_ms: int = 0

    @classmethod
    def success(
        cls,
        data: Any,
        tokens_used: int = 0,
        latency_ms: int = 0,
    ) -> "AgentResult":
        """Create a successful result."""
        return cls(
            ok=True,
            data=data,
            tokens_used=tokens_used,
            latency_ms=latency_ms,
        )

    @classmethod
    def failure(cls, error: str, latency_ms: int = 0) -> "AgentResult":
        """Create a failure result."""
        return cls(ok=False, error=error, latency_ms=latency_ms)


# ---------------------------------------------------------------------------
# Base agent
# ---------------------------------------------------------------------------

class BaseAgent:
    """Base class for Gemini-backed agents.

    Example::

        class SummaryAgent(BaseAgent):
            def __init__(self):
                super().__init__(agent_name="summary")

            async def summarise(self, deal_text: str) -> AgentResult:
                return await self.generate(
                    prompt=f"Summarise this deal: {deal_text}",
                    system_instruction="You are a UK development finance analyst.",
                )
    """

    def __init__(
        self,
        agent_name: str,
        model_name: Optional[str] = None,
        temperature: float = 0.7,
        max_output_tokens: Optional[int] = None,
        timeout: float = 120,
    ):
        """Initialise the agent.

        Args:
            agent_name: A short, unique name for this agent (used in logs).
            model_name: Gemini model identifier; None uses the configured default.
            temperature: Generation temperature (0.0-1.0).
            max_output_tokens: Optional completion length cap.
            timeout: Hard limit in seconds for one generation call.
        """
        self.agent_name = agent_name
        self.model_name = model_name
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.timeout = timeout

    async def generate(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        json_mode: bool = False,
        response_schema: dict | None = None,
        deal_id: Optional[str] = None,
    ) -> AgentResult:
        """Generate a single-turn response from Gemini.

        Args:
            prompt: The user prompt to send.
            system_instruction: Optional system instruction that shapes
                the model's behaviour.
            json_mode: If True the model is instructed to return valid JSON.
            response_schema: Optional JSON Schema for structured output.
            deal_id: Deal the call relates to, recorded in the activity log.

        Returns:
            An ``AgentResult`` with the response text in ``data``.
        """
        start_time = time.time()
        try:
            from propcalc_platform.infra.gemini_client import get_model

            model = get_model(
                model_name=self.model_name,
                temperature=self.temperature,
                json_mode=json_mode,
                response_schema=response_schema,
                system_instruction=system_instruction,
                max_output_tokens=self.max_output_tokens,
            )

            response = await asyncio.wait_for(
                model.generate_content_async(prompt),
                timeout=self.timeout,
            )
            latency_ms = int((time.time() - start_time) * 1000)

            tokens_used = 0
            if hasattr(response, "usage_metadata") and response.usage_metadata:
                prompt_tokens = getattr(
                    response.usage_metadata, "prompt_token_count", 0
                ) or 0
                completion_tokens = getattr(
                    response.usage_metadata, "candidates_token_count", 0
                ) or 0
                tokens_used = prompt_tokens + completion_tokens

            response_text = response.text

            logger.info(
                "[%s] Generation succeeded: tokens=%d, latency=%dms",
                self.agent_name,
                tokens_used,
                latency_ms,
            )

            self._safe_log_activity(
                action="generate",
                input_summary=prompt[:500],
                output_summary=(response_text or "")[:500],
                tokens_used=tokens_used,
                latency_ms=latency_ms,
                deal_id=deal_id,
            )

            return AgentResult.success(
                data=response_text,
                tokens_used=tokens_used,
                latency_ms=latency_ms,
            )

        except asyncio.TimeoutError:
            latency_ms = int((time.time() - start_time) * 1000)
            logger.error(
                "[%s] Generation timed out after %dms", self.agent_name, latency_ms
            )
            return AgentResult.failure(
                f"Generation timed out after {self.timeout}s", latency_ms=latency_ms
            )
        except Exception as exc:
            latency_ms = int((time.time() - start_time) * 1000)
            logger.error(
                "[%s] Generation failed after %dms: %s",
                self.agent_name,
                latency_ms,
                exc,
            )
            return AgentResult.failure(str(exc), latency_ms=latency_ms)

    # ------------------------------------------------------------------
    # Activity logging
    # ------------------------------------------------------------------

    async def log_activity(
        self,
        action: str,
        input_summary: str,
        output_summary: str,
        tokens_used: int,
        latency_ms: int,
        deal_id: Optional[str] = None,
    ) -> None:
        """Persist an ``AgentLog`` entry for one generation call."""
        try:
            from propcalc_platform.infra.database import async_session
            from propcalc_platform.domain.models import AgentLog

            async with async_session() as session:
                session.add(
                    AgentLog(
                        id=str(uuid.uuid4()),
                        agent_name=self.agent_name,
                        action=action,
                        input_summary=input_summary,
                        output_summary=output_summary,
                        tokens_used=tokens_used,
                        latency_ms=latency_ms,
                        related_deal_id=deal_id,
                        created_at=datetime.now(timezone.utc),
                    )
                )
                await session.commit()

        except Exception as exc:
            # DB logging must never break agent operation
            logger.warning(
                "[%s] Failed to log activity to DB: %s", self.agent_name, exc
            )

    def _safe_log_activity(self, **kwargs) -> None:
        """Schedule ``log_activity`` as a background task so it never blocks the caller."""
        task = asyncio.ensure_future(self.log_activity(**kwargs))
        _background_tasks.add(task)
        task.add_done_callback(_background_tasks.discard)
