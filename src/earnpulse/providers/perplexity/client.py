"""Perplexity-backed live earnings source.

Uses the OpenAI-compatible chat completions endpoint with online search.
The model is asked for a JSON object; prose answers without one degrade to
an ``unknown`` snapshot that carries the raw text as its summary.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import httpx
import orjson
from pydantic import ValidationError

from earnpulse.core.constants import (
    DEFAULT_PERPLEXITY_API_URL,
    DEFAULT_PERPLEXITY_MODEL,
    PERPLEXITY_HTTP_TIMEOUT,
)
from earnpulse.core.exceptions import AdapterError
from earnpulse.core.logging import get_logger
from earnpulse.live.models import EarningsStatus, FiscalPeriod, Snapshot
from earnpulse.live.period import FiscalCalendar
from earnpulse.providers.perplexity.models import EarningsAnswer

logger = get_logger(__name__)

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")

_STATUS_ALIASES: dict[str, EarningsStatus] = {
    "pending": EarningsStatus.pending,
    "pre_earnings": EarningsStatus.pending,
    "scheduled": EarningsStatus.pending,
    "in_progress": EarningsStatus.in_progress,
    "released": EarningsStatus.released,
    "reported": EarningsStatus.released,
}

SYSTEM_PROMPT = """You are a financial analyst tracking live earnings releases.
Use real-time sources. Report only figures that have actually been published.
Respond with a single JSON object and nothing else."""


def build_prompt(subject: str, period: FiscalPeriod, now: datetime) -> str:
    """Build the user prompt for one live earnings lookup."""
    return f"""Live earnings status for {subject}, {period} (today is {now.date().isoformat()}).

Respond in JSON with keys:
- status: one of "pending", "in_progress", "released"
- revenue, revenueExpected, revenueBeatMiss, revenueYoY
- eps, epsExpected, epsBeatMiss, epsYoY
- guidance: "raised", "maintained" or "lowered"
- guidanceNotes, stockReaction, analystReaction
- summary: two or three sentences
- keyHighlights: up to 5 short headline strings

Use null for anything not yet published."""


def parse_status(value: str | None) -> EarningsStatus:
    if not value:
        return EarningsStatus.unknown
    normalized = value.strip().lower().replace("-", "_").replace(" ", "_")
    return _STATUS_ALIASES.get(normalized, EarningsStatus.unknown)


def parse_answer(content: str) -> EarningsAnswer | None:
    """Extract the JSON object from a model reply, if there is one."""
    match = _JSON_OBJECT.search(content)
    if not match:
        return None
    try:
        raw = orjson.loads(match.group(0))
    except orjson.JSONDecodeError:
        return None
    if not isinstance(raw, dict):
        return None
    try:
        return EarningsAnswer.model_validate(raw)
    except ValidationError as e:
        logger.debug("Earnings answer failed validation", error=str(e))
        return None


class PerplexityEarningsSource:
    """EarningsSource backed by the Perplexity chat completions API.

    Usage:
        source = PerplexityEarningsSource(api_key="pplx-...", calendar=FiscalCalendar())
        snapshot = await source.fetch("Acme")
        await source.close()
    """

    def __init__(
        self,
        api_key: str | None,
        calendar: FiscalCalendar | None = None,
        base_url: str = DEFAULT_PERPLEXITY_API_URL,
        model: str = DEFAULT_PERPLEXITY_MODEL,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._api_key = api_key
        self._calendar = calendar or FiscalCalendar()
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._clock = clock or (lambda: datetime.now(UTC))
        self._http_client: httpx.AsyncClient | None = None

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=PERPLEXITY_HTTP_TIMEOUT,
                headers={
                    "Authorization": f"Bearer {self._api_key}",
                    "Content-Type": "application/json",
                },
            )
        return self._http_client

    async def _complete(self, subject: str, user_prompt: str) -> str:
        if not self._api_key:
            raise AdapterError("PERPLEXITY_API_KEY is not configured", subject=subject)

        body: dict[str, Any] = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": 0.2,
            "max_tokens": 2048,
        }
        client = self._get_http_client()
        try:
            resp = await client.post(f"{self._base_url}/chat/completions", json=body)
            resp.raise_for_status()
            data = orjson.loads(resp.content)
        except httpx.HTTPError as e:
            raise AdapterError(f"Perplexity request failed: {e}", subject=subject) from e
        except orjson.JSONDecodeError as e:
            raise AdapterError("Perplexity returned invalid JSON", subject=subject) from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise AdapterError("Malformed Perplexity response", subject=subject) from e
        return content or ""

    async def fetch(self, subject: str) -> Snapshot:
        """Fetch a live earnings snapshot for ``subject``."""
        now = self._clock()
        period = self._calendar.period_for(subject, now)

        logger.debug("Fetching live earnings", subject=subject, period=str(period))
        content = await self._complete(subject, build_prompt(subject, period, now))

        answer = parse_answer(content)
        if answer is None:
            logger.debug("No structured answer, keeping raw text", subject=subject)
            return Snapshot(
                subject=subject,
                period=period,
                status=EarningsStatus.unknown,
                fetched_at=now,
                summary=content.strip() or None,
            )

        return Snapshot(
            subject=subject,
            period=period,
            status=parse_status(answer.status),
            fetched_at=now,
            revenue=answer.revenue,
            revenue_expected=answer.revenue_expected,
            revenue_beat_miss=answer.revenue_beat_miss,
            revenue_yoy=answer.revenue_yoy,
            eps=answer.eps,
            eps_expected=answer.eps_expected,
            eps_beat_miss=answer.eps_beat_miss,
            eps_yoy=answer.eps_yoy,
            guidance=answer.guidance,
            guidance_notes=answer.guidance_notes,
            stock_reaction=answer.stock_reaction,
            analyst_reaction=answer.analyst_reaction,
            summary=answer.summary,
            headlines=answer.headlines,
        )

    async def close(self) -> None:
        """Clean up resources."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
        logger.debug("PerplexityEarningsSource closed")
