"""Pydantic models for Perplexity earnings answers."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

_MISSING = {"", "n/a", "na", "none", "null", "unknown", "-"}


def _clean(value: Any) -> str | None:
    """Normalize a loosely-typed answer value; placeholders become None."""
    if value is None:
        return None
    text = str(value).strip()
    if text.lower() in _MISSING:
        return None
    return text


class EarningsAnswer(BaseModel):
    """Structured earnings answer requested from the model.

    Field names follow the JSON keys in the prompt.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    status: str | None = None
    revenue: str | None = None
    revenue_expected: str | None = Field(default=None, alias="revenueExpected")
    revenue_beat_miss: str | None = Field(default=None, alias="revenueBeatMiss")
    revenue_yoy: str | None = Field(default=None, alias="revenueYoY")
    eps: str | None = None
    eps_expected: str | None = Field(default=None, alias="epsExpected")
    eps_beat_miss: str | None = Field(default=None, alias="epsBeatMiss")
    eps_yoy: str | None = Field(default=None, alias="epsYoY")
    guidance: str | None = None
    guidance_notes: str | None = Field(default=None, alias="guidanceNotes")
    stock_reaction: str | None = Field(default=None, alias="stockReaction")
    analyst_reaction: str | None = Field(default=None, alias="analystReaction")
    summary: str | None = None
    headlines: list[str] = Field(default_factory=list, alias="keyHighlights")

    @field_validator(
        "status",
        "revenue",
        "revenue_expected",
        "revenue_beat_miss",
        "revenue_yoy",
        "eps",
        "eps_expected",
        "eps_beat_miss",
        "eps_yoy",
        "guidance",
        "guidance_notes",
        "stock_reaction",
        "analyst_reaction",
        "summary",
        mode="before",
    )
    @classmethod
    def clean_scalar(cls, v: Any) -> str | None:
        return _clean(v)

    @field_validator("headlines", mode="before")
    @classmethod
    def clean_headlines(cls, v: Any) -> list[str]:
        if v is None:
            return []
        if isinstance(v, str):
            v = [v]
        return [text for item in v if (text := _clean(item))]
