"""Pytest fixtures and configuration."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import pytest

from earnpulse.live.models import EarningsStatus, FiscalPeriod, Snapshot

FIXED_NOW = datetime(2026, 10, 17, 14, 30, tzinfo=UTC)


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip integration tests by default unless -m integration is specified."""
    # Check if user explicitly requested integration tests
    markexpr = config.getoption("-m", default="")
    if "integration" in markexpr:
        # User wants integration tests, don't skip
        return

    # Skip integration tests by default
    skip_integration = pytest.mark.skip(reason="Integration test - run with: pytest -m integration")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


def _make_snapshot(**overrides: Any) -> Snapshot:
    defaults: dict[str, Any] = {
        "subject": "Acme",
        "period": FiscalPeriod(quarter="Q3", fiscal_year="FY2026"),
        "status": EarningsStatus.released,
        "fetched_at": FIXED_NOW,
        "revenue": "$9.44B",
        "eps": "$2.41",
    }
    defaults.update(overrides)
    return Snapshot(**defaults)


class FakeSource:
    """Scriptable EarningsSource double.

    Each fetch consumes the next scripted result; the last one repeats once
    the script runs out. A result can be a Snapshot, an exception to raise,
    or an async callable taking the subject. ``gate`` holds every fetch until
    it is set. Concurrent calls are counted in ``in_flight``/``max_in_flight``.
    """

    def __init__(self) -> None:
        self.results: list[Any] = []
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.delay = 0.0
        self.gate: asyncio.Event | None = None
        self.closed = False

    def script(self, *results: Any) -> None:
        self.results.extend(results)

    def _next_result(self) -> Any:
        if not self.results:
            return None
        if len(self.results) > 1:
            return self.results.pop(0)
        return self.results[0]

    async def fetch(self, subject: str) -> Snapshot:
        self.calls.append(subject)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.delay:
                await asyncio.sleep(self.delay)

            result = self._next_result()
            if result is None:
                return _make_snapshot(subject=subject)
            if isinstance(result, BaseException):
                raise result
            if callable(result):
                return await result(subject)
            return result
        finally:
            self.in_flight -= 1

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def make_snapshot() -> Callable[..., Snapshot]:
    """Build a Snapshot for "Acme" (released, Q3 FY2026) with overrides."""
    return _make_snapshot


@pytest.fixture
def fake_source() -> FakeSource:
    return FakeSource()
