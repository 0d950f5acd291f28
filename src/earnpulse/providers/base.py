"""Abstract provider protocols for live earnings data.

Providers implementing these protocols can be swapped (Perplexity, a vendor
feed, a test double) without changing the polling engine.

Provider Types:
- EarningsSource: best-effort structured snapshot of a subject's earnings
- SnapshotStore: durable, idempotent storage of snapshots
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from earnpulse.live.models import Snapshot


@runtime_checkable
class EarningsSource(Protocol):
    """Protocol for fetching a live earnings snapshot.

    Implementations must be safe to call repeatedly, and concurrently for
    different subjects.
    """

    async def fetch(self, subject: str) -> Snapshot:
        """Fetch the current earnings snapshot for a subject.

        Args:
            subject: Company name or ticker (e.g., "Acme", "MSFT")

        Returns:
            Snapshot describing what is known right now

        Raises:
            AdapterError: If the upstream call fails
        """
        ...

    async def close(self) -> None:
        """Clean up resources."""
        ...


@runtime_checkable
class SnapshotStore(Protocol):
    """Protocol for durable snapshot storage keyed by (subject, period)."""

    async def upsert_earnings_snapshot(self, snapshot: Snapshot) -> dict[str, Any]:
        """Insert the snapshot or update the existing row for its key.

        Returns:
            The stored record
        """
        ...
