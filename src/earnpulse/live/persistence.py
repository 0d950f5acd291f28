"""Bridge from live snapshots to the durable store."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from earnpulse.core.exceptions import PersistenceError
from earnpulse.core.logging import get_logger

if TYPE_CHECKING:
    from earnpulse.live.models import Snapshot
    from earnpulse.providers.base import SnapshotStore

logger = get_logger(__name__)


class PersistenceBridge:
    """Upserts snapshots into a SnapshotStore keyed by (subject, period).

    Snapshots that carry no usable signal (unknown status, every metric
    null) are skipped so the store never fills with empty history.
    """

    def __init__(self, store: SnapshotStore) -> None:
        self._store = store

    async def upsert(self, snapshot: Snapshot) -> dict[str, Any] | None:
        """Persist a snapshot.

        Returns:
            The stored record, or None if the snapshot was skipped

        Raises:
            PersistenceError: If the store rejects the write
        """
        if not snapshot.has_signal:
            logger.debug(
                "Skipping persistence, snapshot has no signal",
                subject=snapshot.subject,
                period=str(snapshot.period),
            )
            return None

        try:
            record = await self._store.upsert_earnings_snapshot(snapshot)
        except Exception as e:
            raise PersistenceError(
                f"Failed to persist {snapshot.subject} {snapshot.period}: {e}"
            ) from e

        logger.info(
            "Snapshot persisted",
            subject=snapshot.subject,
            period=str(snapshot.period),
            status=snapshot.status.value,
        )
        return record
