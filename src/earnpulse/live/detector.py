"""Material change detection between consecutive snapshots."""

from __future__ import annotations

from earnpulse.live.models import Snapshot

# Fields whose change is worth notifying subscribers about. Everything else
# (headline order, expectations, reactions) churns on every poll.
TRACKED_FIELDS: tuple[str, ...] = ("status", "revenue", "eps", "summary")


def changed_fields(previous: Snapshot | None, current: Snapshot) -> list[str]:
    """List tracked fields that differ between two snapshots."""
    if previous is None:
        return list(TRACKED_FIELDS)
    return [
        name for name in TRACKED_FIELDS if getattr(previous, name) != getattr(current, name)
    ]


def has_material_change(previous: Snapshot | None, current: Snapshot) -> bool:
    """Return True if ``current`` differs materially from ``previous``.

    A missing previous snapshot always counts as a change.
    """
    return bool(changed_fields(previous, current))
