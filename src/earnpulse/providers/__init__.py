"""Live earnings provider abstractions.

## Provider Types

- **EarningsSource**: fetches a best-effort structured Snapshot for a subject
- **SnapshotStore**: idempotent durable storage keyed by (subject, period)

## Usage

```python
from earnpulse.providers import create_earnings_source

source = create_earnings_source(settings)
snapshot = await source.fetch("Acme")
await source.close()
```
"""

from earnpulse.providers.base import EarningsSource, SnapshotStore
from earnpulse.providers.factory import create_earnings_source

__all__ = [
    "EarningsSource",
    "SnapshotStore",
    "create_earnings_source",
]
