"""Custom exceptions for EarnPulse."""


class EarnPulseError(Exception):
    """Base exception for all EarnPulse errors."""

    def __init__(self, message: str, *args: object) -> None:
        self.message = message
        super().__init__(message, *args)


# Live engine errors
class LiveEngineError(EarnPulseError):
    """Base error for the live polling engine."""


class AdapterError(LiveEngineError):
    """Source fetch failed or timed out."""

    def __init__(self, message: str, subject: str | None = None) -> None:
        self.subject = subject
        super().__init__(message)


class InvalidIntervalError(LiveEngineError):
    """Polling interval is not a positive number of milliseconds."""


class PersistenceError(LiveEngineError):
    """Durable store upsert failed."""


# Storage errors
class StorageError(EarnPulseError):
    """Base error for storage layer."""


class DatabaseConnectionError(StorageError):
    """Failed to connect to database."""


class RedisConnectionError(StorageError):
    """Failed to connect to Redis."""
