"""EarnPulse: live earnings polling with real-time event streaming."""

__version__ = "0.1.0"
