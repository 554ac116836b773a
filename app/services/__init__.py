"""
Background services for the realtime layer.

This layer handles:
- Periodic cleanup of stale ephemeral signals (editing / dragging / typing)
"""

from .signal_monitor import SignalMonitor

__all__ = [
    "SignalMonitor"
]
