"""Connection helpers shared by stream handlers."""

from .reconnect_handler import ReconnectConfig, ReconnectingMixin, ReconnectState

__all__ = [
    "ReconnectConfig",
    "ReconnectingMixin",
    "ReconnectState",
]
