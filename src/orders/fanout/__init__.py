"""Fan-out channel registry — realtime push and email dispatch adapters.

Provides singleton access to channel adapters. Fake adapters are used by
default; real adapters (websocket hub, SMTP relay) are plugged in with
set_channel() at application start.
"""

REALTIME = "realtime"
EMAIL = "email"

_channel_instances: dict[str, object] = {}


def get_channel(channel_type: str):
    """Return the configured channel adapter (singleton per channel type).

    Args:
        channel_type: "realtime" or "email"
    """
    if channel_type not in _channel_instances:
        if channel_type == REALTIME:
            from orders.fanout.fake_realtime import FakeRealtimeAdapter

            _channel_instances[channel_type] = FakeRealtimeAdapter()
        elif channel_type == EMAIL:
            from orders.fanout.fake_email import FakeEmailAdapter

            _channel_instances[channel_type] = FakeEmailAdapter()
        else:
            raise ValueError(f"Unknown channel type: {channel_type}")

    return _channel_instances[channel_type]


def set_channel(channel_type: str, adapter) -> None:
    _channel_instances[channel_type] = adapter


def reset_channels():
    """Reset all channel singletons (useful for testing)."""
    _channel_instances.clear()
