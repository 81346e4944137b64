"""Session event package."""

from spendwise.events.bus import EventBus, EventHandler

__all__ = ["EventBus", "EventHandler"]
