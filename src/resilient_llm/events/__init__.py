"""Side-channel notifications for resilient-llm."""

from resilient_llm.events.bus import EventBus

__all__ = ["EventBus"]
