"""Data models for channels and their error state."""

from .channel import Channel, channel_for
from .error_state import ErrorStateTracker, NotificationEvent
