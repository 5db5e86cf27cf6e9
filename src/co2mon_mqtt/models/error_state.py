"""Per-channel error deduplication.

A failing device is polled about once per second; without this every
poll would republish the same error. The tracker only yields a
notification when a channel's error condition changes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .channel import Channel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationEvent:
    """An error announcement, or a recovery when ``error`` is None."""

    channel: Channel
    error: str | None

    @property
    def cleared(self) -> bool:
        return self.error is None


class ErrorStateTracker:
    """Remembers the last error reported on each channel."""

    def __init__(self) -> None:
        self._last_error: dict[Channel, str | None] = {}

    def last_error(self, channel: Channel) -> str | None:
        return self._last_error.get(channel)

    def report(self, channel: Channel, error: str | None) -> NotificationEvent | None:
        """Record the current condition of ``channel``.

        Args:
            channel: The channel being reported on.
            error: Error text, or None when the channel just succeeded.

        Returns:
            A ``NotificationEvent`` on a state transition, otherwise None.
        """
        previous = self._last_error.get(channel)

        if error is not None:
            if error == previous:
                logger.debug("Suppressing repeated %s error %r", channel.value, error)
                return None
            self._last_error[channel] = error
            return NotificationEvent(channel, error)

        if previous:
            self._last_error[channel] = None
            return NotificationEvent(channel, None)
        return None
