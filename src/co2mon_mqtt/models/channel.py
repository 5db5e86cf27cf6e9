"""Published measurement channels."""

from __future__ import annotations

from enum import Enum

from ..protocol.measurements import MeasurementKind


class Channel(str, Enum):
    """A measurement stream with its own state and error topics."""

    TEMP = "temp"
    CO2 = "co2"


# Humidity is decoded but deliberately has no channel.
KIND_CHANNELS: dict[MeasurementKind, Channel] = {
    MeasurementKind.TEMPERATURE: Channel.TEMP,
    MeasurementKind.CARBON_DIOXIDE: Channel.CO2,
}


def channel_for(kind: MeasurementKind) -> Channel | None:
    """Return the channel a measurement kind is published on, if any."""
    return KIND_CHANNELS.get(kind)
