"""Measurement codes and physical-unit decoding of validated frames."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum

from .framing import FrameFields

CO2_MAX_PPM = 3000


class MeasurementKind(IntEnum):
    """Frame codes the sensor emits for each measurement."""

    HUMIDITY = 0x41
    TEMPERATURE = 0x42
    CARBON_DIOXIDE = 0x50


class Rejection(Enum):
    """Outcomes of a decode that produce no measurement."""

    UNRECOGNIZED = "unrecognized"
    OUT_OF_RANGE = "out_of_range"


@dataclass(frozen=True)
class Measurement:
    """A decoded reading.

    ``value`` is degrees Celsius for temperature, integer ppm for CO2 and
    percent RH for humidity.
    """

    kind: MeasurementKind
    value: float | int


def decode_temperature(word: int) -> float:
    """Convert a raw temperature word (1/16 Kelvin) to Celsius."""
    return word * 0.0625 - 273.15


def decode_measurement(fields: FrameFields) -> Measurement | Rejection:
    """Map a validated frame to a measurement.

    Temperature is always accepted. CO2 values above ``CO2_MAX_PPM`` are
    spurious readings the sensor emits while warming up and are
    rejected. Unknown codes are reported as ``Rejection.UNRECOGNIZED``.
    """
    try:
        kind = MeasurementKind(fields.code)
    except ValueError:
        return Rejection.UNRECOGNIZED

    if kind is MeasurementKind.TEMPERATURE:
        return Measurement(kind, decode_temperature(fields.value))

    if kind is MeasurementKind.CARBON_DIOXIDE:
        if fields.value > CO2_MAX_PPM:
            return Rejection.OUT_OF_RANGE
        return Measurement(kind, int(fields.value))

    return Measurement(kind, fields.value / 100)
