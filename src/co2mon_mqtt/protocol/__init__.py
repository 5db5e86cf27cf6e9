"""Protocol layer: frame validation, deobfuscation, measurement decoding and handshake."""

from .framing import FrameFields, InvalidFrame, validate_frame, deobfuscate
from .measurements import MeasurementKind, Measurement, Rejection, decode_measurement
from .handshake import MagicTable, negotiate
