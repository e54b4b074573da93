"""Telemetry payload builder."""

import json
import math
import time
from typing import Callable

from .models import PositionFix, TelemetryMessage


def build_message(
    fix: PositionFix,
    dose_rate: float,
    clock: Callable[[], float] = time.time,
) -> TelemetryMessage:
    """
    Combine a position fix and a dose-rate reading into a telemetry message.

    The timestamp is taken from ``clock`` at build time, not from the fix.

    Args:
        fix: Position fix from the location source
        dose_rate: Dose rate in µSv/h
        clock: Returns the current time in seconds since the epoch

    Returns:
        TelemetryMessage ready for serialization

    Raises:
        ValueError: If the dose rate is negative or not finite
    """
    if not math.isfinite(dose_rate) or dose_rate < 0:
        raise ValueError(f"Dose rate must be non-negative, got {dose_rate}")

    return TelemetryMessage(
        latitude=float(fix.latitude),
        longitude=float(fix.longitude),
        timestamp_millis=int(clock() * 1000),
        dose_rate=float(dose_rate),
    )


def build_payload(
    fix: PositionFix,
    dose_rate: float,
    clock: Callable[[], float] = time.time,
) -> bytes:
    """
    Serialize a fix and dose rate to the wire format.

    Returns:
        UTF-8 encoded compact JSON object with the fields latitude,
        longitude, timestamp and dose_rate
    """
    message = build_message(fix, dose_rate, clock=clock)
    # float repr is round-trip exact, so GPS precision survives
    return json.dumps(message.to_dict(), separators=(",", ":")).encode("utf-8")
