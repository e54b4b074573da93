"""Dose-rate sources feeding the telemetry payload."""

import logging
import math
from typing import Protocol


logger = logging.getLogger(__name__)


class DoseRateSource(Protocol):
    """Anything that can report the current dose rate in µSv/h."""

    def read(self) -> float:
        ...


class ConstantDoseRate:
    """Reports a fixed, configured dose rate."""

    def __init__(self, value: float = 0.12):
        if not math.isfinite(value) or value < 0:
            raise ValueError(f"Dose rate must be non-negative, got {value}")
        self.value = float(value)
        logger.info(f"Using constant dose rate of {self.value} µSv/h")

    def read(self) -> float:
        return self.value

    def __str__(self) -> str:
        return f"ConstantDoseRate({self.value} µSv/h)"
