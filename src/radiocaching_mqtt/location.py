"""Location sources delivering GPS position fixes.

A location source is an iterable of PositionFix values: lazy, usually
infinite, and consumable only once. The serial source reads NMEA 0183
sentences from a GPS receiver (RMC and GGA are used for positions).
"""

import logging
import os
import time
from functools import reduce
from typing import Callable, Iterator, List, Optional, Sequence, Tuple

import serial

from .models import LocationConfig, PositionFix


logger = logging.getLogger(__name__)


class LocationSourceError(Exception):
    """Base exception for location source errors."""

    pass


class GPSConnectionError(LocationSourceError):
    """Raised when the GPS receiver cannot be opened or read."""

    pass


def nmea_checksum(body: str) -> str:
    """Compute the NMEA checksum (XOR of all characters) as two hex digits."""
    return f"{reduce(lambda acc, ch: acc ^ ord(ch), body, 0):02X}"


def _parse_coordinate(value: str, hemisphere: str) -> float:
    # NMEA encodes (d)ddmm.mmmm, minutes are the two digits before the dot
    split = value.index(".") - 2 if "." in value else len(value) - 2
    degrees = int(value[:split])
    minutes = float(value[split:])
    result = degrees + minutes / 60.0
    if hemisphere in ("S", "W"):
        result = -result
    return result


def parse_nmea_sentence(line: str) -> Optional[Tuple[float, float]]:
    """
    Extract a position from an NMEA sentence.

    Only RMC sentences with status 'A' and GGA sentences with a fix
    quality above zero carry a usable position.

    Args:
        line: Raw NMEA sentence, e.g. '$GPRMC,...*6A'

    Returns:
        (latitude, longitude) in decimal degrees, or None if the sentence
        has no valid position or fails the checksum
    """
    line = line.strip()
    if not line.startswith("$"):
        return None

    body = line[1:]
    if "*" in body:
        body, checksum = body.split("*", 1)
        if nmea_checksum(body) != checksum.strip().upper():
            logger.debug(f"Discarding NMEA sentence with bad checksum: {line}")
            return None

    fields = body.split(",")
    sentence_type = fields[0][-3:]

    try:
        if sentence_type == "RMC" and len(fields) >= 7:
            if fields[2] != "A":
                return None
            lat_raw, lat_hem, lon_raw, lon_hem = fields[3:7]
        elif sentence_type == "GGA" and len(fields) >= 7:
            if not fields[6] or int(fields[6]) == 0:
                return None
            lat_raw, lat_hem, lon_raw, lon_hem = fields[2:6]
        else:
            return None

        if not lat_raw or not lon_raw:
            return None

        latitude = _parse_coordinate(lat_raw, lat_hem)
        longitude = _parse_coordinate(lon_raw, lon_hem)
    except ValueError:
        logger.debug(f"Discarding malformed NMEA sentence: {line}")
        return None

    if not -90.0 <= latitude <= 90.0 or not -180.0 <= longitude <= 180.0:
        return None

    return latitude, longitude


def _now_millis() -> int:
    return int(time.time() * 1000)


class SerialGPSSource:
    """Position fixes from an NMEA GPS receiver on a serial port."""

    def __init__(
        self,
        config: LocationConfig,
        clock: Callable[[], int] = _now_millis,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the GPS source.

        Args:
            config: Location configuration including port, baudrate,
                timeout and the minimum interval between fixes
            clock: Returns the capture time in epoch milliseconds
            monotonic: Monotonic clock used for the fix interval
        """
        self.config = config
        self.serial: Optional[serial.Serial] = None
        self._clock = clock
        self._monotonic = monotonic
        self._started = False
        self._stop_requested = False

    def permission_granted(self) -> bool:
        """Check whether the serial port exists and may be opened."""
        port = self.config.port
        return os.path.exists(port) and os.access(port, os.R_OK | os.W_OK)

    def connect(self) -> None:
        """
        Open the serial port.

        Raises:
            GPSConnectionError: If the port cannot be opened
        """
        try:
            logger.info(
                f"Opening GPS receiver on {self.config.port} at {self.config.baudrate} baud"
            )
            self.serial = serial.Serial(
                port=self.config.port,
                baudrate=self.config.baudrate,
                timeout=self.config.timeout,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
            )
            self.serial.reset_input_buffer()
        except serial.SerialException as e:
            raise GPSConnectionError(f"Failed to open GPS receiver: {e}") from e

    def disconnect(self) -> None:
        """Close the serial port."""
        if self.serial and self.serial.is_open:
            logger.info("Closing GPS receiver")
            self.serial.close()
        self.serial = None

    def is_connected(self) -> bool:
        return self.serial is not None and self.serial.is_open

    def stop(self) -> None:
        """Make the fix stream end after the current read."""
        self._stop_requested = True

    def _read_line(self) -> str:
        try:
            raw = self.serial.readline()
        except serial.SerialException as e:
            raise GPSConnectionError(f"Failed to read from GPS receiver: {e}") from e
        return raw.decode("ascii", errors="ignore")

    def fixes(self) -> Iterator[PositionFix]:
        """
        Yield position fixes, at most one per configured interval.

        Raises:
            LocationSourceError: If the stream was already consumed
            GPSConnectionError: If the receiver cannot be read
        """
        if self._started:
            raise LocationSourceError("Location stream can only be consumed once")
        self._started = True

        if not self.is_connected():
            self.connect()

        last_emit: Optional[float] = None
        while not self._stop_requested:
            line = self._read_line()
            if not line:
                continue

            position = parse_nmea_sentence(line)
            if position is None:
                continue

            now = self._monotonic()
            if last_emit is not None and now - last_emit < self.config.interval:
                continue
            last_emit = now

            fix = PositionFix(
                latitude=position[0],
                longitude=position[1],
                captured_at_millis=self._clock(),
            )
            logger.debug(f"GPS fix: {fix}")
            yield fix

    def __iter__(self) -> Iterator[PositionFix]:
        return self.fixes()

    def __enter__(self):
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.disconnect()
        return False


class StaticLocationSource:
    """Replays a fixed list of coordinates, for field tests without GPS."""

    def __init__(
        self,
        positions: Sequence[Tuple[float, float]],
        interval: float = 10.0,
        repeat: bool = True,
        clock: Callable[[], int] = _now_millis,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if not positions:
            raise ValueError("At least one position is required")
        self.positions: List[Tuple[float, float]] = [
            (float(lat), float(lon)) for lat, lon in positions
        ]
        self.interval = interval
        self.repeat = repeat
        self._clock = clock
        self._sleep = sleep
        self._started = False
        self._stop_requested = False

    def permission_granted(self) -> bool:
        return True

    def stop(self) -> None:
        self._stop_requested = True

    def fixes(self) -> Iterator[PositionFix]:
        if self._started:
            raise LocationSourceError("Location stream can only be consumed once")
        self._started = True

        first = True
        while not self._stop_requested:
            for latitude, longitude in self.positions:
                if not first and self.interval:
                    self._sleep(self.interval)
                first = False
                if self._stop_requested:
                    return
                yield PositionFix(latitude, longitude, self._clock())
            if not self.repeat:
                return

    def __iter__(self) -> Iterator[PositionFix]:
        return self.fixes()

    def disconnect(self) -> None:
        pass


def create_location_source(config: LocationConfig):
    """
    Create the location source described by the configuration.

    Args:
        config: Location configuration

    Returns:
        SerialGPSSource or StaticLocationSource
    """
    if config.source == "static":
        return StaticLocationSource(config.static_positions, interval=config.interval)
    return SerialGPSSource(config)
