"""Operator-facing tracker status."""

import threading
from datetime import datetime
from typing import List, Optional

from .models import PositionFix


class TrackerStatus:
    """
    Latest known state of the search team, as shown to the operator.

    Updated from the publish worker and from channel callbacks, read from
    the main loop.
    """

    def __init__(self, team_number: int, dose_rate: Optional[float] = None):
        self.team_number = team_number
        self._lock = threading.Lock()
        self._coordinates = "Lat: -, Lon: -"
        self._dose_rate = dose_rate
        self._last_update: Optional[datetime] = None
        self._connected = False

    def record_fix(self, fix: PositionFix, dose_rate: float) -> None:
        """Store the coordinates and dose rate of the latest fix."""
        with self._lock:
            self._coordinates = str(fix)
            self._dose_rate = dose_rate
            self._last_update = datetime.now()

    def set_connected(self, connected: bool) -> None:
        with self._lock:
            self._connected = connected

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def coordinates(self) -> str:
        return self._coordinates

    def render(self) -> List[str]:
        """
        Build the status summary lines.

        Returns:
            Lines with team, dose rate, coordinates, last update and
            server connection
        """
        with self._lock:
            dose = f"{self._dose_rate:.3f} uSv/h" if self._dose_rate is not None else "-"
            ts = (
                self._last_update.strftime("%Y-%m-%d %H:%M:%S")
                if self._last_update
                else "-"
            )
            conn = "Ja" if self._connected else "Nein!"
            return [
                f"Strahlen-Spürtrupp: {self.team_number}",
                f"Dosisleistung: {dose}",
                f"GPS Koordinaten: {self._coordinates}",
                f"Letzter Zeitpunkt: {ts}",
                f"Verbunden mit Server: {conn}",
            ]

    def __str__(self) -> str:
        return " | ".join(self.render())
