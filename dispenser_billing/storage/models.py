"""
Data models for storage layer.

Defines dispenser and tap event entities.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Optional


class TapStatus(Enum):
    """Status of a single tap event."""
    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True)
class Dispenser:
    """A registered dispenser with a fixed flow rate (volume per second)."""
    id: str
    flow_volume: float


@dataclass(frozen=True)
class TapEvent:
    """One open-to-close usage session of a dispenser.

    Events are immutable values. Closing a tap produces a new CLOSED copy
    that replaces the OPEN one in the repository, so readers never observe
    a half-updated event.

    ``flow_volume_snapshot`` is the dispenser rate at the moment the tap was
    opened; billing always uses it instead of the live dispenser rate.
    """
    dispenser_id: str
    status: TapStatus
    start_time: Optional[datetime]
    flow_volume_snapshot: float
    end_time: Optional[datetime] = None
    id: Optional[int] = None

    @property
    def is_open(self) -> bool:
        return self.status is TapStatus.OPEN

    def closed_at(self, end_time: datetime) -> "TapEvent":
        """Return a CLOSED copy of this event ending at ``end_time``.

        Raises:
            ValueError: If the event is already closed or end_time precedes start_time
        """
        if not self.is_open:
            raise ValueError("tap event is already closed")
        if self.start_time is not None and end_time < self.start_time:
            raise ValueError("end_time must not be before start_time")
        return replace(self, status=TapStatus.CLOSED, end_time=end_time)
