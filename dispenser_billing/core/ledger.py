"""
Tap event ledger.

Owns the append-only history of open/close events per dispenser and enforces
the tap state machine:

    IDLE    --open-->  RUNNING
    RUNNING --close--> IDLE
    RUNNING --open-->  rejected (ConflictError)
    IDLE    --close--> rejected (ConflictError)

The state is derived from the most recent event and never stored. Open and
close for one dispenser run under a per-dispenser lock so at most one OPEN
event can exist for it.
"""

import logging
import threading
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, List

from .clock import Clock, elapsed_seconds, utc_now
from .errors import ConflictError
from .pricing import DEFAULT_PRICING, PricingPolicy
from .registry import DispenserRegistry
from dispenser_billing.storage.models import TapEvent, TapStatus

logger = logging.getLogger(__name__)


class DispenserState(Enum):
    """Derived tap state of a dispenser."""
    IDLE = "idle"
    RUNNING = "running"


@dataclass(frozen=True)
class CloseResult:
    """Outcome of a successful close transition."""
    event: TapEvent
    duration_seconds: Decimal
    revenue: Decimal


class TapLedger:
    """Applies open/close transitions and records tap events."""

    def __init__(
        self,
        registry: DispenserRegistry,
        pricing: PricingPolicy = DEFAULT_PRICING,
        clock: Clock = utc_now,
    ):
        self.registry = registry
        self.repository = registry.repository
        self.pricing = pricing
        self.clock = clock
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, dispenser_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(dispenser_id)
            if lock is None:
                lock = self._locks[dispenser_id] = threading.Lock()
            return lock

    def state(self, dispenser_id: str) -> DispenserState:
        """Return the derived state of a known dispenser.

        Raises:
            NotFoundError: If the dispenser is unknown
        """
        self.registry.require(dispenser_id)
        if self.repository.find_open_event(dispenser_id) is not None:
            return DispenserState.RUNNING
        return DispenserState.IDLE

    def events_for(self, dispenser_id: str) -> List[TapEvent]:
        return self.repository.list_events(dispenser_id)

    def open(self, dispenser_id: str) -> TapEvent:
        """Open the tap of an IDLE dispenser.

        Returns:
            The new OPEN event, carrying the start time and flow volume snapshot

        Raises:
            NotFoundError: If the dispenser is unknown
            ConflictError: If the tap is already open
        """
        dispenser = self.registry.require(dispenser_id)
        with self._lock_for(dispenser_id):
            if self.repository.find_open_event(dispenser_id) is not None:
                logger.warning(
                    "Rejected open on dispenser %s: tap already open", dispenser_id,
                    extra={"dispenser_id": dispenser_id},
                )
                raise ConflictError("Tap already open")
            event = self.repository.append_event(TapEvent(
                dispenser_id=dispenser_id,
                status=TapStatus.OPEN,
                start_time=self.clock(),
                flow_volume_snapshot=dispenser.flow_volume,
            ))
        logger.info(
            "Opened tap on dispenser %s at %s", dispenser_id, event.start_time,
            extra={"dispenser_id": dispenser_id, "event_id": event.id},
        )
        return event

    def close(self, dispenser_id: str) -> CloseResult:
        """Close the open tap of a RUNNING dispenser and price the usage.

        Returns:
            CloseResult with the CLOSED event, its duration and revenue

        Raises:
            NotFoundError: If the dispenser is unknown
            ConflictError: If no open tap event exists
        """
        self.registry.require(dispenser_id)
        with self._lock_for(dispenser_id):
            open_event = self.repository.find_open_event(dispenser_id)
            if open_event is None:
                logger.warning(
                    "Rejected close on dispenser %s: no open tap event", dispenser_id,
                    extra={"dispenser_id": dispenser_id},
                )
                raise ConflictError("No open tap event found")
            end_time = self.clock()
            if open_event.start_time is not None and end_time < open_event.start_time:
                # A clock that runs backwards must not produce negative usage.
                end_time = open_event.start_time
            closed = open_event.closed_at(end_time)
            duration = (
                elapsed_seconds(closed.start_time, end_time)
                if closed.start_time is not None else Decimal("0")
            )
            revenue = self.pricing.calculate_revenue(closed.flow_volume_snapshot, duration)
            self.repository.update_event(closed)
        logger.info(
            "Closed tap on dispenser %s after %ss (revenue=%s)", dispenser_id, duration, revenue,
            extra={"dispenser_id": dispenser_id, "event_id": closed.id},
        )
        return CloseResult(event=closed, duration_seconds=duration, revenue=revenue)
