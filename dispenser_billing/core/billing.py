"""
Billing and usage aggregation.

Read-only views over the registry and ledger. Nothing in this module mutates
state; open taps are billed up to the current instant.

Rounding differs between the two views:
1. Summaries round the exact total of all closed usages once
2. Spending detail rounds each usage, then sums the rounded values
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from .clock import Clock, elapsed_seconds
from .ledger import TapLedger
from .pricing import round_money, sum_money
from dispenser_billing.storage.models import TapEvent, TapStatus


@dataclass(frozen=True)
class DispenserSummary:
    """Closed-usage totals for one dispenser."""
    dispenser_id: str
    usage_count: int
    total_duration_seconds: Decimal
    total_revenue: Decimal


@dataclass(frozen=True)
class UsageRecord:
    """Billing of a single tap event; closed_at is None while the tap is open."""
    opened_at: Optional[datetime]
    closed_at: Optional[datetime]
    flow_volume: float
    total_spent: Decimal


@dataclass
class SpendingDetail:
    """Every usage of a dispenser and the sum of their rounded spend."""
    dispenser_id: str
    amount: Decimal
    usages: List[UsageRecord] = field(default_factory=list)


class BillingService:
    """Computes summaries and spending detail from the ledger."""

    def __init__(self, ledger: TapLedger, clock: Optional[Clock] = None):
        self.ledger = ledger
        self.registry = ledger.registry
        self.pricing = ledger.pricing
        self.clock = clock or ledger.clock

    def price_event(self, event: TapEvent, now: datetime) -> UsageRecord:
        """Bill one event; an open event is billed up to ``now``."""
        if event.start_time is None:
            return UsageRecord(
                opened_at=None,
                closed_at=None,
                flow_volume=event.flow_volume_snapshot,
                total_spent=round_money(Decimal("0")),
            )
        end_time = event.end_time if event.end_time is not None else now
        duration = max(elapsed_seconds(event.start_time, end_time), Decimal("0"))
        return UsageRecord(
            opened_at=event.start_time,
            closed_at=event.end_time,
            flow_volume=event.flow_volume_snapshot,
            total_spent=self.pricing.calculate_revenue(event.flow_volume_snapshot, duration),
        )

    def per_dispenser_summary(self, dispenser_id: str) -> DispenserSummary:
        """Summarize the CLOSED usages of one dispenser.

        Open events are excluded from the count, the duration and the revenue.
        """
        usage_count = 0
        total_duration = Decimal("0")
        exact_revenue = Decimal("0")
        for event in self.ledger.events_for(dispenser_id):
            if event.status is not TapStatus.CLOSED or event.start_time is None:
                continue
            duration = elapsed_seconds(event.start_time, event.end_time)
            usage_count += 1
            total_duration += duration
            exact_revenue += self.pricing.unrounded_cost(event.flow_volume_snapshot, duration)
        return DispenserSummary(
            dispenser_id=dispenser_id,
            usage_count=usage_count,
            total_duration_seconds=total_duration,
            total_revenue=round_money(exact_revenue),
        )

    def fleet_summary(self) -> List[DispenserSummary]:
        """Summaries for every registered dispenser, in registration order."""
        return [
            self.per_dispenser_summary(dispenser.id)
            for dispenser in self.registry.list_all()
        ]

    def spending_detail(self, dispenser_id: str) -> SpendingDetail:
        """Bill every usage of a dispenser in ledger order.

        Raises:
            NotFoundError: If the dispenser is unknown
        """
        self.registry.require(dispenser_id)
        now = self.clock()
        usages = [self.price_event(event, now) for event in self.ledger.events_for(dispenser_id)]
        return SpendingDetail(
            dispenser_id=dispenser_id,
            amount=sum_money(usage.total_spent for usage in usages),
            usages=usages,
        )
