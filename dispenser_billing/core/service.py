"""
Dispenser service facade.

Wires registry, ledger and billing together and renders their results in
the wire shapes clients already consume. A transport (HTTP handler, CLI,
queue consumer) only needs to pass request bodies in and serialize the
returned dictionaries; ``http_status_for`` maps errors to status codes.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Dict, List, Optional

from .billing import BillingService, DispenserSummary, SpendingDetail, UsageRecord
from .clock import Clock, format_timestamp, utc_now
from .errors import BillingError, ValidationError
from .ledger import TapLedger
from .pricing import format_money
from .registry import DispenserRegistry, new_dispenser_id
from dispenser_billing.config.loader import BillingConfig
from dispenser_billing.storage.repository import DispenserRepository, create_repository

STATUS_OPEN = "open"
STATUS_CLOSE = "close"


def http_status_for(error: Exception) -> int:
    """Status code a transport should answer with for an error."""
    if isinstance(error, BillingError):
        return error.http_status
    return 500


def _format_seconds(seconds: Decimal) -> str:
    return f"{seconds.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP):.2f} seconds"


@dataclass
class DispenserService:
    """Entry point for the four client operations."""
    registry: DispenserRegistry
    ledger: TapLedger
    billing: BillingService

    @property
    def pricing(self):
        return self.ledger.pricing

    def create_dispenser(self, payload: Optional[Dict[str, Any]]) -> Dict[str, str]:
        """Register a dispenser from a ``{"flowVolume": number}`` body."""
        if not isinstance(payload, dict) or payload.get("flowVolume") is None:
            raise ValidationError('Invalid request. The "flowVolume" property is missing.')
        dispenser = self.registry.register(payload["flowVolume"])
        return {"dispenser_id": dispenser.id}

    def update_status(self, dispenser_id: str, payload: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Open or close a tap from a ``{"status": "open"|"close"}`` body.

        The dispenser is looked up before the status value is checked, so an
        unknown id always answers 404.
        """
        self.registry.require(dispenser_id)
        status = payload.get("status") if isinstance(payload, dict) else None
        if status == STATUS_OPEN:
            event = self.ledger.open(dispenser_id)
            return {"status": "open", "start_time": format_timestamp(event.start_time)}
        if status == STATUS_CLOSE:
            result = self.ledger.close(dispenser_id)
            return {
                "status": "closed",
                "end_time": format_timestamp(result.event.end_time),
                "revenue": format_money(result.revenue),
            }
        raise ValidationError('Invalid status. Use "open" or "close".')

    def summary(self) -> List[Dict[str, Any]]:
        return [self._render_summary(summary) for summary in self.billing.fleet_summary()]

    def spending(self, dispenser_id: str) -> Dict[str, Any]:
        return self._render_spending(self.billing.spending_detail(dispenser_id))

    def _render_summary(self, summary: DispenserSummary) -> Dict[str, Any]:
        return {
            "dispenser_id": summary.dispenser_id,
            "usage_count": summary.usage_count,
            "total_duration": _format_seconds(summary.total_duration_seconds),
            "total_revenue": self.pricing.with_symbol(summary.total_revenue),
        }

    # Spending amounts stay plain decimal strings; only the summary revenue
    # carries the currency symbol, matching what existing clients parse.
    def _render_spending(self, detail: SpendingDetail) -> Dict[str, Any]:
        return {
            "amount": format_money(detail.amount),
            "usages": [self._render_usage(usage) for usage in detail.usages],
        }

    @staticmethod
    def _render_usage(usage: UsageRecord) -> Dict[str, Any]:
        return {
            "opened_at": format_timestamp(usage.opened_at) if usage.opened_at else None,
            "closed_at": format_timestamp(usage.closed_at) if usage.closed_at else None,
            "flow_volume": usage.flow_volume,
            "total_spent": format_money(usage.total_spent),
        }


def build_service(
    config: Optional[BillingConfig] = None,
    repository: Optional[DispenserRepository] = None,
    clock: Clock = utc_now,
    id_factory: Callable[[], str] = new_dispenser_id,
) -> DispenserService:
    """Assemble a service with its own registry, ledger and billing.

    Args:
        config: Application configuration (defaults when None)
        repository: Storage to use instead of the configured backend
        clock: Time source shared by ledger and billing
        id_factory: Dispenser id generator

    Returns:
        A DispenserService that shares no state with other instances
    """
    config = config or BillingConfig()
    if repository is None:
        repository = create_repository(
            backend=config.storage.backend.value,
            db_path=config.storage.db_path,
        )
    registry = DispenserRegistry(repository, id_factory=id_factory)
    ledger = TapLedger(registry, pricing=config.pricing, clock=clock)
    return DispenserService(registry=registry, ledger=ledger, billing=BillingService(ledger))
