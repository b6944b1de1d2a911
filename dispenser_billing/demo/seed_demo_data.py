# dispenser_billing/demo/seed_demo_data.py

from datetime import datetime, timezone

from dispenser_billing.core.registry import DispenserRegistry
from dispenser_billing.storage.models import Dispenser, TapEvent, TapStatus
from dispenser_billing.storage.repository import DispenserRepository

DEMO_FLOW_VOLUME = 0.064

# (opened, closed) pairs on 2022-01-01; the last tap is still running
DEMO_USAGES = [
    ((2, 0, 0), (2, 0, 50)),
    ((2, 50, 58), (2, 51, 20)),
    ((13, 50, 58), None),
]


def _at(hms):
    hour, minute, second = hms
    return datetime(2022, 1, 1, hour, minute, second, tzinfo=timezone.utc)


def seed_demo_data(repository: DispenserRepository) -> Dispenser:
    """Register a demo dispenser and record its historical usages directly."""
    dispenser = DispenserRegistry(repository).register(DEMO_FLOW_VOLUME)
    for opened, closed in DEMO_USAGES:
        event = TapEvent(
            dispenser_id=dispenser.id,
            status=TapStatus.OPEN if closed is None else TapStatus.CLOSED,
            start_time=_at(opened),
            end_time=_at(closed) if closed is not None else None,
            flow_volume_snapshot=dispenser.flow_volume,
        )
        repository.append_event(event)
    return dispenser


if __name__ == "__main__":
    from dispenser_billing.storage.repository import SQLiteDispenserRepository

    demo = seed_demo_data(SQLiteDispenserRepository())
    print(f"Demo dispenser {demo.id} inserted")
