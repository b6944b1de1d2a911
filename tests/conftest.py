"""Shared fixtures for the billing engine tests."""

from datetime import datetime, timezone

import pytest

from dispenser_billing.core.billing import BillingService
from dispenser_billing.core.clock import FixedClock
from dispenser_billing.core.ledger import TapLedger
from dispenser_billing.core.registry import DispenserRegistry
from dispenser_billing.storage.repository import InMemoryDispenserRepository


@pytest.fixture
def clock():
    """Clock frozen at 2022-01-01T02:00:00Z; advance it explicitly."""
    return FixedClock(datetime(2022, 1, 1, 2, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def repository():
    return InMemoryDispenserRepository()


@pytest.fixture
def registry(repository):
    return DispenserRegistry(repository)


@pytest.fixture
def ledger(registry, clock):
    return TapLedger(registry, clock=clock)


@pytest.fixture
def billing(ledger):
    return BillingService(ledger)
