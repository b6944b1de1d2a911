"""
Tests for the service facade and its wire shapes.
"""
from decimal import Decimal

import pytest

from dispenser_billing.config.loader import BillingConfig
from dispenser_billing.core.errors import ConflictError, NotFoundError, ValidationError
from dispenser_billing.core.pricing import PricingPolicy
from dispenser_billing.core.service import build_service, http_status_for
from dispenser_billing.demo.seed_demo_data import seed_demo_data
from dispenser_billing.storage.repository import InMemoryDispenserRepository, SQLiteDispenserRepository


@pytest.fixture
def service(clock):
    return build_service(clock=clock)


class TestCreateDispenser:
    """Test dispenser registration payloads."""

    def test_returns_dispenser_id(self, service):
        body = service.create_dispenser({"flowVolume": 0.064})
        assert set(body) == {"dispenser_id"}
        assert service.registry.lookup(body["dispenser_id"]) is not None

    @pytest.mark.parametrize("payload", [None, {}, {"flowVolume": None}, "0.064"])
    def test_missing_flow_volume(self, service, payload):
        with pytest.raises(ValidationError) as excinfo:
            service.create_dispenser(payload)
        assert http_status_for(excinfo.value) == 400

    def test_non_positive_flow_volume(self, service):
        with pytest.raises(ValidationError):
            service.create_dispenser({"flowVolume": 0})

    def test_flow_volume_too_large_for_a_float(self, service):
        with pytest.raises(ValidationError, match="finite number") as excinfo:
            service.create_dispenser({"flowVolume": 10**400})
        assert http_status_for(excinfo.value) == 400
        assert service.summary() == []


class TestUpdateStatus:
    """Test tap open/close payloads."""

    def test_open_then_close(self, service, clock):
        dispenser_id = service.create_dispenser({"flowVolume": 0.064})["dispenser_id"]

        opened = service.update_status(dispenser_id, {"status": "open"})
        clock.advance(50)
        closed = service.update_status(dispenser_id, {"status": "close"})

        assert opened == {"status": "open", "start_time": "2022-01-01T02:00:00.000Z"}
        assert closed == {
            "status": "closed",
            "end_time": "2022-01-01T02:00:50.000Z",
            "revenue": "39.20",
        }

    def test_unknown_dispenser_checked_before_status(self, service):
        with pytest.raises(NotFoundError) as excinfo:
            service.update_status("invalid-uuid", {"status": "bogus"})
        assert http_status_for(excinfo.value) == 404

    @pytest.mark.parametrize("payload", [{"status": "opened"}, {}, None])
    def test_invalid_status(self, service, payload):
        dispenser_id = service.create_dispenser({"flowVolume": 1})["dispenser_id"]
        with pytest.raises(ValidationError, match='Use "open" or "close"'):
            service.update_status(dispenser_id, payload)

    def test_close_without_open_is_400(self, service):
        dispenser_id = service.create_dispenser({"flowVolume": 1})["dispenser_id"]
        with pytest.raises(ConflictError) as excinfo:
            service.update_status(dispenser_id, {"status": "close"})
        assert http_status_for(excinfo.value) == 400

    def test_unexpected_errors_map_to_500(self):
        assert http_status_for(RuntimeError("boom")) == 500


class TestReports:
    """Test summary and spending payloads."""

    def test_summary_shape(self, service, clock):
        dispenser_id = service.create_dispenser({"flowVolume": 0.064})["dispenser_id"]
        service.update_status(dispenser_id, {"status": "open"})
        clock.advance(50)
        service.update_status(dispenser_id, {"status": "close"})

        assert service.summary() == [{
            "dispenser_id": dispenser_id,
            "usage_count": 1,
            "total_duration": "50.00 seconds",
            "total_revenue": "$39.20",
        }]

    def test_summary_uses_configured_symbol(self, clock):
        config = BillingConfig(pricing=PricingPolicy(unit_price=Decimal("1"), currency_symbol="€"))
        service = build_service(config, clock=clock)
        dispenser_id = service.create_dispenser({"flowVolume": 1})["dispenser_id"]
        service.update_status(dispenser_id, {"status": "open"})
        clock.advance(3)
        service.update_status(dispenser_id, {"status": "close"})
        assert service.summary()[0]["total_revenue"] == "€3.00"

    def test_spending_of_demo_dispenser(self, clock):
        """Reference usages, with the last tap still running two seconds in."""
        repository = InMemoryDispenserRepository()
        dispenser = seed_demo_data(repository)
        service = build_service(repository=repository, clock=clock)
        clock.advance(42660)  # 02:00:00 -> 13:51:00

        body = service.spending(dispenser.id)

        assert body == {
            "amount": "58.02",
            "usages": [
                {
                    "opened_at": "2022-01-01T02:00:00.000Z",
                    "closed_at": "2022-01-01T02:00:50.000Z",
                    "flow_volume": 0.064,
                    "total_spent": "39.20",
                },
                {
                    "opened_at": "2022-01-01T02:50:58.000Z",
                    "closed_at": "2022-01-01T02:51:20.000Z",
                    "flow_volume": 0.064,
                    "total_spent": "17.25",
                },
                {
                    "opened_at": "2022-01-01T13:50:58.000Z",
                    "closed_at": None,
                    "flow_volume": 0.064,
                    "total_spent": "1.57",
                },
            ],
        }

    def test_demo_summary_counts_closed_only(self, clock):
        repository = InMemoryDispenserRepository()
        seed_demo_data(repository)
        service = build_service(repository=repository, clock=clock)

        (row,) = service.summary()

        assert row["usage_count"] == 2
        assert row["total_duration"] == "72.00 seconds"
        assert row["total_revenue"] == "$56.45"

    def test_spending_unknown_dispenser(self, service):
        with pytest.raises(NotFoundError, match="Dispenser not found"):
            service.spending("invalid-uuid")


class TestBuildService:
    """Test service assembly."""

    def test_services_do_not_share_state(self):
        first = build_service()
        first.create_dispenser({"flowVolume": 1})
        assert build_service().summary() == []

    def test_sqlite_state_survives_new_service(self, tmp_path, clock):
        db_path = str(tmp_path / "billing.db")
        first = build_service(repository=SQLiteDispenserRepository(db_path), clock=clock)
        dispenser_id = first.create_dispenser({"flowVolume": 0.064})["dispenser_id"]
        first.update_status(dispenser_id, {"status": "open"})
        clock.advance(50)

        second = build_service(repository=SQLiteDispenserRepository(db_path), clock=clock)
        closed = second.update_status(dispenser_id, {"status": "close"})

        assert closed["revenue"] == "39.20"
