"""
Tests for maintenance_service: cost rollup and release back to the pool.
"""

import json
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import update

from assetlife.exceptions import ConflictError, ValidationError
from assetlife.models import Asset, AuditLog
from assetlife.services import allocation_service, asset_service, maintenance_service


class TestRecordMaintenance:
    """Maintenance history and total_maintenance_cost."""

    @pytest.fixture(autouse=True)
    def _setup(self, app, db_session, make_asset):
        self.session = db_session
        self.asset = make_asset()

    def test_costs_roll_up_onto_the_asset(self):
        maintenance_service.record_maintenance(
            self.asset.id, "preventive", date(2026, 2, 1), "150.25", vendor="ACME"
        )
        maintenance_service.record_maintenance(
            self.asset.id, "corrective", date(2026, 3, 1), 49.75
        )

        asset = asset_service.get_asset(self.asset.id)
        assert asset.total_maintenance_cost == Decimal("200.00")

    def test_rollup_adds_to_the_stored_total(self):
        """A total changed behind the loaded asset is added to, not overwritten."""
        stale = asset_service.get_asset(self.asset.id)
        assert stale.total_maintenance_cost == 0
        self.session.execute(
            update(Asset)
            .where(Asset.id == self.asset.id)
            .values(total_maintenance_cost=Decimal("500.00"))
            .execution_options(synchronize_session=False)
        )

        maintenance_service.record_maintenance(
            self.asset.id, "corrective", date(2026, 3, 1), 100
        )

        asset = asset_service.get_asset(self.asset.id)
        assert asset.total_maintenance_cost == Decimal("600.00")
        entry = AuditLog.query.filter_by(action_type="MAINTAIN").one()
        assert json.loads(entry.previous_value) == {"total_maintenance_cost": "500.00"}
        assert json.loads(entry.new_value)["total_maintenance_cost"] == "600.00"

    def test_records_are_listed_newest_first(self):
        maintenance_service.record_maintenance(
            self.asset.id, "inspection", date(2026, 1, 5), 0
        )
        maintenance_service.record_maintenance(
            self.asset.id, "upgrade", date(2026, 4, 5), 300
        )

        records = maintenance_service.list_maintenance(self.asset.id)

        assert [r.maintenance_type for r in records] == ["upgrade", "inspection"]

    def test_default_date_is_today(self):
        record = maintenance_service.record_maintenance(
            self.asset.id, "inspection", None, 10
        )
        assert record.maintenance_date == date.today()

    def test_negative_cost_is_rejected(self):
        with pytest.raises(ValidationError):
            maintenance_service.record_maintenance(
                self.asset.id, "corrective", date(2026, 2, 1), -5
            )

        assert maintenance_service.list_maintenance(self.asset.id) == []
        assert asset_service.get_asset(self.asset.id).total_maintenance_cost == 0

    def test_unknown_type_is_rejected(self):
        with pytest.raises(ValidationError):
            maintenance_service.record_maintenance(
                self.asset.id, "polishing", date(2026, 2, 1), 5
            )

    def test_maintenance_does_not_change_status(self):
        maintenance_service.record_maintenance(
            self.asset.id, "preventive", date(2026, 2, 1), 10
        )
        assert asset_service.get_asset(self.asset.id).current_status == "in_stock"


class TestReleaseFromMaintenance:
    """Moving a serviced asset back into the allocation pool."""

    @pytest.fixture(autouse=True)
    def _setup(self, app, db_session, make_asset):
        self.session = db_session
        self.asset = make_asset()
        allocation = allocation_service.allocate(self.asset.id, "E1001", "Job")
        allocation_service.return_allocation(allocation.id, "Bent frame", 30)

    def test_release_makes_asset_allocatable_again(self):
        maintenance_service.record_maintenance(
            self.asset.id, "corrective", date.today(), 500
        )

        asset = maintenance_service.release_from_maintenance(self.asset.id)

        assert asset.current_status == "ready_for_reallocation"
        allocation = allocation_service.allocate(self.asset.id, "E2002", "Next job")
        assert allocation.status == "active"

    def test_release_of_asset_not_in_maintenance_conflicts(self):
        maintenance_service.release_from_maintenance(self.asset.id)

        with pytest.raises(ConflictError):
            maintenance_service.release_from_maintenance(self.asset.id)
