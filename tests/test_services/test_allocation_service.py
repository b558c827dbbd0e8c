"""
Tests for allocation_service: allocate, return and the overdue sweep.

Each test starts from an in-stock asset registered through the asset
service, so the asset status transitions are exercised end to end.
"""

import json
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from assetlife.exceptions import ConflictError, NotFoundError, ValidationError
from assetlife.models import Allocation, AuditLog
from assetlife.services import (
    allocation_service,
    asset_service,
    record_store,
    status_engine,
)


def _fail_update(*args, **kwargs):
    raise RuntimeError("store unavailable")


class TestAllocate:
    """Creating allocations."""

    @pytest.fixture(autouse=True)
    def _setup(self, app, db_session, make_asset):
        self.session = db_session
        self.asset = make_asset()

    def test_allocate_in_stock_asset(self):
        """An in-stock asset becomes allocated and the allocation is active."""
        allocation = allocation_service.allocate(
            self.asset.id, "E1001", "Site survey", project_id="P-7"
        )

        assert allocation.status == "active"
        assert allocation.allocated_to == "E1001"
        assert allocation.project_id == "P-7"
        assert allocation.allocation_date == date.today()
        assert asset_service.get_asset(self.asset.id).current_status == "allocated"

    def test_allocate_already_allocated_asset_conflicts(self):
        allocation_service.allocate(self.asset.id, "E1001", "Site survey")

        with pytest.raises(ConflictError):
            allocation_service.allocate(self.asset.id, "E2002", "Second job")

        assert len(allocation_service.list_allocations(asset_id=self.asset.id)) == 1

    def test_empty_purpose_is_rejected(self):
        with pytest.raises(ValidationError) as excinfo:
            allocation_service.allocate(self.asset.id, "E1001", "   ")

        assert excinfo.value.field == "purpose"
        assert asset_service.get_asset(self.asset.id).current_status == "in_stock"

    def test_missing_holder_is_rejected(self):
        with pytest.raises(ValidationError):
            allocation_service.allocate(self.asset.id, "", "Site survey")

    def test_missing_asset_id_is_rejected(self):
        with pytest.raises(ValidationError):
            allocation_service.allocate(None, "E1001", "Site survey")

    def test_unknown_asset_is_not_found(self):
        with pytest.raises(NotFoundError):
            allocation_service.allocate(99999, "E1001", "Site survey")

    def test_due_date_before_allocation_date_is_rejected(self):
        with pytest.raises(ValidationError):
            allocation_service.allocate(
                self.asset.id,
                "E1001",
                "Site survey",
                allocation_date=date(2026, 3, 1),
                expected_return_date=date(2026, 2, 1),
            )

    def test_asset_under_maintenance_is_not_allocatable(self):
        allocation = allocation_service.allocate(self.asset.id, "E1001", "Job")
        allocation_service.return_allocation(allocation.id, "Cracked housing", 40)

        with pytest.raises(ValidationError) as excinfo:
            allocation_service.allocate(self.asset.id, "E2002", "Next job")

        assert excinfo.value.actual == "under_maintenance"

    def test_activated_asset_is_not_allocatable(self, make_asset):
        active = make_asset(activation_date=date(2026, 1, 1))
        assert active.current_status == "active"

        with pytest.raises(ValidationError):
            allocation_service.allocate(active.id, "E1001", "Job")

    def test_allocation_is_audited(self):
        allocation = allocation_service.allocate(
            self.asset.id, "E1001", "Site survey", allocated_by="M01"
        )

        entry = AuditLog.query.filter_by(
            action_type="ALLOCATE", entity_id=allocation.id
        ).one()
        assert entry.user_id == "M01"
        assert json.loads(entry.new_value)["asset_status"] == "allocated"
        assert json.loads(entry.previous_value)["asset_status"] == "in_stock"

    def test_database_rejects_second_open_allocation(self):
        """The partial unique index holds even if the service check is bypassed."""
        allocation_service.allocate(self.asset.id, "E1001", "Site survey")

        with pytest.raises(IntegrityError):
            with record_store.transaction():
                record_store.create(
                    Allocation,
                    asset_master_id=self.asset.id,
                    allocated_to="E2002",
                    purpose="Bypass",
                    allocation_date=date.today(),
                    status="active",
                )

        assert len(allocation_service.list_allocations(asset_id=self.asset.id)) == 1

    def test_failed_asset_write_leaves_no_allocation(self, monkeypatch):
        """Allocation insert and asset status change commit together or not at all."""
        monkeypatch.setattr(record_store, "update", _fail_update)

        with pytest.raises(RuntimeError):
            allocation_service.allocate(self.asset.id, "E1001", "Site survey")

        assert allocation_service.list_allocations(asset_id=self.asset.id) == []
        assert AuditLog.query.filter_by(action_type="ALLOCATE").count() == 0
        assert asset_service.get_asset(self.asset.id).current_status == "in_stock"


class TestReturnAllocation:
    """Recording returns and routing the asset by reusability."""

    @pytest.fixture(autouse=True)
    def _setup(self, app, db_session, make_asset):
        self.session = db_session
        self.asset = make_asset()
        self.allocation = allocation_service.allocate(
            self.asset.id, "E1001", "Site survey"
        )

    def test_return_high_reusability_is_ready_for_reallocation(self):
        result = allocation_service.return_allocation(self.allocation.id, "Good", 90)

        assert result.asset_status == "ready_for_reallocation"
        assert result.allocation.status == "returned"
        assert result.allocation.actual_return_date is not None
        assert result.allocation.return_condition == "Good"
        assert result.allocation.reusability_percentage == Decimal("90")
        asset = asset_service.get_asset(self.asset.id)
        assert asset.current_status == "ready_for_reallocation"

    def test_return_at_exactly_80_is_ready_for_reallocation(self):
        result = allocation_service.return_allocation(self.allocation.id, "Fair", 80)
        assert result.asset_status == "ready_for_reallocation"

    def test_return_at_79_goes_to_maintenance(self):
        result = allocation_service.return_allocation(self.allocation.id, "Worn", 79)

        assert result.asset_status == "under_maintenance"
        assert asset_service.get_asset(self.asset.id).current_status == (
            "under_maintenance"
        )

    def test_percentage_is_rounded_before_routing(self):
        """79.999 is stored as 80.00, so the asset is ready for reallocation."""
        result = allocation_service.return_allocation(self.allocation.id, "Fair", "79.999")

        assert result.allocation.reusability_percentage == Decimal("80.00")
        assert result.asset_status == "ready_for_reallocation"
        assert status_engine.compute_status(
            asset_service.get_asset(self.asset.id), latest_return=result.allocation
        ) == result.asset_status

    def test_percentage_just_below_threshold_rounds_down(self):
        result = allocation_service.return_allocation(self.allocation.id, "Worn", "79.994")

        assert result.allocation.reusability_percentage == Decimal("79.99")
        assert result.asset_status == "under_maintenance"

    def test_failed_asset_write_keeps_allocation_open(self, monkeypatch):
        monkeypatch.setattr(record_store, "update", _fail_update)

        with pytest.raises(RuntimeError):
            allocation_service.return_allocation(self.allocation.id, "Good", 90)

        allocation = allocation_service.get_allocation(self.allocation.id)
        assert allocation.status == "active"
        assert allocation.actual_return_date is None
        assert asset_service.get_asset(self.asset.id).current_status == "allocated"

    def test_return_without_percentage_goes_to_maintenance(self):
        result = allocation_service.return_allocation(self.allocation.id, None, None)
        assert result.asset_status == "under_maintenance"
        assert result.allocation.reusability_percentage is None

    @pytest.mark.parametrize("percentage", [-1, 101, "abc"])
    def test_out_of_range_percentage_is_rejected(self, percentage):
        with pytest.raises(ValidationError):
            allocation_service.return_allocation(self.allocation.id, "?", percentage)

        allocation = allocation_service.get_allocation(self.allocation.id)
        assert allocation.status == "active"
        assert asset_service.get_asset(self.asset.id).current_status == "allocated"

    def test_second_return_conflicts(self):
        allocation_service.return_allocation(self.allocation.id, "Good", 90)

        with pytest.raises(ConflictError):
            allocation_service.return_allocation(self.allocation.id, "Good", 90)

    def test_unknown_allocation_is_not_found(self):
        with pytest.raises(NotFoundError):
            allocation_service.return_allocation(99999, "Good", 90)

    def test_overdue_allocation_can_be_returned(self):
        self.allocation.expected_return_date = date(2026, 1, 10)
        self.session.commit()
        allocation_service.mark_overdue(today=date(2099, 1, 1))

        result = allocation_service.return_allocation(self.allocation.id, "Late", 85)

        assert result.allocation.status == "returned"
        assert result.asset_status == "ready_for_reallocation"

    def test_returned_asset_can_be_reallocated(self):
        allocation_service.return_allocation(self.allocation.id, "Good", 95)

        second = allocation_service.allocate(self.asset.id, "E2002", "Next job")

        assert second.status == "active"
        assert asset_service.get_asset(self.asset.id).current_status == "allocated"

    def test_history_lists_allocation_and_return_events(self):
        allocation_service.return_allocation(self.allocation.id, "Good", 95)

        events = allocation_service.get_allocation_history(self.asset.id)

        assert [e.event_type for e in events] == ["return", "allocation"]
        assert events[0].reusability_percentage == Decimal("95")
        assert all(e.holder_id == "E1001" for e in events)


class TestMarkOverdue:
    """The overdue reconciliation sweep."""

    @pytest.fixture(autouse=True)
    def _setup(self, app, db_session, make_asset):
        self.session = db_session
        self.late = allocation_service.allocate(
            make_asset().id,
            "E1001",
            "Late job",
            allocation_date=date(2026, 1, 1),
            expected_return_date=date(2026, 1, 10),
        )
        self.on_time = allocation_service.allocate(
            make_asset().id,
            "E2002",
            "Long job",
            allocation_date=date(2026, 1, 1),
            expected_return_date=date(2026, 12, 31),
        )
        self.open_ended = allocation_service.allocate(
            make_asset().id, "E3003", "Open job", allocation_date=date(2026, 1, 1)
        )

    def test_marks_only_past_due_active_allocations(self):
        count = allocation_service.mark_overdue(today=date(2026, 2, 1))

        assert count == 1
        assert allocation_service.get_allocation(self.late.id).status == "overdue"
        assert allocation_service.get_allocation(self.on_time.id).status == "active"
        assert allocation_service.get_allocation(self.open_ended.id).status == "active"

    def test_is_idempotent(self):
        allocation_service.mark_overdue(today=date(2026, 2, 1))
        assert allocation_service.mark_overdue(today=date(2026, 2, 1)) == 0

    def test_asset_stays_allocated(self):
        allocation_service.mark_overdue(today=date(2026, 2, 1))

        asset = asset_service.get_asset(self.late.asset_master_id)
        assert asset.current_status == "allocated"

    def test_returned_allocation_is_never_marked_overdue(self):
        allocation_service.return_allocation(self.late.id, "Good", 90)

        assert allocation_service.mark_overdue(today=date(2026, 2, 1)) == 0
        assert allocation_service.get_allocation(self.late.id).status == "returned"

    def test_return_between_select_and_update_is_not_overwritten(self, monkeypatch):
        """A return that lands after the candidate SELECT still wins."""
        real_update = allocation_service.sa_update

        def update_after_concurrent_return(model):
            self.session.execute(
                real_update(Allocation)
                .where(Allocation.id == self.late.id)
                .values(status="returned")
            )
            return real_update(model)

        monkeypatch.setattr(
            allocation_service, "sa_update", update_after_concurrent_return
        )

        assert allocation_service.mark_overdue(today=date(2026, 2, 1)) == 0
        assert allocation_service.get_allocation(self.late.id).status == "returned"

    def test_overdue_counts_as_open(self):
        allocation_service.mark_overdue(today=date(2026, 2, 1))

        with pytest.raises(ConflictError):
            allocation_service.allocate(self.late.asset_master_id, "E9", "Another")
        assert allocation_service.get_open_allocation(self.late.asset_master_id).id == (
            self.late.id
        )
