"""
Tests for disposal_service.dispose() and the terminal ``disposed`` state.
"""

from datetime import date
from decimal import Decimal

import pytest

from assetlife.exceptions import ConflictError, NotFoundError, ValidationError
from assetlife.services import (
    allocation_service,
    asset_service,
    depreciation_service,
    disposal_service,
    maintenance_service,
    record_store,
)


class TestDispose:
    """Disposal gain/loss and the terminal state."""

    @pytest.fixture(autouse=True)
    def _setup(self, app, db_session, make_asset):
        self.session = db_session
        self.asset = make_asset(cost_basis="300000", useful_life_months=60)

    def test_sale_above_nbv_records_gain(self):
        record = disposal_service.dispose(
            self.asset.id, "sold", sale_price="500000", approver="CFO1"
        )

        assert record.nbv_at_disposal == Decimal("300000")
        assert record.sale_price == Decimal("500000")
        assert record.gain_loss == Decimal("200000")
        assert record.approved_by == "CFO1"
        assert record.disposal_date == date.today()
        assert asset_service.get_asset(self.asset.id).current_status == "disposed"

    def test_sale_below_nbv_records_loss(self):
        record = disposal_service.dispose(self.asset.id, "sold", sale_price=100000)
        assert record.gain_loss == Decimal("-200000")

    def test_nbv_snapshot_reflects_accrued_depreciation(self):
        for month in (1, 2, 3):
            depreciation_service.accrue_period(self.asset.id, date(2026, month, 1))

        record = disposal_service.dispose(self.asset.id, "obsolete")

        assert record.nbv_at_disposal == Decimal("285000")
        assert record.sale_price == Decimal("0")
        assert record.gain_loss == Decimal("-285000")

    def test_disposed_asset_rejects_every_further_mutation(self):
        disposal_service.dispose(self.asset.id, "sold", sale_price=500000)

        with pytest.raises(ConflictError):
            maintenance_service.record_maintenance(
                self.asset.id, "corrective", date(2026, 5, 1), 100
            )
        with pytest.raises(ConflictError):
            allocation_service.allocate(self.asset.id, "E1001", "Job")
        with pytest.raises(ConflictError):
            depreciation_service.accrue_period(self.asset.id, date(2026, 5, 1))
        with pytest.raises(ConflictError):
            asset_service.move_asset(self.asset.id, "Scrap Yard")

        asset = asset_service.get_asset(self.asset.id)
        assert asset.total_maintenance_cost == Decimal("0")
        assert asset.current_status == "disposed"

    def test_disposing_twice_conflicts(self):
        disposal_service.dispose(self.asset.id, "sold", sale_price=500000)

        with pytest.raises(ConflictError):
            disposal_service.dispose(self.asset.id, "sold", sale_price=1)

        assert len(disposal_service.list_disposals()) == 1

    def test_allocated_asset_cannot_be_disposed(self):
        allocation_service.allocate(self.asset.id, "E1001", "Job")

        with pytest.raises(ConflictError):
            disposal_service.dispose(self.asset.id, "lost")

        assert disposal_service.get_disposal(self.asset.id) is None
        assert asset_service.get_asset(self.asset.id).current_status == "allocated"

    def test_unknown_reason_is_rejected(self):
        with pytest.raises(ValidationError):
            disposal_service.dispose(self.asset.id, "stolen")

    def test_negative_sale_price_is_rejected(self):
        with pytest.raises(ValidationError):
            disposal_service.dispose(self.asset.id, "sold", sale_price=-1)

        assert asset_service.get_asset(self.asset.id).current_status == "in_stock"

    def test_unknown_asset_is_not_found(self):
        with pytest.raises(NotFoundError):
            disposal_service.dispose(99999, "sold")

    def test_quote_does_not_write(self):
        quote = disposal_service.quote_disposal(self.asset.id, sale_price=250000)

        assert quote.gain_loss == Decimal("-50000")
        assert disposal_service.get_disposal(self.asset.id) is None
        assert asset_service.get_asset(self.asset.id).current_status == "in_stock"

    def test_failed_asset_write_leaves_no_disposal(self, monkeypatch):
        """Disposal record and terminal status commit together or not at all."""

        def fail_update(*args, **kwargs):
            raise RuntimeError("store unavailable")

        monkeypatch.setattr(record_store, "update", fail_update)

        with pytest.raises(RuntimeError):
            disposal_service.dispose(self.asset.id, "sold", sale_price=500000)

        assert disposal_service.get_disposal(self.asset.id) is None
        assert disposal_service.list_disposals() == []
        assert asset_service.get_asset(self.asset.id).current_status == "in_stock"
