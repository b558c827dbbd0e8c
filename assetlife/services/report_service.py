"""
Report service — read-only rollups for dashboards and reports.

Every register-wide figure shown to users (total NBV, disposal
gain/loss, allocation counts, cost of ownership) comes from this
module rather than being summed in the presentation layer.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import func

from assetlife.extensions import db
from assetlife.models.allocation import ALLOCATION_STATUSES, Allocation
from assetlife.models.asset import TERMINAL_STATUS, Asset
from assetlife.models.disposal import DisposalRecord
from assetlife.services import record_store

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


# =========================================================================
# Data classes for structured report results
# =========================================================================


@dataclass
class DepreciationSummary:
    """Register-wide depreciation totals over assets still held."""

    total_assets: int
    total_cost_basis: Decimal = ZERO
    total_accumulated_depreciation: Decimal = ZERO
    total_nbv: Decimal = ZERO


@dataclass
class DisposalSummary:
    """Count of disposals and their signed total gain/loss."""

    total_disposed: int
    total_gain_loss: Decimal = ZERO
    total_sale_price: Decimal = ZERO


@dataclass
class AllocationStatusCounts:
    """Number of allocations in each status."""

    active: int = 0
    overdue: int = 0
    returned: int = 0
    by_status: dict[str, int] = field(default_factory=dict)

    @property
    def open(self) -> int:
        return self.active + self.overdue


@dataclass
class CostOfOwnership:
    """Acquisition cost plus accumulated maintenance for one asset."""

    asset_master_id: int
    asset_code: str
    cost_basis: Decimal
    total_maintenance_cost: Decimal
    total_cost: Decimal


def _decimal(value) -> Decimal:
    return Decimal(str(value)) if value is not None else ZERO


# =========================================================================
# Rollups
# =========================================================================


def depreciation_summary() -> DepreciationSummary:
    """Sum cost basis, accumulated depreciation and NBV of non-disposed assets."""
    row = db.session.execute(
        db.select(
            func.count(Asset.id),
            func.sum(Asset.cost_basis),
            func.sum(Asset.accumulated_depreciation),
            func.sum(Asset.nbv),
        ).where(Asset.current_status != TERMINAL_STATUS)
    ).one()
    return DepreciationSummary(
        total_assets=row[0] or 0,
        total_cost_basis=_decimal(row[1]),
        total_accumulated_depreciation=_decimal(row[2]),
        total_nbv=_decimal(row[3]),
    )


def disposal_summary() -> DisposalSummary:
    """Count disposals and total their gain/loss (positive is a net gain)."""
    row = db.session.execute(
        db.select(
            func.count(DisposalRecord.id),
            func.sum(DisposalRecord.gain_loss),
            func.sum(DisposalRecord.sale_price),
        )
    ).one()
    return DisposalSummary(
        total_disposed=row[0] or 0,
        total_gain_loss=_decimal(row[1]),
        total_sale_price=_decimal(row[2]),
    )


def allocation_status_counts() -> AllocationStatusCounts:
    """Count allocations per status."""
    rows = db.session.execute(
        db.select(Allocation.status, func.count(Allocation.id)).group_by(
            Allocation.status
        )
    ).all()
    by_status = {status: 0 for status in ALLOCATION_STATUSES}
    by_status.update({status: count for status, count in rows})
    return AllocationStatusCounts(
        active=by_status["active"],
        overdue=by_status["overdue"],
        returned=by_status["returned"],
        by_status=by_status,
    )


def total_cost_of_ownership(asset_id: int) -> CostOfOwnership:
    """
    Return cost basis plus maintenance spend for one asset.

    Raises:
        NotFoundError: If the asset does not exist.
    """
    asset = record_store.get_by_id(Asset, asset_id)
    cost_basis = _decimal(asset.cost_basis)
    maintenance = _decimal(asset.total_maintenance_cost)
    return CostOfOwnership(
        asset_master_id=asset.id,
        asset_code=asset.asset_code,
        cost_basis=cost_basis,
        total_maintenance_cost=maintenance,
        total_cost=cost_basis + maintenance,
    )
