"""
Depreciation service — the monthly depreciation ledger.

One ``DepreciationEntry`` per asset per month, appended in period
order.  Whatever the method, every accrual keeps:

  - ``accumulated_depreciation = min(cost_basis, previous + amount)``
  - ``nbv = cost_basis - accumulated_depreciation`` (never negative)

Method formulas (monthly):
  - **Straight line:**        cost_basis ÷ useful_life_months.
  - **Declining balance:**    nbv × 2 ÷ useful_life_months (double declining).
  - **Units of production:**  cost_basis ÷ total_estimated_units × units used.

Amounts are rounded to ``DEPRECIATION_ROUNDING`` and capped at the
remaining NBV.  A fully depreciated asset still gets a zero-amount
entry each period so the schedule has no gaps.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from flask import current_app
from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError

from assetlife.exceptions import ConflictError, LifecycleError, ValidationError
from assetlife.extensions import db
from assetlife.models.asset import Asset
from assetlife.models.depreciation import DepreciationEntry
from assetlife.services import audit_service, record_store
from assetlife.services.asset_service import ensure_not_disposed, to_amount

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")

# Statuses picked up by the monthly batch run.
DEPRECIABLE_STATUSES = ("active", "allocated")


@dataclass
class ScheduleLine:
    """One projected (not yet posted) depreciation period."""

    period_date: date
    depreciation_amount: Decimal
    accumulated_depreciation: Decimal
    nbv: Decimal
    is_processed: bool = False


@dataclass
class DepreciationRunResult:
    """Outcome of a batch ``run_depreciation`` call."""

    period_date: date
    processed: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    failed: dict[int, str] = field(default_factory=dict)

    @property
    def processed_count(self) -> int:
        return len(self.processed)


# =========================================================================
# Pure calculation helpers
# =========================================================================


def normalize_period(period_date: date | datetime) -> date:
    """Return the first day of the month containing ``period_date``."""
    if isinstance(period_date, datetime):
        period_date = period_date.date()
    return period_date.replace(day=1)


def _next_period(period: date) -> date:
    if period.month == 12:
        return date(period.year + 1, 1, 1)
    return date(period.year, period.month + 1, 1)


def _quantum() -> Decimal:
    try:
        return Decimal(current_app.config.get("DEPRECIATION_ROUNDING", "0.01"))
    except RuntimeError:
        # Outside an application context (pure projections in scripts).
        return Decimal("0.01")


def _require_positive_life(asset: Asset) -> int:
    months = asset.useful_life_months
    if months is None or months <= 0:
        raise ValidationError(
            f"Asset {asset.asset_code} needs a positive useful life for "
            f"{asset.depreciation_method} depreciation.",
            entity="asset_master_data",
            entity_id=asset.id,
            field="useful_life_months",
            expected="> 0",
            actual=months,
        )
    return months


def calculate_amount(
    asset: Asset,
    accumulated: Decimal,
    units_produced: Decimal | None = None,
    quantum: Decimal = Decimal("0.01"),
) -> Decimal:
    """
    Compute one month of depreciation for ``asset``.

    Args:
        asset:          The asset (method, cost basis, life, units).
        accumulated:    Accumulated depreciation before this period.
        units_produced: Usage in the period (units-of-production only).
        quantum:        Rounding step for the amount.

    Returns:
        The amount, already capped so accumulated never exceeds cost.

    Raises:
        ValidationError: If the asset has no method, or the inputs its
                         method needs are missing or not positive.
    """
    cost_basis = Decimal(asset.cost_basis or 0)
    remaining = max(cost_basis - accumulated, ZERO)
    method = asset.depreciation_method

    if method == "straight_line":
        months = _require_positive_life(asset)
        amount = cost_basis / months
    elif method == "declining_balance":
        months = _require_positive_life(asset)
        amount = remaining * 2 / months
    elif method == "units_of_production":
        total_units = asset.total_estimated_units
        if total_units is None or total_units <= 0:
            raise ValidationError(
                f"Asset {asset.asset_code} needs total_estimated_units for "
                "units-of-production depreciation.",
                entity="asset_master_data",
                entity_id=asset.id,
                field="total_estimated_units",
                expected="> 0",
                actual=total_units,
            )
        if units_produced is None:
            raise ValidationError(
                "units_produced is required for units-of-production depreciation.",
                entity="depreciation_schedule",
                entity_id=asset.id,
                field="units_produced",
            )
        units = to_amount(units_produced, "units_produced", entity="depreciation_schedule")
        amount = cost_basis / Decimal(total_units) * units
    else:
        raise ValidationError(
            f"Asset {asset.asset_code} has no depreciation method.",
            entity="asset_master_data",
            entity_id=asset.id,
            field="depreciation_method",
            actual=method,
        )

    amount = amount.quantize(quantum, rounding=ROUND_HALF_UP)
    return min(amount, remaining)


def project_schedule(
    asset: Asset,
    months: int,
    start_period: date | None = None,
) -> list[ScheduleLine]:
    """
    Project the next ``months`` periods without writing anything.

    Starts from the asset's current accumulated depreciation and the
    month after its latest posted entry (or ``start_period``).  Units
    of production cannot be projected without usage figures and yield
    an empty list.
    """
    if months <= 0 or asset.depreciation_method == "units_of_production":
        return []

    if start_period is None:
        latest = _latest_entry(asset.id) if asset.id is not None else None
        start_period = (
            _next_period(latest.period_date) if latest else normalize_period(date.today())
        )
    period = normalize_period(start_period)

    quantum = _quantum()
    cost_basis = Decimal(asset.cost_basis or 0)
    accumulated = Decimal(asset.accumulated_depreciation or 0)
    lines: list[ScheduleLine] = []
    for _ in range(months):
        amount = calculate_amount(asset, accumulated, quantum=quantum)
        accumulated = min(cost_basis, accumulated + amount)
        lines.append(
            ScheduleLine(
                period_date=period,
                depreciation_amount=amount,
                accumulated_depreciation=accumulated,
                nbv=cost_basis - accumulated,
            )
        )
        period = _next_period(period)
    return lines


# =========================================================================
# Queries
# =========================================================================


def _latest_entry(asset_id: int) -> DepreciationEntry | None:
    return db.session.execute(
        db.select(DepreciationEntry)
        .where(DepreciationEntry.asset_master_id == asset_id)
        .order_by(desc(DepreciationEntry.period_date))
        .limit(1)
    ).scalar_one_or_none()


def get_entries(asset_id: int) -> list[DepreciationEntry]:
    """Return an asset's depreciation entries in period order."""
    record_store.get_by_id(Asset, asset_id)
    return record_store.query(
        DepreciationEntry,
        {"asset_master_id": asset_id},
        order_by=DepreciationEntry.period_date,
    )


def has_entry_for_period(asset_id: int, period_date: date) -> bool:
    """True if the asset already has an entry for the period's month."""
    return bool(
        record_store.query(
            DepreciationEntry,
            {"asset_master_id": asset_id, "period_date": normalize_period(period_date)},
        )
    )


# =========================================================================
# Accrual
# =========================================================================


def accrue_period(
    asset_id: int,
    period_date: date,
    units_produced: Decimal | None = None,
    user_id: str | None = None,
) -> DepreciationEntry:
    """
    Post one month of depreciation for an asset.

    Appends a ``DepreciationEntry`` and updates the asset's
    accumulated depreciation and NBV in one transaction.

    Returns:
        The new entry.

    Raises:
        NotFoundError:   If the asset does not exist.
        ConflictError:   If the asset is disposed, or the period is
                         already posted or earlier than the latest entry.
        ValidationError: If the asset's method lacks the inputs it needs
                         (e.g., useful_life_months <= 0 for straight line).
    """
    period = normalize_period(period_date)
    asset = record_store.get_by_id(Asset, asset_id)
    ensure_not_disposed(asset, "accrue depreciation")

    latest = _latest_entry(asset_id)
    if latest is not None and latest.period_date >= period:
        reason = (
            "is already posted"
            if latest.period_date == period
            else f"precedes the latest posted period {latest.period_date.isoformat()}"
        )
        raise ConflictError(
            f"Depreciation period {period.isoformat()} for asset "
            f"{asset.asset_code} {reason}.",
            entity="depreciation_schedule",
            entity_id=asset_id,
            field="period_date",
            expected=f"> {latest.period_date.isoformat()}",
            actual=period.isoformat(),
        )

    cost_basis = Decimal(asset.cost_basis)
    previous_accumulated = Decimal(asset.accumulated_depreciation or 0)
    amount = calculate_amount(
        asset, previous_accumulated, units_produced=units_produced, quantum=_quantum()
    )
    accumulated = min(cost_basis, previous_accumulated + amount)
    nbv = cost_basis - accumulated

    try:
        with record_store.transaction():
            entry = record_store.create(
                DepreciationEntry,
                asset_master_id=asset_id,
                period_date=period,
                depreciation_amount=amount,
                accumulated_depreciation=accumulated,
                nbv=nbv,
                is_processed=True,
            )
            record_store.update(
                Asset,
                asset_id,
                {
                    "accumulated_depreciation": accumulated,
                    "nbv": nbv,
                    "updated_at": datetime.now(timezone.utc),
                },
            )
            audit_service.log_change(
                user_id=user_id,
                action_type="DEPRECIATE",
                entity_type="depreciation_schedule",
                entity_id=entry.id,
                previous_value={
                    "accumulated_depreciation": previous_accumulated,
                    "nbv": cost_basis - previous_accumulated,
                },
                new_value={
                    "period_date": period,
                    "depreciation_amount": amount,
                    "accumulated_depreciation": accumulated,
                    "nbv": nbv,
                },
            )
    except IntegrityError as exc:
        # A concurrent run posted this period first (unique asset, period).
        raise ConflictError(
            f"Depreciation period {period.isoformat()} for asset ID {asset_id} "
            "is already posted.",
            entity="depreciation_schedule",
            entity_id=asset_id,
            field="period_date",
            expected="unposted period",
            actual=period.isoformat(),
        ) from exc

    logger.info(
        "Accrued %s depreciation for asset ID %d period %s (nbv %s)",
        amount,
        asset_id,
        period,
        nbv,
    )
    return entry


def run_depreciation(
    period_date: date | None = None,
    user_id: str | None = None,
) -> DepreciationRunResult:
    """
    Post the period's depreciation for every eligible asset.

    Eligible: a depreciation method is set and the asset is ``active``
    or ``allocated``.  Assets already posted for the period and
    units-of-production assets (which need a usage figure) are
    skipped.  Each asset is its own transaction; a failure on one is
    logged and recorded without stopping the run.
    """
    period = normalize_period(period_date or date.today())
    result = DepreciationRunResult(period_date=period)

    candidates = db.session.execute(
        db.select(Asset)
        .where(
            Asset.depreciation_method.is_not(None),
            Asset.current_status.in_(DEPRECIABLE_STATUSES),
        )
        .order_by(Asset.id)
    ).scalars().all()

    for asset in candidates:
        asset_id = asset.id
        if asset.depreciation_method == "units_of_production" or has_entry_for_period(
            asset_id, period
        ):
            logger.debug("Skipping asset ID %d for period %s", asset_id, period)
            result.skipped.append(asset_id)
            continue
        try:
            accrue_period(asset_id, period, user_id=user_id)
            result.processed.append(asset_id)
        except LifecycleError as exc:
            logger.warning(
                "Depreciation for asset ID %d period %s failed: %s",
                asset_id,
                period,
                exc,
            )
            result.failed[asset_id] = str(exc)

    logger.info(
        "Depreciation run %s: %d processed, %d skipped, %d failed",
        period,
        len(result.processed),
        len(result.skipped),
        len(result.failed),
    )
    return result
