"""
Allocation service — lending assets to holders and taking them back.

Enacts the two allocation transitions and the overdue sweep:

  - ``allocate``:          in_stock / ready_for_reallocation -> allocated,
                           creating an ``active`` allocation.
  - ``return_allocation``: active / overdue allocation -> returned; the
                           asset goes to ready_for_reallocation or
                           under_maintenance depending on reusability.
  - ``mark_overdue``:      active allocations past their expected
                           return date -> overdue.  The asset is untouched.

Each transition writes the allocation, the asset status and an audit
row in one transaction.  The return and the sweep both use
conditional updates on the allocation's status, so a return always
wins over a sweep that read the row before the return landed.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from flask import current_app
from sqlalchemy import desc
from sqlalchemy import update as sa_update
from sqlalchemy.exc import IntegrityError

from assetlife.exceptions import ConflictError, ValidationError
from assetlife.extensions import db
from assetlife.models.allocation import OPEN_ALLOCATION_STATUSES, Allocation
from assetlife.models.asset import Asset
from assetlife.services import audit_service, record_store, status_engine
from assetlife.services.asset_service import ensure_not_disposed

logger = logging.getLogger(__name__)

# Matches the Numeric(5, 2) column on asset_allocation.
PERCENTAGE_QUANTUM = Decimal("0.01")


@dataclass
class ReturnResult:
    """Outcome of ``return_allocation``."""

    allocation: Allocation
    asset_status: str


@dataclass
class AllocationEvent:
    """One entry of an asset's allocation timeline."""

    event_type: str  # "allocation" or "return"
    occurred_on: date
    allocation_id: int
    asset_master_id: int
    holder_id: str
    purpose: str
    project_id: str | None = None
    return_condition: str | None = None
    reusability_percentage: Decimal | None = None


def _reusability_threshold() -> int:
    return current_app.config.get(
        "REUSABILITY_THRESHOLD", status_engine.REUSABILITY_THRESHOLD
    )


# =========================================================================
# Queries
# =========================================================================


def get_allocation(allocation_id: int) -> Allocation:
    """
    Return an allocation by primary key.

    Raises:
        NotFoundError: If it does not exist.
    """
    return record_store.get_by_id(Allocation, allocation_id)


def get_open_allocation(asset_id: int) -> Allocation | None:
    """Return the asset's active or overdue allocation, if any."""
    rows = record_store.query(
        Allocation,
        {"asset_master_id": asset_id, "status": OPEN_ALLOCATION_STATUSES},
    )
    return rows[0] if rows else None


def list_allocations(
    status: str | list[str] | None = None,
    asset_id: int | None = None,
) -> list[Allocation]:
    """Return allocations newest first, optionally filtered."""
    filters: dict[str, Any] = {}
    if status is not None:
        filters["status"] = status
    if asset_id is not None:
        filters["asset_master_id"] = asset_id
    return record_store.query(
        Allocation,
        filters,
        order_by=[desc(Allocation.allocation_date), desc(Allocation.id)],
    )


def get_allocation_history(asset_id: int | None = None) -> list[AllocationEvent]:
    """
    Build a timeline of allocation and return events, newest first.

    Each allocation contributes an "allocation" event and, once
    returned, a "return" event on its actual return date.
    """
    events: list[AllocationEvent] = []
    for allocation in list_allocations(asset_id=asset_id):
        events.append(
            AllocationEvent(
                event_type="allocation",
                occurred_on=allocation.allocation_date,
                allocation_id=allocation.id,
                asset_master_id=allocation.asset_master_id,
                holder_id=allocation.allocated_to,
                purpose=allocation.purpose,
                project_id=allocation.project_id,
            )
        )
        if allocation.actual_return_date is not None:
            events.append(
                AllocationEvent(
                    event_type="return",
                    occurred_on=allocation.actual_return_date.date(),
                    allocation_id=allocation.id,
                    asset_master_id=allocation.asset_master_id,
                    holder_id=allocation.allocated_to,
                    purpose=allocation.purpose,
                    project_id=allocation.project_id,
                    return_condition=allocation.return_condition,
                    reusability_percentage=allocation.reusability_percentage,
                )
            )
    # Returns sort after their allocation when both fall on the same day.
    events.sort(
        key=lambda e: (e.occurred_on, e.allocation_id, e.event_type == "return"),
        reverse=True,
    )
    return events


# =========================================================================
# Allocate
# =========================================================================


def allocate(
    asset_id: int,
    holder_id: str,
    purpose: str,
    project_id: str | None = None,
    expected_return_date: date | None = None,
    allocated_by: str | None = None,
    allocation_date: date | None = None,
) -> Allocation:
    """
    Lend an asset to a holder.

    Args:
        asset_id:             Internal id of the asset.
        holder_id:            Employee id of the person receiving it.
        purpose:              Why the asset is allocated (required).
        project_id:           Optional project the allocation serves.
        expected_return_date: Optional due date; drives the overdue sweep.
        allocated_by:         Employee id of the person recording it.
        allocation_date:      Defaults to today.

    Returns:
        The new ``active`` Allocation.

    Raises:
        ValidationError: If asset, holder or purpose is missing, the due
                         date precedes the allocation date, or the asset
                         is in a non-allocatable status (e.g.,
                         ``under_maintenance``).
        NotFoundError:   If the asset does not exist.
        ConflictError:   If the asset is disposed or already allocated.
    """
    purpose = (purpose or "").strip()
    if isinstance(holder_id, str):
        holder_id = holder_id.strip()
    if asset_id is None:
        raise ValidationError(
            "An asset must be selected.", entity="asset_allocation", field="asset_id"
        )
    if not holder_id:
        raise ValidationError(
            "A holder must be selected.", entity="asset_allocation", field="allocated_to"
        )
    if not purpose:
        raise ValidationError(
            "Purpose is required.", entity="asset_allocation", field="purpose"
        )
    allocation_date = allocation_date or date.today()
    if expected_return_date is not None and expected_return_date < allocation_date:
        raise ValidationError(
            "Expected return date cannot be before the allocation date.",
            entity="asset_allocation",
            field="expected_return_date",
            expected=f">= {allocation_date.isoformat()}",
            actual=expected_return_date.isoformat(),
        )

    asset = record_store.get_by_id(Asset, asset_id)
    ensure_not_disposed(asset, "allocate asset")

    open_allocation = get_open_allocation(asset_id)
    if open_allocation is not None or asset.current_status == "allocated":
        raise ConflictError(
            f"Asset {asset.asset_code} is already allocated.",
            entity="asset_master_data",
            entity_id=asset_id,
            field="current_status",
            expected=list(status_engine.ALLOCATABLE_STATUSES),
            actual=asset.current_status,
        )
    if not status_engine.is_allocatable(asset.current_status):
        raise ValidationError(
            f"Asset {asset.asset_code} cannot be allocated while "
            f"'{asset.current_status}'.",
            entity="asset_master_data",
            entity_id=asset_id,
            field="current_status",
            expected=list(status_engine.ALLOCATABLE_STATUSES),
            actual=asset.current_status,
        )

    previous_status = asset.current_status
    try:
        with record_store.transaction():
            allocation = record_store.create(
                Allocation,
                asset_master_id=asset_id,
                allocated_to=holder_id,
                allocated_by=allocated_by,
                purpose=purpose,
                project_id=project_id,
                allocation_date=allocation_date,
                expected_return_date=expected_return_date,
                status="active",
            )
            new_status = status_engine.compute_status(asset, active_allocation=allocation)
            record_store.update(
                Asset,
                asset_id,
                {
                    "current_status": new_status,
                    "updated_at": datetime.now(timezone.utc),
                },
            )
            audit_service.log_change(
                user_id=allocated_by,
                action_type="ALLOCATE",
                entity_type="asset_allocation",
                entity_id=allocation.id,
                previous_value={"asset_status": previous_status},
                new_value={
                    "asset_master_id": asset_id,
                    "allocated_to": holder_id,
                    "purpose": purpose,
                    "project_id": project_id,
                    "expected_return_date": expected_return_date,
                    "asset_status": new_status,
                },
            )
    except IntegrityError as exc:
        # Another writer opened an allocation for this asset first.
        logger.warning("Concurrent allocation rejected for asset ID %d", asset_id)
        raise ConflictError(
            f"Asset {asset_id} already has an open allocation.",
            entity="asset_allocation",
            field="asset_master_id",
            actual=asset_id,
        ) from exc

    logger.info(
        "Allocated asset ID %d to %s (allocation ID %d)",
        asset_id,
        holder_id,
        allocation.id,
    )
    return allocation


# =========================================================================
# Return
# =========================================================================


def _validate_percentage(value) -> Decimal:
    try:
        percentage = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(
            "Reusability percentage must be a number.",
            entity="asset_allocation",
            field="reusability_percentage",
            expected="0-100",
            actual=value,
        ) from exc
    if not percentage.is_finite() or not 0 <= percentage <= 100:
        raise ValidationError(
            "Reusability percentage must be between 0 and 100.",
            entity="asset_allocation",
            field="reusability_percentage",
            expected="0-100",
            actual=value,
        )
    # Status is derived from the stored value, so round it the same way.
    return percentage.quantize(PERCENTAGE_QUANTUM, rounding=ROUND_HALF_UP)


def return_allocation(
    allocation_id: int,
    return_condition: str | None,
    reusability_percentage: Decimal | int | float | None,
    returned_by: str | None = None,
) -> ReturnResult:
    """
    Record the return of an allocated asset.

    The allocation becomes ``returned`` with today's return timestamp,
    condition and reusability percentage fixed.  The asset becomes
    ``ready_for_reallocation`` when reusability is at or above the
    configured threshold, otherwise ``under_maintenance``.  A missing
    percentage counts as below threshold.  The percentage is rounded
    half-up to two places before it is stored and compared.

    Returns:
        A ReturnResult with the updated allocation and new asset status.

    Raises:
        ValidationError: If the percentage is outside [0, 100].
        NotFoundError:   If the allocation does not exist.
        ConflictError:   If the allocation was already returned, or its
                         asset has been disposed.
    """
    percentage = (
        None if reusability_percentage is None
        else _validate_percentage(reusability_percentage)
    )

    allocation = record_store.get_by_id(Allocation, allocation_id)
    if not allocation.is_open:
        raise ConflictError(
            f"Allocation {allocation_id} has already been returned.",
            entity="asset_allocation",
            entity_id=allocation_id,
            field="status",
            expected=list(OPEN_ALLOCATION_STATUSES),
            actual=allocation.status,
        )
    asset = record_store.get_by_id(Asset, allocation.asset_master_id)
    ensure_not_disposed(asset, "return allocation")

    previous_status = allocation.status
    previous_asset_status = asset.current_status
    returned_at = datetime.now(timezone.utc)
    new_status = status_engine.status_after_return(percentage, _reusability_threshold())
    with record_store.transaction():
        changed = record_store.compare_and_set(
            Allocation,
            allocation_id,
            expected={"status": OPEN_ALLOCATION_STATUSES},
            patch={
                "status": "returned",
                "actual_return_date": returned_at,
                "return_condition": return_condition,
                "reusability_percentage": percentage,
                "updated_at": returned_at,
            },
        )
        if not changed:
            # Someone else returned it between our read and write.
            raise ConflictError(
                f"Allocation {allocation_id} has already been returned.",
                entity="asset_allocation",
                entity_id=allocation_id,
                field="status",
                expected=list(OPEN_ALLOCATION_STATUSES),
                actual="returned",
            )
        record_store.update(
            Asset,
            asset.id,
            {"current_status": new_status, "updated_at": returned_at},
        )
        audit_service.log_change(
            user_id=returned_by,
            action_type="RETURN",
            entity_type="asset_allocation",
            entity_id=allocation_id,
            previous_value={
                "status": previous_status,
                "asset_status": previous_asset_status,
            },
            new_value={
                "status": "returned",
                "return_condition": return_condition,
                "reusability_percentage": percentage,
                "asset_status": new_status,
            },
        )

    logger.info(
        "Returned allocation ID %d (reusability %s%%); asset ID %d is now %s",
        allocation_id,
        percentage,
        asset.id,
        new_status,
    )
    return ReturnResult(
        allocation=record_store.get_by_id(Allocation, allocation_id),
        asset_status=new_status,
    )


# =========================================================================
# Overdue reconciliation
# =========================================================================


def mark_overdue(today: date | None = None) -> int:
    """
    Flip active allocations past their expected return date to overdue.

    A single conditional UPDATE: rows already overdue or returned are
    left alone, so re-running is a no-op and a concurrent return is
    never overwritten.  Asset status is not changed.

    Returns:
        The number of allocations marked overdue.
    """
    today = today or date.today()
    with record_store.transaction():
        overdue_ids = list(
            db.session.execute(
                db.select(Allocation.id).where(
                    Allocation.status == "active",
                    Allocation.expected_return_date.is_not(None),
                    Allocation.expected_return_date < today,
                )
            ).scalars()
        )
        if not overdue_ids:
            logger.debug("Overdue sweep for %s: nothing to mark", today)
            return 0

        result = db.session.execute(
            sa_update(Allocation)
            .where(
                Allocation.id.in_(overdue_ids),
                Allocation.status == "active",
            )
            .values(status="overdue", updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session="fetch")
        )
        count = result.rowcount
        audit_service.log_change(
            user_id=None,
            action_type="OVERDUE",
            entity_type="asset_allocation",
            entity_id=None,
            new_value={"as_of": today, "allocation_ids": overdue_ids, "count": count},
        )

    logger.info("Overdue sweep for %s marked %d allocation(s)", today, count)
    return count
