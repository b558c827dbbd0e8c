"""
Maintenance service — service history and the total-cost-of-ownership rollup.

Each recorded maintenance event adds its cost to
``Asset.total_maintenance_cost`` in the same transaction, so the
rollup always equals the sum of the asset's maintenance records.
"""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import desc

from assetlife.exceptions import ConflictError, ValidationError
from assetlife.models.asset import Asset
from assetlife.models.maintenance import MAINTENANCE_TYPES, MaintenanceRecord
from assetlife.services import audit_service, record_store
from assetlife.services.asset_service import ensure_not_disposed, to_amount

logger = logging.getLogger(__name__)


def record_maintenance(
    asset_id: int,
    maintenance_type: str,
    maintenance_date: date | None,
    cost: Decimal | int | str,
    vendor: str | None = None,
    performer: str | None = None,
    description: str | None = None,
) -> MaintenanceRecord:
    """
    Append a maintenance record and roll its cost up onto the asset.

    Args:
        asset_id:         Internal id of the asset.
        maintenance_type: One of ``MAINTENANCE_TYPES``.
        maintenance_date: Date of service (defaults to today).
        cost:             Non-negative cost of the service.
        vendor:           Service provider.
        performer:        Employee id of the person who did or logged it.
        description:      Free text.

    Returns:
        The new MaintenanceRecord.

    Raises:
        ValidationError: On an unknown type or negative cost.
        NotFoundError:   If the asset does not exist.
        ConflictError:   If the asset is disposed.
    """
    if maintenance_type not in MAINTENANCE_TYPES:
        raise ValidationError(
            f"maintenance_type must be one of: {', '.join(MAINTENANCE_TYPES)}.",
            entity="maintenance_record",
            field="maintenance_type",
            expected=list(MAINTENANCE_TYPES),
            actual=maintenance_type,
        )
    amount = to_amount(cost, "cost", entity="maintenance_record")

    asset = record_store.get_by_id(Asset, asset_id)
    ensure_not_disposed(asset, "record maintenance")

    with record_store.transaction():
        record = record_store.create(
            MaintenanceRecord,
            asset_master_id=asset_id,
            maintenance_type=maintenance_type,
            maintenance_date=maintenance_date or date.today(),
            description=description,
            cost=amount,
            vendor=vendor,
            performed_by=performer,
        )
        # SET total = total + amount, not an absolute write.
        asset = record_store.update(
            Asset,
            asset_id,
            {
                "total_maintenance_cost": Asset.total_maintenance_cost + amount,
                "updated_at": datetime.now(timezone.utc),
            },
        )
        new_total = Decimal(asset.total_maintenance_cost)
        previous_total = new_total - amount
        audit_service.log_change(
            user_id=performer,
            action_type="MAINTAIN",
            entity_type="maintenance_record",
            entity_id=record.id,
            previous_value={"total_maintenance_cost": previous_total},
            new_value={
                "maintenance_type": maintenance_type,
                "cost": amount,
                "vendor": vendor,
                "total_maintenance_cost": new_total,
            },
        )

    logger.info(
        "Recorded %s maintenance on asset ID %d: cost %s, total %s",
        maintenance_type,
        asset_id,
        amount,
        new_total,
    )
    return record


def release_from_maintenance(asset_id: int, user_id: str | None = None) -> Asset:
    """
    Put a serviced asset back into the allocation pool.

    Moves ``under_maintenance`` to ``ready_for_reallocation``.

    Raises:
        NotFoundError: If the asset does not exist.
        ConflictError: If the asset is not under maintenance.
    """
    asset = record_store.get_by_id(Asset, asset_id)
    ensure_not_disposed(asset, "release asset from maintenance")
    if asset.current_status != "under_maintenance":
        raise ConflictError(
            f"Asset {asset.asset_code} is not under maintenance.",
            entity="asset_master_data",
            entity_id=asset_id,
            field="current_status",
            expected="under_maintenance",
            actual=asset.current_status,
        )

    with record_store.transaction():
        record_store.update(
            Asset,
            asset_id,
            {
                "current_status": "ready_for_reallocation",
                "updated_at": datetime.now(timezone.utc),
            },
        )
        audit_service.log_change(
            user_id=user_id,
            action_type="UPDATE",
            entity_type="asset_master_data",
            entity_id=asset_id,
            previous_value={"current_status": "under_maintenance"},
            new_value={"current_status": "ready_for_reallocation"},
        )

    logger.info("Released asset ID %d from maintenance", asset_id)
    return asset


def list_maintenance(asset_id: int | None = None) -> list[MaintenanceRecord]:
    """Return maintenance records newest first, optionally for one asset."""
    filters = {"asset_master_id": asset_id} if asset_id is not None else None
    return record_store.query(
        MaintenanceRecord,
        filters,
        order_by=[desc(MaintenanceRecord.maintenance_date), desc(MaintenanceRecord.id)],
    )
