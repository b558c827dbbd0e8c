"""
Asset service — registration and descriptive upkeep of asset master data.

Creates assets with consistent opening financials, edits descriptive
fields, records location moves, and guards deletion.  Financial and
lifecycle fields (``cost_basis`` aside, which is fixed at
registration) are owned by the allocation, depreciation, maintenance
and disposal services; ``update_asset_details`` refuses them.

Also hosts the small guards shared by every lifecycle service:
``ensure_not_disposed`` and ``to_amount``.
"""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import desc, func

from assetlife.exceptions import ConflictError, ValidationError
from assetlife.extensions import db
from assetlife.models.allocation import Allocation
from assetlife.models.asset import (
    ASSET_TYPES,
    DEPRECIATION_METHODS,
    TERMINAL_STATUS,
    Asset,
    AssetLocationHistory,
)
from assetlife.models.depreciation import DepreciationEntry
from assetlife.models.disposal import DisposalRecord
from assetlife.models.maintenance import MaintenanceRecord
from assetlife.services import audit_service, record_store

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")

# Fields the presentation layer may edit after registration.
EDITABLE_FIELDS = frozenset(
    {
        "asset_name",
        "brand",
        "cost_center",
        "unit",
        "installation_scope",
        "notes",
        "quantity_supplied_previous",
        "quantity_requested",
        "quantity_per_contract",
    }
)

_QUANTITY_FIELDS = (
    "quantity_supplied_previous",
    "quantity_requested",
    "quantity_per_contract",
)


# =========================================================================
# Shared guards
# =========================================================================


def ensure_not_disposed(asset: Asset, action: str) -> None:
    """
    Reject any mutation of a disposed asset.

    Raises:
        ConflictError: If the asset is in the terminal ``disposed`` state.
    """
    if asset.current_status == TERMINAL_STATUS:
        logger.warning(
            "Rejected %s on disposed asset %s (id=%d)",
            action,
            asset.asset_code,
            asset.id,
        )
        raise ConflictError(
            f"Cannot {action}: asset {asset.asset_code} is disposed.",
            entity="asset_master_data",
            entity_id=asset.id,
            field="current_status",
            expected=f"not {TERMINAL_STATUS}",
            actual=asset.current_status,
        )


def to_amount(
    value: Any,
    field: str,
    entity: str = "asset_master_data",
    allow_none: bool = False,
) -> Decimal | None:
    """
    Coerce a money or quantity input to ``Decimal`` and require it be >= 0.

    Raises:
        ValidationError: If the value is missing, not a number, or negative.
    """
    if value is None or value == "":
        if allow_none:
            return None
        raise ValidationError(
            f"{field} is required.", entity=entity, field=field, expected=">= 0"
        )
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(
            f"{field} must be a valid number.",
            entity=entity,
            field=field,
            expected="number",
            actual=value,
        ) from exc
    if not amount.is_finite() or amount < 0:
        raise ValidationError(
            f"{field} must not be negative.",
            entity=entity,
            field=field,
            expected=">= 0",
            actual=value,
        )
    return amount


def _to_months(value: Any, field: str) -> int | None:
    """Coerce a month count to a positive ``int``; None stays None."""
    if value is None:
        return None
    try:
        months = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(
            f"{field} must be a whole number of months.",
            entity="asset_master_data",
            field=field,
            expected="> 0",
            actual=value,
        ) from exc
    if months <= 0:
        raise ValidationError(
            f"{field} must be a positive number of months.",
            entity="asset_master_data",
            field=field,
            expected="> 0",
            actual=value,
        )
    return months


def _require_choice(value: Any, choices: tuple[str, ...], field: str) -> None:
    if value not in choices:
        raise ValidationError(
            f"{field} must be one of: {', '.join(choices)}.",
            entity="asset_master_data",
            field=field,
            expected=list(choices),
            actual=value,
        )


def _snapshot(asset: Asset) -> dict[str, Any]:
    """Audit representation of an asset."""
    return {
        "asset_code": asset.asset_code,
        "asset_name": asset.asset_name,
        "asset_type": asset.asset_type,
        "cost_basis": asset.cost_basis,
        "accumulated_depreciation": asset.accumulated_depreciation,
        "nbv": asset.nbv,
        "depreciation_method": asset.depreciation_method,
        "useful_life_months": asset.useful_life_months,
        "current_status": asset.current_status,
        "current_location": asset.current_location,
    }


# =========================================================================
# Queries
# =========================================================================


def get_asset(asset_id: int) -> Asset:
    """
    Return an asset by primary key.

    Raises:
        NotFoundError: If the asset does not exist.
    """
    return record_store.get_by_id(Asset, asset_id)


def get_asset_by_code(asset_code: str) -> Asset | None:
    """Return an asset by business code, or None."""
    return db.session.execute(
        db.select(Asset).where(Asset.asset_code == asset_code)
    ).scalar_one_or_none()


def list_assets(
    status: str | list[str] | None = None,
    asset_type: str | None = None,
) -> list[Asset]:
    """Return assets ordered by code, optionally filtered."""
    filters: dict[str, Any] = {}
    if status is not None:
        filters["current_status"] = status
    if asset_type is not None:
        filters["asset_type"] = asset_type
    return record_store.query(Asset, filters, order_by=Asset.asset_code)


def get_location_history(asset_id: int) -> list[AssetLocationHistory]:
    """Return an asset's location moves, newest first."""
    record_store.get_by_id(Asset, asset_id)
    return record_store.query(
        AssetLocationHistory,
        {"asset_master_id": asset_id},
        order_by=[desc(AssetLocationHistory.moved_at), desc(AssetLocationHistory.id)],
    )


# =========================================================================
# Registration and upkeep
# =========================================================================


def register_asset(
    asset_code: str,
    asset_name: str,
    asset_type: str,
    cost_basis: Decimal | int | str,
    depreciation_method: str | None = None,
    useful_life_months: int | None = None,
    amortization_period_months: int | None = None,
    total_estimated_units: Decimal | None = None,
    activation_date: date | None = None,
    current_location: str | None = None,
    brand: str | None = None,
    cost_center: str | None = None,
    unit: str | None = None,
    installation_scope: str | None = None,
    notes: str | None = None,
    quantity_supplied_previous: Decimal | None = None,
    quantity_requested: Decimal | None = None,
    quantity_per_contract: Decimal | None = None,
    user_id: str | None = None,
) -> Asset:
    """
    Register a new asset with opening financials.

    The asset starts with no depreciation (``nbv == cost_basis``), no
    maintenance cost, and status ``in_stock``, or ``active`` when an
    activation date is given.

    Returns:
        The newly created Asset.

    Raises:
        ValidationError: On a missing code/name, unknown enumeration
                         value, negative amount or non-positive life.
        ConflictError:   If ``asset_code`` is already registered.
    """
    asset_code = (asset_code or "").strip()
    asset_name = (asset_name or "").strip()
    if not asset_code:
        raise ValidationError(
            "Asset code is required.", entity="asset_master_data", field="asset_code"
        )
    if not asset_name:
        raise ValidationError(
            "Asset name is required.", entity="asset_master_data", field="asset_name"
        )
    _require_choice(asset_type, ASSET_TYPES, "asset_type")
    if depreciation_method is not None:
        _require_choice(depreciation_method, DEPRECIATION_METHODS, "depreciation_method")
    useful_life_months = _to_months(useful_life_months, "useful_life_months")
    amortization_period_months = _to_months(
        amortization_period_months, "amortization_period_months"
    )

    cost = to_amount(cost_basis, "cost_basis")
    units = to_amount(total_estimated_units, "total_estimated_units", allow_none=True)
    quantities = {
        name: to_amount(value, name, allow_none=True)
        for name, value in zip(
            _QUANTITY_FIELDS,
            (quantity_supplied_previous, quantity_requested, quantity_per_contract),
        )
    }

    if get_asset_by_code(asset_code) is not None:
        raise ConflictError(
            f"Asset code '{asset_code}' is already registered.",
            entity="asset_master_data",
            field="asset_code",
            actual=asset_code,
        )

    with record_store.transaction():
        asset = record_store.create(
            Asset,
            asset_code=asset_code,
            asset_name=asset_name,
            asset_type=asset_type,
            cost_basis=cost,
            accumulated_depreciation=ZERO,
            nbv=cost,
            depreciation_method=depreciation_method,
            useful_life_months=useful_life_months,
            amortization_period_months=amortization_period_months,
            total_estimated_units=units,
            activation_date=activation_date,
            current_status="active" if activation_date else "in_stock",
            total_maintenance_cost=ZERO,
            current_location=current_location,
            brand=brand,
            cost_center=cost_center,
            unit=unit,
            installation_scope=installation_scope,
            notes=notes,
            created_by=user_id,
            **quantities,
        )
        if current_location:
            record_store.create(
                AssetLocationHistory,
                asset_master_id=asset.id,
                location=current_location,
                moved_by=user_id,
                notes="Initial location",
            )
        audit_service.log_change(
            user_id=user_id,
            action_type="CREATE",
            entity_type="asset_master_data",
            entity_id=asset.id,
            new_value=_snapshot(asset),
        )

    logger.info("Registered asset %s (id=%d)", asset_code, asset.id)
    return asset


def update_asset_details(
    asset_id: int,
    user_id: str | None = None,
    **fields: Any,
) -> Asset:
    """
    Update descriptive fields of an asset.

    Only ``EDITABLE_FIELDS`` are accepted; financial and lifecycle
    fields are changed exclusively through their workflows.

    Raises:
        NotFoundError:   If the asset does not exist.
        ValidationError: If a non-editable field is supplied.
        ConflictError:   If the asset is disposed.
    """
    rejected = sorted(set(fields) - EDITABLE_FIELDS)
    if rejected:
        raise ValidationError(
            f"Fields cannot be edited directly: {', '.join(rejected)}.",
            entity="asset_master_data",
            entity_id=asset_id,
            field=rejected[0],
            expected=sorted(EDITABLE_FIELDS),
        )
    if "asset_name" in fields and not (fields["asset_name"] or "").strip():
        raise ValidationError(
            "Asset name is required.",
            entity="asset_master_data",
            entity_id=asset_id,
            field="asset_name",
        )
    for name in _QUANTITY_FIELDS:
        if name in fields:
            fields[name] = to_amount(fields[name], name, allow_none=True)

    asset = record_store.get_by_id(Asset, asset_id)
    ensure_not_disposed(asset, "edit asset")

    previous = {name: getattr(asset, name) for name in fields}
    with record_store.transaction():
        record_store.update(
            Asset, asset_id, {**fields, "updated_at": datetime.now(timezone.utc)}
        )
        audit_service.log_change(
            user_id=user_id,
            action_type="UPDATE",
            entity_type="asset_master_data",
            entity_id=asset_id,
            previous_value=previous,
            new_value=fields,
        )

    logger.info("Updated asset ID %d fields: %s", asset_id, ", ".join(sorted(fields)))
    return asset


def move_asset(
    asset_id: int,
    location: str,
    moved_by: str | None = None,
    notes: str | None = None,
) -> AssetLocationHistory:
    """
    Record that an asset moved to ``location``.

    Raises:
        NotFoundError:   If the asset does not exist.
        ValidationError: If ``location`` is blank.
        ConflictError:   If the asset is disposed.
    """
    location = (location or "").strip()
    if not location:
        raise ValidationError(
            "Location is required.",
            entity="asset_location_history",
            field="location",
        )
    asset = record_store.get_by_id(Asset, asset_id)
    ensure_not_disposed(asset, "move asset")

    previous_location = asset.current_location
    with record_store.transaction():
        entry = record_store.create(
            AssetLocationHistory,
            asset_master_id=asset_id,
            location=location,
            moved_by=moved_by,
            notes=notes,
        )
        record_store.update(
            Asset,
            asset_id,
            {"current_location": location, "updated_at": datetime.now(timezone.utc)},
        )
        audit_service.log_change(
            user_id=moved_by,
            action_type="MOVE",
            entity_type="asset_master_data",
            entity_id=asset_id,
            previous_value={"current_location": previous_location},
            new_value={"current_location": location},
        )

    logger.info("Moved asset ID %d to %s", asset_id, location)
    return entry


def delete_asset(asset_id: int, user_id: str | None = None) -> None:
    """
    Delete an asset that has no lifecycle history.

    Raises:
        NotFoundError: If the asset does not exist.
        ConflictError: If any allocation, maintenance, depreciation
                       or disposal record references it.

    Location history rows are removed together with the asset.
    """
    asset = record_store.get_by_id(Asset, asset_id)

    child_counts = {
        model.__tablename__: db.session.execute(
            db.select(func.count(model.id)).where(model.asset_master_id == asset_id)
        ).scalar_one()
        for model in (
            Allocation,
            MaintenanceRecord,
            DepreciationEntry,
            DisposalRecord,
        )
    }
    referencing = {name: count for name, count in child_counts.items() if count}
    if referencing:
        raise ConflictError(
            f"Asset {asset.asset_code} has lifecycle records and cannot be "
            f"deleted ({', '.join(f'{k}={v}' for k, v in referencing.items())}).",
            entity="asset_master_data",
            entity_id=asset_id,
            actual=referencing,
        )

    previous = _snapshot(asset)
    with record_store.transaction():
        for move in record_store.query(
            AssetLocationHistory, {"asset_master_id": asset_id}
        ):
            db.session.delete(move)
        record_store.delete(Asset, asset_id)
        audit_service.log_change(
            user_id=user_id,
            action_type="DELETE",
            entity_type="asset_master_data",
            entity_id=asset_id,
            previous_value=previous,
        )

    logger.info("Deleted asset %s (id=%d)", previous["asset_code"], asset_id)
