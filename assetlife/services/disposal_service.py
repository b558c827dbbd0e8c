"""
Disposal service — retiring assets for good.

Disposal snapshots the asset's NBV, records the sale price and the
signed gain or loss (``sale_price - nbv_at_disposal``), and moves the
asset to the terminal ``disposed`` status in the same transaction.
After that no allocation, maintenance or depreciation is accepted.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError

from assetlife.exceptions import ConflictError, ValidationError
from assetlife.models.asset import TERMINAL_STATUS, Asset
from assetlife.models.disposal import DISPOSAL_REASONS, DisposalRecord
from assetlife.services import audit_service, record_store, status_engine
from assetlife.services.allocation_service import get_open_allocation
from assetlife.services.asset_service import ensure_not_disposed, to_amount

logger = logging.getLogger(__name__)


@dataclass
class DisposalQuote:
    """What a disposal would record, without writing it."""

    asset_master_id: int
    nbv_at_disposal: Decimal
    sale_price: Decimal
    gain_loss: Decimal


def quote_disposal(asset_id: int, sale_price: Decimal | int | str = 0) -> DisposalQuote:
    """
    Preview the gain or loss of disposing an asset at ``sale_price``.

    Raises:
        NotFoundError:   If the asset does not exist.
        ValidationError: If ``sale_price`` is negative or not a number.
    """
    price = to_amount(sale_price, "sale_price", entity="asset_disposal")
    asset = record_store.get_by_id(Asset, asset_id)
    nbv = Decimal(asset.nbv or 0)
    return DisposalQuote(
        asset_master_id=asset_id,
        nbv_at_disposal=nbv,
        sale_price=price,
        gain_loss=price - nbv,
    )


def dispose(
    asset_id: int,
    reason: str,
    sale_price: Decimal | int | str | None = 0,
    notes: str | None = None,
    approver: str | None = None,
    disposal_date: date | None = None,
) -> DisposalRecord:
    """
    Dispose of an asset.

    Args:
        asset_id:      Internal id of the asset.
        reason:        One of ``DISPOSAL_REASONS``.
        sale_price:    Proceeds, default 0.
        notes:         Free text.
        approver:      Employee id of the approver.
        disposal_date: Defaults to today.

    Returns:
        The DisposalRecord.

    Raises:
        ValidationError: On an unknown reason or negative sale price.
        NotFoundError:   If the asset does not exist.
        ConflictError:   If the asset is already disposed or is still
                         allocated.
    """
    if reason not in DISPOSAL_REASONS:
        raise ValidationError(
            f"disposal_reason must be one of: {', '.join(DISPOSAL_REASONS)}.",
            entity="asset_disposal",
            field="disposal_reason",
            expected=list(DISPOSAL_REASONS),
            actual=reason,
        )
    price = to_amount(
        0 if sale_price in (None, "") else sale_price,
        "sale_price",
        entity="asset_disposal",
    )

    asset = record_store.get_by_id(Asset, asset_id)
    ensure_not_disposed(asset, "dispose asset")
    if get_open_allocation(asset_id) is not None:
        raise ConflictError(
            f"Asset {asset.asset_code} is allocated; record its return before "
            "disposing of it.",
            entity="asset_master_data",
            entity_id=asset_id,
            field="current_status",
            actual=asset.current_status,
        )

    nbv_at_disposal = Decimal(asset.nbv or 0)
    gain_loss = price - nbv_at_disposal
    previous_status = asset.current_status
    disposal_date = disposal_date or date.today()

    try:
        with record_store.transaction():
            record = record_store.create(
                DisposalRecord,
                asset_master_id=asset_id,
                disposal_date=disposal_date,
                disposal_reason=reason,
                nbv_at_disposal=nbv_at_disposal,
                sale_price=price,
                gain_loss=gain_loss,
                notes=notes,
                approved_by=approver,
            )
            new_status = status_engine.compute_status(asset, latest_disposal=record)
            record_store.update(
                Asset,
                asset_id,
                {"current_status": new_status, "updated_at": datetime.now(timezone.utc)},
            )
            audit_service.log_change(
                user_id=approver,
                action_type="DISPOSE",
                entity_type="asset_disposal",
                entity_id=record.id,
                previous_value={"asset_status": previous_status},
                new_value={
                    "asset_master_id": asset_id,
                    "disposal_reason": reason,
                    "nbv_at_disposal": nbv_at_disposal,
                    "sale_price": price,
                    "gain_loss": gain_loss,
                    "asset_status": new_status,
                },
            )
    except IntegrityError as exc:
        # A concurrent disposal landed first (unique asset_master_id).
        raise ConflictError(
            f"Asset {asset_id} has already been disposed.",
            entity="asset_disposal",
            field="asset_master_id",
            expected=f"not {TERMINAL_STATUS}",
            actual=TERMINAL_STATUS,
        ) from exc

    logger.info(
        "Disposed asset ID %d (%s): nbv %s, sale %s, gain/loss %s",
        asset_id,
        reason,
        nbv_at_disposal,
        price,
        gain_loss,
    )
    return record


def get_disposal(asset_id: int) -> DisposalRecord | None:
    """Return the asset's disposal record, or None."""
    rows = record_store.query(DisposalRecord, {"asset_master_id": asset_id})
    return rows[0] if rows else None


def list_disposals() -> list[DisposalRecord]:
    """Return all disposal records, newest first."""
    return record_store.query(
        DisposalRecord,
        order_by=[desc(DisposalRecord.disposal_date), desc(DisposalRecord.id)],
    )
