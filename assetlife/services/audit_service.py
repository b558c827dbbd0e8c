"""
Audit service — records all lifecycle changes and queries audit logs.

Every mutation made by the lifecycle services passes through this
module so that a complete audit trail is maintained.  ``log_change``
is called inside the caller's transaction, so the audit row commits
or rolls back together with the change it describes.
"""

import json
import logging
from datetime import datetime
from typing import Any

from sqlalchemy import desc

from assetlife.extensions import db
from assetlife.models.audit import AuditLog

logger = logging.getLogger(__name__)


# -- Write audit entries ---------------------------------------------------

def log_change(
    user_id: str | None,
    action_type: str,
    entity_type: str,
    entity_id: int | None,
    previous_value: dict[str, Any] | None = None,
    new_value: dict[str, Any] | None = None,
) -> AuditLog:
    """
    Record a data change in the audit log (no commit).

    Args:
        user_id:        Id of the person who made the change, or None for
                        system actions (e.g., the overdue sweep).
        action_type:    One of CREATE, UPDATE, DELETE, ALLOCATE, RETURN,
                        OVERDUE, DEPRECIATE, DISPOSE, MAINTAIN, MOVE.
        entity_type:    Table name of the affected record
                        (e.g., 'asset_allocation').
        entity_id:      Primary key of the affected record.
        previous_value: Dict of the record state before the change.
        new_value:      Dict of the record state after the change.

    Returns:
        The newly created AuditLog record.
    """
    entry = AuditLog(
        user_id=user_id,
        action_type=action_type,
        entity_type=entity_type,
        entity_id=entity_id,
        previous_value=(
            json.dumps(previous_value, default=str) if previous_value else None
        ),
        new_value=json.dumps(new_value, default=str) if new_value else None,
    )
    db.session.add(entry)
    db.session.flush()  # Ensure the entry gets an ID immediately.

    logger.info(
        "Audit: %s %s:%s by user %s",
        action_type,
        entity_type,
        entity_id,
        user_id,
    )
    return entry


# -- Query audit logs ------------------------------------------------------

def get_audit_logs(
    page: int = 1,
    per_page: int = 50,
    user_id: str | None = None,
    action_type: str | None = None,
    entity_type: str | None = None,
    entity_id: int | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
):
    """
    Query audit logs with optional filters and pagination.

    Args:
        page:        Page number (1-indexed).
        per_page:    Records per page.
        user_id:     Filter by the person who made the change.
        action_type: Filter by action (ALLOCATE, DISPOSE, etc.).
        entity_type: Filter by table (e.g., 'asset_master_data').
        entity_id:   Filter by the affected record's id.
        start_date:  Include only entries on or after this datetime.
        end_date:    Include only entries on or before this datetime.

    Returns:
        A Flask-SQLAlchemy pagination object with ``.items``, ``.pages``,
        ``.total``, etc.
    """
    query = db.select(AuditLog).order_by(desc(AuditLog.created_at), desc(AuditLog.id))

    # Apply optional filters.
    if user_id is not None:
        query = query.where(AuditLog.user_id == user_id)
    if action_type:
        query = query.where(AuditLog.action_type == action_type)
    if entity_type:
        query = query.where(AuditLog.entity_type == entity_type)
    if entity_id is not None:
        query = query.where(AuditLog.entity_id == entity_id)
    if start_date:
        query = query.where(AuditLog.created_at >= start_date)
    if end_date:
        query = query.where(AuditLog.created_at <= end_date)

    return db.paginate(query, page=page, per_page=per_page, error_out=False)


def get_distinct_entity_types() -> list[str]:
    """Return a sorted list of distinct entity_type values in the audit log."""
    rows = (
        db.session.query(AuditLog.entity_type)
        .distinct()
        .order_by(AuditLog.entity_type)
        .all()
    )
    return [row[0] for row in rows]
