"""
Record store — the persistence contract every lifecycle service uses.

A thin layer over ``db.session`` that gives the workflows a uniform
create / read / query / update / delete vocabulary, typed
``NotFoundError`` lookups, a compare-and-set update for rows that a
background sweep may touch concurrently, and a single transaction
boundary.

Services stage their writes inside ``transaction()``; nothing in the
service layer commits outside it, so a workflow that touches several
tables either lands every write or none of them.
"""

import logging
from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import update as sa_update

from assetlife.exceptions import NotFoundError
from assetlife.extensions import db

logger = logging.getLogger(__name__)


def _entity_name(model) -> str:
    return model.__tablename__


# =========================================================================
# Transaction boundary
# =========================================================================


@contextmanager
def transaction() -> Iterator[Any]:
    """
    Run the enclosed writes as one unit of work.

    Commits when the block exits normally.  Any exception rolls back
    every write staged since the block started and is re-raised
    unchanged; the store does not retry.

    Usage::

        with record_store.transaction():
            record_store.create(Allocation, ...)
            record_store.update(Asset, asset.id, {"current_status": "allocated"})
    """
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.debug("Transaction rolled back", exc_info=True)
        raise


# =========================================================================
# CRUD
# =========================================================================


def create(model, **fields):
    """Stage a new row and flush it so it gets a primary key (no commit)."""
    record = model(**fields)
    db.session.add(record)
    db.session.flush()
    return record


def get_by_id(model, record_id: int):
    """
    Return the row with ``record_id``.

    Raises:
        NotFoundError: If no such row exists.
    """
    record = db.session.get(model, record_id) if record_id is not None else None
    if record is None:
        raise NotFoundError(
            f"{_entity_name(model)} ID {record_id} not found.",
            entity=_entity_name(model),
            entity_id=record_id,
        )
    return record


def query(model, filters: dict[str, Any] | None = None, order_by=None) -> list:
    """
    Return rows matching equality filters.

    Args:
        model:    Mapped class to query.
        filters:  Column name -> value.  A list, tuple or set value
                  becomes an ``IN`` test; ``None`` becomes ``IS NULL``.
        order_by: A column expression or a list of them.

    Returns:
        A list of rows (possibly empty).
    """
    stmt = db.select(model)
    for column_name, value in (filters or {}).items():
        column = getattr(model, column_name)
        if isinstance(value, (list, tuple, set, frozenset)):
            stmt = stmt.where(column.in_(list(value)))
        elif value is None:
            stmt = stmt.where(column.is_(None))
        else:
            stmt = stmt.where(column == value)
    if order_by is not None:
        if isinstance(order_by, (list, tuple)):
            stmt = stmt.order_by(*order_by)
        else:
            stmt = stmt.order_by(order_by)
    return list(db.session.execute(stmt).scalars().all())


def update(model, record_id: int, patch: dict[str, Any]):
    """
    Apply ``patch`` to a row and flush (no commit).

    Raises:
        NotFoundError: If no such row exists.
    """
    record = get_by_id(model, record_id)
    for column_name, value in patch.items():
        setattr(record, column_name, value)
    db.session.flush()
    return record


def compare_and_set(
    model,
    record_id: int,
    expected: dict[str, Any],
    patch: dict[str, Any],
) -> bool:
    """
    Update a row only if its current values match ``expected``.

    Issues a single ``UPDATE ... WHERE id = :id AND <expected>``
    statement, so the check and the write cannot interleave with
    another writer.  A tuple/list/set in ``expected`` means "any of".

    Returns:
        True if the row was updated, False if it did not match (or
        does not exist).
    """
    stmt = sa_update(model).where(model.id == record_id)
    for column_name, value in expected.items():
        column = getattr(model, column_name)
        if isinstance(value, (list, tuple, set, frozenset)):
            stmt = stmt.where(column.in_(list(value)))
        else:
            stmt = stmt.where(column == value)
    stmt = stmt.values(**patch).execution_options(synchronize_session=False)
    result = db.session.execute(stmt)
    changed = result.rowcount == 1

    # Refresh any identity-map copy so callers see the stored values.
    if changed:
        cached = db.session.get(model, record_id)
        if cached is not None:
            db.session.refresh(cached)
    return changed


def delete(model, record_id: int) -> None:
    """
    Delete a row (no commit).

    Raises:
        NotFoundError: If no such row exists.
    """
    record = get_by_id(model, record_id)
    db.session.delete(record)
    db.session.flush()
