"""
Allocation model: one loan of an asset to a holder.

An allocation is created ``active``, may be flipped to ``overdue`` by
the reconciliation sweep, and ends ``returned``.  Once returned, the
return date, condition and reusability percentage are fixed.
"""

from assetlife.extensions import db
from assetlife.models.asset import in_clause

ALLOCATION_STATUSES = ("active", "overdue", "returned")

# Statuses in which an allocation still holds its asset.
OPEN_ALLOCATION_STATUSES = ("active", "overdue")

_OPEN_PREDICATE = in_clause("status", OPEN_ALLOCATION_STATUSES)


class Allocation(db.Model):
    """
    Assignment of an asset to a holder for a stated purpose.

    The partial unique index ``UQ_allocation_open_per_asset`` allows at
    most one open (active or overdue) allocation per asset, so a
    double allocation fails in the database even if a caller skips the
    service-level status check.
    """

    __tablename__ = "asset_allocation"
    __table_args__ = (
        db.CheckConstraint(
            in_clause("status", ALLOCATION_STATUSES), name="CK_allocation_status"
        ),
        db.CheckConstraint(
            "reusability_percentage IS NULL OR "
            "(reusability_percentage >= 0 AND reusability_percentage <= 100)",
            name="CK_allocation_reusability",
        ),
        db.Index(
            "UQ_allocation_open_per_asset",
            "asset_master_id",
            unique=True,
            postgresql_where=db.text(_OPEN_PREDICATE),
            sqlite_where=db.text(_OPEN_PREDICATE),
        ),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    asset_master_id = db.Column(
        db.Integer,
        db.ForeignKey("asset_master_data.id"),
        nullable=False,
        index=True,
    )
    allocated_to = db.Column(db.String(64), nullable=False, index=True)
    allocated_by = db.Column(db.String(64), nullable=True)
    purpose = db.Column(db.String(500), nullable=False)
    project_id = db.Column(db.String(64), nullable=True)
    allocation_date = db.Column(db.Date, nullable=False)
    expected_return_date = db.Column(db.Date, nullable=True)
    actual_return_date = db.Column(db.DateTime, nullable=True)
    status = db.Column(db.String(20), nullable=False, default="active", index=True)
    return_condition = db.Column(db.Text, nullable=True)
    reusability_percentage = db.Column(db.Numeric(5, 2), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())

    # -- Relationships -----------------------------------------------------
    asset = db.relationship("Asset", back_populates="allocations")

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_ALLOCATION_STATUSES

    def __repr__(self) -> str:
        return (
            f"<Allocation asset={self.asset_master_id} "
            f"to={self.allocated_to} status={self.status}>"
        )
