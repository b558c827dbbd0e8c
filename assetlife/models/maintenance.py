"""
Maintenance records: append-only service history per asset.

Each insert adds its ``cost`` to ``Asset.total_maintenance_cost``;
records are never updated or deleted in normal operation.
"""

from assetlife.extensions import db
from assetlife.models.asset import in_clause

MAINTENANCE_TYPES = ("preventive", "corrective", "inspection", "upgrade")


class MaintenanceRecord(db.Model):
    """One service event (repair, inspection, upgrade) against an asset."""

    __tablename__ = "maintenance_record"
    __table_args__ = (
        db.CheckConstraint(
            in_clause("maintenance_type", MAINTENANCE_TYPES),
            name="CK_maintenance_type",
        ),
        db.CheckConstraint("cost >= 0", name="CK_maintenance_cost"),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    asset_master_id = db.Column(
        db.Integer,
        db.ForeignKey("asset_master_data.id"),
        nullable=False,
        index=True,
    )
    maintenance_type = db.Column(db.String(20), nullable=False)
    maintenance_date = db.Column(db.Date, nullable=False)
    description = db.Column(db.Text, nullable=True)
    cost = db.Column(db.Numeric(18, 2), nullable=False)
    vendor = db.Column(db.String(200), nullable=True)
    performed_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())

    # -- Relationships -----------------------------------------------------
    asset = db.relationship("Asset", back_populates="maintenance_records")

    def __repr__(self) -> str:
        return (
            f"<MaintenanceRecord asset={self.asset_master_id} "
            f"{self.maintenance_type} cost={self.cost}>"
        )
