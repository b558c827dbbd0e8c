"""
Depreciation schedule: one row per asset per monthly period.
"""

from assetlife.extensions import db


class DepreciationEntry(db.Model):
    """
    One period's depreciation for an asset.

    ``accumulated_depreciation`` and ``nbv`` are the running figures
    after this entry.  Rows for one asset are ordered by
    ``period_date`` and ``accumulated_depreciation`` never decreases
    along that order.  A fully depreciated asset still gets a
    zero-amount row per period so the schedule has no gaps.
    """

    __tablename__ = "depreciation_schedule"
    __table_args__ = (
        db.UniqueConstraint(
            "asset_master_id", "period_date", name="UQ_depreciation_asset_period"
        ),
        db.CheckConstraint(
            "depreciation_amount >= 0", name="CK_depreciation_amount"
        ),
        db.CheckConstraint("nbv >= 0", name="CK_depreciation_nbv"),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    asset_master_id = db.Column(
        db.Integer,
        db.ForeignKey("asset_master_data.id"),
        nullable=False,
        index=True,
    )
    period_date = db.Column(db.Date, nullable=False)
    depreciation_amount = db.Column(db.Numeric(18, 2), nullable=False)
    accumulated_depreciation = db.Column(db.Numeric(18, 2), nullable=False)
    nbv = db.Column(db.Numeric(18, 2), nullable=False)
    is_processed = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())

    # -- Relationships -----------------------------------------------------
    asset = db.relationship("Asset", back_populates="depreciation_entries")

    def __repr__(self) -> str:
        return (
            f"<DepreciationEntry asset={self.asset_master_id} "
            f"period={self.period_date} amount={self.depreciation_amount}>"
        )
