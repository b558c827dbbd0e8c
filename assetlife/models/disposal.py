"""
Disposal record: the terminal event of an asset's lifecycle.
"""

from assetlife.extensions import db
from assetlife.models.asset import in_clause

DISPOSAL_REASONS = ("obsolete", "damaged", "sold", "donated", "lost", "other")


class DisposalRecord(db.Model):
    """
    Written exactly once per asset, together with the switch of the
    asset to ``disposed``.  Immutable afterwards.

    ``gain_loss`` is signed: positive is a gain on disposal.
    """

    __tablename__ = "asset_disposal"
    __table_args__ = (
        db.CheckConstraint(
            in_clause("disposal_reason", DISPOSAL_REASONS),
            name="CK_disposal_reason",
        ),
        db.CheckConstraint("sale_price >= 0", name="CK_disposal_sale_price"),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    asset_master_id = db.Column(
        db.Integer,
        db.ForeignKey("asset_master_data.id"),
        nullable=False,
        unique=True,
    )
    disposal_date = db.Column(db.Date, nullable=False)
    disposal_reason = db.Column(db.String(20), nullable=False)
    nbv_at_disposal = db.Column(db.Numeric(18, 2), nullable=False)
    sale_price = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    gain_loss = db.Column(db.Numeric(18, 2), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    approved_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())

    # -- Relationships -----------------------------------------------------
    asset = db.relationship("Asset", back_populates="disposal")

    def __repr__(self) -> str:
        return (
            f"<DisposalRecord asset={self.asset_master_id} "
            f"reason={self.disposal_reason} gain_loss={self.gain_loss}>"
        )
