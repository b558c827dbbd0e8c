"""
Asset master data and location history.

``Asset`` is the root of the lifecycle: allocations, maintenance
records, depreciation entries and the disposal record all point at it.
Its financial fields (``accumulated_depreciation``, ``nbv``,
``total_maintenance_cost``) and ``current_status`` are written only by
the lifecycle services, never directly by the presentation layer.
"""

from decimal import Decimal

from assetlife.extensions import db

# -- Enumerations ----------------------------------------------------------
ASSET_TYPES = ("equipment", "tools", "materials")

DEPRECIATION_METHODS = (
    "straight_line",
    "declining_balance",
    "units_of_production",
)

ASSET_STATUSES = (
    "in_stock",
    "active",
    "allocated",
    "under_maintenance",
    "ready_for_reallocation",
    "disposed",
)

# Terminal lifecycle state: nothing may change an asset after this.
TERMINAL_STATUS = "disposed"


def in_clause(column: str, values: tuple[str, ...]) -> str:
    """Render a SQL ``column IN (...)`` fragment for CHECK constraints."""
    quoted = ", ".join(f"'{value}'" for value in values)
    return f"{column} IN ({quoted})"


class Asset(db.Model):
    """
    A depreciable or consumable item under lifecycle control.

    ``asset_code`` is the business identifier shown to users; ``id`` is
    the internal key referenced by every child record.

    ``nbv`` is stored (not computed on read) so list screens can sort
    and total it, and is kept equal to ``cost_basis -
    accumulated_depreciation`` by the depreciation service.
    """

    __tablename__ = "asset_master_data"
    __table_args__ = (
        db.CheckConstraint(in_clause("asset_type", ASSET_TYPES), name="CK_asset_type"),
        db.CheckConstraint(
            in_clause("current_status", ASSET_STATUSES), name="CK_asset_status"
        ),
        db.CheckConstraint(
            "depreciation_method IS NULL OR "
            + in_clause("depreciation_method", DEPRECIATION_METHODS),
            name="CK_asset_depreciation_method",
        ),
        db.CheckConstraint("cost_basis >= 0", name="CK_asset_cost_basis"),
        db.CheckConstraint(
            "accumulated_depreciation >= 0 AND accumulated_depreciation <= cost_basis",
            name="CK_asset_accumulated_depreciation",
        ),
        db.CheckConstraint("nbv >= 0", name="CK_asset_nbv"),
        db.CheckConstraint(
            "total_maintenance_cost >= 0", name="CK_asset_maintenance_cost"
        ),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    asset_code = db.Column(db.String(50), unique=True, nullable=False)
    asset_name = db.Column(db.String(200), nullable=False)
    asset_type = db.Column(db.String(20), nullable=False)
    brand = db.Column(db.String(100), nullable=True)
    cost_center = db.Column(db.String(100), nullable=True)
    unit = db.Column(db.String(20), nullable=True)
    installation_scope = db.Column(db.String(200), nullable=True)
    current_location = db.Column(db.String(200), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    activation_date = db.Column(db.Date, nullable=True)

    # -- Financial ---------------------------------------------------------
    cost_basis = db.Column(db.Numeric(18, 2), nullable=False, default=Decimal("0"))
    accumulated_depreciation = db.Column(
        db.Numeric(18, 2), nullable=False, default=Decimal("0")
    )
    nbv = db.Column(db.Numeric(18, 2), nullable=False, default=Decimal("0"))
    depreciation_method = db.Column(db.String(30), nullable=True)
    useful_life_months = db.Column(db.Integer, nullable=True)
    amortization_period_months = db.Column(db.Integer, nullable=True)
    # Lifetime usage estimate for units-of-production depreciation.
    total_estimated_units = db.Column(db.Numeric(18, 2), nullable=True)

    # -- Lifecycle and rollups ---------------------------------------------
    current_status = db.Column(
        db.String(30), nullable=False, default="in_stock", index=True
    )
    total_maintenance_cost = db.Column(
        db.Numeric(18, 2), nullable=False, default=Decimal("0")
    )

    # -- Quantity tracking (material-type assets) --------------------------
    quantity_supplied_previous = db.Column(db.Numeric(18, 2), nullable=True)
    quantity_requested = db.Column(db.Numeric(18, 2), nullable=True)
    quantity_per_contract = db.Column(db.Numeric(18, 2), nullable=True)

    created_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())

    # -- Relationships -----------------------------------------------------
    allocations = db.relationship(
        "Allocation", back_populates="asset", lazy="dynamic"
    )
    maintenance_records = db.relationship(
        "MaintenanceRecord", back_populates="asset", lazy="dynamic"
    )
    depreciation_entries = db.relationship(
        "DepreciationEntry", back_populates="asset", lazy="dynamic"
    )
    disposal = db.relationship(
        "DisposalRecord", back_populates="asset", uselist=False
    )
    location_history = db.relationship(
        "AssetLocationHistory", back_populates="asset", lazy="dynamic"
    )

    # -- Derived quantity figures ------------------------------------------

    @property
    def quantity_cumulative(self) -> Decimal:
        """Quantity supplied so far: previous deliveries plus this request."""
        return (self.quantity_supplied_previous or Decimal("0")) + (
            self.quantity_requested or Decimal("0")
        )

    @property
    def quantity_remaining(self) -> Decimal | None:
        """Quantity still owed under the contract, or None if untracked."""
        if self.quantity_per_contract is None:
            return None
        return self.quantity_per_contract - self.quantity_cumulative

    @property
    def quantity_percentage(self) -> Decimal | None:
        """Cumulative quantity as a 0-100 share of the contract quantity."""
        if not self.quantity_per_contract:
            return None
        return (
            self.quantity_cumulative / self.quantity_per_contract * 100
        ).quantize(Decimal("0.01"))

    @property
    def is_disposed(self) -> bool:
        return self.current_status == TERMINAL_STATUS

    def __repr__(self) -> str:
        return f"<Asset {self.asset_code} status={self.current_status}>"


class AssetLocationHistory(db.Model):
    """
    Append-only log of where an asset has been.

    The newest row matches ``Asset.current_location``.
    """

    __tablename__ = "asset_location_history"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    asset_master_id = db.Column(
        db.Integer,
        db.ForeignKey("asset_master_data.id"),
        nullable=False,
        index=True,
    )
    location = db.Column(db.String(200), nullable=False)
    moved_by = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    moved_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())

    # -- Relationships -----------------------------------------------------
    asset = db.relationship("Asset", back_populates="location_history")

    def __repr__(self) -> str:
        return f"<AssetLocationHistory asset={self.asset_master_id} at={self.location}>"
