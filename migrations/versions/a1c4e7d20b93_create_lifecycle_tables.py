"""Create asset lifecycle tables

Revision ID: a1c4e7d20b93
Revises:
Create Date: 2026-10-19 09:12:44.301582

"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "a1c4e7d20b93"
down_revision = None
branch_labels = None
depends_on = None


_OPEN_ALLOCATION = "status IN ('active', 'overdue')"


def upgrade():
    """Create the asset register, its child ledgers and the audit log."""
    op.create_table(
        "asset_master_data",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("asset_code", sa.String(length=50), nullable=False),
        sa.Column("asset_name", sa.String(length=200), nullable=False),
        sa.Column("asset_type", sa.String(length=20), nullable=False),
        sa.Column("brand", sa.String(length=100), nullable=True),
        sa.Column("cost_center", sa.String(length=100), nullable=True),
        sa.Column("unit", sa.String(length=20), nullable=True),
        sa.Column("installation_scope", sa.String(length=200), nullable=True),
        sa.Column("current_location", sa.String(length=200), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("activation_date", sa.Date(), nullable=True),
        sa.Column("cost_basis", sa.Numeric(18, 2), nullable=False),
        sa.Column("accumulated_depreciation", sa.Numeric(18, 2), nullable=False),
        sa.Column("nbv", sa.Numeric(18, 2), nullable=False),
        sa.Column("depreciation_method", sa.String(length=30), nullable=True),
        sa.Column("useful_life_months", sa.Integer(), nullable=True),
        sa.Column("amortization_period_months", sa.Integer(), nullable=True),
        sa.Column("total_estimated_units", sa.Numeric(18, 2), nullable=True),
        sa.Column("current_status", sa.String(length=30), nullable=False),
        sa.Column("total_maintenance_cost", sa.Numeric(18, 2), nullable=False),
        sa.Column("quantity_supplied_previous", sa.Numeric(18, 2), nullable=True),
        sa.Column("quantity_requested", sa.Numeric(18, 2), nullable=True),
        sa.Column("quantity_per_contract", sa.Numeric(18, 2), nullable=True),
        sa.Column("created_by", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(
            "asset_type IN ('equipment', 'tools', 'materials')", name="CK_asset_type"
        ),
        sa.CheckConstraint(
            "current_status IN ('in_stock', 'active', 'allocated', "
            "'under_maintenance', 'ready_for_reallocation', 'disposed')",
            name="CK_asset_status",
        ),
        sa.CheckConstraint(
            "depreciation_method IS NULL OR depreciation_method IN "
            "('straight_line', 'declining_balance', 'units_of_production')",
            name="CK_asset_depreciation_method",
        ),
        sa.CheckConstraint("cost_basis >= 0", name="CK_asset_cost_basis"),
        sa.CheckConstraint(
            "accumulated_depreciation >= 0 AND accumulated_depreciation <= cost_basis",
            name="CK_asset_accumulated_depreciation",
        ),
        sa.CheckConstraint("nbv >= 0", name="CK_asset_nbv"),
        sa.CheckConstraint(
            "total_maintenance_cost >= 0", name="CK_asset_maintenance_cost"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("asset_code"),
    )
    op.create_index(
        "ix_asset_master_data_current_status", "asset_master_data", ["current_status"]
    )

    op.create_table(
        "asset_location_history",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("asset_master_id", sa.Integer(), nullable=False),
        sa.Column("location", sa.String(length=200), nullable=False),
        sa.Column("moved_by", sa.String(length=64), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("moved_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["asset_master_id"], ["asset_master_data.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_asset_location_history_asset_master_id",
        "asset_location_history",
        ["asset_master_id"],
    )

    op.create_table(
        "asset_allocation",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("asset_master_id", sa.Integer(), nullable=False),
        sa.Column("allocated_to", sa.String(length=64), nullable=False),
        sa.Column("allocated_by", sa.String(length=64), nullable=True),
        sa.Column("purpose", sa.String(length=500), nullable=False),
        sa.Column("project_id", sa.String(length=64), nullable=True),
        sa.Column("allocation_date", sa.Date(), nullable=False),
        sa.Column("expected_return_date", sa.Date(), nullable=True),
        sa.Column("actual_return_date", sa.DateTime(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("return_condition", sa.Text(), nullable=True),
        sa.Column("reusability_percentage", sa.Numeric(5, 2), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(
            "status IN ('active', 'overdue', 'returned')", name="CK_allocation_status"
        ),
        sa.CheckConstraint(
            "reusability_percentage IS NULL OR "
            "(reusability_percentage >= 0 AND reusability_percentage <= 100)",
            name="CK_allocation_reusability",
        ),
        sa.ForeignKeyConstraint(["asset_master_id"], ["asset_master_data.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_asset_allocation_asset_master_id", "asset_allocation", ["asset_master_id"]
    )
    op.create_index(
        "ix_asset_allocation_allocated_to", "asset_allocation", ["allocated_to"]
    )
    op.create_index("ix_asset_allocation_status", "asset_allocation", ["status"])
    # At most one active or overdue allocation per asset.
    op.create_index(
        "UQ_allocation_open_per_asset",
        "asset_allocation",
        ["asset_master_id"],
        unique=True,
        postgresql_where=sa.text(_OPEN_ALLOCATION),
        sqlite_where=sa.text(_OPEN_ALLOCATION),
    )

    op.create_table(
        "maintenance_record",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("asset_master_id", sa.Integer(), nullable=False),
        sa.Column("maintenance_type", sa.String(length=20), nullable=False),
        sa.Column("maintenance_date", sa.Date(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("cost", sa.Numeric(18, 2), nullable=False),
        sa.Column("vendor", sa.String(length=200), nullable=True),
        sa.Column("performed_by", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(
            "maintenance_type IN ('preventive', 'corrective', 'inspection', 'upgrade')",
            name="CK_maintenance_type",
        ),
        sa.CheckConstraint("cost >= 0", name="CK_maintenance_cost"),
        sa.ForeignKeyConstraint(["asset_master_id"], ["asset_master_data.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_maintenance_record_asset_master_id",
        "maintenance_record",
        ["asset_master_id"],
    )

    op.create_table(
        "depreciation_schedule",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("asset_master_id", sa.Integer(), nullable=False),
        sa.Column("period_date", sa.Date(), nullable=False),
        sa.Column("depreciation_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("accumulated_depreciation", sa.Numeric(18, 2), nullable=False),
        sa.Column("nbv", sa.Numeric(18, 2), nullable=False),
        sa.Column("is_processed", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("depreciation_amount >= 0", name="CK_depreciation_amount"),
        sa.CheckConstraint("nbv >= 0", name="CK_depreciation_nbv"),
        sa.ForeignKeyConstraint(["asset_master_id"], ["asset_master_data.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "asset_master_id", "period_date", name="UQ_depreciation_asset_period"
        ),
    )
    op.create_index(
        "ix_depreciation_schedule_asset_master_id",
        "depreciation_schedule",
        ["asset_master_id"],
    )

    op.create_table(
        "asset_disposal",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("asset_master_id", sa.Integer(), nullable=False),
        sa.Column("disposal_date", sa.Date(), nullable=False),
        sa.Column("disposal_reason", sa.String(length=20), nullable=False),
        sa.Column("nbv_at_disposal", sa.Numeric(18, 2), nullable=False),
        sa.Column("sale_price", sa.Numeric(18, 2), nullable=False),
        sa.Column("gain_loss", sa.Numeric(18, 2), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("approved_by", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(
            "disposal_reason IN ('obsolete', 'damaged', 'sold', 'donated', "
            "'lost', 'other')",
            name="CK_disposal_reason",
        ),
        sa.CheckConstraint("sale_price >= 0", name="CK_disposal_sale_price"),
        sa.ForeignKeyConstraint(["asset_master_id"], ["asset_master_data.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("asset_master_id"),
    )

    op.create_table(
        "audit_log",
        sa.Column(
            "id",
            sa.BigInteger().with_variant(sa.Integer(), "sqlite"),
            autoincrement=True,
            nullable=False,
        ),
        sa.Column("user_id", sa.String(length=64), nullable=True),
        sa.Column("action_type", sa.String(length=50), nullable=False),
        sa.Column("entity_type", sa.String(length=100), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=True),
        sa.Column("previous_value", sa.Text(), nullable=True),
        sa.Column("new_value", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_log_user_id", "audit_log", ["user_id"])


def downgrade():
    """Drop every table created in upgrade(), children first."""
    op.drop_index("ix_audit_log_user_id", table_name="audit_log")
    op.drop_table("audit_log")
    op.drop_table("asset_disposal")
    op.drop_index(
        "ix_depreciation_schedule_asset_master_id", table_name="depreciation_schedule"
    )
    op.drop_table("depreciation_schedule")
    op.drop_index(
        "ix_maintenance_record_asset_master_id", table_name="maintenance_record"
    )
    op.drop_table("maintenance_record")
    op.drop_index("UQ_allocation_open_per_asset", table_name="asset_allocation")
    op.drop_index("ix_asset_allocation_status", table_name="asset_allocation")
    op.drop_index("ix_asset_allocation_allocated_to", table_name="asset_allocation")
    op.drop_index("ix_asset_allocation_asset_master_id", table_name="asset_allocation")
    op.drop_table("asset_allocation")
    op.drop_index(
        "ix_asset_location_history_asset_master_id",
        table_name="asset_location_history",
    )
    op.drop_table("asset_location_history")
    op.drop_index("ix_asset_master_data_current_status", table_name="asset_master_data")
    op.drop_table("asset_master_data")
