"""
Model package — imports all models so Alembic and SQLAlchemy can
discover them automatically when ``flask db`` commands are run.

Each model file corresponds to one part of the asset lifecycle:
  - asset.py        -> asset master data and location history
  - allocation.py   -> loans of assets to holders
  - maintenance.py  -> service history
  - depreciation.py -> periodic depreciation schedule
  - disposal.py     -> terminal disposal records
  - audit.py        -> audit trail
"""

from assetlife.models.asset import (  # noqa: F401
    ASSET_STATUSES,
    ASSET_TYPES,
    DEPRECIATION_METHODS,
    TERMINAL_STATUS,
    Asset,
    AssetLocationHistory,
)
from assetlife.models.allocation import (  # noqa: F401
    ALLOCATION_STATUSES,
    OPEN_ALLOCATION_STATUSES,
    Allocation,
)
from assetlife.models.maintenance import (  # noqa: F401
    MAINTENANCE_TYPES,
    MaintenanceRecord,
)
from assetlife.models.depreciation import DepreciationEntry  # noqa: F401
from assetlife.models.disposal import DISPOSAL_REASONS, DisposalRecord  # noqa: F401
from assetlife.models.audit import AuditLog  # noqa: F401
