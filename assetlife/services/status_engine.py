"""
Status engine — the single source of truth for asset lifecycle status.

No other module decides what an asset's status should be.  The
allocation, disposal and maintenance services ask this module for the
next status and write whatever it returns.

Status rules, in priority order:
  1. A disposal record exists          -> ``disposed`` (terminal).
  2. An active or overdue allocation   -> ``allocated``.
  3. Last return at or above threshold -> ``ready_for_reallocation``.
  4. Last return below threshold       -> ``under_maintenance``.
     A missing reusability percentage counts as below threshold.
  5. Anything else                     -> ``in_stock``.

Everything here is pure: no database access, no clock reads, no
exceptions for odd input.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from assetlife.models.allocation import OPEN_ALLOCATION_STATUSES
from assetlife.models.asset import TERMINAL_STATUS

# Returns at or above this reusability percentage go back to the pool.
REUSABILITY_THRESHOLD = 80

# Statuses from which a new allocation may start.
ALLOCATABLE_STATUSES = ("in_stock", "ready_for_reallocation")


@dataclass
class StatusDecision:
    """The derived status plus any invariants the inputs break."""

    status: str
    violations: list[str] = field(default_factory=list)

    @property
    def is_consistent(self) -> bool:
        return not self.violations


def compute_status(
    asset,
    active_allocation=None,
    latest_disposal=None,
    latest_return=None,
    threshold: int | Decimal = REUSABILITY_THRESHOLD,
) -> str:
    """
    Derive an asset's lifecycle status from its latest facts.

    Args:
        asset:             The Asset (may be None; only used for context).
        active_allocation: The asset's open allocation, if any.
        latest_disposal:   The asset's disposal record, if any.
        latest_return:     The most recently returned allocation, if any.
        threshold:         Reusability percentage at or above which a
                           returned asset is ready for reallocation.

    Returns:
        One of the values in ``ASSET_STATUSES``.
    """
    if latest_disposal is not None:
        return TERMINAL_STATUS

    if (
        active_allocation is not None
        and getattr(active_allocation, "status", None) in OPEN_ALLOCATION_STATUSES
    ):
        return "allocated"

    if latest_return is not None:
        if meets_reusability_threshold(
            getattr(latest_return, "reusability_percentage", None), threshold
        ):
            return "ready_for_reallocation"
        return "under_maintenance"

    return "in_stock"


def status_after_return(
    reusability_percentage, threshold: int | Decimal = REUSABILITY_THRESHOLD
) -> str:
    """Status an asset takes when its allocation is returned."""
    if meets_reusability_threshold(reusability_percentage, threshold):
        return "ready_for_reallocation"
    return "under_maintenance"


def meets_reusability_threshold(
    reusability_percentage, threshold: int | Decimal = REUSABILITY_THRESHOLD
) -> bool:
    """Inclusive threshold test; None is treated as below threshold."""
    if reusability_percentage is None:
        return False
    return Decimal(str(reusability_percentage)) >= Decimal(str(threshold))


def evaluate(
    asset,
    active_allocation=None,
    latest_disposal=None,
    latest_return=None,
    threshold: int | Decimal = REUSABILITY_THRESHOLD,
) -> StatusDecision:
    """
    Derive the status and list every lifecycle invariant the inputs break.

    Used by consistency checks and tests; the workflows themselves only
    need ``compute_status``.
    """
    status = compute_status(
        asset, active_allocation, latest_disposal, latest_return, threshold
    )
    return StatusDecision(
        status=status,
        violations=check_invariants(asset, active_allocation, latest_disposal),
    )


def check_invariants(asset, active_allocation=None, latest_disposal=None) -> list[str]:
    """Return human-readable descriptions of broken asset invariants."""
    violations: list[str] = []
    if asset is None:
        return violations

    cost_basis = asset.cost_basis or Decimal("0")
    accumulated = asset.accumulated_depreciation or Decimal("0")
    nbv = asset.nbv if asset.nbv is not None else cost_basis - accumulated

    if accumulated < 0 or accumulated > cost_basis:
        violations.append(
            f"accumulated_depreciation {accumulated} outside [0, {cost_basis}]"
        )
    if nbv != cost_basis - accumulated:
        violations.append(
            f"nbv {nbv} != cost_basis - accumulated_depreciation "
            f"({cost_basis - accumulated})"
        )
    if nbv < 0:
        violations.append(f"nbv {nbv} is negative")
    if (asset.total_maintenance_cost or Decimal("0")) < 0:
        violations.append(
            f"total_maintenance_cost {asset.total_maintenance_cost} is negative"
        )

    has_open_allocation = (
        active_allocation is not None
        and getattr(active_allocation, "status", None) in OPEN_ALLOCATION_STATUSES
    )
    if latest_disposal is not None and has_open_allocation:
        violations.append("disposed asset still has an open allocation")
    if latest_disposal is not None and asset.current_status != TERMINAL_STATUS:
        violations.append(
            f"asset has a disposal record but status is '{asset.current_status}'"
        )
    if latest_disposal is None and asset.current_status == TERMINAL_STATUS:
        violations.append("asset is marked disposed without a disposal record")
    if has_open_allocation and asset.current_status != "allocated":
        violations.append(
            f"asset has an open allocation but status is '{asset.current_status}'"
        )
    return violations


def is_allocatable(status: str | None) -> bool:
    """True if an asset in ``status`` may be allocated."""
    return status in ALLOCATABLE_STATUSES


def is_overdue(allocation, today: date) -> bool:
    """True if an active allocation is past its expected return date."""
    if allocation is None or allocation.status != "active":
        return False
    expected = allocation.expected_return_date
    return expected is not None and expected < today
