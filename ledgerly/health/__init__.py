"""Financial health snapshot computation.

This module provides the ratio calculator, snapshot persistence and the
batch job that recomputes snapshots for every user.
"""

from ledgerly.health.calculator import (
    calculate_health_for_mode,
    calculate_user_health,
    classify_snapshot,
    compute_snapshot,
    get_health_history,
    save_health_snapshot,
)
from ledgerly.health.batch import calculate_all_users
from ledgerly.health.models import (
    LIQUID_ASSET_CATEGORIES,
    AssetCategory,
    BatchHealthResult,
    HealthSnapshot,
    UserHealthResult,
)

__all__ = [
    "calculate_health_for_mode",
    "calculate_user_health",
    "calculate_all_users",
    "classify_snapshot",
    "compute_snapshot",
    "get_health_history",
    "save_health_snapshot",
    "LIQUID_ASSET_CATEGORIES",
    "AssetCategory",
    "BatchHealthResult",
    "HealthSnapshot",
    "UserHealthResult",
]
