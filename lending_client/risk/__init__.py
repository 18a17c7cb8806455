"""Risk engine: snapshots, health factor math and input validation."""
from .health import (
    SENTINEL_MAX,
    health_factor,
    max_borrow_usd,
    max_safe_withdraw,
    project,
    risk_tier,
    weighted_threshold,
)
from .snapshot import SnapshotBuilder

__all__ = [
    "SENTINEL_MAX",
    "SnapshotBuilder",
    "health_factor",
    "max_borrow_usd",
    "max_safe_withdraw",
    "project",
    "risk_tier",
    "weighted_threshold",
]
