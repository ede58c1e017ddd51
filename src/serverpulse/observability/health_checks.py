"""Health checks for the status service."""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from ..config.manager import get_config_manager
from ..persistence.db import get_db
from ..status.cache import StatusCache

if TYPE_CHECKING:
    from ..gateway.poll_scheduler import PollScheduler
    from ..status.aggregator import SnapshotAggregator


@dataclass
class HealthCheckResult:
    """Result of a single health check."""

    name: str  # e.g. "sqlite_writable", "status_freshness"
    status: str  # "pass" | "fail" | "warn"
    message: str
    timestamp: int  # Unix epoch
    details: Optional[dict]

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _now() -> int:
    return int(time.time())


def _cfg_int(key: str, default: int) -> int:
    try:
        return int(get_config_manager().get(key))
    except Exception:
        return default


def _failed_result(name: str, message: str, exc: Exception) -> HealthCheckResult:
    return HealthCheckResult(
        name=name,
        status="fail",
        message=f"{message}: {exc}",
        timestamp=_now(),
        details={"error": str(exc)},
    )


async def check_sqlite_writable() -> HealthCheckResult:
    """Verify the settings database accepts writes."""
    now = _now()
    try:
        db = await get_db()
        await db.execute("CREATE TEMP TABLE IF NOT EXISTS _health_check_test (id INTEGER)")
        await db.execute("INSERT INTO _health_check_test VALUES (1)")
        await db.execute("DELETE FROM _health_check_test WHERE 1=1")
        return HealthCheckResult(
            name="sqlite_writable",
            status="pass",
            message="SQLite writable",
            timestamp=now,
            details=None,
        )
    except Exception as exc:
        return _failed_result("sqlite_writable", "SQLite write test failed", exc)


def check_status_freshness(cache: StatusCache, threshold_seconds: Optional[int] = None) -> HealthCheckResult:
    """Check how old the last live snapshot is."""
    now = _now()
    if threshold_seconds is None:
        threshold_seconds = _cfg_int("observability.status_stale_threshold_seconds", 120)

    captured_at = cache.last_captured_at
    if captured_at is None:
        return HealthCheckResult(
            name="status_freshness",
            status="warn",
            message="No live status captured yet",
            timestamp=now,
            details=None,
        )

    age = max(0, int((datetime.now(timezone.utc) - captured_at).total_seconds()))
    if age > threshold_seconds:
        return HealthCheckResult(
            name="status_freshness",
            status="warn",
            message=f"Last live status is {age}s old (threshold: {threshold_seconds}s)",
            timestamp=now,
            details={"age_seconds": age, "threshold": threshold_seconds},
        )
    return HealthCheckResult(
        name="status_freshness",
        status="pass",
        message=f"Live status {age}s old",
        timestamp=now,
        details={"age_seconds": age},
    )


def check_poll_scheduler(scheduler: PollScheduler) -> HealthCheckResult:
    """Check the poller is running and its last cycle is recent."""
    now = _now()
    if scheduler.state != "running":
        return HealthCheckResult(
            name="poll_scheduler",
            status="fail",
            message="Poll scheduler is stopped",
            timestamp=now,
            details=None,
        )
    if scheduler.last_cycle_at is None:
        return HealthCheckResult(
            name="poll_scheduler",
            status="pass",
            message="Poll scheduler started, first cycle pending",
            timestamp=now,
            details=None,
        )

    lag = max(0.0, time.monotonic() - scheduler.last_cycle_at)
    threshold = scheduler.interval_seconds * 2
    if lag > threshold:
        return HealthCheckResult(
            name="poll_scheduler",
            status="warn",
            message=f"Last poll cycle {lag:.0f}s ago (threshold: {threshold:.0f}s)",
            timestamp=now,
            details={"lag_seconds": round(lag, 1), "threshold": threshold},
        )
    return HealthCheckResult(
        name="poll_scheduler",
        status="pass",
        message=f"Poll scheduler healthy (last cycle {lag:.0f}s ago)",
        timestamp=now,
        details=None,
    )


def check_upstream(aggregator: SnapshotAggregator) -> HealthCheckResult:
    """Report the last upstream failure, if the most recent fetch failed."""
    now = _now()
    if aggregator.last_error is None:
        return HealthCheckResult(
            name="upstream",
            status="pass",
            message="Last upstream fetch succeeded or none attempted",
            timestamp=now,
            details=None,
        )
    return HealthCheckResult(
        name="upstream",
        status="warn",
        message=f"Game server unreachable: {aggregator.last_error}",
        timestamp=now,
        details={"address": aggregator.address},
    )


async def run_all_health_checks(
    cache: StatusCache,
    scheduler: PollScheduler,
    aggregator: SnapshotAggregator,
    stale_threshold_seconds: Optional[int] = None,
) -> list[HealthCheckResult]:
    """Run all health checks and return results in stable order.

    Args:
        stale_threshold_seconds: Freshness threshold of the owning service;
            None falls back to the global configuration
    """
    results: list[HealthCheckResult] = []
    try:
        results.append(await check_sqlite_writable())
    except Exception as exc:
        results.append(_failed_result("sqlite_writable", "SQLite health check failed", exc))

    try:
        results.append(check_status_freshness(cache, stale_threshold_seconds))
    except Exception as exc:
        results.append(_failed_result("status_freshness", "Freshness check failed", exc))

    try:
        results.append(check_poll_scheduler(scheduler))
    except Exception as exc:
        results.append(_failed_result("poll_scheduler", "Poll scheduler check failed", exc))

    try:
        results.append(check_upstream(aggregator))
    except Exception as exc:
        results.append(_failed_result("upstream", "Upstream check failed", exc))

    return results
