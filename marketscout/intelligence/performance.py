"""
Rolling per-provider performance statistics.

Records live in memory for the lifetime of the process. Updates for
different providers never contend; updates for the same provider are
serialized so the cumulative averages cannot lose a sample.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Dict, List, Optional

import structlog

from marketscout.core.models import PerformanceRecord

logger = structlog.get_logger(__name__)


class PerformanceTracker:
    """In-memory map of provider name to PerformanceRecord."""

    def __init__(self):
        self._records: Dict[str, PerformanceRecord] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, provider_name: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(provider_name)
            if lock is None:
                lock = self._locks[provider_name] = threading.Lock()
                self._records.setdefault(provider_name, PerformanceRecord(provider_name))
            return lock

    def ensure(self, provider_name: str) -> None:
        """Seed a zeroed record for ``provider_name`` if none exists yet."""
        self._lock_for(provider_name)

    def record(
        self,
        provider_name: str,
        run_time_seconds: float,
        success: bool,
        api_success: Optional[bool] = None,
    ) -> PerformanceRecord:
        """
        Fold one run into the provider's statistics.

        Args:
            provider_name: Provider the run belongs to
            run_time_seconds: Wall time of the run
            success: Whether the provider produced a result
            api_success: Whether the remote call itself succeeded; defaults to ``success``

        Returns:
            A snapshot of the updated record
        """
        if api_success is None:
            api_success = success

        with self._lock_for(provider_name):
            rec = self._records[provider_name]
            total = rec.total_runs
            rec.avg_run_time_seconds = (
                rec.avg_run_time_seconds * total + max(run_time_seconds, 0.0)
            ) / (total + 1)
            rec.api_success_rate_pct = (
                rec.api_success_rate_pct * total + (100.0 if api_success else 0.0)
            ) / (total + 1)
            rec.total_runs = total + 1
            if success:
                rec.successful_runs += 1
            else:
                rec.failed_runs += 1
            rec.completion_rate_pct = rec.successful_runs / rec.total_runs * 100
            snapshot = replace(rec)

        logger.debug(
            "Performance updated",
            provider=provider_name,
            total_runs=snapshot.total_runs,
            completion_rate=round(snapshot.completion_rate_pct, 1),
            avg_run_time=round(snapshot.avg_run_time_seconds, 3),
        )
        return snapshot

    def get(self, provider_name: str) -> Optional[PerformanceRecord]:
        with self._registry_lock:
            lock = self._locks.get(provider_name)
        if lock is None:
            return None
        with lock:
            return replace(self._records[provider_name])

    def all(self) -> List[PerformanceRecord]:
        with self._registry_lock:
            names = list(self._records)
        return [rec for rec in (self.get(name) for name in names) if rec is not None]
