"""Batch cleanup of stale sessions and expired jobs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

import pendulum
import structlog

from .schemas import SessionStatus
from .store import RecordStore


@dataclass
class SweeperConfig:
    """Age thresholds after which sessions count as abandoned."""

    in_progress_hours: float = 24.0
    orphaned_passed_hours: float = 48.0


@dataclass(slots=True)
class SweepReport:
    in_progress_swept: int
    orphaned_passed_swept: int
    stats: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "in_progress_swept": self.in_progress_swept,
            "orphaned_passed_swept": self.orphaned_passed_swept,
            "stats": dict(self.stats),
        }


class AbandonmentSweeper:
    """Move stale sessions to ABANDONED with one bulk update per rule.

    Safe to run repeatedly and alongside live traffic: each update is
    conditional on the current status, so a rerun only touches sessions that
    went stale since the previous run. FAILED sessions are never swept.
    """

    def __init__(
        self,
        *,
        store: RecordStore,
        config: SweeperConfig | None = None,
        now_provider: Callable[[], pendulum.DateTime] | None = None,
    ) -> None:
        self._store = store
        self._config = config or SweeperConfig()
        self._now = now_provider or (lambda: pendulum.now("UTC"))
        self._logger = structlog.get_logger(__name__)

    def sweep(self) -> SweepReport:
        now = self._now()

        in_progress = self._store.sweep_sessions(
            status=SessionStatus.IN_PROGRESS,
            created_before=now - pendulum.duration(hours=self._config.in_progress_hours),
            new_status=SessionStatus.ABANDONED,
            completed_at=now,
        )
        # passed the gate but never submitted a CV
        orphaned_passed = self._store.sweep_sessions(
            status=SessionStatus.PASSED,
            created_before=now - pendulum.duration(hours=self._config.orphaned_passed_hours),
            new_status=SessionStatus.ABANDONED,
            completed_at=now,
            unlinked_only=True,
        )

        report = SweepReport(
            in_progress_swept=in_progress,
            orphaned_passed_swept=orphaned_passed,
            stats=self._store.session_status_counts(),
        )
        self._logger.info(
            "sweep.completed",
            in_progress_swept=in_progress,
            orphaned_passed_swept=orphaned_passed,
            stats=report.stats,
        )
        return report

    def expire_jobs(self) -> int:
        expired = self._store.expire_jobs(self._now())
        self._logger.info("jobs.expired", expired=expired)
        return expired
