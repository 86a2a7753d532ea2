import asyncio
from abc import ABC, abstractmethod
from typing import Dict, Optional

from loguru import logger

from pointwatch.models import MatchKind, Sport, WorkoutSummary


class HealthTracker(ABC):
    """Workout session service (heart rate, calories) running alongside a match."""

    @abstractmethod
    async def start_tracking(self, sport: Sport, match_kind: MatchKind):
        ...

    @abstractmethod
    async def end_tracking(self) -> Optional[WorkoutSummary]:
        ...

    @property
    @abstractmethod
    def is_active(self) -> bool:
        ...


class HealthSummaryCache:
    def __init__(self):
        self._summaries: Dict[str, WorkoutSummary] = {}
        self.lock = asyncio.Lock()

    def get(self, match_id: str) -> Optional[WorkoutSummary]:
        return self._summaries.get(match_id)

    def store(self, match_id: str, summary: WorkoutSummary):
        self._summaries[match_id] = summary

    def __contains__(self, match_id: str) -> bool:
        return match_id in self._summaries


def _log_task_failure(task: asyncio.Task):
    if not task.cancelled() and task.exception() is not None:
        logger.error(f"Health tracking task failed: {task.exception()}")


def start_health_tracking(tracker: HealthTracker, sport: Sport,
                          match_kind: MatchKind) -> Optional[asyncio.Task]:
    """Start tracking in the background; the match never waits on it.

    Returns None (tracking skipped) when called outside a running event loop.
    The caller must keep a reference to the returned task.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        logger.warning("No running event loop, health tracking skipped")
        return None

    async def _start():
        try:
            await tracker.start_tracking(sport, match_kind)
            logger.info(f"Health tracking started for {sport.value} {match_kind.value.lower()}")
        except Exception as e:
            logger.error(f"Failed to start health tracking: {e}")

    task = loop.create_task(_start())
    task.add_done_callback(_log_task_failure)
    return task


async def collect_health_summary(tracker: HealthTracker, match_id: str, cache: HealthSummaryCache,
                                 timeout: float = 2.0, poll_interval: float = 0.1
                                 ) -> Optional[WorkoutSummary]:
    """End tracking and return its summary, at most once per match.

    Waits up to ``timeout`` for tracking to become active, since the start
    task may still be in flight when a short match ends.
    """
    async with cache.lock:
        cached = cache.get(match_id)
        if cached is not None:
            return cached

        waited = 0.0
        while not tracker.is_active and waited < timeout:
            await asyncio.sleep(poll_interval)
            waited += poll_interval

        if not tracker.is_active:
            logger.warning("Health tracking was not active, no workout summary")
            return None

        try:
            summary = await tracker.end_tracking()
        except Exception as e:
            logger.error(f"Failed to end health tracking: {e}")
            return None

        if summary is not None:
            cache.store(match_id, summary)
            logger.info(f"Health tracking ended - HR: {summary.average_heart_rate:.0f}, "
                        f"Cal: {summary.total_calories:.0f}")
        return summary
