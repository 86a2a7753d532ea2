import asyncio

from pointwatch.health import HealthSummaryCache, HealthTracker, collect_health_summary, start_health_tracking
from pointwatch.models import MatchKind, Sport, WorkoutSummary


class FakeTracker(HealthTracker):
    def __init__(self, active=True, start_delay=0.0, start_error=None, end_error=None):
        self._active = active
        self.start_delay = start_delay
        self.start_error = start_error
        self.end_error = end_error
        self.end_calls = 0
        self.started_with = None

    async def start_tracking(self, sport, match_kind):
        await asyncio.sleep(self.start_delay)
        if self.start_error:
            raise self.start_error
        self.started_with = (sport, match_kind)
        self._active = True

    async def end_tracking(self):
        self.end_calls += 1
        if self.end_error:
            raise self.end_error
        self._active = False
        return WorkoutSummary(average_heart_rate=132.0, total_calories=410.0)

    @property
    def is_active(self):
        return self._active


def test_summary_is_collected_once():
    async def scenario():
        tracker = FakeTracker(active=True)
        cache = HealthSummaryCache()

        first = await collect_health_summary(tracker, "match-1", cache)
        second = await collect_health_summary(tracker, "match-1", cache)
        return tracker, cache, first, second

    tracker, cache, first, second = asyncio.run(scenario())

    assert first is second
    assert first.average_heart_rate == 132.0
    assert tracker.end_calls == 1
    assert "match-1" in cache


def test_concurrent_finish_shares_summary():
    async def scenario():
        tracker = FakeTracker(active=True)
        cache = HealthSummaryCache()
        results = await asyncio.gather(
            collect_health_summary(tracker, "match-1", cache),
            collect_health_summary(tracker, "match-1", cache),
        )
        return tracker, results

    tracker, (first, second) = asyncio.run(scenario())

    assert first is second
    assert tracker.end_calls == 1


def test_inactive_tracker_gives_no_summary():
    tracker = FakeTracker(active=False)
    summary = asyncio.run(collect_health_summary(
        tracker, "match-1", HealthSummaryCache(), timeout=0.05, poll_interval=0.01))

    assert summary is None
    assert tracker.end_calls == 0


def test_waits_for_start_in_flight():
    async def scenario():
        tracker = FakeTracker(active=False, start_delay=0.03)
        start_health_tracking(tracker, Sport.TENNIS, MatchKind.DOUBLES)
        summary = await collect_health_summary(
            tracker, "match-1", HealthSummaryCache(), timeout=1.0, poll_interval=0.01)
        return tracker, summary

    tracker, summary = asyncio.run(scenario())

    assert summary is not None
    assert tracker.started_with == (Sport.TENNIS, MatchKind.DOUBLES)


def test_end_tracking_failure_returns_none():
    cache = HealthSummaryCache()
    tracker = FakeTracker(active=True, end_error=RuntimeError("session lost"))

    assert asyncio.run(collect_health_summary(tracker, "match-1", cache)) is None
    assert "match-1" not in cache


def test_start_failure_is_contained():
    async def scenario():
        tracker = FakeTracker(active=False, start_error=RuntimeError("not authorized"))
        task = start_health_tracking(tracker, Sport.PADEL, MatchKind.DOUBLES)
        await task
        return tracker, task

    tracker, task = asyncio.run(scenario())

    assert task.exception() is None
    assert not tracker.is_active


def test_workout_summary_to_dict():
    summary = WorkoutSummary(average_heart_rate=120.0, total_calories=300.0, duration=1800.0)
    assert summary.to_dict() == {'average_heart_rate': 120.0, 'total_calories': 300.0, 'duration': 1800.0}


def test_start_outside_event_loop_is_skipped():
    tracker = FakeTracker(active=False)

    assert start_health_tracking(tracker, Sport.TENNIS, MatchKind.SINGLES) is None
    assert tracker.started_with is None
