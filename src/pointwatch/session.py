import asyncio
import time
from dataclasses import replace
from typing import Callable, Optional

from loguru import logger

from pointwatch.calibration import CalibrationStore
from pointwatch.health import HealthSummaryCache, HealthTracker, collect_health_summary, start_health_tracking
from pointwatch.history import MatchRecord, build_match_record
from pointwatch.insights import GameInsights
from pointwatch.match_state import MatchState
from pointwatch.models import DetectedShot, MotionSample, PointEvent, Side, Sport
from pointwatch.motion_processor import MotionProcessor
from pointwatch.rally_coordinator import RallyCoordinator
from pointwatch.scoring_rules import PadelRules, PickleballRules, ScoringRules, TennisRules
from pointwatch.settings import PadelSettings, PickleballSettings, TennisSettings


def create_rules(sport: Sport, config: dict, doubles: Optional[bool] = None) -> ScoringRules:
    if sport is Sport.PICKLEBALL:
        settings = PickleballSettings.from_config(config)
        if doubles is not None:
            settings = replace(settings, doubles=doubles)
        return PickleballRules(settings)
    if sport is Sport.TENNIS:
        settings = TennisSettings.from_config(config)
        if doubles is not None:
            settings = replace(settings, doubles=doubles)
        return TennisRules(settings)
    return PadelRules(PadelSettings.from_config(config))


class MatchSession:
    def __init__(self, config: dict, match: MatchState, processor: MotionProcessor,
                 coordinator: RallyCoordinator, health_tracker: Optional[HealthTracker] = None,
                 health_cache: Optional[HealthSummaryCache] = None,
                 history_sink: Optional[Callable[[MatchRecord], None]] = None):
        self.config = config
        self.match = match
        self.processor = processor
        self.coordinator = coordinator
        self.health_tracker = health_tracker
        self.health_cache = health_cache or HealthSummaryCache()
        self.history_sink = history_sink
        self.record: Optional[MatchRecord] = None
        self.health_task: Optional[asyncio.Task] = None

    @property
    def id(self) -> str:
        return self.match.id

    def update_serve_window(self):
        """Arm the serve window while the wearer's side is due to serve."""
        if not self.match.is_match_over and self.match.server is Side.PLAYER1:
            self.coordinator.arm_serve_window()
        else:
            self.coordinator.consume_pending_serve()

    def record_point(self, winner: Side) -> Optional[PointEvent]:
        event = self.match.record_point(winner)
        if event is None:
            return None

        shot = self.processor.mark_last_shot_as_point_winner()
        if shot is not None:
            logger.debug(f"{shot.display_name} associated with point")
        self.update_serve_window()
        return event

    def undo(self) -> bool:
        if not self.match.undo_last_action():
            return False
        self.update_serve_window()
        return True

    def handle_sample(self, sample: MotionSample) -> Optional[DetectedShot]:
        return self.processor.process_sample(sample)

    def insights(self) -> Optional[GameInsights]:
        return GameInsights.from_match(self.match)

    async def finish(self) -> MatchRecord:
        """Stop tracking, gather the workout summary and hand the record to history."""
        if self.record is not None:
            return self.record

        self.processor.stop()

        health = None
        if self.health_tracker is not None and self.health_task is not None:
            health_config = self.config['health']
            health = await collect_health_summary(
                self.health_tracker, self.id, self.health_cache,
                timeout=health_config['summary_timeout'],
                poll_interval=health_config['poll_interval'],
            )

        self.record = build_match_record(self.match, health)
        logger.info(f"Match finished: {self.record.sport.value} {self.record.score_display}")

        if self.history_sink is not None:
            try:
                self.history_sink(self.record)
            except Exception as e:
                logger.error(f"Failed to save match history: {e}")

        return self.record


class SessionManager:
    """Owns the process-wide services and the single active match."""

    def __init__(self, config: dict, clock: Callable[[], float] = time.monotonic,
                 health_tracker: Optional[HealthTracker] = None,
                 history_sink: Optional[Callable[[MatchRecord], None]] = None):
        self.config = config
        self._clock = clock
        self.health_tracker = health_tracker
        self.history_sink = history_sink

        self.calibration = CalibrationStore(config)
        self.coordinator = RallyCoordinator(config, clock)
        self.processor = MotionProcessor(config, self.calibration, self.coordinator, clock=clock)
        self.health_cache = HealthSummaryCache()

        self.active: Optional[MatchSession] = None

    def create_match(self, sport: Sport, first_server: Side = Side.PLAYER1,
                     doubles: Optional[bool] = None) -> MatchSession:
        return self.start_match(create_rules(sport, self.config, doubles), first_server)

    def start_match(self, rules: ScoringRules, first_server: Side = Side.PLAYER1) -> MatchSession:
        if self.active is not None:
            logger.info(f"Switching active match away from {self.active.match.sport.value}")

        self.coordinator.reset()
        self.processor.reset()
        self.processor.set_sport(rules.sport)
        if self.config['calibration']['reset_on_new_match']:
            self.calibration.reset()

        match = MatchState(rules, first_server, coordinator=self.coordinator,
                           undo_depth=self.config['match']['undo_depth'], clock=self._clock)
        session = MatchSession(self.config, match, self.processor, self.coordinator,
                               health_tracker=self.health_tracker,
                               health_cache=self.health_cache,
                               history_sink=self.history_sink)
        self.active = session

        session.update_serve_window()
        self.processor.start()

        if self.health_tracker is not None:
            session.health_task = start_health_tracking(
                self.health_tracker, rules.sport, rules.match_kind)

        return session

    def record_point(self, winner: Side) -> Optional[PointEvent]:
        if self.active is None:
            logger.warning("No active match, ignoring point")
            return None
        return self.active.record_point(winner)

    def undo(self) -> bool:
        if self.active is None:
            return False
        return self.active.undo()

    def handle_sample(self, sample: MotionSample) -> Optional[DetectedShot]:
        if self.active is None:
            return None
        return self.active.handle_sample(sample)

    async def finish(self) -> Optional[MatchRecord]:
        if self.active is None:
            return None
        return await self.active.finish()
