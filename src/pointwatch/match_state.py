import time
import uuid
from collections import deque
from datetime import datetime
from typing import Callable, List, Optional

from loguru import logger

from pointwatch.models import MatchKind, PointEvent, ScoreState, Side, Sport
from pointwatch.rally_coordinator import RallyCoordinator
from pointwatch.scoring_rules import ScoringRules


class MatchClock:
    """Elapsed match time that can be stopped at match end and resumed by undo."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._started_at: Optional[float] = None
        self._accumulated = 0.0

    @property
    def is_running(self) -> bool:
        return self._started_at is not None

    @property
    def elapsed(self) -> float:
        if self._started_at is None:
            return self._accumulated
        return self._accumulated + (self._clock() - self._started_at)

    def start(self):
        if self._started_at is None:
            self._started_at = self._clock()

    def stop(self):
        if self._started_at is not None:
            self._accumulated += self._clock() - self._started_at
            self._started_at = None

    resume = start


class MatchState:
    def __init__(self, rules: ScoringRules, first_server: Side = Side.PLAYER1,
                 coordinator: Optional[RallyCoordinator] = None, undo_depth: int = 10,
                 clock: Callable[[], float] = time.monotonic):
        self.id = str(uuid.uuid4())
        self.rules = rules
        self.coordinator = coordinator
        self.started_at = datetime.now()

        self.state: ScoreState = rules.initial_state(first_server)
        self.history: deque = deque(maxlen=undo_depth)
        self.events: List[PointEvent] = [self._initial_event(first_server)]

        self._clock = clock
        self.clock = MatchClock(clock)
        self.clock.start()

        logger.info(f"{self.sport.value} {self.match_kind.value.lower()} match started, "
                    f"{first_server.label} serving")

    @staticmethod
    def _initial_event(first_server: Side) -> PointEvent:
        return PointEvent(timestamp=0.0, player1_score=0, player2_score=0,
                          scoring_player=first_server, is_serve_point=False)

    @property
    def sport(self) -> Sport:
        return self.rules.sport

    @property
    def match_kind(self) -> MatchKind:
        return self.rules.match_kind

    @property
    def server(self) -> Side:
        return self.state.server

    @property
    def is_match_over(self) -> bool:
        return self.state.match_winner is not None

    @property
    def winner(self) -> Optional[Side]:
        return self.state.match_winner

    @property
    def elapsed_time(self) -> float:
        return self.clock.elapsed

    def record_point(self, winner: Side) -> Optional[PointEvent]:
        if self.is_match_over:
            logger.debug("Match is over, ignoring point")
            return None

        shot = self.coordinator.resolve_point() if self.coordinator else None

        self.history.append(self.state.snapshot())
        self.state.game_winner = None

        scorer, is_serve_point = self.rules.award_rally(self.state, winner)
        event = PointEvent(
            timestamp=self.clock.elapsed,
            player1_score=self.state.points.player1,
            player2_score=self.state.points.player2,
            scoring_player=scorer,
            is_serve_point=is_serve_point,
            shot_type=shot.type if shot else None,
        )
        self.events.append(event)
        logger.debug(f"Point: {event.player1_score}-{event.player2_score}, "
                     f"rally to {winner.label}, {len(self.events)} events")

        self.rules.advance(self.state)

        if self.is_match_over:
            self.clock.stop()
            logger.info(f"Match won by {self.state.match_winner.label} "
                        f"({self.match_score_summary()})")
        return event

    def record_rally_outcome(self, winner: Side) -> Optional[PointEvent]:
        return self.record_point(winner)

    def can_undo(self) -> bool:
        return len(self.history) > 0

    def undo_description(self) -> Optional[str]:
        if not self.history or len(self.events) < 2:
            return None
        return f"Undo point for {self.events[-1].scoring_player.label}"

    def undo_last_action(self) -> bool:
        if not self.history:
            return False

        was_over = self.is_match_over
        self.state = self.history.pop()
        if len(self.events) > 1:
            self.events.pop()

        if was_over and not self.is_match_over:
            self.clock.resume()
            logger.info("Match reopened by undo")
        return True

    def reset_current_game(self):
        """Restart the current game from 0-0; clears undo history and the event log."""
        self.history.clear()
        self.rules.reset_game(self.state)
        self.state.match_winner = None
        self.events = [self._initial_event(self.state.server)]
        self.clock = MatchClock(self._clock)
        self.clock.start()

    def format_score(self, side: Side) -> str:
        return self.rules.format_score(self.state, side)

    def score_call(self) -> Optional[str]:
        return self.rules.score_call(self.state)

    def score_announcement(self) -> str:
        return self.rules.score_announcement(self.state)

    def match_score_summary(self) -> str:
        return self.rules.match_score_summary(self.state)

    def format_time(self) -> str:
        minutes, seconds = divmod(int(max(0.0, self.clock.elapsed)), 60)
        return f"{minutes:02d}:{seconds:02d}"
