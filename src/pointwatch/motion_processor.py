import math
import time
from collections import deque
from typing import Callable, List, Optional

import numpy as np
from loguru import logger

from pointwatch.calibration import CalibrationStore
from pointwatch.heuristics import SportHeuristics
from pointwatch.models import DetectedShot, MotionSample, ShotType, Sport, SwingPhase, SwingWindow
from pointwatch.rally_coordinator import RallyCoordinator
from pointwatch.shot_classifier import classify_shot

RECENT_CANDIDATE_WINDOW = 5.0  # seconds


class MotionProcessor:
    def __init__(self, config: dict, calibration: CalibrationStore,
                 coordinator: RallyCoordinator, sport: Sport = Sport.PICKLEBALL,
                 clock: Callable[[], float] = time.monotonic):
        self.config = config
        motion_config = config['motion']
        self.wear_on_swinging_hand = motion_config['wear_on_swinging_hand']
        self.swing_timeout = motion_config['swing_timeout']
        self.debounce_interval = motion_config['debounce_interval']
        self.peak_ratio = motion_config['peak_ratio']
        self.point_association_window = motion_config['point_association_window']

        self.calibration = calibration
        self.coordinator = coordinator
        self._clock = clock

        self.sport = sport
        self.heuristics = SportHeuristics(sport)

        self.is_tracking = False
        self.current_phase = SwingPhase.IDLE
        self.current_window: Optional[SwingWindow] = None
        self.last_shot_time: Optional[float] = None
        self.recent_shots: deque = deque(maxlen=motion_config['recent_shots'])

        self.shot_callback: Optional[Callable[[DetectedShot], None]] = None

    @property
    def swing_threshold(self) -> float:
        return self.heuristics.swing_threshold(self.wear_on_swinging_hand)

    @property
    def last_shot(self) -> Optional[DetectedShot]:
        return self.recent_shots[0] if self.recent_shots else None

    def set_shot_callback(self, callback: Callable[[DetectedShot], None]):
        self.shot_callback = callback

    def start(self):
        if self.is_tracking:
            return
        self.is_tracking = True
        logger.info(f"Motion tracking started ({self.sport.value})")

    def stop(self):
        if not self.is_tracking:
            return
        self.is_tracking = False
        self._flush_window()
        logger.info("Motion tracking stopped")

    def set_sport(self, sport: Sport):
        if sport != self.sport:
            logger.info(f"Motion heuristics switched: {self.sport.value} -> {sport.value}")
        self.sport = sport
        self.heuristics = SportHeuristics(sport)
        self._flush_window()

    def reset(self):
        self.recent_shots.clear()
        self.last_shot_time = None
        self._flush_window()

    def _flush_window(self):
        self.current_window = None
        self.current_phase = SwingPhase.IDLE

    def process_sample(self, sample: MotionSample) -> Optional[DetectedShot]:
        if not self.is_tracking:
            return None

        now = sample.timestamp
        magnitude = sample.magnitude
        threshold = self.swing_threshold

        if magnitude > threshold * 0.5:
            if self.current_window is None:
                self.current_window = SwingWindow(start_time=now, peak_magnitude=magnitude)
                self.current_phase = SwingPhase.SWINGING
            self.current_window.add(magnitude, sample.rotation_rate)

        if magnitude <= threshold:
            self._expire_stale_window(now)
            return None

        below_peak = magnitude < self.current_window.peak_magnitude * self.peak_ratio
        debounced = (self.last_shot_time is not None and
                     now - self.last_shot_time < self.debounce_interval)
        if below_peak or debounced:
            # Sustained motion that never classifies must still age out
            self._expire_stale_window(now)
            return None

        return self._classify(sample, now)

    def _expire_stale_window(self, now: float):
        window = self.current_window
        if window is not None and now - window.start_time > self.swing_timeout:
            logger.debug("Swing window timed out")
            self._flush_window()

    def _classify(self, sample: MotionSample, now: float) -> DetectedShot:
        window = self.current_window
        magnitude = sample.magnitude
        swing_duration = now - window.start_time
        gyro_angle = self._calculate_gyro_angle(window.rotation_samples)
        rally_reaction_time = None if self.last_shot_time is None else now - self.last_shot_time

        debug_info = {}
        shot_type, is_backhand = classify_shot(
            sample, swing_duration, gyro_angle, self.sport, self.wear_on_swinging_hand,
            self.calibration.backhand(self.sport),
            context_active=self.coordinator.context_active(now),
            debug_info=debug_info,
        )
        logger.debug(f"Classifier trace: {debug_info.get('rule_matches')}")

        intensity = self.calibration.normalize(magnitude, self.sport)
        self.calibration.record_magnitude(magnitude, self.sport)
        if shot_type.carries_handedness:
            self.calibration.record_rotation(
                self.sport, float(sample.rotation_rate[1]), is_backhand,
                magnitude, sample.rotation_magnitude,
            )

        shot = DetectedShot(
            type=shot_type,
            intensity=intensity,
            absolute_magnitude=magnitude,
            timestamp=now,
            gyro_angle=gyro_angle,
            swing_duration=swing_duration,
            sport=self.sport,
            rally_reaction_time=rally_reaction_time,
            is_backhand=is_backhand,
        )

        self.recent_shots.appendleft(shot)
        self.last_shot_time = now
        self._flush_window()

        self.coordinator.register_swing(
            shot, buffer_for_association=shot_type in (ShotType.SERVE, ShotType.OVERHEAD), now=now)
        if shot_type is ShotType.SERVE:
            self.coordinator.consume_pending_serve()

        logger.info(f"Shot detected: {shot.display_name} "
                    f"(magnitude {magnitude:.2f}, intensity {intensity:.2f})")

        if self.shot_callback:
            self.shot_callback(shot)
        return shot

    @staticmethod
    def _calculate_gyro_angle(rotation_samples: List[np.ndarray]) -> float:
        """Mean rotation angle in degrees: ~90 for pitch-dominant (overhead) swings, ~0 for flat ones."""
        if not rotation_samples:
            return 0.0

        totals = np.zeros(3)
        for rotation in rotation_samples:
            totals += rotation
        avg_x, avg_y, avg_z = totals / len(rotation_samples)

        return math.degrees(math.atan2(abs(avg_x), math.hypot(avg_y, avg_z)))

    def mark_last_shot_as_point_winner(self, now: Optional[float] = None) -> Optional[DetectedShot]:
        now = self._clock() if now is None else now
        shot = self.last_shot
        if shot is None or now - shot.timestamp > self.point_association_window:
            return None

        updated = shot.marked_as_point_winner()
        self.recent_shots[0] = updated
        return updated

    def point_candidates(self, now: Optional[float] = None) -> List[DetectedShot]:
        now = self._clock() if now is None else now
        return [shot for shot in self.recent_shots
                if shot.is_point_candidate and now - shot.timestamp < RECENT_CANDIDATE_WINDOW]
