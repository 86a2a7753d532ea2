"""
Adaptive per-user calibration.

Two independent learners are kept per sport:

- MagnitudeCalibration keeps a sliding window of raw swing magnitudes and
  derives the 10th/90th percentile bounds used to normalize shot intensity.
- BackhandCalibration keeps sliding windows of forearm-roll (rotation y)
  readings from confident forehands and backhands and derives the adaptive
  backhand threshold, the two-handed backhand preference and the likely
  dominant hand.

Both are frozen values. The record_* functions return a new value and
CalibrationStore swaps it in, so the sampling loop never mutates shared state
in place.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, Optional, Tuple

import numpy as np
from loguru import logger

from pointwatch.heuristics import SportHeuristics
from pointwatch.models import DominantHand, Sport

DEFAULT_BACKHAND_THRESHOLD = -0.5
MIN_CALIBRATION_SHOTS = 10
POLARITY_WINDOW = 50
TWO_HANDED_MIN_SHOTS = 20


@dataclass(frozen=True)
class MagnitudeCalibration:
    min_value: float
    max_value: float
    history: Tuple[float, ...] = ()

    @classmethod
    def for_sport(cls, sport: Sport) -> "MagnitudeCalibration":
        low, high = SportHeuristics(sport).expected_magnitude_range
        return cls(min_value=low, max_value=high)

    def normalize(self, magnitude: float) -> float:
        if self.max_value <= self.min_value:
            return 0.0
        normalized = (magnitude - self.min_value) / (self.max_value - self.min_value)
        return max(0.0, min(1.0, normalized))


def record_magnitude(calibration: MagnitudeCalibration, magnitude: float, sport: Sport,
                     max_history: int = 200, min_samples: int = 20) -> MagnitudeCalibration:
    history = (calibration.history + (magnitude,))[-max_history:]

    if len(history) < min_samples:
        low, high = SportHeuristics(sport).expected_magnitude_range
        return MagnitudeCalibration(min_value=low, max_value=high, history=history)

    ordered = np.sort(np.asarray(history))
    min_index = max(0, int(len(ordered) * 0.1))
    max_index = min(len(ordered) - 1, int(len(ordered) * 0.9))
    return MagnitudeCalibration(
        min_value=float(ordered[min_index]),
        max_value=float(ordered[max_index]),
        history=history,
    )


@dataclass(frozen=True)
class BackhandCalibration:
    forehand_rotations: Tuple[float, ...] = ()
    backhand_rotations: Tuple[float, ...] = ()
    rotation_polarity: Tuple[float, ...] = ()
    average_forehand_rotation: float = 1.5
    average_backhand_rotation: float = -1.5
    adaptive_threshold: float = DEFAULT_BACKHAND_THRESHOLD
    dominant_hand: DominantHand = DominantHand.RIGHT
    two_handed_count: int = 0
    one_handed_count: int = 0
    uses_two_handed_backhand: bool = False

    @property
    def is_calibrated(self) -> bool:
        return (len(self.forehand_rotations) >= MIN_CALIBRATION_SHOTS and
                len(self.backhand_rotations) >= MIN_CALIBRATION_SHOTS)

    @property
    def shows_two_handed_status(self) -> bool:
        return self.two_handed_count + self.one_handed_count >= MIN_CALIBRATION_SHOTS

    @property
    def backhand_style(self) -> Optional[str]:
        if not self.shows_two_handed_status:
            return None
        return "two-handed" if self.uses_two_handed_backhand else "one-handed"

    def confidence(self, rotation_y: float, magnitude: float) -> float:
        """Confidence (0-1) that a handedness call on this reading is right."""
        magnitude_confidence = min(1.0, magnitude / 4.0)
        distance = abs(rotation_y - self.adaptive_threshold)
        threshold_confidence = min(1.0, distance / 1.5)
        return (magnitude_confidence + threshold_confidence) / 2.0


def _detect_dominant_hand(polarity: Tuple[float, ...], current: DominantHand) -> DominantHand:
    if len(polarity) < 30:
        return current

    positive = sum(1 for value in polarity if value > 0)
    negative = sum(1 for value in polarity if value < 0)

    # Consistently inverted roll means the watch is on the left wrist
    if negative > positive * 1.5:
        return DominantHand.LEFT
    if positive > negative * 1.5:
        return DominantHand.RIGHT
    return DominantHand.UNKNOWN


def _adaptive_threshold(calibration: BackhandCalibration) -> BackhandCalibration:
    if not calibration.is_calibrated:
        return calibration

    forehand_avg = float(np.mean(calibration.forehand_rotations))
    backhand_avg = float(np.mean(calibration.backhand_rotations))
    threshold = (forehand_avg + backhand_avg) / 2.0
    return replace(
        calibration,
        average_forehand_rotation=forehand_avg,
        average_backhand_rotation=backhand_avg,
        adaptive_threshold=max(-2.0, min(0.0, threshold)),
    )


def record_rotation(calibration: BackhandCalibration, rotation_y: float, is_backhand: bool,
                    confidence: float, magnitude: float = 0.0, rotation_magnitude: float = 0.0,
                    max_history: int = 100, confidence_gate: float = 0.7) -> BackhandCalibration:
    # Low-confidence readings never reach the learner
    if confidence <= confidence_gate:
        return calibration

    polarity = calibration.rotation_polarity + (rotation_y,)
    dominant_hand = calibration.dominant_hand
    if len(polarity) > POLARITY_WINDOW:
        polarity = polarity[-POLARITY_WINDOW:]
        dominant_hand = _detect_dominant_hand(polarity, dominant_hand)

    updated = replace(calibration, rotation_polarity=polarity, dominant_hand=dominant_hand)

    if is_backhand:
        two_handed = updated.two_handed_count
        one_handed = updated.one_handed_count
        # Two-handed backhands roll the forearm less for the same impact
        if rotation_magnitude < 0.8 and magnitude > 2.0:
            two_handed += 1
        else:
            one_handed += 1

        uses_two_handed = updated.uses_two_handed_backhand
        if two_handed + one_handed >= TWO_HANDED_MIN_SHOTS:
            uses_two_handed = two_handed > one_handed * 1.5

        updated = replace(
            updated,
            backhand_rotations=(updated.backhand_rotations + (rotation_y,))[-max_history:],
            two_handed_count=two_handed,
            one_handed_count=one_handed,
            uses_two_handed_backhand=uses_two_handed,
        )
    else:
        updated = replace(
            updated,
            forehand_rotations=(updated.forehand_rotations + (rotation_y,))[-max_history:],
        )

    return _adaptive_threshold(updated)


@dataclass(frozen=True)
class SportCalibration:
    magnitude: MagnitudeCalibration
    backhand: BackhandCalibration = field(default_factory=BackhandCalibration)

    @classmethod
    def for_sport(cls, sport: Sport) -> "SportCalibration":
        return cls(magnitude=MagnitudeCalibration.for_sport(sport))


class CalibrationStore:
    def __init__(self, config: dict):
        self.config = config
        cal_config = config['calibration']
        self.magnitude_history = cal_config['magnitude_history']
        self.rotation_history = cal_config['rotation_history']
        self.min_samples = cal_config['min_samples']
        self.confidence_gate = cal_config['confidence_gate']

        self._sports: Dict[Sport, SportCalibration] = {}

    def get(self, sport: Sport) -> SportCalibration:
        if sport not in self._sports:
            self._sports[sport] = SportCalibration.for_sport(sport)
        return self._sports[sport]

    def backhand(self, sport: Sport) -> BackhandCalibration:
        return self.get(sport).backhand

    def normalize(self, magnitude: float, sport: Sport) -> float:
        return self.get(sport).magnitude.normalize(magnitude)

    def record_magnitude(self, magnitude: float, sport: Sport):
        current = self.get(sport)
        self._sports[sport] = replace(
            current,
            magnitude=record_magnitude(current.magnitude, magnitude, sport,
                                       self.magnitude_history, self.min_samples),
        )

    def record_rotation(self, sport: Sport, rotation_y: float, is_backhand: bool,
                        magnitude: float, rotation_magnitude: float) -> bool:
        current = self.get(sport)
        confidence = current.backhand.confidence(rotation_y, magnitude)
        learned = record_rotation(
            current.backhand, rotation_y, is_backhand, confidence,
            magnitude=magnitude, rotation_magnitude=rotation_magnitude,
            max_history=self.rotation_history, confidence_gate=self.confidence_gate,
        )
        if learned is current.backhand:
            logger.debug(f"Skipped calibration update (confidence {confidence:.2f})")
            return False

        if learned.is_calibrated and not current.backhand.is_calibrated:
            logger.info(f"{sport.value} backhand calibration complete, "
                        f"threshold {learned.adaptive_threshold:.2f}")
        if learned.shows_two_handed_status and not current.backhand.shows_two_handed_status:
            logger.info(f"{sport.value} backhand style: {learned.backhand_style}")
        self._sports[sport] = replace(current, backhand=learned)
        return True

    def reset(self):
        self._sports.clear()
        logger.info("Calibration reset")
