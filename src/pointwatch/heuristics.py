from dataclasses import dataclass
from typing import Dict, Tuple

from pointwatch.models import Sport

# Thresholds are in g (user acceleration) except the overhead angle (degrees).
# Tennis balls are heavier, so impacts read higher than padel, then pickleball.
SPORT_THRESHOLDS: Dict[Sport, dict] = {
    Sport.PICKLEBALL: {
        'touch_shot': 2.0,
        'overhead_angle': 45.0,
        'serve': 1.5,
        'volley_range': (2.0, 3.0),
        'minimum_swing': 1.8,
        'expected_range': (1.6, 5.0),
    },
    Sport.TENNIS: {
        'touch_shot': 2.8,
        'overhead_angle': 50.0,
        'serve': 2.2,
        'volley_range': (2.5, 4.0),
        'minimum_swing': 2.2,
        'expected_range': (2.0, 7.0),
    },
    Sport.PADEL: {
        'touch_shot': 2.5,
        'overhead_angle': 48.0,
        'serve': 1.8,
        'volley_range': (2.2, 3.5),
        'minimum_swing': 2.0,
        'expected_range': (1.8, 6.0),
    },
}

OFF_HAND_MULTIPLIER = 0.8


@dataclass(frozen=True)
class SportHeuristics:
    sport: Sport

    @property
    def _thresholds(self) -> dict:
        return SPORT_THRESHOLDS[self.sport]

    @property
    def touch_shot_threshold(self) -> float:
        return self._thresholds['touch_shot']

    @property
    def overhead_angle_threshold(self) -> float:
        return self._thresholds['overhead_angle']

    @property
    def serve_threshold(self) -> float:
        return self._thresholds['serve']

    @property
    def volley_range(self) -> Tuple[float, float]:
        return self._thresholds['volley_range']

    @property
    def minimum_swing_threshold(self) -> float:
        return self._thresholds['minimum_swing']

    @property
    def expected_magnitude_range(self) -> Tuple[float, float]:
        return self._thresholds['expected_range']

    @staticmethod
    def hand_multiplier(wear_on_swinging_hand: bool) -> float:
        return 1.0 if wear_on_swinging_hand else OFF_HAND_MULTIPLIER

    def swing_threshold(self, wear_on_swinging_hand: bool) -> float:
        return self.minimum_swing_threshold * self.hand_multiplier(wear_on_swinging_hand)
