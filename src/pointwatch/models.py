import copy
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional, Tuple

import numpy as np


class Sport(Enum):
    PICKLEBALL = "Pickleball"
    TENNIS = "Tennis"
    PADEL = "Padel"


class MatchKind(Enum):
    SINGLES = "Singles"
    DOUBLES = "Doubles"


class Side(Enum):
    PLAYER1 = "player1"  # the wearer's side
    PLAYER2 = "player2"

    @property
    def opponent(self) -> "Side":
        return Side.PLAYER2 if self is Side.PLAYER1 else Side.PLAYER1

    @property
    def label(self) -> str:
        return "You" if self is Side.PLAYER1 else "Opponent"


class DominantHand(Enum):
    LEFT = "left"
    RIGHT = "right"
    UNKNOWN = "unknown"


class SwingPhase(Enum):
    IDLE = "idle"
    SWINGING = "swinging"


_SHOT_NAMES = {
    Sport.PICKLEBALL: {
        "serve": "Serve", "overhead": "Smash", "power_shot": "Drive",
        "touch_shot": "Dink", "volley": "Volley",
    },
    Sport.TENNIS: {
        "serve": "Serve", "overhead": "Smash", "power_shot": "Groundstroke",
        "touch_shot": "Touch", "volley": "Volley",
    },
    Sport.PADEL: {
        "serve": "Serve", "overhead": "Overhead", "power_shot": "Drive",
        "touch_shot": "Touch", "volley": "Volley",
    },
}


class ShotType(Enum):
    SERVE = "serve"
    OVERHEAD = "overhead"
    POWER_SHOT = "power_shot"
    TOUCH_SHOT = "touch_shot"
    VOLLEY = "volley"
    UNKNOWN = "unknown"

    @property
    def is_point_candidate(self) -> bool:
        return self in (ShotType.SERVE, ShotType.OVERHEAD, ShotType.POWER_SHOT)

    @property
    def carries_handedness(self) -> bool:
        return self not in (ShotType.SERVE, ShotType.OVERHEAD)

    def display_name(self, sport: Sport, is_backhand: bool = False) -> str:
        if self is ShotType.UNKNOWN:
            return "Unknown"
        name = _SHOT_NAMES[sport][self.value]
        if is_backhand and self.carries_handedness:
            return f"BH {name}"
        return name


@dataclass
class MotionSample:
    acceleration: np.ndarray  # user acceleration in g, gravity removed
    rotation_rate: np.ndarray  # rad/s
    timestamp: float  # seconds, monotonic

    @classmethod
    def from_values(cls, ax: float, ay: float, az: float,
                    gx: float, gy: float, gz: float, timestamp: float) -> "MotionSample":
        return cls(
            acceleration=np.array([ax, ay, az], dtype=float),
            rotation_rate=np.array([gx, gy, gz], dtype=float),
            timestamp=timestamp,
        )

    @property
    def magnitude(self) -> float:
        return float(np.linalg.norm(self.acceleration))

    @property
    def rotation_magnitude(self) -> float:
        return float(np.linalg.norm(self.rotation_rate))


@dataclass
class SwingWindow:
    start_time: float
    peak_magnitude: float
    rotation_samples: List[np.ndarray] = field(default_factory=list)

    def add(self, magnitude: float, rotation_rate: np.ndarray):
        self.rotation_samples.append(rotation_rate)
        self.peak_magnitude = max(self.peak_magnitude, magnitude)


@dataclass(frozen=True)
class DetectedShot:
    type: ShotType
    intensity: float  # normalized 0-1
    absolute_magnitude: float
    timestamp: float
    gyro_angle: float = 0.0  # degrees
    swing_duration: float = 0.0
    sport: Sport = Sport.PICKLEBALL
    rally_reaction_time: Optional[float] = None
    associated_with_point: bool = False
    is_backhand: bool = False
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def is_point_candidate(self) -> bool:
        return self.type.is_point_candidate

    @property
    def display_name(self) -> str:
        return self.type.display_name(self.sport, self.is_backhand)

    def marked_as_point_winner(self) -> "DetectedShot":
        return replace(self, associated_with_point=True)


@dataclass(frozen=True)
class PointEvent:
    timestamp: float  # match clock seconds
    player1_score: int
    player2_score: int
    scoring_player: Side
    is_serve_point: bool
    shot_type: Optional[ShotType] = None

    def to_dict(self) -> dict:
        return {
            'timestamp': self.timestamp,
            'player1_score': self.player1_score,
            'player2_score': self.player2_score,
            'scoring_player': self.scoring_player.value,
            'is_serve_point': self.is_serve_point,
            'shot_type': self.shot_type.value if self.shot_type else None,
        }


@dataclass(frozen=True)
class SetScore:
    player1_games: int
    player2_games: int
    tiebreak_score: Optional[Tuple[int, int]] = None

    def __str__(self) -> str:
        text = f"{self.player1_games}-{self.player2_games}"
        if self.tiebreak_score:
            text += f" ({self.tiebreak_score[0]}-{self.tiebreak_score[1]})"
        return text

    def to_dict(self) -> dict:
        data = {'player1_games': self.player1_games, 'player2_games': self.player2_games}
        if self.tiebreak_score:
            data['tiebreak_player1'], data['tiebreak_player2'] = self.tiebreak_score
        return data


@dataclass
class WorkoutSummary:
    average_heart_rate: float
    total_calories: float
    duration: float = 0.0  # seconds

    def to_dict(self) -> dict:
        return {
            'average_heart_rate': self.average_heart_rate,
            'total_calories': self.total_calories,
            'duration': self.duration,
        }


@dataclass
class ScorePair:
    player1: int = 0
    player2: int = 0

    def get(self, side: Side) -> int:
        return self.player1 if side is Side.PLAYER1 else self.player2

    def increment(self, side: Side):
        if side is Side.PLAYER1:
            self.player1 += 1
        else:
            self.player2 += 1

    def reset(self):
        self.player1 = 0
        self.player2 = 0

    def leader(self) -> Optional[Side]:
        if self.player1 > self.player2:
            return Side.PLAYER1
        if self.player2 > self.player1:
            return Side.PLAYER2
        return None

    def lead(self) -> int:
        return abs(self.player1 - self.player2)

    def as_tuple(self) -> Tuple[int, int]:
        return self.player1, self.player2


@dataclass
class ScoreState:
    """Everything a scoring transition can change; copied whole for undo."""

    server: Side
    initial_server: Side
    points: ScorePair = field(default_factory=ScorePair)
    games: ScorePair = field(default_factory=ScorePair)
    sets: ScorePair = field(default_factory=ScorePair)
    is_second_server: bool = False
    in_tiebreak: bool = False
    tiebreak_points_played: int = 0
    games_played: int = 0  # across the match, drives serve rotation
    game_winner: Optional[Side] = None
    match_winner: Optional[Side] = None
    set_history: List[SetScore] = field(default_factory=list)
    last_set_score: Optional[SetScore] = None

    def snapshot(self) -> "ScoreState":
        return copy.deepcopy(self)
