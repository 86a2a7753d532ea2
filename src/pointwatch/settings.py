from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pointwatch.errors import ConfigError
from pointwatch.models import MatchKind


class MatchFormat(Enum):
    SINGLE = "single"
    BEST_OF_3 = "best_of_3"
    BEST_OF_5 = "best_of_5"
    FIRST_TO = "first_to"
    UNLIMITED = "unlimited"

    def units_needed(self, first_to_count: int) -> Optional[int]:
        """Games (pickleball) or sets needed to take the match; None never ends."""
        if self is MatchFormat.SINGLE:
            return 1
        if self is MatchFormat.BEST_OF_3:
            return 2
        if self is MatchFormat.BEST_OF_5:
            return 3
        if self is MatchFormat.FIRST_TO:
            return first_to_count if first_to_count > 0 else None
        return None

    @property
    def label(self) -> str:
        return {
            MatchFormat.SINGLE: "Single Game",
            MatchFormat.BEST_OF_3: "Best of 3",
            MatchFormat.BEST_OF_5: "Best of 5",
            MatchFormat.FIRST_TO: "First To",
            MatchFormat.UNLIMITED: "Unlimited Games",
        }[self]

    def describe(self, first_to_count: int) -> str:
        if self is MatchFormat.FIRST_TO:
            return f"{self.label} {first_to_count}"
        return self.label


class ScoringSystem(Enum):
    TRADITIONAL = "traditional"
    NUMERICAL = "numerical"


def _enum_value(enum_cls, value, key: str):
    try:
        return enum_cls(value)
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        raise ConfigError(f"{key} must be one of: {choices}, got {value!r}")


def format_point(points: int, opponent_points: int, scoring_system: ScoringSystem,
                 in_tiebreak: bool = False) -> str:
    if in_tiebreak or scoring_system is ScoringSystem.NUMERICAL:
        return str(points)

    if points >= 3 and opponent_points >= 3:
        return "AD" if points > opponent_points else "40"
    return ("0", "15", "30", "40")[min(points, 3)]


@dataclass
class PickleballSettings:
    score_limit: Optional[int] = 11
    win_by_two: bool = True
    match_format: MatchFormat = MatchFormat.SINGLE
    first_to_count: int = 2
    doubles: bool = False

    @classmethod
    def from_config(cls, config: dict) -> "PickleballSettings":
        section = config['match']['pickleball']
        score_limit = section['score_limit']
        return cls(
            score_limit=score_limit if score_limit else None,
            win_by_two=section['win_by_two'],
            match_format=_enum_value(MatchFormat, section['match_format'],
                                     'match.pickleball.match_format'),
            first_to_count=section['first_to_count'],
            doubles=section['doubles'],
        )

    @property
    def match_kind(self) -> MatchKind:
        return MatchKind.DOUBLES if self.doubles else MatchKind.SINGLES

    @property
    def games_needed(self) -> Optional[int]:
        return self.match_format.units_needed(self.first_to_count)

    def format_description(self) -> str:
        text = self.match_format.describe(self.first_to_count)
        if self.score_limit:
            text += f", {self.score_limit} pts"
            if self.win_by_two:
                text += " (Win by 2)"
        else:
            text += ", Unlimited pts"
        return text


@dataclass
class TennisSettings:
    scoring_system: ScoringSystem = ScoringSystem.TRADITIONAL
    golden_point: bool = False
    match_format: MatchFormat = MatchFormat.BEST_OF_3
    first_to_count: int = 2
    doubles: bool = False
    tiebreak_at: int = 6
    tiebreak_points: int = 7
    final_set_tiebreak: bool = True
    final_set_tiebreak_points: int = 10

    @classmethod
    def from_config(cls, config: dict) -> "TennisSettings":
        section = config['match']['tennis']
        return cls(
            scoring_system=_enum_value(ScoringSystem, section['scoring_system'],
                                       'match.tennis.scoring_system'),
            golden_point=section['golden_point'],
            match_format=_enum_value(MatchFormat, section['match_format'],
                                     'match.tennis.match_format'),
            first_to_count=section['first_to_count'],
            doubles=section['doubles'],
            tiebreak_at=section['tiebreak_at'],
            tiebreak_points=section['tiebreak_points'],
            final_set_tiebreak=section['final_set_tiebreak'],
            final_set_tiebreak_points=section['final_set_tiebreak_points'],
        )

    @property
    def match_kind(self) -> MatchKind:
        return MatchKind.DOUBLES if self.doubles else MatchKind.SINGLES

    @property
    def sets_needed(self) -> Optional[int]:
        return self.match_format.units_needed(self.first_to_count)

    def format_score(self, points: int, opponent_points: int, in_tiebreak: bool = False) -> str:
        return format_point(points, opponent_points, self.scoring_system, in_tiebreak)

    def format_description(self) -> str:
        text = self.match_format.describe(self.first_to_count)
        if self.golden_point:
            text += ", Golden Point"
        return text


@dataclass
class PadelSettings:
    scoring_system: ScoringSystem = ScoringSystem.TRADITIONAL
    golden_point: bool = True
    match_format: MatchFormat = MatchFormat.BEST_OF_3
    first_to_count: int = 2
    tiebreak_at: int = 6
    tiebreak_points: int = 7

    @classmethod
    def from_config(cls, config: dict) -> "PadelSettings":
        section = config['match']['padel']
        return cls(
            scoring_system=_enum_value(ScoringSystem, section['scoring_system'],
                                       'match.padel.scoring_system'),
            golden_point=section['golden_point'],
            match_format=_enum_value(MatchFormat, section['match_format'],
                                     'match.padel.match_format'),
            first_to_count=section['first_to_count'],
        )

    @property
    def doubles(self) -> bool:
        return True

    @property
    def match_kind(self) -> MatchKind:
        return MatchKind.DOUBLES

    @property
    def sets_needed(self) -> Optional[int]:
        return self.match_format.units_needed(self.first_to_count)

    def format_score(self, points: int, opponent_points: int, in_tiebreak: bool = False) -> str:
        return format_point(points, opponent_points, self.scoring_system, in_tiebreak)

    def format_description(self) -> str:
        text = self.match_format.describe(self.first_to_count)
        if self.golden_point:
            text += ", Golden Point"
        return text
