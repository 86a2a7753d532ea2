"""
Post-match insights built from the point-event log.

The ordered events are loaded into a pandas DataFrame once; every metric is a
column operation over it. Scores are read from the winner's perspective where
that matters (comeback size, time in lead, never trailed).
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from pointwatch.models import PointEvent, Side


class StoryType(Enum):
    DOMINANT = "dominant"
    COMEBACK = "comeback"
    NAIL_BITER = "nail_biter"
    BACK_AND_FORTH = "back_and_forth"
    WIRE_TO_WIRE = "wire_to_wire"
    STANDARD = "standard"

    @property
    def headline(self) -> str:
        return {
            StoryType.DOMINANT: "Dominant Performance",
            StoryType.COMEBACK: "Epic Comeback",
            StoryType.NAIL_BITER: "Nail-biter!",
            StoryType.BACK_AND_FORTH: "Epic Battle",
            StoryType.WIRE_TO_WIRE: "Wire-to-Wire Win",
            StoryType.STANDARD: "Good Win",
        }[self]


@dataclass(frozen=True)
class StoryMoment:
    kind: str
    description: str
    player: Optional[Side] = None


@dataclass(frozen=True)
class GameStory:
    type: StoryType
    headline: str
    moments: List[StoryMoment]
    insights: List[str]


def events_frame(events: Sequence[PointEvent]) -> pd.DataFrame:
    frame = pd.DataFrame([event.to_dict() for event in events],
                         columns=['timestamp', 'player1_score', 'player2_score',
                                  'scoring_player', 'is_serve_point', 'shot_type'])
    frame['margin'] = frame['player1_score'] - frame['player2_score']
    return frame


class GameInsights:
    def __init__(self, events: Sequence[PointEvent], final_score: Tuple[int, int],
                 winner: Side, duration: float):
        self.events = list(events)
        self.final_score = final_score
        self.winner = winner
        self.duration = duration
        self.frame = events_frame(self.events)

        # Positive while the winner is ahead
        sign = 1 if winner is Side.PLAYER1 else -1
        self._winner_margin = self.frame['margin'] * sign

    @classmethod
    def from_match(cls, match) -> Optional["GameInsights"]:
        if len(match.events) <= 1:
            return None
        return cls(
            events=match.events,
            final_score=match.state.points.as_tuple(),
            winner=match.winner or Side.PLAYER1,
            duration=match.elapsed_time,
        )

    @property
    def final_margin(self) -> int:
        return abs(self.final_score[0] - self.final_score[1])

    @property
    def lead_changes(self) -> int:
        leaders = np.sign(self.frame['margin'])
        leaders = leaders[leaders != 0]
        if leaders.empty:
            return 0
        return int((leaders != leaders.shift()).sum()) - 1

    @property
    def max_lead(self) -> int:
        if self.frame.empty:
            return 0
        return int(self.frame['margin'].abs().max())

    @property
    def comeback_size(self) -> int:
        if self.frame.empty:
            return 0
        return max(0, int((-self._winner_margin).max()))

    @property
    def longest_run(self) -> Tuple[Side, int]:
        scorers = self.frame['scoring_player'].iloc[1:]
        if scorers.empty:
            return Side.PLAYER1, 0

        runs = scorers.groupby((scorers != scorers.shift()).cumsum()).agg(['first', 'size'])
        best = runs.loc[runs['size'].idxmax()]
        return Side(best['first']), int(best['size'])

    @property
    def percentage_in_lead(self) -> int:
        if self.frame.empty:
            return 0
        return int((self._winner_margin > 0).sum() / len(self.frame) * 100)

    @property
    def never_trailed(self) -> bool:
        return not (self._winner_margin < 0).any()

    @property
    def closed_out_strong(self) -> bool:
        if len(self.frame) < 3:
            return False
        return bool((self.frame['scoring_player'].tail(3) == self.winner.value).all())

    @property
    def story_type(self) -> StoryType:
        if self.max_lead >= 5 and self.percentage_in_lead >= 70:
            return StoryType.DOMINANT
        if self.comeback_size >= 4:
            return StoryType.COMEBACK
        if self.final_score[0] != 0 and self.final_margin <= 2:
            return StoryType.NAIL_BITER
        if self.lead_changes >= 5:
            return StoryType.BACK_AND_FORTH
        if self.never_trailed:
            return StoryType.WIRE_TO_WIRE
        return StoryType.STANDARD

    def _comeback_score(self) -> str:
        deficits = -self._winner_margin
        if deficits.max() <= 0:
            return "0-0"
        row = self.frame.loc[deficits.idxmax()]
        return f"{row['player1_score']}-{row['player2_score']}"

    def key_moments(self) -> List[StoryMoment]:
        moments = []

        if len(self.frame) >= 5:
            opening = self.frame['scoring_player'].head(6)
            if (opening == Side.PLAYER1.value).sum() >= 4:
                moments.append(StoryMoment('hot_start', "Hot start! Led 5-1", Side.PLAYER1))
            elif (opening == Side.PLAYER2.value).sum() >= 4:
                moments.append(StoryMoment('hot_start', "Hot start! Led 1-5", Side.PLAYER2))

        if self.comeback_size >= 4:
            moments.append(StoryMoment(
                'comeback', f"Incredible comeback from {self._comeback_score()}", self.winner))

        if self.closed_out_strong and self.final_margin <= 2:
            moments.append(StoryMoment(
                'clutch_finish', f"Clutch finish at {self.final_score[0]}-{self.final_score[1]}"))

        player, points = self.longest_run
        if points >= 5:
            moments.append(StoryMoment('point_streak', f"{points} point run!", player))

        return moments

    def insight_lines(self) -> List[str]:
        lines = []

        if self.percentage_in_lead >= 80:
            lines.append(f"Led {self.percentage_in_lead}% of the game")
        elif self.percentage_in_lead <= 20:
            lines.append("Trailed most of the game")

        if self.lead_changes >= 6:
            lines.append(f"Lead changed {self.lead_changes} times!")

        if self.never_trailed:
            lines.append("Never trailed")

        margin = self.final_margin
        if margin >= 5:
            lines.append(f"Dominant {margin} point victory")
        if margin <= 2:
            lines.append(f"Decided by {margin} point{'' if margin == 1 else 's'}")

        return lines

    def story(self) -> GameStory:
        story_type = self.story_type
        return GameStory(
            type=story_type,
            headline=story_type.headline,
            moments=self.key_moments(),
            insights=self.insight_lines(),
        )

    def to_dict(self) -> dict:
        player, points = self.longest_run
        return {
            'lead_changes': self.lead_changes,
            'max_lead': self.max_lead,
            'comeback_size': self.comeback_size,
            'longest_run': {'player': player.value, 'points': points},
            'percentage_in_lead': self.percentage_in_lead,
            'never_trailed': self.never_trailed,
            'closed_out_strong': self.closed_out_strong,
            'story_type': self.story_type.value,
            'insights': self.insight_lines(),
        }
