import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from pointwatch.match_state import MatchState
from pointwatch.models import PointEvent, SetScore, Sport, WorkoutSummary

SPORT_ABBREVIATIONS = {Sport.PICKLEBALL: "PB", Sport.TENNIS: "T", Sport.PADEL: "P"}


@dataclass
class MatchRecord:
    """Flat, JSON-ready summary of a finished (or abandoned) match."""

    date: datetime
    sport: Sport
    match_kind: str
    player1_score: int
    player2_score: int
    player1_games_won: int
    player2_games_won: int
    elapsed_time: float
    match_format_description: str
    winner: Optional[str] = None
    events: List[PointEvent] = field(default_factory=list)
    set_history: List[SetScore] = field(default_factory=list)
    health: Optional[WorkoutSummary] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def score_display(self) -> str:
        return f"{self.player1_score}-{self.player2_score}"

    @property
    def game_count_display(self) -> str:
        return f"{self.player1_games_won}-{self.player2_games_won}"

    @property
    def elapsed_time_display(self) -> str:
        minutes, seconds = divmod(int(max(0.0, self.elapsed_time)), 60)
        return f"{minutes:02d}:{seconds:02d}"

    @property
    def sport_abbreviation(self) -> str:
        return SPORT_ABBREVIATIONS[self.sport]

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'date': self.date.isoformat(),
            'sport_type': self.sport.value,
            'game_type': self.match_kind,
            'player1_score': self.player1_score,
            'player2_score': self.player2_score,
            'player1_games_won': self.player1_games_won,
            'player2_games_won': self.player2_games_won,
            'elapsed_time': self.elapsed_time,
            'match_format_description': self.match_format_description,
            'winner': self.winner,
            'events': [event.to_dict() for event in self.events] or None,
            'health_data': self.health.to_dict() if self.health else None,
            'set_history': [set_score.to_dict() for set_score in self.set_history] or None,
        }


def build_match_record(match: MatchState, health: Optional[WorkoutSummary] = None) -> MatchRecord:
    state = match.state
    if match.sport is Sport.PICKLEBALL:
        # Rally scoring reports the point score of the current (or final) game
        score = state.points
    else:
        score = state.sets

    return MatchRecord(
        date=match.started_at,
        sport=match.sport,
        match_kind=match.match_kind.value,
        player1_score=score.player1,
        player2_score=score.player2,
        player1_games_won=state.games.player1,
        player2_games_won=state.games.player2,
        elapsed_time=match.elapsed_time,
        match_format_description=match.rules.format_description(),
        winner=match.winner.label if match.winner else None,
        events=list(match.events),
        set_history=list(state.set_history),
        health=health,
    )
