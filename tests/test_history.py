from pointwatch.history import build_match_record
from pointwatch.match_state import MatchState
from pointwatch.models import ScorePair, Side, Sport, WorkoutSummary
from pointwatch.scoring_rules import PickleballRules, TennisRules
from pointwatch.settings import MatchFormat, TennisSettings

A = Side.PLAYER1
B = Side.PLAYER2


def test_pickleball_record(clock):
    match = MatchState(PickleballRules(), clock=clock)
    for side in [A, A, B, B, A] + [A] * 9:
        match.record_point(side)
    clock.advance(754.0)

    record = build_match_record(match)

    assert record.score_display == "11-1"
    assert record.game_count_display == "1-0"
    assert record.winner == "You"
    assert record.sport_abbreviation == "PB"
    assert record.match_format_description == "Single Game, 11 pts (Win by 2)"
    assert len(record.events) == 15

    data = record.to_dict()
    assert data['sport_type'] == "Pickleball"
    assert data['game_type'] == "Singles"
    assert data['set_history'] == [{'player1_games': 11, 'player2_games': 1}]
    assert data['health_data'] is None
    assert data['events'][0]['scoring_player'] == "player1"


def test_match_clock_stops_at_match_end(clock):
    match = MatchState(PickleballRules(), clock=clock)
    match.state.points = ScorePair(10, 0)
    clock.advance(600.0)
    match.record_point(A)
    clock.advance(120.0)

    record = build_match_record(match)
    assert record.elapsed_time_display == "10:00"


def test_tennis_record_reports_sets(clock):
    match = MatchState(TennisRules(TennisSettings(match_format=MatchFormat.SINGLE)), clock=clock)
    for _ in range(24):
        match.record_point(B)

    record = build_match_record(match, WorkoutSummary(average_heart_rate=150.0, total_calories=700.0))

    assert record.score_display == "0-1"
    assert record.winner == "Opponent"
    assert record.sport is Sport.TENNIS

    data = record.to_dict()
    assert data['set_history'] == [{'player1_games': 0, 'player2_games': 6}]
    assert data['health_data']['total_calories'] == 700.0


def test_abandoned_match_has_no_winner(clock):
    match = MatchState(TennisRules(), clock=clock)

    record = build_match_record(match)

    assert record.winner is None
    assert record.to_dict()['set_history'] is None
    assert record.to_dict()['events'] == [match.events[0].to_dict()]
