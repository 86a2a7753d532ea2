"""
Per-sport scoring rules for the shared match engine.

Each rules object is stateless apart from its settings and works on a
ScoreState handed in by MatchState:

- award_rally applies the sport's point rule for one rally and reports who
  the resulting event should credit and whether it was a serve point
- advance then walks point -> game -> tiebreak -> set -> match and prepares
  the state (scores, server) for whatever comes next

PickleballRules uses side-out scoring, TennisRules and PadelRules use
traditional 15/30/40 scoring with sets and tiebreaks.
"""

from abc import ABC, abstractmethod
from typing import Optional, Tuple

from loguru import logger

from pointwatch.models import MatchKind, ScoreState, SetScore, Side, Sport
from pointwatch.settings import PadelSettings, PickleballSettings, TennisSettings


class ScoringRules(ABC):
    sport: Sport

    def __init__(self, settings):
        self.settings = settings

    @property
    def match_kind(self) -> MatchKind:
        return self.settings.match_kind

    @property
    def is_doubles(self) -> bool:
        return self.match_kind is MatchKind.DOUBLES

    def initial_state(self, first_server: Side) -> ScoreState:
        return ScoreState(server=first_server, initial_server=first_server)

    @abstractmethod
    def award_rally(self, state: ScoreState, winner: Side) -> Tuple[Side, bool]:
        """Apply one rally won by ``winner``.

        Returns the side the point event credits and whether it was a serve point.
        """

    @abstractmethod
    def advance(self, state: ScoreState):
        """Resolve game/set/match completion after a rally."""

    def reset_game(self, state: ScoreState):
        state.points.reset()
        state.game_winner = None

    def format_score(self, state: ScoreState, side: Side) -> str:
        return str(state.points.get(side))

    def score_call(self, state: ScoreState) -> Optional[str]:
        return None

    def score_announcement(self, state: ScoreState) -> str:
        server = state.points.get(state.server)
        receiver = state.points.get(state.server.opponent)
        return f"{server}-{receiver}"

    def match_score_summary(self, state: ScoreState) -> str:
        parts = [str(set_score) for set_score in state.set_history]
        if state.match_winner is None and (state.games.player1 or state.games.player2):
            current = f"{state.games.player1}-{state.games.player2}"
            if state.in_tiebreak:
                current += f" ({state.points.player1}-{state.points.player2})"
            parts.append(current)
        return ", ".join(parts)

    def format_description(self) -> str:
        return self.settings.format_description()


class PickleballRules(ScoringRules):
    sport = Sport.PICKLEBALL

    def __init__(self, settings: Optional[PickleballSettings] = None):
        super().__init__(settings or PickleballSettings())

    def initial_state(self, first_server: Side) -> ScoreState:
        state = super().initial_state(first_server)
        # Doubles opens on the second server ("0-0-2")
        state.is_second_server = self.is_doubles
        return state

    def award_rally(self, state: ScoreState, winner: Side) -> Tuple[Side, bool]:
        if winner is state.server:
            state.points.increment(winner)
            return winner, True

        # Fault by the serving side: no score change
        if not self.is_doubles or state.is_second_server:
            self._side_out(state)
        else:
            state.is_second_server = True
        return winner, False

    def _side_out(self, state: ScoreState):
        state.server = state.server.opponent
        state.is_second_server = False
        logger.debug(f"Side out, {state.server.label} serving")

    def _game_winner(self, state: ScoreState) -> Optional[Side]:
        target = self.settings.score_limit
        if not target:
            return None

        for side in (Side.PLAYER1, Side.PLAYER2):
            mine = state.points.get(side)
            theirs = state.points.get(side.opponent)
            if self.settings.win_by_two:
                if mine >= target and mine >= theirs + 2:
                    return side
            elif mine == target:
                return side
        return None

    def advance(self, state: ScoreState):
        winner = self._game_winner(state)
        if winner is None:
            return

        state.game_winner = winner
        state.games.increment(winner)
        state.games_played += 1
        state.set_history.append(SetScore(state.points.player1, state.points.player2))
        state.last_set_score = state.set_history[-1]
        logger.info(f"Game won by {winner.label} {state.points.player1}-{state.points.player2}")

        games_needed = self.settings.games_needed
        if games_needed and state.games.get(winner) >= games_needed:
            state.match_winner = winner
            return

        self._start_game(state)

    def _start_game(self, state: ScoreState):
        state.points.reset()
        state.server = state.initial_server
        state.is_second_server = self.is_doubles

    def reset_game(self, state: ScoreState):
        super().reset_game(state)
        self._start_game(state)

    def score_announcement(self, state: ScoreState) -> str:
        call = super().score_announcement(state)
        if self.is_doubles:
            call += "-2" if state.is_second_server else "-1"
        return call

    def match_score_summary(self, state: ScoreState) -> str:
        parts = [str(game) for game in state.set_history]
        if state.match_winner is None and (state.points.player1 or state.points.player2):
            parts.append(f"{state.points.player1}-{state.points.player2}")
        return ", ".join(parts)


class TennisRules(ScoringRules):
    sport = Sport.TENNIS

    def __init__(self, settings: Optional[TennisSettings] = None):
        super().__init__(settings or TennisSettings())

    # Serve rotation

    def _rotate_server(self, state: ScoreState):
        initial = state.initial_server
        if self.is_doubles:
            # Team A first, team B first, team A second, team B second
            position = state.games_played % 4
            state.server = initial if position in (0, 2) else initial.opponent
            state.is_second_server = position >= 2
        else:
            state.server = initial if state.games_played % 2 == 0 else initial.opponent
            state.is_second_server = False

    def _update_tiebreak_server(self, state: ScoreState):
        played = state.tiebreak_points_played
        if played == 1 or (played > 1 and (played - 1) % 2 == 0):
            state.server = state.server.opponent
            state.is_second_server = False

    # Scoring

    def award_rally(self, state: ScoreState, winner: Side) -> Tuple[Side, bool]:
        is_serve_point = winner is state.server
        state.points.increment(winner)

        if state.in_tiebreak:
            state.tiebreak_points_played += 1
            self._update_tiebreak_server(state)
        return winner, is_serve_point

    def is_deciding_set(self, state: ScoreState) -> bool:
        sets_needed = self.settings.sets_needed
        if not sets_needed or sets_needed == 1:
            return False
        return state.sets.player1 == sets_needed - 1 and state.sets.player2 == sets_needed - 1

    def _tiebreak_allowed(self, state: ScoreState) -> bool:
        # Without a deciding-set tiebreak the last set is an advantage set
        return not self.is_deciding_set(state) or self.settings.final_set_tiebreak

    def tiebreak_target(self, state: ScoreState) -> int:
        if self.is_deciding_set(state) and self.settings.final_set_tiebreak:
            return self.settings.final_set_tiebreak_points
        return self.settings.tiebreak_points

    def _game_winner(self, state: ScoreState) -> Optional[Side]:
        p1, p2 = state.points.as_tuple()
        if self.settings.golden_point and p1 >= 3 and p2 >= 3 and p1 != p2:
            return state.points.leader()
        if p1 >= 4 and p1 >= p2 + 2:
            return Side.PLAYER1
        if p2 >= 4 and p2 >= p1 + 2:
            return Side.PLAYER2
        return None

    def _tiebreak_winner(self, state: ScoreState) -> Optional[Side]:
        target = self.tiebreak_target(state)
        leader = state.points.leader()
        if leader and state.points.get(leader) >= target and state.points.lead() >= 2:
            return leader
        return None

    def advance(self, state: ScoreState):
        if state.in_tiebreak:
            winner = self._tiebreak_winner(state)
            if winner is not None:
                self._finish_tiebreak(state, winner)
            return

        winner = self._game_winner(state)
        if winner is None:
            return

        state.game_winner = winner
        state.games.increment(winner)
        state.games_played += 1
        logger.debug(f"Game to {winner.label}, games {state.games.player1}-{state.games.player2}")

        games_at = self.settings.tiebreak_at
        if (state.games.player1 == games_at and state.games.player2 == games_at and
                self._tiebreak_allowed(state)):
            self._start_tiebreak(state)
            return

        leader = state.games.leader()
        if leader and state.games.get(leader) >= games_at and state.games.lead() >= 2:
            self._finish_set(state, leader, SetScore(state.games.player1, state.games.player2))
            return

        self._start_game(state)

    def _start_game(self, state: ScoreState):
        state.points.reset()
        self._rotate_server(state)

    def _start_tiebreak(self, state: ScoreState):
        state.in_tiebreak = True
        state.tiebreak_points_played = 0
        # The side due to serve the next game opens the tiebreak
        self._start_game(state)
        logger.info(f"Tiebreak at {state.games.player1}-{state.games.player2}, "
                    f"{state.server.label} serving first")

    def _finish_tiebreak(self, state: ScoreState, winner: Side):
        tiebreak_score = state.points.as_tuple()
        # The tiebreak counts as the deciding game of the set
        state.game_winner = winner
        state.games.increment(winner)
        state.games_played += 1
        state.in_tiebreak = False
        state.tiebreak_points_played = 0
        self._finish_set(state, winner,
                         SetScore(state.games.player1, state.games.player2, tiebreak_score))

    def _finish_set(self, state: ScoreState, winner: Side, set_score: SetScore):
        state.set_history.append(set_score)
        state.last_set_score = set_score
        state.sets.increment(winner)
        logger.info(f"Set won by {winner.label} {set_score}")

        sets_needed = self.settings.sets_needed
        if sets_needed and state.sets.get(winner) >= sets_needed:
            state.match_winner = winner
            return

        state.games.reset()
        state.in_tiebreak = False
        self._start_game(state)

    def reset_game(self, state: ScoreState):
        super().reset_game(state)
        state.tiebreak_points_played = 0
        self._rotate_server(state)

    def format_score(self, state: ScoreState, side: Side) -> str:
        return self.settings.format_score(
            state.points.get(side), state.points.get(side.opponent), state.in_tiebreak)

    def score_call(self, state: ScoreState) -> Optional[str]:
        if state.in_tiebreak:
            return None
        p1, p2 = state.points.as_tuple()
        if p1 < 3 or p2 < 3:
            return None
        if p1 == p2:
            return "golden point" if self.settings.golden_point else "deuce"
        return "advantage"


class PadelRules(TennisRules):
    sport = Sport.PADEL

    def __init__(self, settings: Optional[PadelSettings] = None):
        ScoringRules.__init__(self, settings or PadelSettings())

    def _tiebreak_allowed(self, state: ScoreState) -> bool:
        return True

    def tiebreak_target(self, state: ScoreState) -> int:
        return self.settings.tiebreak_points

    def _finish_tiebreak(self, state: ScoreState, winner: Side):
        # Folded straight into the set: recorded 7-6 without touching the game counter
        set_score = (SetScore(7, 6, state.points.as_tuple()) if winner is Side.PLAYER1
                     else SetScore(6, 7, state.points.as_tuple()))
        state.game_winner = winner
        state.games_played += 1
        state.in_tiebreak = False
        state.tiebreak_points_played = 0
        self._finish_set(state, winner, set_score)
