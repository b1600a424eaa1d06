"""Point-award rules for every prediction category.

Nothing in this module touches the database: each function receives the
prediction and the canonical result it is scored against and returns an
integer award (or a ``MatchScore`` for matches, which also carries the
outcome kind used for leaderboard tie-breaks).
"""

from dataclasses import dataclass, fields, replace
from typing import Iterable, Optional

from services.errors import ScoringError

GROUP_SIZE = 4


@dataclass(frozen=True)
class ScoringRules:
    exact_score: int = 5
    correct_result: int = 2
    penalty_winner: int = 3
    group_position_correct: int = 3
    group_all_correct: int = 10
    topscorer_correct: int = 15
    topscorer_in_top3: int = 3
    winner_correct: int = 25
    winner_finalist: int = 5

    @classmethod
    def from_overrides(cls, overrides: Optional[dict]) -> 'ScoringRules':
        """Merge a pool's ``scoring_rules`` JSON over the default table.

        Unknown keys are ignored; values must be non-negative integers.
        """
        if not overrides:
            return DEFAULT_RULES

        known = {field.name for field in fields(cls)}
        changes = {}
        for key, value in overrides.items():
            if key not in known or value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ScoringError(f'Invalid scoring rule {key}={value!r}')
            changes[key] = value
        return replace(DEFAULT_RULES, **changes)


DEFAULT_RULES = ScoringRules()


@dataclass(frozen=True)
class MatchScore:
    points: int
    kind: str  # exact, penalty, result, miss


@dataclass(frozen=True)
class TopScorerResult:
    leaders: frozenset
    top_three: frozenset
    max_goals: int


def classify_outcome(home: int, away: int) -> str:
    if home > away:
        return 'home'
    if away > home:
        return 'away'
    return 'draw'


def _require_score(value, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ScoringError(f'{label} must be a non-negative integer, got {value!r}')
    return value


def score_match(
    predicted_home,
    predicted_away,
    actual_home,
    actual_away,
    rules: ScoringRules = DEFAULT_RULES,
    is_knockout: bool = False,
    predicted_penalty_winner: Optional[str] = None,
    actual_penalty_winner: Optional[str] = None,
) -> MatchScore:
    """Score one match prediction.

    Exactly one award applies, in order of precedence: exact scoreline,
    correct shootout winner (knockout matches decided on penalties only),
    correct outcome, miss.
    """
    predicted_home = _require_score(predicted_home, 'Predicted home score')
    predicted_away = _require_score(predicted_away, 'Predicted away score')
    actual_home = _require_score(actual_home, 'Actual home score')
    actual_away = _require_score(actual_away, 'Actual away score')

    if predicted_home == actual_home and predicted_away == actual_away:
        return MatchScore(rules.exact_score, 'exact')

    if (
        is_knockout
        and actual_penalty_winner
        and actual_home == actual_away
        and predicted_penalty_winner == actual_penalty_winner
    ):
        return MatchScore(rules.penalty_winner, 'penalty')

    if classify_outcome(predicted_home, predicted_away) == classify_outcome(actual_home, actual_away):
        return MatchScore(rules.correct_result, 'result')

    return MatchScore(0, 'miss')


def _normalise_team(team) -> str:
    if team is None:
        return ''
    return str(team).strip().lower()


def normalise_standing(teams: Iterable) -> list[str]:
    normalised = [_normalise_team(team) for team in teams or []]
    if len(normalised) != GROUP_SIZE or '' in normalised or len(set(normalised)) != GROUP_SIZE:
        raise ScoringError(f'Standing must list exactly {GROUP_SIZE} distinct teams')
    return normalised


def score_group_standing(predicted: Iterable, actual: Iterable, rules: ScoringRules = DEFAULT_RULES) -> int:
    predicted_teams = normalise_standing(predicted)
    actual_teams = normalise_standing(actual)

    correct = sum(1 for guess, truth in zip(predicted_teams, actual_teams) if guess == truth)
    points = correct * rules.group_position_correct
    if correct == GROUP_SIZE:
        points += rules.group_all_correct
    return points


def top_scorers_from_goals(players: Iterable) -> Optional[TopScorerResult]:
    """Derive the top-scorer truth from ``(player_id, goals)`` pairs.

    Everyone tied on the highest goal count is a top scorer. The top three are
    the players whose goal count is among the three highest distinct counts.
    Returns ``None`` while nobody has scored.
    """
    tallies = [(player_id, goals or 0) for player_id, goals in players]
    if not tallies:
        return None

    max_goals = max(goals for _, goals in tallies)
    if max_goals <= 0:
        return None

    distinct = sorted({goals for _, goals in tallies if goals > 0}, reverse=True)[:3]
    leaders = frozenset(player_id for player_id, goals in tallies if goals == max_goals)
    top_three = frozenset(player_id for player_id, goals in tallies if goals in distinct)
    return TopScorerResult(leaders=leaders, top_three=top_three, max_goals=max_goals)


def score_topscorer(player_id, result: TopScorerResult, rules: ScoringRules = DEFAULT_RULES) -> int:
    if player_id is None:
        raise ScoringError('Top-scorer prediction has no player')
    if player_id in result.leaders:
        return rules.topscorer_correct
    if player_id in result.top_three:
        return rules.topscorer_in_top3
    return 0


def score_winner(country, winner, finalist=None, rules: ScoringRules = DEFAULT_RULES) -> int:
    predicted = _normalise_team(country)
    if not predicted:
        raise ScoringError('Winner prediction has no country')
    if not _normalise_team(winner):
        raise ScoringError('No tournament winner to score against')

    if predicted == _normalise_team(winner):
        return rules.winner_correct
    if finalist and predicted == _normalise_team(finalist):
        return rules.winner_finalist
    return 0
