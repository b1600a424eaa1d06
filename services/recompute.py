"""Admin-triggered batch scoring.

Each job re-derives ``points_earned`` from the current canonical results and
then re-ranks every pool of the tournament from the stored awards. Values are
written absolutely, never incremented, so running a job twice on unchanged
inputs produces the same rows and the same totals.

A prediction that cannot be scored is logged, left untouched and reported;
it never stops the rest of the batch.
"""

import logging
from dataclasses import dataclass, field

from models import (
    db,
    GroupStanding,
    Match,
    MatchPrediction,
    GroupStandingPrediction,
    Player,
    Pool,
    TopscorerPrediction,
    WinnerPrediction,
)
from services import audit, scoring
from services.ranking import rank_tournament_pools

logger = logging.getLogger(__name__)

CATEGORIES = ('matches', 'groups', 'topscorer', 'winner')


@dataclass
class RecomputeReport:
    category: str
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)
    pools_ranked: int = 0
    message: str = ''

    def record(self, changed: bool) -> None:
        if changed:
            self.updated += 1
        else:
            self.unchanged += 1

    def record_error(self, label: str, exc: Exception) -> None:
        self.skipped += 1
        self.errors.append(f'{label}: {exc}')

    def to_dict(self):
        return {
            'category': self.category,
            'updated': self.updated,
            'unchanged': self.unchanged,
            'skipped': self.skipped,
            'errors': list(self.errors),
            'pools_ranked': self.pools_ranked,
            'message': self.message,
        }


class _RulesCache:
    """Per-pool scoring rules, resolved once per job."""

    def __init__(self, tournament):
        self._overrides = {
            pool.id: pool.scoring_rules
            for pool in Pool.query.filter_by(tournament_id=tournament.id).all()
        }
        self._resolved = {}

    @property
    def pool_ids(self) -> list[int]:
        return sorted(self._overrides)

    def for_pool(self, pool_id) -> scoring.ScoringRules:
        if pool_id not in self._resolved:
            self._resolved[pool_id] = scoring.ScoringRules.from_overrides(self._overrides.get(pool_id))
        return self._resolved[pool_id]


def _finish(tournament, report: RecomputeReport, actor=None, scope=None) -> RecomputeReport:
    """Re-rank, record the run and commit; a failure here fails the whole job."""
    try:
        report.pools_ranked = rank_tournament_pools(tournament)
        if scope is not None:
            audit.append(
                'tournament',
                tournament.id,
                'points_calculated',
                new_value={**scope, 'updated': report.updated, 'skipped': report.skipped},
                actor=actor,
            )
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception('Recompute of %s points for tournament %s failed', report.category, tournament.id)
        raise

    if not report.message:
        report.message = f'Points calculated for {report.updated + report.unchanged} {report.category} predictions'
    logger.info(
        'Recompute %s for tournament %s: updated=%d unchanged=%d skipped=%d',
        report.category,
        tournament.id,
        report.updated,
        report.unchanged,
        report.skipped,
    )
    return report


def _skip(report, label, exc):
    logger.warning('Skipping %s: %s', label, exc, exc_info=exc)
    report.record_error(label, exc)


def calculate_match_points(tournament, actor=None) -> RecomputeReport:
    report = RecomputeReport(category='matches')
    matches = {
        match.id: match
        for match in Match.query.filter(
            Match.tournament_id == tournament.id,
            Match.status == 'finished',
            Match.home_score.isnot(None),
            Match.away_score.isnot(None),
        ).all()
    }
    if not matches:
        report.message = 'No finished matches to process'
        return report

    rules = _RulesCache(tournament)
    predictions = (
        MatchPrediction.query.filter(MatchPrediction.match_id.in_(list(matches)))
        .order_by(MatchPrediction.id)
        .with_for_update()
        .all()
    )

    for prediction in predictions:
        match = matches[prediction.match_id]
        try:
            result = scoring.score_match(
                prediction.predicted_home_score,
                prediction.predicted_away_score,
                match.home_score,
                match.away_score,
                rules=rules.for_pool(prediction.pool_id),
                is_knockout=match.is_knockout,
                predicted_penalty_winner=prediction.predicted_penalty_winner,
                actual_penalty_winner=match.penalty_winner,
            )
        except Exception as exc:
            _skip(report, f'Match prediction {prediction.id}', exc)
            continue

        changed = prediction.points_earned != result.points or prediction.outcome_kind != result.kind
        prediction.points_earned = result.points
        prediction.outcome_kind = result.kind
        report.record(changed)

    return _finish(tournament, report)


def calculate_group_points(tournament, actor=None, group_name=None) -> RecomputeReport:
    report = RecomputeReport(category='groups')
    query = GroupStanding.query.filter_by(tournament_id=tournament.id)
    if group_name:
        query = query.filter_by(group_name=group_name)

    standings = {}
    for standing in query.all():
        if not standing.is_complete:
            _skip(report, f'Group {standing.group_name} standing', ValueError('standing is incomplete'))
            continue
        standings[standing.group_name] = standing.ordered_teams

    if not standings:
        report.message = 'No group standings set yet'
        return report

    rules = _RulesCache(tournament)
    predictions = (
        GroupStandingPrediction.query.filter(
            GroupStandingPrediction.tournament_id == tournament.id,
            GroupStandingPrediction.group_name.in_(list(standings)),
        )
        .order_by(GroupStandingPrediction.id)
        .with_for_update()
        .all()
    )

    for prediction in predictions:
        try:
            points = scoring.score_group_standing(
                prediction.predicted_standings,
                standings[prediction.group_name],
                rules=rules.for_pool(prediction.pool_id),
            )
        except Exception as exc:
            _skip(report, f'Group prediction {prediction.id}', exc)
            continue

        report.record(prediction.points_earned != points)
        prediction.points_earned = points

    scope = {'category': 'groups', 'groups': sorted(standings)}
    return _finish(tournament, report, actor=actor, scope=scope)


def calculate_topscorer_points(tournament, actor=None) -> RecomputeReport:
    report = RecomputeReport(category='topscorer')
    players = Player.query.filter_by(tournament_id=tournament.id).all()
    result = scoring.top_scorers_from_goals((player.id, player.goals) for player in players)

    rules = _RulesCache(tournament)
    predictions = (
        TopscorerPrediction.query.filter(TopscorerPrediction.pool_id.in_(rules.pool_ids))
        .order_by(TopscorerPrediction.id)
        .with_for_update()
        .all()
    )

    if result is None:
        # Nobody has scored: clear awards left from an earlier goal count
        report.message = 'No goals recorded yet'
        for prediction in predictions:
            report.record(prediction.points_earned is not None)
            prediction.points_earned = None
        return _finish(tournament, report)

    for prediction in predictions:
        try:
            points = scoring.score_topscorer(prediction.player_id, result, rules=rules.for_pool(prediction.pool_id))
        except Exception as exc:
            _skip(report, f'Top-scorer prediction {prediction.id}', exc)
            continue

        report.record(prediction.points_earned != points)
        prediction.points_earned = points

    scope = {'category': 'topscorer', 'leaders': sorted(result.leaders), 'max_goals': result.max_goals}
    return _finish(tournament, report, actor=actor, scope=scope)


def calculate_winner_points(tournament, actor=None) -> RecomputeReport:
    report = RecomputeReport(category='winner')
    result = tournament.result
    if result is None or not result.winner:
        report.message = 'No tournament winner set yet'
        return report

    rules = _RulesCache(tournament)
    predictions = (
        WinnerPrediction.query.filter(WinnerPrediction.pool_id.in_(rules.pool_ids))
        .order_by(WinnerPrediction.id)
        .with_for_update()
        .all()
    )

    for prediction in predictions:
        try:
            points = scoring.score_winner(
                prediction.country,
                result.winner,
                result.finalist,
                rules=rules.for_pool(prediction.pool_id),
            )
        except Exception as exc:
            _skip(report, f'Winner prediction {prediction.id}', exc)
            continue

        report.record(prediction.points_earned != points)
        prediction.points_earned = points

    scope = {'category': 'winner', 'winner': result.winner, 'finalist': result.finalist}
    return _finish(tournament, report, actor=actor, scope=scope)


JOBS = {
    'matches': calculate_match_points,
    'groups': calculate_group_points,
    'topscorer': calculate_topscorer_points,
    'winner': calculate_winner_points,
}


def recompute_all(tournament, actor=None, categories=CATEGORIES) -> dict[str, RecomputeReport]:
    return {category: JOBS[category](tournament, actor=actor) for category in categories}
