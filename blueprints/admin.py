"""Admin endpoints: result entry, lifecycle transitions, scoring triggers and audit review."""

from flask import Blueprint, current_app, g, jsonify, request

from models import db, Match, Player, Tournament
from blueprints.auth import require_admin, require_super_admin
from services import audit, lifecycle, ranking, recompute, results
from services.errors import InvalidScore, ResultsError

admin_bp = Blueprint('admin', __name__, url_prefix='/admin')


@admin_bp.errorhandler(ResultsError)
def handle_results_error(exc):
    db.session.rollback()
    current_app.logger.info('Rejected %s: %s', request.path, exc)
    return jsonify(exc.to_dict()), exc.http_status


def _payload() -> dict:
    return request.get_json(silent=True) or {}


def _commit_or_rollback(action):
    """Run a mutating service call, rolling back if anything unexpected escapes."""
    try:
        return action()
    except ResultsError:
        raise
    except Exception:
        db.session.rollback()
        current_app.logger.exception('Unexpected failure on %s', request.path)
        raise


# ----------------------------------------------------------------------
# Result mutation
# ----------------------------------------------------------------------
@admin_bp.route('/matches/<int:match_id>/score', methods=['PUT'])
@require_admin
def set_match_score(match_id):
    match = db.get_or_404(Match, match_id)
    data = _payload()
    finish = data.get('finish', True)
    if not isinstance(finish, bool):
        raise InvalidScore("'finish' must be true or false")
    _commit_or_rollback(
        lambda: results.set_match_score(
            match,
            data.get('home_score'),
            data.get('away_score'),
            finish=finish,
            actor=g.current_user,
            penalty_winner=data.get('penalty_winner'),
        )
    )
    return jsonify({
        'match_id': match.id,
        'home_score': match.home_score,
        'away_score': match.away_score,
        'penalty_winner': match.penalty_winner,
        'status': match.status,
    })


@admin_bp.route('/tournaments/<int:tournament_id>/groups/<group_name>', methods=['PUT'])
@require_admin
def set_group_standing(tournament_id, group_name):
    tournament = db.get_or_404(Tournament, tournament_id)
    data = _payload()
    standing = _commit_or_rollback(
        lambda: results.set_group_standing(tournament, group_name, data.get('standings'), actor=g.current_user)
    )
    return jsonify({'group': standing.group_name, 'standings': standing.standings})


@admin_bp.route('/tournaments/<int:tournament_id>/result', methods=['PUT'])
@require_admin
def set_tournament_result(tournament_id):
    tournament = db.get_or_404(Tournament, tournament_id)
    data = _payload()
    result = _commit_or_rollback(
        lambda: results.set_tournament_result(
            tournament, data.get('winner'), data.get('finalist'), actor=g.current_user
        )
    )
    return jsonify(result.to_dict())


@admin_bp.route('/players/<int:player_id>/goals', methods=['PUT'])
@require_admin
def set_player_goals(player_id):
    player = db.get_or_404(Player, player_id)
    data = _payload()
    _commit_or_rollback(lambda: results.set_player_goals(player, data.get('goals'), actor=g.current_user))
    return jsonify({'player_id': player.id, 'goals': player.goals})


# ----------------------------------------------------------------------
# Lifecycle
# ----------------------------------------------------------------------
@admin_bp.route('/tournaments/<int:tournament_id>/status', methods=['POST'])
@require_admin
def transition_status(tournament_id):
    tournament = db.get_or_404(Tournament, tournament_id)
    data = _payload()
    result = _commit_or_rollback(
        lambda: lifecycle.transition_status(tournament, data.get('status'), g.current_user, notes=data.get('notes'))
    )
    return jsonify(result.to_dict())


@admin_bp.route('/tournaments/<int:tournament_id>/unlock', methods=['POST'])
@require_super_admin
def unlock_results(tournament_id):
    tournament = db.get_or_404(Tournament, tournament_id)
    data = _payload()
    result = _commit_or_rollback(lambda: lifecycle.unlock(tournament, g.current_user, data.get('notes')))
    return jsonify(result.to_dict())


@admin_bp.route('/tournaments/<int:tournament_id>/complete', methods=['POST'])
@require_admin
def complete_tournament(tournament_id):
    tournament = db.get_or_404(Tournament, tournament_id)
    data = _payload()

    def _complete():
        lifecycle.complete_tournament(tournament, g.current_user, notes=data.get('notes'), commit=False)
        applied = ranking.apply_lifetime_stats(tournament, actor=g.current_user, commit=False)
        db.session.commit()
        return applied

    applied = _commit_or_rollback(_complete)
    return jsonify({'tournament_id': tournament.id, 'status': tournament.status, 'memberships_applied': applied})


# ----------------------------------------------------------------------
# Scoring triggers
# ----------------------------------------------------------------------
@admin_bp.route('/tournaments/<int:tournament_id>/points/<category>', methods=['POST'])
@require_admin
def calculate_points(tournament_id, category):
    tournament = db.get_or_404(Tournament, tournament_id)
    if category not in recompute.JOBS:
        return jsonify({'error': 'unknown_category', 'message': f'Unknown scoring category: {category}'}), 404

    kwargs = {'actor': g.current_user}
    group_name = _payload().get('group')
    if category == 'groups' and group_name:
        kwargs['group_name'] = group_name

    report = recompute.JOBS[category](tournament, **kwargs)
    return jsonify(report.to_dict())


# ----------------------------------------------------------------------
# Audit review
# ----------------------------------------------------------------------
@admin_bp.route('/audit')
@require_admin
def audit_log():
    config = current_app.config
    page = request.args.get('page', 1, type=int)
    per_page = request.args.get('per_page', config['AUDIT_PAGE_SIZE'], type=int)
    pagination = audit.list_entries(
        page=page,
        per_page=per_page,
        entity_type=request.args.get('entity_type'),
        entity_id=request.args.get('entity_id'),
        max_per_page=config['AUDIT_MAX_PAGE_SIZE'],
    )
    return jsonify({
        'entries': [entry.to_dict() for entry in pagination.items],
        'page': pagination.page,
        'per_page': pagination.per_page,
        'total': pagination.total,
        'pages': pagination.pages,
    })
