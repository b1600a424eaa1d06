"""Read-only views consumed by the leaderboard and results pages."""

from dataclasses import dataclass, asdict
from typing import Optional

from flask import Blueprint, jsonify

from models import db, GroupStanding, Pool, Tournament, User
from services.ranking import leaderboard

public_bp = Blueprint("public", __name__, url_prefix="/public")


@dataclass
class ResultSummary:
    tournament_id: int
    tournament_status: str
    result_status: str
    winner: Optional[str]
    finalist: Optional[str]
    groups: dict


@public_bp.route("/pools/<int:pool_id>/leaderboard")
def pool_leaderboard(pool_id: int):
    pool = db.get_or_404(Pool, pool_id)
    return jsonify({
        "pool_id": pool.id,
        "pool": pool.name,
        "tournament_id": pool.tournament_id,
        "members": leaderboard(pool),
    })


@public_bp.route("/tournaments/<int:tournament_id>/result")
def tournament_result(tournament_id: int):
    tournament = db.get_or_404(Tournament, tournament_id)
    result = tournament.result
    standings = (
        GroupStanding.query.filter_by(tournament_id=tournament.id)
        .order_by(GroupStanding.group_name.asc())
        .all()
    )

    summary = ResultSummary(
        tournament_id=tournament.id,
        tournament_status=tournament.status,
        result_status=tournament.result_status,
        winner=result.winner if result else None,
        finalist=result.finalist if result else None,
        groups={standing.group_name: standing.ordered_teams for standing in standings},
    )
    return jsonify(asdict(summary))


@public_bp.route("/users/<int:user_id>/stats")
def user_stats(user_id: int):
    user = db.get_or_404(User, user_id)
    if user.stats:
        stats = user.stats.to_dict()
    else:
        stats = {
            "user_id": user.id,
            "total_points": 0,
            "tournaments_played": 0,
            "wins": 0,
            "podiums": 0,
            "best_rank": None,
        }
    stats["display_name"] = user.label
    return jsonify(stats)
