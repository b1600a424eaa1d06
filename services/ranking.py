import logging
from collections import defaultdict
from dataclasses import dataclass

from sqlalchemy import func

from models import (
    db,
    GroupStandingPrediction,
    MatchPrediction,
    Pool,
    PoolMember,
    TopscorerPrediction,
    User,
    UserStats,
    WinnerPrediction,
    current_time,
)
from services import audit
from services.errors import StatsAlreadyApplied, TournamentNotCompleted

logger = logging.getLogger(__name__)

PODIUM_RANK = 3


@dataclass
class MemberTotal:
    member: PoolMember
    points: int = 0
    exact_hits: int = 0
    rank: int | None = None

    @property
    def sort_name(self) -> str:
        user = self.member.user
        return (user.label if user else '').lower()


def _sum_points(model, pool_id) -> dict[int, int]:
    rows = (
        db.session.query(model.user_id, func.coalesce(func.sum(model.points_earned), 0))
        .filter(model.pool_id == pool_id, model.points_earned.isnot(None))
        .group_by(model.user_id)
        .all()
    )
    return {user_id: int(total) for user_id, total in rows}


def member_totals(pool) -> list[MemberTotal]:
    """Re-sum every member's awards from the stored ``points_earned`` values.

    The pool's member rows are locked first so concurrent jobs re-rank one
    after the other.
    """
    members = PoolMember.query.filter_by(pool_id=pool.id).order_by(PoolMember.id).with_for_update().all()

    points = defaultdict(int)
    for model in (MatchPrediction, GroupStandingPrediction, TopscorerPrediction, WinnerPrediction):
        for user_id, total in _sum_points(model, pool.id).items():
            points[user_id] += total

    exact_rows = (
        db.session.query(MatchPrediction.user_id, func.count(MatchPrediction.id))
        .filter(MatchPrediction.pool_id == pool.id, MatchPrediction.outcome_kind == 'exact')
        .group_by(MatchPrediction.user_id)
        .all()
    )
    exact = {user_id: int(count) for user_id, count in exact_rows}

    return [
        MemberTotal(member=member, points=points.get(member.user_id, 0), exact_hits=exact.get(member.user_id, 0))
        for member in members
    ]


def dense_rank(totals: list[MemberTotal]) -> list[MemberTotal]:
    """Order by points then exact hits; equal pairs share a rank and the next
    distinct pair continues at ``previous + 1``."""
    ordered = sorted(
        totals,
        key=lambda entry: (-entry.points, -entry.exact_hits, entry.sort_name, entry.member.user_id),
    )
    rank = 0
    previous = None
    for entry in ordered:
        key = (entry.points, entry.exact_hits)
        if key != previous:
            rank += 1
            previous = key
        entry.rank = rank
    return ordered


def rank_pool(pool) -> list[MemberTotal]:
    ranked = dense_rank(member_totals(pool))
    for entry in ranked:
        entry.member.points = entry.points
        entry.member.exact_hits = entry.exact_hits
        entry.member.rank = entry.rank
    logger.debug('Ranked %d members in pool %s', len(ranked), pool.id)
    return ranked


def rank_tournament_pools(tournament) -> int:
    pools = Pool.query.filter_by(tournament_id=tournament.id).order_by(Pool.id).all()
    for pool in pools:
        rank_pool(pool)
    return len(pools)


def leaderboard(pool) -> list[dict]:
    """Persisted standings as read by the leaderboard."""
    members = (
        PoolMember.query.join(User, PoolMember.user_id == User.id)
        .filter(PoolMember.pool_id == pool.id)
        .all()
    )
    members.sort(
        key=lambda member: (
            member.rank is None,
            member.rank or 0,
            member.user.label.lower(),
            member.user_id,
        )
    )
    return [
        {
            'user_id': member.user_id,
            'display_name': member.user.label,
            'points': member.points,
            'rank': member.rank,
            'exact_hits': member.exact_hits,
        }
        for member in members
    ]


def apply_lifetime_stats(tournament, actor=None, commit=True) -> int:
    """Add each pool member's final standing to their lifetime statistics.

    This is a one-way accumulation: it runs once per completed tournament and
    is never reversed automatically.
    """
    if not tournament.is_completed:
        raise TournamentNotCompleted(f'{tournament.name} is not completed yet')
    if tournament.stats_applied_at is not None:
        raise StatsAlreadyApplied(f'Statistics for {tournament.name} were already applied')

    applied = 0
    for pool in Pool.query.filter_by(tournament_id=tournament.id).order_by(Pool.id).all():
        for entry in rank_pool(pool):
            stats = UserStats.query.filter_by(user_id=entry.member.user_id).first()
            if not stats:
                stats = UserStats(user_id=entry.member.user_id, total_points=0, tournaments_played=0, wins=0, podiums=0)
                db.session.add(stats)
            stats.total_points += entry.points
            stats.tournaments_played += 1
            if entry.rank == 1:
                stats.wins += 1
            if entry.rank is not None and entry.rank <= PODIUM_RANK:
                stats.podiums += 1
            if entry.rank is not None and (stats.best_rank is None or entry.rank < stats.best_rank):
                stats.best_rank = entry.rank
            applied += 1

    tournament.stats_applied_at = current_time()
    audit.append(
        'tournament',
        tournament.id,
        'stats_applied',
        new_value={'memberships': applied},
        actor=actor,
    )
    if commit:
        db.session.commit()
    logger.info('Lifetime statistics applied for %d memberships of tournament %s', applied, tournament.id)
    return applied
