"""Canonical results entered by administrators.

Every successful write records an audit entry in the same transaction.
Validation runs before anything is changed, so a rejected call leaves the
stored results untouched.
"""

import logging

from models import db, GroupStanding, current_time, GROUP_SIZE
from services import audit
from services.errors import (
    DuplicateTeamInStanding,
    IncompleteStanding,
    InvalidFinalistPair,
    InvalidScore,
)
from services.lifecycle import ensure_unlocked, get_or_create_result

logger = logging.getLogger(__name__)

PENALTY_SIDES = ('home', 'away')


def _as_score(value, label):
    if isinstance(value, bool):
        raise InvalidScore(f'{label} must be a whole number')
    try:
        score = int(value)
    except (TypeError, ValueError):
        raise InvalidScore(f'{label} must be a whole number') from None
    if score != value and not (isinstance(value, str) and value.strip().isdigit()):
        raise InvalidScore(f'{label} must be a whole number')
    if score < 0:
        raise InvalidScore(f'{label} cannot be negative')
    return score


def set_match_score(match, home, away, finish=True, actor=None, penalty_winner=None, commit=True):
    """Write a match score; scores are not gated by the tournament result lock."""
    home_score = _as_score(home, 'Home score')
    away_score = _as_score(away, 'Away score')

    if penalty_winner is not None:
        if penalty_winner not in PENALTY_SIDES:
            raise InvalidScore("Penalty winner must be 'home' or 'away'")
        if not match.is_knockout:
            raise InvalidScore('Only knockout matches have a penalty shootout')
        if home_score != away_score:
            raise InvalidScore('A penalty shootout needs a level score')

    before = match.score_snapshot()
    match.home_score = home_score
    match.away_score = away_score
    match.penalty_winner = penalty_winner
    if finish:
        match.status = 'finished'
    match.updated_at = current_time()

    audit.append('match', match.id, 'score_updated', old_value=before, new_value=match.score_snapshot(), actor=actor)
    if commit:
        db.session.commit()
    logger.info('Score %s set for match %s (%s)', match.score_display, match.id, match.status)
    return match


def normalise_group_entries(ordered_teams) -> list[dict]:
    """Turn team names (in order) or ``{team, position}`` dicts into validated entries."""
    entries = []
    for index, item in enumerate(ordered_teams or [], start=1):
        if isinstance(item, dict):
            team = item.get('team')
            position = item.get('position')
        else:
            team, position = item, index
        team = str(team).strip() if team is not None else ''
        if not team:
            raise IncompleteStanding(f'Position {position} has no team')
        if isinstance(position, bool) or not isinstance(position, int):
            raise IncompleteStanding(f'Invalid position {position!r} for {team}')
        entries.append({'team': team, 'position': position})

    if len(entries) != GROUP_SIZE:
        raise IncompleteStanding(f'A group standing needs exactly {GROUP_SIZE} teams, got {len(entries)}')

    positions = [entry['position'] for entry in entries]
    if sorted(positions) != list(range(1, GROUP_SIZE + 1)):
        raise IncompleteStanding(f'Positions must be 1 to {GROUP_SIZE} with no duplicates')

    seen = set()
    for entry in entries:
        key = entry['team'].lower()
        if key in seen:
            raise DuplicateTeamInStanding(f"{entry['team']} appears more than once")
        seen.add(key)

    return sorted(entries, key=lambda entry: entry['position'])


def set_group_standing(tournament, group_name, ordered_teams, actor=None, commit=True):
    entries = normalise_group_entries(ordered_teams)
    ensure_unlocked(tournament)

    group_name = str(group_name).strip()
    standing = GroupStanding.query.filter_by(tournament_id=tournament.id, group_name=group_name).first()
    before = list(standing.standings) if standing else None
    if not standing:
        standing = GroupStanding(tournament_id=tournament.id, group_name=group_name)
        db.session.add(standing)
    standing.standings = entries
    db.session.flush()

    audit.append(
        'group_standing',
        f'{tournament.id}:{group_name}',
        'standing_updated',
        old_value=before,
        new_value=entries,
        actor=actor,
    )
    if commit:
        db.session.commit()
    logger.info('Group %s standing set for tournament %s', group_name, tournament.id)
    return standing


def set_tournament_result(tournament, winner, finalist=None, actor=None, commit=True):
    winner = (winner or '').strip()
    finalist = (finalist or '').strip() or None
    if not winner:
        raise InvalidFinalistPair('A winner is required')
    if finalist and finalist.lower() == winner.lower():
        raise InvalidFinalistPair(f'{winner} cannot be both winner and finalist')
    ensure_unlocked(tournament)

    result = get_or_create_result(tournament)
    before = {'winner': result.winner, 'finalist': result.finalist}
    result.winner = winner
    result.finalist = finalist

    audit.append(
        'tournament_result',
        tournament.id,
        'result_updated',
        old_value=before,
        new_value={'winner': winner, 'finalist': finalist},
        actor=actor,
    )
    if commit:
        db.session.commit()
    logger.info('Tournament %s result set: winner=%s finalist=%s', tournament.id, winner, finalist)
    return result


def set_player_goals(player, goals, actor=None, commit=True):
    goals = _as_score(goals, 'Goals')
    ensure_unlocked(player.tournament)

    before = {'goals': player.goals}
    player.goals = goals
    audit.append('player', player.id, 'goals_updated', old_value=before, new_value={'goals': goals}, actor=actor)
    if commit:
        db.session.commit()
    return player
