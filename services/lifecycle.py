"""Result status machine: draft -> final -> locked, with guarded reversals.

``transition_status`` covers the ordinary admin moves. Leaving ``locked`` is
only possible through ``unlock``, which needs a super admin and a note.
"""

import logging
from enum import Enum

from models import db, TournamentResult, current_time
from services import audit
from services.errors import (
    InvalidTransition,
    MissingNotes,
    PrivilegeRequired,
    ResultsLocked,
    TournamentNotCompleted,
)

logger = logging.getLogger(__name__)


class ResultStatus(str, Enum):
    DRAFT = 'draft'
    FINAL = 'final'
    LOCKED = 'locked'


TRANSITIONS = {
    ResultStatus.DRAFT: {ResultStatus.FINAL},
    ResultStatus.FINAL: {ResultStatus.LOCKED, ResultStatus.DRAFT},
    ResultStatus.LOCKED: set(),
}


def get_or_create_result(tournament) -> TournamentResult:
    if tournament.result is None:
        result = TournamentResult(tournament_id=tournament.id, status=ResultStatus.DRAFT.value)
        db.session.add(result)
        tournament.result = result
        db.session.flush()
    return tournament.result


def current_status(tournament) -> ResultStatus:
    return ResultStatus(tournament.result_status)


def ensure_unlocked(tournament) -> None:
    if current_status(tournament) is ResultStatus.LOCKED:
        raise ResultsLocked(f'Results for {tournament.name} are locked')


def _parse_status(value) -> ResultStatus:
    try:
        return ResultStatus(value)
    except ValueError:
        raise InvalidTransition(f'Unknown result status: {value!r}') from None


def _audit_transition(result, old, new, actor, notes, action='status_change'):
    audit.append(
        'tournament_result',
        result.tournament_id,
        action,
        old_value={'status': old.value},
        new_value={'status': new.value},
        actor=actor,
        notes=notes,
    )


def transition_status(tournament, new_status, actor, notes=None, commit=True) -> TournamentResult:
    if actor is None or not actor.is_admin:
        raise PrivilegeRequired('Changing the result status requires an admin')
    result = get_or_create_result(tournament)
    old = ResultStatus(result.status)
    new = _parse_status(new_status)

    if old is ResultStatus.LOCKED:
        raise InvalidTransition('Locked results can only be reopened through an unlock')
    if new not in TRANSITIONS[old]:
        raise InvalidTransition(f'Cannot move results from {old.value} to {new.value}')

    if new is ResultStatus.FINAL and not result.winner:
        raise InvalidTransition('Set the tournament winner before marking results final')

    if new is ResultStatus.LOCKED:
        result.locked_at = current_time()
        result.locked_by = actor.id
    else:
        result.locked_at = None
        result.locked_by = None
    result.status = new.value

    _audit_transition(result, old, new, actor, notes)
    if commit:
        db.session.commit()
    logger.info('Results for tournament %s moved %s -> %s', tournament.id, old.value, new.value)
    return result


def unlock(tournament, actor, notes, commit=True) -> TournamentResult:
    result = get_or_create_result(tournament)
    old = ResultStatus(result.status)

    if old is not ResultStatus.LOCKED:
        raise InvalidTransition('Only locked results can be unlocked')
    if actor is None or not actor.is_super_admin:
        raise PrivilegeRequired('Unlocking results requires a super admin')
    if not notes or not notes.strip():
        raise MissingNotes('Explain why the results are being unlocked')

    result.status = ResultStatus.FINAL.value
    result.locked_at = None
    result.locked_by = None

    _audit_transition(result, old, ResultStatus.FINAL, actor, notes.strip(), action='unlock')
    if commit:
        db.session.commit()
    logger.warning('Results for tournament %s unlocked by user %s', tournament.id, actor.id)
    return result


def complete_tournament(tournament, actor, notes=None, commit=True):
    """Mark the tournament itself as completed once its results are locked."""
    if tournament.is_completed:
        raise InvalidTransition(f'{tournament.name} is already completed')
    if current_status(tournament) is not ResultStatus.LOCKED:
        raise TournamentNotCompleted('Lock the results before completing the tournament')

    old_status = tournament.status
    tournament.status = 'completed'
    tournament.completed_at = current_time()
    audit.append(
        'tournament',
        tournament.id,
        'tournament_completed',
        old_value={'status': old_status},
        new_value={'status': tournament.status},
        actor=actor,
        notes=notes,
    )
    if commit:
        db.session.commit()
    return tournament
