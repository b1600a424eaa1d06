"""Typed failures raised by the results core.

Validation failures subclass ``ValueError`` so callers that already guard
model validation with ``except ValueError`` keep working.
"""


class ResultsError(Exception):
    """Base class for every error surfaced by the results core."""

    code = 'results_error'
    http_status = 400

    def __init__(self, message=None):
        super().__init__(message or self.__doc__.strip().splitlines()[0])

    @property
    def message(self) -> str:
        return str(self)

    def to_dict(self):
        return {'error': self.code, 'message': self.message}


class ResultsValidationError(ResultsError, ValueError):
    """Submitted result data is invalid."""

    code = 'validation_error'
    http_status = 422


class IncompleteStanding(ResultsValidationError):
    """A group standing needs exactly 4 teams with positions 1 to 4."""

    code = 'incomplete_standing'


class DuplicateTeamInStanding(ResultsValidationError):
    """A team appears more than once in the group standing."""

    code = 'duplicate_team_in_standing'


class InvalidFinalistPair(ResultsValidationError):
    """The finalist must differ from the winner."""

    code = 'invalid_finalist_pair'


class InvalidScore(ResultsValidationError):
    """Scores must be non-negative whole numbers."""

    code = 'invalid_score'


class ResultsLocked(ResultsError):
    """Results are locked and cannot be changed until they are unlocked."""

    code = 'results_locked'
    http_status = 409


class InvalidTransition(ResultsError):
    """The requested result status transition is not allowed."""

    code = 'invalid_transition'
    http_status = 409


class MissingNotes(ResultsValidationError):
    """This action requires an explanatory note."""

    code = 'missing_notes'


class PrivilegeRequired(ResultsError):
    """This action requires elevated privileges."""

    code = 'privilege_required'
    http_status = 403


class TournamentNotCompleted(ResultsError):
    """The tournament has not been completed yet."""

    code = 'tournament_not_completed'
    http_status = 409


class StatsAlreadyApplied(ResultsError):
    """Lifetime statistics were already applied for this tournament."""

    code = 'stats_already_applied'
    http_status = 409


class ScoringError(ValueError):
    """A prediction or result could not be scored."""
