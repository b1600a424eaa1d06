from datetime import datetime, date, timedelta
import os

import pytz
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.orm import validates

db = SQLAlchemy()

APP_TZ = pytz.timezone(os.environ.get('APP_TIMEZONE', 'Europe/Amsterdam'))

USER_ROLES = ('member', 'admin', 'super_admin')
MATCH_STATUSES = ('pending', 'live', 'finished')
TOURNAMENT_STATUSES = ('upcoming', 'active', 'completed')
RESULT_STATUSES = ('draft', 'final', 'locked')
OUTCOME_KINDS = ('exact', 'penalty', 'result', 'miss')
GROUP_SIZE = 4


def current_time():
    return datetime.now(APP_TZ)


class User(db.Model):
    """Members and administrators. Authentication lives outside this service."""

    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    display_name = db.Column(db.String(120))
    role = db.Column(db.String(20), nullable=False, default='member')  # member, admin, super_admin
    created_at = db.Column(db.DateTime, default=current_time)

    memberships = db.relationship('PoolMember', back_populates='user', lazy=True)
    stats = db.relationship('UserStats', back_populates='user', uselist=False)

    def __repr__(self):  # pragma: no cover - debug helper
        return f"<User {self.id} {self.username} role={self.role}>"

    @validates('role')
    def validate_role(self, key, value):
        if value not in USER_ROLES:
            raise ValueError(f'Unknown role: {value}')
        return value

    @property
    def is_admin(self) -> bool:
        return self.role in ('admin', 'super_admin')

    @property
    def is_super_admin(self) -> bool:
        return self.role == 'super_admin'

    @property
    def label(self) -> str:
        return self.display_name or self.username


class Tournament(db.Model):
    __tablename__ = 'tournament'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(20), default='upcoming')  # upcoming, active, completed
    completed_at = db.Column(db.DateTime)
    stats_applied_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=current_time)

    matches = db.relationship('Match', backref='tournament', lazy=True)
    pools = db.relationship('Pool', backref='tournament', lazy=True)
    players = db.relationship('Player', backref='tournament', lazy=True)
    group_standings = db.relationship('GroupStanding', backref='tournament', lazy=True)
    result = db.relationship(
        'TournamentResult', back_populates='tournament', uselist=False, cascade='all, delete-orphan'
    )

    def __repr__(self):  # pragma: no cover - debug helper
        return f"<Tournament {self.id} {self.name}>"

    @validates('end_date')
    def validate_end_date(self, key, value):
        if self.start_date and value < self.start_date:
            raise ValueError('End date must be on or after the start date')
        return value

    @validates('status')
    def validate_status(self, key, value):
        if value not in TOURNAMENT_STATUSES:
            raise ValueError(f'Unknown tournament status: {value}')
        return value

    @property
    def result_status(self) -> str:
        return self.result.status if self.result else 'draft'

    @property
    def is_completed(self) -> bool:
        return self.status == 'completed'


class TournamentResult(db.Model):
    """Canonical winner/finalist pair and the lock state of tournament-level results."""

    __tablename__ = 'tournament_result'

    id = db.Column(db.Integer, primary_key=True)
    tournament_id = db.Column(db.Integer, db.ForeignKey('tournament.id'), nullable=False, unique=True)
    winner = db.Column(db.String(100))
    finalist = db.Column(db.String(100))
    status = db.Column(db.String(20), nullable=False, default='draft')  # draft, final, locked
    locked_at = db.Column(db.DateTime)
    locked_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    updated_at = db.Column(db.DateTime, default=current_time, onupdate=current_time)

    tournament = db.relationship('Tournament', back_populates='result')

    @validates('status')
    def validate_status(self, key, value):
        if value not in RESULT_STATUSES:
            raise ValueError(f'Unknown result status: {value}')
        return value

    def to_dict(self):
        return {
            'tournament_id': self.tournament_id,
            'winner': self.winner,
            'finalist': self.finalist,
            'status': self.status,
            'locked_at': self.locked_at.isoformat() if self.locked_at else None,
            'locked_by': self.locked_by,
        }


class Match(db.Model):
    __tablename__ = 'match'

    id = db.Column(db.Integer, primary_key=True)
    tournament_id = db.Column(db.Integer, db.ForeignKey('tournament.id'), nullable=False)
    home_team = db.Column(db.String(100), nullable=False)
    away_team = db.Column(db.String(100), nullable=False)
    home_score = db.Column(db.Integer)
    away_score = db.Column(db.Integer)
    penalty_winner = db.Column(db.String(10))  # home, away
    status = db.Column(db.String(20), default='pending')  # pending, live, finished
    stage = db.Column(db.String(50))
    is_knockout = db.Column(db.Boolean, default=False, nullable=False)
    kickoff_time = db.Column(db.DateTime, nullable=False)
    created_at = db.Column(db.DateTime, default=current_time)
    updated_at = db.Column(db.DateTime, default=current_time)

    predictions = db.relationship('MatchPrediction', backref='match', lazy=True)

    def __repr__(self):  # pragma: no cover - debug helper
        return f"<Match {self.id} {self.home_team}-{self.away_team} status={self.status}>"

    @validates('status')
    def validate_status(self, key, value):
        if value not in MATCH_STATUSES:
            raise ValueError(f'Unknown match status: {value}')
        return value

    @property
    def is_scored(self) -> bool:
        return self.status == 'finished' and self.home_score is not None and self.away_score is not None

    @property
    def score_display(self) -> str:
        if self.home_score is None or self.away_score is None:
            return 'Match not scored'
        return f"{self.home_score}-{self.away_score}"

    def score_snapshot(self) -> dict:
        return {
            'home_score': self.home_score,
            'away_score': self.away_score,
            'penalty_winner': self.penalty_winner,
            'status': self.status,
        }


class GroupStanding(db.Model):
    __tablename__ = 'group_standing'

    id = db.Column(db.Integer, primary_key=True)
    tournament_id = db.Column(db.Integer, db.ForeignKey('tournament.id'), nullable=False)
    group_name = db.Column(db.String(20), nullable=False)
    standings = db.Column(db.JSON, nullable=False, default=list)  # [{'team': str, 'position': int}]
    updated_at = db.Column(db.DateTime, default=current_time, onupdate=current_time)

    __table_args__ = (db.UniqueConstraint('tournament_id', 'group_name', name='unique_group_standing'),)

    @property
    def ordered_teams(self) -> list[str]:
        entries = sorted(self.standings or [], key=lambda entry: entry['position'])
        return [entry['team'] for entry in entries]

    @property
    def is_complete(self) -> bool:
        entries = self.standings or []
        positions = {entry.get('position') for entry in entries}
        teams = {str(entry.get('team', '')).strip().lower() for entry in entries}
        return (
            len(entries) == GROUP_SIZE
            and positions == set(range(1, GROUP_SIZE + 1))
            and len(teams) == GROUP_SIZE
            and '' not in teams
        )


class Player(db.Model):
    """Tournament player; goal totals are the top-scorer truth."""

    __tablename__ = 'player'

    id = db.Column(db.Integer, primary_key=True)
    tournament_id = db.Column(db.Integer, db.ForeignKey('tournament.id'), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    country = db.Column(db.String(100), nullable=False)
    goals = db.Column(db.Integer, default=0, nullable=False)
    updated_at = db.Column(db.DateTime, default=current_time, onupdate=current_time)


class Pool(db.Model):
    __tablename__ = 'pool'

    id = db.Column(db.Integer, primary_key=True)
    tournament_id = db.Column(db.Integer, db.ForeignKey('tournament.id'), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    invite_code = db.Column(db.String(20), unique=True)
    scoring_rules = db.Column(db.JSON)  # optional overrides of the default point table
    created_at = db.Column(db.DateTime, default=current_time)

    members = db.relationship('PoolMember', back_populates='pool', lazy=True, cascade='all, delete-orphan')

    def __repr__(self):  # pragma: no cover - debug helper
        return f"<Pool {self.id} {self.name}>"


class PoolMember(db.Model):
    __tablename__ = 'pool_member'

    id = db.Column(db.Integer, primary_key=True)
    pool_id = db.Column(db.Integer, db.ForeignKey('pool.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    points = db.Column(db.Integer, default=0, nullable=False)
    rank = db.Column(db.Integer)
    exact_hits = db.Column(db.Integer, default=0, nullable=False)
    joined_at = db.Column(db.DateTime, default=current_time)

    __table_args__ = (db.UniqueConstraint('pool_id', 'user_id', name='unique_pool_member'),)

    pool = db.relationship('Pool', back_populates='members')
    user = db.relationship('User', back_populates='memberships')


class MatchPrediction(db.Model):
    __tablename__ = 'match_prediction'

    id = db.Column(db.Integer, primary_key=True)
    pool_id = db.Column(db.Integer, db.ForeignKey('pool.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    match_id = db.Column(db.Integer, db.ForeignKey('match.id'), nullable=False)
    predicted_home_score = db.Column(db.Integer, nullable=False)
    predicted_away_score = db.Column(db.Integer, nullable=False)
    predicted_penalty_winner = db.Column(db.String(10))  # home, away
    points_earned = db.Column(db.Integer)
    outcome_kind = db.Column(db.String(10))  # exact, penalty, result, miss
    is_ai_generated = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=current_time)

    __table_args__ = (db.UniqueConstraint('pool_id', 'user_id', 'match_id', name='unique_match_prediction'),)

    @validates('outcome_kind')
    def validate_outcome_kind(self, key, value):
        if value is not None and value not in OUTCOME_KINDS:
            raise ValueError(f'Unknown outcome kind: {value}')
        return value


class GroupStandingPrediction(db.Model):
    __tablename__ = 'group_standing_prediction'

    id = db.Column(db.Integer, primary_key=True)
    pool_id = db.Column(db.Integer, db.ForeignKey('pool.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    tournament_id = db.Column(db.Integer, db.ForeignKey('tournament.id'), nullable=False)
    group_name = db.Column(db.String(20), nullable=False)
    predicted_standings = db.Column(db.JSON, nullable=False)  # ordered list of team names
    points_earned = db.Column(db.Integer)
    created_at = db.Column(db.DateTime, default=current_time)

    __table_args__ = (
        db.UniqueConstraint('pool_id', 'user_id', 'group_name', name='unique_group_prediction'),
    )

    @validates('predicted_standings')
    def validate_predicted_standings(self, key, value):
        teams = [str(team).strip().lower() for team in (value or [])]
        if len(teams) != GROUP_SIZE or len(set(teams)) != GROUP_SIZE or '' in teams:
            raise ValueError(f'A group prediction must rank exactly {GROUP_SIZE} distinct teams')
        return list(value)


class TopscorerPrediction(db.Model):
    __tablename__ = 'topscorer_prediction'

    id = db.Column(db.Integer, primary_key=True)
    pool_id = db.Column(db.Integer, db.ForeignKey('pool.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    points_earned = db.Column(db.Integer)
    created_at = db.Column(db.DateTime, default=current_time)

    __table_args__ = (db.UniqueConstraint('pool_id', 'user_id', name='unique_topscorer_prediction'),)

    player = db.relationship('Player')


class WinnerPrediction(db.Model):
    __tablename__ = 'winner_prediction'

    id = db.Column(db.Integer, primary_key=True)
    pool_id = db.Column(db.Integer, db.ForeignKey('pool.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    country = db.Column(db.String(100), nullable=False)
    points_earned = db.Column(db.Integer)
    created_at = db.Column(db.DateTime, default=current_time)

    __table_args__ = (db.UniqueConstraint('pool_id', 'user_id', name='unique_winner_prediction'),)


class AuditLogEntry(db.Model):
    """Append-only record of result mutations, lifecycle transitions and scoring runs."""

    __tablename__ = 'audit_log'

    id = db.Column(db.Integer, primary_key=True)
    entity_type = db.Column(db.String(40), nullable=False)  # tournament_result, group_standing, match, player, tournament
    entity_id = db.Column(db.String(40), nullable=False)
    action = db.Column(db.String(40), nullable=False)
    old_value = db.Column(db.JSON)
    new_value = db.Column(db.JSON)
    actor_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=current_time, nullable=False)

    actor = db.relationship('User', foreign_keys=[actor_id])

    def __repr__(self):  # pragma: no cover - debug helper
        return f"<AuditLogEntry {self.id} {self.entity_type}:{self.entity_id} {self.action}>"

    def to_dict(self):
        return {
            'id': self.id,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'action': self.action,
            'old_value': self.old_value,
            'new_value': self.new_value,
            'actor_id': self.actor_id,
            'actor': self.actor.label if self.actor else None,
            'notes': self.notes,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


@event.listens_for(AuditLogEntry, 'before_update')
def _reject_audit_update(mapper, connection, target):
    raise ValueError('Audit log entries are immutable')


@event.listens_for(AuditLogEntry, 'before_delete')
def _reject_audit_delete(mapper, connection, target):
    raise ValueError('Audit log entries are immutable')


class UserStats(db.Model):
    """Lifetime totals accumulated across completed tournaments."""

    __tablename__ = 'user_stats'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, unique=True)
    total_points = db.Column(db.Integer, default=0, nullable=False)
    tournaments_played = db.Column(db.Integer, default=0, nullable=False)
    wins = db.Column(db.Integer, default=0, nullable=False)
    podiums = db.Column(db.Integer, default=0, nullable=False)
    best_rank = db.Column(db.Integer)
    updated_at = db.Column(db.DateTime, default=current_time, onupdate=current_time)

    user = db.relationship('User', back_populates='stats')

    def to_dict(self):
        return {
            'user_id': self.user_id,
            'total_points': self.total_points,
            'tournaments_played': self.tournaments_played,
            'wins': self.wins,
            'podiums': self.podiums,
            'best_rank': self.best_rank,
        }


def init_default_data(admin_username='admin', tournament_name='WK 2026'):
    """Seed the default administrator and tournament."""

    admin = User.query.filter_by(username=admin_username).first()
    if not admin:
        admin = User(username=admin_username, display_name='Administrator', role='super_admin')
        db.session.add(admin)
        db.session.flush()

    tournament = Tournament.query.filter_by(name=tournament_name).first()
    if not tournament:
        tournament = Tournament(
            name=tournament_name,
            start_date=date.today(),
            end_date=date.today() + timedelta(days=38),
            status='upcoming',
        )
        db.session.add(tournament)
        db.session.flush()
        db.session.add(TournamentResult(tournament_id=tournament.id, status='draft'))

    db.session.commit()
    return admin, tournament

