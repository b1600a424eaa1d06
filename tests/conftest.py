import os
import sys
from datetime import date, datetime, timedelta

import pytest

# Ensure the project root (containing app.py and models.py) is importable
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from app import create_app
from config import Config
from models import (
    db,
    User,
    Tournament,
    TournamentResult,
    Match,
    Player,
    Pool,
    PoolMember,
)


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    LOG_LEVEL = 'WARNING'
    AUDIT_PAGE_SIZE = 5


@pytest.fixture
def flask_app():
    """Create test application with in-memory SQLite database"""
    application = create_app(TestConfig)
    with application.app_context():
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(flask_app):
    """Test client"""
    return flask_app.test_client()


def _make_user(username, role='member', display_name=None):
    user = User(username=username, role=role, display_name=display_name or username.title())
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def admin_user(flask_app):
    return _make_user('test_admin', role='admin', display_name='Test Admin')


@pytest.fixture
def super_admin(flask_app):
    return _make_user('test_root', role='super_admin', display_name='Root Admin')


@pytest.fixture
def members(flask_app):
    """Three pool members: Alice, Bob and Carol"""
    return [_make_user(name) for name in ('alice', 'bob', 'carol')]


@pytest.fixture
def tournament(flask_app):
    tournament = Tournament(
        name='Test Cup',
        start_date=date.today() - timedelta(days=10),
        end_date=date.today() + timedelta(days=20),
        status='active',
    )
    db.session.add(tournament)
    db.session.flush()
    db.session.add(TournamentResult(tournament_id=tournament.id, status='draft'))
    db.session.commit()
    return tournament


@pytest.fixture
def pool(tournament, members):
    pool = Pool(tournament_id=tournament.id, name='Office Pool', invite_code='OFFICE1')
    db.session.add(pool)
    db.session.flush()
    for user in members:
        db.session.add(PoolMember(pool_id=pool.id, user_id=user.id))
    db.session.commit()
    return pool


@pytest.fixture
def second_pool(tournament, members):
    pool = Pool(
        tournament_id=tournament.id,
        name='Family Pool',
        invite_code='FAMILY1',
        scoring_rules={'exact_score': 10},
    )
    db.session.add(pool)
    db.session.flush()
    db.session.add(PoolMember(pool_id=pool.id, user_id=members[0].id))
    db.session.commit()
    return pool


def _make_match(tournament, home, away, **kwargs):
    match = Match(
        tournament_id=tournament.id,
        home_team=home,
        away_team=away,
        kickoff_time=kwargs.pop('kickoff_time', datetime(2026, 6, 12, 18, 0)),
        **kwargs,
    )
    db.session.add(match)
    db.session.commit()
    return match


@pytest.fixture
def match(tournament):
    """Pending group match"""
    return _make_match(tournament, 'Brazil', 'France', stage='Group A')


@pytest.fixture
def finished_match(tournament):
    """Group match that ended 2-1"""
    return _make_match(
        tournament, 'Netherlands', 'Spain', stage='Group B', home_score=2, away_score=1, status='finished'
    )


@pytest.fixture
def knockout_match(tournament):
    """Knockout match decided 1-1 with the away side winning on penalties"""
    return _make_match(
        tournament,
        'Germany',
        'Argentina',
        stage='Quarterfinal',
        is_knockout=True,
        home_score=1,
        away_score=1,
        penalty_winner='away',
        status='finished',
    )


@pytest.fixture
def players(tournament):
    roster = [
        Player(tournament_id=tournament.id, name='Striker One', country='Brazil', goals=0),
        Player(tournament_id=tournament.id, name='Striker Two', country='France', goals=0),
        Player(tournament_id=tournament.id, name='Striker Three', country='Spain', goals=0),
        Player(tournament_id=tournament.id, name='Striker Four', country='Japan', goals=0),
    ]
    db.session.add_all(roster)
    db.session.commit()
    return roster


def _login(client, user):
    with client.session_transaction() as sess:
        sess['user_id'] = user.id
        sess['username'] = user.username
        sess['role'] = user.role
    return client


@pytest.fixture
def authenticated_admin(client, admin_user):
    """Client whose session carries the admin user"""
    return _login(client, admin_user)


@pytest.fixture
def authenticated_super_admin(client, super_admin):
    return _login(client, super_admin)


@pytest.fixture
def authenticated_member(client, members):
    return _login(client, members[0])
