import logging
import os
import sys

import click
from flask import Flask

from config import Config
from models import db, Tournament, User, init_default_data
from blueprints.admin import admin_bp
from blueprints.auth import load_current_user
from blueprints.public import public_bp

LOG_HANDLER_NAME = 'pool-results'


def configure_logging(app):
    """Attach a single stdout handler at the configured level."""
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    if not any(handler.get_name() == LOG_HANDLER_NAME for handler in root_logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.set_name(LOG_HANDLER_NAME)
        handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        root_logger.addHandler(handler)

    # Reduce noise from libraries
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
    logging.getLogger('werkzeug').setLevel(logging.WARNING)
    return root_logger


def _ensure_sqlite_dir(uri: str) -> None:
    if not uri.startswith('sqlite:///'):
        return
    path = uri[len('sqlite:///'):]
    directory = os.path.dirname(path)
    if path and path != ':memory:' and directory:
        os.makedirs(directory, exist_ok=True)


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    configure_logging(app)

    _ensure_sqlite_dir(app.config['SQLALCHEMY_DATABASE_URI'])
    db.init_app(app)

    with app.app_context():
        db.create_all()

    app.register_blueprint(admin_bp)
    app.register_blueprint(public_bp)

    @app.before_request
    def before_request():
        """Load current user before every request to ANY route"""
        load_current_user()

    register_commands(app)
    return app


def register_commands(app):
    @app.cli.command('init-db')
    def init_db_command():
        """Create tables and seed the default admin and tournament."""
        db.create_all()
        admin, tournament = init_default_data(
            admin_username=app.config['DEFAULT_ADMIN_USERNAME'],
            tournament_name=app.config['DEFAULT_TOURNAMENT_NAME'],
        )
        click.echo(f'Database initialized: admin={admin.username} tournament={tournament.name} (id={tournament.id})')

    @app.cli.command('recompute-points')
    @click.argument('tournament_id', type=int)
    @click.option(
        '--category',
        'categories',
        multiple=True,
        type=click.Choice(['matches', 'groups', 'topscorer', 'winner']),
        help='Limit the run to these categories (default: all).',
    )
    @click.option('--actor', 'actor_username', default=None, help='Username recorded in the audit log.')
    def recompute_points_command(tournament_id, categories, actor_username):
        """Recalculate prediction points and pool rankings for a tournament."""
        from services.recompute import CATEGORIES, recompute_all

        tournament = db.session.get(Tournament, tournament_id)
        if tournament is None:
            raise click.ClickException(f'Tournament {tournament_id} not found')

        actor = None
        if actor_username:
            actor = User.query.filter_by(username=actor_username).first()
            if actor is None:
                raise click.ClickException(f'User {actor_username} not found')

        reports = recompute_all(tournament, actor=actor, categories=categories or CATEGORIES)
        for category, report in reports.items():
            click.echo(
                f'{category}: updated={report.updated} unchanged={report.unchanged} '
                f'skipped={report.skipped} {report.message}'
            )
            for error in report.errors:
                click.echo(f'  ! {error}', err=True)


if __name__ == "__main__":
    create_app().run(debug=True, port=5000)
