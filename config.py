import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


def _database_url():
    url = os.environ.get('DATABASE_URL')
    if url:
        # Heroku-style URLs (postgres://) are not accepted by SQLAlchemy
        if url.startswith('postgres://'):
            url = url.replace('postgres://', 'postgresql://', 1)
        return url

    sqlite_dir = os.path.join(BASE_DIR, 'instance')
    sqlite_path = os.environ.get('SQLITE_PATH', os.path.join(sqlite_dir, 'pool.db'))
    return f'sqlite:///{sqlite_path}'


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'pool-results')
    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'pool_recycle': 300,
    }
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    APP_TIMEZONE = os.environ.get('APP_TIMEZONE', 'Europe/Amsterdam')
    # Audit review pagination
    AUDIT_PAGE_SIZE = int(os.environ.get('AUDIT_PAGE_SIZE', '25'))
    AUDIT_MAX_PAGE_SIZE = int(os.environ.get('AUDIT_MAX_PAGE_SIZE', '100'))
    # Seed data for `flask init-db`
    DEFAULT_ADMIN_USERNAME = os.environ.get('DEFAULT_ADMIN_USERNAME', 'admin')
    DEFAULT_TOURNAMENT_NAME = os.environ.get('DEFAULT_TOURNAMENT_NAME', 'WK 2026')
