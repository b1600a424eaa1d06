"""
Database initialization script for deployment
Run with: python init_db.py (equivalent to `flask --app app init-db`)
"""

from app import create_app
from models import db, init_default_data


def initialize_database():
    """Initialize database tables and default data"""
    app = create_app()
    with app.app_context():
        print("Creating database tables...")
        db.create_all()

        print("Initializing default data...")
        admin, tournament = init_default_data(
            admin_username=app.config['DEFAULT_ADMIN_USERNAME'],
            tournament_name=app.config['DEFAULT_TOURNAMENT_NAME'],
        )

        print("Database initialized successfully!")
        print(f"  Admin user: {admin.username} ({admin.role})")
        print(f"  Tournament: {tournament.name} (id={tournament.id})")


if __name__ == "__main__":
    initialize_database()
