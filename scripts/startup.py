#!/usr/bin/env python3
"""
Lights Out League Startup Script

Initializes the application on first container startup:
- Waits for the database
- Creates tables
- Creates the default admin user
- Loads driver and constructor reference data
- Activates a default scoring profile
"""

import os
import sys
import time

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

os.environ.setdefault("FLASK_CONFIG", "production")

from sqlalchemy.exc import OperationalError  # noqa: E402

from lightsout import create_app, db  # noqa: E402
from lightsout.models import Driver, ScoringProfile, User  # noqa: E402
from lightsout.services.reference_data import load_reference_file  # noqa: E402

DEFAULT_REFERENCE_FILE = os.path.join(
    os.path.dirname(os.path.dirname(os.path.abspath(__file__))),
    "data",
    "reference_2025.json",
)


def wait_for_db(app, max_retries=30):
    """Wait for database to be ready"""
    print("Waiting for database connection...")

    for i in range(max_retries):
        try:
            with app.app_context():
                db.session.execute(db.text("SELECT 1")).fetchone()
                print("Database connected!")
                return True
        except OperationalError as e:
            if i < max_retries - 1:
                print(f"Attempt {i+1}/{max_retries} failed, retrying in 2s...")
                print(f"   Error: {str(e)}")
                time.sleep(2)
            else:
                print(f"Database connection failed after {max_retries} attempts: {e}")
                return False
    return False


def create_default_admin():
    """Create default admin user if none exists"""
    admin = User.query.filter_by(username="admin").first()

    if admin:
        print("Admin user already exists")
        return admin

    print("Creating default admin user...")

    # Use environment variable for admin password, fallback to a placeholder
    admin_password = os.environ.get("DEFAULT_ADMIN_PASSWORD", "ChangeMe123!")
    admin = User.create_user(
        "admin",
        os.environ.get("DEFAULT_ADMIN_EMAIL", "admin@lightsoutleague.local"),
        display_name="Race Control",
        password=admin_password,
        is_admin=True,
    )
    db.session.commit()

    print("Created default admin user (username: admin)")
    if not os.environ.get("DEFAULT_ADMIN_PASSWORD"):
        print("WARNING: Using default password. Set DEFAULT_ADMIN_PASSWORD environment variable for security!")

    return admin


def load_reference_data():
    """Load the driver grid unless drivers already exist"""
    if Driver.query.first() is not None:
        print("Reference data already loaded")
        return

    path = os.environ.get("REFERENCE_DATA_FILE", DEFAULT_REFERENCE_FILE)
    constructors, drivers = load_reference_file(path)
    print(f"Loaded {constructors} constructors and {drivers} drivers from {path}")


def ensure_scoring_profile():
    """Create and activate the default profile when none is active"""
    if ScoringProfile.get_active() is not None:
        print("Scoring profile already active")
        return

    profile = ScoringProfile.query.get("standard")
    if profile is None:
        profile = ScoringProfile.create_profile("Standard", profile_id="standard")
        db.session.commit()
    profile.activate()
    print("Activated scoring profile 'standard'")


def main():
    """Main initialization function"""
    print("Lights Out League Auto-Initialization")
    print("=" * 50)

    app = create_app()

    # Wait for database (outside app context first)
    if not wait_for_db(app):
        print("ERROR: Startup failed - database not available")
        sys.exit(1)

    with app.app_context():
        db.create_all()
        print("Database tables ready")

        create_default_admin()
        load_reference_data()
        ensure_scoring_profile()

    print("=" * 50)
    print("SUCCESS: Lights Out League is ready!")
    print("=" * 50)


if __name__ == "__main__":
    main()
