"""
Script to create (or promote) a platform admin.
Run this after migrations to bootstrap the first admin account.
"""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from barsuite.core.database import SessionLocal
from barsuite.core.exceptions import BarSuiteError
from barsuite.models.user import SYSTEM_ROLE_ADMIN
from barsuite.services.user import create_user, get_user_by_email


def create_admin_user(email: str, password: str, first_name: str = "Admin", last_name: str = None):
    """Create a verified admin account, or promote the existing account with this email."""
    db = SessionLocal()
    try:
        existing = get_user_by_email(db, email)
        if existing:
            if existing.role == SYSTEM_ROLE_ADMIN:
                print(f"User {email} is already an admin")
                return
            existing.role = SYSTEM_ROLE_ADMIN
            db.commit()
            print(f"Promoted {email} to admin")
            return

        create_user(
            db,
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
            role=SYSTEM_ROLE_ADMIN,
            email_verified=True,
        )
        print("Admin user created")
        print(f"   Email: {email}")
    except BarSuiteError as e:
        db.rollback()
        print(f"Error creating admin user: {e.message}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser(description='Create admin user')
    parser.add_argument('--email', required=True, help='Admin email')
    parser.add_argument('--password', required=True, help='Admin password')
    parser.add_argument('--first-name', default='Admin', help='Admin first name')
    parser.add_argument('--last-name', default=None, help='Admin last name')

    args = parser.parse_args()
    create_admin_user(args.email, args.password, args.first_name, args.last_name)
