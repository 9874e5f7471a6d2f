import os
import sys
import argparse
import getpass
import logging

# Ensure project root is on sys.path
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if BASE_DIR not in sys.path:
    sys.path.insert(0, BASE_DIR)

from sidang_app import create_app, db
from sidang_app.models import User
from sqlalchemy import select
from werkzeug.security import generate_password_hash

logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
logger = logging.getLogger(__name__)


def create_or_update_user(username: str, password: str, role: str) -> bool:
    """Creates the management account, or resets its password and role. Returns True when created."""
    app = create_app()
    with app.app_context():
        u = db.session.execute(
            select(User).filter_by(username=username)
        ).scalars().first()
        created = u is None
        if created:
            u = User(username=username)
            db.session.add(u)
        u.password_hash = generate_password_hash(password)
        u.role = role
        u.is_active = True
        db.session.commit()
        logger.info("%s account '%s' (role %s).", "Created" if created else "Updated", username, role)
        return created


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create or reset a Database (management) account.")
    parser.add_argument("--username", required=True, help="Login name")
    parser.add_argument("--password", help="Password; prompted when omitted")
    parser.add_argument("--role", default="admin", choices=["admin", "staff"], help="Account role")
    args = parser.parse_args()

    password = args.password or getpass.getpass("Password: ")
    if not password:
        logger.error("Password must not be empty.")
        sys.exit(1)
    create_or_update_user(args.username, password, args.role)
