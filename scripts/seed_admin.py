"""Seed a privileged (admin or super) user."""

import argparse
import os

from app import create_app
from models import db
from models.user import ADMIN_ROLES, User

ADMIN_EMAIL = os.getenv("SEED_ADMIN_EMAIL", "admin@example.com")
ADMIN_PASSWORD = os.getenv("SEED_ADMIN_PASSWORD", "AdminPass123")


def seed_admin(email: str, password: str, role: str = "super") -> tuple[User, str]:
    """Create or update a verified privileged user. Requires an app context."""

    email = email.strip().lower()
    admin = User.query.filter_by(email=email).first()
    if admin is None:
        admin = User(email=email, firstname="Site", lastname="Admin")
        db.session.add(admin)
        action = "created"
    else:
        action = "updated"
    admin.role = role
    admin.is_verified = True
    admin.set_password(password)
    db.session.commit()
    return admin, action


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--email", default=ADMIN_EMAIL)
    parser.add_argument("--password", default=ADMIN_PASSWORD)
    parser.add_argument("--role", choices=ADMIN_ROLES, default="super")
    args = parser.parse_args()

    app = create_app()
    with app.app_context():
        db.create_all()
        _, action = seed_admin(args.email, args.password, args.role)
        print(f"{args.role.capitalize()} user {action}: {args.email}")


if __name__ == "__main__":
    main()
