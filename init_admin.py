#!/usr/bin/env python3
"""
Initialize the first Admin account (and optionally demo data).
Run with: python init_admin.py [--demo]

Credentials come from ADMIN_EMAIL / ADMIN_PASSWORD when set.
"""
import os
import sys

from app import create_app
from app.extensions import db
from app.models import User
from app.models.user import ROLE_ADMIN
from app.services import user_service

DEFAULT_ADMIN = {
    'email': os.getenv('ADMIN_EMAIL', 'admin@mediconnect.local'),
    'password': os.getenv('ADMIN_PASSWORD', 'admin12345'),
    'first_name': 'System',
    'last_name': 'Admin',
    'role_title': 'Clinic Administrator',
}


def create_admin():
    """Create the default Admin user if it does not exist"""
    app = create_app()

    with app.app_context():
        db.create_all()

        print("=" * 60)
        print("Initializing Admin User")
        print("=" * 60)

        email = user_service.normalize_email(DEFAULT_ADMIN['email'])
        if User.query.get(email):
            print(f"  - Admin '{email}' already exists (skipping)")
        else:
            user_service.create_user(
                dict(DEFAULT_ADMIN, confirm_password=DEFAULT_ADMIN['password']),
                role=ROLE_ADMIN,
            )
            print(f"  ✓ Created: {email} - Password: {DEFAULT_ADMIN['password']}")
            print("\n⚠️  IMPORTANT: Change the password after first login!")

        if '--demo' in sys.argv:
            from app.seeds import seed_demo_data
            created = seed_demo_data()
            print(f"  ✓ Demo data: {created} account(s) created")


if __name__ == '__main__':
    create_admin()
