#!/usr/bin/env python3
"""
Admin User Setup

Creates the single admin identity used by key authentication. The admin
starts without a key; register one afterwards with `blogauth-admin setup`.

Security requirements:
- Refuses to run when ENVIRONMENT=production
- ADMIN_SETUP_TOKEN must be set and passed again with --token
- Only one admin is supported

Usage:
    python scripts/setup_admin.py admin@example.com --token "$ADMIN_SETUP_TOKEN"
    python scripts/setup_admin.py admin@example.com --username admin --name "Admin User" --token ...
"""
import argparse
import sys

from dotenv import load_dotenv

load_dotenv()

from blogauth.core.config import configure_logging, get_settings  # noqa: E402
from blogauth.core.database import BootstrapError, create_admin, create_tables, init_db  # noqa: E402
from blogauth.core.database import connection  # noqa: E402


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Create the blog admin user for key authentication",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("email", help="Admin email address")
    parser.add_argument("--username", help="Optional username")
    parser.add_argument("--name", help="Optional display name")
    parser.add_argument("--token", required=True, help="Must equal ADMIN_SETUP_TOKEN")
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create tables first (development databases without Alembic)",
    )
    args = parser.parse_args()

    settings = get_settings()
    configure_logging(settings)

    print("=" * 60)
    print("  Admin User Setup for Key Authentication")
    print("=" * 60)
    print()

    init_db()
    if args.create_tables:
        create_tables()

    db = connection.SessionLocal()
    try:
        admin = create_admin(
            db,
            email=args.email,
            provided_token=args.token,
            setup_token=settings.admin_setup_token,
            environment=settings.environment,
            username=args.username,
            name=args.name,
        )
    except BootstrapError as e:
        print(f"Error: {e}")
        return 1
    finally:
        db.close()

    print("Admin user created")
    print("-" * 60)
    print(f"Email:       {admin.email}")
    print(f"Username:    {admin.username or 'Not set'}")
    print(f"Name:        {admin.name or 'Not set'}")
    print(f"Role:        {admin.role}")
    print(f"Permissions: {', '.join(admin.permissions)}")
    print(f"User ID:     {admin.id}")
    print("-" * 60)
    print()
    print("Next steps:")
    print("  1. Start the API:       python -m blogauth.api.main")
    print(f"  2. Register your key:   blogauth-admin setup {admin.email}")
    print("  3. Back up the key:     blogauth-admin export -o backup.pem")
    return 0


if __name__ == "__main__":
    sys.exit(main())
