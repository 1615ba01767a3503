"""
Create an organization and its owner account.

    python scripts/create_organization.py --name "Cafe Nord" --timezone Europe/Oslo \
        --owner-email owner@example.com --owner-password 's3cretpass'
"""
import argparse
import getpass
import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from shiftdesk.config import settings
from shiftdesk.db import Base, SessionLocal, engine
from shiftdesk.errors import ValidationFailed
from shiftdesk.services.organizations import create_organization


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create an organization with an owner account")
    parser.add_argument("--name", required=True, help="Organization name")
    parser.add_argument("--timezone", default=settings.tz_default, help="IANA timezone defining the calendar day")
    parser.add_argument("--owner-email", required=True)
    parser.add_argument("--owner-name", default=None)
    parser.add_argument("--owner-password", default=None, help="Prompted for when omitted")
    args = parser.parse_args(argv)

    password = args.owner_password or getpass.getpass("Owner password: ")

    if settings.auto_create_db:
        Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        org, owner = create_organization(
            db,
            name=args.name,
            timezone=args.timezone,
            owner_email=args.owner_email,
            owner_password=password,
            owner_name=args.owner_name,
        )
        print(f"Created organization {org.name} ({org.id}) in {org.timezone}")
        print(f"Owner: {owner.email} ({owner.id})")
    except ValidationFailed as e:
        db.rollback()
        print(f"Error: {e.message}")
        return 1
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
