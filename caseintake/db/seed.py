# caseintake/db/seed.py

"""
API Key Seeding Script

Issues and deactivates integration API keys. The plain key is printed once
and never stored; only its SHA-256 digest is kept.

    python -m caseintake.db.seed issue --name "Website intake form" --limit 200
    python -m caseintake.db.seed deactivate 3
"""

import argparse
from datetime import timedelta
from typing import List, Optional

from caseintake.db.database import SessionLocal, init_db
from caseintake.services.api_key_service import api_key_service
from caseintake.utils.helpers import utcnow

# ============================================================================
# Commands
# ============================================================================

def issue_key(name: str, limit: Optional[int], expires_in_days: Optional[int]) -> str:
    expires_at = utcnow() + timedelta(days=expires_in_days) if expires_in_days else None
    db = SessionLocal()
    try:
        api_key, plain_key = api_key_service.issue_key(
            db, name=name, rate_limit_per_hour=limit, expires_at=expires_at
        )
        print(f"✅ Created API key #{api_key.id} '{api_key.name}' "
              f"({api_key.rate_limit_per_hour} requests/hour)")
        if expires_at:
            print(f"   Expires: {expires_at.isoformat()}")
        print("   Store this key now, it will not be shown again:")
        print(f"   {plain_key}")
        return plain_key
    finally:
        db.close()


def deactivate_key(api_key_id: int) -> bool:
    db = SessionLocal()
    try:
        found = api_key_service.set_active(db, api_key_id, False)
        if found:
            print(f"✅ Deactivated API key #{api_key_id}")
        else:
            print(f"❌ No API key with id {api_key_id}")
        return found
    finally:
        db.close()


# ============================================================================
# Main
# ============================================================================

def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Manage case intake API keys")
    parser.add_argument("--create-tables", action="store_true", help="create missing tables first")
    commands = parser.add_subparsers(dest="command", required=True)

    issue = commands.add_parser("issue", help="issue a new API key")
    issue.add_argument("--name", required=True)
    issue.add_argument("--limit", type=int, default=None, help="requests per hour")
    issue.add_argument("--expires-in-days", type=int, default=None)

    deactivate = commands.add_parser("deactivate", help="deactivate an API key")
    deactivate.add_argument("api_key_id", type=int)

    args = parser.parse_args(argv)

    if args.create_tables:
        init_db()

    if args.command == "issue":
        issue_key(args.name, args.limit, args.expires_in_days)
        return 0
    return 0 if deactivate_key(args.api_key_id) else 1


if __name__ == "__main__":
    raise SystemExit(main())
