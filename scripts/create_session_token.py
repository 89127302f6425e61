"""Script to issue a local session token for trying the API."""

import argparse
import asyncio
import sys

sys.path.insert(0, ".")

from mindsy.auth.security import create_session_token
from mindsy.db.session import init_db


async def main():
    """Create tables and print a bearer token for the given user."""
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("user_id", help="Value for the token's sub claim")
    parser.add_argument("--email", default=None)
    parser.add_argument("--minutes", type=int, default=60 * 24)
    parser.add_argument("--skip-db", action="store_true", help="Do not create missing tables")
    args = parser.parse_args()

    if not args.skip_db:
        print("Initializing database...")
        await init_db()

    token = create_session_token(args.user_id, email=args.email, expires_in_minutes=args.minutes)

    print("\n" + "=" * 60)
    print("SESSION TOKEN CREATED")
    print("=" * 60)
    print(f"\nUser:    {args.user_id}")
    print(f"Expires: in {args.minutes} minutes")
    print(f"\nAuthorization: Bearer {token}")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
