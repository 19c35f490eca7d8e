"""Sign a development session token for a user id.

Usage:
    python issue_token.py <user_id> [email]

Reads JWT_SECRET_KEY (and the other auth settings) from api/.env.
"""

import os
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from dotenv import load_dotenv

from api.services import AuthService

load_dotenv(Path(__file__).resolve().parent.parent / "api" / ".env")


def main() -> None:
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)

    secret = os.getenv("JWT_SECRET_KEY")
    if not secret:
        print("ERROR: JWT_SECRET_KEY not set. Check api/.env or environment variables.")
        sys.exit(1)

    auth = AuthService(
        secret_key=secret,
        algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
        expire_days=int(os.getenv("JWT_EXPIRE_DAYS", "30")),
    )
    user_id = sys.argv[1]
    email = sys.argv[2] if len(sys.argv) > 2 else None
    print(auth.create_access_token(user_id, email))


if __name__ == "__main__":
    main()
