"""Print a bearer token for an existing staff user to stdout.

Usage:
    python -m practice_backend.print_access_token someone@example.com
"""
import sys

from practice_backend.auth import jwt_handler
from practice_backend.core import config
from practice_backend.store.base import build_store


def main(argv: list[str] | None = None) -> None:
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 1:
        print("Usage: python -m practice_backend.print_access_token EMAIL", file=sys.stderr)
        sys.exit(2)

    store = build_store(config.STORE_BACKEND)
    user = store.get_user_by_email(args[0])
    if user is None:
        print(f"No user with email {args[0]}", file=sys.stderr)
        sys.exit(1)

    print(jwt_handler.create_access_token(subject=user.email, role=user.role))


if __name__ == "__main__":
    main()
