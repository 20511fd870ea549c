import argparse
import getpass
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from socialmedia.database import Database, DatabaseError, resolve_database_path


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a socialmedia user directly in the JSON store")
    parser.add_argument("email", help="Unique email address for the user")
    parser.add_argument("name", help="Display name for the user")
    parser.add_argument("age", type=int, help="Age in years (must be at least 18)")
    parser.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="Path to the JSON store (defaults to SOCIALMEDIA_DB_PATH or data/db.json)",
    )
    return parser.parse_args()


def prompt_for_password() -> str:
    for _ in range(3):
        password = getpass.getpass("Password: ")
        confirm = getpass.getpass("Confirm password: ")
        if password != confirm:
            print("Passwords do not match. Try again.", file=sys.stderr)
            continue
        if not password:
            print("Password can't be empty.", file=sys.stderr)
            continue
        return password
    raise SystemExit("Failed to set password after three attempts.")


def main() -> int:
    args = parse_args()
    password = prompt_for_password()

    db_env = args.db_path or os.getenv("SOCIALMEDIA_DB_PATH")
    db_path = resolve_database_path(db_env)

    database = Database(db_path)
    try:
        database.ensure_database()
        user = database.create_user(args.email.strip(), password, args.name.strip(), args.age)
    except DatabaseError as exc:  # duplicates, under-age, unreadable store
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"Created user {user.name} <{user.email}>")
    print(f"{len(database.list_users())} user(s) now stored in {db_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
