import argparse
import getpass
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from dotenv import load_dotenv

from portal.config import load_settings
from portal.database import Database, resolve_database_path
from portal.errors import ConflictError, ValidationError
from portal.gateway import CredentialGateway
from portal.passwords import PasswordHasher
from portal.sessions import SessionManager


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a members portal user")
    parser.add_argument("name", help="Display name for the user")
    parser.add_argument("email", help="Unique email address for login")
    parser.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="Path to the SQLite database (defaults to PORTAL_DB_PATH or data/portal.sqlite3)",
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
            print("Password must not be empty.", file=sys.stderr)
            continue
        return password
    raise SystemExit("Failed to set password after three attempts.")


def main() -> int:
    load_dotenv()
    args = parse_args()
    settings = load_settings()
    password = prompt_for_password()

    db_path = resolve_database_path(args.db_path) if args.db_path else settings.database_path
    database = Database(db_path)
    database.initialize()

    gateway = CredentialGateway(
        database,
        SessionManager(ttl=settings.session_ttl),
        hasher=PasswordHasher(rounds=settings.bcrypt_rounds),
    )
    try:
        user = gateway.register({"name": args.name, "email": args.email, "password": password})
    except (ValidationError, ConflictError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"Created user #{user.id}: {user.name} <{user.email}>")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
