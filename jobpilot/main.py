"""Command-line entry point for the JobPilot client."""

import argparse
import getpass
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from filelock import FileLock, Timeout

from .config import Config, get_config, load_config
from .errors import JobPilotError
from .gateway import RemoteGateway
from .models import Application
from .session import SessionContext, SessionManager
from .session_store import SessionStore
from .store import ApplicationStore

LOCK_FILE = Path("/tmp/jobpilot.lock")
LOG_DIR = Path(__file__).parent.parent / "logs"


@dataclass
class Client:
    """The wired-up session and data components sharing one context."""

    context: SessionContext
    gateway: RemoteGateway
    session: SessionManager
    store: ApplicationStore


def create_client(config: Config) -> Client:
    context = SessionContext()
    gateway = RemoteGateway.from_config(config, context)
    session = SessionManager(
        context, gateway, SessionStore(config.session_db), auth_prefix=config.auth_prefix
    )
    store = ApplicationStore(
        gateway, context, show_all_when_anonymous=config.show_all_when_anonymous
    )
    return Client(context=context, gateway=gateway, session=session, store=store)


def setup_logging() -> None:
    """Configure logging for the application."""
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    log_file = LOG_DIR / "jobpilot.log"

    config = get_config()
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler(sys.stderr),
        ],
    )


def format_application(app: Application) -> str:
    line = (
        f"{app.id:>5}  {app.status or '':<12}  {app.company or '?'} - {app.title or '?'} "
        f"({app.date_applied or '?'})"
    )
    if app.interview is not None:
        line += f"  [interview {app.interview.date or '?'} with {app.interview.interviewer or '?'}]"
    return line


def run_sync(client: Client) -> dict:
    """Restore the session and pull applications with their interviews."""
    logger = logging.getLogger(__name__)

    stats = {
        "authenticated": False,
        "applications": 0,
        "interviews": 0,
    }

    client.session.restore()
    stats["authenticated"] = client.session.is_authenticated
    if not stats["authenticated"]:
        logger.warning("Not logged in; run `jobpilot login` first")
        return stats

    apps = client.store.fetch_applications()
    stats["applications"] = len(apps)
    stats["interviews"] = sum(1 for app in apps if app.interview is not None)

    for app in apps:
        print(format_application(app))

    logger.info(
        f"Sync complete: {stats['applications']} applications, "
        f"{stats['interviews']} with interviews"
    )
    return stats


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="jobpilot", description=__doc__)
    parser.add_argument("--config", type=Path, default=None, help="path to config.yaml")
    commands = parser.add_subparsers(dest="command", required=True)

    login = commands.add_parser("login", help="log in and persist the session")
    login.add_argument("email")
    login.add_argument("--password")

    signup = commands.add_parser("signup", help="create an account and log in")
    signup.add_argument("email")
    signup.add_argument("--name")
    signup.add_argument("--password")

    commands.add_parser("logout", help="forget the persisted session")
    commands.add_parser("status", help="show who the persisted session belongs to")
    commands.add_parser("sync", help="list applications with their interviews")

    interview = commands.add_parser("interview", help="show the interview for one application")
    interview.add_argument("application_id", type=int)

    return parser


def dispatch(args: argparse.Namespace, client: Client) -> int:
    session = client.session

    if args.command == "login":
        password = args.password or getpass.getpass("Password: ")
        user = session.login(args.email, password)
        print(f"Logged in as {user.email}")
        return 0

    if args.command == "signup":
        password = args.password or getpass.getpass("Password: ")
        user = session.signup(args.email, password, name=args.name)
        print(f"Signed up as {user.email}")
        return 0

    if args.command == "logout":
        session.logout()
        return 0

    if args.command == "status":
        if session.restore():
            print(f"Logged in as {session.user.email} (id {session.user.id})")
        else:
            print("Not logged in")
        return 0

    if args.command == "sync":
        stats = run_sync(client)
        return 0 if stats["authenticated"] else 1

    if args.command == "interview":
        if not session.restore():
            print("Not logged in", file=sys.stderr)
            return 1
        lookup = client.store.interviews.fetch_one(args.application_id)
        if lookup.found:
            iv = lookup.interview
            print(f"{iv.date or '?'} with {iv.interviewer or '?'}")
            if iv.prep_notes:
                print(iv.prep_notes)
            return 0
        if lookup.error:
            print(f"Error: {lookup.error}", file=sys.stderr)
            return 1
        print("No interview scheduled")
        return 0

    return 2


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point with concurrency protection."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
        setup_logging()
    except FileNotFoundError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    logger = logging.getLogger(__name__)

    try:
        with FileLock(LOCK_FILE, timeout=10):
            client = create_client(config)
            with client.gateway:
                return dispatch(args, client)

    except Timeout:
        logger.warning("Could not acquire lock - another instance is running")
        return 1

    except JobPilotError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except Exception as e:
        logger.exception(f"Command failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
