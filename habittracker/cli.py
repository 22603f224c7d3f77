# habittracker/cli.py
"""
Terminal client: sign in, list habits, add one, mark one done.

Works against the same database as the API. On start, commands that need a
user try the cached credentials first; if that fails they ask for `login`.
"""
import argparse
import getpass
import logging
import sys
from typing import Optional

from fastapi import HTTPException

from habittracker import services
from habittracker.config import settings
from habittracker.core.exceptions import AuthenticationError, StoreError
from habittracker.core.logging import setup_logging
from habittracker.credentials import CredentialCache, silent_sign_in
from habittracker.database import SessionLocal, init_db
from habittracker.identity import IdentityProvider, UserSession
from habittracker.store import HabitStore

logger = logging.getLogger("habittracker.cli")


def _ask_credentials(args: argparse.Namespace) -> tuple[str, str]:
    email    = args.email or input("Email: ")
    password = args.password or getpass.getpass("Password: ")
    return email, password


def _format_habit(view: dict) -> str:
    mark = "x" if view["done_today"] else " "
    return (f"[{mark}] #{view['id']} {view['name']} — streak {view['streak']}"
            f" — {view['days_since_label']}")


# ════════════════════════════════════════
# COMMANDS
# ════════════════════════════════════════

def cmd_signup(args, identity: IdentityProvider, cache: CredentialCache) -> int:
    email, password = _ask_credentials(args)
    try:
        session = identity.sign_up(email, password)
    except AuthenticationError as e:
        print(f"Sign-up failed: {e}")
        return 1
    if args.remember:
        cache.save(email, password)
    print(f"Welcome, {session.email}!")
    return 0


def cmd_login(args, identity: IdentityProvider, cache: CredentialCache) -> int:
    email, password = _ask_credentials(args)
    try:
        session = identity.sign_in(email, password)
    except AuthenticationError as e:
        print(f"Login failed: {e}")
        return 1
    if args.remember:
        cache.save(email, password)
    print(f"Signed in as {session.email}")
    return 0


def cmd_logout(args, identity: IdentityProvider, cache: CredentialCache) -> int:
    cache.clear()
    print("Signed out.")
    return 0


def cmd_list(args, session: UserSession, store: HabitStore) -> int:
    try:
        habits = services.list_habits(store, session)
    except StoreError as e:
        # read failures leave the list empty
        logger.error(f"Could not fetch habits: {e}")
        habits = []
    if not habits:
        print("No habits yet. Add one with `habittracker add NAME`.")
        return 0
    for habit in habits:
        print(_format_habit(services.habit_view(habit)))
    return 0


def cmd_show(args, session: UserSession, store: HabitStore) -> int:
    view = services.habit_view(services.get_habit(store, session, args.habit_id))
    print(view["name"])
    print(f"  Streak:          {view['streak']}")
    print(f"  Missed allowed:  {view['missed_days_allowed']}")
    print(f"  Recorded days:   {view['num_days_record']}")
    print(f"  Last performed:  {view['days_since_label']}")
    print(f"  Notes:           {view['notes'] or 'No notes'}")
    return 0


def cmd_add(args, session: UserSession, store: HabitStore) -> int:
    habit = services.create_habit(store, session, args.name, args.missed_days, args.notes)
    print(f"Habit created: {habit.name} was added.")
    return 0


def cmd_done(args, session: UserSession, store: HabitStore) -> int:
    habit, accepted, reset = services.mark_done(store, session, args.habit_id)
    if not accepted:
        print(f"{habit.name} is already done today. Streak: {habit.streak}")
    elif reset:
        print(f"Marked as done. Streak restarted at {habit.streak}.")
    else:
        print(f"Marked as done. Streak: {habit.streak}")
    return 0


AUTH_COMMANDS  = {"signup": cmd_signup, "login": cmd_login, "logout": cmd_logout}
HABIT_COMMANDS = {"list": cmd_list, "show": cmd_show, "add": cmd_add, "done": cmd_done}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="habittracker", description="Track daily habits and streaks.")
    sub = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (("signup", "Create an account"), ("login", "Sign in")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--email")
        p.add_argument("--password")
        p.add_argument("--remember", action="store_true", help="Cache credentials for silent sign-in")

    sub.add_parser("logout", help="Forget cached credentials")
    sub.add_parser("list", help="List your habits")

    p = sub.add_parser("show", help="Show one habit")
    p.add_argument("habit_id", type=int)

    p = sub.add_parser("add", help="Create a habit")
    p.add_argument("name")
    p.add_argument("--missed-days", type=int, default=0, dest="missed_days")
    p.add_argument("--notes", default="")

    p = sub.add_parser("done", help="Mark a habit done for today")
    p.add_argument("habit_id", type=int)

    return parser


def main(argv: Optional[list] = None) -> int:
    args  = build_parser().parse_args(argv)
    cache = CredentialCache(settings.CREDENTIALS_FILE)

    # command output owns stdout
    setup_logging(stream=sys.stderr, level=logging.WARNING)
    init_db()
    db = SessionLocal()
    try:
        identity = IdentityProvider(db)
        store    = HabitStore(db)

        try:
            if args.command in AUTH_COMMANDS:
                return AUTH_COMMANDS[args.command](args, identity, cache)

            session = silent_sign_in(cache, identity)
            if session is None:
                print("Not signed in. Run `habittracker login --remember` first.")
                return 1
            return HABIT_COMMANDS[args.command](args, session, store)
        except HTTPException as e:
            print(e.detail)
            return 1
        except StoreError as e:
            logger.error(f"{args.command} failed: {e}")
            print("Error: the habit store could not be reached.")
            return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
