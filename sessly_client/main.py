"""
Command-line entry point.

Thin consumer of AppContext: every command maps onto one state-container or
resource-client operation and prints the result as JSON.

Usage:
    sessly login <username>
    sessly favorites list
    sessly favorites toggle <business_id>
    sessly appointments list --view upcoming
    sessly availability <business_slug> <service_id> <YYYY-MM-DD>
    sessly book <business_slug> <service_id> <YYYY-MM-DD> <HH:MM> [--notes TEXT]
"""

import argparse
import getpass
import json
import sys
from typing import Any, List, Optional

import requests

from sessly_client.api.appointments import LIST_VIEWS, VIEW_ALL, filter_appointments
from sessly_client.api.auth import AuthError
from sessly_client.api.client import ApiError
from sessly_client.app import AppContext
from sessly_client.booking.flow import BookingError
from sessly_client.config.settings import ConfigurationError, Settings
from sessly_client.database.exceptions import StorageException
from sessly_client.utils.logger import get_logger

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sessly", description="Sessly booking client")
    parser.add_argument("--config", help="YAML config file (overrides SESSLY_CONFIG_FILE)")
    sub = parser.add_subparsers(dest="command", required=True)

    login = sub.add_parser("login", help="Log in and persist the session")
    login.add_argument("username")
    login.add_argument("--password", help="Prompted for when omitted")

    sub.add_parser("logout", help="End the session")
    sub.add_parser("whoami", help="Show the logged-in user")

    favorites = sub.add_parser("favorites", help="Manage favorite businesses")
    fav_sub = favorites.add_subparsers(dest="action", required=True)
    fav_sub.add_parser("list")
    toggle = fav_sub.add_parser("toggle")
    toggle.add_argument("business_id")

    businesses = sub.add_parser("businesses", help="Browse businesses")
    businesses.add_argument("--search")
    businesses.add_argument("--category")

    appointments = sub.add_parser("appointments", help="List or cancel appointments")
    apt_sub = appointments.add_subparsers(dest="action", required=True)
    apt_list = apt_sub.add_parser("list")
    apt_list.add_argument("--view", choices=LIST_VIEWS, default=VIEW_ALL)
    apt_cancel = apt_sub.add_parser("cancel")
    apt_cancel.add_argument("appointment_id")

    availability = sub.add_parser("availability", help="Show free slots for a date")
    availability.add_argument("business_slug")
    availability.add_argument("service_id")
    availability.add_argument("date")

    book = sub.add_parser("book", help="Book a slot")
    book.add_argument("business_slug")
    book.add_argument("service_id")
    book.add_argument("date")
    book.add_argument("time")
    book.add_argument("--notes")

    return parser


def _emit(data: Any) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2, default=str))


def _require_login(app: AppContext) -> None:
    if not app.auth.is_logged_in:
        raise AuthError("Not logged in. Run `sessly login <username>` first.")


def run(args: argparse.Namespace, app: AppContext) -> int:
    """Execute one parsed command against a started AppContext."""
    command = args.command

    if command == "login":
        password = args.password or getpass.getpass("Password: ")
        user = app.auth.login(args.username, password)
        _emit({"logged_in": True, "user": user.to_dict() if user else None})
        return 0

    if command == "logout":
        app.auth.logout()
        _emit({"logged_in": False})
        return 0

    if command == "whoami":
        user = app.auth.user
        _emit({"logged_in": app.auth.is_logged_in, "user": user.to_dict() if user else None})
        return 0

    if command == "favorites":
        _require_login(app)
        if args.action == "list":
            entries = app.favorites.load_favorites()
            _emit([entry.to_dict() for entry in entries])
            return 0
        is_favorite = app.favorites.toggle_favorite(args.business_id)
        _emit({"business_id": args.business_id, "is_favorite": is_favorite})
        if app.favorites.last_error is not None:
            print(f"Error: {app.favorites.last_error}", file=sys.stderr)
            return 1
        return 0

    if command == "businesses":
        businesses = app.businesses_api.search_businesses(args.search, args.category)
        _emit([business.to_dict() for business in businesses])
        return 0

    if command == "appointments":
        _require_login(app)
        if args.action == "list":
            appointments = filter_appointments(app.appointments_api.list_appointments(), args.view)
            _emit([appointment.to_dict() for appointment in appointments])
            return 0
        app.appointments_api.cancel_appointment(args.appointment_id)
        _emit({"cancelled": args.appointment_id})
        return 0

    if command == "availability":
        flow = app.booking_flow(args.business_slug, args.service_id)
        slots = flow.select_date(args.date)
        if flow.last_error is not None:
            print(f"Error: {flow.last_error}", file=sys.stderr)
            return 1
        _emit({"date": args.date, "slots": slots})
        return 0

    if command == "book":
        _require_login(app)
        flow = app.booking_flow(args.business_slug, args.service_id)
        flow.select_date(args.date)
        if flow.last_error is not None:
            print(f"Error: {flow.last_error}", file=sys.stderr)
            return 1
        flow.select_time(args.time)
        appointment = flow.confirm(notes=args.notes)
        _emit(appointment.to_dict())
        return 0

    raise ValueError(f"Unknown command {command!r}")


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        app = AppContext(settings=Settings(config_file=args.config))
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    try:
        app.start()
        return run(args, app)
    except AuthError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    except ApiError as e:
        print(f"Error: {e.user_message()}", file=sys.stderr)
        return 1
    except (BookingError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except (requests.RequestException, StorageException) as e:
        logger.error("Command failed", operation="cli", error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        app.close()


if __name__ == "__main__":
    sys.exit(main())
