"""
Command-line interface for the TCRS timecard client.

This module provides the CLI using argparse. Command results go to stdout
(as text, or as JSON with --json); log output goes to stderr.
"""

import argparse
import getpass
import os
import sys
from typing import Callable, Dict, Mapping, Optional, TextIO

from .client import TCRSClient
from .config import PASSWORD_ENV, USER_ENV, Config
from .entry_loader import load_entries
from .errors import ConfigurationError, NotLoggedInError, SessionExpiredError, TCRSError, TransportError
from .logging_utils import get_logger, log_error, log_section, log_warning, setup_logging
from .network_utils import check_connectivity, format_connectivity_error, is_vpn_proxy_error
from .output import (
    error_envelope,
    render_projects,
    render_status,
    render_week,
    status_data,
    success_envelope,
    to_json,
)
from .session_store import SessionStore
from .week_utils import default_week_start, format_date, parse_date, today_string

LOGIN_HINT = "please login first with: tcrs login <user> <pass>"
RELOGIN_HINT = "please login again with: tcrs login <user> <pass>"

# Message shown in front of the error when a command fails
FAILURE_MESSAGES = {
    'login': 'Login failed',
    'logout': 'Logout failed',
    'status': 'Status check failed',
    'projects': 'Failed to get projects',
    'week': 'Failed to get week timecard',
    'save': 'Failed to save timecard',
}


def create_parser() -> argparse.ArgumentParser:
    """
    Create and configure the argument parser.

    Returns:
        Configured ArgumentParser
    """
    parser = argparse.ArgumentParser(
        prog='tcrs',
        description='Command-line client for the TCRS timecard system',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment:
  TCRS_BASE_URL    Root URL of the TCRS server (required)
  TCRS_CACHE_DIR   Session cache directory (default: ~/.tcrs)
  TCRS_USER        Default user id for login
  TCRS_PASSWORD    Default password for login

Examples:
  # Log in and keep the session for later commands
  tcrs login alice s3cret

  # List projects and activities available today
  tcrs projects

  # Show this week's timecard as JSON
  tcrs week --json

  # Save entries for the week of 2025-01-06
  tcrs save --file entries.json --date 2025-01-06
  cat entries.json | tcrs save --file -
        """
    )

    # Options shared by every subcommand
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        '--verbose',
        '-v',
        action='store_true',
        help='Enable verbose logging (debug level)'
    )
    common.add_argument(
        '--json',
        action='store_true',
        help='Print results as JSON'
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    login_parser = subparsers.add_parser('login', parents=[common], help='Log in and save the session')
    login_parser.add_argument('user_id', nargs='?', help=f'User id (default: ${USER_ENV})')
    login_parser.add_argument('password', nargs='?', help=f'Password (default: ${PASSWORD_ENV} or prompt)')

    subparsers.add_parser('logout', parents=[common], help='Log out and remove the saved session')

    status_parser = subparsers.add_parser('status', parents=[common], help='Show login status')
    status_parser.add_argument(
        '--ping',
        action='store_true',
        help='Also check that the server is reachable'
    )

    projects_parser = subparsers.add_parser('projects', parents=[common], help='List projects and activities')
    projects_parser.add_argument(
        '--date',
        metavar='YYYY-MM-DD',
        help='Date to list projects for (default: today)'
    )

    week_parser = subparsers.add_parser('week', parents=[common], help='View a week timecard')
    week_parser.add_argument(
        '--date',
        metavar='YYYY-MM-DD',
        help="Week start date (default: this week's Monday)"
    )

    save_parser = subparsers.add_parser('save', parents=[common], help='Save timecard entries for a week')
    save_parser.add_argument(
        '--file',
        '-f',
        required=True,
        metavar='PATH',
        help="JSON or CSV file with entries (use '-' for JSON on stdin)"
    )
    save_parser.add_argument(
        '--date',
        metavar='YYYY-MM-DD',
        help="Week start date (default: this week's Monday)"
    )

    return parser


def emit(config: Config, data: Mapping, text: str, stream: Optional[TextIO] = None):
    """Print a command result as JSON or text."""
    if stream is None:
        stream = sys.stdout
    print(to_json(dict(data)) if config.json_output else text, file=stream)


def report_error(config: Config, message: str, error: Exception):
    """Report a failed command: a JSON envelope on stdout, or an error log line."""
    if config.json_output:
        emit(config, error_envelope(message, str(error)), '')
    else:
        log_error(f"{message}: {error}")


def _resolve_date(value: Optional[str], default: str) -> str:
    if not value:
        return default
    return format_date(parse_date(value))


def open_session_client(config: Config, store: Optional[SessionStore] = None) -> TCRSClient:
    """
    Open a client for the user with a stored session.

    Raises:
        NotLoggedInError: If no session is stored
        SessionExpiredError: If the stored session is no longer valid
    """
    store = store if store is not None else SessionStore(config)
    user_id = store.find_logged_in_user()
    if user_id is None:
        raise NotLoggedInError(f"not logged in; {LOGIN_HINT}")

    client = TCRSClient(user_id, config, store=store)
    if not client.is_logged_in():
        client.close()
        raise SessionExpiredError(f"session expired; {RELOGIN_HINT}")
    return client


def cmd_login(args: argparse.Namespace, config: Config, environ: Mapping[str, str]) -> int:
    user_id = args.user_id or environ.get(USER_ENV, '')
    if not user_id:
        raise ConfigurationError(f"user id is required (argument or {USER_ENV})")

    password = args.password or environ.get(PASSWORD_ENV, '')
    if not password:
        if not sys.stdin.isatty():
            raise ConfigurationError(f"password is required (argument or {PASSWORD_ENV})")
        password = getpass.getpass('Password: ')

    log_section(f"Logging in as {user_id}")
    with TCRSClient(user_id, config) as client:
        client.login(password)

    emit(
        config,
        success_envelope('Login successful', user_id=user_id),
        f"Successfully logged in as {user_id}",
    )
    return 0


def cmd_logout(args: argparse.Namespace, config: Config, environ: Mapping[str, str]) -> int:
    store = SessionStore(config)
    user_id = store.find_logged_in_user()
    if user_id is None:
        emit(config, success_envelope('No active session found'), "No active session found")
        return 0

    log_section(f"Logging out {user_id}")
    try:
        config.validate_base_url()
    except ConfigurationError as e:
        # Without a server there is only local state to drop
        log_warning(f"Skipping server logout: {e}")
        store.clear(user_id)
    else:
        with TCRSClient(user_id, config, store=store) as client:
            client.logout()

    emit(
        config,
        success_envelope('Logout successful', user_id=user_id),
        f"Successfully logged out {user_id}",
    )
    return 0


def cmd_status(args: argparse.Namespace, config: Config, environ: Mapping[str, str]) -> int:
    store = SessionStore(config)
    user_id = store.find_logged_in_user()
    info = store.read_info(user_id) if user_id is not None else None
    data = status_data(user_id, info, store.timeout, store.clock())

    exit_code = 0
    if args.ping:
        config.validate_base_url()
        ok, message = check_connectivity(config.base_url, timeout=config.request_timeout)
        data['server_reachable'] = ok
        if not ok:
            data['server_error'] = message
            if not config.json_output:
                log_warning(format_connectivity_error(config.base_url, message, is_vpn_proxy_error(message)))
            exit_code = 1

    emit(config, data, render_status(data))
    return exit_code


def cmd_projects(args: argparse.Namespace, config: Config, environ: Mapping[str, str]) -> int:
    date = _resolve_date(args.date, today_string())
    with open_session_client(config) as client:
        log_section(f"Fetching projects for {date}")
        result = client.get_projects_and_activities(date)

    emit(config, result.to_dict(), render_projects(result))
    return 0


def cmd_week(args: argparse.Namespace, config: Config, environ: Mapping[str, str]) -> int:
    date = _resolve_date(args.date, default_week_start())
    with open_session_client(config) as client:
        log_section(f"Fetching week timecard for {date}")
        timecard = client.get_week_timecard(date)

    emit(config, timecard.to_dict(), render_week(timecard))
    return 0


def cmd_save(args: argparse.Namespace, config: Config, environ: Mapping[str, str]) -> int:
    date = _resolve_date(args.date, default_week_start())
    entries = load_entries(args.file)
    get_logger().debug(f"Loaded {len(entries)} entr{'y' if len(entries) == 1 else 'ies'} from {args.file}")

    with open_session_client(config) as client:
        log_section(f"Saving week starting {date}")
        client.save_week_timecard(date, entries)

    emit(
        config,
        success_envelope(
            'Timecard saved successfully',
            week_start_date=date,
            entries_saved=len(entries),
        ),
        f"Successfully saved {len(entries)} entries for week starting {date}",
    )
    return 0


COMMANDS: Dict[str, Callable[[argparse.Namespace, Config, Mapping[str, str]], int]] = {
    'login': cmd_login,
    'logout': cmd_logout,
    'status': cmd_status,
    'projects': cmd_projects,
    'week': cmd_week,
    'save': cmd_save,
}


def main(argv=None, environ: Optional[Mapping[str, str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command-line arguments (defaults to sys.argv)
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(verbose=getattr(args, 'verbose', False))
    logger = get_logger()

    if not args.command:
        parser.print_help()
        return 1

    if environ is None:
        environ = os.environ

    config = Config.from_env(environ, verbose=args.verbose, json_output=args.json)
    message = FAILURE_MESSAGES[args.command]

    try:
        return COMMANDS[args.command](args, config, environ)

    except KeyboardInterrupt:
        logger.warning("Operation cancelled by user")
        return 130  # Standard exit code for SIGINT

    except TransportError as e:
        logger.debug("Traceback:", exc_info=True)
        report_error(config, message, e)
        if is_vpn_proxy_error(str(e)) and not config.json_output:
            log_warning(format_connectivity_error(config.base_url, str(e), True))
        return 1

    except (TCRSError, ValueError, OSError) as e:
        # ValueError covers bad dates and invalid user ids
        logger.debug("Traceback:", exc_info=True)
        report_error(config, message, e)
        return 1


if __name__ == '__main__':
    sys.exit(main())
