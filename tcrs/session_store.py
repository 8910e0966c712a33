"""
Session persistence for the TCRS client.

Each user has two files in the cache directory: a cookie file (a JSON list
of cookie records) and a session info file (JSON). Validity is judged by
the local clock only; the server is not consulted until a live request
fails.
"""

import json
import os
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence

from .config import Config
from .errors import NoCookiesError, NoSessionCookieError, SessionExpiredError
from .logging_utils import get_logger
from .models import CookieRecord, SessionInfo
from .selectors import SESSION_COOKIE_NAMES

_SESSION_COOKIE_NAMES_LOWER = {name.lower() for name in SESSION_COOKIE_NAMES}


def is_session_cookie(name: str) -> bool:
    """
    Check whether a cookie name is a known session cookie name.

    The comparison is an exact, case-insensitive match.

    Examples:
        >>> is_session_cookie('jsessionid')
        True
        >>> is_session_cookie('JSESSIONID_OLD')
        False
    """
    return name.lower() in _SESSION_COOKIE_NAMES_LOWER


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _write_private_json(path: Path, data: Any):
    """Replace a file atomically with JSON content readable by the owner only."""
    fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix='.tmp')
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)
        os.chmod(tmp_name, 0o600)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


class SessionStore:
    """
    Owns the on-disk cookie and session state of every user.

    Args:
        config: Application configuration (cache directory, timeout)
        clock: Returns the current time; timezone-aware UTC
    """

    def __init__(self, config: Config, clock: Callable[[], datetime] = utc_now):
        self.config = config
        self.clock = clock
        self.logger = get_logger()

    @property
    def timeout(self) -> timedelta:
        return timedelta(hours=self.config.session_timeout_hours)

    def read_info(self, user_id: str) -> Optional[SessionInfo]:
        """
        Read the persisted session info without judging its age.

        Returns:
            SessionInfo, or None if the file is missing or unreadable
        """
        path = self.config.session_file(user_id)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return SessionInfo.from_dict(json.load(f))
        except FileNotFoundError:
            return None
        except (OSError, ValueError, KeyError, TypeError) as e:
            self.logger.debug(f"Ignoring unreadable session file {path}: {e}")
            return None

    def load(self, user_id: str) -> Optional[SessionInfo]:
        """
        Load the session info of a user.

        Returns:
            SessionInfo, or None if no session is stored

        Raises:
            SessionExpiredError: If the session is older than the timeout
        """
        info = self.read_info(user_id)
        if info is None:
            return None
        if info.is_expired(self.timeout, self.clock()):
            raise SessionExpiredError(
                f"session for {user_id} expired (created {info.created_at.isoformat()})"
            )
        return info

    def load_cookies(self, user_id: str) -> List[CookieRecord]:
        """
        Load the stored cookies of a user whose session is still valid.

        Returns:
            Cookie records, empty if nothing is stored

        Raises:
            SessionExpiredError: If the session is older than the timeout
        """
        if self.load(user_id) is None:
            return []

        path = self.config.cookie_file(user_id)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            return [CookieRecord.from_dict(item) for item in data]
        except FileNotFoundError:
            return []
        except (OSError, ValueError, KeyError, TypeError) as e:
            self.logger.debug(f"Ignoring unreadable cookie file {path}: {e}")
            return []

    def save(self, user_id: str, cookies: Sequence[CookieRecord]) -> SessionInfo:
        """
        Persist the cookies of a freshly verified login.

        Args:
            user_id: User the cookies belong to
            cookies: Current contents of the cookie jar

        Returns:
            The SessionInfo written alongside the cookies

        Raises:
            NoCookiesError: If there are no cookies at all
            NoSessionCookieError: If none of the cookies is a session cookie
        """
        if not cookies:
            raise NoCookiesError()
        if not any(is_session_cookie(c.name) for c in cookies):
            raise NoSessionCookieError(
                f"no session cookie among: {', '.join(sorted(c.name for c in cookies))}"
            )

        self.config.ensure_cache_dir()

        _write_private_json(self.config.cookie_file(user_id), [c.to_dict() for c in cookies])

        info = SessionInfo(user_id=user_id, created_at=self.clock(), cookie_count=len(cookies))
        _write_private_json(self.config.session_file(user_id), info.to_dict())

        self.logger.debug(f"Saved {len(cookies)} cookie(s) for {user_id}")
        return info

    def clear(self, user_id: str):
        """Remove the cookie and session files of a user; missing files are fine."""
        for path in (self.config.cookie_file(user_id), self.config.session_file(user_id)):
            try:
                path.unlink()
            except FileNotFoundError:
                pass

    def is_valid(self, user_id: str) -> bool:
        """Return True if an unexpired session with a session cookie is stored."""
        try:
            cookies = self.load_cookies(user_id)
        except SessionExpiredError:
            return False
        return any(is_session_cookie(c.name) for c in cookies)

    def find_logged_in_user(self) -> Optional[str]:
        """
        Find a user with stored session state.

        Returns:
            First user id (sorted) that has both a session file and a
            cookie file, or None
        """
        cache_dir = self.config.cache_dir
        if not cache_dir.is_dir():
            return None

        for session_path in sorted(cache_dir.glob('*.session')):
            user_id = session_path.stem
            if session_path.is_file() and (cache_dir / f"{user_id}.cookies").is_file():
                return user_id
        return None
