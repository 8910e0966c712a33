"""
HTTP client for the TCRS legacy web application.

This module sequences the requests a browser would make (fetch page,
parse, post form) over a cookie-authenticated httpx session, and keeps
the session cookies in the SessionStore between invocations.
"""

from typing import List, Optional, Sequence

import httpx

from .config import Config
from .errors import (
    CookieSaveError,
    InvalidCredentialsError,
    LoginFailedError,
    NotLoggedInError,
    SaveFailedError,
    SessionExpiredError,
    TransportError,
)
from .extraction import extract_projects_and_activities
from .form_protocol import FormProtocolBuilder
from .logging_utils import get_logger, log_step, log_success, log_warning
from .models import CookieRecord, ProjectsAndActivities, SaveEntry, SessionInfo, WeekTimecard
from .selectors import Endpoints
from .session_store import SessionStore, is_session_cookie
from .timecard_parser import extract_week_timecard

BROWSER_HEADERS = {
    'User-Agent': (
        'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 '
        '(KHTML, like Gecko) Chrome/135.0.0.0 Safari/537.36'
    ),
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8',
    'Accept-Language': 'zh-TW,zh;q=0.9,en;q=0.8',
}

FORM_CONTENT_TYPE = 'application/x-www-form-urlencoded'


def classify_response(body: str, failure_markers: Sequence[str]) -> Optional[str]:
    """
    Scan a response body for failure-indicating substrings.

    The legacy server has no structured status; this case-insensitive
    substring check is the only failure signal it gives.

    Args:
        body: Response body
        failure_markers: Lowercase substrings that indicate failure

    Returns:
        The first marker found, or None
    """
    body_lower = body.lower()
    for marker in failure_markers:
        if marker in body_lower:
            return marker
    return None


class ResponseClassifier:
    """
    Decides success or failure of login and save responses.

    Note that the save markers also match pages that merely mention
    "error" or "failed" in unrelated text.
    """

    LOGIN_FAILURE_MARKERS = ('login failed', 'invalid')
    SAVE_FAILURE_MARKERS = ('error', 'failed')

    def login_failure(self, body: str) -> Optional[str]:
        return classify_response(body, self.LOGIN_FAILURE_MARKERS)

    def save_failure(self, body: str) -> Optional[str]:
        return classify_response(body, self.SAVE_FAILURE_MARKERS)

    def landed_on_protected_page(self, status_code: int, final_url: str) -> bool:
        return status_code == 200 and 'login' not in final_url.lower()


class TCRSClient:
    """
    Client for one user's session with the TCRS server.

    Args:
        user_id: TCRS user id
        config: Application configuration
        store: Session store (built from config if None)
        transport: httpx transport override (for tests)
        classifier: Response classifier override

    Raises:
        ConfigurationError: If the base URL is not configured
    """

    def __init__(self, user_id: str, config: Config,
                 store: Optional[SessionStore] = None,
                 transport: Optional[httpx.BaseTransport] = None,
                 classifier: Optional[ResponseClassifier] = None):
        config.validate_base_url()

        self.user_id = user_id
        self.config = config
        self.store = store if store is not None else SessionStore(config)
        self.classifier = classifier if classifier is not None else ResponseClassifier()
        self.logger = get_logger()

        self.http = httpx.Client(
            headers=BROWSER_HEADERS,
            timeout=config.request_timeout,
            follow_redirects=True,
            transport=transport,
        )

        self._restore_cookies()
        self._logged_in = self._jar_has_session_cookie()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        """Close the underlying HTTP connection pool."""
        self.http.close()

    def url(self, path: str) -> str:
        return self.config.base_url + path

    # -- session ---------------------------------------------------------

    def _restore_cookies(self):
        try:
            records = self.store.load_cookies(self.user_id)
        except SessionExpiredError as e:
            self.logger.debug(f"Not restoring cookies: {e}")
            return
        for record in records:
            self.http.cookies.jar.set_cookie(record.to_cookie())
        if records:
            self.logger.debug(f"Restored {len(records)} cookie(s) for {self.user_id}")

    def cookie_records(self) -> List[CookieRecord]:
        """Return the current cookie jar as serializable records."""
        return [CookieRecord.from_cookie(cookie) for cookie in self.http.cookies.jar]

    def _jar_has_session_cookie(self) -> bool:
        return any(is_session_cookie(cookie.name) for cookie in self.http.cookies.jar)

    def is_logged_in(self) -> bool:
        return self._logged_in

    def get_session_info(self) -> Optional[SessionInfo]:
        """Return the stored session info, expired or not."""
        return self.store.read_info(self.user_id)

    def _require_login(self):
        if not self._logged_in:
            raise NotLoggedInError()

    # -- transport -------------------------------------------------------

    def _send(self, method: str, path: str, context: str, **kwargs) -> httpx.Response:
        log_step(f"{method} {path}", self.logger)
        try:
            response = self.http.request(method, self.url(path), **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(f"{context}: {e}") from e
        self.logger.debug(f"  {response.status_code} {response.url}")
        return response

    def _fetch_week_page(self, date: str, context: str) -> str:
        response = self._send(
            'GET', Endpoints.WEEK_PAGE, context,
            params={Endpoints.DATE_PARAM: date},
        )
        if 'login' in response.url.path.lower():
            self._logged_in = False
            raise SessionExpiredError("server redirected to the login page; please login again")
        return response.text

    # -- operations ------------------------------------------------------

    def login(self, password: str):
        """
        Log in and persist the session cookies.

        Raises:
            InvalidCredentialsError: If the login response reports a failure
            LoginFailedError: If the verification fetch did not reach a protected page
            TransportError: If a request fails
        """
        if self._logged_in:
            self.logger.debug(f"Already logged in as {self.user_id}")
            return

        self._send('GET', Endpoints.LOGIN_PAGE, 'failed to get login page')

        response = self._send(
            'POST', Endpoints.LOGIN, 'login request failed',
            data={'method': 'login', 'name': self.user_id, 'pw': password},
            headers={
                'Content-Type': FORM_CONTENT_TYPE,
                'Referer': self.url(Endpoints.LOGIN_PAGE),
            },
        )

        marker = self.classifier.login_failure(response.text)
        if marker is not None:
            self.logger.debug(f"Login response matched failure marker '{marker}'")
            raise InvalidCredentialsError()

        response = self._send('GET', Endpoints.WEEK_PAGE, 'verification failed')
        if not self.classifier.landed_on_protected_page(response.status_code, str(response.url)):
            raise LoginFailedError()

        self._logged_in = True
        try:
            self.store.save(self.user_id, self.cookie_records())
        except CookieSaveError as e:
            log_warning(f"Could not save session cookies: {e}", self.logger)
        except OSError as e:
            log_warning(f"Could not write session files: {e}", self.logger)

        log_success(f"Logged in as {self.user_id}", self.logger)

    def logout(self):
        """
        Log out on the server (if logged in) and drop the stored session.

        Server-side logout failures are logged and otherwise ignored; the
        local session is always cleared.
        """
        if self._logged_in:
            try:
                self._send('GET', Endpoints.LOGOUT, 'logout request failed')
            except TransportError as e:
                log_warning(str(e), self.logger)

        self._logged_in = False
        self.http.cookies.clear()
        self.store.clear(self.user_id)

    def get_projects_and_activities(self, date: str) -> ProjectsAndActivities:
        """
        Fetch the projects and activities available for a date.

        Raises:
            NotLoggedInError: If not logged in
            SessionExpiredError: If the server sent the login page instead
            TransportError: If the request fails
        """
        self._require_login()
        markup = self._fetch_week_page(date, 'failed to get projects')
        return extract_projects_and_activities(markup, date)

    def get_week_timecard(self, week_start_date: str) -> WeekTimecard:
        """
        Fetch the timecard of the week starting on a date.

        Raises:
            NotLoggedInError: If not logged in
            SessionExpiredError: If the server sent the login page instead
            TransportError: If the request fails
        """
        self._require_login()
        markup = self._fetch_week_page(week_start_date, 'failed to get week timecard')
        return extract_week_timecard(markup, week_start_date)

    def save_week_timecard(self, week_start_date: str, entries: Sequence[SaveEntry]):
        """
        Save timecard entries for a week.

        The project listing is fetched again right before building the
        form, since activity tokens only hold for the current server state.

        Raises:
            NotLoggedInError: If not logged in
            PayloadError: If the entries cannot be serialized
            SaveFailedError: If the response reports a failure
            TransportError: If a request fails
        """
        self._require_login()

        listing = self._fetch_week_page(week_start_date, 'failed to get projects before save')
        projects = extract_projects_and_activities(listing, week_start_date)

        body = FormProtocolBuilder(projects).build(week_start_date, entries)

        referer = str(httpx.URL(
            self.url(Endpoints.WEEK_PAGE),
            params={Endpoints.DATE_PARAM: week_start_date},
        ))
        response = self._send(
            'POST', Endpoints.WEEK_SAVE, 'save request failed',
            content=body,
            headers={
                'Content-Type': FORM_CONTENT_TYPE,
                'Referer': referer,
                'Origin': self.config.base_url,
            },
        )

        marker = self.classifier.save_failure(response.text)
        if marker is not None:
            raise SaveFailedError(marker)

        log_success(f"Saved {len(entries)} entr{'y' if len(entries) == 1 else 'ies'} "
                    f"for week {week_start_date}", self.logger)
