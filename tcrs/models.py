"""
Data models for the TCRS client.

This module defines the entities recovered from the legacy pages
(projects, activities, week timecards), the session state persisted
between invocations, and the entries submitted when saving a week.
"""

import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from http.cookiejar import Cookie
from typing import Any, Dict, List, Optional

DAYS_PER_WEEK = 7

# Plain decimal notation as the legacy form writes it: no digit separators,
# no hex, no inf/nan spellings
DECIMAL_PATTERN = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII)


def parse_decimal(text: str) -> Optional[float]:
    """
    Parse plain decimal text, or return None when it is not one.

    Examples:
        >>> parse_decimal(" 7.5 ")
        7.5
        >>> parse_decimal("1_000") is None
        True
    """
    stripped = text.strip()
    if not DECIMAL_PATTERN.fullmatch(stripped):
        return None
    value = float(stripped)
    return value if math.isfinite(value) else None


def format_number(value: float) -> str:
    """
    Format a number the way the legacy form expects it.

    Integral values render without a fractional part and no fixed decimal
    count is applied otherwise.

    Examples:
        >>> format_number(8.0)
        '8'
        >>> format_number(7.25)
        '7.25'
    """
    if value == int(value):
        return str(int(value))
    text = repr(float(value))
    if 'e' in text or 'E' in text:
        text = format(Decimal(text), 'f')
    return text


class HoursKind(Enum):
    """Which of the three shapes an hours field carries."""
    NUMBER = 'number'
    BLANK = 'blank'
    RAW = 'raw'


@dataclass(frozen=True)
class Hours:
    """
    Hours recorded for one day.

    The legacy format distinguishes a number, an empty field, and text that
    is not a number at all; the last is kept verbatim instead of dropped.

    Attributes:
        kind: NUMBER, BLANK or RAW
        value: The hours when kind is NUMBER
        raw: The original text when kind is RAW
    """
    kind: HoursKind
    value: Optional[float] = None
    raw: str = ''

    @classmethod
    def number(cls, value: float) -> 'Hours':
        """
        Create a numeric hours value.

        Raises:
            ValueError: If the value is negative or not finite
        """
        try:
            value = float(value)
        except (OverflowError, TypeError):
            raise ValueError(f"Hours value out of range: {value!r:.40}")
        if not math.isfinite(value):
            raise ValueError(f"Hours value must be finite: {value}")
        if value < 0:
            raise ValueError(f"Hours value cannot be negative: {value}")
        return cls(HoursKind.NUMBER, value=value)

    @classmethod
    def blank(cls) -> 'Hours':
        return cls(HoursKind.BLANK)

    @classmethod
    def unparsed(cls, text: str) -> 'Hours':
        return cls(HoursKind.RAW, raw=text)

    @classmethod
    def parse(cls, text: Optional[str]) -> 'Hours':
        """
        Parse a field value as found in markup or in a CSV cell.

        Blank text gives BLANK, a finite non-negative plain decimal gives
        NUMBER, anything else is preserved as RAW.
        """
        if text is None or not text.strip():
            return cls.blank()
        value = parse_decimal(text)
        if value is None or value < 0:
            return cls.unparsed(text)
        return cls.number(value)

    @classmethod
    def coerce(cls, value: Any) -> 'Hours':
        """
        Convert a decoded JSON value into Hours.

        Raises:
            ValueError: If the value is a negative/non-finite number or of an
                unsupported type
        """
        if isinstance(value, Hours):
            return value
        if value is None:
            return cls.blank()
        if isinstance(value, bool):
            raise ValueError(f"Hours value must be a number or string, got: {value!r}")
        if isinstance(value, (int, float)):
            return cls.number(value)
        if isinstance(value, str):
            return cls.parse(value)
        raise ValueError(f"Hours value must be a number or string, got: {value!r}")

    @property
    def is_number(self) -> bool:
        return self.kind is HoursKind.NUMBER

    @property
    def is_blank(self) -> bool:
        return self.kind is HoursKind.BLANK

    def numeric(self) -> Optional[float]:
        """Return the hours as a float, or None when not a number."""
        return self.value if self.kind is HoursKind.NUMBER else None

    def form_value(self) -> str:
        """Render the value for the save form."""
        if self.kind is HoursKind.NUMBER:
            return format_number(self.value)
        if self.kind is HoursKind.RAW:
            return self.raw
        return ''

    def to_json(self) -> Any:
        if self.kind is HoursKind.NUMBER:
            return self.value
        if self.kind is HoursKind.RAW:
            return self.raw
        return ''


@dataclass
class Activity:
    """
    One activity declared under a project.

    Attributes:
        id: Local composite identifier (project id, cleaned name, uid)
        project_id: Owning project id
        name: Cleaned display name
        full_name: Label exactly as declared in the page script
        is_bottom: Whether this is a leaf activity that accepts time entry
        uid: Server-side activity identifier
        progress: Progress value as declared (opaque text)
        indent_level: Leading whitespace count of the raw label
    """
    id: str
    project_id: str
    name: str
    full_name: str
    is_bottom: bool
    uid: str
    progress: str = ''
    indent_level: int = 0

    @staticmethod
    def make_id(project_id: str, name: str, uid: str) -> str:
        return f"{project_id}_{name}_{uid}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'project_id': self.project_id,
            'name': self.name,
            'full_name': self.full_name,
            'is_bottom': self.is_bottom,
            'uid': self.uid,
            'progress': self.progress,
            'indent_level': self.indent_level,
        }


@dataclass
class Project:
    """A project and its activities, in page order."""
    id: str
    name: str
    activities: List[Activity] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'activities': [a.to_dict() for a in self.activities],
        }


@dataclass
class ProjectsAndActivities:
    """Projects and activities available for a date."""
    date: str
    projects: List[Project] = field(default_factory=list)

    def find_project(self, project_id: str) -> Optional[Project]:
        for project in self.projects:
            if project.id == project_id:
                return project
        return None

    def find_activity(self, project_id: str, activity_id: str) -> Optional[Activity]:
        """
        Find an activity of a project by its uid or its composite id.

        Args:
            project_id: Project to search
            activity_id: Server uid or local composite id

        Returns:
            The matching Activity, or None
        """
        project = self.find_project(project_id)
        if project is None or not activity_id:
            return None
        for activity in project.activities:
            if activity.uid == activity_id or activity.id == activity_id:
                return activity
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'date': self.date,
            'projects': [p.to_dict() for p in self.projects],
        }


@dataclass
class DayEntry:
    """One day's cell of a week timecard row."""
    hours: Hours = field(default_factory=Hours.blank)
    note: str = ''
    progress: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'hours': self.hours.to_json(),
            'note': self.note,
            'progress': self.progress,
        }


@dataclass
class WeekEntry:
    """
    One populated row of the week timecard.

    Attributes:
        project_id: Selected project id
        project_name: Selected project label
        activity_data: Opaque activity token selected in the row
        progress: Row progress value
        days: Exactly 7 DayEntry values, Monday first
    """
    project_id: str
    project_name: str
    activity_data: str = ''
    progress: int = 0
    days: List[DayEntry] = field(default_factory=lambda: [DayEntry() for _ in range(DAYS_PER_WEEK)])

    def total_hours(self) -> float:
        """Calculate total numeric hours across all days."""
        return sum(d.hours.numeric() for d in self.days if d.hours.is_number)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'project_id': self.project_id,
            'project_name': self.project_name,
            'activity_data': self.activity_data,
            'progress': self.progress,
            'days': [d.to_dict() for d in self.days],
        }


@dataclass
class WeekTimecard:
    """
    A full week's timecard.

    Attributes:
        week_start_date: Monday of the week (YYYY-MM-DD)
        entries: Populated rows in page order
        daily_totals: Per-day totals, Monday first
        totals_authoritative: True when totals came from the server's
            subtotal row rather than being summed locally
    """
    week_start_date: str
    entries: List[WeekEntry] = field(default_factory=list)
    daily_totals: List[float] = field(default_factory=lambda: [0.0] * DAYS_PER_WEEK)
    totals_authoritative: bool = False

    def week_total(self) -> float:
        return sum(self.daily_totals)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'week_start_date': self.week_start_date,
            'entries': [e.to_dict() for e in self.entries],
            'daily_totals': list(self.daily_totals),
            'totals_authoritative': self.totals_authoritative,
        }


@dataclass
class SessionInfo:
    """
    Metadata about a stored login session.

    Attributes:
        user_id: User the session belongs to
        created_at: When the login was verified (timezone-aware, UTC)
        cookie_count: Number of cookies persisted with the session
    """
    user_id: str
    created_at: datetime
    cookie_count: int

    def age(self, now: datetime) -> timedelta:
        return now - self.created_at

    def is_expired(self, timeout: timedelta, now: datetime) -> bool:
        return self.age(now) > timeout

    def expires_in(self, timeout: timedelta, now: datetime) -> timedelta:
        return timeout - self.age(now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'user_id': self.user_id,
            'created_at': self.created_at.isoformat(),
            'cookie_count': self.cookie_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SessionInfo':
        """
        Rebuild session info from its JSON form.

        Raises:
            KeyError, ValueError, TypeError: If the data is malformed
        """
        created_at = datetime.fromisoformat(data['created_at'])
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return cls(
            user_id=str(data['user_id']),
            created_at=created_at,
            cookie_count=int(data['cookie_count']),
        )


@dataclass
class CookieRecord:
    """Serializable form of one transport cookie."""
    name: str
    value: str
    path: str = '/'
    domain: str = ''
    expires: Optional[int] = None
    secure: bool = False
    http_only: bool = False

    @classmethod
    def from_cookie(cls, cookie: Cookie) -> 'CookieRecord':
        """Convert a cookie from an http.cookiejar jar."""
        http_only = (
            cookie.has_nonstandard_attr('HttpOnly')
            or cookie.has_nonstandard_attr('httponly')
        )
        return cls(
            name=cookie.name,
            value=cookie.value or '',
            path=cookie.path or '/',
            domain=cookie.domain or '',
            expires=int(cookie.expires) if cookie.expires else None,
            secure=bool(cookie.secure),
            http_only=bool(http_only),
        )

    def to_cookie(self) -> Cookie:
        """Build an http.cookiejar cookie suitable for jar.set_cookie()."""
        rest = {'HttpOnly': None} if self.http_only else {}
        return Cookie(
            version=0,
            name=self.name,
            value=self.value,
            port=None,
            port_specified=False,
            domain=self.domain,
            domain_specified=self.domain.startswith('.'),
            domain_initial_dot=self.domain.startswith('.'),
            path=self.path or '/',
            path_specified=True,
            secure=self.secure,
            expires=self.expires,
            discard=self.expires is None,
            comment=None,
            comment_url=None,
            rest=rest,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'value': self.value,
            'path': self.path,
            'domain': self.domain,
            'expires': self.expires,
            'secure': self.secure,
            'http_only': self.http_only,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CookieRecord':
        expires = data.get('expires')
        return cls(
            name=str(data['name']),
            value=str(data.get('value', '')),
            path=str(data.get('path') or '/'),
            domain=str(data.get('domain') or ''),
            expires=int(expires) if expires else None,
            secure=bool(data.get('secure', False)),
            http_only=bool(data.get('http_only', False)),
        )


@dataclass
class SaveDayEntry:
    """One day of a save request."""
    hours: Hours = field(default_factory=Hours.blank)
    note: str = ''
    progress: int = 0


@dataclass
class SaveEntry:
    """
    One row to submit when saving a week.

    Attributes:
        project_id: Project to book against
        activity_id: Activity uid (or composite id); empty for none
        progress: Row progress value
        days: Up to 7 SaveDayEntry values, Monday first
    """
    project_id: str
    activity_id: str = ''
    progress: int = 0
    days: List[SaveDayEntry] = field(default_factory=list)

    def __post_init__(self):
        self.project_id = (self.project_id or '').strip()
        self.activity_id = (self.activity_id or '').strip()
        if len(self.days) > DAYS_PER_WEEK:
            raise ValueError(f"At most {DAYS_PER_WEEK} days per entry, got: {len(self.days)}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SaveEntry':
        """
        Build a save entry from its JSON form.

        Raises:
            ValueError: If a field has an invalid value
        """
        if not isinstance(data, dict):
            raise ValueError(f"Entry must be an object, got: {type(data).__name__}")

        days = []
        for day in data.get('days') or []:
            if not isinstance(day, dict):
                raise ValueError(f"Day must be an object, got: {type(day).__name__}")
            days.append(SaveDayEntry(
                hours=Hours.coerce(day.get('hours')),
                note=str(day.get('note') or ''),
                progress=_to_int(day.get('progress'), 'progress'),
            ))

        return cls(
            project_id=str(data.get('project_id') or ''),
            activity_id=str(data.get('activity_id') or ''),
            progress=_to_int(data.get('progress'), 'progress'),
            days=days,
        )


def _to_int(value: Any, field_name: str) -> int:
    if value is None or value == '':
        return 0
    if isinstance(value, bool):
        raise ValueError(f"Invalid {field_name} value: {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        raise ValueError(f"Invalid {field_name} value: {value!r:.40}")
