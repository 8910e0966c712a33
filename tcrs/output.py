"""
Rendering of command results.

Every command prints either a human-readable report or a JSON document
to stdout; diagnostics go to the log on stderr.
"""

import json
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from .models import ProjectsAndActivities, SessionInfo, WeekTimecard
from .week_utils import DateParseError, day_headers

NAME_WIDTH = 30
CELL_WIDTH = 11


def to_json(data: Dict[str, Any]) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


def success_envelope(message: str, **fields) -> Dict[str, Any]:
    result = {'success': True}
    result.update(fields)
    result['message'] = message
    return result


def error_envelope(message: str, error: str) -> Dict[str, Any]:
    return {'success': False, 'error': error, 'message': message}


def format_duration(delta: timedelta) -> str:
    """
    Format a duration as hours and minutes.

    Examples:
        >>> format_duration(timedelta(hours=3, minutes=5))
        '3h 5m'
        >>> format_duration(timedelta(minutes=42))
        '42m'
    """
    total_minutes = int(delta.total_seconds() // 60)
    hours, minutes = divmod(max(total_minutes, 0), 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def render_projects(result: ProjectsAndActivities) -> str:
    """
    Render projects and activities as an indented tree.

    Leaf activities (the ones that accept time) are marked [leaf].
    """
    lines = [f"Projects for {result.date}:", ""]

    if not result.projects:
        lines.append("No projects found")
        return "\n".join(lines)

    for project in result.projects:
        lines.append(f"Project: {project.name} (ID: {project.id})")
        if not project.activities:
            lines.append("  No activities")
        for activity in project.activities:
            indent = "    " if activity.indent_level > 0 else ""
            leaf = " [leaf]" if activity.is_bottom else ""
            lines.append(f"  {indent}- {activity.name} (ID: {activity.uid}){leaf}")
        lines.append("")

    return "\n".join(lines).rstrip("\n")


def _hours_cell(day) -> str:
    hours = day.hours
    if hours.is_number:
        text = f"{hours.value:.1f}" if hours.value > 0 else "-"
    elif hours.is_blank:
        text = "-"
    else:
        text = hours.raw.strip()
    return text.rjust(CELL_WIDTH - 2).ljust(CELL_WIDTH)


def _total_cell(total: float) -> str:
    text = f"{total:.1f}" if total > 0 else "-"
    return text.rjust(CELL_WIDTH - 2).ljust(CELL_WIDTH)


def render_week(timecard: WeekTimecard) -> str:
    """Render a week timecard as a grid with a totals row."""
    try:
        headers = day_headers(timecard.week_start_date)
    except DateParseError:
        headers = ['Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat', 'Sun']

    separator = "-" * (NAME_WIDTH + CELL_WIDTH * len(headers))
    lines = [
        f"Week Timecard: {timecard.week_start_date}",
        "",
        "Project/Activity".ljust(NAME_WIDTH) + "".join(h.rjust(CELL_WIDTH - 2).ljust(CELL_WIDTH) for h in headers),
        separator,
    ]

    if not timecard.entries:
        lines.append("No entries")
    for entry in timecard.entries:
        name = entry.project_name or entry.project_id
        if len(name) > NAME_WIDTH - 2:
            name = name[:NAME_WIDTH - 5] + "..."
        lines.append(name.ljust(NAME_WIDTH) + "".join(_hours_cell(d) for d in entry.days))

    lines.append(separator)
    lines.append("Total".ljust(NAME_WIDTH) + "".join(_total_cell(t) for t in timecard.daily_totals))
    lines.append("")
    lines.append(f"Week Total: {timecard.week_total():.1f} hours")

    return "\n".join(line.rstrip() for line in lines)


def status_data(user_id: Optional[str], info: Optional[SessionInfo],
                timeout: timedelta, now: datetime) -> Dict[str, Any]:
    """Build the status result for a user (or for nobody logged in)."""
    if user_id is None:
        return {'logged_in': False, 'message': 'Not logged in'}
    if info is None:
        return {'logged_in': False, 'user_id': user_id, 'error': 'session info not found'}

    expired = info.is_expired(timeout, now)
    return {
        'logged_in': not expired,
        'user_id': user_id,
        'created_at': info.created_at.isoformat(),
        'session_age': format_duration(info.age(now)),
        'expires_in': format_duration(info.expires_in(timeout, now)),
        'is_expired': expired,
        'cookie_count': info.cookie_count,
    }


def _local_time(iso_text: str) -> str:
    return datetime.fromisoformat(iso_text).astimezone().strftime('%Y-%m-%d %H:%M:%S')


def render_status(data: Dict[str, Any]) -> str:
    """Render the result of status_data() for humans."""
    user_id = data.get('user_id')
    if user_id is None:
        lines = ["Not logged in"]
    elif 'error' in data:
        lines = [f"Session info error for {user_id}: {data['error']}"]
    elif data['is_expired']:
        created = _local_time(data['created_at'])
        lines = [
            f"Session expired for user: {user_id}",
            f"  Session created: {created}",
            "  Please login again",
        ]
    else:
        created = _local_time(data['created_at'])
        lines = [
            f"Logged in as: {user_id}",
            f"  Session created: {created}",
            f"  Session age: {data['session_age']}",
            f"  Expires in: {data['expires_in']}",
        ]

    if 'server_reachable' in data:
        reachable = 'yes' if data['server_reachable'] else f"no ({data.get('server_error', '')})"
        lines.append(f"  Server reachable: {reachable}")

    return "\n".join(lines)
