"""
Markup vocabulary of the TCRS legacy pages.

This module defines every pattern, field name and sentinel needed to read
the rendered pages and to rebuild the week save form. The server has no
documented API; these values were recovered from the rendered HTML and
the form a browser submits.

IMPORTANT: The save endpoint parses the body by these exact field names
and slot counts. If the pages change, this module will need to be updated.
"""

import re
from typing import List


class Endpoints:
    """Paths of the legacy endpoints, relative to the base URL."""

    LOGIN_PAGE = '/login.jsp'
    LOGIN = '/servlet/VerifController'
    LOGOUT = '/servlet/VerifController?method=logout'
    WEEK_PAGE = '/Timecard/timecard_week/daychoose.jsp'
    WEEK_SAVE = '/Timecard/timecard_week/weekinfo_deal.jsp'

    # Query parameter carrying the chosen date on the week page
    DATE_PARAM = 'cho_date'


class TCRSSelectors:
    """
    Centralized patterns and field names for the TCRS week page.
    """

    # Project dropdown: <option value="101">Alpha</option>
    PROJECT_OPTION = re.compile(r'<option value="(\d+)">([^<]+)</option>')

    # Project dropdown with extra attributes: <option selected value="101" ...>Alpha</option>
    PROJECT_OPTION_WITH_ATTRS = re.compile(r'<option[^>]*\svalue="(\d+)"[^>]*>([^<]+)</option>')

    # Activity declarations emitted by the page script:
    # act.append('PROJECT_ID','LABEL','IS_BOTTOM','UID','PROGRESS')
    ACTIVITY_CALL = re.compile(
        r"act\.append\(\s*'(\d+)',\s*'([^']+)',\s*'([^']+)',\s*'([^']+)',\s*'([^']+)'\s*\)"
    )

    # Label of the dropdown's "please choose" entry
    PLACEHOLDER_LABEL = 'select project'

    # Option value meaning "no project selected"
    NO_SELECTION = '--'

    # Activity id sent when a row has no activity selected
    ACTIVITY_PLACEHOLDER = 'xx'

    # Activity label hierarchy markers
    LEADING_WHITESPACE = re.compile(r'^\s+')
    NUMBER_PREFIX = re.compile(r'^(\d+[.)]\s+)(.*)', re.DOTALL)
    HIERARCHY_MARKER = re.compile(r'(.+)\s*<<[^>]+>>')
    HIERARCHY_PARENT = re.compile(r'([^<]+)\s*<<')

    # Row fields on the week page: project3, activity3, record3_0, ...
    PROJECT_SELECT_NAME = re.compile(r'^project(\d+)$')

    # Class of the row carrying the server's per-day totals
    SUBTOTAL_ROW_CLASS = 'subtotal'

    # Slot cardinality of the save form
    PROJECT_SLOTS = 25
    OVERTIME_SLOTS = 25
    DAYS = 7

    WEEKDAYS: List[str] = [
        'monday',
        'tuesday',
        'wednesday',
        'thursday',
        'friday',
        'saturday',
        'sunday'
    ]

    @staticmethod
    def project_field(slot: int) -> str:
        """
        Get the name of the project select for a row.

        Example:
            >>> TCRSSelectors.project_field(3)
            'project3'
        """
        return f'project{slot}'

    @staticmethod
    def activity_field(slot: int) -> str:
        return f'activity{slot}'

    @staticmethod
    def row_progress_field(slot: int) -> str:
        return f'actprogress{slot}'

    @staticmethod
    def hours_field(slot: int, day: int) -> str:
        """
        Get the name of the hours input for a row and day.

        Example:
            >>> TCRSSelectors.hours_field(0, 6)
            'record0_6'
        """
        return f'record{slot}_{day}'

    @staticmethod
    def note_field(slot: int, day: int) -> str:
        return f'note{slot}_{day}'

    @staticmethod
    def day_progress_field(slot: int, day: int) -> str:
        return f'progress{slot}_{day}'

    @staticmethod
    def normal_total_field(day: int) -> str:
        return f'norTotal{day}'

    @staticmethod
    def overtime_progress_field(slot: int) -> str:
        return f'overactprogress{slot}'

    @staticmethod
    def overtime_hours_field(slot: int, day: int) -> str:
        return f'overrecord{slot}_{day}'

    @staticmethod
    def overtime_note_field(slot: int, day: int) -> str:
        return f'overnote{slot}_{day}'

    @staticmethod
    def overtime_day_progress_field(slot: int, day: int) -> str:
        return f'overprogress{slot}_{day}'

    @staticmethod
    def overtime_total_field(day: int) -> str:
        return f'oveTotal{day}'


class FormControls:
    """Fixed control fields of the week save form."""

    SAVE_TRIGGER = ('save2', ' save ')

    # The page renders this field in two places, so a browser submits it twice
    CALLER = ('caller', 'this_week')

    DATE_FIELD = 'cdate'


# Cookie names that mark an authenticated session (compared case-insensitively)
SESSION_COOKIE_NAMES: List[str] = [
    'JSESSIONID',
    'session',
    'sessionid',
    'sid',
    '_session_id',
    'ASP.NET_SessionId',
    'PHPSESSID',
]
