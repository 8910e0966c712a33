"""
TCRS - Command-line client for the TCRS legacy timecard system.

This package logs in to the TCRS web application, reads projects,
activities and week timecards from its pages, and saves week entries
through its form endpoint.
"""

__version__ = '1.0.0'
__author__ = 'TCRS CLI'

from .models import ProjectsAndActivities, WeekTimecard, SaveEntry, SessionInfo
from .config import Config
from .errors import TCRSError
from .session_store import SessionStore
from .client import TCRSClient

__all__ = [
    'ProjectsAndActivities',
    'WeekTimecard',
    'SaveEntry',
    'SessionInfo',
    'Config',
    'TCRSError',
    'SessionStore',
    'TCRSClient',
]
