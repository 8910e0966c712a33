"""
Loader for the entries given to the save command.

Entries come from a JSON document (a file or stdin) or from a CSV file:

JSON:
    {"entries": [{"project_id": "12345", "activity_id": "5", "progress": 0,
                  "days": [{"hours": 8, "note": "", "progress": 0}, ...]}]}

CSV:
    project_id,activity_id,progress,monday,tuesday,wednesday,thursday,friday,saturday,sunday
    12345,5,0,8,8,8,8,8,,
"""

import csv
import io
import json
import sys
from pathlib import Path
from typing import Dict, List, Optional, TextIO

from .errors import EntryLoadError
from .models import Hours, HoursKind, SaveDayEntry, SaveEntry
from .selectors import TCRSSelectors

STDIN_MARKER = '-'


class EntryCSVSchema:
    """Columns of the CSV save input."""

    PROJECT_ID = 'project_id'
    ACTIVITY_ID = 'activity_id'
    PROGRESS = 'progress'

    REQUIRED_HEADERS: List[str] = [PROJECT_ID] + TCRSSelectors.WEEKDAYS

    # Alternative header names accepted on input
    ALIASES: Dict[str, str] = {
        'project': PROJECT_ID,
        'project_number': PROJECT_ID,
        'activity': ACTIVITY_ID,
    }

    @classmethod
    def normalize_header(cls, header: str) -> str:
        """
        Normalize a header name to its canonical form.

        Examples:
            >>> EntryCSVSchema.normalize_header('  Project ')
            'project_id'
        """
        normalized = header.strip().lower()
        return cls.ALIASES.get(normalized, normalized)


def parse_entries_json(text: str, source: str = '<input>') -> List[SaveEntry]:
    """
    Parse save entries from a JSON document.

    Accepts an object with an "entries" array or a bare array.

    Raises:
        EntryLoadError: If the document is invalid
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise EntryLoadError(f"Failed to parse JSON from {source}: {e}")

    if isinstance(data, dict):
        items = data.get('entries')
    else:
        items = data

    if not isinstance(items, list):
        raise EntryLoadError(f"{source}: expected an 'entries' array")

    entries = []
    for idx, item in enumerate(items):
        try:
            entries.append(SaveEntry.from_dict(item))
        except ValueError as e:
            raise EntryLoadError(f"{source}: entry {idx}: {e}")

    return _checked(entries, source)


def parse_entries_csv(stream: TextIO, source: str = '<input>') -> List[SaveEntry]:
    """
    Parse save entries from CSV with one row per entry.

    Raises:
        EntryLoadError: If headers are missing or a value is invalid
    """
    reader = csv.DictReader(stream)
    if not reader.fieldnames:
        raise EntryLoadError(f"{source}: CSV file is empty or has no headers")

    headers = [EntryCSVSchema.normalize_header(h) for h in reader.fieldnames]
    missing = [h for h in EntryCSVSchema.REQUIRED_HEADERS if h not in headers]
    if missing:
        raise EntryLoadError(f"{source}: CSV missing required headers: {', '.join(missing)}")

    entries = []
    for line_num, row in enumerate(reader, start=2):  # header is line 1
        normalized = {
            EntryCSVSchema.normalize_header(k): (v or '').strip()
            for k, v in row.items() if k is not None
        }
        if not normalized.get(EntryCSVSchema.PROJECT_ID):
            # Blank lines
            continue
        try:
            entries.append(_entry_from_csv_row(normalized))
        except ValueError as e:
            raise EntryLoadError(f"{source}: error on line {line_num}: {e}")

    return _checked(entries, source)


def _entry_from_csv_row(row: Dict[str, str]) -> SaveEntry:
    days = []
    for day in TCRSSelectors.WEEKDAYS:
        hours = Hours.parse(row.get(day, ''))
        if hours.kind is HoursKind.RAW:
            raise ValueError(f"Invalid hours value for {day}: '{row.get(day)}' (must be a number or empty)")
        days.append(SaveDayEntry(hours=hours))

    progress_text = row.get(EntryCSVSchema.PROGRESS, '')
    try:
        progress = int(progress_text) if progress_text else 0
    except ValueError:
        raise ValueError(f"Invalid progress value: '{progress_text}'")

    return SaveEntry(
        project_id=row[EntryCSVSchema.PROJECT_ID],
        activity_id=row.get(EntryCSVSchema.ACTIVITY_ID, ''),
        progress=progress,
        days=days,
    )


def _checked(entries: List[SaveEntry], source: str) -> List[SaveEntry]:
    if not entries:
        raise EntryLoadError(f"{source}: no entries to save")
    if len(entries) > TCRSSelectors.PROJECT_SLOTS:
        raise EntryLoadError(
            f"{source}: at most {TCRSSelectors.PROJECT_SLOTS} entries per week, got {len(entries)}"
        )
    return entries


def load_entries(path: str, stdin: Optional[TextIO] = None) -> List[SaveEntry]:
    """
    Load save entries from a file, or from stdin when path is '-'.

    Files ending in .csv are read as CSV; everything else as JSON.

    Args:
        path: File path or '-'
        stdin: Stream to read for '-' (defaults to sys.stdin)

    Returns:
        List of SaveEntry objects

    Raises:
        EntryLoadError: If the input cannot be read or parsed
    """
    if path == STDIN_MARKER:
        stream = stdin if stdin is not None else sys.stdin
        return parse_entries_json(stream.read(), source='stdin')

    file_path = Path(path)
    try:
        text = file_path.read_text(encoding='utf-8')
    except FileNotFoundError:
        raise EntryLoadError(f"Input file not found: {path}")
    except OSError as e:
        raise EntryLoadError(f"Failed to read {path}: {e}")

    if file_path.suffix.lower() == '.csv':
        return parse_entries_csv(io.StringIO(text, newline=''), source=path)
    return parse_entries_json(text, source=path)
