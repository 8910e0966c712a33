"""
Week timecard extraction from the TCRS week page.

The week grid is a table whose rows carry a project select named
project<N>, an activity select activity<N>, and per-day inputs named
record<N>_<d>, note<N>_<d> and progress<N>_<d>. An optional subtotal
row carries the server's own per-day totals.
"""

from dataclasses import dataclass, field
from html.parser import HTMLParser
from typing import Dict, List, Optional, Tuple

from .logging_utils import get_logger
from .models import DAYS_PER_WEEK, DayEntry, Hours, WeekEntry, WeekTimecard, parse_decimal
from .selectors import TCRSSelectors


@dataclass
class _Select:
    name: str
    # (value, text) of the selected option, if any
    selected: Optional[Tuple[str, str]] = None


@dataclass
class _Row:
    table_depth: int
    classes: List[str]
    selects: List[_Select] = field(default_factory=list)
    inputs: Dict[str, str] = field(default_factory=dict)
    cells: List[str] = field(default_factory=list)

    def select(self, name: str) -> Optional[_Select]:
        for select in self.selects:
            if select.name == name:
                return select
        return None


class _WeekPageParser(HTMLParser):
    """
    Collects table rows with their selects, inputs and cell texts.

    Selects and inputs belong to every open row that encloses them, so
    fields inside a nested layout table still count for the project row.
    Cell texts belong to the innermost open row only. Rows left open are
    closed implicitly by the next row of the same table or by the end of
    their table, the way browsers do.
    """

    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.rows: List[_Row] = []
        self._open_rows: List[_Row] = []
        self._table_depth = 0
        self._select: Optional[_Select] = None
        self._option: Optional[Tuple[str, bool]] = None
        self._option_text: List[str] = []
        self._cell_text: Optional[List[str]] = None

    @property
    def _row(self) -> Optional[_Row]:
        return self._open_rows[-1] if self._open_rows else None

    def handle_starttag(self, tag, attrs):
        attr_map = {name: (value if value is not None else '') for name, value in attrs}

        if tag == 'table':
            self._table_depth += 1
        elif tag == 'tr':
            self._close_rows(self._table_depth)
            row = _Row(self._table_depth, attr_map.get('class', '').split())
            self.rows.append(row)
            self._open_rows.append(row)
        elif tag in ('td', 'th'):
            self._finish_cell()
            if self._row is not None:
                self._cell_text = []
        elif tag == 'select':
            self._finish_select()
            if self._row is not None:
                self._select = _Select(attr_map.get('name', ''))
                for row in self._open_rows:
                    row.selects.append(self._select)
        elif tag == 'option':
            self._finish_option()
            if self._select is not None:
                self._option = (attr_map.get('value', ''), 'selected' in attr_map)
                self._option_text = []
        elif tag == 'input':
            name = attr_map.get('name')
            if name:
                for row in self._open_rows:
                    row.inputs.setdefault(name, attr_map.get('value', ''))

    def handle_endtag(self, tag):
        if tag == 'option':
            self._finish_option()
        elif tag == 'select':
            self._finish_select()
        elif tag in ('td', 'th'):
            self._finish_cell()
        elif tag == 'tr':
            self._finish_cell()
            if self._open_rows:
                self._open_rows.pop()
        elif tag == 'table':
            self._close_rows(self._table_depth)
            self._table_depth = max(0, self._table_depth - 1)

    def handle_data(self, data):
        if self._option is not None:
            self._option_text.append(data)
        if self._cell_text is not None:
            self._cell_text.append(data)

    def close(self):
        super().close()
        self._finish_select()
        self._close_rows(0)

    def _finish_option(self):
        if self._option is None:
            return
        value, selected = self._option
        if selected and self._select is not None:
            # Last selected option wins
            self._select.selected = (value, ''.join(self._option_text).strip())
        self._option = None
        self._option_text = []

    def _finish_select(self):
        self._finish_option()
        self._select = None

    def _finish_cell(self):
        if self._cell_text is not None and self._row is not None:
            self._row.cells.append(''.join(self._cell_text).strip())
        self._cell_text = None

    def _close_rows(self, table_depth: int):
        self._finish_cell()
        while self._open_rows and self._open_rows[-1].table_depth >= table_depth:
            self._open_rows.pop()


def _parse_int(value: Optional[str]) -> int:
    if not value:
        return 0
    try:
        return int(value.strip())
    except ValueError:
        return 0


def _project_select(row: _Row) -> Optional[Tuple[_Select, int]]:
    """First project<N> select of a row with its row index N."""
    for select in row.selects:
        if select.name.startswith('project'):
            match = TCRSSelectors.PROJECT_SELECT_NAME.match(select.name)
            return (select, int(match.group(1))) if match else None
    return None


def _build_entry(row: _Row, project_select: _Select, index: int,
                 totals: List[float]) -> Optional[WeekEntry]:
    if project_select.selected is None:
        return None

    project_id, project_name = project_select.selected
    if not project_id or project_id == TCRSSelectors.NO_SELECTION:
        return None

    activity_data = ''
    activity_select = row.select(TCRSSelectors.activity_field(index))
    if activity_select is not None and activity_select.selected is not None:
        activity_data = activity_select.selected[0]

    days = []
    for day in range(DAYS_PER_WEEK):
        hours = Hours.parse(row.inputs.get(TCRSSelectors.hours_field(index, day)))
        if hours.is_number:
            totals[day] += hours.numeric()
        days.append(DayEntry(
            hours=hours,
            note=row.inputs.get(TCRSSelectors.note_field(index, day), ''),
            progress=_parse_int(row.inputs.get(TCRSSelectors.day_progress_field(index, day))),
        ))

    return WeekEntry(
        project_id=project_id,
        project_name=project_name,
        activity_data=activity_data,
        progress=_parse_int(row.inputs.get(TCRSSelectors.row_progress_field(index))),
        days=days,
    )


def _apply_subtotals(rows: List[_Row], totals: List[float]) -> bool:
    """Overwrite totals from the first subtotal row; True if any value was read."""
    for row in rows:
        if TCRSSelectors.SUBTOTAL_ROW_CLASS not in row.classes:
            continue
        found = False
        # First cell is the row label
        for day, text in enumerate(row.cells[1:DAYS_PER_WEEK + 1]):
            value = parse_decimal(text)
            if value is not None:
                totals[day] = value
                found = True
        return found
    return False


def extract_week_timecard(markup: str, week_start_date: str) -> WeekTimecard:
    """
    Recover the populated week grid from the week page.

    Rows without a selected project are left out. Daily totals are the
    server's subtotal row when one is present, otherwise the sum of the
    numeric hours of the extracted rows.

    Args:
        markup: Page HTML
        week_start_date: Monday of the requested week

    Returns:
        WeekTimecard for the week
    """
    logger = get_logger()

    parser = _WeekPageParser()
    parser.feed(markup)
    parser.close()

    totals = [0.0] * DAYS_PER_WEEK
    entries = []
    # Rows are in start-tag order, so an outer row claims a nested row's select first
    claimed = set()
    for row in parser.rows:
        found = _project_select(row)
        if found is None:
            continue
        project_select, index = found
        if id(project_select) in claimed:
            continue
        claimed.add(id(project_select))
        entry = _build_entry(row, project_select, index, totals)
        if entry is None:
            logger.debug(f"Row {index}: no project selected, skipped")
            continue
        entries.append(entry)

    authoritative = _apply_subtotals(parser.rows, totals)
    if not authoritative:
        logger.debug("No subtotal row found; daily totals computed from entries")

    return WeekTimecard(
        week_start_date=week_start_date,
        entries=entries,
        daily_totals=totals,
        totals_authoritative=authoritative,
    )
