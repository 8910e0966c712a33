"""
Week save form serialization.

The save endpoint reads the submitted body by fixed field names and fixed
slot counts rather than as a free key/value map, so the payload has to
reproduce what a browser submits for the week page:

1. the control fields (save trigger, caller, week date),
2. 25 project slots of row and per-day fields, in sorted key order,
3. the per-day normal-hours totals,
4. the caller field a second time,
5. 25 overtime slots (always empty or zero), in sorted key order,
   followed by the 7 overtime totals.

Sorting is what makes the output byte-identical for identical input.
"""

from typing import Dict, List, Optional, Sequence, Tuple
from urllib.parse import quote_plus

from .errors import PayloadError
from .logging_utils import get_logger, log_warning
from .models import DAYS_PER_WEEK, ProjectsAndActivities, SaveDayEntry, SaveEntry, format_number
from .selectors import FormControls, TCRSSelectors

Pair = Tuple[str, str]


def encode_pairs(pairs: Sequence[Pair]) -> str:
    """
    Form-urlencode key/value pairs in the given order.

    Spaces become '+', everything outside the unreserved set is
    percent-encoded.

    Example:
        >>> encode_pairs([('save2', ' save '), ('cdate', '2025-01-06')])
        'save2=+save+&cdate=2025-01-06'
    """
    return '&'.join(
        f"{quote_plus(key, safe='')}={quote_plus(value, safe='')}"
        for key, value in pairs
    )


class FormProtocolBuilder:
    """
    Builds the body of the week save request.

    Args:
        listing: Projects and activities fetched for the week just before
            saving; used to resolve activity ids and leaf flags
    """

    def __init__(self, listing: Optional[ProjectsAndActivities] = None):
        self.listing = listing
        self.logger = get_logger()

    def build(self, week_start_date: str, entries: Sequence[SaveEntry]) -> bytes:
        """
        Serialize entries into the save form body.

        Args:
            week_start_date: Monday of the week being saved
            entries: Rows to save, one per project slot in order

        Returns:
            UTF-8 encoded form body

        Raises:
            PayloadError: If there are more entries than project slots
        """
        return encode_pairs(self.pairs(week_start_date, entries)).encode('utf-8')

    def pairs(self, week_start_date: str, entries: Sequence[SaveEntry]) -> List[Pair]:
        """Return the ordered key/value pairs of the save form."""
        if len(entries) > TCRSSelectors.PROJECT_SLOTS:
            raise PayloadError(
                f"At most {TCRSSelectors.PROJECT_SLOTS} entries can be saved per week, "
                f"got: {len(entries)}"
            )

        pairs: List[Pair] = [
            FormControls.SAVE_TRIGGER,
            FormControls.CALLER,
            (FormControls.DATE_FIELD, week_start_date),
        ]

        pairs.extend(sorted(self.project_fields(entries).items()))

        for day, total in enumerate(self.normal_totals(entries)):
            pairs.append((TCRSSelectors.normal_total_field(day), format_number(total)))

        pairs.append(FormControls.CALLER)

        pairs.extend(sorted(self.overtime_fields().items()))
        for day in range(DAYS_PER_WEEK):
            pairs.append((TCRSSelectors.overtime_total_field(day), '0'))

        return pairs

    def project_fields(self, entries: Sequence[SaveEntry]) -> Dict[str, str]:
        """
        Build the fields of all project slots.

        Slots past the given entries, and entries without a project id,
        are emitted with empty values so the server's positional parsing
        stays aligned.
        """
        fields: Dict[str, str] = {}
        for slot in range(TCRSSelectors.PROJECT_SLOTS):
            entry = entries[slot] if slot < len(entries) else None
            if entry is not None and entry.project_id:
                fields.update(self._entry_fields(slot, entry))
            else:
                fields.update(self._empty_slot_fields(slot))
        return fields

    def normal_totals(self, entries: Sequence[SaveEntry]) -> List[float]:
        """Sum the numeric hours of all real entries per day."""
        totals = [0.0] * DAYS_PER_WEEK
        for entry in entries:
            if not entry.project_id:
                continue
            for day, day_entry in enumerate(entry.days[:DAYS_PER_WEEK]):
                if day_entry.hours.is_number:
                    totals[day] += day_entry.hours.numeric()
        return totals

    def overtime_fields(self) -> Dict[str, str]:
        """Build the overtime slots; overtime entry is not supported, so all are zero/empty."""
        fields: Dict[str, str] = {}
        for slot in range(TCRSSelectors.OVERTIME_SLOTS):
            fields[TCRSSelectors.overtime_progress_field(slot)] = '0'
            for day in range(DAYS_PER_WEEK):
                fields[TCRSSelectors.overtime_hours_field(slot, day)] = ''
                fields[TCRSSelectors.overtime_note_field(slot, day)] = ''
                fields[TCRSSelectors.overtime_day_progress_field(slot, day)] = '0'
        return fields

    def activity_token(self, entry: SaveEntry) -> str:
        """
        Encode the selected activity as '<bottom>$<activity>$<project>$0'.

        The activity id is resolved against the fetched listing when
        possible (so composite ids map to the server uid); the placeholder
        id is used when no activity is selected.
        """
        activity_id = entry.activity_id or TCRSSelectors.ACTIVITY_PLACEHOLDER
        is_bottom = True

        if entry.activity_id and self.listing is not None:
            activity = self.listing.find_activity(entry.project_id, entry.activity_id)
            if activity is None:
                log_warning(
                    f"Activity {entry.activity_id} not found under project {entry.project_id}; "
                    f"sending it as given",
                    self.logger
                )
            else:
                activity_id = activity.uid
                is_bottom = activity.is_bottom
                if not is_bottom:
                    log_warning(
                        f"Activity '{activity.name}' is not a leaf activity; "
                        f"the server may reject time booked on it",
                        self.logger
                    )

        flag = 'true' if is_bottom else 'false'
        return f"{flag}${activity_id}${entry.project_id}$0"

    def _entry_fields(self, slot: int, entry: SaveEntry) -> Dict[str, str]:
        fields = {
            TCRSSelectors.project_field(slot): entry.project_id,
            TCRSSelectors.activity_field(slot): self.activity_token(entry),
            TCRSSelectors.row_progress_field(slot): str(entry.progress),
        }
        days = list(entry.days[:DAYS_PER_WEEK])
        days.extend(SaveDayEntry() for _ in range(DAYS_PER_WEEK - len(days)))
        for day, day_entry in enumerate(days):
            fields[TCRSSelectors.hours_field(slot, day)] = day_entry.hours.form_value()
            fields[TCRSSelectors.note_field(slot, day)] = day_entry.note
            fields[TCRSSelectors.day_progress_field(slot, day)] = str(day_entry.progress)
        return fields

    @staticmethod
    def _empty_slot_fields(slot: int) -> Dict[str, str]:
        fields = {
            TCRSSelectors.project_field(slot): '',
            TCRSSelectors.activity_field(slot): '',
            TCRSSelectors.row_progress_field(slot): '',
        }
        for day in range(DAYS_PER_WEEK):
            fields[TCRSSelectors.hours_field(slot, day)] = ''
            fields[TCRSSelectors.note_field(slot, day)] = ''
            fields[TCRSSelectors.day_progress_field(slot, day)] = ''
        return fields


def build_save_payload(week_start_date: str, entries: Sequence[SaveEntry],
                       listing: Optional[ProjectsAndActivities] = None) -> bytes:
    """
    Convenience function to build the save form body.

    Args:
        week_start_date: Monday of the week being saved
        entries: Rows to save
        listing: Freshly fetched projects/activities for token resolution

    Returns:
        UTF-8 encoded form body

    Raises:
        PayloadError: If there are more than 25 entries
    """
    return FormProtocolBuilder(listing).build(week_start_date, entries)
