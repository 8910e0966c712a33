"""
Tests for week save form serialization.
"""

from urllib.parse import parse_qsl

import pytest

from tcrs.errors import PayloadError
from tcrs.form_protocol import FormProtocolBuilder, build_save_payload, encode_pairs
from tcrs.models import Activity, Hours, Project, ProjectsAndActivities, SaveDayEntry, SaveEntry

WEEK = '2025-01-06'

# 3 control fields, 25 slots x (3 row + 21 day fields), 7 totals, caller,
# 25 overtime slots x (1 + 21 fields), 7 overtime totals
EXPECTED_PAIR_COUNT = 3 + 25 * 24 + 7 + 1 + 25 * 22 + 7


def full_week(hours, note='', progress=0):
    return [SaveDayEntry(hours=Hours.coerce(h), note=note, progress=progress) for h in hours]


@pytest.fixture
def listing():
    return ProjectsAndActivities(date=WEEK, projects=[
        Project(id='101', name='Alpha', activities=[
            Activity(id='101_Design_u1', project_id='101', name='Design', full_name='1. Design',
                     is_bottom=False, uid='u1'),
            Activity(id='101_Sub Task_u9', project_id='101', name='Sub Task',
                     full_name='  Sub Task <<1.1>>', is_bottom=True, uid='u9', indent_level=2),
        ]),
    ])


def decoded(body: bytes):
    return parse_qsl(body.decode('ascii'), keep_blank_values=True)


class TestEncodePairs:
    """Tests for form-urlencoding."""

    def test_space_becomes_plus(self):
        """Test spaces are encoded as '+'."""
        assert encode_pairs([('save2', ' save ')]) == 'save2=+save+'

    def test_reserved_characters_escaped(self):
        """Test '$', '&' and '=' are percent-encoded."""
        assert encode_pairs([('a', 'x$y&z=1')]) == 'a=x%24y%26z%3D1'

    def test_unicode_is_utf8(self):
        """Test non-ASCII text is percent-encoded as UTF-8."""
        assert encode_pairs([('note', 'é')]) == 'note=%C3%A9'

    def test_order_preserved(self):
        """Test pairs keep the given order, duplicates included."""
        assert encode_pairs([('b', '1'), ('a', '2'), ('b', '3')]) == 'b=1&a=2&b=3'


class TestFormProtocolBuilder:
    """Tests for the save form layout."""

    def test_control_block_first(self):
        """Test the body starts with the save trigger, caller and date."""
        body = build_save_payload(WEEK, [])
        assert body.startswith(b'save2=+save+&caller=this_week&cdate=2025-01-06&')

    def test_pair_count_without_entries(self):
        """Test all 25 project and 25 overtime slots are present for zero entries."""
        pairs = FormProtocolBuilder().pairs(WEEK, [])
        assert len(pairs) == EXPECTED_PAIR_COUNT

    def test_pair_count_with_entries(self):
        """Test the layout size does not depend on the entry count."""
        entries = [SaveEntry(project_id='101', days=full_week([8] * 5 + [0, 0]))] * 3
        pairs = FormProtocolBuilder().pairs(WEEK, entries)
        assert len(pairs) == EXPECTED_PAIR_COUNT

    def test_caller_appears_twice(self):
        """Test the caller field is emitted before and after the normal slots."""
        pairs = FormProtocolBuilder().pairs(WEEK, [])
        callers = [i for i, (k, _) in enumerate(pairs) if k == 'caller']
        assert len(callers) == 2
        assert pairs[callers[1] - 1][0] == 'norTotal6'
        assert pairs[callers[1] + 1][0] == 'overactprogress0'

    def test_project_fields_sorted(self):
        """Test the project slot block is in sorted key order."""
        pairs = FormProtocolBuilder().pairs(WEEK, [])
        block = [k for k, _ in pairs[3:3 + 25 * 24]]
        assert block == sorted(block)
        assert block[0] == 'activity0'

    def test_overtime_block_sorted_then_totals(self):
        """Test overtime fields are sorted and followed by the 7 overtime totals."""
        pairs = FormProtocolBuilder().pairs(WEEK, [])
        tail = pairs[-(25 * 22 + 7):]
        overtime_keys = [k for k, _ in tail[:25 * 22]]
        assert overtime_keys == sorted(overtime_keys)
        assert tail[-7:] == [(f'oveTotal{d}', '0') for d in range(7)]

    def test_overtime_values(self):
        """Test overtime hours and notes are empty and progress is zero."""
        fields = FormProtocolBuilder().overtime_fields()
        assert fields['overactprogress24'] == '0'
        assert fields['overrecord0_6'] == ''
        assert fields['overnote3_2'] == ''
        assert fields['overprogress7_1'] == '0'

    def test_entry_fields(self, listing):
        """Test an entry fills its slot with id, activity token and day values."""
        entry = SaveEntry(
            project_id='101',
            activity_id='u9',
            progress=20,
            days=full_week([8, 7.25, '', 8, 8, 0, 0], note='work item', progress=3),
        )
        fields = dict(decoded(build_save_payload(WEEK, [entry], listing)))

        assert fields['project0'] == '101'
        assert fields['activity0'] == 'true$u9$101$0'
        assert fields['actprogress0'] == '20'
        assert fields['record0_0'] == '8'
        assert fields['record0_1'] == '7.25'
        assert fields['record0_2'] == ''
        assert fields['note0_0'] == 'work item'
        assert fields['progress0_0'] == '3'

    def test_empty_slots(self):
        """Test unused slots carry empty values."""
        fields = dict(decoded(build_save_payload(WEEK, [])))
        assert fields['project24'] == ''
        assert fields['activity24'] == ''
        assert fields['record24_6'] == ''

    def test_normal_totals(self):
        """Test per-day totals sum numeric hours across entries."""
        entries = [
            SaveEntry(project_id='101', days=full_week([8, 4, 0, 0, 0, 0, 0])),
            SaveEntry(project_id='202', days=full_week([0, 3.5, 0, 0, 0, 0, 0])),
        ]
        fields = dict(decoded(build_save_payload(WEEK, entries)))
        assert fields['norTotal0'] == '8'
        assert fields['norTotal1'] == '7.5'
        assert fields['norTotal2'] == '0'

    def test_raw_hours_sent_verbatim_but_not_totalled(self):
        """Test unparsed hour text is submitted as-is and skipped in totals."""
        entry = SaveEntry(project_id='101', days=[SaveDayEntry(hours=Hours.unparsed('abc'))])
        fields = dict(decoded(build_save_payload(WEEK, [entry])))
        assert fields['record0_0'] == 'abc'
        assert fields['norTotal0'] == '0'

    def test_short_days_padded(self):
        """Test entries with fewer than seven days are padded with blank days."""
        entry = SaveEntry(project_id='101', days=full_week([8]))
        fields = dict(decoded(build_save_payload(WEEK, [entry])))
        assert fields['record0_6'] == ''
        assert fields['progress0_6'] == '0'

    def test_activity_placeholder(self):
        """Test an entry without activity sends the placeholder token."""
        entry = SaveEntry(project_id='101')
        assert FormProtocolBuilder().activity_token(entry) == 'true$xx$101$0'

    def test_activity_resolved_from_composite_id(self, listing):
        """Test a composite activity id is sent as the server uid."""
        entry = SaveEntry(project_id='101', activity_id='101_Sub Task_u9')
        assert FormProtocolBuilder(listing).activity_token(entry) == 'true$u9$101$0'

    def test_non_leaf_activity_flag(self, listing):
        """Test a non-leaf activity is sent with a false flag."""
        entry = SaveEntry(project_id='101', activity_id='u1')
        assert FormProtocolBuilder(listing).activity_token(entry) == 'false$u1$101$0'

    def test_unknown_activity_sent_as_given(self, listing):
        """Test an activity missing from the listing is sent unchanged."""
        entry = SaveEntry(project_id='101', activity_id='u404')
        assert FormProtocolBuilder(listing).activity_token(entry) == 'true$u404$101$0'

    def test_too_many_entries(self):
        """Test more entries than project slots is rejected."""
        entries = [SaveEntry(project_id=str(i)) for i in range(26)]
        with pytest.raises(PayloadError, match='At most 25'):
            build_save_payload(WEEK, entries)

    def test_twenty_five_entries_fill_every_slot(self):
        """Test exactly 25 entries are accepted."""
        entries = [SaveEntry(project_id=str(100 + i)) for i in range(25)]
        fields = dict(decoded(build_save_payload(WEEK, entries)))
        assert fields['project24'] == '124'

    def test_deterministic(self, listing):
        """Test identical input gives byte-identical output."""
        entries = [
            SaveEntry(project_id='101', activity_id='u9', days=full_week([8] * 5 + [0, 0], note='n')),
        ]
        first = build_save_payload(WEEK, entries, listing)
        second = build_save_payload(WEEK, entries, listing)
        assert first == second

    def test_field_insertion_order_does_not_matter(self, listing):
        """Test maps filled in a different order serialize to the same bytes."""

        def reversed_dict(fields):
            return dict(reversed(list(fields.items())))

        class ReversedBuilder(FormProtocolBuilder):
            def _entry_fields(self, slot, entry):
                return reversed_dict(super()._entry_fields(slot, entry))

            @staticmethod
            def _empty_slot_fields(slot):
                return reversed_dict(FormProtocolBuilder._empty_slot_fields(slot))

            def overtime_fields(self):
                return reversed_dict(super().overtime_fields())

        entries = [
            SaveEntry(project_id='101', activity_id='u9', progress=5,
                      days=full_week([8, 7.5, '', 'x', 8], note='n')),
            SaveEntry(project_id=''),
            SaveEntry(project_id='202', days=full_week([1])),
        ]
        builder = ReversedBuilder(listing)
        assert list(builder._entry_fields(0, entries[0]))[0] != 'project0'

        assert builder.build(WEEK, entries) == FormProtocolBuilder(listing).build(WEEK, entries)
