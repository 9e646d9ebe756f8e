"""Tests for domain models and history ingestion."""

import pytest

from studioplanner.domain.ingest import load_history_csv, records_from_rows
from studioplanner.domain.models import (
    HistoricalClassRecord,
    InstructorLedger,
    WeeklyScheduleState,
    normalize_time,
    occupied_quanta,
    time_to_minutes,
)

from conftest import KENKERE, KWALITY, make_assignment


class TestTimeHelpers:
    """Tests for time conversion helpers."""

    def test_normalize_time_pads_hours(self):
        """Single-digit hours should be zero padded."""
        assert normalize_time("9:00") == "09:00"

    def test_normalize_time_drops_seconds(self):
        """Seconds should be dropped."""
        assert normalize_time("18:30:00") == "18:30"

    def test_normalize_time_unparseable(self):
        """Garbage should normalize to an empty string."""
        assert normalize_time("morning") == ""
        assert normalize_time("") == ""

    def test_occupied_quanta_one_hour(self):
        """A 1-hour class occupies four 15-minute units."""
        assert occupied_quanta("09:00", 1.0) == [540, 555, 570, 585]

    def test_occupied_quanta_express(self):
        """A 45-minute class occupies three units."""
        assert len(occupied_quanta("09:00", 0.75)) == 3


class TestHistoricalClassRecord:
    """Tests for typed record ingestion."""

    def test_from_row_maps_export_headers(self):
        """Headers from the studio export should map onto fields."""
        record = HistoricalClassRecord.from_row(
            {
                "Location": KENKERE,
                "Day of the Week": "Monday",
                "Class Time": "9:00:00",
                "Cleaned Class": "Studio Barre 57",
                "Teacher Name": "Anisha Shah",
                "Checked In": "12",
                "Participants": "14",
                "Total Revenue": "5400.50",
                "Late Cancellations": "1",
            }
        )

        assert record.location == KENKERE
        assert record.day == "Monday"
        assert record.start_time == "09:00"
        assert record.class_format == "Studio Barre 57"
        assert record.instructor == "Anisha Shah"
        assert record.checked_in == 12
        assert record.participants == 14
        assert record.revenue == pytest.approx(5400.5)
        assert record.late_cancellations == 1

    def test_from_row_joins_first_and_last_name(self):
        """First/last name columns should be joined when no full name exists."""
        record = HistoricalClassRecord.from_row(
            {"teacherFirstName": "Rohan", "teacherLastName": "Dahima"}
        )
        assert record.instructor == "Rohan Dahima"

    def test_from_row_coerces_invalid_numbers_to_zero(self):
        """Unparseable numerics should become 0 instead of failing."""
        record = HistoricalClassRecord.from_row(
            {"checked_in": "n/a", "revenue": "", "participants": None}
        )
        assert record.checked_in == 0
        assert record.revenue == 0.0
        assert record.participants == 0

    def test_is_hosted(self):
        """Formats containing "hosted" should be flagged."""
        record = HistoricalClassRecord(
            location=KENKERE,
            day="Monday",
            start_time="09:00",
            class_format="Studio Hosted Class",
            instructor="Anisha Shah",
        )
        assert record.is_hosted is True


class TestIngestion:
    """Tests for row and CSV ingestion."""

    def test_rows_missing_slot_key_are_dropped(self):
        """Rows without location/day/time/format should be skipped."""
        records = records_from_rows(
            [
                {"Location": KENKERE, "Day": "Monday", "Time": "09:00", "Class Format": "Studio FIT"},
                {"Location": KENKERE, "Day": "Monday", "Time": "", "Class Format": "Studio FIT"},
                {"Location": "", "Day": "Monday", "Time": "09:00", "Class Format": "Studio FIT"},
            ]
        )
        assert len(records) == 1
        assert records[0].class_format == "Studio FIT"

    def test_load_history_csv(self, tmp_path):
        """CSV exports should load into typed records."""
        path = tmp_path / "history.csv"
        path.write_text(
            "Location,Day of the Week,Class Time,Cleaned Class,Teacher Name,Checked In,Total Revenue\n"
            f'"{KWALITY}",Tuesday,07:30,Studio Mat 57,Reshma Sharma,9,4200\n'
            f'"{KWALITY}",Tuesday,08:30,Studio FIT,Reshma Sharma,abc,\n',
            encoding="utf-8",
        )

        records = load_history_csv(path)

        assert len(records) == 2
        assert records[0].location == KWALITY
        assert records[0].checked_in == 9
        assert records[1].checked_in == 0
        assert records[1].revenue == 0.0


class TestScheduledClassAssignment:
    """Tests for scheduled class helpers."""

    def test_end_minutes(self):
        """End time should follow from start and duration."""
        assignment = make_assignment(start_time="18:00", duration=0.75)
        assert assignment.end_minutes == time_to_minutes("18:45")

    def test_overlap_on_shared_quantum(self):
        """Classes sharing a 15-minute unit overlap."""
        first = make_assignment(start_time="09:00")
        second = make_assignment(start_time="09:45")
        assert first.overlaps(second)

    def test_no_overlap_when_adjacent(self):
        """A class starting at another's end does not overlap it."""
        first = make_assignment(start_time="09:00")
        second = make_assignment(start_time="10:00")
        assert not first.overlaps(second)

    def test_no_overlap_across_days(self):
        """Same time on different days never overlaps."""
        first = make_assignment(day="Monday")
        second = make_assignment(day="Tuesday")
        assert not first.overlaps(second)

    def test_shift(self):
        """Classes before 14:00 are morning, the rest evening."""
        assert make_assignment(start_time="11:00").shift == "morning"
        assert make_assignment(start_time="18:00").shift == "evening"

    def test_with_changes_keeps_id(self):
        """Copies with changes keep the original id."""
        original = make_assignment()
        changed = original.with_changes(instructor="Rohan Dahima")
        assert changed.id == original.id
        assert changed.instructor == "Rohan Dahima"
        assert original.instructor == "Anisha Shah"


class TestWeeklyScheduleState:
    """Tests for the schedule aggregate."""

    def test_copy_is_independent(self):
        """Adding to a copy should not change the original."""
        state = WeeklyScheduleState([make_assignment()])
        copy = state.copy()
        copy.add(make_assignment(start_time="10:00"))
        assert len(state) == 1
        assert len(copy) == 2

    def test_replace_and_remove_by_id(self):
        """Assignments should be replaceable and removable by id."""
        assignment = make_assignment()
        state = WeeklyScheduleState([assignment])

        assert state.replace(assignment.id, assignment.with_changes(start_time="11:00"))
        assert state.get(assignment.id).start_time == "11:00"
        assert state.remove(assignment.id)
        assert len(state) == 0
        assert not state.remove(assignment.id)

    def test_for_instructor_sorted_by_day_then_time(self):
        """An instructor's classes come back in week order."""
        state = WeeklyScheduleState(
            [
                make_assignment(day="Wednesday", start_time="07:00"),
                make_assignment(day="Monday", start_time="18:00"),
                make_assignment(day="Monday", start_time="08:00"),
            ]
        )
        ordered = [(a.day, a.start_time) for a in state.for_instructor("Anisha Shah")]
        assert ordered == [("Monday", "08:00"), ("Monday", "18:00"), ("Wednesday", "07:00")]

    def test_is_slot_filled(self):
        """A slot is filled when any class starts there."""
        state = WeeklyScheduleState([make_assignment()])
        assert state.is_slot_filled(KENKERE, "Monday", "09:00")
        assert not state.is_slot_filled(KENKERE, "Monday", "10:00")


class TestInstructorLedger:
    """Tests for derived instructor totals."""

    def test_totals_from_state(self):
        """Weekly and daily totals should add up."""
        state = WeeklyScheduleState(
            [
                make_assignment(start_time="08:00"),
                make_assignment(start_time="10:00", duration=0.75),
                make_assignment(day="Tuesday", location=KWALITY),
            ]
        )
        ledger = InstructorLedger.from_state(state)

        assert ledger.hours("Anisha Shah") == pytest.approx(2.75)
        assert ledger.day_hours("Anisha Shah", "Monday") == pytest.approx(1.75)
        assert ledger.day_count("Anisha Shah", "Monday") == 2
        assert ledger.location_on("Anisha Shah", "Tuesday") == KWALITY
        assert ledger.location_on("Anisha Shah", "Friday") is None

    def test_unknown_instructor_has_zero_hours(self):
        """Instructors with no classes have zero hours."""
        assert InstructorLedger().hours("Nobody") == 0.0
