"""Tests for PDF schedule output."""

import pytest

from studioplanner.domain.models import WeeklyScheduleState
from studioplanner.output.pdf_generator import SchedulePDFGenerator

from conftest import KWALITY, SUPREME, make_assignment


@pytest.fixture
def schedule():
    return WeeklyScheduleState(
        [
            make_assignment(participants=11, revenue=5200.0, is_top_performer=True),
            make_assignment(day="Tuesday", start_time="13:00", is_private=True),
            make_assignment(
                location=SUPREME,
                day="Sunday",
                class_format="Studio powerCycle (Express)",
                instructor="Cauveri Vikrant",
                duration=0.75,
                is_priority=True,
            ),
            make_assignment(location="Pop-up Studio", day="Friday", instructor="Rohan Dahima"),
        ]
    )


class TestSchedulePDFGenerator:
    """Tests for SchedulePDFGenerator."""

    def test_writes_pdf_file(self, rules, schedule, tmp_path):
        """A PDF file is written to the given path."""
        output = tmp_path / "week.pdf"
        SchedulePDFGenerator(rules).generate(schedule, output, title="Week 42")

        data = output.read_bytes()
        assert data.startswith(b"%PDF")
        assert len(data) > 1000

    def test_buffer_output(self, rules, schedule):
        """The buffer variant returns a rewound PDF stream."""
        buffer = SchedulePDFGenerator(rules).generate_to_buffer(schedule)
        assert buffer.read(4) == b"%PDF"

    def test_empty_schedule(self, rules):
        """An empty week still renders every location page."""
        buffer = SchedulePDFGenerator(rules).generate_to_buffer(
            WeeklyScheduleState(), include_summary=False
        )
        assert buffer.getvalue().startswith(b"%PDF")

    def test_crowded_day_and_overloaded_instructor(self, rules):
        """Overflowing day columns and over-cap instructors still render."""
        classes = [
            make_assignment(location=KWALITY, day="Monday", start_time=f"{h:02d}:00", instructor=f"Coach {h}")
            for h in range(6, 22)
        ]
        classes += [
            make_assignment(day=day, start_time=t)
            for day in ("Monday", "Tuesday", "Wednesday", "Thursday")
            for t in ("07:00", "08:00", "10:00", "11:00")
        ]

        buffer = SchedulePDFGenerator(rules).generate_to_buffer(WeeklyScheduleState(classes))

        assert buffer.getvalue().startswith(b"%PDF")
