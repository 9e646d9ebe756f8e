"""Shared fixtures for studioplanner tests."""

import pytest

from studioplanner.domain.models import HistoricalClassRecord, ScheduledClassAssignment
from studioplanner.domain.policies import StudioRules

KENKERE = "Kenkere House"
KWALITY = "Kwality House, Kemps Corner"
SUPREME = "Supreme HQ, Bandra"


def make_record(
    location=KENKERE,
    day="Monday",
    start_time="09:00",
    class_format="Studio Barre 57",
    instructor="Anisha Shah",
    checked_in=8,
    revenue=4000.0,
    participants=None,
    late_cancellations=0,
):
    """Build a historical record with sensible defaults."""
    return HistoricalClassRecord(
        location=location,
        day=day,
        start_time=start_time,
        class_format=class_format,
        instructor=instructor,
        checked_in=checked_in,
        participants=participants if participants is not None else checked_in + 2,
        revenue=revenue,
        late_cancellations=late_cancellations,
    )


def make_assignment(
    location=KENKERE,
    day="Monday",
    start_time="09:00",
    class_format="Studio Barre 57",
    instructor="Anisha Shah",
    duration=1.0,
    **kwargs,
):
    """Build a scheduled class with sensible defaults."""
    return ScheduledClassAssignment(
        location=location,
        day=day,
        start_time=start_time,
        class_format=class_format,
        instructor=instructor,
        duration=duration,
        **kwargs,
    )


@pytest.fixture
def rules():
    """Default studio rules."""
    return StudioRules()


@pytest.fixture
def history():
    """A small but varied week of history across all three locations."""
    return [
        # Kenkere Monday 09:00: strong Barre, weak Mat
        make_record(checked_in=10, revenue=5200.0),
        make_record(checked_in=10, revenue=4800.0),
        make_record(class_format="Studio Mat 57", instructor="Vivaran Dhasmana", checked_in=4, revenue=1500.0),
        make_record(class_format="Studio Mat 57", instructor="Vivaran Dhasmana", checked_in=4, revenue=1700.0),
        # Kenkere Monday evening
        make_record(start_time="18:00", class_format="Studio FIT", instructor="Pranjali Jain", checked_in=9, revenue=4500.0),
        make_record(start_time="19:00", class_format="Studio Mat 57", instructor="Reshma Sharma", checked_in=7, revenue=3500.0),
        # Denylisted instructor with excellent numbers
        make_record(day="Tuesday", start_time="08:00", class_format="Studio Barre 57", instructor="Nishanth Raj", checked_in=14, revenue=9000.0),
        make_record(day="Tuesday", start_time="08:00", class_format="Studio Barre 57", instructor="Nishanth Raj", checked_in=13, revenue=8800.0),
        # Hosted class, never scheduled
        make_record(day="Tuesday", start_time="10:00", class_format="Studio Hosted Class", instructor="Atulan Purohit", checked_in=20, revenue=0.0),
        make_record(day="Tuesday", start_time="18:00", class_format="Studio Cardio Barre", instructor="Atulan Purohit", checked_in=8, revenue=4100.0),
        # Recovery early in the week
        make_record(day="Wednesday", start_time="07:00", class_format="Studio Recovery", instructor="Richard D'Costa", checked_in=6, revenue=2500.0),
        make_record(day="Thursday", start_time="07:30", class_format="Studio Back Body Blaze", instructor="Richard D'Costa", checked_in=7, revenue=3600.0),
        # Kwality House
        make_record(location=KWALITY, day="Monday", start_time="08:00", class_format="Studio Cardio Barre", instructor="Mrigakshi Jaiswal", checked_in=9, revenue=5000.0),
        make_record(location=KWALITY, day="Wednesday", start_time="18:30", class_format="Studio Barre 57", instructor="Rohan Dahima", checked_in=11, revenue=6100.0),
        make_record(location=KWALITY, day="Saturday", start_time="10:00", class_format="Studio Mat 57", instructor="Karan Bhatia", checked_in=6, revenue=3000.0),
        make_record(location=KWALITY, day="Sunday", start_time="10:00", class_format="Studio Barre 57", instructor="Anisha Shah", checked_in=12, revenue=6500.0),
        # Supreme HQ
        make_record(location=SUPREME, day="Wednesday", start_time="07:30", class_format="Studio powerCycle", instructor="Cauveri Vikrant", checked_in=9, revenue=4700.0),
        make_record(location=SUPREME, day="Friday", start_time="19:00", class_format="Studio powerCycle (Express)", instructor="Vivaran Dhasmana", checked_in=8, revenue=3900.0),
        make_record(location=SUPREME, day="Saturday", start_time="11:00", class_format="Studio HIIT", instructor="Reshma Sharma", checked_in=10, revenue=5000.0),
        make_record(location=SUPREME, day="Sunday", start_time="09:00", class_format="Studio powerCycle", instructor="Saniya Rao", checked_in=12, revenue=6000.0),
    ]
