"""PDF generation for weekly schedules.

This module creates printable PDF schedules showing:
- One page per location, with a column per day and a card per class
- A summary page with each instructor's weekly hours against their cap
"""

from io import BytesIO
from pathlib import Path
from typing import Optional, Union

from reportlab.lib.pagesizes import landscape, letter
from reportlab.pdfgen import canvas

from studioplanner.domain.models import (
    WEEKDAYS,
    ScheduledClassAssignment,
    WeeklyScheduleState,
    minutes_to_time,
)
from studioplanner.domain.policies import StudioRules

# Color definitions (RGB tuples, 0-1 scale)
COLORS = {
    "regular": (0.82, 0.89, 0.97),  # Light blue
    "top_performer": (0.72, 0.9, 0.72),  # Green
    "priority": (0.98, 0.86, 0.6),  # Amber
    "private": (0.88, 0.8, 0.95),  # Lavender
    "over_cap": (0.95, 0.6, 0.6),  # Red
    "bar": (0.4, 0.6, 0.8),  # Steel blue
}


def _card_color(assignment: ScheduledClassAssignment) -> tuple[float, float, float]:
    if assignment.is_private:
        return COLORS["private"]
    if assignment.is_priority:
        return COLORS["priority"]
    if assignment.is_top_performer:
        return COLORS["top_performer"]
    return COLORS["regular"]


class SchedulePDFGenerator:
    """Generates printable PDF schedules.

    Example:
        >>> generator = SchedulePDFGenerator(rules)
        >>> generator.generate(schedule, "week.pdf")
    """

    def __init__(
        self,
        rules: Optional[StudioRules] = None,
        page_width: float = 792,  # Letter landscape width (11")
        page_height: float = 612,  # Letter landscape height (8.5")
        margin: float = 36,  # 0.5 inch margins
    ):
        self.rules = rules or StudioRules()
        self.page_width = page_width
        self.page_height = page_height
        self.margin = margin

    def generate(
        self,
        schedule: WeeklyScheduleState,
        output_path: Union[str, Path],
        title: str = "Weekly Class Schedule",
        include_summary: bool = True,
    ) -> None:
        """Generate PDF schedule and save to file.

        Args:
            schedule: The weekly schedule to render.
            output_path: Path to save the PDF.
            title: Heading printed on every page.
            include_summary: Whether to include the instructor hours page.
        """
        c = canvas.Canvas(str(output_path), pagesize=landscape(letter))
        self._draw(c, schedule, title, include_summary)
        c.save()

    def generate_to_buffer(
        self,
        schedule: WeeklyScheduleState,
        title: str = "Weekly Class Schedule",
        include_summary: bool = True,
    ) -> BytesIO:
        """Generate PDF and return as bytes buffer."""
        buffer = BytesIO()
        c = canvas.Canvas(buffer, pagesize=landscape(letter))
        self._draw(c, schedule, title, include_summary)
        c.save()
        buffer.seek(0)
        return buffer

    def _draw(
        self,
        c: canvas.Canvas,
        schedule: WeeklyScheduleState,
        title: str,
        include_summary: bool,
    ) -> None:
        locations = list(self.rules.locations)
        locations.extend(loc for loc in schedule.locations() if loc not in locations)
        for location in locations:
            self._draw_location_page(c, schedule, location, title)
        if include_summary:
            self._draw_summary_page(c, schedule, title)

    def _draw_location_page(
        self,
        c: canvas.Canvas,
        schedule: WeeklyScheduleState,
        location: str,
        title: str,
    ) -> None:
        """Draw one location's week as a grid of day columns."""
        c.setFont("Helvetica-Bold", 16)
        c.drawString(self.margin, self.page_height - self.margin - 20, f"{title} - {location}")

        classes = [a for a in schedule if a.location == location]
        c.setFont("Helvetica", 10)
        c.drawString(
            self.margin,
            self.page_height - self.margin - 35,
            f"Classes: {len(classes)}   Studios: {self.rules.capacity(location)}   "
            f"Hours: {sum(a.duration for a in classes):g}",
        )

        grid_top = self.page_height - self.margin - 55
        grid_bottom = self.margin + 20
        column_width = (self.page_width - 2 * self.margin) / len(WEEKDAYS)
        card_height = 34

        for col, day in enumerate(WEEKDAYS):
            x = self.margin + col * column_width

            # Column header
            c.setFillColorRGB(0.2, 0.2, 0.2)
            c.rect(x, grid_top - 18, column_width - 4, 18, fill=1, stroke=0)
            c.setFillColorRGB(1, 1, 1)
            c.setFont("Helvetica-Bold", 9)
            c.drawCentredString(x + (column_width - 4) / 2, grid_top - 13, day)

            y = grid_top - 22
            day_classes = sorted(schedule.at(location, day), key=lambda a: a.start_minutes)
            for assignment in day_classes:
                if y - card_height < grid_bottom:
                    c.setFillColorRGB(0, 0, 0)
                    c.setFont("Helvetica-Oblique", 7)
                    c.drawString(x + 2, y - 8, "(more classes not shown)")
                    break
                self._draw_card(c, assignment, x, y - card_height, column_width - 4, card_height - 3)
                y -= card_height

        self._draw_legend(c, self.margin, self.margin)
        c.showPage()

    def _draw_card(
        self,
        c: canvas.Canvas,
        assignment: ScheduledClassAssignment,
        x: float,
        y: float,
        width: float,
        height: float,
    ) -> None:
        c.setFillColorRGB(*_card_color(assignment))
        c.setStrokeColorRGB(0.3, 0.3, 0.3)
        c.setLineWidth(0.5)
        c.rect(x, y, width, height, fill=1, stroke=1)

        end = minutes_to_time(assignment.end_minutes)
        c.setFillColorRGB(0, 0, 0)
        c.setFont("Helvetica-Bold", 7)
        c.drawString(x + 3, y + height - 9, f"{assignment.start_time}-{end}")
        c.setFont("Helvetica", 7)
        c.drawString(x + 3, y + height - 18, assignment.class_format[:22])
        c.drawString(x + 3, y + height - 27, assignment.instructor[:22])

    def _draw_legend(self, c: canvas.Canvas, x: float, y: float) -> None:
        """Draw legend for card colors."""
        c.setFont("Helvetica-Bold", 8)
        c.setFillColorRGB(0, 0, 0)
        c.drawString(x, y, "Legend:")

        items = [
            ("regular", "Regular"),
            ("top_performer", "Top performer"),
            ("priority", "Priority"),
            ("private", "Private"),
        ]

        c.setFont("Helvetica", 7)
        current_x = x + 45
        for key, label in items:
            c.setFillColorRGB(*COLORS[key])
            c.rect(current_x, y - 2, 12, 10, fill=1, stroke=1)
            c.setFillColorRGB(0, 0, 0)
            c.drawString(current_x + 15, y, label)
            current_x += 85

    def _draw_summary_page(
        self, c: canvas.Canvas, schedule: WeeklyScheduleState, title: str
    ) -> None:
        """Draw instructor hours as horizontal bars against their caps."""
        c.setFont("Helvetica-Bold", 16)
        c.setFillColorRGB(0, 0, 0)
        c.drawString(
            self.margin, self.page_height - self.margin - 20, f"{title} - Instructor Hours"
        )

        ledger = schedule.ledger()
        instructors = sorted(schedule.instructors(), key=lambda name: (-ledger.hours(name), name))

        c.setFont("Helvetica", 10)
        c.drawString(
            self.margin,
            self.page_height - self.margin - 35,
            f"Instructors: {len(instructors)}   Total hours: {schedule.total_hours:g}",
        )

        bar_left = self.margin + 140
        bar_max_width = self.page_width - bar_left - self.margin - 60
        max_cap = self.rules.standard_weekly_cap
        row_height = 14
        y = self.page_height - self.margin - 60

        for name in instructors:
            if y < self.margin + row_height:
                c.showPage()
                y = self.page_height - self.margin - 20
            hours = ledger.hours(name)
            cap = self.rules.weekly_cap(name)
            scale = max(max_cap, hours)

            c.setFillColorRGB(0, 0, 0)
            c.setFont("Helvetica", 8)
            c.drawString(self.margin, y, name[:28])

            color = COLORS["over_cap"] if hours > cap else COLORS["bar"]
            c.setFillColorRGB(*color)
            c.rect(bar_left, y - 2, bar_max_width * hours / scale, 9, fill=1, stroke=0)

            # Cap marker
            cap_x = bar_left + bar_max_width * cap / scale
            c.setStrokeColorRGB(0.2, 0.2, 0.2)
            c.line(cap_x, y - 3, cap_x, y + 8)

            c.setFillColorRGB(0, 0, 0)
            c.drawString(bar_left + bar_max_width + 8, y, f"{hours:g}h / {cap:g}h")
            y -= row_height

        c.showPage()
