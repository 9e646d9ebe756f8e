"""Output generation for schedules (PDF)."""

from studioplanner.output.pdf_generator import SchedulePDFGenerator

__all__ = [
    "SchedulePDFGenerator",
]
