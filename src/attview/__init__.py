"""Attendance viewer: browse the attendance document store with role-gated access."""

__version__ = "0.1.0"
