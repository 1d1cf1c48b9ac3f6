"""Attendance-aware payroll calculation core."""

__version__ = "0.1.0"
