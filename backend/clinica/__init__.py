"""Clínica backend: schedules, stock ledger and client records."""

__version__ = "1.0.0"
