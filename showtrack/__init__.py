"""Showtrack - A filesystem scanner for a self-hosted TV library."""

__version__ = "0.1.0"

from showtrack.database import Database
from showtrack.scanner import Scanner

__all__ = ["Database", "Scanner"]
