"""mergegate: CI-driven merge gate for a change queue."""

__version__ = "0.1.0"
