"""
Clinical ingestion package walking project collections and uploading
instrument CSV files to LORIS.

Modules expose structured interfaces for CLI-driven batch runs.
"""

__all__ = [
    "cli",
    "config",
    "loris",
    "models",
    "services",
    "workflow",
]
