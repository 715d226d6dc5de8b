"""
Core functionality for the Timetable Optimization Engine.

This package contains application settings and observability setup shared
by the engine and its entry points.
"""

from src.core.config import settings

__all__ = [
    "settings",
]
