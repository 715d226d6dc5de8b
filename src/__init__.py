"""
Timetable Optimization Engine - Source Package

This package contains the application settings, observability setup and the
genetic algorithm that generates individual and collective class timetables.
"""

__version__ = "1.0.0"

# Package-level imports for convenience
from src.core.config import settings

__all__ = [
    "settings",
    "__version__",
]
