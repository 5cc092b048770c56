"""
Utilities package for active-orm.

Exports shared helpers for logging and other cross-cutting concerns.
Keep this package lightweight and free of mapping logic.
"""

from active_orm.utils.logging import configure_logging, get_logger

__all__ = [
    "configure_logging",
    "get_logger",
]
