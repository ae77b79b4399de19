"""
REHABCOACH Shared Module

Common utilities used across all services.
"""

from .utils import setup_logger, parse_log_level, get_now_iso

__all__ = [
    'setup_logger',
    'parse_log_level',
    'get_now_iso',
]
