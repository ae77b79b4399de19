"""
REHABCOACH Core Module
"""

from .config import Settings, settings

__all__ = ['Settings', 'settings']
