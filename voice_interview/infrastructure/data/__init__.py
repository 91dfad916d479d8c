"""
Data management infrastructure for interview session records.
"""

from .records import JsonSessionRecorder

__all__ = ['JsonSessionRecorder']
