"""
Data storage.
"""

from .database import Database, WriteResult

__all__ = ["Database", "WriteResult"]
