"""
Models package - Data classes for the application.
"""

from models.raw_event import RawChangeEvent
from models.update import Update, SubresourceChange, BranchInfo
from models.cursor import Cursor

__all__ = ['RawChangeEvent', 'Update', 'SubresourceChange', 'BranchInfo', 'Cursor']
