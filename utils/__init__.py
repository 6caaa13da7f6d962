"""
Utils package - Shared utility functions.
"""

from utils.logger import setup_logging

__all__ = ['setup_logging']
