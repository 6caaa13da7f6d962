"""
Core package - Update monitoring pipeline.
"""

from core.cursor_store import CursorStore
from core.deduplicator import Deduplicator
from core.normalizer import UpdateNormalizer, normalize
from core.session_manager import SessionManager, SessionState, compute_backoff_delay
from core.settings import MonitorSettings, ConfigurationError, load_settings, validate_settings
from core.pipeline import MonitorPipeline

__all__ = [
    'CursorStore',
    'Deduplicator',
    'UpdateNormalizer',
    'normalize',
    'SessionManager',
    'SessionState',
    'compute_backoff_delay',
    'MonitorSettings',
    'ConfigurationError',
    'load_settings',
    'validate_settings',
    'MonitorPipeline'
]
