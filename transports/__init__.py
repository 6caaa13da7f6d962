"""
Transports package - Upstream change feed implementations.
"""

from transports.base_transport import BaseTransport, LogOnDetails, TransportError
from transports.steamcmd_transport import SteamCmdTransport

__all__ = [
    'BaseTransport',
    'LogOnDetails',
    'TransportError',
    'SteamCmdTransport'
]
