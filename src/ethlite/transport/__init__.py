"""
RPC transport facade.
"""

from ethlite.transport.base import Transport
from ethlite.transport.http import JsonRpcTransport, map_rpc_error, redact_endpoint

__all__ = [
    "Transport",
    "JsonRpcTransport",
    "map_rpc_error",
    "redact_endpoint",
]
