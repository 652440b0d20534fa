"""
RPC package

- frames: wire format
- catalog: fixed tool table and argument validation
- server / client: the two ends of the stdio stream
"""

from rxbridge.rpc.catalog import ToolCatalog, ToolSpec, build_catalog
from rxbridge.rpc.client import RPCClient
from rxbridge.rpc.server import RPCServer, ServerState

__all__ = [
    "ToolCatalog",
    "ToolSpec",
    "build_catalog",
    "RPCClient",
    "RPCServer",
    "ServerState",
]
