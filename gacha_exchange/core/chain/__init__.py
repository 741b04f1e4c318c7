"""Contract access: the ChainGateway interface and its JSON-RPC implementation."""

from .gateway import ChainGateway
from .jsonrpc import JsonRpcChainGateway, RpcError

__all__ = [
    "ChainGateway",
    "JsonRpcChainGateway",
    "RpcError",
]
