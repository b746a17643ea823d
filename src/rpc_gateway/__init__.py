from .config import GatewayConfig
from .registry import (
    RpcError,
    InvalidRequest,
    ParseError,
    MethodNotFound,
    InvalidArguments,
    MethodSpec,
    RpcRegistry,
)
from .introspection import MethodInfo, ParamInfo, MethodCatalog
from .gateway import make_rpc_app, serve_app, run_rpc_server
from .client import RpcClient, ClientError

__all__ = [
    "GatewayConfig",
    "RpcError",
    "InvalidRequest",
    "ParseError",
    "MethodNotFound",
    "InvalidArguments",
    "MethodSpec",
    "RpcRegistry",
    "MethodInfo",
    "ParamInfo",
    "MethodCatalog",
    "make_rpc_app",
    "serve_app",
    "run_rpc_server",
    "RpcClient",
    "ClientError",
]
