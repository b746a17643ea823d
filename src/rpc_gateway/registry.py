# rpc_gateway/registry.py
from __future__ import annotations
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Iterator, List, Mapping, Optional
import inspect
import logging

logger = logging.getLogger("rpc_gateway.registry")


class RpcError(Exception):
    """
    Protocol-level failure of a single request. Rendered by the gateway either
    as a JSON `{"error": ...}` body or, for malformed requests, as plain text.
    """
    plain_text = False

    def __init__(self, code: int, message: str, http_status: int = 400):
        super().__init__(message)
        self.code = code
        self.http_status = http_status
        self.message = message

    def to_error_obj(self):
        return {"error": self.message}


class InvalidRequest(RpcError):
    plain_text = True

    def __init__(self, message: str = "Bad request"):
        super().__init__(-32600, message, http_status=400)


class ParseError(RpcError):
    plain_text = True

    def __init__(self, message: str = "Invalid JSON"):
        super().__init__(-32700, message, http_status=400)


class MethodNotFound(RpcError):
    def __init__(self, method: str):
        super().__init__(-32601, "unknown method", http_status=404)
        self.method = method


class InvalidArguments(RpcError):
    def __init__(self, method: str, detail: str):
        super().__init__(-32602, f"invalid arguments: {detail}", http_status=400)
        self.method = method


@dataclass(frozen=True)
class MethodSpec:
    """Uniform adapter around one registered handler."""
    name: str
    fn: Any

    @property
    def is_callable(self) -> bool:
        return callable(self.fn)

    def signature(self) -> Optional[inspect.Signature]:
        if not self.is_callable:
            return None
        try:
            return inspect.signature(self.fn)
        except (TypeError, ValueError):
            # some builtins carry no introspectable signature
            return None

    def check_arguments(self, args: List[Any]) -> None:
        """Raise InvalidArguments when `args` cannot be bound positionally."""
        sig = self.signature()
        if sig is None:
            return
        try:
            sig.bind(*args)
        except TypeError as e:
            raise InvalidArguments(self.name, str(e))

    async def invoke(self, args: List[Any]) -> Any:
        logger.debug("invoking %s with %d argument(s)", self.name, len(args))
        result = self.fn(*args)
        if inspect.isawaitable(result):
            result = await result
        return result


def _public_members(api: object) -> Iterator[tuple[str, Any]]:
    # for a module, only routines it defines itself, not the ones it imports
    module_name = api.__name__ if inspect.ismodule(api) else None
    for name, member in inspect.getmembers(api, predicate=inspect.isroutine):
        if name.startswith("_"):
            continue
        if module_name is not None and getattr(member, "__module__", None) != module_name:
            continue
        yield name, member


class RpcRegistry:
    """
    Immutable mapping from method name to MethodSpec.

    Built from either a mapping `{name: callable}` or an object (instance,
    module or namespace) whose public routines become the exposed methods.
    """

    def __init__(self, api: Mapping[str, Any] | object):
        if isinstance(api, Mapping):
            items = list(api.items())
        else:
            items = list(_public_members(api))
        specs = {}
        for name, fn in items:
            if not isinstance(name, str):
                raise TypeError(f"method names must be strings, got {type(name).__name__}")
            specs[name] = MethodSpec(name=name, fn=fn)
        self.registry: Mapping[str, MethodSpec] = MappingProxyType(specs)

    def __contains__(self, name: object) -> bool:
        return name in self.registry

    def __iter__(self) -> Iterator[MethodSpec]:
        return iter(self.registry.values())

    def __len__(self) -> int:
        return len(self.registry)

    def names(self) -> List[str]:
        return list(self.registry)

    def get(self, name: str) -> Optional[MethodSpec]:
        return self.registry.get(name)

    def lookup(self, name: str) -> MethodSpec:
        spec = self.registry.get(name)
        if spec is None:
            raise MethodNotFound(name)
        return spec

