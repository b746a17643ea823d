from __future__ import annotations

import ast
import inspect
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .registry import MethodSpec, RpcRegistry

logger = logging.getLogger("rpc_gateway.discovery")


@dataclass
class ParamInfo:
    name: str
    type: Optional[str] = None

    def to_json(self) -> dict:
        data = {"name": self.name}
        if self.type is not None:
            data["type"] = self.type
        return data


@dataclass
class MethodInfo:
    """
    Discovery entry for one registered method.

    Only `name` and `type` are guaranteed; the rest is best-effort and left
    empty when the handler cannot be inspected.
    """
    name: str
    type: str = "function"
    params: List[ParamInfo] = field(default_factory=list)
    return_type: Optional[str] = None
    description: Optional[str] = None

    def to_json(self) -> dict:
        data: Dict[str, Any] = {
            "name": self.name,
            "type": self.type,
            "params": [p.to_json() for p in self.params],
        }
        if self.return_type is not None:
            data["returnType"] = self.return_type
        if self.description is not None:
            data["description"] = self.description
        return data


def first_doc_line(doc: Optional[str]) -> Optional[str]:
    if not doc:
        return None
    for line in inspect.cleandoc(doc).splitlines():
        if line.strip():
            return line.strip()
    return None


def format_annotation(annotation: Any) -> Optional[str]:
    if annotation is inspect.Parameter.empty:
        return None
    if isinstance(annotation, str):
        return annotation
    if isinstance(annotation, type):
        return annotation.__qualname__
    return repr(annotation).replace("typing.", "")


# -------------------------------------------------------------------------
# Static scan of a source file
# -------------------------------------------------------------------------

def _is_staticmethod(node: ast.FunctionDef | ast.AsyncFunctionDef) -> bool:
    return any(isinstance(d, ast.Name) and d.id == "staticmethod" for d in node.decorator_list)


def _arguments_to_params(arguments: ast.arguments, drop_first: bool = False) -> List[ParamInfo]:
    positional = list(arguments.posonlyargs) + list(arguments.args)
    if drop_first and positional:
        positional = positional[1:]
    params = [
        ParamInfo(a.arg, ast.unparse(a.annotation) if a.annotation is not None else None)
        for a in positional
    ]
    if arguments.vararg is not None:
        vararg = arguments.vararg
        params.append(
            ParamInfo("*" + vararg.arg, ast.unparse(vararg.annotation) if vararg.annotation is not None else None)
        )
    return params


class _SourceScanner(ast.NodeVisitor):

    def __init__(self):
        self.found: Dict[str, MethodInfo] = {}
        self._class_depth = 0

    def visit_ClassDef(self, node: ast.ClassDef):
        self._class_depth += 1
        self.generic_visit(node)
        self._class_depth -= 1

    def _visit_function(self, node: ast.FunctionDef | ast.AsyncFunctionDef):
        is_method = self._class_depth > 0 and not _is_staticmethod(node)
        self.found[node.name] = MethodInfo(
            name=node.name,
            params=_arguments_to_params(node.args, drop_first=is_method),
            return_type=ast.unparse(node.returns) if node.returns is not None else None,
            description=first_doc_line(ast.get_docstring(node)),
        )
        # nested definitions are not reachable by name, skip them
        return None

    visit_FunctionDef = _visit_function
    visit_AsyncFunctionDef = _visit_function

    def visit_Dict(self, node: ast.Dict):
        # {"name": lambda a, b: ...} entries
        for key, value in zip(node.keys, node.values):
            if isinstance(key, ast.Constant) and isinstance(key.value, str) and isinstance(value, ast.Lambda):
                self.found.setdefault(key.value, MethodInfo(name=key.value, params=_arguments_to_params(value.args)))
        self.generic_visit(node)


def scan_source(source_file: str | Path) -> Dict[str, MethodInfo]:
    """
    Parse `source_file` and collect signatures and one-line descriptions of the
    functions it defines, keyed by function name. Raises on unreadable or
    unparsable files.
    """
    source = Path(source_file).read_text(encoding="utf-8")
    tree = ast.parse(source, filename=str(source_file))
    scanner = _SourceScanner()
    scanner.visit(tree)
    return scanner.found


# -------------------------------------------------------------------------
# Live inspection
# -------------------------------------------------------------------------

def describe_callable(spec: MethodSpec) -> MethodInfo:
    if not spec.is_callable:
        return MethodInfo(name=spec.name, type="unknown")

    info = MethodInfo(name=spec.name, description=first_doc_line(inspect.getdoc(spec.fn)))
    sig = spec.signature()
    if sig is None:
        return info

    for param in sig.parameters.values():
        if param.kind == inspect.Parameter.KEYWORD_ONLY or param.kind == inspect.Parameter.VAR_KEYWORD:
            continue
        name = "*" + param.name if param.kind == inspect.Parameter.VAR_POSITIONAL else param.name
        info.params.append(ParamInfo(name, format_annotation(param.annotation)))
    info.return_type = format_annotation(sig.return_annotation)
    return info


class MethodCatalog:
    """
    Lazily built, process-lifetime cache of MethodInfo for a registry.

    The cache is advisory only; dispatch never consults it. It is built at
    most once, under a lock.
    """

    def __init__(self, registry: RpcRegistry, source_file: Optional[str] = None):
        self.registry = registry
        self.source_file = source_file
        self._cache: Optional[Dict[str, MethodInfo]] = None
        self._lock = threading.Lock()

    def _scan(self) -> Dict[str, MethodInfo]:
        if not self.source_file:
            return {}
        try:
            return scan_source(self.source_file)
        except Exception as e:
            # includes MemoryError/RecursionError from ast on deeply nested sources
            logger.error("Failed to extract types from %s: %r", self.source_file, e)
            return {}

    def _describe(self, spec: MethodSpec, scanned: Dict[str, MethodInfo]) -> MethodInfo:
        if spec.is_callable:
            scan_name = getattr(spec.fn, "__name__", spec.name)
            found = scanned.get(scan_name) or scanned.get(spec.name)
            if found is not None:
                return MethodInfo(
                    name=spec.name,
                    params=list(found.params),
                    return_type=found.return_type,
                    description=found.description,
                )
        try:
            return describe_callable(spec)
        except Exception:
            logger.exception("Failed to inspect method %s", spec.name)
            return MethodInfo(name=spec.name, type="function" if spec.is_callable else "unknown")

    def build(self) -> Dict[str, MethodInfo]:
        scanned = self._scan()
        return {spec.name: self._describe(spec, scanned) for spec in self.registry}

    def describe(self) -> List[MethodInfo]:
        if self._cache is None:
            with self._lock:
                if self._cache is None:
                    self._cache = self.build()
        return [self._cache[name] for name in self.registry.names()]

    def to_json(self) -> dict:
        return {"methods": [info.to_json() for info in self.describe()]}
