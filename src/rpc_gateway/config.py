from __future__ import annotations

import os
import dataclasses
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Tuple

DEFAULT_PORT = 3000
DEFAULT_HOST = "127.0.0.1"
DEFAULT_ALLOWED_ORIGINS: Tuple[str, ...] = ("http://localhost:3000", "http://127.0.0.1:3000")
DEFAULT_REDIS_URL = "redis://localhost:6379/0"

# Environment variables understood by GatewayConfig.from_env.
ENV_HOST = "RPC_HOST"
ENV_PORT = "RPC_PORT"
ENV_ALLOWED_ORIGINS = "RPC_ALLOWED_ORIGINS"
ENV_STATIC_FILE = "RPC_STATIC_FILE"
ENV_SOURCE_FILE = "RPC_SOURCE_FILE"
ENV_DATA_DIR = "RPC_DATA_DIR"
ENV_REDIS_URL = "REDIS_URL"


@dataclass(frozen=True)
class GatewayConfig:
    """
    Process-wide settings of an RPC gateway. Supplied once when the app is
    built and never mutated afterwards; use `replace` to derive variants.
    """
    port: int = DEFAULT_PORT
    host: str = DEFAULT_HOST
    allowed_origins: Tuple[str, ...] = DEFAULT_ALLOWED_ORIGINS
    static_file: Optional[str] = None
    source_file: Optional[str] = None
    on_connect: Optional[Callable[[], Any]] = None

    def __post_init__(self):
        # accept any iterable of origins but store an immutable tuple
        object.__setattr__(self, "allowed_origins", tuple(self.allowed_origins))

    def replace(self, **changes) -> GatewayConfig:
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_env(cls, base: Optional[GatewayConfig] = None, environ: Optional[Mapping[str, str]] = None) -> GatewayConfig:
        """Overlay the RPC_* environment variables on `base` (or on the defaults)."""
        environ = os.environ if environ is None else environ
        config = base if base is not None else cls()
        changes: dict[str, Any] = {}

        if environ.get(ENV_HOST):
            changes["host"] = environ[ENV_HOST]
        if environ.get(ENV_PORT):
            try:
                changes["port"] = int(environ[ENV_PORT])
            except ValueError:
                raise ValueError(f"{ENV_PORT} must be an integer, got {environ[ENV_PORT]!r}")
        if environ.get(ENV_ALLOWED_ORIGINS):
            changes["allowed_origins"] = parse_origins(environ[ENV_ALLOWED_ORIGINS])
        if environ.get(ENV_STATIC_FILE):
            changes["static_file"] = environ[ENV_STATIC_FILE]
        if environ.get(ENV_SOURCE_FILE):
            changes["source_file"] = environ[ENV_SOURCE_FILE]

        return config.replace(**changes) if changes else config


def parse_origins(value: str) -> Tuple[str, ...]:
    return tuple(origin.strip() for origin in value.split(",") if origin.strip())


def data_dir_from_env(default: str, environ: Optional[Mapping[str, str]] = None) -> str:
    environ = os.environ if environ is None else environ
    return environ.get(ENV_DATA_DIR) or default


def redis_url_from_env(environ: Optional[Mapping[str, str]] = None) -> str:
    environ = os.environ if environ is None else environ
    return environ.get(ENV_REDIS_URL) or DEFAULT_REDIS_URL
