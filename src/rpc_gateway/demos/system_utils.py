"""
System utilities demo: runtime, process and host information.

Run with: rpc-gateway system-utils
"""
from __future__ import annotations

import asyncio
import html
import os
import platform
import pprint
import shutil
import sys
import time
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse
from urllib.request import url2pathname

import psutil
from flask import Flask

from rpc_gateway.config import GatewayConfig
from rpc_gateway.gateway import make_rpc_app
from rpc_gateway.demos.text_processor import string_width as _string_width

STATIC_DIR = Path(__file__).resolve().parent / "static"

CONFIG = GatewayConfig(
    port=3015,
    static_file=str(STATIC_DIR / "client.html"),
    source_file=__file__,
)

SAFE_ENV_KEYS = ["HOME", "USER", "SHELL", "PATH", "LANG", "TERM", "PWD", "VIRTUAL_ENV"]

_STARTED_NS = time.monotonic_ns()


def get_runtime_info() -> Dict[str, str]:
    """Get Python runtime information"""
    return {
        "version": platform.python_version(),
        "implementation": platform.python_implementation(),
        "platform": sys.platform,
        "arch": platform.machine(),
    }


def get_environment() -> Dict[str, str]:
    """Get environment variables (filtered for safety)"""
    return {key: os.environ[key] for key in SAFE_ENV_KEYS if os.environ.get(key)}


def which(command: str) -> Optional[str]:
    """Find the path to an executable"""
    return shutil.which(command)


def get_system_stats() -> Dict[str, Any]:
    """Get system uptime, load and memory"""
    memory = psutil.virtual_memory()
    return {
        "uptime": time.time() - psutil.boot_time(),
        "loadAverage": list(psutil.getloadavg()),
        "totalMemory": memory.total,
        "freeMemory": memory.available,
        "cpuCount": psutil.cpu_count(),
    }


def get_process_info() -> Dict[str, Any]:
    """Get information about the server process"""
    proc = psutil.Process()
    with proc.oneshot():
        return {
            "pid": proc.pid,
            "ppid": proc.ppid(),
            "argv": proc.cmdline(),
            "execPath": sys.executable,
            "cwd": proc.cwd(),
            "memoryUsage": proc.memory_info()._asdict(),
            "uptime": time.time() - proc.create_time(),
        }


async def sleep(milliseconds: float) -> str:
    """Sleep for a specified duration"""
    start = time.monotonic()
    await asyncio.sleep(milliseconds / 1000)
    return f"Slept for {round((time.monotonic() - start) * 1000)}ms"


def get_nanoseconds() -> int:
    """Nanoseconds elapsed since the server module was loaded"""
    return time.monotonic_ns() - _STARTED_NS


def inspect_value(value: Any) -> str:
    """Pretty-print a JSON value"""
    return pprint.pformat(value)


def deep_equals(a: Any, b: Any) -> bool:
    """Deep equality of two JSON values"""
    return a == b


def file_url_to_path(url: str) -> str:
    """Convert a file:// URL to a path"""
    parsed = urlparse(url)
    if parsed.scheme != "file":
        raise ValueError(f"Not a file URL: {url}")
    return url2pathname(parsed.path)


def path_to_file_url(path: str) -> str:
    """Convert a path to a file:// URL"""
    return Path(path).absolute().as_uri()


def escape_html(text: str) -> str:
    """Escape HTML special characters"""
    return html.escape(text, quote=True)


def string_width(text: str) -> int:
    """Get string display width"""
    return _string_width(text)


def get_disk_usage() -> Dict[str, Any]:
    """Get disk usage of the root filesystem"""
    usage = psutil.disk_usage("/")
    return {"total": usage.total, "used": usage.used, "free": usage.free, "percent": usage.percent}


api = {
    "get_runtime_info": get_runtime_info,
    "get_environment": get_environment,
    "which": which,
    "get_system_stats": get_system_stats,
    "get_process_info": get_process_info,
    "sleep": sleep,
    "get_nanoseconds": get_nanoseconds,
    "inspect_value": inspect_value,
    "deep_equals": deep_equals,
    "file_url_to_path": file_url_to_path,
    "path_to_file_url": path_to_file_url,
    "escape_html": escape_html,
    "string_width": string_width,
    "get_disk_usage": get_disk_usage,
}


def create_app(config: Optional[GatewayConfig] = None) -> Flask:
    return make_rpc_app(api, config or GatewayConfig.from_env(CONFIG))
