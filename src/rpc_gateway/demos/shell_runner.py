"""
Shell runner demo: run a small allow-list of commands through subprocess.

Run with: rpc-gateway shell-runner
"""
from __future__ import annotations

import re
import shlex
import subprocess
from pathlib import Path
from typing import Dict, List, Optional

from flask import Flask

from rpc_gateway.config import GatewayConfig
from rpc_gateway.gateway import make_rpc_app

STATIC_DIR = Path(__file__).resolve().parent / "static"

CONFIG = GatewayConfig(
    port=3010,
    static_file=str(STATIC_DIR / "client.html"),
    source_file=__file__,
)

SAFE_COMMANDS = ["ls", "pwd", "date", "whoami", "uname", "echo"]
COMMAND_TIMEOUT = 10

_UNSAFE_CHARS = re.compile(r"[;&|`$()]")


def _run(argv: List[str]) -> subprocess.CompletedProcess:
    return subprocess.run(argv, capture_output=True, text=True, timeout=COMMAND_TIMEOUT)


def run_command(command: str) -> Dict[str, object]:
    """Execute a safe shell command and return output"""
    argv = shlex.split(command.strip())
    cmd = argv[0] if argv else ""
    if cmd not in SAFE_COMMANDS:
        raise ValueError(f"Command '{cmd}' is not allowed. Allowed: {', '.join(SAFE_COMMANDS)}")

    try:
        proc = _run(argv)
    except (OSError, subprocess.SubprocessError) as e:
        return {"stdout": "", "stderr": str(e) or "Command execution failed", "exitCode": 1}
    return {"stdout": proc.stdout, "stderr": proc.stderr, "exitCode": proc.returncode}


def list_files() -> List[str]:
    """List files in current directory"""
    output = _run(["ls", "-la"]).stdout
    return [line for line in output.split("\n") if line.strip()]


def get_current_dir() -> str:
    """Get current working directory"""
    return _run(["pwd"]).stdout


def get_system_info() -> Dict[str, str]:
    """Get system information"""
    return {
        "os": _run(["uname", "-a"]).stdout.strip(),
        "user": _run(["whoami"]).stdout.strip(),
        "date": _run(["date"]).stdout.strip(),
    }


def echo(message: str) -> str:
    """Echo a message with shell metacharacters removed"""
    sanitized = _UNSAFE_CHARS.sub("", message)
    return _run(["echo", sanitized]).stdout


api = {
    "run_command": run_command,
    "list_files": list_files,
    "get_current_dir": get_current_dir,
    "get_system_info": get_system_info,
    "echo": echo,
}


def create_app(config: Optional[GatewayConfig] = None) -> Flask:
    return make_rpc_app(api, config or GatewayConfig.from_env(CONFIG))
