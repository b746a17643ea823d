from __future__ import annotations

import argparse
import importlib
import logging
import os
import subprocess
from pathlib import Path
from types import ModuleType
from typing import Dict, List, Optional

from .config import (
    ENV_ALLOWED_ORIGINS,
    ENV_DATA_DIR,
    ENV_HOST,
    ENV_PORT,
    ENV_REDIS_URL,
    ENV_STATIC_FILE,
    GatewayConfig,
)
from .gateway import serve_app
from .logs import LOG_CFG, configure_logging

logger = logging.getLogger("rpc_gateway.cli")

DEMOS: Dict[str, str] = {
    "hello": "rpc_gateway.demos.hello",
    "shell-runner": "rpc_gateway.demos.shell_runner",
    "file-manager": "rpc_gateway.demos.file_manager",
    "password-manager": "rpc_gateway.demos.password_manager",
    "system-utils": "rpc_gateway.demos.system_utils",
    "text-processor": "rpc_gateway.demos.text_processor",
    "uuid-random": "rpc_gateway.demos.uuid_random",
    "visitor-counter": "rpc_gateway.demos.visitor_counter",
    "chat": "rpc_gateway.demos.chat",
}
# demos that run their own server instead of an RPC gateway
STANDALONE_DEMOS = {"chat"}
DEFAULT_CONFIG = "python:rpc_gateway.gunicorn_config"


def load_demo(name: str) -> ModuleType:
    try:
        return importlib.import_module(DEMOS[name])
    except KeyError:
        raise SystemExit(f"unknown demo {name!r}, expected one of: {', '.join(DEMOS)}")


def popen_detached(cmd, env, pidfile: str | None = None):
    with open(os.devnull, "rb") as devnull_in, open(os.devnull, "wb") as devnull_out:
        proc = subprocess.Popen(
            cmd,
            env=env,
            stdin=devnull_in,
            stdout=devnull_out,
            stderr=devnull_out,
            start_new_session=True
        )

    if pidfile:
        Path(pidfile).write_text(str(proc.pid))

    return proc


def env_overrides(args: argparse.Namespace) -> Dict[str, str]:
    """Translate CLI flags into the RPC_* environment understood by the demos."""
    env: Dict[str, str] = {}
    if args.host:
        env[ENV_HOST] = args.host
    if args.port is not None:
        env[ENV_PORT] = str(args.port)
    if args.allowed_origin:
        env[ENV_ALLOWED_ORIGINS] = ",".join(args.allowed_origin)
    if args.static_file:
        env[ENV_STATIC_FILE] = args.static_file
    if args.redis_url:
        env[ENV_REDIS_URL] = args.redis_url
    if args.data_dir:
        env[ENV_DATA_DIR] = args.data_dir
    return env


def gunicorn_command(demo: str, config: GatewayConfig, workers: int, timeout: int, app_config: str = DEFAULT_CONFIG) -> List[str]:
    return [
        "gunicorn",
        "-w", str(workers),
        "-b", f"{config.host}:{config.port}",
        "-t", str(timeout),
        "-c", app_config,
        f"{DEMOS[demo]}:create_app()",
    ]


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="rpc-gateway", description="Run one of the bundled RPC demo servers.")
    p.add_argument("demo", help="Demo to run, or 'list' to show the available demos.")
    p.add_argument("-H", "--host", default=None)
    p.add_argument("-p", "--port", type=int, default=None)
    p.add_argument("-w", "--workers", type=int, default=0, help="Number of gunicorn workers; 0 runs the Flask development server.")
    p.add_argument("-t", "--timeout", type=int, default=600)
    p.add_argument("-l", "--log", action="store_true", default=False, help="Use the packaged logging configuration.")
    p.add_argument("-d", "--detached", action="store_true", help="Run gunicorn in background (detach from terminal).")
    p.add_argument("--pidfile", default="rpc-gateway.pid", help="PID file (with --detached).")
    p.add_argument("--allowed-origin", action="append", default=[], help="CORS allowed origin, may be repeated.")
    p.add_argument("--static-file", default=None)
    p.add_argument("--redis-url", default=None)
    p.add_argument("--data-dir", default=None)
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.demo == "list":
        for name in DEMOS:
            module = load_demo(name)
            print(f"{name:<18} port {module.CONFIG.port}")
        return 0

    module = load_demo(args.demo)
    configure_logging(use_config=args.log)

    overrides = env_overrides(args)
    os.environ.update(overrides)
    config = GatewayConfig.from_env(module.CONFIG)

    if args.demo in STANDALONE_DEMOS:
        module.run(config)
        return 0

    if args.workers <= 0:
        serve_app(module.create_app(config), config)
        return 0

    env = os.environ.copy()
    env["RPC_DEMO"] = args.demo
    if args.log:
        env["RPC_LOG_CONFIG"] = str(LOG_CFG)
    cmd = gunicorn_command(args.demo, config, args.workers, args.timeout)

    logger.info("Starting gunicorn: %s", " ".join(cmd))
    if args.detached:
        popen_detached(cmd, env=env, pidfile=args.pidfile)
        return 0
    try:
        subprocess.run(cmd, env=env, check=True)
    except KeyboardInterrupt:
        logger.info("Stopping server...")
    except subprocess.CalledProcessError as e:
        logger.error("gunicorn exited with status %s", e.returncode)
        return e.returncode
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
