import logging
import os
import subprocess
from types import SimpleNamespace

import pytest

from rpc_gateway import cli, gunicorn_config
from rpc_gateway.config import GatewayConfig
from rpc_gateway.logs import LOG_CFG, load_logging_config


@pytest.fixture
def environ(monkeypatch):
    env = dict(os.environ)
    for key in ("RPC_HOST", "RPC_PORT", "RPC_ALLOWED_ORIGINS", "RPC_STATIC_FILE", "RPC_DATA_DIR", "REDIS_URL"):
        env.pop(key, None)
    monkeypatch.setattr(os, "environ", env)
    # keep the process wide logging tree untouched
    monkeypatch.setattr(cli, "configure_logging", lambda use_config=False: None)
    return env


def test_list_demos(capsys):
    assert cli.main(["list"]) == 0
    out = capsys.readouterr().out
    assert "hello" in out and "port 3000" in out
    assert "text-processor" in out and "port 3017" in out


def test_unknown_demo(environ):
    with pytest.raises(SystemExit, match="unknown demo"):
        cli.main(["nope"])


def test_env_overrides():
    args = cli.build_parser().parse_args(
        ["hello", "-H", "0.0.0.0", "-p", "8080", "--allowed-origin", "http://a", "--allowed-origin", "http://b"]
    )
    assert cli.env_overrides(args) == {
        "RPC_HOST": "0.0.0.0",
        "RPC_PORT": "8080",
        "RPC_ALLOWED_ORIGINS": "http://a,http://b",
    }


def test_gunicorn_command():
    cmd = cli.gunicorn_command("text-processor", GatewayConfig(host="0.0.0.0", port=3017), workers=4, timeout=30)
    assert cmd == [
        "gunicorn",
        "-w", "4",
        "-b", "0.0.0.0:3017",
        "-t", "30",
        "-c", "python:rpc_gateway.gunicorn_config",
        "rpc_gateway.demos.text_processor:create_app()",
    ]


def test_development_server(monkeypatch, environ):
    served = {}

    def fake_serve(app, config):
        served["names"] = app.extensions["rpc_gateway"]["registry"].names()
        served["config"] = config

    monkeypatch.setattr(cli, "serve_app", fake_serve)
    assert cli.main(["hello", "-p", "4000"]) == 0
    assert served["names"] == ["add", "greet", "random_colour"]
    assert served["config"].port == 4000
    assert environ["RPC_PORT"] == "4000"


def test_gunicorn_workers(monkeypatch, environ):
    calls = []
    monkeypatch.setattr(cli.subprocess, "run", lambda cmd, env, check: calls.append((cmd, env)))
    assert cli.main(["uuid-random", "-w", "2", "-l"]) == 0
    cmd, env = calls[0]
    assert cmd[:3] == ["gunicorn", "-w", "2"]
    assert "127.0.0.1:3016" in cmd
    assert env["RPC_DEMO"] == "uuid-random"
    assert env["RPC_LOG_CONFIG"] == str(LOG_CFG)


def test_gunicorn_failure_exit_code(monkeypatch, environ):
    def failing_run(cmd, env, check):
        raise subprocess.CalledProcessError(3, cmd)

    monkeypatch.setattr(cli.subprocess, "run", failing_run)
    assert cli.main(["hello", "-w", "1"]) == 3


# -------------------------------------------------------------------------
# logging and gunicorn hooks
# -------------------------------------------------------------------------

def test_packaged_logging_config():
    cfg = load_logging_config()
    assert cfg["version"] == 1
    assert {"rpc_gateway", "rpc_gateway.discovery", "gunicorn.error"} <= set(cfg["loggers"])


def test_gunicorn_hooks_log_discovery_url():
    messages = []
    log = SimpleNamespace(info=lambda msg, *args: messages.append(msg % args))
    server = SimpleNamespace(log=log, address=[("127.0.0.1", 3017), "unix:/tmp/rpc.sock"])

    gunicorn_config.on_starting(server)
    gunicorn_config.when_ready(server)

    assert messages[0].startswith("[gateway] Starting")
    assert "http://127.0.0.1:3017/rpc/methods" in messages[1]
    assert len(messages) == 3


def test_gateway_adopts_gunicorn_handlers(make_app):
    gunicorn_logger = logging.getLogger("gunicorn.error")
    handler = logging.NullHandler()
    gunicorn_logger.addHandler(handler)
    try:
        make_app({})
        assert handler in logging.getLogger("rpc_gateway").handlers
    finally:
        gunicorn_logger.removeHandler(handler)
        for name in ("rpc_gateway", "rpc_gateway.gateway", "werkzeug"):
            target = logging.getLogger(name)
            target.handlers = []
            target.propagate = True
            target.setLevel(logging.NOTSET)
