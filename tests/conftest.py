import asyncio
import threading
import time

import pytest
import requests
from werkzeug.serving import make_server

from rpc_gateway.config import GatewayConfig
from rpc_gateway.gateway import make_rpc_app

ALLOWED_ORIGIN = "http://localhost:9000"


def pytest_addoption(parser):
    parser.addoption(
        "--server-url",
        action="store",
        default=None,
        help="Use an already running gateway for client tests, e.g. http://127.0.0.1:3000",
    )


async def _async_operation() -> str:
    await asyncio.sleep(0.01)
    return "completed"


def _throw_error():
    raise RuntimeError("Intentional error")


def _add(a, b):
    return a + b


def _greet(name):
    return f"Hello, {name}!"


@pytest.fixture
def test_api():
    return {
        "add": _add,
        "greet": _greet,
        "asyncOperation": _async_operation,
        "throwError": _throw_error,
    }


@pytest.fixture
def make_app():
    """Factory: build a gateway app for an api mapping and config overrides."""
    def _make(api, **config):
        config.setdefault("allowed_origins", [ALLOWED_ORIGIN])
        return make_rpc_app(api, GatewayConfig(**config))
    return _make


@pytest.fixture
def http(make_app, test_api):
    return make_app(test_api).test_client()


def _wait_until_ready(url: str, timeout_s: float = 10.0) -> None:
    deadline = time.time() + timeout_s
    last_err = None

    while time.time() < deadline:
        try:
            r = requests.get(url + "/rpc/methods", timeout=0.5)
            if r.status_code == 200:
                return
        except requests.RequestException as e:
            last_err = e

        time.sleep(0.05)

    raise TimeoutError(f"Server not ready at {url}. Last error: {last_err!r}")


@pytest.fixture
def live_server():
    """
    Factory: serve a Flask app on an ephemeral port in a background thread
    and return its base URL. Servers are shut down at teardown.
    """
    servers = []

    def _serve(app) -> str:
        server = make_server("127.0.0.1", 0, app, threaded=True)
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        servers.append((server, thread))
        url = f"http://127.0.0.1:{server.server_port}"
        _wait_until_ready(url)
        return url

    yield _serve

    for server, thread in servers:
        server.shutdown()
        thread.join(timeout=5)


@pytest.fixture
def server_url(pytestconfig, live_server, make_app, test_api) -> str:
    provided = pytestconfig.getoption("--server-url")
    if provided:
        url = provided.rstrip("/")
        _wait_until_ready(url)
        return url
    return live_server(make_app(test_api))
