# gunicorn_config.py
import os

from rpc_gateway.logs import load_logging_config

# ------------------------------------------------------------------------------
# Configuration
# ------------------------------------------------------------------------------

RPC_DEMO = os.environ.get("RPC_DEMO", "hello")

if os.environ.get("RPC_LOG_CONFIG"):
    logconfig_dict = load_logging_config(os.environ["RPC_LOG_CONFIG"])

# ------------------------------------------------------------------------------
# Gunicorn hooks
# ------------------------------------------------------------------------------

def on_starting(server):
    """Called just before the master process is initialized."""
    server.log.info("[gateway] Starting %s demo", RPC_DEMO)

def when_ready(server):
    """Called once the master is listening."""
    for address in server.address:
        host, port = address if isinstance(address, tuple) else (address, "")
        server.log.info("[gateway] %s demo ready, discovery: http://%s:%s/rpc/methods", RPC_DEMO, host, port)
