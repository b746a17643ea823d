"""
Visitor counter demo: redis-backed counters. Every page load goes through the
gateway connect hook and bumps the `page_views` counter.

Run with: rpc-gateway visitor-counter [--redis-url URL]
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional

import redis
from flask import Flask

from rpc_gateway.config import GatewayConfig, redis_url_from_env
from rpc_gateway.gateway import make_rpc_app
from rpc_gateway.redis_keys import DEFAULT_NAMESPACE, Counter, counter_key, counter_name, ping_key

logger = logging.getLogger("rpc_gateway.demos.visitor_counter")

STATIC_DIR = Path(__file__).resolve().parent / "static"

CONFIG = GatewayConfig(
    port=3019,
    static_file=str(STATIC_DIR / "client.html"),
    source_file=__file__,
)


class VisitorCounter:

    def __init__(self, redis_client: redis.Redis, namespace: str = DEFAULT_NAMESPACE):
        self.redis_client = redis_client
        self.namespace = namespace

    def _value(self, raw) -> int:
        return int(raw) if raw is not None else 0

    def record_visit(self) -> int:
        # connect hook, not part of the exposed API
        value = self.redis_client.incr(counter_key(self.namespace, Counter.PAGE_VIEWS))
        logger.info("page view #%s", value)
        return value

    def get_counters(self) -> Dict[str, int]:
        """Get all application counters"""
        counters = {name.value: 0 for name in Counter}
        for key in self.redis_client.scan_iter(counter_key(self.namespace, "*")):
            key = key.decode() if isinstance(key, bytes) else key
            counters[counter_name(self.namespace, key)] = self._value(self.redis_client.get(key))
        return counters

    def increment_counter(self, name: str, amount: int = 1) -> Dict[str, object]:
        """Increment a counter"""
        value = self.redis_client.incrby(counter_key(self.namespace, name), amount)
        return {"success": True, "name": name, "value": value}

    def decrement_counter(self, name: str, amount: int = 1) -> Dict[str, object]:
        """Decrement a counter"""
        value = self.redis_client.decrby(counter_key(self.namespace, name), amount)
        return {"success": True, "name": name, "value": value}

    def reset_counter(self, name: str) -> Dict[str, object]:
        """Reset a counter to 0"""
        self.redis_client.delete(counter_key(self.namespace, name))
        return {"success": True, "name": name, "message": "Counter reset to 0"}

    def ping(self) -> Dict[str, object]:
        """Check the redis connection"""
        try:
            self.redis_client.set(ping_key(self.namespace), "pong", ex=1)
            response = self.redis_client.get(ping_key(self.namespace))
        except redis.RedisError as e:
            return {"success": False, "message": str(e) or "Connection failed"}
        if isinstance(response, bytes):
            response = response.decode()
        return {"success": True, "message": "Redis connection OK", "response": response}


def create_app(config: Optional[GatewayConfig] = None, redis_client: Optional[redis.Redis] = None) -> Flask:
    redis_client = redis_client or redis.Redis.from_url(redis_url_from_env(), decode_responses=True)
    counter = VisitorCounter(redis_client)
    api = {
        "get_counters": counter.get_counters,
        "increment_counter": counter.increment_counter,
        "decrement_counter": counter.decrement_counter,
        "reset_counter": counter.reset_counter,
        "ping": counter.ping,
    }
    config = (config or GatewayConfig.from_env(CONFIG)).replace(on_connect=counter.record_visit)
    return make_rpc_app(api, config)
