"""
Minimal gateway demo: a handful of plain functions exposed over HTTP.

Run with: rpc-gateway hello
"""
from __future__ import annotations

import asyncio
import random
from pathlib import Path
from typing import Optional

from flask import Flask

from rpc_gateway.config import GatewayConfig
from rpc_gateway.gateway import make_rpc_app

STATIC_DIR = Path(__file__).resolve().parent / "static"

CONFIG = GatewayConfig(
    port=3000,
    static_file=str(STATIC_DIR / "client.html"),
    source_file=__file__,
)

COLOURS = ["red", "green", "blue", "orange"]


def add(a: float, b: float) -> float:
    """add two numbers"""
    return a + b


def greet(name: str) -> str:
    """greet a person"""
    return f"Hello, {name}!"


async def random_colour() -> str:
    """return a random colour, just to show async works"""
    await asyncio.sleep(0.2)
    return random.choice(COLOURS)


api = {
    "add": add,
    "greet": greet,
    "random_colour": random_colour,
}


def create_app(config: Optional[GatewayConfig] = None) -> Flask:
    return make_rpc_app(api, config or GatewayConfig.from_env(CONFIG))
