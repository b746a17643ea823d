"""
UUID and random value generator demo.

Run with: rpc-gateway uuid-random
"""
from __future__ import annotations

import random
import secrets
import string
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional

from flask import Flask

from rpc_gateway.config import GatewayConfig
from rpc_gateway.gateway import make_rpc_app

STATIC_DIR = Path(__file__).resolve().parent / "static"

CONFIG = GatewayConfig(
    port=3016,
    static_file=str(STATIC_DIR / "client.html"),
    source_file=__file__,
)

CHARSETS = {
    "alphanumeric": string.ascii_uppercase + string.ascii_lowercase + string.digits,
    "alpha": string.ascii_uppercase + string.ascii_lowercase,
    "numeric": string.digits,
    "hex": "0123456789abcdef",
}
PASSWORD_SYMBOLS = "!@#$%^&*()_+-=[]{}|;:,.<>?"

_system_random = secrets.SystemRandom()


def _check_range(value: int, low: int, high: int, label: str) -> None:
    if value < low or value > high:
        raise ValueError(f"{label} must be between {low} and {high}")


def uuid7() -> uuid.UUID:
    """
    Time-ordered UUID: 48-bit unix milliseconds, version 7, 74 random bits.
    """
    unix_ms = time.time_ns() // 1_000_000
    rand = secrets.randbits(74)
    value = (unix_ms & 0xFFFF_FFFF_FFFF) << 80
    value |= 0x7 << 76
    value |= (rand >> 62) << 64
    value |= 0b10 << 62
    value |= rand & ((1 << 62) - 1)
    return uuid.UUID(int=value)


def _hex_color() -> str:
    return f"#{random.randrange(0xFFFFFF):06x}"


def _parse_date(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def generate_uuid() -> str:
    """Generate a UUIDv7 (time-ordered UUID)"""
    return str(uuid7())


def generate_uuids(count: int) -> List[str]:
    """Generate multiple UUIDs"""
    _check_range(count, 1, 100, "Count")
    return [str(uuid7()) for _ in range(count)]


def random_int(min: int, max: int) -> int:
    """Generate a random integer between min and max (inclusive)"""
    if min > max:
        raise ValueError("Min must be less than or equal to max")
    return random.randint(min, max)


def random_ints(count: int, min: int, max: int) -> List[int]:
    """Generate a list of random integers"""
    _check_range(count, 1, 1000, "Count")
    if min > max:
        raise ValueError("Min must be less than or equal to max")
    return [random.randint(min, max) for _ in range(count)]


def random_string(length: int, charset: str = "alphanumeric") -> str:
    """Generate a random string from alphanumeric, alpha, numeric or hex"""
    _check_range(length, 1, 1000, "Length")
    if charset not in CHARSETS:
        raise ValueError(f"Unknown charset '{charset}'. Allowed: {', '.join(CHARSETS)}")
    chars = CHARSETS[charset]
    return "".join(random.choice(chars) for _ in range(length))


def random_pick(items: List[Any], count: int) -> List[Any]:
    """Pick random items from a list"""
    _check_range(count, 1, len(items), "Count")
    return random.sample(items, count)


def shuffle(items: List[Any]) -> List[Any]:
    """Shuffle a list"""
    return random.sample(items, len(items))


def random_color() -> str:
    """Generate random color hex code"""
    return _hex_color()


def random_colors(count: int) -> List[str]:
    """Generate random colors"""
    _check_range(count, 1, 100, "Count")
    return [_hex_color() for _ in range(count)]


def random_boolean() -> bool:
    """Generate random boolean"""
    return random.random() < 0.5


def random_float(min: float, max: float, decimals: int = 2) -> float:
    """Generate random float between min and max"""
    if min > max:
        raise ValueError("Min must be less than or equal to max")
    return round(random.uniform(min, max), decimals)


def random_date(start_date: str, end_date: str) -> str:
    """Generate random date between two ISO dates"""
    start = _parse_date(start_date)
    end = _parse_date(end_date)
    if start > end:
        raise ValueError("Start date must be before end date")
    picked = start + (end - start) * random.random()
    return picked.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def generate_password(length: int, include_symbols: bool = True) -> str:
    """Generate random password with at least one character of each class"""
    _check_range(length, 8, 128, "Length")
    pools = [string.ascii_lowercase, string.ascii_uppercase, string.digits]
    if include_symbols:
        pools.append(PASSWORD_SYMBOLS)
    chars = "".join(pools)

    password = [_system_random.choice(pool) for pool in pools]
    password += [_system_random.choice(chars) for _ in range(length - len(password))]
    _system_random.shuffle(password)
    return "".join(password)


api = {
    "generate_uuid": generate_uuid,
    "generate_uuids": generate_uuids,
    "random_int": random_int,
    "random_ints": random_ints,
    "random_string": random_string,
    "random_pick": random_pick,
    "shuffle": shuffle,
    "random_color": random_color,
    "random_colors": random_colors,
    "random_boolean": random_boolean,
    "random_float": random_float,
    "random_date": random_date,
    "generate_password": generate_password,
}


def create_app(config: Optional[GatewayConfig] = None) -> Flask:
    return make_rpc_app(api, config or GatewayConfig.from_env(CONFIG))
