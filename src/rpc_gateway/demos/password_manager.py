"""
Password manager demo: salted PBKDF2 password hashes stored in SQLite.

Run with: rpc-gateway password-manager [--data-dir DIR]
"""
from __future__ import annotations

import base64
import hashlib
import hmac
import os
import re
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from flask import Flask

from rpc_gateway.config import GatewayConfig, data_dir_from_env
from rpc_gateway.gateway import make_rpc_app

STATIC_DIR = Path(__file__).resolve().parent / "static"
DEFAULT_DATA_DIR = "data/password-manager"
DB_FILE = "passwords.db"

CONFIG = GatewayConfig(
    port=3014,
    static_file=str(STATIC_DIR / "client.html"),
    source_file=__file__,
)

HASH_SCHEME = "pbkdf2_sha256"
HASH_ITERATIONS = 100_000
# stored hashes above this cost are rejected instead of computed
MAX_HASH_ITERATIONS = 10 * HASH_ITERATIONS
SALT_BYTES = 16
DIGEST_ALGORITHMS = ("sha256", "sha512", "sha1", "md5")
CRYPTO_ALGORITHMS = ("sha256", "sha512")

SCHEMA = """
CREATE TABLE IF NOT EXISTS accounts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    service TEXT NOT NULL UNIQUE,
    username TEXT NOT NULL,
    password_hash TEXT NOT NULL,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
)
"""


class PasswordManagerError(Exception):
    pass


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def make_password_hash(password: str, iterations: int = HASH_ITERATIONS, salt: Optional[bytes] = None) -> str:
    """Encode as `pbkdf2_sha256$<iterations>$<salt>$<digest>`."""
    salt = salt if salt is not None else os.urandom(SALT_BYTES)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations, dklen=32)
    return f"{HASH_SCHEME}${iterations}${_b64(salt)}${_b64(digest)}"


def check_password_hash(password: str, encoded: str) -> bool:
    try:
        scheme, iterations, salt, digest = encoded.split("$")
        if scheme != HASH_SCHEME or int(iterations) > MAX_HASH_ITERATIONS:
            return False
        expected = base64.b64decode(digest)
        actual = hashlib.pbkdf2_hmac(
            "sha256", password.encode("utf-8"), base64.b64decode(salt), int(iterations), dklen=len(expected)
        )
    except ValueError:
        # malformed hash string
        return False
    return hmac.compare_digest(actual, expected)


def _digest(text: str, algorithm: str, allowed) -> str:
    if algorithm not in allowed:
        raise PasswordManagerError(f"Unsupported algorithm '{algorithm}'. Allowed: {', '.join(allowed)}")
    return hashlib.new(algorithm, text.encode("utf-8")).hexdigest()


class PasswordManager:

    def __init__(self, db_path: str | Path, iterations: int = HASH_ITERATIONS):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.iterations = iterations
        with self._connect() as conn:
            conn.execute(SCHEMA)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        # one connection per call, requests may run on different threads
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def hash_password(self, password: str) -> str:
        """Hash a password with a random salt"""
        return make_password_hash(password, self.iterations)

    def verify_password(self, password: str, password_hash: str) -> bool:
        """Verify a password against a hash"""
        return check_password_hash(password, password_hash)

    def add_account(self, service: str, username: str, password: str) -> str:
        """Add a new account with hashed password"""
        password_hash = make_password_hash(password, self.iterations)
        try:
            with self._connect() as conn:
                conn.execute(
                    "INSERT INTO accounts (service, username, password_hash) VALUES (?, ?, ?)",
                    (service, username, password_hash),
                )
        except sqlite3.IntegrityError as e:
            raise PasswordManagerError(f"Account for {service} already exists") from e
        return f"Account added for {service}"

    def get_all_accounts(self) -> List[Dict[str, object]]:
        """Get all stored accounts (without passwords)"""
        with self._connect() as conn:
            rows = conn.execute("SELECT id, service, username, created_at FROM accounts ORDER BY service").fetchall()
        return [dict(row) for row in rows]

    def check_password(self, service: str, password: str) -> Dict[str, object]:
        """Verify a password for a service"""
        with self._connect() as conn:
            row = conn.execute("SELECT username, password_hash FROM accounts WHERE service = ?", (service,)).fetchone()
        if row is None:
            raise PasswordManagerError(f"No account found for {service}")
        match = check_password_hash(password, row["password_hash"])
        result: Dict[str, object] = {"match": match}
        if match:
            result["username"] = row["username"]
        return result

    def delete_account(self, service: str) -> str:
        """Delete an account"""
        with self._connect() as conn:
            deleted = conn.execute("DELETE FROM accounts WHERE service = ?", (service,)).rowcount
        if deleted == 0:
            raise PasswordManagerError(f"No account found for {service}")
        return f"Account deleted for {service}"

    def generate_hash(self, text: str, algorithm: str) -> str:
        """Hex digest of text with sha256, sha512, sha1 or md5"""
        return _digest(text, algorithm, DIGEST_ALGORITHMS)

    def generate_crypto_hash(self, text: str, algorithm: str) -> str:
        """Hex digest of text with a SHA-2 algorithm"""
        return _digest(text, algorithm, CRYPTO_ALGORITHMS)

    def check_password_strength(self, password: str) -> Dict[str, object]:
        """Score a password and suggest improvements"""
        return password_strength(password)


def password_strength(password: str) -> Dict[str, object]:
    score = 0
    suggestions: List[str] = []

    if len(password) >= 8:
        score += 1
    else:
        suggestions.append("Use at least 8 characters")

    if len(password) >= 12:
        score += 1

    if re.search(r"[a-z]", password) and re.search(r"[A-Z]", password):
        score += 1
    else:
        suggestions.append("Mix uppercase and lowercase letters")

    if re.search(r"[0-9]", password):
        score += 1
    else:
        suggestions.append("Add numbers")

    if re.search(r"[^a-zA-Z0-9]", password):
        score += 1
    else:
        suggestions.append("Add special characters")

    if score <= 1:
        strength = "Weak"
    elif score <= 3:
        strength = "Medium"
    else:
        strength = "Strong"
    return {"score": score, "strength": strength, "suggestions": suggestions}


def create_app(config: Optional[GatewayConfig] = None, db_path: Optional[str | Path] = None) -> Flask:
    manager = PasswordManager(db_path or Path(data_dir_from_env(DEFAULT_DATA_DIR)) / DB_FILE)
    return make_rpc_app(manager, config or GatewayConfig.from_env(CONFIG))
