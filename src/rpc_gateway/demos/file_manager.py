"""
File manager demo: read and write text files inside a single data directory.

Run with: rpc-gateway file-manager [--data-dir DIR]
"""
from __future__ import annotations

import mimetypes
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from flask import Flask

from rpc_gateway.config import GatewayConfig, data_dir_from_env
from rpc_gateway.gateway import make_rpc_app

STATIC_DIR = Path(__file__).resolve().parent / "static"
DEFAULT_DATA_DIR = "data/file-manager"

CONFIG = GatewayConfig(
    port=3011,
    static_file=str(STATIC_DIR / "client.html"),
    source_file=__file__,
)

_UNSAFE_NAME_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


class FileManagerError(Exception):
    pass


def sanitize_filename(filename: str) -> str:
    safe_name = _UNSAFE_NAME_CHARS.sub("_", filename)
    if safe_name in ("", ".", ".."):
        raise FileManagerError(f"Invalid file name '{filename}'")
    return safe_name


def _modified(path: Path) -> str:
    return datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc).isoformat()


class FileManager:
    """
    Every exposed method works on a sanitised file name relative to
    `data_dir`; names never resolve outside of it.
    """

    def __init__(self, data_dir: str | Path):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, filename: str) -> tuple[str, Path]:
        safe_name = sanitize_filename(filename)
        return safe_name, self.data_dir / safe_name

    def list_files(self) -> List[Dict[str, object]]:
        """List all files in the data directory"""
        try:
            return [
                {"name": path.name, "size": path.stat().st_size, "modified": _modified(path)}
                for path in sorted(self.data_dir.iterdir())
                if path.is_file() and path.name != ".gitkeep"
            ]
        except OSError as e:
            raise FileManagerError(f"Failed to list files: {e}") from e

    def read_file(self, filename: str) -> str:
        """Read a text file"""
        safe_name, path = self._path(filename)
        if not path.is_file():
            raise FileManagerError(f"Failed to read file: File '{safe_name}' not found")
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise FileManagerError(f"Failed to read file: {e}") from e

    def write_file(self, filename: str, content: str) -> str:
        """Write content to a text file"""
        safe_name, path = self._path(filename)
        try:
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise FileManagerError(f"Failed to write file: {e}") from e
        return f"File '{safe_name}' written successfully ({len(content)} bytes)"

    def delete_file(self, filename: str) -> str:
        """Delete a file"""
        safe_name, path = self._path(filename)
        if not path.is_file():
            raise FileManagerError(f"Failed to delete file: File '{safe_name}' not found")
        try:
            path.unlink()
        except OSError as e:
            raise FileManagerError(f"Failed to delete file: {e}") from e
        return f"File '{safe_name}' deleted successfully"

    def get_file_stats(self, filename: str) -> Dict[str, object]:
        """Get file stats"""
        safe_name, path = self._path(filename)
        exists = path.is_file()
        mime_type, _ = mimetypes.guess_type(safe_name)
        return {
            "name": safe_name,
            "size": path.stat().st_size if exists else 0,
            "type": mime_type or "application/octet-stream",
            "modified": _modified(path) if exists else None,
            "exists": exists,
        }

    def append_file(self, filename: str, content: str) -> str:
        """Append content to a file"""
        safe_name, path = self._path(filename)
        try:
            with open(path, "a", encoding="utf-8") as f:
                f.write(content)
        except OSError as e:
            raise FileManagerError(f"Failed to append to file: {e}") from e
        return f"Content appended to '{safe_name}'"


def create_app(config: Optional[GatewayConfig] = None, data_dir: Optional[str | Path] = None) -> Flask:
    manager = FileManager(data_dir or data_dir_from_env(DEFAULT_DATA_DIR))
    return make_rpc_app(manager, config or GatewayConfig.from_env(CONFIG))
