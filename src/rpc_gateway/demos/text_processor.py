"""
Text processing demo: escaping, counting, case conversion and friends.

Run with: rpc-gateway text-processor
"""
from __future__ import annotations

import base64
import html
import re
import unicodedata
from pathlib import Path
from typing import Dict, List, Optional

from flask import Flask

from rpc_gateway.config import GatewayConfig
from rpc_gateway.gateway import make_rpc_app

STATIC_DIR = Path(__file__).resolve().parent / "static"

CONFIG = GatewayConfig(
    port=3017,
    static_file=str(STATIC_DIR / "client.html"),
    source_file=__file__,
)

WORDS_PER_MINUTE = 200

_URL_RE = re.compile(r"(https?://[^\s]+)")
_EMAIL_RE = re.compile(r"[\w.-]+@[\w.-]+\.\w+")
_TAG_RE = re.compile(r"<[^>]*>")
_TITLE_RE = re.compile(r"\w\S*")
_CAMEL_RE = re.compile(r"^\w|[A-Z]|\b\w|\s+")


def string_width(text: str) -> int:
    """Terminal display width: wide and fullwidth characters count twice."""
    width = 0
    for ch in text:
        if unicodedata.combining(ch) or unicodedata.category(ch) in ("Cc", "Cf", "Mn", "Me"):
            continue
        width += 2 if unicodedata.east_asian_width(ch) in ("W", "F") else 1
    return width


def _words(text: str) -> List[str]:
    return text.split()


def escape_html(text: str) -> str:
    """Escape HTML special characters"""
    return html.escape(text, quote=True)


def get_string_width(text: str) -> int:
    """Get display width of a string"""
    return string_width(text)


def index_of_line(text: str, byte_offset: int) -> int:
    """Byte index of the first newline at or after byte_offset, -1 when none"""
    return text.encode("utf-8").find(b"\n", max(byte_offset, 0))


def count_words(text: str) -> int:
    """Count words in text"""
    return len(_words(text))


def analyze_text(text: str) -> Dict[str, int]:
    """Count characters, words, lines, sentences and paragraphs"""
    return {
        "characters": len(text),
        "charactersNoSpaces": len(re.sub(r"\s", "", text)),
        "words": len(_words(text)),
        "lines": len(text.split("\n")),
        "sentences": len([s for s in re.split(r"[.!?]+", text) if s.strip()]),
        "paragraphs": len([p for p in re.split(r"\n\s*\n", text) if p.strip()]),
        "displayWidth": string_width(text),
    }


def _camel(match: re.Match) -> str:
    part = match.group(0)
    if part.isspace():
        return ""
    return part.lower() if match.start() == 0 else part.upper()


def convert_case(text: str, case_type: str) -> str:
    """Convert case: upper, lower, title, sentence, camel, snake or kebab"""
    if case_type == "upper":
        return text.upper()
    if case_type == "lower":
        return text.lower()
    if case_type == "title":
        return _TITLE_RE.sub(lambda m: m.group(0)[0].upper() + m.group(0)[1:].lower(), text)
    if case_type == "sentence":
        return text[:1].upper() + text[1:].lower()
    if case_type == "camel":
        return _CAMEL_RE.sub(_camel, text)
    if case_type == "snake":
        return re.sub(r"\s+", "_", text.lower())
    if case_type == "kebab":
        return re.sub(r"\s+", "-", text.lower())
    return text


def normalize_whitespace(text: str) -> str:
    """Remove extra whitespace"""
    return re.sub(r"\s+", " ", text.strip())


def reverse_text(text: str) -> str:
    """Reverse text"""
    return text[::-1]


def extract_urls(text: str) -> List[str]:
    """Extract URLs from text"""
    return _URL_RE.findall(text)


def extract_emails(text: str) -> List[str]:
    """Extract emails from text"""
    return _EMAIL_RE.findall(text)


def find_replace(text: str, find: str, replace: str, case_sensitive: bool = True) -> Dict[str, object]:
    """Find and replace, returning the new text and the number of replacements"""
    pattern = re.compile(re.escape(find), 0 if case_sensitive else re.IGNORECASE)
    result, count = pattern.subn(lambda _: replace, text)
    return {"result": result, "count": count}


def remove_duplicate_lines(text: str) -> str:
    """Remove duplicate lines, keeping the first occurrence"""
    return "\n".join(dict.fromkeys(text.split("\n")))


def sort_lines(text: str, order: str = "asc") -> str:
    """Sort lines"""
    return "\n".join(sorted(text.split("\n"), reverse=order == "desc"))


def add_line_numbers(text: str) -> str:
    """Add line numbers"""
    return "\n".join(f"{i}. {line}" for i, line in enumerate(text.split("\n"), start=1))


def truncate(text: str, max_length: int, ellipsis: str = "...") -> str:
    """Truncate text"""
    if len(text) <= max_length:
        return text
    return text[:max(max_length - len(ellipsis), 0)] + ellipsis


def wrap_text(text: str, width: int) -> str:
    """Wrap text to specified width"""
    lines: List[str] = []
    current = ""
    for word in text.split(" "):
        if len(current) + len(word) + 1 <= width:
            current += (" " if current else "") + word
        else:
            if current:
                lines.append(current)
            current = word
    if current:
        lines.append(current)
    return "\n".join(lines)


def strip_html(html_text: str) -> str:
    """Remove HTML tags"""
    return _TAG_RE.sub("", html_text)


def base64_encode(text: str) -> str:
    """Encode text as base64"""
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def base64_decode(encoded: str) -> str:
    """Decode base64 to text"""
    return base64.b64decode(encoded).decode("utf-8", errors="replace")


def get_reading_time(text: str) -> Dict[str, int]:
    """Calculate reading time at 200 words per minute"""
    words = len(_words(text))
    return {
        "minutes": words // WORDS_PER_MINUTE,
        "seconds": int((words % WORDS_PER_MINUTE) / WORDS_PER_MINUTE * 60 + 0.5),
        "wordCount": words,
    }


api = {
    "escape_html": escape_html,
    "get_string_width": get_string_width,
    "index_of_line": index_of_line,
    "count_words": count_words,
    "analyze_text": analyze_text,
    "convert_case": convert_case,
    "normalize_whitespace": normalize_whitespace,
    "reverse_text": reverse_text,
    "extract_urls": extract_urls,
    "extract_emails": extract_emails,
    "find_replace": find_replace,
    "remove_duplicate_lines": remove_duplicate_lines,
    "sort_lines": sort_lines,
    "add_line_numbers": add_line_numbers,
    "truncate": truncate,
    "wrap_text": wrap_text,
    "strip_html": strip_html,
    "base64_encode": base64_encode,
    "base64_decode": base64_decode,
    "get_reading_time": get_reading_time,
}


def create_app(config: Optional[GatewayConfig] = None) -> Flask:
    return make_rpc_app(api, config or GatewayConfig.from_env(CONFIG))
