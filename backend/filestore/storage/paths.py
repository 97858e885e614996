"""Path helpers shared by the catalog and every storage provider.

Two path forms exist:
- provider paths: relative, no leading slash ("docs/report_1700000000000.pdf")
- virtual catalog paths: absolute, "/" is the root ("/docs")
"""
import re
import time
from typing import Optional

_SEPARATORS = re.compile(r"/+")
_UNSAFE_CHARS = re.compile(r"[^a-z0-9.-]")
_UNDERSCORES = re.compile(r"_+")


def sanitize_path(path: str) -> str:
    """Strip leading separators and collapse repeated ones."""
    path = (path or "").replace("\\", "/")
    return _SEPARATORS.sub("/", path).lstrip("/")


def split_segments(path: str) -> list[str]:
    return [s for s in sanitize_path(path).split("/") if s]


def contains_traversal(path: str) -> bool:
    """True if any segment of the path is a parent reference."""
    return ".." in split_segments(path)


def normalize_virtual_path(path: Optional[str]) -> str:
    """Catalog form: leading slash, no trailing slash, empty means root."""
    segments = split_segments(path or "")
    return "/" + "/".join(segments)


def join_path(parent: str, name: str) -> str:
    """Join a virtual directory and an entry name."""
    return normalize_virtual_path(f"{parent}/{name}")


def is_within(path: str, prefix: str) -> bool:
    """True if virtual `path` equals `prefix` or lives underneath it."""
    path = normalize_virtual_path(path)
    prefix = normalize_virtual_path(prefix)
    if prefix == "/":
        return True
    return path == prefix or path.startswith(prefix + "/")


def generate_safe_name(original_name: str, timestamp: Optional[int] = None) -> str:
    """Build a collision-avoiding storage name from an upload's original name.

    The name is lowercased, every character outside [a-z0-9.-] becomes "_",
    and a millisecond timestamp is inserted before the extension:
    "My Photo.PNG" -> "my_photo_1700000000000.png".
    """
    if timestamp is None:
        timestamp = time.time_ns() // 1_000_000
    clean = _UNDERSCORES.sub("_", _UNSAFE_CHARS.sub("_", original_name.lower()))

    base, dot, ext = clean.rpartition(".")
    if not dot or not base:
        # No extension (or a dotfile like ".env")
        base, ext = clean, ""
    base = base.strip("_") or "file"
    extension = f".{ext}" if ext else ""
    return f"{base}_{timestamp}{extension}"
