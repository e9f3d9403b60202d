"""Core primitives for LAYLAA.

This module provides the foundational utilities used by the proof pipeline:
- Cryptographic hashing (SHA-256)
- Canonical JSON serialization (key order preserved or sorted, floats rejected)
- Decimal amount normalization
- JSON/YAML loading with consistent encoding

Design principles:
- Pure functions
- No global mutable state
- Explicit error handling
"""

from __future__ import annotations

import hashlib
import json
import pathlib
from decimal import Decimal, InvalidOperation
from typing import Any, Union

import yaml

# Package root, computed once at module load
PACKAGE_ROOT = pathlib.Path(__file__).resolve().parent

HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


def sha256_bytes(data: bytes) -> str:
    """Compute SHA-256 hash of bytes, returning lowercase hex string."""
    return hashlib.sha256(data).hexdigest()


def load_yaml(path: pathlib.Path) -> Any:
    """Load YAML file with UTF-8 encoding."""
    return yaml.safe_load(pathlib.Path(path).read_text(encoding="utf-8"))


def load_json(path: pathlib.Path) -> Any:
    """Load JSON file with UTF-8 encoding."""
    return json.loads(pathlib.Path(path).read_text(encoding="utf-8"))


def _reject_floats(o: Any, path: str = "") -> None:
    if isinstance(o, float):
        raise ValueError(f"Float not allowed in canonical JSON at {path}")
    if isinstance(o, dict):
        for k, v in o.items():
            _reject_floats(v, f"{path}.{k}")
    if isinstance(o, (list, tuple)):
        for i, v in enumerate(o):
            _reject_floats(v, f"{path}[{i}]")


def canonical_json_bytes(obj: Any, sort_keys: bool = True) -> bytes:
    """Serialize object to canonical JSON bytes.

    Properties:
    - Keys sorted lexicographically, or kept in insertion order when
      ``sort_keys`` is False (used for field-order-fixed commitments)
    - No whitespace
    - UTF-8 encoded
    - Floats rejected (use strings/ints for amounts)
    """
    _reject_floats(obj)
    return json.dumps(
        obj,
        sort_keys=sort_keys,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")


def write_canonical_json(path: pathlib.Path, obj: Any) -> str:
    """Write canonical JSON to file, returning the digest.

    Appends a trailing newline for POSIX compatibility.
    Returns the SHA-256 digest of the canonical bytes (without newline).
    """
    canonical = canonical_json_bytes(obj)
    pathlib.Path(path).write_bytes(canonical + b"\n")
    return sha256_bytes(canonical)


def to_decimal(value: Union[str, int, Decimal]) -> Decimal:
    """Convert a ledger amount to Decimal. Floats are refused."""
    if isinstance(value, float):
        raise ValueError(f"Float amounts are not accepted: {value}")
    if isinstance(value, bool):
        raise ValueError(f"Boolean is not an amount: {value}")
    try:
        result = Decimal(str(value)) if not isinstance(value, Decimal) else value
    except InvalidOperation:
        raise ValueError(f"Not a decimal amount: {value!r}") from None
    if not result.is_finite():
        raise ValueError(f"Amount must be finite: {value!r}")
    return result


def amount_str(value: Decimal) -> str:
    """Render an amount without exponent or trailing zeros ("100", "12.5")."""
    return format(value.normalize(), "f")


def is_hex(value: str) -> bool:
    """True if ``value`` is a non-empty string of hex digits."""
    return bool(value) and all(c in HEX_DIGITS for c in value)


def str_to_hex(text: str) -> str:
    """Upper-case hex encoding of UTF-8 text, as used in ledger memo fields."""
    return text.encode("utf-8").hex().upper()


def hex_to_str(value: str) -> str:
    """Inverse of :func:`str_to_hex`."""
    return bytes.fromhex(value).decode("utf-8")
