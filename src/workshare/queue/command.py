"""Serialization of captured argv for ``job_start.cmd``."""

from __future__ import annotations

import base64
import json
from collections.abc import Sequence


def encode_command(args: Sequence[bytes]) -> bytes:
    """Encode argv as a JSON array of base64 strings."""

    encoded = [base64.b64encode(bytes(arg)).decode("ascii") for arg in args]
    return json.dumps(encoded, separators=(",", ":")).encode("utf-8")


def decode_command(blob: bytes | None) -> tuple[bytes, ...]:
    if not blob:
        return ()
    parsed = json.loads(blob.decode("utf-8"))
    if not isinstance(parsed, list):
        raise ValueError(f"Stored command must be a JSON array, got {type(parsed).__name__}")
    return tuple(base64.b64decode(item, validate=True) for item in parsed)


def format_command(args: Sequence[bytes]) -> str:
    """Human-readable argv: each element quoted, non-UTF-8 shown as <binary>."""

    parts: list[str] = []
    for arg in args:
        try:
            parts.append(json.dumps(arg.decode("utf-8"), ensure_ascii=False))
        except UnicodeDecodeError:
            parts.append("<binary>")
    return " ".join(parts)
