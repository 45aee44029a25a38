# aggsign/core/encoding.py
import json
from typing import Any

from aggsign.errors import CanonicalizationError


def to_hex(data: bytes) -> str:
    """Lowercase 0x-prefixed hex."""
    return "0x" + data.hex()


def from_hex(s: str, size: int | None = None) -> bytes:
    """
    Decode 0x-prefixed hex. If size is given the result must be exactly that many bytes.
    Raises CanonicalizationError on anything else.
    """
    if not isinstance(s, str):
        raise CanonicalizationError(f"Expected hex string, got {type(s).__name__}")
    if not s.startswith(("0x", "0X")):
        raise CanonicalizationError(f"Hex string must start with 0x: {s!r}")
    body = s[2:]
    if len(body) % 2:
        raise CanonicalizationError(f"Hex string has odd length: {s!r}")
    try:
        data = bytes.fromhex(body)
    except ValueError:
        raise CanonicalizationError(f"Invalid hex string: {s!r}") from None
    if size is not None and len(data) != size:
        raise CanonicalizationError(f"Expected {size} bytes, got {len(data)}: {s!r}")
    return data


def parse_address(value) -> bytes:
    """Accept a 0x-prefixed 20-byte address (any case) or raw 20 bytes."""
    if isinstance(value, (bytes, bytearray)):
        if len(value) != 20:
            raise CanonicalizationError(f"Address must be 20 bytes, got {len(value)}")
        return bytes(value)
    return from_hex(value, 20)


def load_json(text: str | bytes) -> Any:
    """
    Strict JSON parse for typed-data input: UTF-8 only, duplicate keys, floats
    and NaN/Infinity are rejected.
    """
    if isinstance(text, (bytes, bytearray)):
        try:
            text = bytes(text).decode("utf-8")
        except UnicodeDecodeError as e:
            raise CanonicalizationError(f"Input is not valid UTF-8: {e}") from e
    try:
        return json.loads(
            text,
            object_pairs_hook=_reject_duplicates,
            parse_float=_reject_float,
            parse_constant=_reject_float,
        )
    except CanonicalizationError:
        raise
    except (ValueError, RecursionError) as e:
        # JSONDecodeError, over-long integer literals, excessive nesting
        raise CanonicalizationError(f"Invalid JSON: {e}") from e


def _reject_duplicates(pairs):
    out = {}
    for k, v in pairs:
        if k in out:
            raise CanonicalizationError(f"Duplicate JSON key {k!r}")
        out[k] = v
    return out


def _reject_float(token: str):
    raise CanonicalizationError(f"Non-integer number {token!r} is not allowed")
