# aggsign/core/canon.py
"""
Canonical byte form of typed messages.

Layout is fixed: {"types":…,"primaryType":…,"domain":…,"message":…} with no
whitespace. Struct members follow schema order, EIP712Domain leads the types
object and the other structs are sorted. Integers are bare decimals, byte-like
values lowercase 0x hex, strings escaped per RFC 8785.
"""
from typing import Any, Mapping, Union

try:
    import jcs
except ImportError:
    raise ImportError("Please install jcs: pip install jcs")

from aggsign.core.encoding import to_hex
from aggsign.core.schema import (
    DOMAIN_TYPE,
    ArrayType,
    AtomicKind,
    AtomicType,
    FieldType,
    Schema,
    StructType,
)
from aggsign.core.types import TypedMessage
from aggsign.errors import CanonicalizationError, SchemaError, SliceNotCanonical


def canonical_json(obj: Any) -> bytes:
    """
    Produce deterministic UTF-8 bytes according to RFC 8785 (JSON Canonicalization Scheme).
    Used for descriptors and stored metadata, not for typed messages.
    """
    return jcs.canonicalize(obj)


def canonicalize(message: TypedMessage) -> bytes:
    """Deterministic compact serialization of a typed message."""
    schema = message.schema
    return b"".join((
        b'{"types":', _render_types(schema),
        b',"primaryType":', _string(message.primary_type),
        b',"domain":', _render_struct(schema, DOMAIN_TYPE, message.domain.values()),
        b',"message":', _render_struct(schema, message.primary_type, message.message),
        b"}",
    ))


def parse_canonical(data: Union[bytes, bytearray]) -> TypedMessage:
    """
    Parse bytes that claim to be a canonical typed message.
    Raises SliceNotCanonical unless re-canonicalizing reproduces `data` exactly.
    """
    data = bytes(data)
    try:
        message = TypedMessage.from_json(data)
        canonical = canonicalize(message)
    except (CanonicalizationError, SchemaError) as e:
        raise SliceNotCanonical(f"Slice does not parse as typed data: {e}") from e
    except RecursionError as e:
        raise SliceNotCanonical("Slice nests too deeply") from e

    if canonical != data:
        raise SliceNotCanonical("Slice parses but is not in canonical form")
    return message


def _string(s: str) -> bytes:
    return jcs.canonicalize(s)


def _render_types(schema: Schema) -> bytes:
    parts = []
    for name, members in schema.to_dict().items():
        fields = b",".join(
            b'{"name":' + _string(m["name"]) + b',"type":' + _string(m["type"]) + b"}"
            for m in members
        )
        parts.append(_string(name) + b":[" + fields + b"]")
    return b"{" + b",".join(parts) + b"}"


def _render_struct(schema: Schema, name: str, values: Mapping[str, Any]) -> bytes:
    members = [
        _string(f.name) + b":" + _render_value(schema, f.kind, values[f.name])
        for f in schema.fields(name)
    ]
    return b"{" + b",".join(members) + b"}"


def _render_value(schema: Schema, kind: FieldType, value: Any) -> bytes:
    if isinstance(kind, StructType):
        return _render_struct(schema, kind.name, value)

    if isinstance(kind, ArrayType):
        return b"[" + b",".join(_render_value(schema, kind.element, v) for v in value) + b"]"

    if isinstance(kind, AtomicType):
        k = kind.kind
        if k in (AtomicKind.UINT, AtomicKind.INT):
            return str(value).encode("ascii")
        if k is AtomicKind.BOOL:
            return b"true" if value else b"false"
        if k in (AtomicKind.ADDRESS, AtomicKind.FIXED_BYTES, AtomicKind.BYTES):
            return _string(to_hex(value))
        if k is AtomicKind.STRING:
            return _string(value)

    raise SchemaError(f"Cannot render value of type {kind!r}")
