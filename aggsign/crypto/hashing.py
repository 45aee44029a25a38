# aggsign/crypto/hashing.py
import hashlib
from typing import Any, Mapping

from Crypto.Hash import keccak

from aggsign.core.schema import DOMAIN_TYPE, ArrayType, AtomicKind, AtomicType, FieldType, Schema, StructType
from aggsign.core.types import TypedMessage
from aggsign.errors import SchemaError

PERSONAL_PREFIX = b"\x19Ethereum Signed Message:\n"
TYPED_DATA_PREFIX = b"\x19\x01"


def keccak256(data: bytes) -> bytes:
    return keccak.new(digest_bits=256, data=data).digest()


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def personal_message_hash(message: bytes) -> bytes:
    """EIP-191 version 0x45: keccak256("\\x19Ethereum Signed Message:\\n" || len || message)."""
    return keccak256(PERSONAL_PREFIX + str(len(message)).encode("ascii") + message)


def to_checksum_address(address: bytes) -> str:
    """EIP-55 mixed-case rendering of a 20-byte address."""
    lower = address.hex()
    nibbles = keccak256(lower.encode("ascii")).hex()
    return "0x" + "".join(c.upper() if int(n, 16) >= 8 else c for c, n in zip(lower, nibbles))


# ── EIP-712 ─────────────────────────────────────────────────────────────────────

def type_hash(schema: Schema, name: str) -> bytes:
    return keccak256(schema.encode_type(name).encode("utf-8"))


def hash_struct(schema: Schema, name: str, values: Mapping[str, Any]) -> bytes:
    encoded = [type_hash(schema, name)]
    for f in schema.fields(name):
        encoded.append(_encode_value(schema, f.kind, values[f.name]))
    return keccak256(b"".join(encoded))


def _encode_value(schema: Schema, kind: FieldType, value: Any) -> bytes:
    """32-byte encodeData word for one member value."""
    if isinstance(kind, StructType):
        return hash_struct(schema, kind.name, value)

    if isinstance(kind, ArrayType):
        return keccak256(b"".join(_encode_value(schema, kind.element, v) for v in value))

    if isinstance(kind, AtomicType):
        k = kind.kind
        if k is AtomicKind.UINT:
            return value.to_bytes(32, "big")
        if k is AtomicKind.INT:
            return (value % (1 << 256)).to_bytes(32, "big")
        if k is AtomicKind.BOOL:
            return (1 if value else 0).to_bytes(32, "big")
        if k is AtomicKind.ADDRESS:
            return value.rjust(32, b"\x00")
        if k is AtomicKind.FIXED_BYTES:
            return value.ljust(32, b"\x00")
        if k is AtomicKind.BYTES:
            return keccak256(value)
        if k is AtomicKind.STRING:
            return keccak256(value.encode("utf-8"))

    raise SchemaError(f"Cannot encode value of type {kind!r}")


def domain_separator(message: TypedMessage) -> bytes:
    return hash_struct(message.schema, DOMAIN_TYPE, message.domain.values())


def message_digest(message: TypedMessage) -> bytes:
    """
    EIP-712 signing hash: keccak256(0x1901 || domainSeparator || hashStruct(message)).
    When the primary type is EIP712Domain itself the struct hash is omitted.
    """
    data = TYPED_DATA_PREFIX + domain_separator(message)
    if message.primary_type != DOMAIN_TYPE:
        data += hash_struct(message.schema, message.primary_type, message.message)
    return keccak256(data)
