# aggsign/core/schema.py
"""
EIP-712 type schema as a closed tree of type variants.

Every declared field type resolves to exactly one of AtomicType, StructType or
ArrayType. The canonicalizer, the value coercion below and the digester all walk
this tree; nothing dispatches on raw type strings after resolution.
"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple, Union
from types import MappingProxyType

from aggsign.core.encoding import from_hex, parse_address
from aggsign.errors import SchemaError, CanonicalizationError

DOMAIN_TYPE = "EIP712Domain"

# Standard EIP712Domain members, in the order used when the schema omits the type.
DOMAIN_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("name", "string"),
    ("version", "string"),
    ("chainId", "uint256"),
    ("verifyingContract", "address"),
    ("salt", "bytes32"),
)

_IDENT = re.compile(r"[A-Za-z_$][A-Za-z0-9_$]*\Z")
_ARRAY_SUFFIX = re.compile(r"\[([0-9]*)\]\Z")
_INT_TYPE = re.compile(r"(u?int)([0-9]+)\Z")
_FIXED_BYTES = re.compile(r"bytes([0-9]+)\Z")


class AtomicKind(Enum):
    UINT = "uint"
    INT = "int"
    BOOL = "bool"
    ADDRESS = "address"
    FIXED_BYTES = "bytesN"
    BYTES = "bytes"
    STRING = "string"


@dataclass(frozen=True)
class AtomicType:
    kind: AtomicKind
    size: int = 0  # bits for (u)int, bytes for bytesN


@dataclass(frozen=True)
class StructType:
    name: str


@dataclass(frozen=True)
class ArrayType:
    element: "FieldType"
    length: Optional[int] = None  # None = dynamic


FieldType = Union[AtomicType, StructType, ArrayType]


@dataclass(frozen=True)
class Field:
    name: str
    type: str          # declared spelling, used verbatim in encodeType
    kind: FieldType


def parse_atomic(type_str: str) -> Optional[AtomicType]:
    if type_str == "bool":
        return AtomicType(AtomicKind.BOOL)
    if type_str == "address":
        return AtomicType(AtomicKind.ADDRESS)
    if type_str == "string":
        return AtomicType(AtomicKind.STRING)
    if type_str == "bytes":
        return AtomicType(AtomicKind.BYTES)

    m = _INT_TYPE.match(type_str)
    if m:
        bits = m.group(2)
        size = int(bits)
        if str(size) != bits or size < 8 or size > 256 or size % 8:
            raise SchemaError(f"Unsupported integer width: {type_str!r}")
        kind = AtomicKind.UINT if m.group(1) == "uint" else AtomicKind.INT
        return AtomicType(kind, size)

    m = _FIXED_BYTES.match(type_str)
    if m:
        size = int(m.group(1))
        if str(size) != m.group(1) or not 1 <= size <= 32:
            raise SchemaError(f"Unsupported fixed bytes width: {type_str!r}")
        return AtomicType(AtomicKind.FIXED_BYTES, size)

    return None


def parse_type(type_str: str, struct_names) -> FieldType:
    """Resolve a declared type string against the known struct names."""
    if not isinstance(type_str, str) or not type_str:
        raise SchemaError(f"Type must be a non-empty string, got {type_str!r}")

    m = _ARRAY_SUFFIX.search(type_str)
    if m:
        inner = type_str[:m.start()]
        digits = m.group(1)
        length = None
        if digits:
            length = int(digits)
            if str(length) != digits or length == 0:
                raise SchemaError(f"Invalid fixed array length in {type_str!r}")
        return ArrayType(parse_type(inner, struct_names), length)

    if type_str in struct_names:
        return StructType(type_str)

    atomic = parse_atomic(type_str)
    if atomic is None:
        raise SchemaError(f"Unknown type {type_str!r}")
    return atomic


class Schema:
    """
    Resolved set of struct definitions.
    Field order within each struct is the declared order and is significant.
    """

    def __init__(self, structs: Dict[str, Tuple[Field, ...]]):
        self._structs = dict(structs)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Schema":
        if not isinstance(raw, Mapping):
            raise SchemaError("types must be an object of struct definitions")

        names = set(raw.keys())
        for name in names:
            if not isinstance(name, str) or not _IDENT.match(name):
                raise SchemaError(f"Invalid struct name {name!r}")
            try:
                atomic = parse_atomic(name)
            except SchemaError:
                atomic = True
            if atomic is not None:
                raise SchemaError(f"Struct name shadows an atomic type: {name!r}")

        structs: Dict[str, Tuple[Field, ...]] = {}
        for name, members in raw.items():
            if not isinstance(members, list):
                raise SchemaError(f"Definition of {name!r} must be a list of fields")
            fields: List[Field] = []
            seen: Set[str] = set()
            for member in members:
                if not isinstance(member, Mapping) or set(member.keys()) != {"name", "type"}:
                    raise SchemaError(f"Field of {name!r} must have exactly 'name' and 'type': {member!r}")
                fname, ftype = member["name"], member["type"]
                if not isinstance(fname, str) or not _IDENT.match(fname):
                    raise SchemaError(f"Invalid field name {fname!r} in {name!r}")
                if fname in seen:
                    raise SchemaError(f"Duplicate field {fname!r} in {name!r}")
                seen.add(fname)
                fields.append(Field(fname, ftype, parse_type(ftype, names)))
            structs[name] = tuple(fields)

        if DOMAIN_TYPE in structs:
            standard = dict(DOMAIN_FIELDS)
            for f in structs[DOMAIN_TYPE]:
                if standard.get(f.name) != f.type:
                    raise SchemaError(f"Unsupported {DOMAIN_TYPE} member: {f.type} {f.name}")

        return cls(structs)

    def with_domain(self, present: List[str]) -> "Schema":
        """Return a schema that declares EIP712Domain, deriving it from the populated members if absent."""
        if DOMAIN_TYPE in self._structs:
            return self
        structs = dict(self._structs)
        structs[DOMAIN_TYPE] = tuple(
            Field(name, type_, parse_atomic(type_))
            for name, type_ in DOMAIN_FIELDS
            if name in present
        )
        return Schema(structs)

    def __contains__(self, name: str) -> bool:
        return name in self._structs

    def __eq__(self, other) -> bool:
        return isinstance(other, Schema) and self._structs == other._structs

    def __hash__(self):
        return hash(tuple(sorted(self._structs.items())))

    def fields(self, name: str) -> Tuple[Field, ...]:
        try:
            return self._structs[name]
        except KeyError:
            raise SchemaError(f"Undefined struct type {name!r}") from None

    def ordered_names(self) -> List[str]:
        """EIP712Domain first, remaining struct names sorted."""
        rest = sorted(n for n in self._structs if n != DOMAIN_TYPE)
        return ([DOMAIN_TYPE] if DOMAIN_TYPE in self._structs else []) + rest

    def dependencies(self, name: str) -> Set[str]:
        """All struct types reachable from `name`, excluding itself."""
        found: Set[str] = set()
        stack = [name]
        while stack:
            current = stack.pop()
            for f in self.fields(current):
                ref = _struct_of(f.kind)
                if ref is not None and ref != name and ref not in found:
                    found.add(ref)
                    stack.append(ref)
        return found

    def encode_type(self, name: str) -> str:
        """EIP-712 encodeType: primary struct, then referenced structs sorted by name."""
        out = []
        for struct in [name] + sorted(self.dependencies(name)):
            members = ",".join(f"{f.type} {f.name}" for f in self.fields(struct))
            out.append(f"{struct}({members})")
        return "".join(out)

    def to_dict(self) -> Dict[str, List[Dict[str, str]]]:
        return {
            name: [{"name": f.name, "type": f.type} for f in self._structs[name]]
            for name in self.ordered_names()
        }


def _struct_of(kind: FieldType) -> Optional[str]:
    while isinstance(kind, ArrayType):
        kind = kind.element
    if isinstance(kind, StructType):
        return kind.name
    return None


# ── value coercion ─────────────────────────────────────────────────────────────

def coerce_struct(schema: Schema, name: str, value: Any, path: str = "") -> Mapping[str, Any]:
    """
    Validate a struct value against the schema and return it normalized:
    schema-ordered read-only mapping, ints as int, byte types as bytes, arrays as tuples.
    """
    if not isinstance(value, Mapping):
        raise CanonicalizationError(f"{path or name}: expected object for struct {name}")
    fields = schema.fields(name)
    declared = {f.name for f in fields}
    extra = [k for k in value.keys() if k not in declared]
    if extra:
        raise CanonicalizationError(f"{path or name}: unexpected field(s) {sorted(map(str, extra))}")

    out: Dict[str, Any] = {}
    for f in fields:
        if f.name not in value:
            raise CanonicalizationError(f"{path or name}: missing field {f.name!r}")
        out[f.name] = coerce_value(schema, f.kind, value[f.name], f"{path or name}.{f.name}")
    return MappingProxyType(out)


def coerce_value(schema: Schema, kind: FieldType, value: Any, path: str) -> Any:
    if isinstance(kind, StructType):
        return coerce_struct(schema, kind.name, value, path)

    if isinstance(kind, ArrayType):
        if not isinstance(value, (list, tuple)):
            raise CanonicalizationError(f"{path}: expected array")
        if kind.length is not None and len(value) != kind.length:
            raise CanonicalizationError(f"{path}: expected {kind.length} elements, got {len(value)}")
        return tuple(coerce_value(schema, kind.element, v, f"{path}[{i}]") for i, v in enumerate(value))

    return _coerce_atomic(kind, value, path)


def _coerce_atomic(kind: AtomicType, value: Any, path: str) -> Any:
    k = kind.kind
    try:
        if k is AtomicKind.BOOL:
            if not isinstance(value, bool):
                raise CanonicalizationError("expected boolean")
            return value

        if k in (AtomicKind.UINT, AtomicKind.INT):
            n = _parse_int(value)
            if k is AtomicKind.UINT:
                lo, hi = 0, (1 << kind.size) - 1
            else:
                lo, hi = -(1 << (kind.size - 1)), (1 << (kind.size - 1)) - 1
            if not lo <= n <= hi:
                raise CanonicalizationError(f"{n} out of range for {k.value}{kind.size}")
            return n

        if k is AtomicKind.ADDRESS:
            return parse_address(value)

        if k is AtomicKind.FIXED_BYTES:
            return from_hex(value, kind.size)

        if k is AtomicKind.BYTES:
            return from_hex(value)

        if k is AtomicKind.STRING:
            if not isinstance(value, str):
                raise CanonicalizationError("expected string")
            try:
                value.encode("utf-8")
            except UnicodeEncodeError:
                raise CanonicalizationError("string is not valid unicode") from None
            return value
    except CanonicalizationError as e:
        raise CanonicalizationError(f"{path}: {e}") from None

    raise SchemaError(f"{path}: unsupported atomic kind {k}")


def _parse_int(value: Any) -> int:
    # bool is an int subclass; never accept it as a number
    if isinstance(value, bool):
        raise CanonicalizationError("expected integer, got boolean")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        s = value.strip()
        neg = s.startswith("-")
        body = s[1:] if neg else s
        try:
            if body.startswith(("0x", "0X")):
                n = int(body[2:], 16)
            elif body.isascii() and body.isdigit():
                n = int(body, 10)
            else:
                raise ValueError(body)
        except ValueError:
            raise CanonicalizationError(f"invalid integer string {value!r}") from None
        return -n if neg else n
    raise CanonicalizationError(f"expected integer, got {type(value).__name__}")
