# aggsign/core/types.py
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union

from aggsign.core.encoding import from_hex, load_json, to_hex
from aggsign.core.schema import DOMAIN_FIELDS, DOMAIN_TYPE, Schema, coerce_struct
from aggsign.errors import AttestationFormatError, CanonicalizationError, SchemaError

_TOP_LEVEL_KEYS = {"types", "primaryType", "domain", "message"}
_DOMAIN_ATTRS = {
    "name": "name",
    "version": "version",
    "chainId": "chain_id",
    "verifyingContract": "verifying_contract",
    "salt": "salt",
}

JOURNAL_SIZE = 52


@dataclass(frozen=True)
class Domain:
    """EIP-712 domain descriptor. Every member is optional."""
    name: Optional[str] = None
    version: Optional[str] = None
    chain_id: Optional[int] = None
    verifying_contract: Optional[bytes] = None
    salt: Optional[bytes] = None

    def present(self) -> List[str]:
        """JSON names of the populated members, in standard order."""
        return [k for k, _ in DOMAIN_FIELDS if getattr(self, _DOMAIN_ATTRS[k]) is not None]

    def values(self) -> Dict[str, Any]:
        return {k: getattr(self, _DOMAIN_ATTRS[k]) for k in self.present()}


@dataclass(frozen=True)
class TypedMessage:
    """
    A structured-data message: schema, primary type, domain and document.
    Built through from_dict / from_json, which validate and normalize everything;
    a constructed TypedMessage always canonicalizes and digests without error.
    """
    schema: Schema
    primary_type: str
    domain: Domain
    message: Mapping[str, Any] = field(hash=False)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TypedMessage":
        if not isinstance(data, Mapping):
            raise CanonicalizationError("Typed data must be a JSON object")
        keys = set(data.keys())
        if keys != _TOP_LEVEL_KEYS:
            missing = sorted(_TOP_LEVEL_KEYS - keys)
            extra = sorted(map(str, keys - _TOP_LEVEL_KEYS))
            raise CanonicalizationError(f"Typed data keys mismatch (missing={missing}, unexpected={extra})")

        primary_type = data["primaryType"]
        if not isinstance(primary_type, str):
            raise SchemaError("primaryType must be a string")

        raw_domain = data["domain"]
        if not isinstance(raw_domain, Mapping):
            raise CanonicalizationError("domain must be an object")
        unknown = [k for k in raw_domain if k not in _DOMAIN_ATTRS]
        if unknown:
            raise CanonicalizationError(f"Unknown domain member(s): {sorted(map(str, unknown))}")
        # null members count as absent
        domain_doc = {k: v for k, v in raw_domain.items() if v is not None}

        schema = Schema.from_dict(data["types"])
        if DOMAIN_TYPE not in schema:
            schema = schema.with_domain(list(domain_doc))
        domain_values = coerce_struct(schema, DOMAIN_TYPE, domain_doc, "domain")
        domain = Domain(**{_DOMAIN_ATTRS[k]: v for k, v in domain_values.items()})

        if primary_type not in schema:
            raise SchemaError(f"primaryType {primary_type!r} is not defined in types")
        message = coerce_struct(schema, primary_type, data["message"], "message")

        return cls(schema=schema, primary_type=primary_type, domain=domain, message=message)

    @classmethod
    def from_json(cls, text: Union[str, bytes]) -> "TypedMessage":
        data = load_json(text)
        try:
            return cls.from_dict(data)
        except RecursionError as e:
            raise CanonicalizationError("Typed data nests too deeply") from e

    def to_dict(self) -> Dict[str, Any]:
        """JSON-compatible document in canonical member order."""
        return {
            "types": self.schema.to_dict(),
            "primaryType": self.primary_type,
            "domain": _plain(self.domain.values()),
            "message": _plain(self.message),
        }


def _plain(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [_plain(v) for v in value]
    if isinstance(value, bytes):
        return to_hex(value)
    return value


@dataclass(frozen=True)
class ByteRange:
    """Half-open [start, end) byte range."""
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start

    def to_dict(self) -> dict:
        return {"start": self.start, "end": self.end}


@dataclass(frozen=True)
class Concatenation:
    """Canonical segments joined without separator, with one range per segment."""
    buffer: bytes
    ranges: Tuple[ByteRange, ...]

    def __post_init__(self):
        object.__setattr__(self, "ranges", tuple(self.ranges))
        expected_start = 0
        for i, r in enumerate(self.ranges):
            if r.start != expected_start or r.end < r.start:
                raise ValueError(f"Range #{i} {r} breaks contiguity (expected start {expected_start})")
            expected_start = r.end
        if expected_start != len(self.buffer):
            raise ValueError(f"Ranges cover {expected_start} bytes, buffer has {len(self.buffer)}")

    def __len__(self) -> int:
        return len(self.ranges)

    def segment(self, index: int) -> bytes:
        r = self.ranges[index]
        return self.buffer[r.start:r.end]


@dataclass(frozen=True)
class AttestationRequest:
    """Everything the attestation engine needs for one range. Signature and buffer stay private."""
    signer: bytes
    signature: bytes
    buffer: bytes
    range: ByteRange


@dataclass(frozen=True)
class SignedConcatenation:
    concatenation: Concatenation
    signer: bytes          # 20-byte address
    signature: bytes       # 65-byte r || s || v

    @property
    def buffer(self) -> bytes:
        return self.concatenation.buffer

    @property
    def ranges(self) -> Tuple[ByteRange, ...]:
        return self.concatenation.ranges

    def request_for(self, index: int) -> AttestationRequest:
        return AttestationRequest(
            signer=self.signer,
            signature=self.signature,
            buffer=self.buffer,
            range=self.ranges[index],
        )

    def requests(self) -> Iterator[AttestationRequest]:
        for i in range(len(self.ranges)):
            yield self.request_for(i)


@dataclass(frozen=True)
class Journal:
    """Public committed output of an attestation."""
    signer: bytes
    digest: bytes

    def __post_init__(self):
        if len(self.signer) != 20:
            raise AttestationFormatError(f"Journal signer must be 20 bytes, got {len(self.signer)}")
        if len(self.digest) != 32:
            raise AttestationFormatError(f"Journal digest must be 32 bytes, got {len(self.digest)}")

    def encode(self) -> bytes:
        return self.signer + self.digest

    @classmethod
    def decode(cls, data: bytes) -> "Journal":
        if len(data) != JOURNAL_SIZE:
            raise AttestationFormatError(f"Journal must be {JOURNAL_SIZE} bytes, got {len(data)}")
        return cls(signer=bytes(data[:20]), digest=bytes(data[20:]))


def encode_journal(owner: bytes, digest: bytes) -> bytes:
    """Journal bytes an on-chain consumer rebuilds from (owner, hash) before checking a seal."""
    return Journal(owner, digest).encode()


@dataclass(frozen=True)
class Attestation:
    """Program identifier, committed journal and opaque seal."""
    program_id: bytes
    journal: bytes
    seal: bytes = field(repr=False)

    def __post_init__(self):
        if len(self.program_id) != 32:
            raise AttestationFormatError(f"program_id must be 32 bytes, got {len(self.program_id)}")
        if len(self.journal) != JOURNAL_SIZE:
            raise AttestationFormatError(f"journal must be {JOURNAL_SIZE} bytes, got {len(self.journal)}")

    @property
    def output(self) -> Journal:
        return Journal.decode(self.journal)

    def to_bytes(self) -> bytes:
        return self.program_id + self.journal + self.seal

    @classmethod
    def from_bytes(cls, data: bytes) -> "Attestation":
        if len(data) < 32 + JOURNAL_SIZE:
            raise AttestationFormatError(f"Attestation too short: {len(data)} bytes")
        return cls(
            program_id=bytes(data[:32]),
            journal=bytes(data[32:32 + JOURNAL_SIZE]),
            seal=bytes(data[32 + JOURNAL_SIZE:]),
        )

    def to_dict(self) -> dict:
        return {
            "program_id": to_hex(self.program_id),
            "journal": to_hex(self.journal),
            "seal": to_hex(self.seal),
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, str]) -> "Attestation":
        try:
            return cls(
                program_id=from_hex(d["program_id"], 32),
                journal=from_hex(d["journal"], JOURNAL_SIZE),
                seal=from_hex(d["seal"]),
            )
        except (KeyError, CanonicalizationError) as e:
            raise AttestationFormatError(f"Malformed attestation: {e}") from e
