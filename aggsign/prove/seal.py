# aggsign/prove/seal.py
"""
Seal encoding shared by provers and verifiers: 4-byte selector || payload.

Both schemes seal the same claim digest,
sha256(CLAIM_TAG || program_id || sha256(journal)),
so a seal binds the program identifier and the journal together.
"""
from dataclasses import dataclass

from aggsign.crypto.hashing import sha256
from aggsign.crypto.keys import SIGNATURE_SIZE
from aggsign.errors import AttestationFormatError

CLAIM_TAG = b"aggsign.receipt-claim.v1"

DEV_SELECTOR = sha256(b"aggsign.seal.dev.v1")[:4]
EXECUTOR_SELECTOR = sha256(b"aggsign.seal.executor.v1")[:4]

_PAYLOAD_SIZES = {
    DEV_SELECTOR: 32,
    EXECUTOR_SELECTOR: SIGNATURE_SIZE,
}


def claim_digest(program_id: bytes, journal: bytes) -> bytes:
    return sha256(CLAIM_TAG + bytes(program_id) + sha256(bytes(journal)))


@dataclass(frozen=True)
class Seal:
    selector: bytes
    payload: bytes

    def encode(self) -> bytes:
        return self.selector + self.payload

    @property
    def is_dev(self) -> bool:
        return self.selector == DEV_SELECTOR


def decode_seal(data: bytes) -> Seal:
    data = bytes(data)
    if len(data) < 4:
        raise AttestationFormatError(f"Seal too short: {len(data)} bytes")
    selector, payload = data[:4], data[4:]
    expected = _PAYLOAD_SIZES.get(selector)
    if expected is None:
        raise AttestationFormatError(f"Unknown seal selector 0x{selector.hex()}")
    if len(payload) != expected:
        raise AttestationFormatError(f"Seal payload must be {expected} bytes, got {len(payload)}")
    return Seal(selector, payload)
