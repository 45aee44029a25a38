# aggsign/prove/engine.py
"""
Attestation engine: the program whose execution gets proven.

`execute` is a pure function of its request. It verifies the signature over the
whole buffer, re-derives the canonical message in the requested range and
returns the public journal (signer, digest). Provers wrap it; nothing here
knows how a proof is produced.
"""
import logging
from typing import Any, Dict

from aggsign.chain.signer import SIGNING_MODE
from aggsign.core.canon import canonical_json, parse_canonical
from aggsign.core.types import AttestationRequest, Journal
from aggsign.crypto.hashing import message_digest, sha256
from aggsign.crypto.keys import verify_signature
from aggsign.errors import RangeOutOfBounds, SignatureInvalid

logger = logging.getLogger(__name__)

PROGRAM_DESCRIPTOR: Dict[str, Any] = {
    "program": "aggsign/single-sign",
    "version": 1,
    "signing_mode": SIGNING_MODE.value,
    "canonicalization": "eip712-compact-json/1",
    "digest": "eip712",
    "journal": "signer[20]||digest[32]",
}


def compute_program_id(descriptor: Dict[str, Any]) -> bytes:
    """sha256 over the JCS form of a program descriptor."""
    return sha256(canonical_json(descriptor))


PROGRAM_ID = compute_program_id(PROGRAM_DESCRIPTOR)


def execute(request: AttestationRequest) -> Journal:
    """
    Run the attestation program on one request.

    Raises SignatureInvalid, RangeOutOfBounds or SliceNotCanonical; no journal
    is produced in any of those cases.
    """
    buffer = bytes(request.buffer)

    if not verify_signature(buffer, bytes(request.signature), bytes(request.signer), SIGNING_MODE):
        raise SignatureInvalid(
            f"Signature does not recover to 0x{bytes(request.signer).hex()} over the {len(buffer)}-byte buffer"
        )

    start, end = request.range.start, request.range.end
    if not 0 <= start <= end <= len(buffer):
        raise RangeOutOfBounds(f"Range [{start}, {end}) outside buffer of {len(buffer)} bytes")

    message = parse_canonical(buffer[start:end])
    digest = message_digest(message)
    logger.debug("Range [%d, %d) -> %s digest 0x%s", start, end, message.primary_type, digest.hex())
    return Journal(signer=bytes(request.signer), digest=digest)
