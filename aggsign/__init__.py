# aggsign/__init__.py
"""
aggsign: sign many EIP-712 messages once, attest each digest separately.

Typed messages are canonicalized and concatenated, the buffer gets a single
EIP-191 signature, and per message an attestation commits to (signer, digest)
without revealing the buffer or the other messages.
"""

from aggsign.core.types import (
    Attestation,
    AttestationRequest,
    ByteRange,
    Concatenation,
    Domain,
    Journal,
    SignedConcatenation,
    TypedMessage,
    encode_journal,
)
from aggsign.core.canon import canonicalize, parse_canonical
from aggsign.crypto.hashing import message_digest as digest
from aggsign.crypto.keys import SigningKey, SigningMode
from aggsign.chain.concat import ConcatenationBuilder, build, find_json_ranges
from aggsign.chain.signer import sign, sign_concatenation
from aggsign.prove.engine import PROGRAM_ID, execute
from aggsign.prove.provers import DevModeProver, ExecutorProver, Prover, attest, attest_many, create_prover
from aggsign.verify.verifier import AttestationVerifier, VerificationResult, verify

__version__ = "0.1.0-dev"
