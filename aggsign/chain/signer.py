# aggsign/chain/signer.py
"""
One signature over the whole concatenation buffer.

The mode is fixed to EIP-191 personal messages. The attestation program pins the
same mode in its identifier; a signature made any other way is rejected there.
"""
import logging
from typing import Tuple

from aggsign.core.types import Concatenation, SignedConcatenation
from aggsign.crypto.hashing import to_checksum_address
from aggsign.crypto.keys import SigningKey, SigningMode

logger = logging.getLogger(__name__)

SIGNING_MODE = SigningMode.PERSONAL


def sign(buffer: bytes, key: SigningKey) -> Tuple[bytes, bytes]:
    """Sign `buffer` as-is. Returns (signer address, 65-byte signature)."""
    signature = key.sign_message(bytes(buffer), SIGNING_MODE)
    address = key.address
    logger.debug("Signed %d bytes as %s", len(buffer), to_checksum_address(address))
    return address, signature


def sign_concatenation(concat: Concatenation, key: SigningKey) -> SignedConcatenation:
    signer, signature = sign(concat.buffer, key)
    return SignedConcatenation(concatenation=concat, signer=signer, signature=signature)
