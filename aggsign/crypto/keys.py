# aggsign/crypto/keys.py
"""
secp256k1 keys and Ethereum-style recoverable signatures (65 bytes, r || s || v).
"""
import logging
from enum import Enum
from typing import Optional

from coincurve import PrivateKey, PublicKey

from aggsign.crypto.hashing import keccak256, personal_message_hash

logger = logging.getLogger(__name__)

SIGNATURE_SIZE = 65


class SigningMode(Enum):
    """How message bytes are turned into the 32-byte prehash that gets signed."""
    PERSONAL = "eip191-personal"   # keccak256("\x19Ethereum Signed Message:\n" || len || msg)
    KECCAK = "keccak256"           # keccak256(msg)
    RAW32 = "raw32"                # msg is already a 32-byte prehash


def prehash(message: bytes, mode: SigningMode) -> bytes:
    if mode is SigningMode.PERSONAL:
        return personal_message_hash(message)
    if mode is SigningMode.KECCAK:
        return keccak256(message)
    if mode is SigningMode.RAW32:
        if len(message) != 32:
            raise ValueError("RAW32 mode requires a 32-byte prehash")
        return bytes(message)
    raise ValueError(f"Unknown signing mode: {mode!r}")


def public_key_to_address(public_key: PublicKey) -> bytes:
    return keccak256(public_key.format(compressed=False)[1:])[-20:]


def _recovery_id(v: int) -> Optional[int]:
    if v in (0, 1):
        return v
    if v in (27, 28):
        return v - 27
    if v >= 35:
        return (v - 35) % 2
    return None


def recover_address(digest: bytes, signature: bytes) -> Optional[bytes]:
    """Recover the signer address from a 32-byte prehash. Returns None if the signature is unusable."""
    if len(signature) != SIGNATURE_SIZE or len(digest) != 32:
        return None
    recid = _recovery_id(signature[64])
    if recid is None:
        return None
    try:
        public_key = PublicKey.from_signature_and_message(
            bytes(signature[:64]) + bytes([recid]), digest, hasher=None
        )
    except ValueError as e:
        logger.debug("Signature recovery failed: %s", e)
        return None
    return public_key_to_address(public_key)


def verify_signature(
    message: bytes,
    signature: bytes,
    expected: bytes,
    mode: SigningMode = SigningMode.PERSONAL,
) -> bool:
    """True iff `signature` over `message` under `mode` recovers to `expected`."""
    try:
        digest = prehash(message, mode)
    except ValueError:
        return False
    recovered = recover_address(digest, signature)
    return recovered is not None and recovered == bytes(expected)


class SigningKey:
    """Local secp256k1 key. Wallets and remote signers live outside this package."""

    def __init__(self, private_key: PrivateKey):
        self._key = private_key

    @classmethod
    def generate(cls) -> "SigningKey":
        return cls(PrivateKey())

    @classmethod
    def from_hex(cls, secret: str) -> "SigningKey":
        data = secret[2:] if secret.startswith(("0x", "0X")) else secret
        raw = bytes.fromhex(data)
        if len(raw) != 32:
            raise ValueError("secp256k1 private key must be 32 bytes")
        return cls(PrivateKey(raw))

    def to_hex(self) -> str:
        return "0x" + self._key.secret.hex()

    @property
    def address(self) -> bytes:
        return public_key_to_address(self._key.public_key)

    def sign_prehash(self, digest: bytes) -> bytes:
        if len(digest) != 32:
            raise ValueError("prehash must be 32 bytes")
        sig = self._key.sign_recoverable(digest, hasher=None)
        return sig[:64] + bytes([sig[64] + 27])

    def sign_message(self, message: bytes, mode: SigningMode = SigningMode.PERSONAL) -> bytes:
        return self.sign_prehash(prehash(message, mode))
