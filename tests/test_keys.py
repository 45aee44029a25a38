# tests/test_keys.py
import pytest

from aggsign.crypto.hashing import keccak256, personal_message_hash
from aggsign.crypto.keys import (
    SigningKey,
    SigningMode,
    prehash,
    recover_address,
    verify_signature,
)

KNOWN_SECRET = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
KNOWN_ADDRESS = bytes.fromhex("2c7536e3605d9c16a7a3d7b1898e529396a65c23")


def test_address_from_known_key():
    key = SigningKey.from_hex(KNOWN_SECRET)
    assert key.address == KNOWN_ADDRESS
    assert key.to_hex() == KNOWN_SECRET


def test_from_hex_rejects_short_key():
    with pytest.raises(ValueError):
        SigningKey.from_hex("0x1234")


def test_personal_sign_and_verify(key):
    sig = key.sign_message(b"hello world")
    assert len(sig) == 65
    assert sig[64] in (27, 28)
    assert verify_signature(b"hello world", sig, key.address)
    assert recover_address(personal_message_hash(b"hello world"), sig) == key.address


def test_signing_is_deterministic(key):
    assert key.sign_message(b"abc") == key.sign_message(b"abc")


def test_wrong_message_or_signer(key):
    sig = key.sign_message(b"hello world")
    other = SigningKey.generate()
    assert not verify_signature(b"hello worlD", sig, key.address)
    assert not verify_signature(b"hello world", sig, other.address)


def test_mode_mismatch_fails(key):
    sig = key.sign_message(b"payload", SigningMode.KECCAK)
    assert verify_signature(b"payload", sig, key.address, SigningMode.KECCAK)
    assert not verify_signature(b"payload", sig, key.address, SigningMode.PERSONAL)


def test_raw32_mode(key):
    digest = keccak256(b"x")
    sig = key.sign_message(digest, SigningMode.RAW32)
    assert verify_signature(digest, sig, key.address, SigningMode.RAW32)
    with pytest.raises(ValueError):
        prehash(b"short", SigningMode.RAW32)
    assert not verify_signature(b"short", sig, key.address, SigningMode.RAW32)


@pytest.mark.parametrize("offset", [-27, 0, 8])  # v as 0/1, 27/28, and EIP-155 style 35/36
def test_recovery_id_spellings(key, offset):
    sig = key.sign_message(b"v test")
    v = sig[64] + offset
    assert verify_signature(b"v test", sig[:64] + bytes([v]), key.address)


def test_malformed_signatures(key):
    sig = key.sign_message(b"m")
    assert not verify_signature(b"m", sig[:64], key.address)
    assert not verify_signature(b"m", sig[:64] + bytes([5]), key.address)
    assert not verify_signature(b"m", b"\x00" * 65, key.address)
