# tests/conftest.py
import copy

import pytest

from aggsign.chain.concat import build
from aggsign.chain.signer import sign_concatenation
from aggsign.core.types import TypedMessage
from aggsign.crypto.keys import SigningKey


MAIL = {
    "types": {
        "EIP712Domain": [
            {"name": "name", "type": "string"},
            {"name": "version", "type": "string"},
            {"name": "chainId", "type": "uint256"},
            {"name": "verifyingContract", "type": "address"},
        ],
        "Person": [
            {"name": "name", "type": "string"},
            {"name": "wallet", "type": "address"},
        ],
        "Mail": [
            {"name": "from", "type": "Person"},
            {"name": "to", "type": "Person"},
            {"name": "contents", "type": "string"},
        ],
    },
    "primaryType": "Mail",
    "domain": {
        "name": "Ether Mail",
        "version": "1",
        "chainId": 1,
        "verifyingContract": "0xCcCCccccCCCCcCCCCCCcCcCccCcCCCcCcccccccC",
    },
    "message": {
        "from": {"name": "Cow", "wallet": "0xCD2a3d9F938E13CD947Ec05AbC7FE734Df8DD826"},
        "to": {"name": "Bob", "wallet": "0xbBbBBBBbbBBBbbbBbbBbbbbBBbBbbbbBbBbbBBbB"},
        "contents": "Hello, Bob!",
    },
}

PERMIT = {
    "types": {
        "TokenPermissions": [
            {"name": "token", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "PermitTransferFrom": [
            {"name": "permitted", "type": "TokenPermissions"},
            {"name": "spender", "type": "address"},
            {"name": "nonce", "type": "uint256"},
            {"name": "deadline", "type": "uint256"},
        ],
    },
    "primaryType": "PermitTransferFrom",
    "domain": {
        "name": "Permit2",
        "chainId": 1,
        "verifyingContract": "0x000000000022D473030F116dDEE9F6B43aC78BA3",
    },
    "message": {
        "permitted": {
            "token": "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
            "amount": "1000000000000000000",
        },
        "spender": "0x1111111111111111111111111111111111111111",
        "nonce": 0,
        "deadline": "0xffffffff",
    },
}

ORDER = {
    "types": {
        "EIP712Domain": [
            {"name": "name", "type": "string"},
            {"name": "salt", "type": "bytes32"},
        ],
        "Item": [
            {"name": "sku", "type": "bytes4"},
            {"name": "qty", "type": "int32"},
        ],
        "Order": [
            {"name": "items", "type": "Item[]"},
            {"name": "tags", "type": "string[2]"},
            {"name": "paid", "type": "bool"},
            {"name": "memo", "type": "bytes"},
        ],
    },
    "primaryType": "Order",
    "domain": {
        "name": "Shop é {braces} \"quoted\"",
        "salt": "0x" + "ab" * 32,
    },
    "message": {
        "items": [
            {"sku": "0xdeadbeef", "qty": -3},
            {"sku": "0x00000001", "qty": 7},
        ],
        "tags": ["fast", "}{"],
        "paid": True,
        "memo": "0x",
    },
}


@pytest.fixture
def mail_data():
    return copy.deepcopy(MAIL)


@pytest.fixture
def permit_data():
    return copy.deepcopy(PERMIT)


@pytest.fixture
def order_data():
    return copy.deepcopy(ORDER)


@pytest.fixture
def messages():
    return [TypedMessage.from_dict(copy.deepcopy(d)) for d in (MAIL, PERMIT, ORDER)]


@pytest.fixture
def key() -> SigningKey:
    return SigningKey.generate()


@pytest.fixture
def signed_batch(messages, key):
    concat, _ = build(messages)
    return sign_concatenation(concat, key)
