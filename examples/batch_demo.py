# examples/batch_demo.py
# Run with: poetry run python examples/batch_demo.py
#
# Signs three typed messages once, then attests each digest separately
# with a local trusted-executor prover and verifies the attestations.

from aggsign import (
    PROGRAM_ID,
    AttestationVerifier,
    ExecutorProver,
    SigningKey,
    TypedMessage,
    attest_many,
    build,
    digest,
    sign_concatenation,
)


def typed(primary: str, fields: list, message: dict) -> TypedMessage:
    return TypedMessage.from_dict({
        "types": {primary: fields},
        "primaryType": primary,
        "domain": {"name": "Batch Demo", "version": "1", "chainId": 1},
        "message": message,
    })


if __name__ == "__main__":
    user = SigningKey.generate()
    executor = ExecutorProver(SigningKey.generate())
    verifier = AttestationVerifier(trusted_executors=[executor.address])

    messages = [
        typed("Greeting", [{"name": "text", "type": "string"}], {"text": "gm"}),
        typed("Transfer", [{"name": "to", "type": "address"}, {"name": "amount", "type": "uint256"}],
              {"to": "0x" + "ab" * 20, "amount": "1000000000000000000"}),
        typed("Vote", [{"name": "proposal", "type": "uint32"}, {"name": "support", "type": "bool"}],
              {"proposal": 7, "support": True}),
    ]

    concat, ranges = build(messages)
    signed = sign_concatenation(concat, user)
    print(f"Signed {len(concat.buffer)} bytes as 0x{signed.signer.hex()}")
    for r in ranges:
        print(f"  range [{r.start}, {r.end})")

    results = attest_many(signed.requests(), executor, max_workers=3)
    for msg, att in zip(messages, results):
        ok = verifier.verify(att, PROGRAM_ID, signed.signer, digest(msg))
        print(f"{msg.primary_type:10} digest 0x{att.output.digest.hex()} verified={ok}")
