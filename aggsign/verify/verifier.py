# aggsign/verify/verifier.py
import logging
from typing import Iterable, List, Optional, Union
from dataclasses import dataclass, field

from aggsign.config import VerifierConfig
from aggsign.core.encoding import parse_address
from aggsign.core.types import Attestation
from aggsign.crypto.keys import recover_address
from aggsign.prove.seal import DEV_SELECTOR, EXECUTOR_SELECTOR, claim_digest, decode_seal

logger = logging.getLogger(__name__)


@dataclass
class VerificationFailure:
    message: str
    category: str = "general"  # "program_id", "seal", "journal"


@dataclass
class VerificationResult:
    is_valid: bool
    message: str = ""
    failures: List[VerificationFailure] = field(default_factory=list)

    @property
    def first_failure(self) -> Optional[VerificationFailure]:
        return self.failures[0] if self.failures else None

    def __bool__(self):
        return self.is_valid

    def __str__(self):
        if self.is_valid:
            return "Attestation is valid ✓"
        lines = [f"Verification FAILED ({len(self.failures)} issues):"]
        for f in self.failures:
            lines.append(f"  • {f.category}: {f.message}")
        return "\n".join(lines)


class AttestationVerifier:
    """
    Offline verifier for attestations.
    Stateless apart from its trust settings; safe to share between threads.
    """

    def __init__(self, trusted_executors: Iterable[Union[bytes, str]] = (), allow_dev_mode: bool = False):
        """
        trusted_executors: addresses whose executor seals are accepted
        allow_dev_mode: accept unauthenticated dev-mode seals (never in production)
        """
        self.trusted_executors = frozenset(parse_address(a) for a in trusted_executors)
        self.allow_dev_mode = allow_dev_mode

    @classmethod
    def from_config(cls, config: VerifierConfig) -> "AttestationVerifier":
        return cls(trusted_executors=config.trusted_executors, allow_dev_mode=config.allow_dev_mode)

    def check(
        self,
        attestation: Union[Attestation, bytes],
        expected_program_id: bytes,
        expected_signer: bytes,
        expected_digest: bytes,
    ) -> VerificationResult:
        """
        Collect every mismatch. Raises AttestationFormatError only when the
        attestation or its seal cannot be decoded.
        """
        if not isinstance(attestation, Attestation):
            attestation = Attestation.from_bytes(attestation)
        seal = decode_seal(attestation.seal)

        result = VerificationResult(True)

        # 1. Program identity
        if attestation.program_id != bytes(expected_program_id):
            result.failures.append(VerificationFailure(
                f"program id 0x{attestation.program_id.hex()} != expected 0x{bytes(expected_program_id).hex()}",
                "program_id",
            ))

        # 2. Seal over (expected program, journal)
        claim = claim_digest(expected_program_id, attestation.journal)
        if seal.selector == DEV_SELECTOR:
            if not self.allow_dev_mode:
                result.failures.append(VerificationFailure("dev-mode seal rejected", "seal"))
            elif seal.payload != claim:
                result.failures.append(VerificationFailure("dev-mode seal does not match claim", "seal"))
        elif seal.selector == EXECUTOR_SELECTOR:
            executor = recover_address(claim, seal.payload)
            if executor is None:
                result.failures.append(VerificationFailure("executor signature unrecoverable", "seal"))
            elif executor not in self.trusted_executors:
                result.failures.append(VerificationFailure(f"untrusted executor 0x{executor.hex()}", "seal"))

        # 3. Committed output
        expected_journal = bytes(expected_signer) + bytes(expected_digest)
        if attestation.journal != expected_journal:
            result.failures.append(VerificationFailure("journal does not commit to expected (signer, digest)", "journal"))

        result.is_valid = not result.failures
        result.message = "Valid attestation" if result.is_valid else f"Failed with {len(result.failures)} issues"
        if not result.is_valid:
            logger.debug("Attestation rejected: %s", "; ".join(f.message for f in result.failures))
        return result

    def verify(
        self,
        attestation: Union[Attestation, bytes],
        expected_program_id: bytes,
        expected_signer: bytes,
        expected_digest: bytes,
    ) -> bool:
        return self.check(attestation, expected_program_id, expected_signer, expected_digest).is_valid


def verify(
    attestation: Union[Attestation, bytes],
    expected_program_id: bytes,
    expected_signer: bytes,
    expected_digest: bytes,
    trusted_executors: Iterable[Union[bytes, str]] = (),
    allow_dev_mode: bool = False,
) -> bool:
    """One-shot predicate; builds a throwaway verifier with the given trust settings."""
    verifier = AttestationVerifier(trusted_executors=trusted_executors, allow_dev_mode=allow_dev_mode)
    return verifier.verify(attestation, expected_program_id, expected_signer, expected_digest)
