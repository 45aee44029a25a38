# aggsign/prove/provers.py
"""
Proving harness adapters around the pure attestation engine.

A Prover runs `execute` on a request and seals the resulting journal. Engine
errors (bad signature, bad range, non-canonical slice) pass through untouched;
anything the backend itself throws becomes ProofGenerationFailure.
"""
import logging
import random
import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, List, Optional, Union

from aggsign.config import ProverConfig
from aggsign.core.types import Attestation, AttestationRequest
from aggsign.crypto.hashing import to_checksum_address
from aggsign.crypto.keys import SigningKey
from aggsign.errors import AggsignError, ProofGenerationFailure
from aggsign.prove.engine import PROGRAM_ID, execute
from aggsign.prove.seal import DEV_SELECTOR, EXECUTOR_SELECTOR, Seal, claim_digest

logger = logging.getLogger(__name__)


class Prover(ABC):
    """Abstract base for all proving backends."""

    def __init__(self, program_id: bytes = PROGRAM_ID):
        self.program_id = program_id

    @abstractmethod
    def seal(self, claim: bytes) -> bytes:
        """Produce a seal over a 32-byte claim digest."""

    def prove(self, request: AttestationRequest) -> Attestation:
        journal = execute(request).encode()
        claim = claim_digest(self.program_id, journal)
        try:
            seal = self.seal(claim)
        except ProofGenerationFailure:
            raise
        except Exception as e:
            raise ProofGenerationFailure(f"{type(self).__name__} failed to seal: {e}") from e
        return Attestation(program_id=self.program_id, journal=journal, seal=seal)


class DevModeProver(Prover):
    """
    Seals the bare claim digest. Anyone can forge these; verifiers only accept
    them with dev mode switched on. For tests and local development.
    """

    def seal(self, claim: bytes) -> bytes:
        return Seal(DEV_SELECTOR, claim).encode()


class ExecutorProver(Prover):
    """Trusted executor: signs the claim digest with its own secp256k1 key."""

    def __init__(self, key: SigningKey, program_id: bytes = PROGRAM_ID):
        super().__init__(program_id)
        self.key = key

    @property
    def address(self) -> bytes:
        return self.key.address

    def seal(self, claim: bytes) -> bytes:
        return Seal(EXECUTOR_SELECTOR, self.key.sign_prehash(claim)).encode()


def create_prover(config: ProverConfig) -> Prover:
    if config.backend == "dev":
        return DevModeProver()
    if config.backend == "executor":
        if not config.executor_key:
            raise ValueError("executor backend requires prover.executor_key")
        prover = ExecutorProver(SigningKey.from_hex(config.executor_key))
        logger.info("Executor prover ready as %s", to_checksum_address(prover.address))
        return prover
    raise ValueError(f"Unsupported prover backend: {config.backend}")


def attest(request: AttestationRequest, prover: Prover) -> Attestation:
    """Prove a single request."""
    attestation = prover.prove(request)
    logger.info(
        "Attested range [%d, %d): digest 0x%s",
        request.range.start, request.range.end, attestation.output.digest.hex(),
    )
    return attestation


def compute_backoff(attempt: int, base: float = 0.5, jitter: float = 0.1) -> float:
    """Exponential backoff with jitter."""
    return base * (2 ** attempt) + random.uniform(0, jitter)


def _attest_with_retry(
    request: AttestationRequest,
    prover: Prover,
    retries: int,
    backoff_base: float,
    jitter: float,
) -> Attestation:
    attempt = 0
    while True:
        try:
            return attest(request, prover)
        except ProofGenerationFailure as e:
            if attempt >= retries:
                raise
            delay = compute_backoff(attempt, backoff_base, jitter)
            logger.warning(
                "Proving [%d, %d) failed (attempt %d/%d), retrying in %.2fs: %s",
                request.range.start, request.range.end, attempt + 1, retries + 1, delay, e,
            )
            time.sleep(delay)
            attempt += 1


def attest_many(
    requests: Iterable[AttestationRequest],
    prover: Prover,
    max_workers: Optional[int] = None,
    retries: Optional[int] = None,
    backoff_base: float = 0.5,
    jitter: float = 0.1,
    config: Optional[ProverConfig] = None,
) -> List[Union[Attestation, AggsignError]]:
    """
    Prove independent requests concurrently.
    Results come back in input order; a failed request yields its exception
    in place of an Attestation and does not affect the others.

    Worker count and retry budget come from the explicit arguments, then from
    `config`, then from ProverConfig defaults.
    """
    config = config or ProverConfig()
    if max_workers is None:
        max_workers = config.max_workers
    if retries is None:
        retries = config.retries

    requests = list(requests)
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = [
            pool.submit(_attest_with_retry, r, prover, retries, backoff_base, jitter)
            for r in requests
        ]
        results: List[Union[Attestation, AggsignError]] = []
        for request, future in zip(requests, futures):
            try:
                results.append(future.result())
            except AggsignError as e:
                logger.warning("Attestation of [%d, %d) failed: %s", request.range.start, request.range.end, e)
                results.append(e)
            except Exception as e:
                logger.exception("Unexpected error attesting [%d, %d)", request.range.start, request.range.end)
                failure = ProofGenerationFailure(f"Unexpected {type(e).__name__}: {e}")
                failure.__cause__ = e
                results.append(failure)
    return results
