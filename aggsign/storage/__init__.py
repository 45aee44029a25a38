# aggsign/storage/__init__.py
"""
Storage backends for signed batches and their attestations.
"""

from abc import ABC, abstractmethod
from typing import List, Tuple, Union
from pathlib import Path

from aggsign.config import StorageConfig
from aggsign.core.encoding import to_hex
from aggsign.core.types import Attestation, ByteRange, SignedConcatenation
from aggsign.crypto.hashing import keccak256


def batch_id(signed: SignedConcatenation) -> str:
    """Stable identifier of a signed batch: keccak256(signer || signature || buffer)."""
    return to_hex(keccak256(signed.signer + signed.signature + signed.buffer))


class StorageBackend(ABC):
    """Abstract base for all persistent storage implementations."""

    @abstractmethod
    def save_batch(self, signed: SignedConcatenation) -> str:
        pass

    @abstractmethod
    def load_batch(self, batch_id: str) -> SignedConcatenation:
        pass

    @abstractmethod
    def append_attestation(self, batch_id: str, rng: ByteRange, attestation: Attestation) -> None:
        pass

    @abstractmethod
    def load_attestations(self, batch_id: str) -> List[Tuple[ByteRange, Attestation]]:
        pass

    @abstractmethod
    def close(self) -> None:
        pass


def create_storage(target: Union[str, StorageConfig, None] = None) -> StorageBackend:
    """
    Open a backend from a URI or a StorageConfig. With no URI the SQLite
    default applies (AGGSIGN_DB_PATH, else ./aggsign.db).
    """
    uri = target.uri if isinstance(target, StorageConfig) else target
    if uri is None:
        from .sqlite import SQLiteStorage
        return SQLiteStorage()
    if uri.startswith("sqlite://"):
        from .sqlite import SQLiteStorage
        raw_path = uri[len("sqlite://"):]
        if not raw_path:
            raise ValueError(f"Missing database path in storage URI: {uri}")
        return SQLiteStorage(Path(raw_path).resolve())
    raise ValueError(f"Unsupported storage URI: {uri}")


from .sqlite import SQLiteStorage

__all__ = ["StorageBackend", "create_storage", "batch_id", "SQLiteStorage"]
