# aggsign/storage/sqlite.py
import os
import sqlite3
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple

from aggsign.core.canon import canonical_json
from aggsign.core.encoding import from_hex, load_json, to_hex
from aggsign.core.types import Attestation, ByteRange, Concatenation, SignedConcatenation
from . import StorageBackend, batch_id

logger = logging.getLogger(__name__)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


class SQLiteStorage(StorageBackend):
    """SQLite persistent storage for signed batches and attestations."""

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            env_path = os.environ.get("AGGSIGN_DB_PATH")
            db_path = env_path if env_path else Path.cwd() / "aggsign.db"

        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.db_path = self.db_path.resolve()

        self._conn: Optional[sqlite3.Connection] = None
        self._connect()

    def _connect(self):
        # attestations may be written from attest_many worker callbacks
        self._conn = sqlite3.connect(str(self.db_path), isolation_level=None, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._create_schema()

    def _create_schema(self):
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS batches (
                batch_id        TEXT    PRIMARY KEY,
                signer          TEXT    NOT NULL,
                signature       TEXT    NOT NULL,
                buffer          BLOB    NOT NULL,
                ranges_json     TEXT    NOT NULL,
                created_at      TEXT    NOT NULL
            )
        """)
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS attestations (
                batch_id        TEXT    NOT NULL,
                range_start     INTEGER NOT NULL,
                range_end       INTEGER NOT NULL,
                program_id      TEXT    NOT NULL,
                signer          TEXT    NOT NULL,
                digest          TEXT    NOT NULL,
                journal         BLOB    NOT NULL,
                seal            BLOB    NOT NULL,
                PRIMARY KEY (batch_id, range_start, range_end, program_id)
            )
        """)
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_digest ON attestations(digest)")
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_signer ON batches(signer)")

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("Storage connection is closed")
        return self._conn

    def save_batch(self, signed: SignedConcatenation) -> str:
        bid = batch_id(signed)
        ranges_str = canonical_json([r.to_dict() for r in signed.ranges]).decode("utf-8")
        self.conn.execute("""
            INSERT OR IGNORE INTO batches
            (batch_id, signer, signature, buffer, ranges_json, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
        """, (
            bid, to_hex(signed.signer), to_hex(signed.signature),
            signed.buffer, ranges_str, _utc_now()
        ))
        logger.debug("Saved batch %s (%d ranges)", bid, len(signed.ranges))
        return bid

    def load_batch(self, batch_id: str) -> SignedConcatenation:
        row = self.conn.execute(
            "SELECT signer, signature, buffer, ranges_json FROM batches WHERE batch_id = ?",
            (batch_id,)
        ).fetchone()
        if row is None:
            raise KeyError(f"Unknown batch {batch_id}")

        signer, signature, buffer, ranges_str = row
        ranges = tuple(ByteRange(r["start"], r["end"]) for r in load_json(ranges_str))
        # Concatenation re-checks the partition invariant on load
        concat = Concatenation(buffer=bytes(buffer), ranges=ranges)
        return SignedConcatenation(
            concatenation=concat,
            signer=from_hex(signer, 20),
            signature=from_hex(signature),
        )

    def append_attestation(self, batch_id: str, rng: ByteRange, attestation: Attestation) -> None:
        output = attestation.output
        self.conn.execute("""
            INSERT OR IGNORE INTO attestations
            (batch_id, range_start, range_end, program_id, signer, digest, journal, seal)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            batch_id, rng.start, rng.end, to_hex(attestation.program_id),
            to_hex(output.signer), to_hex(output.digest),
            attestation.journal, attestation.seal
        ))

    def load_attestations(self, batch_id: str) -> List[Tuple[ByteRange, Attestation]]:
        cursor = self.conn.execute("""
            SELECT range_start, range_end, program_id, journal, seal
            FROM attestations WHERE batch_id = ? ORDER BY range_start ASC
        """, (batch_id,))

        loaded = []
        for start, end, pid, journal, seal in cursor:
            att = Attestation(program_id=from_hex(pid, 32), journal=bytes(journal), seal=bytes(seal))
            loaded.append((ByteRange(start, end), att))
        return loaded

    def find_by_digest(self, digest: bytes) -> List[Attestation]:
        """All stored attestations committing to `digest`, whatever batch they came from."""
        cursor = self.conn.execute(
            "SELECT program_id, journal, seal FROM attestations WHERE digest = ?",
            (to_hex(digest),)
        )
        return [
            Attestation(program_id=from_hex(pid, 32), journal=bytes(journal), seal=bytes(seal))
            for pid, journal, seal in cursor
        ]

    def list_batches(self) -> list[str]:
        """Batch ids, most recent first."""
        cursor = self.conn.execute("SELECT batch_id FROM batches ORDER BY created_at DESC, rowid DESC")
        return [row[0] for row in cursor.fetchall()]

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
