# tests/test_storage.py
from pathlib import Path

import pytest

from aggsign.config import StorageConfig
from aggsign.crypto.hashing import message_digest
from aggsign.prove.provers import DevModeProver, attest, attest_many
from aggsign.storage import SQLiteStorage, StorageBackend, batch_id, create_storage


@pytest.fixture
def temp_db_path(tmp_path: Path) -> Path:
    return tmp_path / "test.db"


@pytest.fixture
def storage(temp_db_path: Path) -> SQLiteStorage:
    s = SQLiteStorage(db_path=temp_db_path)
    yield s
    s.close()


def test_create_storage_dynamic_routing(temp_db_path: Path):
    storage = create_storage(f"sqlite://{temp_db_path}")
    assert isinstance(storage, SQLiteStorage)
    assert isinstance(storage, StorageBackend)
    assert storage.db_path == temp_db_path.resolve()
    storage.close()


def test_create_storage_rejects_unknown_scheme():
    with pytest.raises(ValueError):
        create_storage("jsonl:/tmp/x")


def test_default_path_from_env(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("AGGSIGN_DB_PATH", str(tmp_path / "env.db"))
    with SQLiteStorage() as s:
        assert s.db_path == (tmp_path / "env.db").resolve()


def test_schema_creation(storage: SQLiteStorage):
    cursor = storage.conn.execute("PRAGMA table_info(attestations)")
    columns = {row[1] for row in cursor.fetchall()}
    assert columns == {
        "batch_id", "range_start", "range_end", "program_id",
        "signer", "digest", "journal", "seal",
    }


def test_save_and_load_batch(storage: SQLiteStorage, signed_batch):
    bid = storage.save_batch(signed_batch)
    assert bid == batch_id(signed_batch)
    assert storage.load_batch(bid) == signed_batch
    assert storage.list_batches() == [bid]


def test_save_batch_idempotent(storage: SQLiteStorage, signed_batch):
    storage.save_batch(signed_batch)
    storage.save_batch(signed_batch)
    assert len(storage.list_batches()) == 1


def test_load_unknown_batch(storage: SQLiteStorage):
    with pytest.raises(KeyError):
        storage.load_batch("0xdoesnotexist")


def test_attestations_persist(storage: SQLiteStorage, signed_batch, messages):
    bid = storage.save_batch(signed_batch)
    results = attest_many(signed_batch.requests(), DevModeProver())
    for rng, att in zip(signed_batch.ranges, results):
        storage.append_attestation(bid, rng, att)

    loaded = storage.load_attestations(bid)
    assert [rng for rng, _ in loaded] == list(signed_batch.ranges)
    assert [att for _, att in loaded] == results

    found = storage.find_by_digest(message_digest(messages[1]))
    assert found == [results[1]]


def test_tampered_ranges_detected_on_load(storage: SQLiteStorage, signed_batch):
    bid = storage.save_batch(signed_batch)
    storage.conn.execute(
        "UPDATE batches SET ranges_json = ? WHERE batch_id = ?",
        ('[{"end":10,"start":0}]', bid),
    )
    with pytest.raises(ValueError):
        storage.load_batch(bid)


def test_reopen_database(temp_db_path: Path, signed_batch):
    with SQLiteStorage(temp_db_path) as s:
        bid = s.save_batch(signed_batch)
        s.append_attestation(bid, signed_batch.ranges[0], attest(signed_batch.request_for(0), DevModeProver()))

    with SQLiteStorage(temp_db_path) as s:
        assert s.load_batch(bid) == signed_batch
        assert len(s.load_attestations(bid)) == 1


def test_closed_storage(temp_db_path: Path):
    s = SQLiteStorage(temp_db_path)
    s.close()
    with pytest.raises(RuntimeError):
        s.list_batches()


def test_create_storage_from_config(temp_db_path: Path):
    with create_storage(StorageConfig(uri=f"sqlite://{temp_db_path}")) as s:
        assert s.db_path == temp_db_path.resolve()


def test_create_storage_without_uri_uses_default(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("AGGSIGN_DB_PATH", str(tmp_path / "default.db"))
    with create_storage(StorageConfig()) as s:
        assert isinstance(s, SQLiteStorage)
        assert s.db_path == (tmp_path / "default.db").resolve()
    with create_storage() as s:
        assert s.db_path == (tmp_path / "default.db").resolve()
