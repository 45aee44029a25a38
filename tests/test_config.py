# tests/test_config.py
from pathlib import Path

import pytest
from pydantic import ValidationError

from aggsign.config import AggsignConfig, load_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ("AGGSIGN_CONFIG", "AGGSIGN_PROVER", "AGGSIGN_EXECUTOR_KEY",
                "AGGSIGN_MAX_WORKERS", "AGGSIGN_RETRIES", "AGGSIGN_DEV_MODE", "AGGSIGN_DB_PATH"):
        monkeypatch.delenv(var, raising=False)


def test_defaults(tmp_path: Path):
    config = load_config(str(tmp_path / "missing.yaml"))
    assert config == AggsignConfig()
    assert config.prover.backend == "dev"
    assert config.verifier.allow_dev_mode is False
    assert config.storage.uri is None


def test_yaml_file(tmp_path: Path):
    path = tmp_path / "aggsign.yaml"
    path.write_text(
        "prover:\n"
        "  backend: executor\n"
        "  executor_key: '0x" + "11" * 32 + "'\n"
        "  max_workers: 8\n"
        "verifier:\n"
        "  trusted_executors: ['0x" + "22" * 20 + "']\n"
    )
    config = load_config(str(path))
    assert config.prover.backend == "executor"
    assert config.prover.max_workers == 8
    assert config.verifier.trusted_executors == ["0x" + "22" * 20]


def test_env_overrides(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("AGGSIGN_PROVER", "executor")
    monkeypatch.setenv("AGGSIGN_MAX_WORKERS", "2")
    monkeypatch.setenv("AGGSIGN_DEV_MODE", "true")
    monkeypatch.setenv("AGGSIGN_DB_PATH", str(tmp_path / "a.db"))
    config = load_config(str(tmp_path / "missing.yaml"))
    assert config.prover.backend == "executor"
    assert config.prover.max_workers == 2
    assert config.verifier.allow_dev_mode is True
    assert config.storage.uri == f"sqlite://{tmp_path / 'a.db'}"


def test_invalid_backend(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("AGGSIGN_PROVER", "bonsai")
    with pytest.raises(ValidationError):
        load_config(str(tmp_path / "missing.yaml"))


def test_config_path_from_env(tmp_path: Path, monkeypatch):
    path = tmp_path / "custom.yaml"
    path.write_text("verifier:\n  allow_dev_mode: true\n")
    monkeypatch.setenv("AGGSIGN_CONFIG", str(path))
    assert load_config().verifier.allow_dev_mode is True


def test_retries_override(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("AGGSIGN_RETRIES", "5")
    config = load_config(str(tmp_path / "missing.yaml"))
    assert config.prover.retries == 5
    assert config.prover.max_workers == 4
