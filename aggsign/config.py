# aggsign/config.py
from __future__ import annotations

import os
from typing import List, Literal, Optional

import yaml
from pydantic import BaseModel, Field


class ProverConfig(BaseModel):
    """Proving backend selection. Passed explicitly to create_prover and attest_many."""

    backend: Literal["dev", "executor"] = "dev"
    executor_key: Optional[str] = None
    max_workers: int = 4
    retries: int = 2


class VerifierConfig(BaseModel):
    """Which seals a verifier accepts."""

    trusted_executors: List[str] = Field(default_factory=list)
    allow_dev_mode: bool = False


class StorageConfig(BaseModel):
    uri: Optional[str] = None


class AggsignConfig(BaseModel):
    """Top-level configuration model."""

    prover: ProverConfig = Field(default_factory=ProverConfig)
    verifier: VerifierConfig = Field(default_factory=VerifierConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)


def _env_flag(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def load_config(path: Optional[str] = None) -> AggsignConfig:
    """Load configuration from YAML file, then apply environment overrides.

    Args:
        path: Optional path to config file. Falls back to AGGSIGN_CONFIG env
            variable or 'aggsign.yaml' in the current directory.
    """

    config_path = path or os.getenv("AGGSIGN_CONFIG", "aggsign.yaml")
    data: dict = {}
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

    prover = data["prover"] = data.get("prover") or {}
    verifier = data["verifier"] = data.get("verifier") or {}
    storage = data["storage"] = data.get("storage") or {}

    backend = os.getenv("AGGSIGN_PROVER")
    if backend:
        prover["backend"] = backend
    executor_key = os.getenv("AGGSIGN_EXECUTOR_KEY")
    if executor_key:
        prover["executor_key"] = executor_key
    max_workers = os.getenv("AGGSIGN_MAX_WORKERS")
    if max_workers:
        prover["max_workers"] = max_workers
    retries = os.getenv("AGGSIGN_RETRIES")
    if retries:
        prover["retries"] = retries
    dev_mode = os.getenv("AGGSIGN_DEV_MODE")
    if dev_mode:
        verifier["allow_dev_mode"] = _env_flag(dev_mode)
    db_path = os.getenv("AGGSIGN_DB_PATH")
    if db_path:
        storage["uri"] = f"sqlite://{db_path}"

    return AggsignConfig(**data)
