"""Environment-driven configuration for the harness toolkit."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from .signing import RecoveryConvention, SigningKey

DEFAULT_RPC_URL = "http://localhost:8545"
# Bytecode depends on the exact compiler release; keep it pinned.
DEFAULT_SOLC_VERSION = "0.8.17"
DEFAULT_EVM_VERSION = "london"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def _get_env() -> Mapping[str, str]:
    """Expose ``os.environ`` (after ``load_dotenv``) separately to simplify testing."""

    load_dotenv()
    return os.environ


def _parse_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw.strip(), 0)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def _parse_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def _parse_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    text = raw.strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean flag, got {raw!r}")


@dataclass(frozen=True)
class HarnessConfig:
    """Fixed settings shared by the compiler, the deployer and the CLIs."""

    rpc_url: str = DEFAULT_RPC_URL
    solc_version: str = DEFAULT_SOLC_VERSION
    evm_version: str = DEFAULT_EVM_VERSION
    optimizer_runs: int = 200
    install_solc: bool = False
    build_dir: Optional[Path] = None
    gas_limit: int = 10_000_000
    receipt_timeout: float = 120.0
    poll_latency: float = 0.1
    recovery_convention: RecoveryConvention = RecoveryConvention.ETHEREUM

    def __post_init__(self) -> None:
        if self.gas_limit <= 0:
            raise ValueError("gas_limit must be positive")
        if self.receipt_timeout <= 0:
            raise ValueError("receipt_timeout must be positive")
        if self.poll_latency <= 0:
            raise ValueError("poll_latency must be positive")
        if self.optimizer_runs < 0:
            raise ValueError("optimizer_runs cannot be negative")

    @property
    def optimizer_enabled(self) -> bool:
        return self.optimizer_runs > 0

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "HarnessConfig":
        """Build a config from ``HARNESS_*`` variables.

        Parameters
        ----------
        env:
            Optional mapping used to resolve environment variables. When omitted
            ``os.environ`` (after ``load_dotenv``) is used.

        Raises
        ------
        ValueError
            If a variable is present but cannot be parsed.
        """

        if env is None:
            env = _get_env()

        build_dir = env.get("HARNESS_BUILD_DIR")
        raw_v = env.get("HARNESS_SIGNATURE_V", "27")
        try:
            convention = RecoveryConvention.from_offset(int(raw_v.strip(), 0))
        except ValueError as exc:
            raise ValueError(f"HARNESS_SIGNATURE_V must be 27 or 0, got {raw_v!r}") from exc

        return cls(
            rpc_url=env.get("HARNESS_RPC_URL") or DEFAULT_RPC_URL,
            solc_version=env.get("HARNESS_SOLC_VERSION") or DEFAULT_SOLC_VERSION,
            evm_version=env.get("HARNESS_EVM_VERSION") or DEFAULT_EVM_VERSION,
            optimizer_runs=_parse_int(env, "HARNESS_OPTIMIZER_RUNS", 200),
            install_solc=_parse_bool(env, "HARNESS_INSTALL_SOLC", False),
            build_dir=Path(build_dir).expanduser() if build_dir else None,
            gas_limit=_parse_int(env, "HARNESS_GAS_LIMIT", 10_000_000),
            receipt_timeout=_parse_float(env, "HARNESS_RECEIPT_TIMEOUT", 120.0),
            poll_latency=_parse_float(env, "HARNESS_POLL_LATENCY", 0.1),
            recovery_convention=convention,
        )


def load_signing_key(env: Mapping[str, str] | None = None) -> SigningKey:
    """Return the signer credential configured in the environment.

    ``HARNESS_SIGNER_KEY`` wins over the generic ``PRIVATE_KEY``.

    Raises
    ------
    RuntimeError
        If no key is present in the environment.
    InvalidKeyError
        If the configured key is not a valid secp256k1 scalar.
    """

    if env is None:
        env = _get_env()

    secret = env.get("HARNESS_SIGNER_KEY") or env.get("PRIVATE_KEY")
    if not secret:
        raise RuntimeError("Set HARNESS_SIGNER_KEY (or PRIVATE_KEY) before signing authorizations.")
    return SigningKey.from_hex(secret)


__all__ = [
    "DEFAULT_EVM_VERSION",
    "DEFAULT_RPC_URL",
    "DEFAULT_SOLC_VERSION",
    "HarnessConfig",
    "load_signing_key",
]
