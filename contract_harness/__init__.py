"""Compile, deploy and sign helpers for scripted contract test runs."""
from __future__ import annotations

from .compiler import CompiledArtifact, compile_contract, load_artifact, write_artifact
from .config import HarnessConfig, load_signing_key
from .deployment import DeployedContract, DeploymentRequest, deploy, deploy_contract
from .errors import (
    CompilationError,
    DeploymentError,
    DeploymentTimeoutError,
    HarnessError,
    InvalidKeyError,
    NotFoundError,
    RevertError,
    ScenarioAssertionError,
    SubmissionError,
    WaitCancelledError,
)
from .signing import (
    RecoveryConvention,
    Signature,
    SigningKey,
    authorization_digest,
    pack_authorization,
    recover_authorization_signer,
    sign_authorization,
    signing_digest,
)

__all__ = [
    "CompilationError",
    "CompiledArtifact",
    "DeployedContract",
    "DeploymentError",
    "DeploymentRequest",
    "DeploymentTimeoutError",
    "HarnessConfig",
    "HarnessError",
    "InvalidKeyError",
    "NotFoundError",
    "RecoveryConvention",
    "RevertError",
    "ScenarioAssertionError",
    "Signature",
    "SigningKey",
    "SubmissionError",
    "WaitCancelledError",
    "authorization_digest",
    "compile_contract",
    "deploy",
    "deploy_contract",
    "load_artifact",
    "load_signing_key",
    "pack_authorization",
    "recover_authorization_signer",
    "sign_authorization",
    "signing_digest",
    "write_artifact",
]
