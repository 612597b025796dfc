"""Exception hierarchy for the compile, deploy and signing helpers."""
from __future__ import annotations

from typing import Optional


class HarnessError(Exception):
    """Base class for every failure raised by :mod:`contract_harness`."""


class CompilationError(HarnessError):
    """Raised when solc rejects a source file or the contract is unusable."""

    def __init__(self, message: str, diagnostics: str = "") -> None:
        super().__init__(message if not diagnostics else f"{message}\n{diagnostics}")
        self.diagnostics = diagnostics


class NotFoundError(HarnessError, FileNotFoundError):
    """Raised when a source or artifact path does not exist."""

    def __init__(self, path: object) -> None:
        super().__init__(f"No such file: {path}")
        self.path = path


class DeploymentError(HarnessError):
    """Base class for failures while submitting or awaiting a deployment."""

    def __init__(self, message: str, transaction_hash: Optional[str] = None) -> None:
        super().__init__(message)
        self.transaction_hash = transaction_hash


class SubmissionError(DeploymentError):
    """The node refused the contract-creation transaction."""


class RevertError(DeploymentError):
    """The constructor reverted or left no code behind."""

    def __init__(
        self,
        message: str,
        transaction_hash: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> None:
        super().__init__(message, transaction_hash)
        self.reason = reason


class DeploymentTimeoutError(DeploymentError, TimeoutError):
    """The receipt did not appear within the wait budget.

    The transaction was submitted and may still be mined later.
    """

    def __init__(self, message: str, transaction_hash: Optional[str] = None, timeout: float = 0.0) -> None:
        super().__init__(message, transaction_hash)
        self.timeout = timeout


class WaitCancelledError(DeploymentError):
    """The caller abandoned the receipt wait. The transaction is left as is."""


class InvalidKeyError(HarnessError, ValueError):
    """The private key is not a valid secp256k1 scalar."""


class ScenarioAssertionError(HarnessError, AssertionError):
    """A scripted expectation about a contract call did not hold."""


__all__ = [
    "CompilationError",
    "DeploymentError",
    "DeploymentTimeoutError",
    "HarnessError",
    "InvalidKeyError",
    "NotFoundError",
    "RevertError",
    "ScenarioAssertionError",
    "SubmissionError",
    "WaitCancelledError",
]
