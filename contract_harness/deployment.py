"""Synchronous contract deployment on top of a web3 client."""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence, Tuple

from web3 import Web3
from web3.exceptions import ContractLogicError, TransactionNotFound, Web3Exception

from .compiler import CompiledArtifact
from .config import HarnessConfig
from .errors import DeploymentTimeoutError, RevertError, SubmissionError, WaitCancelledError

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeploymentRequest:
    """Everything needed to submit one contract-creation transaction."""

    artifact: CompiledArtifact
    constructor_args: Tuple[Any, ...]
    sender: str
    gas_limit: int

    def __post_init__(self) -> None:
        if isinstance(self.gas_limit, bool) or not isinstance(self.gas_limit, int) or self.gas_limit <= 0:
            raise ValueError(f"gas_limit must be a positive integer, got {self.gas_limit!r}")
        if not Web3.is_address(self.sender):
            raise ValueError(f"Invalid sender address {self.sender!r}")
        object.__setattr__(self, "constructor_args", tuple(self.constructor_args))


@dataclass(frozen=True)
class DeployedContract:
    """Address and ABI of a contract whose creation transaction was mined."""

    address: str
    abi: Tuple[Mapping[str, Any], ...]
    transaction_hash: str
    block_number: Optional[int] = None

    def bind(self, client: Web3):
        """Return a web3 contract object for calling the deployed methods."""

        return client.eth.contract(address=self.address, abi=list(self.abi))


_REVERT_MARKERS = ("revert", "vm exception")


def _rpc_error_message(exc: Exception) -> str:
    """Pull the node's message out of a JSON-RPC error, falling back to ``str(exc)``."""

    payload = exc.args[0] if exc.args else None
    if isinstance(payload, Mapping) and isinstance(payload.get("message"), str):
        return payload["message"]
    rpc_response = getattr(exc, "rpc_response", None)
    if isinstance(rpc_response, Mapping):
        error = rpc_response.get("error")
        if isinstance(error, Mapping) and isinstance(error.get("message"), str):
            return error["message"]
    return str(exc)


def _submission_revert_reason(exc: Exception) -> Optional[str]:
    """Return the node's message when it reports a constructor revert at submission."""

    message = _rpc_error_message(exc)
    lowered = message.lower()
    if any(marker in lowered for marker in _REVERT_MARKERS):
        return message
    return None


def _wait_for_receipt(
    client: Web3,
    tx_hash: str,
    timeout: float,
    poll_latency: float,
    cancel: Optional[threading.Event],
) -> Mapping[str, Any]:
    deadline = time.monotonic() + timeout
    while True:
        if cancel is not None and cancel.is_set():
            raise WaitCancelledError(f"Stopped waiting for {tx_hash}; it may still be mined", tx_hash)
        try:
            receipt = client.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            receipt = None
        if receipt is not None:
            return receipt

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise DeploymentTimeoutError(
                f"Transaction {tx_hash} was not mined within {timeout:g}s; it may still be mined",
                tx_hash,
                timeout,
            )
        delay = min(poll_latency, remaining)
        if cancel is not None:
            cancel.wait(delay)
        else:
            time.sleep(delay)


def deploy_contract(
    client: Web3,
    request: DeploymentRequest,
    *,
    timeout: Optional[float] = None,
    poll_latency: Optional[float] = None,
    cancel: Optional[threading.Event] = None,
    config: Optional[HarnessConfig] = None,
) -> DeployedContract:
    """Submit ``request`` and block until the contract is on chain.

    Args:
        client: Connected web3 client able to send from ``request.sender``.
        request: Artifact, constructor arguments, sender and gas limit.
        timeout: Seconds to wait for inclusion. Defaults to
            ``config.receipt_timeout``.
        poll_latency: Seconds between receipt polls. Defaults to
            ``config.poll_latency``.
        cancel: Optional event; setting it abandons the wait.

    Raises:
        SubmissionError: The node rejected the transaction or the arguments
            did not match the constructor.
        RevertError: The constructor reverted or no code was deployed.
        DeploymentTimeoutError: No receipt within ``timeout``.
        WaitCancelledError: ``cancel`` was set before the receipt arrived.
    """

    config = config or HarnessConfig()
    timeout = config.receipt_timeout if timeout is None else timeout
    poll_latency = config.poll_latency if poll_latency is None else poll_latency
    if timeout <= 0 or poll_latency <= 0:
        raise ValueError("timeout and poll_latency must be positive")

    artifact = request.artifact
    name = artifact.contract_name
    sender = Web3.to_checksum_address(request.sender)

    factory = client.eth.contract(abi=list(artifact.abi), bytecode=artifact.bytecode)
    try:
        constructor = factory.constructor(*request.constructor_args)
        raw_hash = constructor.transact({"from": sender, "gas": request.gas_limit})
    except ContractLogicError as exc:
        raise RevertError(f"Constructor of {name} reverted: {exc}", reason=str(exc)) from exc
    except (Web3Exception, ValueError, TypeError) as exc:
        # Automining nodes (hardhat, ganache) report constructor reverts here.
        reason = _submission_revert_reason(exc)
        if reason is not None:
            raise RevertError(f"Constructor of {name} reverted: {reason}", reason=reason) from exc
        raise SubmissionError(f"Deployment of {name} from {sender} was rejected: {exc}") from exc

    tx_hash = Web3.to_hex(raw_hash)
    _LOGGER.info("Submitted %s deployment %s from %s (gas %d)", name, tx_hash, sender, request.gas_limit)

    receipt = _wait_for_receipt(client, tx_hash, timeout, poll_latency, cancel)
    block_number = receipt.get("blockNumber")
    if receipt.get("status") == 0:
        raise RevertError(f"Constructor of {name} reverted in block {block_number}", tx_hash)

    address = receipt.get("contractAddress")
    if not address:
        raise RevertError(f"Receipt for {tx_hash} carries no contract address", tx_hash)
    address = Web3.to_checksum_address(address)
    if len(client.eth.get_code(address)) == 0:
        raise RevertError(f"{name} at {address} has no deployed code", tx_hash)

    _LOGGER.info("Deployed %s at %s in block %s", name, address, block_number)
    return DeployedContract(
        address=address,
        abi=artifact.abi,
        transaction_hash=tx_hash,
        block_number=block_number,
    )


def deploy(
    client: Web3,
    artifact: CompiledArtifact,
    constructor_args: Sequence[Any],
    sender: str,
    gas_limit: int,
    **kwargs: Any,
) -> DeployedContract:
    """Shorthand for :func:`deploy_contract` with an inline request."""

    request = DeploymentRequest(
        artifact=artifact,
        constructor_args=tuple(constructor_args),
        sender=sender,
        gas_limit=gas_limit,
    )
    return deploy_contract(client, request, **kwargs)


__all__ = ["DeployedContract", "DeploymentRequest", "deploy", "deploy_contract"]
