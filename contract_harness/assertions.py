"""Expectations for scripted contract calls: "succeeds" or "reverts with X"."""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from web3 import Web3
from web3.exceptions import ContractLogicError, Web3Exception

from .errors import ScenarioAssertionError

_LOGGER = logging.getLogger(__name__)

_CALL_ERRORS = (ContractLogicError, Web3Exception, ValueError)


def _replay_revert_reason(function_call: Any, tx: Mapping[str, Any], block_number: Optional[int]) -> Optional[str]:
    """Re-run a mined, failed transaction as ``eth_call`` to read its revert reason."""

    block = block_number - 1 if block_number else "latest"
    try:
        function_call.call(dict(tx), block_identifier=block)
    except _CALL_ERRORS as exc:
        return str(exc)
    return None


def expect_success(
    client: Web3,
    function_call: Any,
    tx: Mapping[str, Any],
    *,
    label: str,
    timeout: float = 120.0,
) -> Mapping[str, Any]:
    """Send ``function_call`` and require a successful receipt."""

    try:
        tx_hash = function_call.transact(dict(tx))
    except _CALL_ERRORS as exc:
        raise ScenarioAssertionError(f"{label}: expected success, got {exc}") from exc

    receipt = client.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
    if receipt["status"] == 0:
        reason = _replay_revert_reason(function_call, tx, receipt.get("blockNumber"))
        raise ScenarioAssertionError(f"{label}: expected success, transaction reverted ({reason or 'no reason'})")
    _LOGGER.info("%s passed", label)
    return receipt


def expect_revert(
    client: Web3,
    function_call: Any,
    tx: Mapping[str, Any],
    reason: str,
    *,
    label: str,
    timeout: float = 120.0,
) -> str:
    """Send ``function_call`` and require it to revert with ``reason`` in the message.

    A revert carrying a different message is re-raised unchanged. Returns the
    revert message that matched.
    """

    try:
        tx_hash = function_call.transact(dict(tx))
    except _CALL_ERRORS as exc:
        message = str(exc)
        if reason not in message:
            raise
        _LOGGER.info("%s passed", label)
        return message

    # Nodes without automatic revert reporting mine the failed transaction.
    receipt = client.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
    if receipt["status"] != 0:
        raise ScenarioAssertionError(f"{label}: expected revert {reason!r}, transaction succeeded")
    message = _replay_revert_reason(function_call, tx, receipt.get("blockNumber"))
    if message is None or reason not in message:
        raise ScenarioAssertionError(f"{label}: expected revert {reason!r}, got {message or 'no reason'}")
    _LOGGER.info("%s passed", label)
    return message


__all__ = ["expect_revert", "expect_success"]
