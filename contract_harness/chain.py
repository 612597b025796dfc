"""Thin helpers around the web3 JSON-RPC client."""
from __future__ import annotations

import logging
from typing import List, Optional

from web3 import Web3

from .config import HarnessConfig

_LOGGER = logging.getLogger(__name__)


def connect(rpc_url: Optional[str] = None, *, timeout: float = 30.0) -> Web3:
    """Return a connected ``Web3`` client for ``rpc_url`` (defaults to the local node)."""

    url = rpc_url or HarnessConfig().rpc_url
    w3 = Web3(Web3.HTTPProvider(url, request_kwargs={"timeout": timeout}))
    if not w3.is_connected():
        raise ConnectionError(f"Web3 not connected to {url}")
    _LOGGER.info("Connected to %s (chain id %s)", url, w3.eth.chain_id)
    return w3


def get_accounts(client: Web3) -> List[str]:
    """Checksummed accounts the node can send from."""

    return [Web3.to_checksum_address(account) for account in client.eth.accounts]


def has_code(client: Web3, address: str) -> bool:
    return len(client.eth.get_code(Web3.to_checksum_address(address))) > 0


__all__ = ["connect", "get_accounts", "has_code"]
