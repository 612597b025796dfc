"""In-memory stand-ins for the web3 client and well-known dev credentials."""
from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Dict, List, Optional

from web3.exceptions import TransactionNotFound

# Account #0 of the default hardhat/anvil mnemonic.
DEV_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
DEV_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

SENDER = "0x" + "aa" * 20
CONTRACT_ADDRESS = "0x" + "bb" * 20
TX_HASH = b"\x11" * 32


class FakeConstructor:
    def __init__(self, eth: "FakeEth", args: tuple) -> None:
        self._eth = eth
        self._args = args

    def transact(self, tx: Dict[str, Any]) -> bytes:
        self._eth.sent.append({"args": self._args, "tx": tx})
        if self._eth.submit_error is not None:
            raise self._eth.submit_error
        return TX_HASH


class FakeEth:
    """Records submissions and replays a scripted sequence of receipts."""

    def __init__(self) -> None:
        self.sent: List[Dict[str, Any]] = []
        self.factories: List[Dict[str, Any]] = []
        self.submit_error: Optional[Exception] = None
        self.receipts: List[Optional[Dict[str, Any]]] = []
        self.code = b"\x60\x00"
        self.receipt_polls = 0

    def contract(self, address: Optional[str] = None, abi: Any = None, bytecode: Any = None):
        self.factories.append({"address": address, "abi": abi, "bytecode": bytecode})
        return SimpleNamespace(
            address=address,
            abi=abi,
            constructor=lambda *args: FakeConstructor(self, args),
        )

    def get_transaction_receipt(self, tx_hash: str) -> Dict[str, Any]:
        self.receipt_polls += 1
        receipt = self.receipts.pop(0) if self.receipts else None
        if receipt is None:
            raise TransactionNotFound(f"Transaction {tx_hash} not found")
        return receipt

    def get_code(self, address: str) -> bytes:
        return self.code
