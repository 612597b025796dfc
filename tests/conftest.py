"""Shared fixtures for the harness test-suite."""
from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Dict

import pytest

from chain_fakes import CONTRACT_ADDRESS, FakeEth


@pytest.fixture
def fake_client() -> SimpleNamespace:
    return SimpleNamespace(eth=FakeEth())


@pytest.fixture
def mined_receipt() -> Dict[str, Any]:
    return {"status": 1, "contractAddress": CONTRACT_ADDRESS, "blockNumber": 7}
