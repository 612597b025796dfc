"""Deployments against an in-process EVM, and compiles against a real solc."""
from __future__ import annotations

import pytest
import solcx
from web3 import Web3

from contract_harness.chain import has_code
from contract_harness.compiler import CompiledArtifact, compile_contract
from contract_harness.config import HarnessConfig
from contract_harness.deployment import deploy
from contract_harness.errors import CompilationError, RevertError

pytest.importorskip("eth_tester")

# Copies a single STOP byte into memory and returns it as the runtime code.
RETURNS_STOP = bytes.fromhex("6001600c60003960016000f300")
# PUSH1 0 PUSH1 0 REVERT
ALWAYS_REVERTS = bytes.fromhex("60006000fd")

PINNED = HarnessConfig().solc_version

GUARDED_COUNTER = """// SPDX-License-Identifier: MIT
pragma solidity ^0.8.0;

contract Counter {
    uint256 public count;
    constructor(uint256 start) {
        require(start < 100, "start too high");
        count = start;
    }
}
"""


def _solc_installed() -> bool:
    return PINNED in {str(version) for version in solcx.get_installed_solc_versions()}


needs_solc = pytest.mark.skipif(not _solc_installed(), reason=f"solc {PINNED} is not installed")


@pytest.fixture
def w3():
    return Web3(Web3.EthereumTesterProvider())


def _artifact(name: str, bytecode: bytes) -> CompiledArtifact:
    return CompiledArtifact(contract_name=name, abi=(), bytecode=bytecode)


def test_deploy_leaves_code_at_the_returned_address(w3):
    deployed = deploy(w3, _artifact("Stop", RETURNS_STOP), [], w3.eth.accounts[0], 1_000_000)

    assert Web3.is_checksum_address(deployed.address)
    assert has_code(w3, deployed.address)
    assert bytes(w3.eth.get_code(deployed.address)) == b"\x00"
    assert deployed.block_number is not None


def test_reverting_constructor_raises_revert_error(w3):
    with pytest.raises(RevertError) as excinfo:
        deploy(w3, _artifact("Reverts", ALWAYS_REVERTS), [], w3.eth.accounts[0], 1_000_000)

    assert excinfo.value.transaction_hash


@needs_solc
def test_syntax_error_fails_compilation(tmp_path):
    source = tmp_path / "Broken.sol"
    source.write_text("pragma solidity ^0.8.0;\ncontract Broken { uint256 x = ; }\n", encoding="utf-8")

    with pytest.raises(CompilationError) as excinfo:
        compile_contract(source, "Broken", config=HarnessConfig())

    assert "Broken.sol" in str(excinfo.value)
    assert excinfo.value.diagnostics
    assert not list(tmp_path.glob("*.json"))


@needs_solc
def test_compiled_contract_deploys_and_keeps_constructor_state(tmp_path, w3):
    source = tmp_path / "Counter.sol"
    source.write_text(GUARDED_COUNTER, encoding="utf-8")
    artifact = compile_contract(source, "Counter", config=HarnessConfig())

    deployed = deploy(w3, artifact, [7], w3.eth.accounts[0], 1_000_000)

    assert deployed.bind(w3).functions.count().call() == 7


@needs_solc
def test_compiled_constructor_require_reverts_deployment(tmp_path, w3):
    source = tmp_path / "Counter.sol"
    source.write_text(GUARDED_COUNTER, encoding="utf-8")
    artifact = compile_contract(source, "Counter", config=HarnessConfig())

    with pytest.raises(RevertError):
        deploy(w3, artifact, [1000], w3.eth.accounts[0], 1_000_000)
