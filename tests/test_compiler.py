from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

import pytest
import solcx
from solcx.exceptions import SolcError

from contract_harness.compiler import compile_contract, load_artifact, write_artifact
from contract_harness.config import HarnessConfig
from contract_harness.errors import CompilationError, NotFoundError

SOURCE = """// SPDX-License-Identifier: MIT
pragma solidity ^0.8.0;

contract Counter {
    uint256 public count;
    constructor(uint256 start) { count = start; }
}
"""

COUNTER_ABI = [
    {"inputs": [{"internalType": "uint256", "name": "start", "type": "uint256"}], "stateMutability": "nonpayable", "type": "constructor"},
    {"inputs": [], "name": "count", "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}], "stateMutability": "view", "type": "function"},
]


def _output(bytecode: str = "6080604052", errors: list | None = None) -> Dict[str, Any]:
    output: Dict[str, Any] = {
        "contracts": {"Counter.sol": {"Counter": {"abi": COUNTER_ABI, "evm": {"bytecode": {"object": bytecode}}}}},
    }
    if errors is not None:
        output["errors"] = errors
    return output


@pytest.fixture
def source_file(tmp_path: Path) -> Path:
    path = tmp_path / "Counter.sol"
    path.write_text(SOURCE, encoding="utf-8")
    return path


@pytest.fixture
def installed(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(solcx, "get_installed_solc_versions", lambda: ["0.8.17"])


def _fake_compiler(monkeypatch: pytest.MonkeyPatch, result: Any) -> Dict[str, Any]:
    captured: Dict[str, Any] = {}

    def fake_compile_standard(input_data, **kwargs):
        captured["input"] = input_data
        captured["kwargs"] = kwargs
        if isinstance(result, Exception):
            raise result
        return result

    monkeypatch.setattr(solcx, "compile_standard", fake_compile_standard)
    return captured


def test_compile_contract_extracts_abi_and_bytecode(monkeypatch, source_file, installed):
    captured = _fake_compiler(monkeypatch, _output())

    artifact = compile_contract(source_file, "Counter", config=HarnessConfig(evm_version="paris"))

    assert artifact.contract_name == "Counter"
    assert list(artifact.abi) == COUNTER_ABI
    assert artifact.bytecode == bytes.fromhex("6080604052")
    assert artifact.bytecode_hex == "0x6080604052"
    assert artifact.constructor_inputs[0]["name"] == "start"
    assert artifact.compiler_version == "0.8.17"

    settings = captured["input"]["settings"]
    assert captured["input"]["sources"]["Counter.sol"]["content"] == SOURCE
    assert settings["evmVersion"] == "paris"
    assert settings["optimizer"] == {"enabled": True, "runs": 200}
    assert captured["kwargs"]["solc_version"] == "0.8.17"


def test_compile_contract_missing_source_raises_not_found(tmp_path):
    with pytest.raises(NotFoundError) as excinfo:
        compile_contract(tmp_path / "Missing.sol", "Missing")
    assert isinstance(excinfo.value, FileNotFoundError)


def test_syntax_error_raises_compilation_error_with_diagnostics(monkeypatch, source_file, installed):
    error = SolcError(
        message="ParserError: Expected ';' but got '}'",
        command=["solc", "--standard-json"],
        return_code=1,
        stdin_data="",
        stdout_data="",
        stderr_data="",
    )
    _fake_compiler(monkeypatch, error)

    with pytest.raises(CompilationError) as excinfo:
        compile_contract(source_file, "Counter")

    assert "ParserError" in excinfo.value.diagnostics
    assert source_file.read_text(encoding="utf-8") == SOURCE


def test_error_entries_in_output_are_fatal(monkeypatch, source_file, installed):
    errors = [
        {"severity": "warning", "formattedMessage": "Warning: unused variable"},
        {"severity": "error", "formattedMessage": "TypeError: bad type"},
    ]
    _fake_compiler(monkeypatch, _output(errors=errors))

    with pytest.raises(CompilationError) as excinfo:
        compile_contract(source_file, "Counter")

    assert "TypeError: bad type" in excinfo.value.diagnostics
    assert "unused variable" not in excinfo.value.diagnostics


def test_missing_contract_name_lists_available_contracts(monkeypatch, source_file, installed):
    _fake_compiler(monkeypatch, _output())

    with pytest.raises(CompilationError) as excinfo:
        compile_contract(source_file, "NFT")

    assert "Counter" in excinfo.value.diagnostics


@pytest.mark.parametrize("bytecode", ["", "6080__$abcdef$__6040"])
def test_undeployable_bytecode_is_rejected(monkeypatch, source_file, installed, bytecode):
    _fake_compiler(monkeypatch, _output(bytecode=bytecode))

    with pytest.raises(CompilationError):
        compile_contract(source_file, "Counter")


def test_missing_compiler_without_install_flag(monkeypatch, source_file):
    monkeypatch.setattr(solcx, "get_installed_solc_versions", lambda: [])
    _fake_compiler(monkeypatch, _output())

    with pytest.raises(CompilationError) as excinfo:
        compile_contract(source_file, "Counter")
    assert "0.8.17" in str(excinfo.value)


def test_missing_compiler_is_installed_when_enabled(monkeypatch, source_file):
    installs: list[str] = []
    monkeypatch.setattr(solcx, "get_installed_solc_versions", lambda: [])
    monkeypatch.setattr(solcx, "install_solc", lambda version: installs.append(version))
    _fake_compiler(monkeypatch, _output())

    compile_contract(source_file, "Counter", config=HarnessConfig(install_solc=True))

    assert installs == ["0.8.17"]


def test_build_dir_receives_reloadable_artifact(monkeypatch, source_file, installed, tmp_path):
    _fake_compiler(monkeypatch, _output())
    build_dir = tmp_path / "build"

    artifact = compile_contract(source_file, "Counter", build_dir=build_dir)

    payload = json.loads((build_dir / "Counter.json").read_text(encoding="utf-8"))
    assert payload["bytecode"] == "0x6080604052"
    assert load_artifact(build_dir / "Counter.json") == artifact


def test_load_artifact_errors(tmp_path):
    with pytest.raises(NotFoundError):
        load_artifact(tmp_path / "Nope.json")

    broken = tmp_path / "Broken.json"
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(CompilationError):
        load_artifact(broken)

    incomplete = tmp_path / "Incomplete.json"
    incomplete.write_text(json.dumps({"contractName": "X"}), encoding="utf-8")
    with pytest.raises(CompilationError):
        load_artifact(incomplete)


def test_write_artifact_creates_directory(monkeypatch, source_file, installed, tmp_path):
    _fake_compiler(monkeypatch, _output())
    artifact = compile_contract(source_file, "Counter")

    path = write_artifact(artifact, tmp_path / "nested" / "out")

    assert path.name == "Counter.json"
    assert path.exists()
