"""Compile Solidity sources into ABI/bytecode artifacts with a pinned solc."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import solcx
from solcx.exceptions import SolcError, SolcNotInstalled

from .config import HarnessConfig
from .errors import CompilationError, NotFoundError

_LOGGER = logging.getLogger(__name__)

UNLINKED_LIBRARY_MARKER = "__$"

PathLike = Union[str, Path]


@dataclass(frozen=True)
class CompiledArtifact:
    """ABI and creation bytecode for one contract.

    ``abi`` is kept exactly as solc emitted it so contract bindings built on top
    of the deployed address see the same descriptors.
    """

    contract_name: str
    abi: Tuple[Mapping[str, Any], ...]
    bytecode: bytes
    source_path: Optional[Path] = None
    compiler_version: Optional[str] = None

    @property
    def bytecode_hex(self) -> str:
        return "0x" + self.bytecode.hex()

    @property
    def constructor_inputs(self) -> List[Mapping[str, Any]]:
        for entry in self.abi:
            if entry.get("type") == "constructor":
                return list(entry.get("inputs", []))
        return []

    def as_dict(self) -> Dict[str, Any]:
        """Serialise to the JSON artifact layout written into the build directory."""

        return {
            "contractName": self.contract_name,
            "sourceName": str(self.source_path) if self.source_path else None,
            "abi": list(self.abi),
            "bytecode": self.bytecode_hex,
            "compiler": {"version": self.compiler_version},
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "CompiledArtifact":
        try:
            name = payload["contractName"]
            abi = payload["abi"]
            bytecode = _decode_bytecode(name, payload["bytecode"])
        except (KeyError, TypeError) as exc:
            raise CompilationError(f"Malformed artifact: missing {exc}") from exc
        if not isinstance(abi, list):
            raise CompilationError(f"Malformed artifact for {name}: abi must be a list")
        source = payload.get("sourceName")
        compiler = payload.get("compiler") or {}
        return cls(
            contract_name=name,
            abi=tuple(abi),
            bytecode=bytecode,
            source_path=Path(source) if source else None,
            compiler_version=compiler.get("version"),
        )


def _decode_bytecode(contract_name: str, bytecode: str) -> bytes:
    if not bytecode:
        raise CompilationError(
            f"{contract_name} has no creation bytecode (abstract contract or interface?)"
        )
    if UNLINKED_LIBRARY_MARKER in bytecode:
        raise CompilationError(f"{contract_name} has unlinked library placeholders")
    text = bytecode[2:] if bytecode.startswith("0x") else bytecode
    try:
        return bytes.fromhex(text)
    except ValueError as exc:
        raise CompilationError(f"{contract_name} bytecode is not valid hex") from exc


def _standard_input(source_name: str, content: str, config: HarnessConfig) -> Dict[str, Any]:
    return {
        "language": "Solidity",
        "sources": {source_name: {"content": content}},
        "settings": {
            "optimizer": {"enabled": config.optimizer_enabled, "runs": config.optimizer_runs or 200},
            "evmVersion": config.evm_version,
            "outputSelection": {"*": {"*": ["abi", "evm.bytecode.object"]}},
        },
    }


def _ensure_solc(config: HarnessConfig) -> None:
    installed = {str(version) for version in solcx.get_installed_solc_versions()}
    if config.solc_version in installed:
        return
    if not config.install_solc:
        raise CompilationError(
            f"solc {config.solc_version} is not installed; set HARNESS_INSTALL_SOLC=1 or run "
            f"`python -m solcx.install v{config.solc_version}`"
        )
    _LOGGER.info("Installing solc %s", config.solc_version)
    solcx.install_solc(config.solc_version)


def _collect_diagnostics(errors: Sequence[Mapping[str, Any]], severity: str) -> List[str]:
    return [
        str(entry.get("formattedMessage") or entry.get("message", ""))
        for entry in errors
        if entry.get("severity") == severity
    ]


def _find_contract(
    contracts: Mapping[str, Mapping[str, Any]], source_name: str, contract_name: str
) -> Optional[Mapping[str, Any]]:
    preferred = contracts.get(source_name, {})
    if contract_name in preferred:
        return preferred[contract_name]
    for unit in contracts.values():
        if contract_name in unit:
            return unit[contract_name]
    return None


def compile_contract(
    source_path: PathLike,
    contract_name: str,
    *,
    config: Optional[HarnessConfig] = None,
    build_dir: Optional[PathLike] = None,
) -> CompiledArtifact:
    """Compile ``source_path`` and return the artifact for ``contract_name``.

    Raises:
        NotFoundError: ``source_path`` does not exist.
        CompilationError: solc failed, or the contract is missing or cannot
            be deployed as-is. No partial artifact is returned.
    """

    config = config or HarnessConfig()
    path = Path(source_path).expanduser()
    if not path.is_file():
        raise NotFoundError(path)

    content = path.read_text(encoding="utf-8")
    _ensure_solc(config)

    base_dir = str(path.resolve().parent)
    _LOGGER.info("Compiling %s from %s with solc %s", contract_name, path, config.solc_version)
    try:
        output = solcx.compile_standard(
            _standard_input(path.name, content, config),
            solc_version=config.solc_version,
            base_path=base_dir,
            allow_paths=base_dir,
        )
    except SolcNotInstalled as exc:
        raise CompilationError(f"solc {config.solc_version} is not available", str(exc)) from exc
    except SolcError as exc:
        raise CompilationError(f"Compilation of {path} failed", str(exc)) from exc

    errors = output.get("errors", [])
    fatal = _collect_diagnostics(errors, "error")
    if fatal:
        raise CompilationError(f"Compilation of {path} failed", "\n".join(fatal))
    for warning in _collect_diagnostics(errors, "warning"):
        _LOGGER.warning("solc: %s", warning)

    contracts = output.get("contracts", {})
    compiled = _find_contract(contracts, path.name, contract_name)
    if compiled is None:
        available = sorted(name for unit in contracts.values() for name in unit)
        raise CompilationError(
            f"Contract {contract_name!r} not found in {path}",
            f"available contracts: {', '.join(available) or 'none'}",
        )

    bytecode = compiled.get("evm", {}).get("bytecode", {}).get("object", "")
    artifact = CompiledArtifact(
        contract_name=contract_name,
        abi=tuple(compiled.get("abi", [])),
        bytecode=_decode_bytecode(contract_name, bytecode),
        source_path=path,
        compiler_version=config.solc_version,
    )
    _LOGGER.info("Compiled %s (%d bytes of creation code)", contract_name, len(artifact.bytecode))

    target_dir = build_dir if build_dir is not None else config.build_dir
    if target_dir is not None:
        write_artifact(artifact, target_dir)
    return artifact


def write_artifact(artifact: CompiledArtifact, build_dir: PathLike) -> Path:
    """Write ``<ContractName>.json`` into ``build_dir`` and return its path."""

    directory = Path(build_dir).expanduser()
    directory.mkdir(parents=True, exist_ok=True)
    out_path = directory / f"{artifact.contract_name}.json"
    out_path.write_text(json.dumps(artifact.as_dict(), indent=2), encoding="utf-8")
    _LOGGER.debug("Wrote artifact %s", out_path)
    return out_path


def load_artifact(path: PathLike) -> CompiledArtifact:
    """Load an artifact previously written by :func:`write_artifact`."""

    artifact_path = Path(path).expanduser()
    if not artifact_path.is_file():
        raise NotFoundError(artifact_path)
    try:
        payload = json.loads(artifact_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise CompilationError(f"Artifact {artifact_path} is not valid JSON") from exc
    if not isinstance(payload, Mapping):
        raise CompilationError(f"Artifact {artifact_path} must contain a JSON object")
    return CompiledArtifact.from_dict(payload)


__all__ = [
    "CompiledArtifact",
    "compile_contract",
    "load_artifact",
    "write_artifact",
]
