#!/usr/bin/env python3
"""Compile a Solidity contract and deploy it to the configured node."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Sequence

from dotenv import load_dotenv

from contract_harness.chain import connect, get_accounts
from contract_harness.compiler import compile_contract
from contract_harness.config import HarnessConfig
from contract_harness.deployment import deploy
from contract_harness.errors import HarnessError


def _parse_constructor_arg(raw: str) -> Any:
    """Decode ``--arg`` values as JSON when possible, otherwise keep the string."""

    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("source", type=Path, help="Path to the Solidity source file")
    parser.add_argument("contract", help="Name of the contract to deploy")
    parser.add_argument(
        "--arg",
        dest="args",
        action="append",
        default=[],
        help="Constructor argument (repeat in order). JSON literals are decoded, e.g. 10 or true.",
    )
    parser.add_argument("--rpc-url", default=None, help="JSON-RPC endpoint. Defaults to HARNESS_RPC_URL.")
    parser.add_argument("--sender", default=None, help="Deployer address. Defaults to the node's first account.")
    parser.add_argument("--gas", type=int, default=None, help="Gas limit. Defaults to HARNESS_GAS_LIMIT.")
    parser.add_argument("--timeout", type=float, default=None, help="Seconds to wait for inclusion.")
    parser.add_argument("--build-dir", type=Path, default=None, help="Write the compiled artifact here.")
    parser.add_argument("--json", action="store_true", help="Emit the deployment summary as JSON.")
    parser.add_argument("--log-level", default="INFO", help="Python logging level (default: INFO)")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    load_dotenv()
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    constructor_args: List[Any] = [_parse_constructor_arg(value) for value in args.args]
    try:
        config = HarnessConfig.from_env()
        artifact = compile_contract(args.source, args.contract, config=config, build_dir=args.build_dir)
        client = connect(args.rpc_url or config.rpc_url)
        sender = args.sender or get_accounts(client)[0]
        deployed = deploy(
            client,
            artifact,
            constructor_args,
            sender,
            config.gas_limit if args.gas is None else args.gas,
            timeout=args.timeout,
            config=config,
        )
    except (HarnessError, ConnectionError, ValueError, IndexError) as exc:
        print(f"[❌] {exc}", file=sys.stderr)
        return 1

    summary = {
        "contract": artifact.contract_name,
        "address": deployed.address,
        "transactionHash": deployed.transaction_hash,
        "blockNumber": deployed.block_number,
        "sender": sender,
    }
    if args.json:
        json.dump(summary, sys.stdout, indent=2)
        sys.stdout.write("\n")
    else:
        print(f"[✅] {artifact.contract_name} deployed at {deployed.address}")
        print(f"Tx Hash: {deployed.transaction_hash} (block {deployed.block_number})")
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
