#!/usr/bin/env python3
"""Exercise the ERC721A ``NFT`` sale flow against a local development node.

The node must expose at least six unlocked accounts (ganache/anvil defaults):

* ``accounts[0]`` deploys and holds the admin role,
* ``accounts[1]`` receives sale payments,
* ``accounts[2]`` is the controller allowed to configure the sale,
* ``accounts[3]`` is the buyer.
"""
from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Sequence

from dotenv import load_dotenv
from web3 import Web3
from web3.exceptions import Web3Exception

from contract_harness.assertions import expect_revert, expect_success
from contract_harness.chain import connect, get_accounts
from contract_harness.compiler import compile_contract
from contract_harness.config import HarnessConfig
from contract_harness.deployment import deploy
from contract_harness.errors import HarnessError

_LOGGER = logging.getLogger("nft_sale_scenario")

# keccak256("CONTROLLER_ROLE") as reported by AccessControl
CONTROLLER_ROLE = "0x4913d4da5605218c48834fed44bccb6bdddd90d4fdf48923cf059a07f6fe4a77"
MISSING_CONTROLLER_ROLE = f"missing role {CONTROLLER_ROLE}"
SALE_NOT_ENABLED = "Sale not enabled"
INSUFFICIENT_INPUT = "Insufficent input amount"

DEFAULT_SOURCE = Path("build/ERC721A-NFT.sol")
SCENARIO_GAS = 1_000_000_000


def run_scenario(client: Web3, config: HarnessConfig, source: Path, *, gas: int = SCENARIO_GAS) -> None:
    accounts = get_accounts(client)
    if len(accounts) <= 5:
        raise HarnessError(f"Scenario needs more than 5 unlocked accounts, node has {len(accounts)}")
    admin, receiver, controller, buyer = accounts[0], accounts[1], accounts[2], accounts[3]

    artifact = compile_contract(source, "NFT", config=config)
    deployed = deploy(
        client,
        artifact,
        ["NFTName", "NFTSymbol", "https://nft.com/", 10, receiver, controller],
        admin,
        gas,
        config=config,
    )
    _LOGGER.info("NFT address: %s", deployed.address)
    nft = deployed.bind(client).functions
    price = Web3.to_wei(1, "ether")

    expect_revert(client, nft.batchMint(1), {"from": buyer}, SALE_NOT_ENABLED, label="1. batchMint before sale")
    expect_revert(
        client, nft.setSalePrice(price), {"from": admin}, MISSING_CONTROLLER_ROLE, label="2. setSalePrice as admin"
    )
    expect_success(client, nft.setSalePrice(price), {"from": controller}, label="3. setSalePrice as controller")
    expect_revert(client, nft.batchMint(1), {"from": buyer}, SALE_NOT_ENABLED, label="4. batchMint with price only")
    expect_revert(
        client, nft.toggleSaleEnable(True), {"from": admin}, MISSING_CONTROLLER_ROLE, label="5. enableSale as admin"
    )
    expect_success(client, nft.toggleSaleEnable(True), {"from": controller}, label="6. enableSale as controller")
    expect_success(client, nft.setDefaultSale(True), {"from": controller}, label="7. setDefaultSale")
    expect_revert(
        client,
        nft.batchMint(1),
        {"from": buyer, "gas": gas, "value": Web3.to_wei("0.9", "ether")},
        INSUFFICIENT_INPUT,
        label="8. batchMint underpaid",
    )
    expect_success(
        client,
        nft.batchMint(1),
        {"from": buyer, "gas": gas, "value": Web3.to_wei(1, "ether")},
        label="9. batchMint one",
    )
    expect_success(
        client,
        nft.batchMint(2),
        {"from": buyer, "gas": gas, "value": Web3.to_wei(3, "ether")},
        label="10. batchMint two",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--source", type=Path, default=DEFAULT_SOURCE, help="Flattened ERC721A-NFT source")
    parser.add_argument("--rpc-url", default=None, help="JSON-RPC endpoint. Defaults to HARNESS_RPC_URL.")
    parser.add_argument("--startup-delay", type=float, default=1.0, help="Seconds to wait for the node first.")
    parser.add_argument("--log-level", default="INFO", help="Python logging level (default: INFO)")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    load_dotenv()
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = HarnessConfig.from_env()
    time.sleep(args.startup_delay)
    try:
        client = connect(args.rpc_url or config.rpc_url)
        run_scenario(client, config, args.source)
    except (HarnessError, ConnectionError, Web3Exception, ValueError) as exc:
        print(f"[❌] {exc}", file=sys.stderr)
        return 1

    print("[✅] NFT sale scenario passed")
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
