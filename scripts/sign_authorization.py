#!/usr/bin/env python3
"""Sign a (nonce, address, amount) authorization for an ecrecover verifier."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Sequence

from dotenv import load_dotenv

from contract_harness.config import HarnessConfig, load_signing_key
from contract_harness.errors import InvalidKeyError
from contract_harness.signing import RecoveryConvention, recover_authorization_signer, sign_authorization


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--nonce", required=True, type=int, help="Authorization nonce (uint256)")
    parser.add_argument("--address", required=True, help="Counterparty address packed into the message")
    parser.add_argument("--amount", required=True, type=int, help="Authorized amount (uint256, base units)")
    parser.add_argument(
        "--v-convention",
        choices=("27", "0"),
        default=None,
        help="Encode v as 27/28 (ecrecover) or 0/1. Defaults to HARNESS_SIGNATURE_V.",
    )
    parser.add_argument("--json", action="store_true", help="Emit the signature as JSON.")
    parser.add_argument("--log-level", default="WARNING", help="Python logging level (default: WARNING)")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    load_dotenv()
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = HarnessConfig.from_env()
        convention = (
            RecoveryConvention.from_offset(int(args.v_convention))
            if args.v_convention is not None
            else config.recovery_convention
        )
        with load_signing_key() as key:
            signer = key.address
            signature = sign_authorization(args.nonce, args.address, args.amount, key, convention=convention)
    except (RuntimeError, InvalidKeyError, ValueError) as exc:
        print(f"[❌] {exc}", file=sys.stderr)
        return 1

    recovered = recover_authorization_signer(args.nonce, args.address, args.amount, signature)
    if recovered != signer:  # pragma: no cover - would mean a broken signing pipeline
        print(f"[❌] Signature recovers {recovered}, expected {signer}", file=sys.stderr)
        return 1

    v, r, s = signature.vrs
    payload = {
        "signer": signer,
        "nonce": args.nonce,
        "address": args.address,
        "amount": args.amount,
        "signature": signature.to_hex(),
        "v": v,
        "r": f"0x{r:064x}",
        "s": f"0x{s:064x}",
    }
    if args.json:
        json.dump(payload, sys.stdout, indent=2)
        sys.stdout.write("\n")
    else:
        print(f"[✅] Authorization signed by {signer}")
        print(f"Signature: {payload['signature']}")
        print(f"v={v} r={payload['r']} s={payload['s']}")
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
