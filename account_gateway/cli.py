#!/usr/bin/env python3
"""CLI for off-device operation handling.

Hash, sign and verify operation JSON files (bundler RPC format) and look up
the dispatcher for a chain.

Usage:
    account-gateway hash op.json --chain gnosis
    account-gateway sign op.json --chain gnosis --out signed.json
    account-gateway recover signed.json --chain gnosis --owner 0x...
    account-gateway dispatcher --chain base
"""
from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from eth_utils import is_address, to_checksum_address
from web3 import Web3

from account_gateway.config.logging_config import get_gateway_logger
from account_gateway.config.network import get_chain_id, get_rpc_url
from account_gateway.config.registry import DispatcherRegistry
from account_gateway.errors import SignatureRecoveryError, UnsupportedChainError
from account_gateway.helpers.operation import Operation
from account_gateway.helpers.operation_hash import BindingContext, operation_hash, signing_message_hash
from account_gateway.helpers.signing import recover_signer, sign_operation
from account_gateway.helpers.validator import ValidationResult, validate_signature


def _read_operation(path: str) -> Operation:
    with open(path) as f:
        return Operation.from_rpc(json.load(f))


def _write_json(data: dict[str, Any], out: str | None) -> None:
    text = json.dumps(data, indent=2)
    if out:
        Path(out).write_text(text + "\n")
        print(f"Wrote {out}")
    else:
        print(text)


def _resolve_chain_id(args: argparse.Namespace) -> int:
    if args.chain_id is not None:
        return args.chain_id
    if args.rpc:
        w3 = Web3(Web3.HTTPProvider(get_rpc_url()))
        return w3.eth.chain_id
    return get_chain_id(args.chain)


def _resolve_context(args: argparse.Namespace, operation: Operation) -> BindingContext:
    chain_id = _resolve_chain_id(args)
    dispatcher = args.dispatcher or DispatcherRegistry().resolve_dispatcher(chain_id)
    return BindingContext(account=args.account or operation.sender, dispatcher=dispatcher, chain_id=chain_id)


def cmd_hash(args: argparse.Namespace) -> int:
    operation = _read_operation(args.operation)
    context = _resolve_context(args, operation)
    digest = operation_hash(operation, context)
    _write_json(
        {
            "account": context.account,
            "dispatcher": context.dispatcher,
            "chainId": context.chain_id,
            "digest": "0x" + digest.hex(),
            "signingMessageHash": "0x" + signing_message_hash(digest).hex(),
        },
        None,
    )
    return 0


def cmd_sign(args: argparse.Namespace) -> int:
    private_key = args.private_key or os.getenv(args.private_key_env)
    if not private_key:
        print(f"Error: no private key. Use --private-key or set {args.private_key_env}.", file=sys.stderr)
        return 1

    operation = _read_operation(args.operation)
    context = _resolve_context(args, operation)
    signed = sign_operation(operation, context, private_key)
    _write_json(signed.to_rpc(), args.out)
    return 0


def cmd_recover(args: argparse.Namespace) -> int:
    operation = _read_operation(args.operation)
    context = _resolve_context(args, operation)
    digest = operation_hash(operation, context)

    try:
        signer = recover_signer(digest, operation.signature)
    except SignatureRecoveryError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    out: dict[str, Any] = {"digest": "0x" + digest.hex(), "signer": signer}
    status = 0
    if args.owner:
        result = validate_signature(operation, digest, args.owner)
        out["owner"] = to_checksum_address(args.owner)
        out["result"] = result.name
        status = 0 if result is ValidationResult.AUTHORIZED else 1
    _write_json(out, None)
    return status


def cmd_dispatcher(args: argparse.Namespace) -> int:
    chain_id = _resolve_chain_id(args)
    print(DispatcherRegistry().resolve_dispatcher(chain_id))
    return 0


def _address(value: str) -> str:
    if not is_address(value):
        raise argparse.ArgumentTypeError(f"not a valid address: {value}")
    return to_checksum_address(value)


def _add_chain_args(p: argparse.ArgumentParser) -> None:
    group = p.add_mutually_exclusive_group()
    group.add_argument("--chain", help="Chain name (default: $CHAIN or anvil)")
    group.add_argument("--chain-id", type=int, help="Numeric chain id")
    group.add_argument("--rpc", action="store_true", help="Read the chain id from $RPC_URL")


def _add_binding_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("operation", help="Operation JSON file")
    _add_chain_args(p)
    p.add_argument("--dispatcher", type=_address, help="Dispatcher address (default: registry lookup)")
    p.add_argument("--account", type=_address, help="Account address (default: operation sender)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="account-gateway", description="Smart-account operation tooling")
    parser.add_argument("--env-file", help="Load environment from this .env file")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("hash", help="Compute the digest of an operation")
    _add_binding_args(p)
    p.set_defaults(func=cmd_hash)

    p = sub.add_parser("sign", help="Sign an operation")
    _add_binding_args(p)
    p.add_argument("--private-key", help="Signer private key (prefer the env variable)")
    p.add_argument("--private-key-env", default="PRIVATE_KEY", help="Env variable holding the key")
    p.add_argument("--out", help="Write the signed operation here instead of stdout")
    p.set_defaults(func=cmd_sign)

    p = sub.add_parser("recover", help="Recover the signer of an operation")
    _add_binding_args(p)
    p.add_argument("--owner", type=_address, help="Expected owner; exit status 1 if it did not sign")
    p.set_defaults(func=cmd_recover)

    p = sub.add_parser("dispatcher", help="Show the dispatcher for a chain")
    _add_chain_args(p)
    p.set_defaults(func=cmd_dispatcher)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.env_file:
        load_dotenv(args.env_file)
    else:
        load_dotenv()
    get_gateway_logger(debug=args.debug, to_file=False)

    try:
        return args.func(args)
    except (UnsupportedChainError, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
