"""
Calldata helpers.

Builds and parses ABI calldata from the ABI definitions in
``account_gateway.config.abis``: canonical type strings (tuples included),
4-byte selectors, call encoding and result decoding.
"""

from __future__ import annotations

from typing import Any

from eth_abi import decode, encode
from eth_utils import keccak


def abi_type(param: dict[str, Any]) -> str:
    """Canonical type string of an ABI parameter, expanding tuple components."""
    typ = param["type"]
    if typ.startswith("tuple"):
        inner = ",".join(abi_type(c) for c in param["components"])
        return f"({inner}){typ[len('tuple'):]}"
    return typ


def input_types(fn_abi: dict[str, Any]) -> list[str]:
    return [abi_type(p) for p in fn_abi.get("inputs", [])]


def output_types(fn_abi: dict[str, Any]) -> list[str]:
    return [abi_type(p) for p in fn_abi.get("outputs", [])]


def function_signature(fn_abi: dict[str, Any]) -> str:
    """e.g. ``execute(address,uint256,bytes)``"""
    return f"{fn_abi['name']}({','.join(input_types(fn_abi))})"


def function_selector(fn_abi: dict[str, Any]) -> bytes:
    return keccak(text=function_signature(fn_abi))[:4]


def get_function_abi(abi: list[dict[str, Any]], name: str) -> dict[str, Any]:
    for item in abi:
        if item.get("type") == "function" and item.get("name") == name:
            return item
    raise ValueError(f"Function '{name}' not found in ABI")


def encode_function_call(abi: list[dict[str, Any]], name: str, args: list[Any] | tuple = ()) -> bytes:
    """
    Encode a call to ``name`` with ``args``.

    Args:
        abi: Contract ABI
        name: Function name
        args: Positional arguments, in ABI order

    Returns:
        Selector followed by the encoded arguments
    """
    fn_abi = get_function_abi(abi, name)
    return function_selector(fn_abi) + encode(input_types(fn_abi), list(args))


def decode_function_result(abi: list[dict[str, Any]], name: str, data: bytes) -> tuple:
    fn_abi = get_function_abi(abi, name)
    return decode(output_types(fn_abi), data)
