"""
Operation struct ABI.

Shared by every entry point that takes an operation on the wire.
"""

OPERATION_COMPONENTS = [
    {"internalType": "address", "name": "sender", "type": "address"},
    {"internalType": "uint256", "name": "nonce", "type": "uint256"},
    {"internalType": "bytes", "name": "initCode", "type": "bytes"},
    {"internalType": "bytes", "name": "callData", "type": "bytes"},
    {"internalType": "bytes32", "name": "accountGasLimits", "type": "bytes32"},
    {"internalType": "uint256", "name": "preVerificationGas", "type": "uint256"},
    {"internalType": "bytes32", "name": "gasFees", "type": "bytes32"},
    {"internalType": "bytes", "name": "paymasterAndData", "type": "bytes"},
    {"internalType": "bytes", "name": "signature", "type": "bytes"},
]

OPERATION_TUPLE_TYPE = "(" + ",".join(c["type"] for c in OPERATION_COMPONENTS) + ")"
