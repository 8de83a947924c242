"""
Dispatcher (entry point) ABI.
"""

from .operation import OPERATION_COMPONENTS

DISPATCHER_ABI = [
    {
        "inputs": [
            {"components": OPERATION_COMPONENTS, "internalType": "struct PackedUserOperation[]", "name": "ops", "type": "tuple[]"},
            {"internalType": "address payable", "name": "beneficiary", "type": "address"},
        ],
        "name": "handleOps",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [{"components": OPERATION_COMPONENTS, "internalType": "struct PackedUserOperation", "name": "userOp", "type": "tuple"}],
        "name": "getUserOpHash",
        "outputs": [{"internalType": "bytes32", "name": "", "type": "bytes32"}],
        "stateMutability": "view",
        "type": "function",
    },
    {"inputs": [{"internalType": "address", "name": "account", "type": "address"}], "name": "depositTo", "outputs": [], "stateMutability": "payable", "type": "function"},
    {"inputs": [{"internalType": "address", "name": "account", "type": "address"}], "name": "balanceOf", "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}], "stateMutability": "view", "type": "function"},
    {"anonymous": False, "inputs": [{"indexed": True, "internalType": "bytes32", "name": "userOpHash", "type": "bytes32"}, {"indexed": True, "internalType": "address", "name": "sender", "type": "address"}, {"indexed": False, "internalType": "uint256", "name": "nonce", "type": "uint256"}, {"indexed": False, "internalType": "bool", "name": "success", "type": "bool"}, {"indexed": False, "internalType": "uint256", "name": "actualGasCost", "type": "uint256"}], "name": "UserOperationEvent", "type": "event"},
    {"anonymous": False, "inputs": [{"indexed": True, "internalType": "bytes32", "name": "userOpHash", "type": "bytes32"}, {"indexed": True, "internalType": "address", "name": "sender", "type": "address"}, {"indexed": False, "internalType": "uint256", "name": "nonce", "type": "uint256"}, {"indexed": False, "internalType": "bytes", "name": "revertReason", "type": "bytes"}], "name": "UserOperationRevertReason", "type": "event"},
    {"anonymous": False, "inputs": [{"indexed": True, "internalType": "address", "name": "account", "type": "address"}, {"indexed": False, "internalType": "uint256", "name": "totalDeposit", "type": "uint256"}], "name": "Deposited", "type": "event"},
    {"stateMutability": "payable", "type": "receive"},
]
