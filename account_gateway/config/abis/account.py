"""
Smart account and account factory ABIs.
"""

from .operation import OPERATION_COMPONENTS

SMART_ACCOUNT_ABI = [
    {"inputs": [{"internalType": "address", "name": "dest", "type": "address"}, {"internalType": "uint256", "name": "value", "type": "uint256"}, {"internalType": "bytes", "name": "func", "type": "bytes"}], "name": "execute", "outputs": [], "stateMutability": "nonpayable", "type": "function"},
    {
        "inputs": [
            {"components": OPERATION_COMPONENTS, "internalType": "struct PackedUserOperation", "name": "userOp", "type": "tuple"},
            {"internalType": "bytes32", "name": "userOpHash", "type": "bytes32"},
            {"internalType": "uint256", "name": "missingAccountFunds", "type": "uint256"},
        ],
        "name": "validateUserOp",
        "outputs": [{"internalType": "uint256", "name": "validationData", "type": "uint256"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {"inputs": [], "name": "getDispatcherAddress", "outputs": [{"internalType": "address", "name": "", "type": "address"}], "stateMutability": "view", "type": "function"},
    {"inputs": [], "name": "owner", "outputs": [{"internalType": "address", "name": "", "type": "address"}], "stateMutability": "view", "type": "function"},
    {"inputs": [{"internalType": "address", "name": "newOwner", "type": "address"}], "name": "transferOwnership", "outputs": [], "stateMutability": "nonpayable", "type": "function"},
    {"anonymous": False, "inputs": [{"indexed": True, "internalType": "address", "name": "dispatcher", "type": "address"}, {"indexed": False, "internalType": "uint256", "name": "amount", "type": "uint256"}, {"indexed": False, "internalType": "bool", "name": "success", "type": "bool"}], "name": "PrefundSettled", "type": "event"},
    {"anonymous": False, "inputs": [{"indexed": True, "internalType": "address", "name": "previousOwner", "type": "address"}, {"indexed": True, "internalType": "address", "name": "newOwner", "type": "address"}], "name": "OwnershipTransferred", "type": "event"},
    {"stateMutability": "payable", "type": "receive"},
]

ACCOUNT_FACTORY_ABI = [
    {"inputs": [{"internalType": "address", "name": "owner", "type": "address"}, {"internalType": "uint256", "name": "salt", "type": "uint256"}], "name": "createAccount", "outputs": [{"internalType": "address", "name": "account", "type": "address"}], "stateMutability": "nonpayable", "type": "function"},
    {"inputs": [{"internalType": "address", "name": "owner", "type": "address"}, {"internalType": "uint256", "name": "salt", "type": "uint256"}], "name": "getAddress", "outputs": [{"internalType": "address", "name": "", "type": "address"}], "stateMutability": "view", "type": "function"},
    {"inputs": [], "name": "getDispatcherAddress", "outputs": [{"internalType": "address", "name": "", "type": "address"}], "stateMutability": "view", "type": "function"},
]
