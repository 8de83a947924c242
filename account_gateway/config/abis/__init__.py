"""
Contract ABI package for the account gateway.

Contains the ABIs of the contracts the gateway exposes or talks to.
"""

from .operation import OPERATION_COMPONENTS, OPERATION_TUPLE_TYPE
from .account import SMART_ACCOUNT_ABI, ACCOUNT_FACTORY_ABI
from .dispatcher import DISPATCHER_ABI

__all__ = [
    # Operation struct
    'OPERATION_COMPONENTS',
    'OPERATION_TUPLE_TYPE',

    # Account
    'SMART_ACCOUNT_ABI',
    'ACCOUNT_FACTORY_ABI',

    # Dispatcher
    'DISPATCHER_ABI',
]
