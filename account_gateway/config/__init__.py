"""
Configuration package for the account gateway.

Chain table, logging setup and contract ABIs. The dispatcher registry lives
in ``account_gateway.config.registry``.
"""

from account_gateway.config.network import (
    CHAINS,
    CHAIN_ID_TO_NAME,
    ENTRY_POINT_ADDRESS,
    get_chain_config,
    get_chain_id,
    get_rpc_url,
    is_local_chain,
)

from account_gateway.config.logging_config import (
    setup_logger,
    get_gateway_logger,
)

__all__ = [
    # Network
    'CHAINS',
    'CHAIN_ID_TO_NAME',
    'ENTRY_POINT_ADDRESS',
    'get_chain_config',
    'get_chain_id',
    'get_rpc_url',
    'is_local_chain',

    # Logging
    'setup_logger',
    'get_gateway_logger',
]
