"""
Smart-account authorization gateway.

A programmable account that accepts actions from a trusted dispatcher
relaying signed operations, or directly from its owner.
"""

__version__ = "0.1.0"
