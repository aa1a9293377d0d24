"""
qwallet Core Module

Core functionality for the quorum wallet engine including:
- Host environment (clock, native balances, atomic calls)
- Cryptographic helpers for EIP-191 signatures
- Calldata encoding
- Contract implementations (wallet, dispatcher, factory, token)

This package contains the fundamental building blocks of the wallet engine.
"""

__all__ = []
