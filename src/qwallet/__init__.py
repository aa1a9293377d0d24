"""
qwallet - Quorum-Governed Account Abstraction Wallet

A contract-style authorization engine for smart wallets, modelled after
ERC-4337 account abstraction.

Main Components:
- Signer Registry: Indexed signer slots with an M-of-N threshold
- Threshold Validation: Bundled per-signer signatures over an operation hash
- Guards: Pause switch and rolling daily spending quota
- Recovery: Guardian-driven, timelocked ownership transfer
- Governance: Administrative changes gated behind quorum-authorized self-calls

For design notes, see DESIGN.md
"""

__version__ = "0.1.0"
__author__ = "qwallet Development Team"

__all__ = []
