"""
qwallet contracts.

This module provides the wallet engine and its collaborators:
- QuorumWallet: threshold-signature smart account
- SignerRegistry, ThresholdSignatureValidator, AccessGate, PauseController,
  SpendingLimiter, GuardianRecovery, UpgradeGate: the wallet's components
- EntryPoint: ERC-4337 style dispatcher
- WalletFactory: CREATE2 deterministic deployment
- FungibleToken: owner-minted token ledger
- validate_payment: escrow guard
"""

from .access_gate import AccessGate, CallerRole, Operation, RoleBindings
from .entry_point import EntryPoint, OperationResult, UserOperation
from .escrow import validate_payment
from .factory import WalletFactory, WalletInitParams
from .guardian_recovery import GuardianRecovery, RecoveryRequest, RecoveryState
from .pause_controller import PauseController, PauseState
from .quorum_wallet import WALLET_FUNCTIONS, QuorumWallet
from .signature_bundle import SignatureEntry, decode_bundle, encode_bundle
from .signer_registry import SignerRegistry
from .spending_limiter import SpendingLimiter
from .threshold_validator import ThresholdSignatureValidator, ValidationResult
from .token import FungibleToken
from .upgrade_gate import UpgradeGate, UpgradeRecord

__all__ = [
    # Wallet
    "QuorumWallet",
    "WALLET_FUNCTIONS",
    # Components
    "SignerRegistry",
    "ThresholdSignatureValidator",
    "ValidationResult",
    "AccessGate",
    "CallerRole",
    "Operation",
    "RoleBindings",
    "PauseController",
    "PauseState",
    "SpendingLimiter",
    "GuardianRecovery",
    "RecoveryRequest",
    "RecoveryState",
    "UpgradeGate",
    "UpgradeRecord",
    # Bundles
    "SignatureEntry",
    "encode_bundle",
    "decode_bundle",
    # Collaborators
    "EntryPoint",
    "UserOperation",
    "OperationResult",
    "WalletFactory",
    "WalletInitParams",
    "FungibleToken",
    "validate_payment",
]
