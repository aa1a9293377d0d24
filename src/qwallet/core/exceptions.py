"""
Wallet fault hierarchy for qwallet.

Faults are programmer or governance errors: a wrong caller, a malformed
threshold, a duplicate signer index, recovery misuse. They abort the whole
operation and all of its state changes are rolled back by the host.

Ordinary signature validation failures are NOT faults. They are reported as
``ValidationResult.FAILED`` by the validator and never raised.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class WalletExecutionError(Exception):
    """Base exception for all wallet contract faults.

    Attributes:
        message: Human-readable error description
        details: Additional context about the fault
    """

    def __init__(
        self,
        message: str = "",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__
        self.details = details or {}


# ==================== Access Faults ====================


class AccessDenied(WalletExecutionError):
    """Raised when a caller does not hold any role allowed for an operation."""
    pass


class OnlyEntryPoint(AccessDenied):
    """Operation is reserved for the external dispatcher."""
    pass


class OnlyOwner(AccessDenied):
    """Operation is reserved for the wallet owner."""
    pass


class OnlySelf(AccessDenied):
    """Operation is reserved for quorum-authorized self-calls."""
    pass


class OnlyGuardian(AccessDenied):
    """Operation is reserved for the guardian."""
    pass


# ==================== Signer Set Faults ====================


class InvalidThreshold(WalletExecutionError):
    """Threshold would be zero or exceed the number of signers."""
    pass


class InvalidSigner(WalletExecutionError):
    """Signer address or slot index is not acceptable."""
    pass


class SignerAlreadyExists(WalletExecutionError):
    """Slot is occupied or the address is already a signer."""
    pass


class SignerNotExists(WalletExecutionError):
    """Slot holds no signer."""
    pass


# ==================== Signature Bundle Faults ====================


class DuplicateSigner(WalletExecutionError):
    """Two bundle entries reference the same signer index."""

    def __init__(self, index: int) -> None:
        super().__init__(
            f"Signer index {index} appears more than once in bundle",
            details={"index": index},
        )
        self.index = index


class MalformedSignatureBundle(WalletExecutionError):
    """Bundle bytes are not a canonical (uint8,bytes)[] encoding."""
    pass


# ==================== Pause Faults ====================


class ContractPaused(WalletExecutionError):
    """Wallet is paused."""
    pass


class NotPaused(WalletExecutionError):
    """Wallet is not paused."""
    pass


# ==================== Spending Faults ====================


class DailyLimitExceeded(WalletExecutionError):
    """Spend would exceed the configured daily limit."""
    pass


class InvalidValue(WalletExecutionError):
    """Value is negative or otherwise unrepresentable."""
    pass


# ==================== Owner / Guardian / Recovery Faults ====================


class InvalidGuardian(WalletExecutionError):
    """Guardian or recovery target is the empty address."""
    pass


class InvalidOwner(WalletExecutionError):
    """New owner is the empty address."""
    pass


class NoRecoveryPending(WalletExecutionError):
    """There is no recovery request to act on."""
    pass


class RecoveryAlreadyExecuted(WalletExecutionError):
    """The current recovery request has already been executed."""
    pass


class RecoveryNotReady(WalletExecutionError):
    """The recovery timelock has not elapsed."""
    pass


# ==================== Execution Faults ====================


class CallFailed(WalletExecutionError):
    """A call performed by the wallet failed."""
    pass


class BatchLengthMismatch(WalletExecutionError):
    """Batch target, value and data arrays differ in length."""
    pass


class UnknownSelector(WalletExecutionError):
    """Calldata selector does not match any known function."""
    pass


class MalformedCalldata(WalletExecutionError):
    """Calldata arguments could not be decoded."""
    pass


# ==================== Lifecycle / Upgrade Faults ====================


class AlreadyInitialized(WalletExecutionError):
    """initialize() may only run once."""
    pass


class NotInitialized(WalletExecutionError):
    """Operation requires an initialized wallet."""
    pass


class InvalidImplementation(WalletExecutionError):
    """Upgrade target is empty or already active."""
    pass


class InvalidMigration(WalletExecutionError):
    """Version transition is out of order or already applied."""
    pass


# ==================== Collaborator Faults ====================


class InvalidNonce(WalletExecutionError):
    """User operation nonce does not match the dispatcher's record."""
    pass


class AccountNotDeployed(WalletExecutionError):
    """No wallet is registered at the operation's sender address."""
    pass


class InsufficientDeposit(WalletExecutionError):
    """Dispatcher deposit is too low for the requested withdrawal."""
    pass


class InsufficientBalance(WalletExecutionError):
    """Account balance is too low for the requested transfer."""
    pass


class InvalidPaymentAmount(WalletExecutionError):
    """Payment amount must be positive."""
    pass


class PaymentExpired(WalletExecutionError):
    """Payment expiry is not in the future."""
    pass
