"""
EntryPoint (ERC-4337 style dispatcher).

Receives user operations, asks each wallet to validate its own signature
bundle, tracks nonces and prefund deposits, then executes the operation's
calldata against the wallet. The dispatcher does not meter gas or price fees.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from eth_abi import encode
from eth_abi.exceptions import EncodingError
from eth_utils import keccak

from qwallet.core.constants import DEFAULT_ENTRY_POINT
from qwallet.core.contracts.threshold_validator import ValidationResult
from qwallet.core.crypto_utils import normalize_address
from qwallet.core.exceptions import (
    AccountNotDeployed,
    InsufficientDeposit,
    InvalidNonce,
    InvalidValue,
    WalletExecutionError,
)
from qwallet.core.host import HostEnvironment

logger = logging.getLogger(__name__)


@dataclass
class UserOperation:
    """
    A wallet's signed intent.

    ``signature`` carries the encoded threshold bundle and is excluded from
    the hash it signs.
    """

    sender: str
    nonce: int
    call_data: bytes = b""
    signature: bytes = b""
    prefund: int = 0

    def pack(self) -> bytes:
        """ABI-encode every field except the signature."""
        return encode(
            ["address", "uint256", "bytes32", "uint256"],
            [normalize_address(self.sender), self.nonce, keccak(self.call_data), self.prefund],
        )

    def hash(self, entry_point: str, chain_id: int) -> bytes:
        """
        Hash to be signed, bound to one dispatcher on one chain.

        Args:
            entry_point: Dispatcher address
            chain_id: Chain ID for replay protection
        """
        return keccak(
            encode(
                ["bytes32", "address", "uint256"],
                [keccak(self.pack()), normalize_address(entry_point), chain_id],
            )
        )


@dataclass
class OperationResult:
    """Outcome of one operation in ``handle_ops``."""

    sender: str
    nonce: int
    success: bool
    validation: Optional[int] = None
    return_data: bytes = b""
    error: str = ""


@dataclass
class EntryPoint:
    """
    Dispatcher singleton.

    Deposits are bookkeeping held against the dispatcher's own native
    balance: a wallet's prefund lands in the dispatcher's balance and is
    credited to that wallet's deposit.
    """

    env: HostEnvironment
    address: str = DEFAULT_ENTRY_POINT

    deposits: Dict[str, int] = field(default_factory=dict)
    nonces: Dict[str, int] = field(default_factory=dict)

    # Statistics
    total_ops_processed: int = 0
    total_ops_succeeded: int = 0

    def __post_init__(self) -> None:
        self.address = normalize_address(self.address)
        if not self.env.is_contract(self.address):
            self.env.register_contract(self)

    # ==================== Main Entry Point ====================

    def handle_ops(self, ops: List[UserOperation], beneficiary: str) -> List[OperationResult]:
        """
        Process ``ops`` in order.

        A fault in one operation rolls back that operation only and is
        reported in its result. Nothing is raised to the caller.
        """
        results = []

        for op in ops:
            try:
                with self.env.atomic():
                    result = self._handle_single_op(op)
            except WalletExecutionError as e:
                logger.warning(
                    "UserOp failed",
                    extra={
                        "event": "entrypoint.op_failed",
                        "sender": op.sender,
                        "nonce": op.nonce,
                        "error": e.message,
                        "error_type": type(e).__name__,
                    },
                )
                result = OperationResult(
                    sender=op.sender,
                    nonce=op.nonce,
                    success=False,
                    error=f"{type(e).__name__}: {e.message}",
                )

            if result.success:
                self.total_ops_succeeded += 1
            results.append(result)

        self.total_ops_processed += len(ops)

        logger.info(
            "Bundle handled",
            extra={
                "event": "entrypoint.ops_handled",
                "ops": len(ops),
                "succeeded": sum(1 for r in results if r.success),
                "beneficiary": beneficiary,
            },
        )
        return results

    def _handle_single_op(self, op: UserOperation) -> OperationResult:
        try:
            sender = normalize_address(op.sender)
        except ValueError as exc:
            raise AccountNotDeployed(
                f"Invalid sender: {exc}", details={"sender": op.sender}
            ) from exc

        # 1. Nonce
        expected = self.get_nonce(sender)
        if op.nonce != expected:
            raise InvalidNonce(
                f"Nonce {op.nonce} does not match expected {expected}",
                details={"sender": sender, "nonce": op.nonce, "expected": expected},
            )

        account = self.env.get_contract(sender)
        if account is None or not hasattr(account, "validate_user_op"):
            raise AccountNotDeployed(f"No wallet deployed at {sender}")

        if op.prefund < 0:
            raise InvalidValue(
                f"Prefund cannot be negative: {op.prefund}",
                details={"sender": sender, "prefund": op.prefund},
            )

        # 2. Validate, asking for whatever the deposit does not cover
        try:
            op_hash = self.get_user_op_hash(op)
        except (EncodingError, TypeError, ValueError) as exc:
            raise InvalidValue(
                f"Cannot hash user operation: {exc}", details={"sender": sender}
            ) from exc
        missing_funds = max(0, op.prefund - self.balance_of(sender))
        balance_before = self.env.balance_of(self.address)

        validation = account.validate_user_op(self.address, op, op_hash, missing_funds)

        # 3. Credit whatever actually arrived
        received = self.env.balance_of(self.address) - balance_before
        if received > 0:
            self.deposits[sender] = self.deposits.get(sender, 0) + received

        if validation != ValidationResult.SUCCESS:
            logger.info(
                "UserOp signature rejected",
                extra={"event": "entrypoint.validation_failed", "sender": sender, "nonce": op.nonce},
            )
            return OperationResult(
                sender=sender,
                nonce=op.nonce,
                success=False,
                validation=int(validation),
                error="signature validation failed",
            )

        # 4. Execute
        self.nonces[sender] = expected + 1
        return_data = b""
        success = True
        error = ""
        if op.call_data:
            call = self.env.call(self.address, sender, 0, op.call_data)
            success = call.success
            return_data = call.return_data
            error = call.error

        logger.info(
            "UserOp processed",
            extra={
                "event": "entrypoint.op_processed",
                "sender": sender,
                "nonce": op.nonce,
                "success": success,
            },
        )
        return OperationResult(
            sender=sender,
            nonce=op.nonce,
            success=success,
            validation=int(validation),
            return_data=return_data,
            error=error,
        )

    def get_user_op_hash(self, op: UserOperation) -> bytes:
        return op.hash(self.address, self.env.chain_id)

    # ==================== Deposits ====================

    def deposit_to(self, account: str, amount: int) -> int:
        """Credit ``account``'s deposit. Returns the new deposit."""
        if amount < 0:
            raise InvalidValue(f"Deposit cannot be negative: {amount}")
        key = normalize_address(account)
        self.deposits[key] = self.deposits.get(key, 0) + amount
        return self.deposits[key]

    def withdraw_to(self, caller: str, withdraw_address: str, amount: int) -> bool:
        """Pay out of the caller's own deposit."""
        key = normalize_address(caller)
        current = self.deposits.get(key, 0)
        if amount < 0 or amount > current:
            raise InsufficientDeposit(
                f"Cannot withdraw {amount} from deposit of {current}",
                details={"account": key, "amount": amount, "deposit": current},
            )
        with self.env.atomic():
            self.deposits[key] = current - amount
            if not self.env.transfer(self.address, withdraw_address, amount):
                raise InsufficientDeposit("Dispatcher balance does not back the deposit")
        return True

    def balance_of(self, account: str) -> int:
        return self.deposits.get(normalize_address(account), 0)

    def get_nonce(self, sender: str) -> int:
        return self.nonces.get(normalize_address(sender), 0)

    # ==================== Host Interface ====================

    def handle_call(self, sender: str, value: int, data: bytes) -> bytes:
        # Plain value transfers only; deposits are credited explicitly
        return b""

    def snapshot_state(self) -> Dict[str, Any]:
        return {
            "deposits": dict(self.deposits),
            "nonces": dict(self.nonces),
            "total_ops_processed": self.total_ops_processed,
            "total_ops_succeeded": self.total_ops_succeeded,
        }

    def restore_state(self, snapshot: Dict[str, Any]) -> None:
        self.deposits = dict(snapshot["deposits"])
        self.nonces = dict(snapshot["nonces"])
        self.total_ops_processed = snapshot["total_ops_processed"]
        self.total_ops_succeeded = snapshot["total_ops_succeeded"]

    # ==================== Stats ====================

    def get_stats(self) -> Dict[str, int]:
        return {
            "total_ops_processed": self.total_ops_processed,
            "total_ops_succeeded": self.total_ops_succeeded,
            "deposit_accounts": len(self.deposits),
        }
