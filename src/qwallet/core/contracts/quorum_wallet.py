"""
Quorum Wallet.

Threshold-signature smart account. Composes the signer registry, threshold
validator, access gate, pause switch, spending limiter, guardian recovery and
upgrade gate into one contract:

- ``validate_user_op``: dispatcher-only signature check plus prefund payment
- ``execute`` / ``execute_batch``: value-moving calls, or governance when the
  target is the wallet itself
- Administrative mutations: reachable only through a self-call, i.e. only
  after a quorum has signed an operation that targets the wallet

Every public mutating method runs inside ``HostEnvironment.atomic()``: a fault
anywhere leaves the wallet, native balances and every registered contract
exactly as they were.
"""

from __future__ import annotations

import copy
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional, Sequence

from qwallet.core.abi import decode_call, encode_return, selector_table
from qwallet.core.constants import DEFAULT_ENTRY_POINT, ZERO_ADDRESS
from qwallet.core.contracts.access_gate import AccessGate, Operation, RoleBindings
from qwallet.core.contracts.guardian_recovery import GuardianRecovery, RecoveryRequest
from qwallet.core.contracts.pause_controller import PauseController
from qwallet.core.contracts.signer_registry import SignerRegistry
from qwallet.core.contracts.spending_limiter import SpendingLimiter, day_bucket
from qwallet.core.contracts.threshold_validator import ValidationResult, validate
from qwallet.core.contracts.upgrade_gate import UpgradeGate, UpgradeRecord
from qwallet.core.crypto_utils import is_zero_address, normalize_address, same_address
from qwallet.core.exceptions import (
    AlreadyInitialized,
    BatchLengthMismatch,
    CallFailed,
    InvalidGuardian,
    InvalidOwner,
    InvalidValue,
    MalformedCalldata,
    NotInitialized,
    WalletExecutionError,
)
from qwallet.core.host import HostEnvironment

if TYPE_CHECKING:
    from qwallet.core.contracts.entry_point import UserOperation

logger = logging.getLogger(__name__)


# Wallet calldata surface
WALLET_FUNCTIONS = (
    "execute(address,uint256,bytes)",
    "executeBatch(address[],uint256[],bytes[])",
    "addSigner(address,uint8)",
    "removeSigner(uint8)",
    "updateThreshold(uint8)",
    "setGuardian(address)",
    "setDailyLimit(uint256)",
    "transferOwnership(address)",
    "pause()",
    "unpause()",
    "cancelRecovery()",
    "upgradeTo(address)",
    "upgradeToAndMigrate(address,uint64)",
    "migrate(uint64,uint64)",
)
WALLET_SELECTORS = selector_table(WALLET_FUNCTIONS)

# Never captured by snapshot_state
_TRANSIENT_FIELDS = frozenset({"env", "_self_call_active"})


@dataclass
class QuorumWallet:
    """
    M-of-N smart account driven by an external dispatcher.

    The wallet registers itself with ``env`` on construction so host-level
    atomic scopes always cover its state.
    """

    address: str
    env: HostEnvironment
    entry_point: str = DEFAULT_ENTRY_POINT

    owner: str = ZERO_ADDRESS
    guardian: str = ZERO_ADDRESS

    registry: SignerRegistry = field(default_factory=SignerRegistry)
    pause_controller: PauseController = field(default_factory=PauseController)
    limiter: SpendingLimiter = field(default_factory=SpendingLimiter)
    recovery: GuardianRecovery = field(default_factory=GuardianRecovery)
    upgrades: UpgradeGate = field(default_factory=UpgradeGate)

    # Set only while a self-targeted execute is dispatching
    _self_call_active: bool = field(default=False, init=False, repr=False)

    def __post_init__(self) -> None:
        self.address = normalize_address(self.address)
        self.entry_point = normalize_address(self.entry_point)
        if not self.env.is_contract(self.address):
            self.env.register_contract(self)

    # ==================== Initialization ====================

    def initialize(
        self,
        owner: str,
        signers: List[str],
        threshold: int,
        guardian: str = ZERO_ADDRESS,
        daily_limit: int = 0,
    ) -> None:
        """
        One-time setup.

        Raises:
            AlreadyInitialized: On any second call.
            InvalidOwner: If ``owner`` is empty.
            InvalidThreshold / InvalidSigner / SignerAlreadyExists: From the registry.
        """
        with self.env.atomic():
            if self.upgrades.initialized:
                raise AlreadyInitialized(f"Wallet {self.address} already initialized")

            self.owner = self._checked_address(owner, InvalidOwner, "Owner")
            self.guardian = ZERO_ADDRESS
            if not is_zero_address(guardian):
                self.guardian = self._checked_address(guardian, InvalidGuardian, "Guardian")

            self.registry.initialize(signers, threshold)
            self.limiter.set_daily_limit(daily_limit)
            self.limiter.last_day_bucket = day_bucket(self.env.now())
            self.upgrades.initialize()

        logger.info(
            "Wallet initialized",
            extra={
                "event": "wallet.initialized",
                "wallet": self.address,
                "owner": self.owner,
                "guardian": self.guardian,
                "signer_count": self.registry.signer_count,
                "threshold": threshold,
                "daily_limit": daily_limit,
            },
        )

    # ==================== Validation (dispatcher entry) ====================

    def validate_user_op(
        self,
        caller: str,
        user_op: "UserOperation",
        user_op_hash: bytes,
        missing_funds: int,
    ) -> int:
        """
        Check the operation's signature bundle and pay the dispatcher.

        The prefund transfer is attempted whatever the validation outcome and
        its failure is ignored, so it can never change the returned result.

        Returns:
            ``ValidationResult.SUCCESS`` (0) or ``ValidationResult.FAILED`` (1)

        Raises:
            OnlyEntryPoint: Caller is not the dispatcher.
            MalformedSignatureBundle / DuplicateSigner: From the validator.
        """
        with self.env.atomic():
            self._require(Operation.VALIDATE, caller)
            self._require_initialized()

            result = validate(self.registry, user_op_hash, user_op.signature)

            if missing_funds > 0:
                self._pay_prefund(caller, missing_funds)

        logger.info(
            "User operation validated",
            extra={
                "event": "wallet.validated",
                "wallet": self.address,
                "nonce": user_op.nonce,
                "result": result.name,
            },
        )
        return int(result)

    # ==================== Execution ====================

    def execute(self, caller: str, target: str, value: int, data: bytes) -> bytes:
        """
        Perform one call.

        A call to the wallet's own address is governance: it is dispatched to
        the wallet's calldata handler with the self-call role active, and is
        neither paused nor rate limited. Any other target moves value and must
        pass the pause switch and the daily limit.

        Raises:
            OnlyEntryPoint: Caller is neither the dispatcher nor a self-call.
            ContractPaused / DailyLimitExceeded: Guard rejected a value-moving call.
            CallFailed: The call reverted or could not be funded. A failed
                governance self-call keeps its fault as ``__cause__`` and
                its type name in ``details["error_type"]``.
        """
        with self.env.atomic():
            self._require(Operation.EXECUTE, caller)
            self._require_initialized()
            target = self._checked_target(target)
            self._require_non_negative(value)

            if same_address(target, self.address):
                return self._dispatch_self_call(value, data)

            self.pause_controller.require_active()
            self.limiter.check_and_consume(value, self.env.now())
            return self._call_external(target, value, data)

    def execute_batch(
        self,
        caller: str,
        targets: Sequence[str],
        values: Sequence[int],
        datas: Sequence[bytes],
    ) -> List[bytes]:
        """
        Perform several calls, all or nothing.

        The daily limit is checked once against the summed value of the
        external calls, so a batch cannot be split to slip under it.

        Raises:
            BatchLengthMismatch: Arrays differ in length.
            ContractPaused: Any target is external while the wallet is paused.
            DailyLimitExceeded: The external total exceeds today's quota.
            CallFailed: Any call failed, governance self-calls included.
        """
        with self.env.atomic():
            self._require(Operation.EXECUTE_BATCH, caller)
            self._require_initialized()

            if len(targets) != len(values) or len(targets) != len(datas):
                raise BatchLengthMismatch(
                    "Batch arrays length mismatch",
                    details={
                        "targets": len(targets),
                        "values": len(values),
                        "datas": len(datas),
                    },
                )

            checked = [self._checked_target(target) for target in targets]
            for value in values:
                self._require_non_negative(value)

            external_total = sum(
                value
                for target, value in zip(checked, values)
                if not same_address(target, self.address)
            )
            has_external = any(not same_address(t, self.address) for t in checked)
            if has_external:
                self.pause_controller.require_active()
                self.limiter.check_and_consume(external_total, self.env.now())

            results = []
            for target, value, data in zip(checked, values, datas):
                if same_address(target, self.address):
                    results.append(self._dispatch_self_call(value, data))
                else:
                    results.append(self._call_external(target, value, data))

        logger.info(
            "Batch executed",
            extra={
                "event": "wallet.batch_executed",
                "wallet": self.address,
                "calls": len(results),
                "external_value": external_total,
            },
        )
        return results

    # ==================== Governance (self-call only) ====================

    def add_signer(self, caller: str, signer: str, index: int) -> None:
        with self.env.atomic():
            self._require(Operation.ADD_SIGNER, caller)
            self.registry.add_signer(signer, index)

    def remove_signer(self, caller: str, index: int) -> str:
        with self.env.atomic():
            self._require(Operation.REMOVE_SIGNER, caller)
            return self.registry.remove_signer(index)

    def update_threshold(self, caller: str, new_threshold: int) -> None:
        with self.env.atomic():
            self._require(Operation.UPDATE_THRESHOLD, caller)
            self.registry.update_threshold(new_threshold)

    def set_guardian(self, caller: str, guardian: str) -> None:
        with self.env.atomic():
            self._require(Operation.SET_GUARDIAN, caller)
            old_guardian = self.guardian
            self.guardian = self._checked_address(guardian, InvalidGuardian, "Guardian")

        logger.info(
            "Guardian changed",
            extra={
                "event": "wallet.guardian_changed",
                "wallet": self.address,
                "old_guardian": old_guardian,
                "new_guardian": self.guardian,
            },
        )

    def set_daily_limit(self, caller: str, limit: int) -> None:
        with self.env.atomic():
            self._require(Operation.SET_DAILY_LIMIT, caller)
            self.limiter.set_daily_limit(limit)

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        with self.env.atomic():
            self._require(Operation.TRANSFER_OWNERSHIP, caller)
            self._set_owner(self._checked_address(new_owner, InvalidOwner, "Owner"), "transfer")

    def unpause(self, caller: str) -> None:
        with self.env.atomic():
            self._require(Operation.UNPAUSE, caller)
            self.pause_controller.unpause()

    def authorize_upgrade(self, caller: str, new_implementation: str) -> bool:
        """Quorum check for code replacement. Raises OnlySelf otherwise."""
        self._require(Operation.AUTHORIZE_UPGRADE, caller)
        return True

    def upgrade_to(self, caller: str, new_implementation: str) -> UpgradeRecord:
        with self.env.atomic():
            self.authorize_upgrade(caller, new_implementation)
            self._require_initialized()
            return self.upgrades.upgrade_to(new_implementation, self.env.now())

    def migrate(self, caller: str, from_version: int, to_version: int) -> None:
        with self.env.atomic():
            self._require(Operation.MIGRATE, caller)
            self.upgrades.migrate(from_version, to_version)

    def upgrade_to_and_migrate(
        self,
        caller: str,
        new_implementation: str,
        to_version: int,
    ) -> UpgradeRecord:
        """Swap implementation and run its migration as one step."""
        with self.env.atomic():
            record = self.upgrade_to(caller, new_implementation)
            self.migrate(caller, self.upgrades.version, to_version)
            return record

    # ==================== Pause / Recovery ====================

    def pause(self, caller: str) -> None:
        with self.env.atomic():
            self._require(Operation.PAUSE, caller)
            self.pause_controller.pause(by=caller)

    def initiate_recovery(self, caller: str, new_owner: str) -> RecoveryRequest:
        with self.env.atomic():
            self._require(Operation.INITIATE_RECOVERY, caller)
            request = self.recovery.initiate(new_owner, self.env.now())
            return replace(request)

    def execute_recovery(self, caller: str) -> str:
        with self.env.atomic():
            self._require(Operation.EXECUTE_RECOVERY, caller)
            new_owner = self.recovery.execute(self.env.now())
            self._set_owner(new_owner, "recovery")
            return new_owner

    def cancel_recovery(self, caller: str) -> bool:
        with self.env.atomic():
            self._require(Operation.CANCEL_RECOVERY, caller)
            return self.recovery.cancel()

    # ==================== Queries ====================

    def get_signer(self, index: int) -> str:
        return self.registry.get_signer(index)

    def get_remaining_daily_limit(self) -> int:
        return self.limiter.remaining(self.env.now())

    def get_recovery_request(self) -> Optional[RecoveryRequest]:
        request = self.recovery.request
        return replace(request) if request is not None else None

    @property
    def is_paused(self) -> bool:
        return self.pause_controller.is_paused

    @property
    def threshold(self) -> int:
        return self.registry.threshold

    @property
    def signer_count(self) -> int:
        return self.registry.signer_count

    @property
    def version(self) -> int:
        return self.upgrades.version

    @property
    def implementation(self) -> str:
        return self.upgrades.implementation

    @property
    def initialized(self) -> bool:
        return self.upgrades.initialized

    # ==================== Calldata Handler ====================

    def handle_call(self, sender: str, value: int, data: bytes) -> bytes:
        """
        Entry point for calls arriving through the host.

        Empty calldata only receives value. Anything else is decoded against
        ``WALLET_FUNCTIONS`` and routed with ``sender`` as the caller.

        Raises:
            UnknownSelector / MalformedCalldata: Undecodable calldata.
        """
        if not data:
            logger.debug(
                "Native value received",
                extra={"event": "wallet.received", "wallet": self.address, "value": value},
            )
            return b""

        signature, args = decode_call(data, WALLET_SELECTORS)
        name = signature.split("(", 1)[0]

        if name == "execute":
            return encode_return(["bytes"], [self.execute(sender, *args)])
        if name == "executeBatch":
            targets, values, datas = args
            return encode_return(
                ["bytes[]"], [self.execute_batch(sender, list(targets), list(values), list(datas))]
            )
        if name == "addSigner":
            self.add_signer(sender, args[0], args[1])
        elif name == "removeSigner":
            self.remove_signer(sender, args[0])
        elif name == "updateThreshold":
            self.update_threshold(sender, args[0])
        elif name == "setGuardian":
            self.set_guardian(sender, args[0])
        elif name == "setDailyLimit":
            self.set_daily_limit(sender, args[0])
        elif name == "transferOwnership":
            self.transfer_ownership(sender, args[0])
        elif name == "pause":
            self.pause(sender)
        elif name == "unpause":
            self.unpause(sender)
        elif name == "cancelRecovery":
            self.cancel_recovery(sender)
        elif name == "upgradeTo":
            self.upgrade_to(sender, args[0])
        elif name == "upgradeToAndMigrate":
            self.upgrade_to_and_migrate(sender, args[0], args[1])
        elif name == "migrate":
            self.migrate(sender, args[0], args[1])
        return b""

    # ==================== Host State ====================

    def snapshot_state(self) -> Dict[str, Any]:
        return copy.deepcopy(
            {k: v for k, v in vars(self).items() if k not in _TRANSIENT_FIELDS}
        )

    def restore_state(self, snapshot: Dict[str, Any]) -> None:
        for name, value in copy.deepcopy(snapshot).items():
            setattr(self, name, value)

    # ==================== Internal ====================

    def _bindings(self) -> RoleBindings:
        return RoleBindings(
            wallet=self.address,
            entry_point=self.entry_point,
            owner=self.owner,
            guardian=self.guardian,
            self_call_active=self._self_call_active,
        )

    def _require(self, operation: Operation, caller: str) -> None:
        AccessGate.require(operation, caller, self._bindings())

    def _require_initialized(self) -> None:
        if not self.upgrades.initialized:
            raise NotInitialized(f"Wallet {self.address} is not initialized")

    @contextmanager
    def _self_call_scope(self, active: bool) -> Iterator[None]:
        previous = self._self_call_active
        self._self_call_active = active
        try:
            yield
        finally:
            self._self_call_active = previous

    def _dispatch_self_call(self, value: int, data: bytes) -> bytes:
        logger.info(
            "Governance self-call",
            extra={
                "event": "wallet.self_call",
                "wallet": self.address,
                "selector": bytes(data[:4]).hex(),
            },
        )
        try:
            with self._self_call_scope(True):
                return self.handle_call(self.address, value, data)
        except CallFailed:
            raise
        except WalletExecutionError as exc:
            logger.warning(
                "Governance self-call failed",
                extra={
                    "event": "wallet.self_call_failed",
                    "wallet": self.address,
                    "error": exc.message,
                    "error_type": type(exc).__name__,
                },
            )
            raise CallFailed(
                f"Call to {self.address} failed: {exc.message}",
                details={
                    "target": self.address,
                    "value": value,
                    "error": exc.message,
                    "error_type": type(exc).__name__,
                },
            ) from exc

    def _call_external(self, target: str, value: int, data: bytes) -> bytes:
        # External code never runs with the self-call role
        with self._self_call_scope(False):
            result = self.env.call(self.address, target, value, data)

        if not result.success:
            logger.warning(
                "Wallet call failed",
                extra={
                    "event": "wallet.call_failed",
                    "wallet": self.address,
                    "target": target,
                    "value": value,
                    "error": result.error,
                },
            )
            raise CallFailed(
                f"Call to {target} failed: {result.error}",
                details={"target": target, "value": value, "error": result.error},
            )

        logger.info(
            "Wallet call executed",
            extra={
                "event": "wallet.executed",
                "wallet": self.address,
                "target": target,
                "value": value,
            },
        )
        return result.return_data

    def _pay_prefund(self, to: str, amount: int) -> bool:
        paid = self.env.transfer(self.address, to, amount)
        if not paid:
            # Ignored on purpose: must not change the validation result
            logger.warning(
                "Prefund transfer failed",
                extra={
                    "event": "wallet.prefund_failed",
                    "wallet": self.address,
                    "to": to,
                    "amount": amount,
                    "balance": self.env.balance_of(self.address),
                },
            )
        return paid

    def _set_owner(self, new_owner: str, reason: str) -> None:
        old_owner = self.owner
        self.owner = new_owner
        logger.info(
            "Ownership changed",
            extra={
                "event": "wallet.owner_changed",
                "wallet": self.address,
                "old_owner": old_owner,
                "new_owner": new_owner,
                "reason": reason,
            },
        )

    @staticmethod
    def _checked_address(address: str, fault: type, label: str) -> str:
        if is_zero_address(address):
            raise fault(f"{label} cannot be the zero address")
        try:
            return normalize_address(address)
        except ValueError as exc:
            raise fault(str(exc)) from exc

    @staticmethod
    def _checked_target(target: str) -> str:
        try:
            return normalize_address(target)
        except ValueError as exc:
            raise MalformedCalldata(f"Invalid call target: {exc}") from exc

    @staticmethod
    def _require_non_negative(value: int) -> None:
        if value < 0:
            raise InvalidValue(f"Value cannot be negative: {value}")
