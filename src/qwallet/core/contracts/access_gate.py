"""
Access Gate.

Static routing table from wallet operation to the caller roles allowed to
invoke it, and the fault raised when none of the caller's roles match.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Tuple, Type

from qwallet.core.crypto_utils import is_zero_address, same_address
from qwallet.core.exceptions import (
    AccessDenied,
    OnlyEntryPoint,
    OnlyGuardian,
    OnlyOwner,
    OnlySelf,
)

logger = logging.getLogger(__name__)


class CallerRole(Enum):
    """Roles a caller can hold with respect to one wallet."""
    ENTRY_POINT = "entry_point"
    SELF = "self"
    OWNER = "owner"
    GUARDIAN = "guardian"


class Operation(Enum):
    """Gated wallet operations."""
    VALIDATE = "validate"
    EXECUTE = "execute"
    EXECUTE_BATCH = "execute_batch"
    ADD_SIGNER = "add_signer"
    REMOVE_SIGNER = "remove_signer"
    UPDATE_THRESHOLD = "update_threshold"
    TRANSFER_OWNERSHIP = "transfer_ownership"
    SET_GUARDIAN = "set_guardian"
    SET_DAILY_LIMIT = "set_daily_limit"
    UNPAUSE = "unpause"
    AUTHORIZE_UPGRADE = "authorize_upgrade"
    MIGRATE = "migrate"
    PAUSE = "pause"
    INITIATE_RECOVERY = "initiate_recovery"
    EXECUTE_RECOVERY = "execute_recovery"
    CANCEL_RECOVERY = "cancel_recovery"


_SELF_ONLY = frozenset({CallerRole.SELF})

ACCESS_TABLE: Dict[Operation, Tuple[FrozenSet[CallerRole], Type[AccessDenied]]] = {
    Operation.VALIDATE: (frozenset({CallerRole.ENTRY_POINT}), OnlyEntryPoint),
    Operation.EXECUTE: (frozenset({CallerRole.ENTRY_POINT, CallerRole.SELF}), OnlyEntryPoint),
    Operation.EXECUTE_BATCH: (frozenset({CallerRole.ENTRY_POINT, CallerRole.SELF}), OnlyEntryPoint),
    Operation.ADD_SIGNER: (_SELF_ONLY, OnlySelf),
    Operation.REMOVE_SIGNER: (_SELF_ONLY, OnlySelf),
    Operation.UPDATE_THRESHOLD: (_SELF_ONLY, OnlySelf),
    Operation.TRANSFER_OWNERSHIP: (_SELF_ONLY, OnlySelf),
    Operation.SET_GUARDIAN: (_SELF_ONLY, OnlySelf),
    Operation.SET_DAILY_LIMIT: (_SELF_ONLY, OnlySelf),
    Operation.UNPAUSE: (_SELF_ONLY, OnlySelf),
    Operation.AUTHORIZE_UPGRADE: (_SELF_ONLY, OnlySelf),
    Operation.MIGRATE: (_SELF_ONLY, OnlySelf),
    Operation.PAUSE: (frozenset({CallerRole.OWNER, CallerRole.GUARDIAN}), OnlyGuardian),
    Operation.INITIATE_RECOVERY: (frozenset({CallerRole.GUARDIAN}), OnlyGuardian),
    Operation.EXECUTE_RECOVERY: (frozenset({CallerRole.GUARDIAN}), OnlyGuardian),
    Operation.CANCEL_RECOVERY: (frozenset({CallerRole.OWNER, CallerRole.SELF}), OnlyOwner),
}


@dataclass(frozen=True)
class RoleBindings:
    """Who holds each role for one wallet, at the moment of a call."""

    wallet: str
    entry_point: str
    owner: str
    guardian: str
    self_call_active: bool = False

    def roles_of(self, caller: str) -> FrozenSet[CallerRole]:
        if is_zero_address(caller):
            return frozenset()

        roles = set()
        if same_address(caller, self.entry_point):
            roles.add(CallerRole.ENTRY_POINT)
        if self.self_call_active and same_address(caller, self.wallet):
            roles.add(CallerRole.SELF)
        if not is_zero_address(self.owner) and same_address(caller, self.owner):
            roles.add(CallerRole.OWNER)
        if not is_zero_address(self.guardian) and same_address(caller, self.guardian):
            roles.add(CallerRole.GUARDIAN)
        return frozenset(roles)


class AccessGate:
    """Checks callers against ``ACCESS_TABLE``."""

    table = ACCESS_TABLE

    @classmethod
    def allowed_roles(cls, operation: Operation) -> FrozenSet[CallerRole]:
        return cls.table[operation][0]

    @classmethod
    def is_allowed(cls, operation: Operation, caller: str, bindings: RoleBindings) -> bool:
        return bool(cls.allowed_roles(operation) & bindings.roles_of(caller))

    @classmethod
    def require(cls, operation: Operation, caller: str, bindings: RoleBindings) -> None:
        """
        Raises:
            AccessDenied: The operation's specific subclass when no role matches.
        """
        allowed, fault = cls.table[operation]
        if allowed & bindings.roles_of(caller):
            return

        logger.warning(
            "Access denied",
            extra={
                "event": "access.denied",
                "operation": operation.value,
                "caller": caller,
                "wallet": bindings.wallet,
                "allowed": sorted(role.value for role in allowed),
            },
        )
        raise fault(
            f"{operation.value} not permitted for {caller}",
            details={"operation": operation.value, "caller": caller},
        )
