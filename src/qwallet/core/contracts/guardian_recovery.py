"""
Guardian Recovery.

Timelocked, guardian-initiated ownership transfer.

States:
    NO_REQUEST -> PENDING     initiate
    PENDING    -> EXECUTED    execute, once now >= execute_after
    PENDING    -> NO_REQUEST  cancel
    any        -> PENDING     initiate again (overwrites)

An executed request is kept so a replayed ``execute`` is reported as
``RecoveryAlreadyExecuted`` rather than ``NoRecoveryPending``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from qwallet.core.constants import RECOVERY_PERIOD
from qwallet.core.crypto_utils import is_zero_address, normalize_address
from qwallet.core.exceptions import (
    InvalidGuardian,
    NoRecoveryPending,
    RecoveryAlreadyExecuted,
    RecoveryNotReady,
)

logger = logging.getLogger(__name__)


class RecoveryState(Enum):
    NO_REQUEST = "no_request"
    PENDING = "pending"
    EXECUTED = "executed"


@dataclass
class RecoveryRequest:
    new_owner: str
    execute_after: int
    executed: bool = False


@dataclass
class GuardianRecovery:
    request: Optional[RecoveryRequest] = None
    recovery_period: int = RECOVERY_PERIOD

    @property
    def state(self) -> RecoveryState:
        if self.request is None:
            return RecoveryState.NO_REQUEST
        if self.request.executed:
            return RecoveryState.EXECUTED
        return RecoveryState.PENDING

    def initiate(self, new_owner: str, now: int) -> RecoveryRequest:
        """
        Start (or restart) recovery toward ``new_owner``.

        Raises:
            InvalidGuardian: If ``new_owner`` is empty or not an address.
        """
        if is_zero_address(new_owner):
            raise InvalidGuardian("Recovery target cannot be the zero address")
        try:
            target = normalize_address(new_owner)
        except ValueError as exc:
            raise InvalidGuardian(str(exc)) from exc

        replaced = self.state is RecoveryState.PENDING
        self.request = RecoveryRequest(
            new_owner=target,
            execute_after=now + self.recovery_period,
        )

        logger.info(
            "Recovery initiated",
            extra={
                "event": "recovery.initiated",
                "new_owner": target,
                "execute_after": self.request.execute_after,
                "replaced_pending": replaced,
            },
        )
        return self.request

    def execute(self, now: int) -> str:
        """
        Complete the pending recovery.

        Returns:
            The new owner address, for the wallet to install.

        Raises:
            NoRecoveryPending: No request exists.
            RecoveryAlreadyExecuted: The request has already been executed.
            RecoveryNotReady: ``now`` is before ``execute_after``.
        """
        request = self.request
        if request is None:
            raise NoRecoveryPending("No recovery request")
        if request.executed:
            raise RecoveryAlreadyExecuted("Recovery request already executed")
        if now < request.execute_after:
            raise RecoveryNotReady(
                f"Recovery executable in {request.execute_after - now}s",
                details={"now": now, "execute_after": request.execute_after},
            )

        request.executed = True

        logger.info(
            "Recovery executed",
            extra={"event": "recovery.executed", "new_owner": request.new_owner},
        )
        return request.new_owner

    def cancel(self) -> bool:
        """
        Drop the current request.

        Returns:
            True if a request was cleared, False if there was none.
        """
        if self.request is None:
            logger.info(
                "Recovery cancel with no request",
                extra={"event": "recovery.cancel_noop"},
            )
            return False

        self.request = None
        logger.info("Recovery cancelled", extra={"event": "recovery.cancelled"})
        return True
