"""
Host Environment.

The minimal execution environment contracts run against:
- An explicit clock that tests advance by hand
- Native balances keyed by address
- A registry of deployed contracts reachable by address
- All-or-nothing scopes via snapshot/restore

Nothing here meters gas or orders transactions. Contracts registered with the
host implement ``handle_call(sender, value, data) -> bytes`` and
``snapshot_state()`` / ``restore_state(snapshot)``.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional, Protocol

from qwallet.core.crypto_utils import normalize_address
from qwallet.core.exceptions import InvalidValue, WalletExecutionError

logger = logging.getLogger(__name__)


class HostContract(Protocol):
    """Interface every contract registered with the host provides."""

    address: str

    def handle_call(self, sender: str, value: int, data: bytes) -> bytes: ...

    def snapshot_state(self) -> Any: ...

    def restore_state(self, snapshot: Any) -> None: ...


@dataclass
class CallResult:
    """Outcome of a host-mediated call."""

    success: bool
    return_data: bytes = b""
    error: str = ""


@dataclass
class HostEnvironment:
    """
    In-process stand-in for the ledger a wallet is deployed on.

    Time never moves on its own: ``now()`` returns ``timestamp`` until a test
    calls ``advance_time`` or ``set_time``.
    """

    chain_id: int = 31337
    timestamp: int = 0

    balances: Dict[str, int] = field(default_factory=dict)
    contracts: Dict[str, Any] = field(default_factory=dict)

    # Depth of nested atomic scopes, for logging only
    _depth: int = field(default=0, init=False, repr=False)

    # ==================== Clock ====================

    def now(self) -> int:
        return self.timestamp

    def advance_time(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("Clock cannot move backwards")
        self.timestamp += seconds
        return self.timestamp

    def set_time(self, timestamp: int) -> int:
        if timestamp < self.timestamp:
            raise ValueError("Clock cannot move backwards")
        self.timestamp = timestamp
        return self.timestamp

    # ==================== Native Balances ====================

    def balance_of(self, address: str) -> int:
        return self.balances.get(normalize_address(address), 0)

    def credit(self, address: str, amount: int) -> int:
        """Mint native funds to ``address``. Test and setup helper."""
        if amount < 0:
            raise InvalidValue(f"Cannot credit negative amount {amount}")
        key = normalize_address(address)
        self.balances[key] = self.balances.get(key, 0) + amount
        return self.balances[key]

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        """
        Move native funds.

        Returns:
            False if ``amount`` is negative or ``sender`` cannot cover it,
            True otherwise. Never raises for insufficient funds.
        """
        if amount < 0:
            return False
        if amount == 0:
            return True

        sender_key = normalize_address(sender)
        to_key = normalize_address(to)
        available = self.balances.get(sender_key, 0)
        if available < amount:
            logger.debug(
                "Native transfer rejected",
                extra={
                    "event": "host.transfer_rejected",
                    "sender": sender_key,
                    "to": to_key,
                    "amount": amount,
                    "available": available,
                },
            )
            return False

        self.balances[sender_key] = available - amount
        self.balances[to_key] = self.balances.get(to_key, 0) + amount
        return True

    # ==================== Contract Registry ====================

    def register_contract(self, contract: Any) -> Any:
        key = normalize_address(contract.address)
        self.contracts[key] = contract
        logger.info(
            "Contract registered",
            extra={
                "event": "host.contract_registered",
                "address": key,
                "kind": type(contract).__name__,
            },
        )
        return contract

    def get_contract(self, address: str) -> Optional[Any]:
        return self.contracts.get(normalize_address(address))

    def is_contract(self, address: str) -> bool:
        return normalize_address(address) in self.contracts

    # ==================== Calls ====================

    def call(self, sender: str, target: str, value: int, data: bytes) -> CallResult:
        """
        Send ``value`` and ``data`` from ``sender`` to ``target``.

        A plain address only receives value. A registered contract also runs
        ``handle_call``. Any ``WalletExecutionError`` raised by the callee
        rolls back the call's own effects and is reported as a failed
        ``CallResult``. Callees map bad calldata and return values to
        ``MalformedCalldata`` through ``qwallet.core.abi``.

        Raises:
            Exception: Anything else the callee raises is a defect, not a
                revert. The call's effects are rolled back and it propagates.
        """
        if value < 0:
            return CallResult(success=False, error="negative value")

        try:
            with self.atomic():
                if not self.transfer(sender, target, value):
                    raise InvalidValue(
                        "Insufficient native balance for call value",
                        details={"sender": sender, "value": value},
                    )
                contract = self.get_contract(target)
                return_data = b""
                if contract is not None:
                    return_data = contract.handle_call(sender, value, data) or b""
        except WalletExecutionError as exc:
            logger.info(
                "Call reverted",
                extra={
                    "event": "host.call_reverted",
                    "sender": sender,
                    "target": target,
                    "value": value,
                    "error": exc.message,
                    "error_type": type(exc).__name__,
                },
            )
            return CallResult(success=False, error=exc.message)

        return CallResult(success=True, return_data=return_data)

    # ==================== Atomicity ====================

    def snapshot(self) -> Dict[str, Any]:
        """Capture native balances, the registry and every contract's state."""
        return {
            "balances": dict(self.balances),
            "contracts": dict(self.contracts),
            "states": {
                address: contract.snapshot_state()
                for address, contract in self.contracts.items()
            },
        }

    def restore(self, snapshot: Dict[str, Any]) -> None:
        self.balances = snapshot["balances"]
        self.contracts = snapshot["contracts"]
        for address, state in snapshot["states"].items():
            self.contracts[address].restore_state(state)

    @contextmanager
    def atomic(self) -> Iterator["HostEnvironment"]:
        """
        Run a block all-or-nothing.

        Any exception escaping the block restores the host and every
        registered contract to the state captured on entry, then propagates.
        Scopes nest.
        """
        snapshot = self.snapshot()
        self._depth += 1
        try:
            yield self
        except BaseException:
            self.restore(snapshot)
            logger.debug(
                "Atomic scope rolled back",
                extra={"event": "host.rolled_back", "depth": self._depth},
            )
            raise
        finally:
            self._depth -= 1
