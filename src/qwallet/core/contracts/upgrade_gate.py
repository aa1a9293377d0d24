"""
Upgrade Gate.

Tracks the implementation backing a wallet and its persisted storage
version. Authorization lives in the wallet (quorum self-call); this module
records upgrades and enforces ordered, at-most-once migrations.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List

from qwallet.core.constants import DEFAULT_IMPLEMENTATION, INITIAL_WALLET_VERSION
from qwallet.core.crypto_utils import is_zero_address, normalize_address, same_address
from qwallet.core.exceptions import (
    AlreadyInitialized,
    InvalidImplementation,
    InvalidMigration,
)

logger = logging.getLogger(__name__)


@dataclass
class UpgradeRecord:
    """Record of an upgrade event."""
    from_implementation: str
    to_implementation: str
    timestamp: int
    version: int


@dataclass
class UpgradeGate:
    implementation: str = DEFAULT_IMPLEMENTATION
    version: int = 0
    history: List[UpgradeRecord] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.implementation = normalize_address(self.implementation)

    @property
    def initialized(self) -> bool:
        return self.version > 0

    def initialize(self) -> None:
        if self.initialized:
            raise AlreadyInitialized(f"Already initialized at version {self.version}")
        self.version = INITIAL_WALLET_VERSION

    def upgrade_to(self, new_implementation: str, now: int) -> UpgradeRecord:
        """
        Point the wallet at ``new_implementation``.

        Raises:
            InvalidImplementation: Empty, malformed, or already active.
        """
        if is_zero_address(new_implementation):
            raise InvalidImplementation("Implementation cannot be the zero address")
        try:
            target = normalize_address(new_implementation)
        except ValueError as exc:
            raise InvalidImplementation(str(exc)) from exc
        if same_address(target, self.implementation):
            raise InvalidImplementation(
                f"{target} is already the active implementation",
                details={"implementation": target},
            )

        record = UpgradeRecord(
            from_implementation=self.implementation,
            to_implementation=target,
            timestamp=now,
            version=self.version,
        )
        self.implementation = target
        self.history.append(record)

        logger.info(
            "Wallet upgraded",
            extra={
                "event": "upgrade.upgraded",
                "old_impl": record.from_implementation,
                "new_impl": target,
                "version": self.version,
            },
        )
        return record

    def migrate(self, from_version: int, to_version: int) -> None:
        """
        Advance the storage version from ``from_version`` to ``to_version``.

        Raises:
            InvalidMigration: Wallet not initialized, ``from_version`` is not
                the current version, or ``to_version`` does not move forward.
        """
        if not self.initialized:
            raise InvalidMigration("Cannot migrate an uninitialized wallet")
        if from_version != self.version:
            raise InvalidMigration(
                f"Migration from v{from_version} but wallet is at v{self.version}",
                details={"from": from_version, "current": self.version},
            )
        if to_version <= from_version:
            raise InvalidMigration(
                f"Migration must move forward: v{from_version} -> v{to_version}",
                details={"from": from_version, "to": to_version},
            )

        self.version = to_version

        logger.info(
            "Wallet migrated",
            extra={"event": "upgrade.migrated", "from": from_version, "to": to_version},
        )
