"""
Signer Registry.

Holds the wallet's authorized signer set in 256 addressable slots together
with the signature threshold. After initialization, and after every
successful mutation, ``1 <= threshold <= signer_count`` holds.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from qwallet.core.constants import MAX_SIGNER_INDEX, MAX_SIGNERS, ZERO_ADDRESS
from qwallet.core.crypto_utils import is_zero_address, normalize_address
from qwallet.core.exceptions import (
    AlreadyInitialized,
    InvalidSigner,
    InvalidThreshold,
    SignerAlreadyExists,
    SignerNotExists,
)

logger = logging.getLogger(__name__)


@dataclass
class SignerRegistry:
    """
    Slot-indexed signer set.

    Slots are keyed by index in ``[0, 255]``. An empty slot is simply absent
    from ``slots``; ``get_signer`` reports it as the zero address.
    """

    slots: Dict[int, str] = field(default_factory=dict)
    threshold: int = 0

    @property
    def signer_count(self) -> int:
        return len(self.slots)

    @property
    def initialized(self) -> bool:
        return self.threshold > 0

    # ==================== Initialization ====================

    def initialize(self, signers: List[str], threshold: int) -> None:
        """
        Store ``signers`` at their positional indices and set ``threshold``.

        Raises:
            AlreadyInitialized: If the registry already holds a signer set.
            InvalidThreshold: If threshold is zero or exceeds len(signers).
            InvalidSigner: On a zero/invalid address or more than 256 signers.
            SignerAlreadyExists: If an address appears twice.
        """
        if self.initialized:
            raise AlreadyInitialized("Signer registry already initialized")

        if len(signers) > MAX_SIGNERS:
            raise InvalidSigner(
                f"At most {MAX_SIGNERS} signers supported, got {len(signers)}",
                details={"count": len(signers)},
            )

        if threshold < 1 or threshold > len(signers):
            raise InvalidThreshold(
                f"Threshold {threshold} out of range for {len(signers)} signers",
                details={"threshold": threshold, "signer_count": len(signers)},
            )

        slots: Dict[int, str] = {}
        seen: set[str] = set()
        for index, signer in enumerate(signers):
            address = self._validated_address(signer)
            if address in seen:
                raise SignerAlreadyExists(
                    f"Signer {address} listed more than once",
                    details={"signer": address, "index": index},
                )
            seen.add(address)
            slots[index] = address

        self.slots = slots
        self.threshold = threshold

        logger.info(
            "Signer registry initialized",
            extra={
                "event": "registry.initialized",
                "signer_count": self.signer_count,
                "threshold": threshold,
            },
        )

    # ==================== Mutations ====================

    def add_signer(self, signer: str, index: int) -> None:
        """
        Place ``signer`` in slot ``index``.

        Raises:
            InvalidSigner: Zero/invalid address or index outside [0, 255].
            SignerAlreadyExists: Slot occupied or address already a signer.
        """
        self._require_valid_index(index)
        address = self._validated_address(signer)

        if index in self.slots:
            raise SignerAlreadyExists(
                f"Slot {index} already holds {self.slots[index]}",
                details={"index": index},
            )
        existing = self.index_of(address)
        if existing is not None:
            raise SignerAlreadyExists(
                f"{address} already registered at slot {existing}",
                details={"signer": address, "index": existing},
            )

        self.slots[index] = address

        logger.info(
            "Signer added",
            extra={
                "event": "registry.signer_added",
                "signer": address,
                "index": index,
                "signer_count": self.signer_count,
            },
        )

    def remove_signer(self, index: int) -> str:
        """
        Empty slot ``index``. The threshold is never lowered to make room.

        Returns:
            The removed signer address.

        Raises:
            SignerNotExists: Slot is empty.
            InvalidThreshold: Removal would leave fewer signers than threshold.
        """
        if index not in self.slots:
            raise SignerNotExists(f"No signer at slot {index}", details={"index": index})

        if self.signer_count - 1 < self.threshold:
            raise InvalidThreshold(
                f"Removing slot {index} would leave {self.signer_count - 1} signers "
                f"for threshold {self.threshold}",
                details={"threshold": self.threshold, "signer_count": self.signer_count},
            )

        removed = self.slots.pop(index)

        logger.info(
            "Signer removed",
            extra={
                "event": "registry.signer_removed",
                "signer": removed,
                "index": index,
                "signer_count": self.signer_count,
            },
        )
        return removed

    def update_threshold(self, new_threshold: int) -> None:
        if new_threshold < 1 or new_threshold > self.signer_count:
            raise InvalidThreshold(
                f"Threshold {new_threshold} out of range for {self.signer_count} signers",
                details={"threshold": new_threshold, "signer_count": self.signer_count},
            )

        old_threshold = self.threshold
        self.threshold = new_threshold

        logger.info(
            "Threshold updated",
            extra={
                "event": "registry.threshold_updated",
                "old_threshold": old_threshold,
                "new_threshold": new_threshold,
            },
        )

    # ==================== Queries ====================

    def get_signer(self, index: int) -> str:
        return self.slots.get(index, ZERO_ADDRESS)

    def index_of(self, address: str) -> Optional[int]:
        target = address.lower()
        for index, signer in self.slots.items():
            if signer.lower() == target:
                return index
        return None

    def is_signer(self, address: str) -> bool:
        return self.index_of(address) is not None

    def signers(self) -> Dict[int, str]:
        """Occupied slots, ordered by index."""
        return dict(sorted(self.slots.items()))

    # ==================== Internal ====================

    @staticmethod
    def _require_valid_index(index: int) -> None:
        if not isinstance(index, int) or index < 0 or index > MAX_SIGNER_INDEX:
            raise InvalidSigner(
                f"Signer index must be in [0, {MAX_SIGNER_INDEX}], got {index!r}",
                details={"index": index},
            )

    @staticmethod
    def _validated_address(signer: str) -> str:
        try:
            address = normalize_address(signer)
        except ValueError as exc:
            raise InvalidSigner(str(exc), details={"signer": signer}) from exc
        if is_zero_address(address):
            raise InvalidSigner("Signer cannot be the zero address")
        return address
