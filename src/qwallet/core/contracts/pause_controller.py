"""Two-state emergency switch gating value-moving execution."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from qwallet.core.exceptions import ContractPaused, NotPaused

logger = logging.getLogger(__name__)


class PauseState(Enum):
    ACTIVE = "active"
    PAUSED = "paused"


@dataclass
class PauseController:
    state: PauseState = PauseState.ACTIVE

    @property
    def is_paused(self) -> bool:
        return self.state is PauseState.PAUSED

    def pause(self, by: str = "") -> None:
        if self.is_paused:
            raise ContractPaused("Wallet is already paused")
        self.state = PauseState.PAUSED
        logger.warning("Wallet paused", extra={"event": "pause.paused", "by": by})

    def unpause(self) -> None:
        if not self.is_paused:
            raise NotPaused("Wallet is not paused")
        self.state = PauseState.ACTIVE
        logger.info("Wallet unpaused", extra={"event": "pause.unpaused"})

    def require_active(self) -> None:
        if self.is_paused:
            raise ContractPaused("Wallet is paused")
