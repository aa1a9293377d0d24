"""
Fungible token ledger.

Plain balance accounting with owner-gated mint and burn. ``total_supply``
always equals the sum of all balances.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from qwallet.core.abi import decode_call, encode_return, selector_table
from qwallet.core.constants import UINT256_MAX, ZERO_ADDRESS
from qwallet.core.crypto_utils import is_zero_address, normalize_address, same_address
from qwallet.core.exceptions import (
    InsufficientBalance,
    InvalidValue,
    MalformedCalldata,
    OnlyOwner,
)

logger = logging.getLogger(__name__)

TOKEN_FUNCTIONS = (
    "transfer(address,uint256)",
    "mint(address,uint256)",
    "burn(address,uint256)",
    "balanceOf(address)",
    "totalSupply()",
)
TOKEN_SELECTORS = selector_table(TOKEN_FUNCTIONS)


@dataclass
class TokenEvent:
    """A Transfer event. Mints come from and burns go to the zero address."""

    from_address: str
    to_address: str
    value: int


@dataclass
class FungibleToken:
    """Minimal ERC20-style ledger."""

    address: str
    owner: str
    name: str = "Token"
    symbol: str = "TKN"
    decimals: int = 18
    total_supply: int = 0

    balances: Dict[str, int] = field(default_factory=dict)
    events: List[TokenEvent] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.address = normalize_address(self.address)
        self.owner = normalize_address(self.owner)

    # ==================== View Functions ====================

    def balance_of(self, account: str) -> int:
        return self.balances.get(normalize_address(account), 0)

    # ==================== State-Changing Functions ====================

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        """
        Move ``amount`` from ``sender`` to ``recipient``.

        Raises:
            InvalidValue: Negative amount or zero-address recipient.
            InsufficientBalance: Sender cannot cover the amount.
        """
        sender_norm = normalize_address(sender)
        recipient_norm = self._validate_recipient(recipient)
        self._validate_amount(amount)

        balance = self.balances.get(sender_norm, 0)
        if balance < amount:
            raise InsufficientBalance(
                f"{self.symbol}: transfer amount exceeds balance ({amount} > {balance})",
                details={"account": sender_norm, "amount": amount, "balance": balance},
            )

        self.balances[sender_norm] = balance - amount
        self.balances[recipient_norm] = self.balances.get(recipient_norm, 0) + amount
        self.events.append(TokenEvent(sender_norm, recipient_norm, amount))

        logger.debug(
            "Token transfer",
            extra={
                "event": "token.transfer",
                "token": self.symbol,
                "from": sender_norm,
                "to": recipient_norm,
                "amount": amount,
            },
        )
        return True

    def mint(self, caller: str, to: str, amount: int) -> bool:
        """Mint new tokens (owner only)."""
        self._require_owner(caller)
        to_norm = self._validate_recipient(to)
        self._validate_amount(amount)

        if self.total_supply + amount > UINT256_MAX:
            raise InvalidValue(f"{self.symbol}: mint would overflow total supply")

        self.total_supply += amount
        self.balances[to_norm] = self.balances.get(to_norm, 0) + amount
        self.events.append(TokenEvent(ZERO_ADDRESS, to_norm, amount))

        logger.info(
            "Token mint",
            extra={
                "event": "token.mint",
                "token": self.symbol,
                "to": to_norm,
                "amount": amount,
                "new_supply": self.total_supply,
            },
        )
        return True

    def burn(self, caller: str, from_address: str, amount: int) -> bool:
        """Burn tokens held by ``from_address`` (owner only)."""
        self._require_owner(caller)
        holder = normalize_address(from_address)
        self._validate_amount(amount)

        balance = self.balances.get(holder, 0)
        if balance < amount:
            raise InsufficientBalance(
                f"{self.symbol}: burn amount exceeds balance ({amount} > {balance})",
                details={"account": holder, "amount": amount, "balance": balance},
            )

        self.balances[holder] = balance - amount
        self.total_supply -= amount
        self.events.append(TokenEvent(holder, ZERO_ADDRESS, amount))

        logger.info(
            "Token burn",
            extra={
                "event": "token.burn",
                "token": self.symbol,
                "from": holder,
                "amount": amount,
                "new_supply": self.total_supply,
            },
        )
        return True

    # ==================== Host Interface ====================

    def handle_call(self, sender: str, value: int, data: bytes) -> bytes:
        if not data:
            raise MalformedCalldata(f"{self.symbol}: token does not accept native value")

        signature, args = decode_call(data, TOKEN_SELECTORS)
        name = signature.split("(", 1)[0]

        if name == "transfer":
            return encode_return(["bool"], [self.transfer(sender, args[0], args[1])])
        if name == "mint":
            return encode_return(["bool"], [self.mint(sender, args[0], args[1])])
        if name == "burn":
            return encode_return(["bool"], [self.burn(sender, args[0], args[1])])
        if name == "balanceOf":
            return encode_return(["uint256"], [self.balance_of(args[0])])
        return encode_return(["uint256"], [self.total_supply])

    def snapshot_state(self) -> Dict[str, Any]:
        return self.to_dict()

    def restore_state(self, snapshot: Dict[str, Any]) -> None:
        self.owner = snapshot["owner"]
        self.total_supply = snapshot["total_supply"]
        self.balances = dict(snapshot["balances"])
        self.events = [TokenEvent(**event) for event in snapshot["events"]]

    # ==================== Helpers ====================

    def _validate_recipient(self, address: str) -> str:
        if is_zero_address(address):
            raise InvalidValue(f"{self.symbol}: recipient is zero address")
        return normalize_address(address)

    def _validate_amount(self, amount: int) -> None:
        if amount < 0:
            raise InvalidValue(f"{self.symbol}: amount cannot be negative")
        if amount > UINT256_MAX:
            raise InvalidValue(f"{self.symbol}: amount exceeds uint256")

    def _require_owner(self, caller: str) -> None:
        if not same_address(caller, self.owner):
            raise OnlyOwner(f"{self.symbol}: caller is not owner", details={"caller": caller})

    # ==================== Serialization ====================

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "total_supply": self.total_supply,
            "address": self.address,
            "owner": self.owner,
            "balances": dict(self.balances),
            "events": [
                {"from_address": e.from_address, "to_address": e.to_address, "value": e.value}
                for e in self.events
            ],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FungibleToken":
        token = cls(
            address=data["address"],
            owner=data["owner"],
            name=data.get("name", "Token"),
            symbol=data.get("symbol", "TKN"),
            decimals=data.get("decimals", 18),
        )
        token.restore_state(data)
        return token
