"""
Wallet Factory.

Deploys ``QuorumWallet`` instances at counterfactual CREATE2 addresses:

    address = keccak256(0xff ++ factory ++ salt ++ keccak256(init_code))[12:]

``init_code`` is a fixed creation-code tag followed by the ABI-encoded
initialization parameters, so the address depends only on the factory, the
salt and those parameters, never on deployment order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Union

from eth_abi import encode
from eth_utils import keccak

from qwallet.core.abi import decode_call, encode_return, selector_table
from qwallet.core.constants import DEFAULT_ENTRY_POINT, ZERO_ADDRESS
from qwallet.core.contracts.quorum_wallet import QuorumWallet
from qwallet.core.crypto_utils import create2_address, normalize_address
from qwallet.core.host import HostEnvironment

logger = logging.getLogger(__name__)

# Stands in for the wallet's creation bytecode
WALLET_CREATION_CODE = keccak(text="qwallet.QuorumWallet.v1")

FACTORY_FUNCTIONS = (
    "createAccount(address,address[],uint8,address,uint256,bytes32)",
    "getAddress(address,address[],uint8,address,uint256,bytes32)",
)
FACTORY_SELECTORS = selector_table(FACTORY_FUNCTIONS)

Salt = Union[int, bytes]


@dataclass(frozen=True)
class WalletInitParams:
    """Everything ``QuorumWallet.initialize`` needs."""

    owner: str
    signers: tuple
    threshold: int
    guardian: str = ZERO_ADDRESS
    daily_limit: int = 0

    def encode(self) -> bytes:
        return encode(
            ["address", "address[]", "uint8", "address", "uint256"],
            [
                normalize_address(self.owner),
                [normalize_address(s) for s in self.signers],
                self.threshold,
                normalize_address(self.guardian),
                self.daily_limit,
            ],
        )


def salt_bytes(salt: Salt) -> bytes:
    """Left-pad an integer salt to 32 bytes. Byte salts must already be 32 bytes."""
    if isinstance(salt, int):
        if salt < 0 or salt >= 2**256:
            raise ValueError(f"Salt out of range: {salt}")
        return salt.to_bytes(32, "big")
    if len(salt) != 32:
        raise ValueError(f"Salt must be 32 bytes, got {len(salt)} bytes")
    return bytes(salt)


def wallet_init_code(entry_point: str, params: WalletInitParams) -> bytes:
    return WALLET_CREATION_CODE + bytes.fromhex(normalize_address(entry_point)[2:]) + params.encode()


def predict_wallet_address(
    factory: str,
    entry_point: str,
    params: WalletInitParams,
    salt: Salt,
) -> str:
    return create2_address(factory, salt_bytes(salt), keccak(wallet_init_code(entry_point, params)))


@dataclass
class WalletFactory:
    """
    Factory for deploying quorum wallets.

    Provides deterministic addresses for counterfactual deployment.
    """

    env: HostEnvironment
    address: str
    entry_point: str = DEFAULT_ENTRY_POINT

    # Deployed wallets
    accounts: Dict[str, QuorumWallet] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.address = normalize_address(self.address)
        self.entry_point = normalize_address(self.entry_point)
        if not self.env.is_contract(self.address):
            self.env.register_contract(self)

    def init_code(self, params: WalletInitParams) -> bytes:
        return wallet_init_code(self.entry_point, params)

    def get_address(self, params: WalletInitParams, salt: Salt) -> str:
        """Address ``create_account`` would deploy to. Pure arithmetic."""
        return predict_wallet_address(self.address, self.entry_point, params, salt)

    def create_account(self, params: WalletInitParams, salt: Salt) -> QuorumWallet:
        """
        Deploy and initialize a wallet, or return the one already there.

        Raises:
            InvalidThreshold / InvalidSigner / InvalidOwner / ...: From
                ``QuorumWallet.initialize``. Nothing is deployed on failure.
        """
        address = self.get_address(params, salt)

        existing = self.accounts.get(address)
        if existing is not None:
            return existing

        with self.env.atomic():
            wallet = QuorumWallet(address=address, env=self.env, entry_point=self.entry_point)
            wallet.initialize(
                owner=params.owner,
                signers=list(params.signers),
                threshold=params.threshold,
                guardian=params.guardian,
                daily_limit=params.daily_limit,
            )
            self.accounts[address] = wallet

        logger.info(
            "Wallet deployed",
            extra={
                "event": "factory.account_created",
                "address": address,
                "owner": wallet.owner,
                "threshold": params.threshold,
            },
        )
        return wallet

    def get_account(self, address: str) -> QuorumWallet | None:
        return self.accounts.get(normalize_address(address))

    # ==================== Host Interface ====================

    def handle_call(self, sender: str, value: int, data: bytes) -> bytes:
        if not data:
            return b""
        signature, args = decode_call(data, FACTORY_SELECTORS)
        owner, signers, threshold, guardian, daily_limit, salt = args
        params = WalletInitParams(
            owner=owner,
            signers=tuple(signers),
            threshold=threshold,
            guardian=guardian,
            daily_limit=daily_limit,
        )
        if signature.startswith("createAccount"):
            address = self.create_account(params, salt).address
        else:
            address = self.get_address(params, salt)
        return encode_return(["address"], [address])

    def snapshot_state(self) -> Dict[str, Any]:
        return {"accounts": dict(self.accounts)}

    def restore_state(self, snapshot: Dict[str, Any]) -> None:
        self.accounts = dict(snapshot["accounts"])

    def list_accounts(self) -> List[str]:
        return sorted(self.accounts)
