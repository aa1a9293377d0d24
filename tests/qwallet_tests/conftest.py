"""
Shared fixtures for qwallet tests.

Keys are fixed so failures are reproducible. The default wallet holds three
signers (A, B, C at slots 0, 1, 2) with threshold 2, a separate owner and
guardian, and 1_000 units of native balance.
"""
from typing import Callable, List, Tuple

import pytest
from eth_account import Account

from qwallet.core.abi import encode_call
from qwallet.core.contracts.entry_point import EntryPoint
from qwallet.core.contracts.quorum_wallet import QuorumWallet
from qwallet.core.contracts.signature_bundle import encode_bundle
from qwallet.core.crypto_utils import sign_operation_hash
from qwallet.core.exceptions import CallFailed
from qwallet.core.host import HostEnvironment

SIGNER_KEYS = ["0x" + "a1" * 32, "0x" + "b2" * 32, "0x" + "c3" * 32]
EXTRA_SIGNER_KEY = "0x" + "f6" * 32
OWNER_KEY = "0x" + "d4" * 32
GUARDIAN_KEY = "0x" + "e5" * 32

WALLET_ADDRESS = "0x" + "77" * 20
START_TIME = 1_700_000_000
WALLET_FUNDS = 1_000


@pytest.fixture
def env() -> HostEnvironment:
    return HostEnvironment(chain_id=31337, timestamp=START_TIME)


@pytest.fixture
def signer_keys() -> List[str]:
    return list(SIGNER_KEYS)


@pytest.fixture
def signer_addresses() -> List[str]:
    return [Account.from_key(key).address for key in SIGNER_KEYS]


@pytest.fixture
def extra_signer() -> str:
    return Account.from_key(EXTRA_SIGNER_KEY).address


@pytest.fixture
def owner() -> str:
    return Account.from_key(OWNER_KEY).address


@pytest.fixture
def guardian() -> str:
    return Account.from_key(GUARDIAN_KEY).address


@pytest.fixture
def recipient() -> str:
    return Account.from_key("0x" + "99" * 32).address


@pytest.fixture
def stranger() -> str:
    return Account.from_key("0x" + "55" * 32).address


@pytest.fixture
def entry_point(env) -> EntryPoint:
    return EntryPoint(env=env)


@pytest.fixture
def wallet(env, entry_point, owner, guardian, signer_addresses) -> QuorumWallet:
    """Initialized 2-of-3 wallet, unlimited daily spend, funded."""
    wallet = QuorumWallet(address=WALLET_ADDRESS, env=env, entry_point=entry_point.address)
    wallet.initialize(owner=owner, signers=signer_addresses, threshold=2, guardian=guardian)
    env.credit(wallet.address, WALLET_FUNDS)
    return wallet


@pytest.fixture
def sign_bundle() -> Callable[[bytes, List[Tuple[int, str]]], bytes]:
    """Build a bundle from (slot index, private key) pairs."""

    def _sign(operation_hash: bytes, entries: List[Tuple[int, str]]) -> bytes:
        return encode_bundle(
            [(index, sign_operation_hash(key, operation_hash)) for index, key in entries]
        )

    return _sign


@pytest.fixture
def governance(wallet, entry_point) -> Callable[[bytes], bytes]:
    """
    Run calldata as a quorum-approved self-call.

    Equivalent to what the dispatcher does after a bundle has validated.
    """

    def _run(calldata: bytes) -> bytes:
        return wallet.execute(entry_point.address, wallet.address, 0, calldata)

    return _run


@pytest.fixture
def call() -> Callable[..., bytes]:
    return encode_call


@pytest.fixture
def governance_fault(governance) -> Callable[[bytes, type], CallFailed]:
    """Run governance calldata that must fail with ``fault`` wrapped in CallFailed."""

    def _run(calldata: bytes, fault: type) -> CallFailed:
        with pytest.raises(CallFailed) as exc_info:
            governance(calldata)
        assert isinstance(exc_info.value.__cause__, fault)
        assert exc_info.value.details["error_type"] == fault.__name__
        return exc_info.value

    return _run
