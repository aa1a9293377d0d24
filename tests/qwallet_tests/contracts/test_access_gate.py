"""
Tests for the operation-to-role access table.
"""

import pytest
from eth_utils import to_checksum_address

from qwallet.core.constants import ZERO_ADDRESS
from qwallet.core.contracts.access_gate import (
    ACCESS_TABLE,
    AccessGate,
    CallerRole,
    Operation,
    RoleBindings,
)
from qwallet.core.exceptions import (
    AccessDenied,
    OnlyEntryPoint,
    OnlyGuardian,
    OnlyOwner,
    OnlySelf,
)

WALLET = to_checksum_address("0x" + "11" * 20)
ENTRY = to_checksum_address("0x" + "22" * 20)
OWNER = to_checksum_address("0x" + "33" * 20)
GUARDIAN = to_checksum_address("0x" + "44" * 20)
OUTSIDER = to_checksum_address("0x" + "55" * 20)

GOVERNANCE_OPS = [
    Operation.ADD_SIGNER,
    Operation.REMOVE_SIGNER,
    Operation.UPDATE_THRESHOLD,
    Operation.TRANSFER_OWNERSHIP,
    Operation.SET_GUARDIAN,
    Operation.SET_DAILY_LIMIT,
    Operation.UNPAUSE,
    Operation.AUTHORIZE_UPGRADE,
    Operation.MIGRATE,
]


def bindings(self_call_active=False, owner=OWNER, guardian=GUARDIAN):
    return RoleBindings(
        wallet=WALLET,
        entry_point=ENTRY,
        owner=owner,
        guardian=guardian,
        self_call_active=self_call_active,
    )


class TestAccessTable:

    def test_every_operation_has_an_entry(self):
        assert set(ACCESS_TABLE) == set(Operation)

    def test_every_fault_is_an_access_denial(self):
        for _, fault in ACCESS_TABLE.values():
            assert issubclass(fault, AccessDenied)

    @pytest.mark.parametrize("operation", GOVERNANCE_OPS)
    def test_governance_is_self_only(self, operation):
        assert AccessGate.allowed_roles(operation) == frozenset({CallerRole.SELF})

    def test_recovery_roles(self):
        assert AccessGate.allowed_roles(Operation.PAUSE) == {CallerRole.OWNER, CallerRole.GUARDIAN}
        assert AccessGate.allowed_roles(Operation.INITIATE_RECOVERY) == {CallerRole.GUARDIAN}
        assert AccessGate.allowed_roles(Operation.EXECUTE_RECOVERY) == {CallerRole.GUARDIAN}
        assert AccessGate.allowed_roles(Operation.CANCEL_RECOVERY) == {CallerRole.OWNER, CallerRole.SELF}


class TestRoles:

    def test_wallet_is_self_only_inside_dispatch(self):
        assert CallerRole.SELF not in bindings().roles_of(WALLET)
        assert CallerRole.SELF in bindings(self_call_active=True).roles_of(WALLET)

    def test_zero_address_never_holds_a_role(self):
        empty = bindings(owner=ZERO_ADDRESS, guardian=ZERO_ADDRESS)
        assert empty.roles_of(ZERO_ADDRESS) == frozenset()

    def test_one_address_may_hold_several_roles(self):
        shared = bindings(guardian=OWNER)
        assert shared.roles_of(OWNER) == {CallerRole.OWNER, CallerRole.GUARDIAN}

    def test_comparison_ignores_case(self):
        assert bindings().roles_of(ENTRY.lower()) == {CallerRole.ENTRY_POINT}


class TestRequire:

    def test_entry_point_may_execute(self):
        AccessGate.require(Operation.EXECUTE, ENTRY, bindings())

    def test_active_self_call_may_govern(self):
        AccessGate.require(Operation.ADD_SIGNER, WALLET, bindings(self_call_active=True))

    @pytest.mark.parametrize(
        "operation,caller,fault",
        [
            (Operation.VALIDATE, OWNER, OnlyEntryPoint),
            (Operation.EXECUTE, OUTSIDER, OnlyEntryPoint),
            (Operation.EXECUTE_BATCH, GUARDIAN, OnlyEntryPoint),
            (Operation.ADD_SIGNER, OWNER, OnlySelf),
            (Operation.ADD_SIGNER, ENTRY, OnlySelf),
            (Operation.UNPAUSE, GUARDIAN, OnlySelf),
            (Operation.PAUSE, OUTSIDER, OnlyGuardian),
            (Operation.INITIATE_RECOVERY, OWNER, OnlyGuardian),
            (Operation.EXECUTE_RECOVERY, OWNER, OnlyGuardian),
            (Operation.CANCEL_RECOVERY, GUARDIAN, OnlyOwner),
        ],
    )
    def test_denied(self, operation, caller, fault):
        with pytest.raises(fault) as exc_info:
            AccessGate.require(operation, caller, bindings())
        assert exc_info.value.details["operation"] == operation.value

    def test_wallet_without_active_self_call_cannot_govern(self):
        with pytest.raises(OnlySelf):
            AccessGate.require(Operation.SET_GUARDIAN, WALLET, bindings())

    def test_unset_guardian_cannot_be_claimed_by_zero_address(self):
        no_guardian = bindings(guardian=ZERO_ADDRESS)
        assert not AccessGate.is_allowed(Operation.INITIATE_RECOVERY, ZERO_ADDRESS, no_guardian)
