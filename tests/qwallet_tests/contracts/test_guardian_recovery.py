"""
Tests for timelocked guardian recovery, standalone and through the wallet.
"""

import pytest

from qwallet.core.constants import RECOVERY_PERIOD, ZERO_ADDRESS
from qwallet.core.contracts.guardian_recovery import GuardianRecovery, RecoveryState
from qwallet.core.contracts.quorum_wallet import QuorumWallet
from qwallet.core.exceptions import (
    InvalidGuardian,
    NoRecoveryPending,
    OnlyGuardian,
    OnlyOwner,
    RecoveryAlreadyExecuted,
    RecoveryNotReady,
)

NEW_OWNER = "0x" + "ab" * 20
OTHER_OWNER = "0x" + "cd" * 20
T0 = 1_000_000


class TestRecoveryStateMachine:

    def test_initiate_sets_deadline(self):
        recovery = GuardianRecovery()
        request = recovery.initiate(NEW_OWNER, T0)
        assert request.execute_after == T0 + RECOVERY_PERIOD
        assert request.new_owner.lower() == NEW_OWNER
        assert recovery.state is RecoveryState.PENDING

    def test_execute_exactly_at_deadline(self):
        recovery = GuardianRecovery()
        recovery.initiate(NEW_OWNER, T0)
        with pytest.raises(RecoveryNotReady):
            recovery.execute(T0 + RECOVERY_PERIOD - 1)
        assert recovery.execute(T0 + RECOVERY_PERIOD).lower() == NEW_OWNER
        assert recovery.state is RecoveryState.EXECUTED

    def test_execute_without_request(self):
        with pytest.raises(NoRecoveryPending):
            GuardianRecovery().execute(T0)

    def test_execute_twice(self):
        recovery = GuardianRecovery()
        recovery.initiate(NEW_OWNER, T0)
        recovery.execute(T0 + RECOVERY_PERIOD)
        with pytest.raises(RecoveryAlreadyExecuted):
            recovery.execute(T0 + RECOVERY_PERIOD + 1)

    def test_reinitiate_overwrites_pending(self):
        recovery = GuardianRecovery()
        recovery.initiate(NEW_OWNER, T0)
        request = recovery.initiate(OTHER_OWNER, T0 + 100)
        assert request.new_owner.lower() == OTHER_OWNER
        assert request.execute_after == T0 + 100 + RECOVERY_PERIOD

    def test_reinitiate_after_execution(self):
        recovery = GuardianRecovery()
        recovery.initiate(NEW_OWNER, T0)
        recovery.execute(T0 + RECOVERY_PERIOD)
        recovery.initiate(OTHER_OWNER, T0 + RECOVERY_PERIOD)
        assert recovery.state is RecoveryState.PENDING

    def test_cancel(self):
        recovery = GuardianRecovery()
        recovery.initiate(NEW_OWNER, T0)
        assert recovery.cancel() is True
        assert recovery.state is RecoveryState.NO_REQUEST
        with pytest.raises(NoRecoveryPending):
            recovery.execute(T0 + RECOVERY_PERIOD)

    def test_cancel_without_request_is_noop(self):
        assert GuardianRecovery().cancel() is False

    @pytest.mark.parametrize("target", [ZERO_ADDRESS, "", "not-an-address"])
    def test_invalid_target(self, target):
        with pytest.raises(InvalidGuardian):
            GuardianRecovery().initiate(target, T0)


class TestWalletRecovery:

    def test_guardian_recovers_ownership(self, wallet, env, guardian, stranger):
        request = wallet.initiate_recovery(guardian, stranger)
        assert request.execute_after == env.now() + RECOVERY_PERIOD

        env.advance_time(RECOVERY_PERIOD)
        assert wallet.execute_recovery(guardian) == stranger
        assert wallet.owner == stranger

    def test_too_early_leaves_owner(self, wallet, env, owner, guardian, stranger):
        wallet.initiate_recovery(guardian, stranger)
        env.advance_time(RECOVERY_PERIOD - 1)
        with pytest.raises(RecoveryNotReady):
            wallet.execute_recovery(guardian)
        assert wallet.owner == owner

    def test_only_guardian_initiates(self, wallet, owner, stranger):
        with pytest.raises(OnlyGuardian):
            wallet.initiate_recovery(owner, stranger)
        with pytest.raises(OnlyGuardian):
            wallet.initiate_recovery(stranger, stranger)

    def test_only_guardian_executes(self, wallet, env, owner, guardian, stranger):
        wallet.initiate_recovery(guardian, stranger)
        env.advance_time(RECOVERY_PERIOD)
        with pytest.raises(OnlyGuardian):
            wallet.execute_recovery(owner)

    def test_owner_cancels(self, wallet, env, owner, guardian, stranger):
        wallet.initiate_recovery(guardian, stranger)
        assert wallet.cancel_recovery(owner) is True
        assert wallet.get_recovery_request() is None
        env.advance_time(RECOVERY_PERIOD)
        with pytest.raises(NoRecoveryPending):
            wallet.execute_recovery(guardian)
        assert wallet.owner == owner

    def test_quorum_cancels_through_self_call(self, wallet, guardian, stranger, governance, call):
        wallet.initiate_recovery(guardian, stranger)
        governance(call("cancelRecovery()"))
        assert wallet.get_recovery_request() is None

    def test_guardian_cannot_cancel(self, wallet, guardian, stranger):
        wallet.initiate_recovery(guardian, stranger)
        with pytest.raises(OnlyOwner):
            wallet.cancel_recovery(guardian)

    def test_recovered_owner_can_cancel_later_requests(self, wallet, env, guardian, stranger):
        wallet.initiate_recovery(guardian, stranger)
        env.advance_time(RECOVERY_PERIOD)
        wallet.execute_recovery(guardian)

        wallet.initiate_recovery(guardian, guardian)
        assert wallet.cancel_recovery(stranger) is True

    def test_returned_request_is_a_copy(self, wallet, guardian, stranger):
        wallet.initiate_recovery(guardian, stranger)
        snapshot = wallet.get_recovery_request()
        snapshot.executed = True
        assert wallet.get_recovery_request().executed is False

    def test_wallet_without_guardian_cannot_recover(self, env, entry_point, owner, signer_addresses):
        bare = QuorumWallet(address="0x" + "78" * 20, env=env, entry_point=entry_point.address)
        bare.initialize(owner=owner, signers=signer_addresses, threshold=2)
        with pytest.raises(OnlyGuardian):
            bare.initiate_recovery(ZERO_ADDRESS, owner)
