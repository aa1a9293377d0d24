"""
Property-based tests for the signer registry invariant.

Whatever sequence of governance mutations is attempted, an initialized
registry keeps 1 <= threshold <= signer_count, and a rejected mutation
leaves the registry untouched.
"""

from hypothesis import given, settings, strategies as st
from eth_utils import to_checksum_address

from qwallet.core.constants import MAX_SIGNER_INDEX
from qwallet.core.contracts.signer_registry import SignerRegistry
from qwallet.core.exceptions import WalletExecutionError


def addr(n: int) -> str:
    return to_checksum_address(f"0x{n:040x}")


mutation = st.one_of(
    st.tuples(st.just("add"), st.integers(1, 40), st.integers(0, MAX_SIGNER_INDEX)),
    st.tuples(st.just("remove"), st.integers(0, MAX_SIGNER_INDEX)),
    st.tuples(st.just("threshold"), st.integers(0, 12)),
)


def apply(registry: SignerRegistry, op: tuple) -> None:
    kind = op[0]
    if kind == "add":
        registry.add_signer(addr(op[1]), op[2])
    elif kind == "remove":
        registry.remove_signer(op[1])
    else:
        registry.update_threshold(op[1])


class TestSignerSetInvariant:

    @given(
        initial=st.lists(st.integers(1, 40), min_size=1, max_size=8, unique=True),
        threshold_seed=st.integers(0, 100),
        ops=st.lists(mutation, max_size=30),
    )
    @settings(max_examples=60, deadline=None)
    def test_threshold_always_within_signer_count(self, initial, threshold_seed, ops):
        registry = SignerRegistry()
        registry.initialize([addr(n) for n in initial], 1 + threshold_seed % len(initial))

        for op in ops:
            before = (dict(registry.slots), registry.threshold)
            try:
                apply(registry, op)
            except WalletExecutionError:
                assert (registry.slots, registry.threshold) == before

            assert 1 <= registry.threshold <= registry.signer_count
            assert len(set(registry.slots.values())) == registry.signer_count
            assert all(0 <= index <= MAX_SIGNER_INDEX for index in registry.slots)
