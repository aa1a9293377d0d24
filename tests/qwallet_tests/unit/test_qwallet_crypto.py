"""
Tests for key, signature and address helpers.
"""

import pytest
from eth_keys import keys
from eth_utils import keccak

from qwallet.core.constants import ZERO_ADDRESS
from qwallet.core.crypto_utils import (
    address_from_private_key,
    create2_address,
    generate_keypair,
    is_zero_address,
    normalize_address,
    personal_message_digest,
    recover_signer,
    same_address,
    sign_operation_hash,
    verify_signer,
)

KEY = "0x" + "4c" * 32
OP_HASH = keccak(b"operation")


class TestAddresses:

    def test_normalize_checksums(self):
        # EIP-55 reference address
        checksummed = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
        assert normalize_address(checksummed.lower()) == checksummed

    @pytest.mark.parametrize("bad", ["", "0x12", "not hex", None, 42])
    def test_normalize_rejects(self, bad):
        with pytest.raises(ValueError):
            normalize_address(bad)

    def test_zero_and_same(self):
        assert is_zero_address(ZERO_ADDRESS)
        assert is_zero_address(None)
        assert not is_zero_address("0x" + "01" * 20)
        assert same_address("0x" + "ab" * 20, "0x" + "AB" * 20)
        assert not same_address(None, ZERO_ADDRESS)

    def test_generated_key_matches_address(self):
        private_key, address = generate_keypair()
        assert address_from_private_key(private_key) == address


class TestCreate2:
    """Reference vectors from EIP-1014."""

    def test_zero_deployer_zero_salt(self):
        address = create2_address(ZERO_ADDRESS, b"\x00" * 32, keccak(b"\x00"))
        assert address == "0x4D1A2e2bB4F88F0250f26Ffff098B0b30B26BF38"

    def test_deadbeef_deployer(self):
        deployer = "0xdeadbeef00000000000000000000000000000000"
        address = create2_address(deployer, b"\x00" * 32, keccak(b"\x00"))
        assert address == "0xB928f69Bb1D91Cd65274e3c79d8986362984fDA3"

    def test_rejects_short_salt(self):
        with pytest.raises(ValueError):
            create2_address(ZERO_ADDRESS, b"\x00" * 31, keccak(b"\x00"))


class TestSignatures:

    def test_sign_and_recover(self):
        signature = sign_operation_hash(KEY, OP_HASH)
        assert len(signature) == 65
        assert recover_signer(OP_HASH, signature) == address_from_private_key(KEY)
        assert verify_signer(OP_HASH, signature, address_from_private_key(KEY).lower())

    def test_signature_covers_prefixed_digest(self):
        signature = sign_operation_hash(KEY, OP_HASH)
        standard = keys.Signature(signature_bytes=signature[:64] + bytes([signature[64] - 27]))

        public_key = standard.recover_public_key_from_msg_hash(personal_message_digest(OP_HASH))

        assert public_key.to_checksum_address() == address_from_private_key(KEY)

    def test_digest_layout(self):
        expected = keccak(b"\x19Ethereum Signed Message:\n32" + OP_HASH)
        assert personal_message_digest(OP_HASH) == expected

    def test_wrong_length(self):
        with pytest.raises(ValueError):
            recover_signer(OP_HASH, b"\x01" * 64)

    def test_invalid_v(self):
        signature = bytearray(sign_operation_hash(KEY, OP_HASH))
        signature[64] = 7
        with pytest.raises(ValueError):
            recover_signer(OP_HASH, bytes(signature))
        assert not verify_signer(OP_HASH, bytes(signature), address_from_private_key(KEY))
