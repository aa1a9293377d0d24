"""
Tests for the (uint8,bytes)[] signature bundle codec.

Decoding must accept only canonical encodings so that one byte string maps
to exactly one bundle.
"""

import pytest

from qwallet.core.contracts.signature_bundle import (
    SignatureEntry,
    bundle_indices,
    decode_bundle,
    encode_bundle,
)
from qwallet.core.exceptions import MalformedSignatureBundle


class TestBundleCodec:
    """Encoding and decoding of well-formed bundles."""

    def test_decode_returns_entries_in_order(self):
        entries = [(2, b"\x01" * 65), (0, b"\x02" * 65)]
        decoded = decode_bundle(encode_bundle(entries))

        assert decoded == [
            SignatureEntry(signer_index=2, signature=b"\x01" * 65),
            SignatureEntry(signer_index=0, signature=b"\x02" * 65),
        ]
        assert bundle_indices(decoded) == [2, 0]

    def test_signature_entry_objects_encode_like_tuples(self):
        as_tuples = encode_bundle([(1, b"\xaa" * 65)])
        as_entries = encode_bundle([SignatureEntry(1, b"\xaa" * 65)])
        assert as_tuples == as_entries

    def test_empty_bundle(self):
        assert decode_bundle(encode_bundle([])) == []

    def test_variable_length_signatures_are_preserved(self):
        decoded = decode_bundle(encode_bundle([(0, b""), (1, b"\x05" * 3)]))
        assert [e.signature for e in decoded] == [b"", b"\x05" * 3]

    def test_index_above_uint8_cannot_be_encoded(self):
        with pytest.raises(MalformedSignatureBundle):
            encode_bundle([(256, b"\x00" * 65)])


class TestMalformedBundles:
    """Anything that is not a canonical encoding is a fault."""

    def test_garbage_bytes(self):
        with pytest.raises(MalformedSignatureBundle):
            decode_bundle(b"\x01\x02\x03")

    def test_empty_bytes(self):
        with pytest.raises(MalformedSignatureBundle):
            decode_bundle(b"")

    def test_truncated_encoding(self):
        encoded = encode_bundle([(0, b"\x11" * 65)])
        with pytest.raises(MalformedSignatureBundle):
            decode_bundle(encoded[:-40])

    def test_trailing_bytes_rejected(self):
        encoded = encode_bundle([(0, b"\x11" * 65)])
        with pytest.raises(MalformedSignatureBundle):
            decode_bundle(encoded + b"\x00" * 32)

    def test_dirty_index_padding_rejected(self):
        encoded = bytearray(encode_bundle([(1, b"\x11" * 65)]))
        # Word 3 (0x60..0x80) holds the uint8 index of the only entry
        assert encoded[0x7F] == 1
        encoded[0x60] = 0x01
        with pytest.raises(MalformedSignatureBundle):
            decode_bundle(bytes(encoded))

    def test_fault_carries_length_detail(self):
        with pytest.raises(MalformedSignatureBundle) as exc_info:
            decode_bundle(b"\x00" * 10)
        assert exc_info.value.details["length"] == 10
