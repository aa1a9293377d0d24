"""
Signature bundle codec.

A bundle is the ABI encoding of ``(uint8,bytes)[]``: an ordered list of
(signer slot index, 65-byte signature) pairs. Decoding only accepts the
canonical encoding, so every accepted byte string maps to exactly one bundle
and re-encodes to itself.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple, Union

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError, EncodingError

from qwallet.core.exceptions import MalformedSignatureBundle

BUNDLE_ABI_TYPE = "(uint8,bytes)[]"


@dataclass(frozen=True)
class SignatureEntry:
    """One signer's contribution to a bundle."""

    signer_index: int
    signature: bytes


EntryLike = Union[SignatureEntry, Tuple[int, bytes]]


def _as_pair(entry: EntryLike) -> Tuple[int, bytes]:
    if isinstance(entry, SignatureEntry):
        return entry.signer_index, bytes(entry.signature)
    index, signature = entry
    return index, bytes(signature)


def encode_bundle(entries: Iterable[EntryLike]) -> bytes:
    """
    Encode entries as ``(uint8,bytes)[]``.

    Raises:
        MalformedSignatureBundle: If an index does not fit in a uint8.
    """
    pairs = [_as_pair(entry) for entry in entries]
    try:
        return encode([BUNDLE_ABI_TYPE], [pairs])
    except (EncodingError, TypeError) as exc:
        raise MalformedSignatureBundle(f"Cannot encode bundle: {exc}") from exc


def decode_bundle(data: bytes) -> List[SignatureEntry]:
    """
    Decode a bundle, rejecting anything that is not canonically encoded.

    Raises:
        MalformedSignatureBundle: On truncated, padded, or non-canonical input.
    """
    raw = bytes(data)
    try:
        (pairs,) = decode([BUNDLE_ABI_TYPE], raw)
    except (DecodingError, OverflowError, ValueError) as exc:
        raise MalformedSignatureBundle(
            f"Bundle is not a valid {BUNDLE_ABI_TYPE} encoding: {exc}",
            details={"length": len(raw)},
        ) from exc

    entries = [SignatureEntry(signer_index=index, signature=bytes(sig)) for index, sig in pairs]

    # Trailing bytes, reordered offsets and dirty padding all decode fine
    if encode_bundle(entries) != raw:
        raise MalformedSignatureBundle(
            "Bundle encoding is not canonical",
            details={"length": len(raw)},
        )

    return entries


def bundle_indices(entries: Sequence[SignatureEntry]) -> List[int]:
    return [entry.signer_index for entry in entries]
