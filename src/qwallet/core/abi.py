"""
Calldata encoding for contract calls.

Calldata is the 4-byte keccak selector of the function signature followed by
the ABI encoding of its arguments, exactly as an EVM contract would see it.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Sequence, Tuple

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError, EncodingError
from eth_utils import keccak

from qwallet.core.exceptions import MalformedCalldata, UnknownSelector

SELECTOR_LENGTH = 4


def function_selector(signature: str) -> bytes:
    """First 4 bytes of keccak256 of a canonical function signature."""
    return keccak(text=signature)[:SELECTOR_LENGTH]


def argument_types(signature: str) -> list[str]:
    """Split ``name(t1,t2)`` into ``["t1", "t2"]``. Tuple types are not supported."""
    open_paren = signature.index("(")
    inner = signature[open_paren + 1:-1]
    return [t for t in inner.split(",") if t]


def encode_call(signature: str, *args: Any) -> bytes:
    """
    Encode a function call.

    Raises:
        MalformedCalldata: If an argument does not fit its ABI type.
    """
    types = argument_types(signature)
    if len(types) != len(args):
        raise MalformedCalldata(
            f"{signature} takes {len(types)} arguments, got {len(args)}"
        )
    try:
        return function_selector(signature) + encode(types, list(args))
    except (EncodingError, TypeError) as exc:
        raise MalformedCalldata(f"Cannot encode {signature}: {exc}") from exc


def selector_table(signatures: Iterable[str]) -> Dict[bytes, str]:
    return {function_selector(sig): sig for sig in signatures}


def decode_call(data: bytes, table: Dict[bytes, str]) -> Tuple[str, Tuple[Any, ...]]:
    """
    Decode calldata against a selector table.

    Returns:
        (signature, arguments)

    Raises:
        UnknownSelector: If the selector is not in ``table``.
        MalformedCalldata: If the arguments cannot be decoded.
    """
    if len(data) < SELECTOR_LENGTH:
        raise MalformedCalldata(f"Calldata too short: {len(data)} bytes")

    selector = bytes(data[:SELECTOR_LENGTH])
    signature = table.get(selector)
    if signature is None:
        raise UnknownSelector(
            f"Unknown selector 0x{selector.hex()}",
            details={"selector": selector.hex()},
        )

    types = argument_types(signature)
    try:
        args = decode(types, bytes(data[SELECTOR_LENGTH:])) if types else ()
    except DecodingError as exc:
        raise MalformedCalldata(f"Cannot decode {signature}: {exc}") from exc

    return signature, tuple(args)


def encode_return(types: Sequence[str], values: Sequence[Any]) -> bytes:
    """
    Raises:
        MalformedCalldata: If a value does not fit its ABI type.
    """
    try:
        return encode(list(types), list(values))
    except (EncodingError, TypeError) as exc:
        raise MalformedCalldata(f"Cannot encode return value: {exc}") from exc


def decode_return(types: Sequence[str], data: bytes) -> Tuple[Any, ...]:
    try:
        return tuple(decode(list(types), data))
    except DecodingError as exc:
        raise MalformedCalldata(f"Cannot decode return value: {exc}") from exc
