"""Utility helpers for secp256k1 keys, EIP-191 signatures and address derivation."""

from __future__ import annotations

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_keys.exceptions import BadSignature
from eth_keys.exceptions import ValidationError as KeyValidationError
from eth_utils import is_address, keccak, to_checksum_address
from eth_utils.exceptions import ValidationError as EthValidationError

from qwallet.core.constants import ZERO_ADDRESS

SIGNATURE_LENGTH = 65
_PERSONAL_MESSAGE_PREFIX = b"\x19Ethereum Signed Message:\n"


def keccak256(data: bytes) -> bytes:
    return keccak(data)


def normalize_address(address: str) -> str:
    """Return the EIP-55 checksummed form of ``address``.

    Raises:
        ValueError: If ``address`` is not a 20-byte hex address.
    """
    if not isinstance(address, str) or not is_address(address):
        raise ValueError(f"Invalid address: {address!r}")
    return to_checksum_address(address)


def is_zero_address(address: str | None) -> bool:
    if not address:
        return True
    return address.lower() == ZERO_ADDRESS


def same_address(a: str | None, b: str | None) -> bool:
    if not a or not b:
        return False
    return a.lower() == b.lower()


def personal_message_digest(message: bytes) -> bytes:
    """
    EIP-191 (version 0x45) digest of ``message``.

    This is the digest a wallet actually signs when asked to sign the raw
    bytes of an operation hash.
    """
    return keccak(_PERSONAL_MESSAGE_PREFIX + str(len(message)).encode() + message)


def generate_keypair() -> tuple[str, str]:
    """Create a fresh key. Returns (private_key_hex, checksummed_address)."""
    account = Account.create()
    return "0x" + bytes(account.key).hex(), account.address


def address_from_private_key(private_key: str | bytes) -> str:
    return Account.from_key(private_key).address


def sign_operation_hash(private_key: str | bytes, operation_hash: bytes) -> bytes:
    """Sign ``operation_hash`` with the personal-message prefix. Returns r || s || v."""
    signed = Account.sign_message(encode_defunct(primitive=operation_hash), private_key=private_key)
    return bytes(signed.signature)


def recover_signer(operation_hash: bytes, signature: bytes) -> str:
    """
    Recover the address that produced ``signature`` over ``operation_hash``.

    Raises:
        ValueError: If the signature is malformed or cannot be recovered.
    """
    if len(signature) != SIGNATURE_LENGTH:
        raise ValueError(
            f"Signature must be {SIGNATURE_LENGTH} bytes, got {len(signature)} bytes"
        )
    try:
        return Account.recover_message(
            encode_defunct(primitive=operation_hash),
            signature=signature,
        )
    except (BadSignature, KeyValidationError, EthValidationError, TypeError, ValueError) as exc:
        raise ValueError(f"Unrecoverable signature: {exc}") from exc


def verify_signer(operation_hash: bytes, signature: bytes, expected: str) -> bool:
    """One-shot recover-and-compare for single-signer checks."""
    try:
        recovered = recover_signer(operation_hash, signature)
    except ValueError:
        return False
    return same_address(recovered, expected)


def create2_address(deployer: str, salt: bytes, init_code_hash: bytes) -> str:
    """
    Derive a CREATE2 address.

    address = keccak256(0xff ++ deployer ++ salt ++ keccak256(init_code))[12:]
    """
    if len(salt) != 32:
        raise ValueError(f"Salt must be 32 bytes, got {len(salt)} bytes")
    if len(init_code_hash) != 32:
        raise ValueError("Init code hash must be 32 bytes")
    deployer_bytes = bytes.fromhex(normalize_address(deployer)[2:])
    digest = keccak(b"\xff" + deployer_bytes + salt + init_code_hash)
    return to_checksum_address(digest[12:])
