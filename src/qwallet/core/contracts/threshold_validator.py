"""
Threshold signature validation.

Checks a bundle of per-signer signatures over an operation hash against the
signer registry. An ordinary bad bundle (wrong length, empty slot, wrong key,
unrecoverable signature) is reported as ``ValidationResult.FAILED``. Only a
malformed encoding or a repeated signer index is a fault.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import IntEnum

from qwallet.core.constants import ZERO_ADDRESS
from qwallet.core.contracts.signature_bundle import decode_bundle
from qwallet.core.contracts.signer_registry import SignerRegistry
from qwallet.core.crypto_utils import recover_signer, same_address
from qwallet.core.exceptions import DuplicateSigner

logger = logging.getLogger(__name__)


class ValidationResult(IntEnum):
    SUCCESS = 0
    FAILED = 1


def _failed(reason: str, **context) -> ValidationResult:
    logger.info(
        "Bundle validation failed",
        extra={"event": "validator.failed", "reason": reason, **context},
    )
    return ValidationResult.FAILED


def validate(
    registry: SignerRegistry,
    operation_hash: bytes,
    bundle_bytes: bytes,
) -> ValidationResult:
    """
    Validate ``bundle_bytes`` over ``operation_hash``.

    Steps:
        1. Decode (fault on malformed encoding)
        2. Length must equal the threshold exactly
        3. Reject any repeated index before checking a single signature
        4. Each entry must be signed by the signer in its slot

    Raises:
        MalformedSignatureBundle: If the bundle is not canonically encoded.
        DuplicateSigner: If two entries name the same slot.
    """
    entries = decode_bundle(bundle_bytes)

    if len(entries) != registry.threshold:
        return _failed("length_mismatch", length=len(entries), threshold=registry.threshold)

    seen: set[int] = set()
    for entry in entries:
        if entry.signer_index in seen:
            logger.warning(
                "Duplicate signer index in bundle",
                extra={"event": "validator.duplicate_signer", "index": entry.signer_index},
            )
            raise DuplicateSigner(entry.signer_index)
        seen.add(entry.signer_index)

    for entry in entries:
        expected = registry.get_signer(entry.signer_index)
        if expected == ZERO_ADDRESS:
            return _failed("empty_slot", index=entry.signer_index)

        try:
            # recover_signer applies the personal-message prefix to the hash
            recovered = recover_signer(operation_hash, entry.signature)
        except ValueError as exc:
            return _failed("unrecoverable", index=entry.signer_index, error=str(exc))

        if not same_address(recovered, expected):
            return _failed("signer_mismatch", index=entry.signer_index)

    logger.debug(
        "Bundle validated",
        extra={"event": "validator.success", "signers": sorted(seen)},
    )
    return ValidationResult.SUCCESS


@dataclass
class ThresholdSignatureValidator:
    """Validator bound to one wallet's registry. Holds no state of its own."""

    registry: SignerRegistry

    def validate(self, operation_hash: bytes, bundle_bytes: bytes) -> ValidationResult:
        return validate(self.registry, operation_hash, bundle_bytes)
