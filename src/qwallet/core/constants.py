"""
qwallet Protocol Constants

This module contains the fixed numbers used by the wallet engine, organized
by category.

NOTE: Constants marked [PROTOCOL] are part of the wallet's observable
behaviour. Changing them changes the authorization rules of every deployed
wallet and must go through a versioned migration.
"""

from typing import Final

# =============================================================================
# TIME CONSTANTS (in seconds)
# =============================================================================

SECONDS_PER_MINUTE: Final[int] = 60
SECONDS_PER_HOUR: Final[int] = 3600  # 60 * 60
SECONDS_PER_DAY: Final[int] = 86400  # 60 * 60 * 24

# [PROTOCOL] Guardian recovery timelock
RECOVERY_PERIOD: Final[int] = 2 * SECONDS_PER_DAY

# =============================================================================
# SIGNER SET [PROTOCOL]
# =============================================================================

# Signer slots are addressed by a uint8 index
MAX_SIGNERS: Final[int] = 256
MAX_SIGNER_INDEX: Final[int] = MAX_SIGNERS - 1

# =============================================================================
# VALUES
# =============================================================================

UINT256_MAX: Final[int] = 2**256 - 1

# Returned by remaining-quota queries when no daily limit is configured
UNLIMITED: Final[int] = UINT256_MAX

# =============================================================================
# ADDRESSES
# =============================================================================

ZERO_ADDRESS: Final[str] = "0x0000000000000000000000000000000000000000"

# Canonical ERC-4337 EntryPoint deployment
DEFAULT_ENTRY_POINT: Final[str] = "0x5FF137D4b0FDCD49DcA30c7CF57E578a026d2789"

# =============================================================================
# VERSIONING
# =============================================================================

# Version written by initialize(); later versions are reached via migrate()
INITIAL_WALLET_VERSION: Final[int] = 1

# Label of the code that backs a freshly deployed wallet
DEFAULT_IMPLEMENTATION: Final[str] = "0x000000000000000000000000000000000000a11c"
