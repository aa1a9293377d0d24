"""
qwallet Configuration

Supports testnet and mainnet with separate configurations. Values are read
from environment variables once, at import time.

Protocol constants (recovery timelock, day length, signer slots) are NOT
configurable and live in qwallet.core.constants.
"""

from __future__ import annotations

import logging
import os
from enum import Enum

from eth_utils import is_address, to_checksum_address

from qwallet.core.constants import DEFAULT_ENTRY_POINT

logger = logging.getLogger(__name__)


class NetworkType(Enum):
    TESTNET = "testnet"
    MAINNET = "mainnet"


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def _get_int(env_var: str, default: int | None) -> int | None:
    """Read an integer from the environment, rejecting garbage early."""
    raw = os.getenv(env_var, "").strip()
    if not raw:
        return default
    try:
        return int(raw, 0)
    except ValueError as exc:
        raise ConfigurationError(f"{env_var} must be an integer, got {raw!r}") from exc


def _get_address(env_var: str, default: str) -> str:
    raw = os.getenv(env_var, "").strip() or default
    if not is_address(raw):
        raise ConfigurationError(f"{env_var} must be a 20-byte hex address, got {raw!r}")
    return to_checksum_address(raw)


def _get_network(env_var: str) -> NetworkType:
    raw = os.getenv(env_var, "testnet").strip().lower()
    try:
        return NetworkType(raw)
    except ValueError as exc:
        raise ConfigurationError(
            f"{env_var} must be one of {[n.value for n in NetworkType]}, got {raw!r}"
        ) from exc


# Get network type from environment variable
NETWORK = _get_network("QWALLET_NETWORK")  # Default to testnet for safety

CHAIN_ID = _get_int("QWALLET_CHAIN_ID", None)
ENTRY_POINT = _get_address("QWALLET_ENTRY_POINT", DEFAULT_ENTRY_POINT)
LOG_LEVEL = os.getenv("QWALLET_LOG_LEVEL", "INFO").strip().upper()
LOG_FILE = os.getenv("QWALLET_LOG_FILE", "").strip() or None
ENVIRONMENT = os.getenv("QWALLET_ENVIRONMENT", "development").strip()

if LOG_LEVEL not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
    raise ConfigurationError(f"QWALLET_LOG_LEVEL has unknown level {LOG_LEVEL!r}")


class TestnetConfig:
    """Testnet Configuration (local development and CI)"""

    NETWORK_TYPE = NetworkType.TESTNET
    # Local dev chain id unless overridden
    CHAIN_ID = CHAIN_ID if CHAIN_ID is not None else 31337
    ENTRY_POINT = ENTRY_POINT
    LOG_LEVEL = LOG_LEVEL
    LOG_FILE = LOG_FILE
    ENVIRONMENT = ENVIRONMENT


class MainnetConfig:
    """Mainnet Configuration (production deployments)"""

    NETWORK_TYPE = NetworkType.MAINNET
    # No safe default: signatures are bound to the chain id
    CHAIN_ID = CHAIN_ID
    ENTRY_POINT = ENTRY_POINT
    LOG_LEVEL = LOG_LEVEL
    LOG_FILE = LOG_FILE
    ENVIRONMENT = ENVIRONMENT


def get_config() -> type[TestnetConfig] | type[MainnetConfig]:
    """Return the configuration class for the active network.

    Raises:
        ConfigurationError: On mainnet without an explicit QWALLET_CHAIN_ID.
    """
    if NETWORK is NetworkType.MAINNET:
        if MainnetConfig.CHAIN_ID is None:
            raise ConfigurationError(
                "CRITICAL: QWALLET_CHAIN_ID environment variable required for mainnet."
            )
        return MainnetConfig

    logger.debug(
        "Using testnet configuration",
        extra={"event": "config.testnet", "chain_id": TestnetConfig.CHAIN_ID},
    )
    return TestnetConfig


# Export the active configuration
Config = TestnetConfig if NETWORK is NetworkType.TESTNET else MainnetConfig
