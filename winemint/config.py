import os
from datetime import datetime, timezone

from .exceptions import ConfigurationError

# Tokenization / IPFS
DEFAULT_IPFS_GATEWAY = "https://ipfs.io/ipfs"
IPFS_SCHEME = "ipfs://"
MINT_ENDPOINT = "/tx/false/mint-batch"
MINT_TIMEOUT_SECONDS = 30
MINT_DESCRIPTION = "This token binds a unique wine collection from tracecork.com on the cardano blockchain."

# Blockfrost
DEFAULT_BLOCKFROST_URL = "https://cardano-preview.blockfrost.io/api/v0"
STATUS_TIMEOUT_SECONDS = 10

# IoT sensors
IOT_TIMEOUT_SECONDS = 10

# Workflow behavior
CONFIRMATION_INTERVAL_SECONDS = 10.0
CONFIRMATION_MAX_CHECKS = 60  # 10 minutes
THROTTLE_SECONDS = 0.5
MAX_WINERIES_PER_RUN = 3

MOCK_FAILURE_RATE = 0.05
MOCK_DELAY_RANGE = (2.0, 5.0)


def require_env(name: str, value: str = None) -> str:
    """Returns value, falling back to the environment, or raises ConfigurationError."""
    value = value or os.getenv(name)
    if not value:
        raise ConfigurationError(f"Missing required environment variable: {name}")
    return value


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    return utc_now().strftime("%Y-%m-%dT%H:%M:%SZ")
