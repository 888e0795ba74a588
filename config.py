import logging
import os
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# RPC settings
ALCHEMY_API_KEY = os.getenv("ALCHEMY_API_KEY", "")
RPC_URL = os.getenv("RPC_URL", "")
RPC_TIMEOUT = int(os.getenv("RPC_TIMEOUT", "30") or "30")  # seconds

# Search settings
DEFAULT_TARGET_RANGE_SECONDS = 60
RATE_SCALE = 1_000_000  # fixed-point scale for seconds-per-block estimates
HEAD_LAG_BLOCKS = 1  # stay behind the head; some nodes have not indexed it yet

# Command-line harness defaults
DEFAULT_DAYS_AGO = 7
DEFAULT_CLI_RANGE_SECONDS = 60 * 60 * 24

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", "")
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Alchemy endpoint templates, filled with ALCHEMY_API_KEY
CHAIN_RPC_URLS = {
    "ethereum": "https://eth-mainnet.g.alchemy.com/v2/{}",
    "base": "https://base-mainnet.g.alchemy.com/v2/{}",
    "arbitrum": "https://arb-mainnet.g.alchemy.com/v2/{}",
    "polygon": "https://polygon-mainnet.g.alchemy.com/v2/{}",
    # Add additional chains here if needed
}


def rpc_url_for(chain: str) -> str:
    if chain not in CHAIN_RPC_URLS:
        raise ValueError(
            f"Unsupported blockchain: {chain}. Supported options are: {list(CHAIN_RPC_URLS.keys())}"
        )
    if not ALCHEMY_API_KEY:
        raise EnvironmentError("Alchemy API key not found in environment variables. Please set ALCHEMY_API_KEY.")
    return CHAIN_RPC_URLS[chain].format(ALCHEMY_API_KEY)


def setup_logging(log_level: str = LOG_LEVEL, log_file: Optional[str] = LOG_FILE) -> None:
    """Log to stderr, and also append to log_file when one is given (LOG_FILE / --log-file)."""
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(level=log_level.upper(), format=LOG_FORMAT, handlers=handlers)
