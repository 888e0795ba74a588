# main.py
import argparse
import sys
import time

import config
from block_provider import get_web3_instance
from block_search import ConfigurationError, block_at_timestamp, set_verbose


def main(argv=None):
    # Set up argument parser
    parser = argparse.ArgumentParser(description='Find the block closest to a timestamp')
    parser.add_argument('--timestamp', type=int,
                        help='Target timestamp in seconds (default: now minus --days-ago)')
    parser.add_argument('--days-ago', type=float, default=config.DEFAULT_DAYS_AGO,
                        help='Days before now to search when --timestamp is not given')
    parser.add_argument('--range', dest='target_range_seconds', type=int,
                        default=config.DEFAULT_CLI_RANGE_SECONDS,
                        help='Acceptable distance in seconds between the block and the target')
    parser.add_argument('--rpc-url', default=config.RPC_URL,
                        help='JSON-RPC endpoint (default: RPC_URL env var)')
    parser.add_argument('--chain', choices=sorted(config.CHAIN_RPC_URLS),
                        help='Resolve the endpoint from CHAIN_RPC_URLS and ALCHEMY_API_KEY instead')
    parser.add_argument('--backend', choices=['rpc', 'web3', 'both'], default='both',
                        help='Which provider to search with')
    parser.add_argument('--log-file', default=config.LOG_FILE,
                        help='Also append log output to this file (default: LOG_FILE env var)')
    parser.add_argument('--verbose', action='store_true',
                        help='Log every check made by the search')

    # Parse arguments
    args = parser.parse_args(argv)

    config.setup_logging(log_file=args.log_file)
    if args.verbose:
        set_verbose(True)

    # -------------------------------
    # Resolve endpoint and target
    # -------------------------------
    try:
        rpc_url = config.rpc_url_for(args.chain) if args.chain else args.rpc_url
    except (ValueError, EnvironmentError) as e:
        print(f"Error: {e}")
        return 1
    if not rpc_url:
        print("Error: missing RPC URL. Set RPC_URL or pass --rpc-url / --chain.")
        return 1

    if args.timestamp is not None:
        target_ts = args.timestamp
    else:
        target_ts = int(time.time() - args.days_ago * 24 * 60 * 60)

    # -------------------------------
    # Search with each requested backend
    # -------------------------------
    backends = ['rpc', 'web3'] if args.backend == 'both' else [args.backend]
    results = {}
    try:
        for backend in backends:
            provider = rpc_url if backend == 'rpc' else get_web3_instance(rpc_url)
            results[backend] = block_at_timestamp(
                provider, target_ts, target_range_seconds=args.target_range_seconds
            )
    except (ConnectionError, ConfigurationError) as e:
        print(f"Error during block search: {e}")
        return 1

    for backend, block in results.items():
        print(f"{backend}: block #{block.number} at {block.timestamp} (diff {block.timestamp - target_ts} s)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
