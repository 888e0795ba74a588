import logging
import time
from datetime import datetime
from typing import Optional, Union

import config
from block_provider import Block, block_provider

log = logging.getLogger("block_search")


class ConfigurationError(ValueError):
    """Invalid search options, raised before any chain read."""


def set_verbose(verbose: bool) -> None:
    """Log the progress of block_at_timestamp() at DEBUG when verbose is True."""
    log.setLevel(logging.DEBUG if verbose else logging.WARNING)


def is_verbose() -> bool:
    return log.isEnabledFor(logging.DEBUG)


def _closest(lower: Block, upper: Block, target_ts: int) -> Block:
    # ties go to the upper bound
    if abs(lower.timestamp - target_ts) < abs(upper.timestamp - target_ts):
        return lower
    return upper


def block_at_timestamp(
    provider,
    target_time: Union[int, datetime],
    *,
    target_range_seconds: int = config.DEFAULT_TARGET_RANGE_SECONDS,
    logger: Optional[logging.Logger] = None,
) -> Block:
    """
    Return a block whose timestamp lies within target_range_seconds of target_time.

    Alternates a binary squeeze on the current bounds with a projection from
    the average block time between them, so most searches finish in a handful
    of reads even on chains with millions of blocks.

    Parameters
    ----------
    provider : str | Web3 | block provider
        RPC URL, connected Web3 instance, or any object with
        get_current_block_number() and get_block(number).
    target_time : int | datetime
        Desired moment in seconds. If datetime, must be timezone-aware.
    target_range_seconds : int, optional
        Acceptable distance between the returned block's timestamp and the
        target. If no block is that close, the closest block found is
        returned instead. Default 60 s.
    logger : logging.Logger, optional
        Sink for progress messages. Defaults to the "block_search" logger,
        see set_verbose().

    Returns
    -------
    Block
        Block number and timestamp.

    Raises
    ------
    ConfigurationError
        If target_range_seconds < 1 or target_time is a naive datetime.
    NetworkError
        If any chain read fails. The search is abandoned.
    """
    logger = logger or log
    start = time.perf_counter()
    try:
        logger.debug(f"Looking for block at [{target_time}] sec, within range [{target_range_seconds}] sec...")

        # 1) validate options before touching the network
        if target_range_seconds < 1:
            raise ConfigurationError("target_range_seconds too small: must be at least 1 second")
        if isinstance(target_time, datetime):
            if target_time.tzinfo is None:
                raise ConfigurationError("datetime must be timezone-aware (UTC).")
            target_ts = int(target_time.timestamp())
        else:
            target_ts = int(target_time)

        provider = block_provider(provider)

        # 2) starting bounds: genesis and one block behind the head
        lower = provider.get_block(0)
        head = provider.get_current_block_number()
        if target_ts <= lower.timestamp:
            logger.debug(f"Timestamp is less than earliest block. Returning block #{lower.number}.")
            return lower

        upper = provider.get_block(max(head - config.HEAD_LAG_BLOCKS, 0))
        if target_ts >= upper.timestamp:
            logger.debug(f"Timestamp is greater than latest block. Returning block #{upper.number}.")
            return upper

        checks = 0

        def format_block(block: Block, name: str) -> str:
            return f"[{name}: {{ block: {block.number}, timestamp: {block.timestamp}, diff: {block.timestamp - target_ts} }}]"

        def log_check(probe: Block) -> None:
            nonlocal checks
            checks += 1
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(
                    f"(Check #{checks}): \n\t{format_block(lower, 'lowerBound')}"
                    f"\n\t{format_block(probe, '  checking')}"
                    f"\n\t{format_block(upper, 'upperBound')}"
                )

        log_check(upper)

        # 3) alternate binary squeeze and block rate estimation
        # lower.timestamp < target_ts < upper.timestamp holds at the top of each pass
        while True:
            mid = provider.get_block(lower.number + (upper.number - lower.number) // 2)
            log_check(mid)
            if mid.timestamp > target_ts:
                upper = mid
            elif mid.timestamp < target_ts:
                lower = mid
            else:
                logger.debug(f"Found valid block during binary squeeze. Returning block #{mid.number}.")
                return mid

            block_diff = upper.number - lower.number
            if block_diff <= 1:
                closest = _closest(lower, upper, target_ts)
                logger.debug(f"No more blocks to check. Returning closest block: #{closest.number}.")
                return closest

            time_diff = upper.timestamp - lower.timestamp
            scaled_sec_per_block = max((time_diff * config.RATE_SCALE) // block_diff, 1)
            est_number = (target_ts - lower.timestamp) * config.RATE_SCALE // scaled_sec_per_block + lower.number
            est_number = min(max(est_number, lower.number), upper.number)

            estimate = provider.get_block(est_number)
            log_check(estimate)
            if estimate.timestamp > target_ts:
                upper = estimate
            else:
                lower = estimate

            if abs(estimate.timestamp - target_ts) <= target_range_seconds:
                logger.debug(f"Found valid block with block rate estimation. Returning block #{estimate.number}.")
                return estimate
    except Exception as e:
        logger.debug(f"Error: {e}")
        raise
    finally:
        logger.debug(f"Completed search in {(time.perf_counter() - start) * 1000:.3f} ms.")
