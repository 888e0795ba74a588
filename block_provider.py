#!/usr/bin/env python3
import itertools
import logging
import threading
from dataclasses import dataclass
from typing import Union

import requests
from web3 import Web3
from web3.exceptions import Web3Exception

import config

log = logging.getLogger("block_provider")


class NetworkError(ConnectionError):
    """A chain read failed, returned a malformed payload, or found no block."""


@dataclass(frozen=True)
class Block:
    number: int
    timestamp: int


def to_int(value) -> int:
    """
    Coerce an RPC quantity to an int.
    Accepts "0x"-prefixed hex strings (any case, leading zeros allowed),
    decimal strings and plain integers.
    """
    if isinstance(value, bool):
        raise TypeError(f"Expected a quantity, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        if value[:2].lower() == "0x":
            return Web3.to_int(hexstr=value)
        return int(value, 10)
    raise TypeError(f"Expected a quantity, got {value!r}")


class Web3BlockProvider:
    """
    Web3BlockProvider reads blocks through a web3.py client:
      - web3.eth.block_number for the chain head.
      - web3.eth.get_block(n) for a single block, reduced to number and timestamp.
    Errors raised by web3 or its transport surface as NetworkError.
    """
    def __init__(self, web3_instance):
        self.web3 = web3_instance

    def get_current_block_number(self) -> int:
        try:
            return int(self.web3.eth.block_number)
        except (Web3Exception, requests.exceptions.RequestException, ValueError, TypeError) as e:
            log.warning(f"Failed to fetch current block number via web3: {e}")
            raise NetworkError(f"Failed to fetch current block number: {e}") from e

    def get_block(self, number: int) -> Block:
        try:
            block = self.web3.eth.get_block(number)
            return Block(number=int(number), timestamp=int(block["timestamp"]))
        except (Web3Exception, requests.exceptions.RequestException, ValueError, TypeError, KeyError) as e:
            log.warning(f"Failed to fetch block {number} via web3: {e}")
            raise NetworkError(f"Failed to fetch block {number}: {e}") from e


class RpcBlockProvider:
    """
    RpcBlockProvider talks JSON-RPC 2.0 over HTTP POST to a single node URL.
    Only eth_blockNumber and eth_getBlockByNumber are used. Request ids come
    from a counter shared by every thread using this instance.
    """
    def __init__(self, rpc_url: str, timeout: float = config.RPC_TIMEOUT):
        self.rpc_url = rpc_url
        self.timeout = timeout
        self._ids = itertools.count()
        self._ids_lock = threading.Lock()

    def _next_id(self) -> int:
        with self._ids_lock:
            return next(self._ids)

    def _call(self, method: str, params: list, what: str):
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": self._next_id(),
        }
        try:
            response = requests.post(self.rpc_url, json=payload, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            log.warning(f"RPC request {method} failed: {e}")
            raise NetworkError(f"Failed to fetch {what} from RPC URL: {e}") from e

        if not 200 <= response.status_code < 300:
            raise NetworkError(
                f"Failed to fetch {what} from RPC URL. status: {response.status_code}: {response.reason}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise NetworkError(f"Failed to fetch {what} from RPC URL. invalid JSON: {e}") from e

        result = data.get("result") if isinstance(data, dict) else None
        if result is None:
            raise NetworkError(f"Failed to fetch {what} from RPC URL. response: {data}")
        return result

    def get_current_block_number(self) -> int:
        result = self._call("eth_blockNumber", [], "current block")
        try:
            return to_int(result)
        except (TypeError, ValueError) as e:
            raise NetworkError(f"Malformed block number from RPC URL: {result!r}") from e

    def get_block(self, number: int) -> Block:
        result = self._call(
            "eth_getBlockByNumber",
            [Web3.to_hex(number), False],
            f"block timestamp for block {number}",
        )
        try:
            timestamp = to_int(result["timestamp"])
        except (TypeError, ValueError, KeyError) as e:
            raise NetworkError(f"Malformed block {number} from RPC URL: {result!r}") from e
        return Block(number=number, timestamp=timestamp)


def is_block_provider(obj) -> bool:
    return callable(getattr(obj, "get_current_block_number", None)) and callable(getattr(obj, "get_block", None))


def block_provider(integration: Union[str, Web3, object]):
    """
    Turn an RPC URL, a Web3 instance, or an existing provider into a provider
    exposing get_current_block_number() and get_block(number).
    """
    if isinstance(integration, str):
        return RpcBlockProvider(integration)
    if is_block_provider(integration):
        return integration
    if not hasattr(integration, "eth"):
        raise TypeError(f"Unsupported block provider integration: {type(integration).__name__}")
    return Web3BlockProvider(integration)


def get_web3_instance(rpc_url: str, timeout: float = config.RPC_TIMEOUT) -> Web3:
    if not rpc_url:
        raise EnvironmentError("RPC URL not set. Please set RPC_URL or ALCHEMY_API_KEY.")
    web3_instance = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))
    if not web3_instance.is_connected():
        raise ConnectionError(f"Failed to connect to {rpc_url}. Check API key and network connectivity.")
    return web3_instance
