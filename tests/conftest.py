"""Shared fixtures: an in-memory chain that counts every read."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Callable, Mapping, Sequence

import pytest
from web3 import Web3
from web3.datastructures import AttributeDict
from web3.exceptions import BlockNotFound

from block_provider import Block, NetworkError


class MockChain:
    """Deterministic chain whose head is ``len(timestamps) - 1``."""

    def __init__(self, timestamp_of: Callable[[int], int], length: int) -> None:
        self.timestamp_of = timestamp_of
        self.length = length
        self.calls: list[tuple] = []

    @classmethod
    def from_timestamps(cls, timestamps: Sequence[int]) -> "MockChain":
        values = list(timestamps)
        return cls(lambda n: values[n], len(values))

    def get_current_block_number(self) -> int:
        self.calls.append(("get_current_block_number",))
        return self.length - 1

    def get_block(self, number: int) -> Block:
        self.calls.append(("get_block", number))
        if number < 0 or number >= self.length:
            raise NetworkError(f"block {number} not found")
        return Block(number=number, timestamp=self.timestamp_of(number))

    def probed(self) -> list[int]:
        return [call[1] for call in self.calls if call[0] == "get_block"]

    def all_blocks(self) -> list[Block]:
        return [Block(n, self.timestamp_of(n)) for n in range(self.length)]


@pytest.fixture
def regular_chain() -> MockChain:
    # block n at 1000 + 12n, blocks 0..999999
    return MockChain(lambda n: 1000 + 12 * n, 1_000_000)


@pytest.fixture
def make_chain() -> Callable[[Sequence[int]], MockChain]:
    return MockChain.from_timestamps


class FakeResponse:
    def __init__(self, payload=None, status_code: int = 200, reason: str = "OK", raw: str | None = None) -> None:
        self.payload = payload
        self.status_code = status_code
        self.reason = reason
        self.raw = raw

    def json(self):
        if self.raw is not None:
            raise ValueError(f"Expecting value: {self.raw!r}")
        return self.payload


class FakeRpcNode:
    """Answers eth_blockNumber / eth_getBlockByNumber from a MockChain."""

    def __init__(self, chain: MockChain) -> None:
        self.chain = chain
        self.requests: list[dict] = []

    def __call__(self, url, json=None, timeout=None):
        self.requests.append(json)
        if json["method"] == "eth_blockNumber":
            result = hex(self.chain.get_current_block_number())
        else:
            number = int(json["params"][0], 16)
            try:
                block = self.chain.get_block(number)
            except NetworkError:
                result = None
            else:
                result = {"number": hex(block.number), "timestamp": hex(block.timestamp), "transactions": []}
        return FakeResponse({"jsonrpc": "2.0", "id": json["id"], "result": result})


@pytest.fixture
def fake_rpc(monkeypatch) -> Callable[[MockChain], FakeRpcNode]:
    def install(chain: MockChain) -> FakeRpcNode:
        node = FakeRpcNode(chain)
        monkeypatch.setattr("block_provider.requests.post", node)
        return node

    return install


class FakeEth:
    """The slice of ``web3.eth`` the block providers read."""

    def __init__(self, head: int, timestamps: Mapping[int, int]) -> None:
        self.head = head
        self.timestamps = timestamps

    @property
    def block_number(self):
        return self.head

    def get_block(self, number):
        if number not in self.timestamps:
            raise BlockNotFound(f"Block with id: '{number}' not found.")
        return AttributeDict({"number": number, "timestamp": self.timestamps[number], "transactions": []})


@pytest.fixture
def fake_web3(monkeypatch):
    """Replace ``block_provider.Web3`` with a client backed by a FakeEth."""

    def install(eth: FakeEth, connected: bool = True):
        class FakeWeb3:
            to_hex = staticmethod(Web3.to_hex)
            to_int = staticmethod(Web3.to_int)
            instances: list = []

            def __init__(self, provider) -> None:
                self.provider = provider
                self.eth = eth
                FakeWeb3.instances.append(self)

            @staticmethod
            def HTTPProvider(endpoint_uri, request_kwargs=None):
                return SimpleNamespace(endpoint_uri=endpoint_uri, request_kwargs=request_kwargs)

            def is_connected(self) -> bool:
                return connected

        monkeypatch.setattr("block_provider.Web3", FakeWeb3)
        return FakeWeb3

    return install
