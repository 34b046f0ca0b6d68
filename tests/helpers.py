"""
Fakes and builders shared by the burn tracker tests.
"""

from typing import Any, Callable, Dict, Iterable, List, Optional

from burn_tracker.core.config import ChainConfig
from burn_tracker.models.burn import BlockRef, BurnRecord, EndpointTier
from burn_tracker.services.provider_pool import Endpoint
from burn_tracker.services.rpc_client import address_topic


DEAD_ADDRESS = "0x000000000000000000000000000000000000dEaD"
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
TOKEN_ADDRESS = "0x1111111111111111111111111111111111111111"
SENDER = "0x2222222222222222222222222222222222222222"

GENESIS_TIMESTAMP = 1_000_000
BLOCK_TIME = 3


def linear_timestamps(block_number: int) -> int:
    return GENESIS_TIMESTAMP + BLOCK_TIME * block_number


def make_transfer_log(value: int, block_number: int, to_address: str = DEAD_ADDRESS,
                      from_address: str = SENDER, tx_hash: str = "0xabc") -> Dict[str, Any]:
    """A raw eth_getLogs entry for Transfer(from, to, value)."""
    return {
        "address": TOKEN_ADDRESS,
        "topics": [
            ChainConfig.TRANSFER_TOPIC,
            address_topic(from_address),
            address_topic(to_address),
        ],
        "data": "0x" + value.to_bytes(32, "big").hex(),
        "blockNumber": block_number,
        "transactionHash": tx_hash,
    }


class FakeRpcClient:
    """In-memory stand-in for EvmRpcClient over a synthetic chain."""

    def __init__(
        self,
        latest: int = 2000,
        timestamps: Callable[[int], int] = linear_timestamps,
        logs: Optional[Iterable[Dict[str, Any]]] = None,
        decimals: int = 18,
        missing_blocks: Iterable[int] = (),
        errors: Optional[Dict[str, List[BaseException]]] = None,
        failing: Optional[Dict[str, BaseException]] = None,
    ):
        self.latest = latest
        self.timestamps = timestamps
        self.logs = list(logs or [])
        self.decimals = decimals
        self.missing_blocks = set(missing_blocks)
        # method name -> errors raised (in order) before calls start succeeding
        self.errors = {name: list(errs) for name, errs in (errors or {}).items()}
        # method name -> error raised on every call
        self.failing = dict(failing or {})
        self.calls: List[tuple] = []
        self.closed = False

    def _record(self, method: str, *args):
        self.calls.append((method,) + args)
        if method in self.failing:
            raise self.failing[method]
        pending = self.errors.get(method)
        if pending:
            raise pending.pop(0)

    def calls_to(self, method: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == method]

    async def get_block_number(self) -> int:
        self._record("get_block_number")
        return self.latest

    async def get_block(self, number: int) -> Optional[BlockRef]:
        self._record("get_block", number)
        if number < 1 or number > self.latest or number in self.missing_blocks:
            return None
        return BlockRef(number=number, timestamp=self.timestamps(number))

    async def get_transfer_logs(self, token_address: str, to_address: str,
                                from_block: int, to_block: int) -> List[Dict[str, Any]]:
        self._record("get_transfer_logs", to_address, from_block, to_block)
        wanted = address_topic(to_address)
        return [
            log for log in self.logs
            if log["topics"][2] == wanted and from_block <= log["blockNumber"] <= to_block
        ]

    async def get_decimals(self, token_address: str) -> int:
        self._record("get_decimals", token_address)
        return self.decimals

    async def close(self):
        self.closed = True


class FakeBurnStore:
    """BurnStore kept in a dict."""

    def __init__(self, fail_for: Iterable[str] = ()):
        self.documents: Dict[str, Dict[str, Any]] = {}
        self.fail_for = {symbol.lower() for symbol in fail_for}
        self.saved: List[str] = []

    async def save(self, symbol: str, record: BurnRecord) -> None:
        if symbol.lower() in self.fail_for:
            raise RuntimeError("storage unavailable")
        self.documents[symbol.lower()] = record.to_document()
        self.saved.append(symbol.lower())

    async def get(self, symbol: str) -> Optional[Dict[str, Any]]:
        return self.documents.get(symbol.lower())

    async def get_many(self, symbols: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        return {s.lower(): self.documents[s.lower()] for s in symbols if s.lower() in self.documents}

    async def health_check(self) -> Dict[str, Any]:
        return {"status": "healthy"}


class SleepRecorder:
    """Replacement for asyncio.sleep that returns immediately."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float):
        self.delays.append(seconds)


def make_endpoint(client, url: str = "https://rpc-1.example/key", tier: EndpointTier = EndpointTier.PRIMARY) -> Endpoint:
    return Endpoint(url=url, tier=tier, client=client)
