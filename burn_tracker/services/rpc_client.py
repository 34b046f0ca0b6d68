"""
EVM JSON-RPC client service for interacting with a BSC node.
Provides the handful of calls burn tracking needs: chain height, blocks
by number, Transfer logs and the token decimals view.
"""

import asyncio
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urlsplit

import aiohttp
from eth_abi import decode as abi_decode
from eth_utils import to_bytes, to_checksum_address
from web3 import AsyncWeb3, AsyncHTTPProvider
from web3.exceptions import BlockNotFound
import structlog

from burn_tracker.core.config import ChainConfig
from burn_tracker.core.exceptions import RateLimitError, TransientRpcError
from burn_tracker.models.burn import BlockRef


logger = structlog.get_logger(__name__)


def mask_url(url: str) -> str:
    """Strip path and query (which usually carry API keys) from an RPC URL."""
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        return url
    return f"{parts.scheme}://{parts.netloc}"


def address_topic(address: str) -> str:
    """Left-pad an address to a 32-byte topic."""
    return "0x" + address.lower().replace("0x", "", 1).rjust(64, "0")


def build_transfer_filter(
    token_address: str,
    to_address: str,
    from_block: int,
    to_block: int
) -> Dict[str, Any]:
    """eth_getLogs filter for Transfer events on a token into one address."""
    return {
        "fromBlock": from_block,
        "toBlock": to_block,
        "address": to_checksum_address(token_address),
        "topics": [
            ChainConfig.TRANSFER_TOPIC,
            None,  # from address (any)
            address_topic(to_address),
        ],
    }


def _topic_hex(topic: Union[str, bytes]) -> str:
    if isinstance(topic, (bytes, bytearray)):
        return "0x" + bytes(topic).hex()
    topic = topic.lower()
    return topic if topic.startswith("0x") else "0x" + topic


def decode_transfer_value(log: Dict[str, Any]) -> int:
    """
    Decode the uint256 value of a Transfer log entry.

    Raises:
        ValueError: if the entry is not a Transfer event or its data is malformed
    """
    topics = log.get("topics") or []
    if len(topics) != 3 or _topic_hex(topics[0]) != ChainConfig.TRANSFER_TOPIC:
        raise ValueError("Log entry is not an ERC-20 Transfer event")

    data = log.get("data")
    if isinstance(data, str):
        data = to_bytes(hexstr=data)
    if not data or len(data) < 32:
        raise ValueError("Transfer log data is missing or truncated")

    (value,) = abi_decode(["uint256"], bytes(data[:32]))
    return value


class EvmRpcClient:
    """
    Async EVM RPC client bound to a single endpoint.

    Errors are surfaced to the caller; HTTP 429 and timeouts are
    translated into RateLimitError / TransientRpcError so retry logic
    can classify them without knowing about aiohttp.
    """

    def __init__(self, url: str, timeout: Optional[float] = None):
        self.url = url
        self.display_url = mask_url(url)
        rpc_config = ChainConfig.get_rpc_config()
        self.timeout = timeout or rpc_config["timeout"]
        # one HTTP request per call; RateLimitedRetrier is the only retry layer
        self.w3 = AsyncWeb3(AsyncHTTPProvider(
            url,
            request_kwargs={"timeout": aiohttp.ClientTimeout(total=self.timeout)},
            exception_retry_configuration=None
        ))
        self.logger = logger.bind(service="rpc_client", endpoint=self.display_url)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Close the underlying HTTP session."""
        try:
            await self.w3.provider.disconnect()
        except Exception as e:
            self.logger.warning("Error closing RPC client", error=str(e))

    async def _call(self, method: str, awaitable):
        try:
            return await awaitable
        except aiohttp.ClientResponseError as e:
            if e.status == 429:
                raise RateLimitError(
                    f"Rate limit exceeded on {self.display_url}: {e.message}",
                    {"method": method, "status": e.status}
                ) from e
            raise
        except asyncio.TimeoutError as e:
            raise TransientRpcError(
                f"Timeout calling {method} on {self.display_url}",
                {"method": method}
            ) from e

    async def get_block_number(self) -> int:
        """Get the current chain height."""
        return int(await self._call("eth_blockNumber", self.w3.eth.block_number))

    async def get_block(self, number: int) -> Optional[BlockRef]:
        """
        Get a block by number.

        Returns None if the node does not have the block yet or the
        returned block carries no readable timestamp.
        """
        try:
            block = await self._call("eth_getBlockByNumber", self.w3.eth.get_block(number))
        except BlockNotFound:
            return None

        if not block:
            return None
        timestamp = block.get("timestamp")
        if timestamp is None:
            self.logger.warning("Block has no timestamp", block=number)
            return None
        return BlockRef(number=int(block.get("number", number)), timestamp=int(timestamp))

    async def get_transfer_logs(
        self,
        token_address: str,
        to_address: str,
        from_block: int,
        to_block: int
    ) -> List[Dict[str, Any]]:
        """Get Transfer logs of a token whose recipient is to_address."""
        filter_params = build_transfer_filter(token_address, to_address, from_block, to_block)
        logs = await self._call("eth_getLogs", self.w3.eth.get_logs(filter_params))
        return list(logs)

    async def get_decimals(self, token_address: str) -> int:
        """Call the token's decimals() view."""
        contract = self.w3.eth.contract(
            address=to_checksum_address(token_address),
            abi=ChainConfig.ERC20_ABI
        )
        return int(await self._call("decimals", contract.functions.decimals().call()))
