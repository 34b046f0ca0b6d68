"""
Test burn log filtering, decoding and summation.
"""

import itertools
import random

import pytest
from eth_utils import keccak

from burn_tracker.core.config import ChainConfig
from burn_tracker.services.burn_aggregator import BurnLogAggregator, scale_amount
from burn_tracker.services.rpc_client import address_topic, build_transfer_filter, decode_transfer_value

from tests.helpers import DEAD_ADDRESS, TOKEN_ADDRESS, ZERO_ADDRESS, FakeRpcClient, make_transfer_log


BURN_ADDRESSES = [DEAD_ADDRESS, ZERO_ADDRESS]


@pytest.fixture
def aggregator(retrier, sleeper):
    return BurnLogAggregator(retrier, call_delay_ms=0, sleep=sleeper)


def test_transfer_topic_is_event_signature_hash():
    """Test topic0 matches keccak of the Transfer signature."""
    expected = "0x" + keccak(text=ChainConfig.TRANSFER_EVENT_SIGNATURE).hex()
    assert ChainConfig.TRANSFER_TOPIC == expected


def test_address_topic_left_pads_to_32_bytes():
    """Test recipient addresses are encoded as 32-byte topics."""
    assert address_topic(DEAD_ADDRESS) == "0x" + "0" * 60 + "dead"
    assert address_topic(ZERO_ADDRESS) == "0x" + "0" * 64


def test_build_transfer_filter():
    """Test the log filter selects Transfer events into one address."""
    log_filter = build_transfer_filter(TOKEN_ADDRESS.lower(), DEAD_ADDRESS, 100, 200)

    assert log_filter["fromBlock"] == 100
    assert log_filter["toBlock"] == 200
    assert log_filter["address"] == TOKEN_ADDRESS
    assert log_filter["topics"] == [ChainConfig.TRANSFER_TOPIC, None, address_topic(DEAD_ADDRESS)]


def test_decode_transfer_value_from_hex_and_bytes():
    """Test the value is read from the data field in either encoding."""
    log = make_transfer_log(123456789, block_number=1)
    assert decode_transfer_value(log) == 123456789

    log["data"] = (2 ** 255).to_bytes(32, "big")
    assert decode_transfer_value(log) == 2 ** 255


def test_decode_rejects_non_transfer_entries():
    """Test malformed entries raise ValueError."""
    wrong_topic = make_transfer_log(1, block_number=1)
    wrong_topic["topics"][0] = "0x" + "ab" * 32
    with pytest.raises(ValueError):
        decode_transfer_value(wrong_topic)

    truncated = make_transfer_log(1, block_number=1)
    truncated["data"] = "0x1234"
    with pytest.raises(ValueError):
        decode_transfer_value(truncated)


def test_scale_amount():
    """Test smallest-unit amounts are scaled by decimals."""
    assert scale_amount(5 * 10 ** 18, 18) == 5.0
    assert scale_amount(1, 6) == 0.000001
    assert scale_amount(0, 18) == 0
    assert scale_amount(0, 0) == 0


@pytest.mark.asyncio
async def test_single_burn_in_range(aggregator):
    """Test one Transfer into the dead address is counted."""
    client = FakeRpcClient(logs=[make_transfer_log(5 * 10 ** 18, block_number=150)])

    total = await aggregator.sum_burns(client, TOKEN_ADDRESS, BURN_ADDRESSES, 100, 200)

    assert total == 5 * 10 ** 18
    assert scale_amount(total, 18) == 5.0
    assert [call[1] for call in client.calls_to("get_transfer_logs")] == BURN_ADDRESSES


@pytest.mark.asyncio
async def test_no_logs_sums_to_zero(aggregator):
    """Test an empty range sums to zero."""
    client = FakeRpcClient(logs=[make_transfer_log(10, block_number=50)])

    assert await aggregator.sum_burns(client, TOKEN_ADDRESS, BURN_ADDRESSES, 100, 200) == 0


@pytest.mark.asyncio
async def test_sum_is_independent_of_order(aggregator):
    """Test the total does not depend on log or address order."""
    values = [2 ** 200, 7, 10 ** 30, 3 * 10 ** 18]
    logs = [
        make_transfer_log(value, block_number=100 + i, to_address=BURN_ADDRESSES[i % 2])
        for i, value in enumerate(values)
    ]
    expected = sum(values)

    for addresses in itertools.permutations(BURN_ADDRESSES):
        shuffled = list(logs)
        random.Random(len(addresses)).shuffle(shuffled)
        client = FakeRpcClient(logs=shuffled)
        assert await aggregator.sum_burns(client, TOKEN_ADDRESS, list(addresses), 1, 1000) == expected


@pytest.mark.asyncio
async def test_failed_address_contributes_zero(aggregator):
    """Test a burn address whose query fails is skipped, others still count."""

    class PartiallyFailingClient(FakeRpcClient):
        async def get_transfer_logs(self, token_address, to_address, from_block, to_block):
            if to_address == DEAD_ADDRESS:
                self.calls.append(("get_transfer_logs", to_address, from_block, to_block))
                raise ValueError("query returned more than 10000 results")
            return await super().get_transfer_logs(token_address, to_address, from_block, to_block)

    client = PartiallyFailingClient(logs=[
        make_transfer_log(100, block_number=10, to_address=DEAD_ADDRESS),
        make_transfer_log(42, block_number=10, to_address=ZERO_ADDRESS),
    ])

    assert await aggregator.sum_burns(client, TOKEN_ADDRESS, BURN_ADDRESSES, 1, 20) == 42


@pytest.mark.asyncio
async def test_undecodable_log_is_skipped(aggregator):
    """Test a malformed entry does not spoil the sum."""
    bad = make_transfer_log(999, block_number=10)
    bad["data"] = "0x"
    client = FakeRpcClient(logs=[bad, make_transfer_log(5, block_number=11)])

    assert await aggregator.sum_burns(client, TOKEN_ADDRESS, [DEAD_ADDRESS], 1, 20) == 5
