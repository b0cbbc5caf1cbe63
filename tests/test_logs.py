"""
Tests for the windowed log query engine.

Tests cover:
- Range planning
- Coverage, ordering and dedupe of merged results
- Bisection on provider range/result-count errors
- Bounded concurrency
- Restartable event streams
"""

import asyncio
from typing import Any, Sequence

import eth_abi
import pytest

from ethlite import EventStream, LogFilter, LogQueryConfig, LogQueryEngine, parse_event
from ethlite.errors import InvalidRange, RpcError, ValidationError

from tests.fake_node import HOLDER, RECIPIENT, TOKEN, FakeChain, address_topic

TRANSFER = parse_event("event Transfer(address indexed from, address indexed to, uint256 value)")
APPROVAL = parse_event("event Approval(address indexed owner, address indexed spender, uint256 value)")


def add_transfer(chain: FakeChain, block: int, amount: int = 1, log_index: int = 0, **kwargs: Any) -> None:
    chain.add_log(
        block,
        [TRANSFER.topic, address_topic(HOLDER), address_topic(RECIPIENT)],
        eth_abi.encode(["uint256"], [amount]),
        log_index=log_index,
        **kwargs,
    )


def engine_for(chain: FakeChain, **config: Any) -> LogQueryEngine:
    return LogQueryEngine(chain, LogQueryConfig(**config))


def assert_covers(requests: Sequence[tuple], start: int, end: int) -> None:
    """Successful sub-ranges tile [start, end] exactly once."""
    expected = start
    for lo, hi in sorted(requests):
        assert lo == expected
        expected = hi + 1
    assert expected == end + 1


TOKEN_FILTER = LogFilter(addresses=(TOKEN,), topics=(TRANSFER.topic,))


# =============================================================================
# Planning
# =============================================================================


class TestPlanRanges:
    """Tests for plan_ranges."""

    def test_chunked(self, chain: FakeChain) -> None:
        """Ranges are inclusive, chunk_size wide, the last one clipped."""
        engine = engine_for(chain, chunk_size=2000)

        assert engine.plan_ranges(100, 6100) == [
            (100, 2099),
            (2100, 4099),
            (4100, 6099),
            (6100, 6100),
        ]

    def test_single_block(self, chain: FakeChain) -> None:
        """from == to gives one single-block range."""
        assert engine_for(chain).plan_ranges(7, 7) == [(7, 7)]

    @pytest.mark.asyncio
    async def test_invalid_range_no_io(self, chain: FakeChain) -> None:
        """An inverted range fails before any request."""
        engine = engine_for(chain)

        with pytest.raises(InvalidRange):
            await engine.query_logs(TOKEN_FILTER, 10, 9)

        assert chain.requests == []


# =============================================================================
# Querying
# =============================================================================


class TestQueryLogs:
    """Tests for query_logs."""

    @pytest.mark.asyncio
    async def test_covers_range(self, chain: FakeChain) -> None:
        """Every block in range is queried once; boundary logs are kept."""
        for block in (99, 100, 2099, 2100, 6100, 6101):
            add_transfer(chain, block)
        engine = engine_for(chain, chunk_size=2000)

        logs = await engine.query_logs(TOKEN_FILTER, 100, 6100)

        assert [log.block_number for log in logs] == [100, 2099, 2100, 6100]
        assert chain.log_requests == engine.plan_ranges(100, 6100)
        assert engine.last_stats.requests == 4
        assert engine.last_stats.logs == 4

    @pytest.mark.asyncio
    async def test_sorted_within_block(self, chain: FakeChain) -> None:
        """Logs come back by (block, log index) whatever order the node uses."""
        add_transfer(chain, 50, log_index=3)
        add_transfer(chain, 40, log_index=0)
        add_transfer(chain, 50, log_index=1)

        logs = await engine_for(chain).query_logs(TOKEN_FILTER, 0, 99)

        assert [(log.block_number, log.log_index) for log in logs] == [(40, 0), (50, 1), (50, 3)]

    @pytest.mark.asyncio
    async def test_filters_sent(self, chain: FakeChain) -> None:
        """Address and topics are passed to the node."""
        add_transfer(chain, 10)
        chain.add_log(11, [APPROVAL.topic, address_topic(HOLDER), address_topic(RECIPIENT)])

        logs = await engine_for(chain).query_logs(TOKEN_FILTER, 0, 20)

        assert len(logs) == 1
        params = chain.requests[-1][1][0]
        assert params["address"] == TOKEN
        assert params["topics"] == [TRANSFER.topic]
        assert params["fromBlock"] == "0x0"

    @pytest.mark.asyncio
    async def test_duplicates_and_removed(self, chain: FakeChain) -> None:
        """Repeated logs are returned once and reorg-removed logs are dropped."""
        add_transfer(chain, 10, log_index=0, tx_hash="0x" + "aa" * 32)
        add_transfer(chain, 10, log_index=0, tx_hash="0x" + "aa" * 32)
        add_transfer(chain, 11, log_index=0, removed=True)
        engine = engine_for(chain)

        logs = await engine.query_logs(TOKEN_FILTER, 0, 20)

        assert [log.block_number for log in logs] == [10]
        assert engine.last_stats.duplicates == 1
        assert engine.last_stats.removed == 1

    @pytest.mark.asyncio
    async def test_max_logs(self, chain: FakeChain) -> None:
        """Exceeding max_logs aborts the query."""
        for block in range(5):
            add_transfer(chain, block)

        with pytest.raises(ValidationError):
            await engine_for(chain, max_logs=3).query_logs(TOKEN_FILTER, 0, 10)

    @pytest.mark.asyncio
    async def test_stats_accumulate(self, chain: FakeChain) -> None:
        """Engine-wide stats add up over queries."""
        engine = engine_for(chain, chunk_size=10)

        await engine.query_logs(TOKEN_FILTER, 0, 19)
        await engine.query_logs(TOKEN_FILTER, 0, 9)

        assert engine.last_stats.requests == 1
        assert engine.stats.requests == 3

    @pytest.mark.asyncio
    async def test_iter_logs_matches_query(self, chain: FakeChain) -> None:
        """iter_logs yields what query_logs returns."""
        for block in (1, 15, 27):
            add_transfer(chain, block)
        engine = engine_for(chain, chunk_size=10)

        streamed = [log async for log in engine.iter_logs(TOKEN_FILTER, 0, 30)]

        assert streamed == await engine.query_logs(TOKEN_FILTER, 0, 30)


# =============================================================================
# Bisection
# =============================================================================


class TestBisection:
    """Tests for adaptive range splitting."""

    @pytest.mark.asyncio
    async def test_block_range_limit(self, chain: FakeChain, caplog) -> None:
        """Ranges rejected as too wide are halved until accepted."""
        chain.max_block_range = 500
        for block in (100, 777, 2099, 5000, 6100):
            add_transfer(chain, block)
        engine = engine_for(chain, chunk_size=2000)

        logs = await engine.query_logs(TOKEN_FILTER, 100, 6100)

        assert [log.block_number for log in logs] == [100, 777, 2099, 5000, 6100]
        accepted = [(lo, hi) for lo, hi in chain.log_requests if hi - lo + 1 <= 500]
        assert_covers(accepted, 100, 6100)
        assert engine.last_stats.splits == 9
        assert "Provider rejected log range; bisecting" in caplog.text

    @pytest.mark.asyncio
    async def test_result_count_limit(self, chain: FakeChain) -> None:
        """Ranges rejected for too many results are halved too."""
        chain.max_results = 2
        for block in (10, 20, 30, 40):
            add_transfer(chain, block)

        logs = await engine_for(chain, chunk_size=100).query_logs(TOKEN_FILTER, 0, 99)

        assert [log.block_number for log in logs] == [10, 20, 30, 40]
        assert (0, 99) in chain.log_requests
        assert (0, 24) in chain.log_requests

    @pytest.mark.asyncio
    async def test_single_block_failure_is_fatal(self, chain: FakeChain) -> None:
        """A one-block range the provider still rejects raises."""
        chain.max_results = 1
        add_transfer(chain, 5, log_index=0)
        add_transfer(chain, 5, log_index=1)

        with pytest.raises(RpcError, match="query returned more than 1 results"):
            await engine_for(chain).query_logs(TOKEN_FILTER, 0, 9)

        assert chain.log_requests[-1] == (5, 5)

    @pytest.mark.asyncio
    async def test_other_errors_not_split(self, chain: FakeChain) -> None:
        """Errors that are not about range size propagate unchanged."""
        chain.fail_next("eth_getLogs", RpcError(-32000, "header not found"))
        engine = engine_for(chain)

        with pytest.raises(RpcError, match="header not found"):
            await engine.query_logs(TOKEN_FILTER, 0, 9)

        assert chain.counts["eth_getLogs"] == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "message",
        ["limit exceeded", "daily request limit exceeded", "rate limit exceeded, retry in 1s"],
    )
    async def test_rate_limits_not_split(self, chain: FakeChain, message: str) -> None:
        """Throttling errors propagate instead of doubling the request count."""
        chain.fail_next("eth_getLogs", RpcError(-32005, message))
        engine = engine_for(chain)

        with pytest.raises(RpcError):
            await engine.query_logs(TOKEN_FILTER, 0, 9)

        assert chain.counts["eth_getLogs"] == 1
        assert engine.last_stats.splits == 0

    @pytest.mark.asyncio
    async def test_log_limit_wording_split(self, chain: FakeChain) -> None:
        """Provider wording about the log result cap triggers bisection."""
        chain.fail_next("eth_getLogs", RpcError(-32005, "Logs matched by query exceeds limit of 10000"))
        engine = engine_for(chain)

        await engine.query_logs(TOKEN_FILTER, 0, 9)

        assert chain.log_requests == [(0, 4), (5, 9)]

    @pytest.mark.asyncio
    async def test_custom_patterns(self, chain: FakeChain) -> None:
        """split_error_patterns decides what triggers bisection."""
        chain.fail_next("eth_getLogs", RpcError(-32000, "backend says slow down"))
        engine = engine_for(chain, split_error_patterns=("slow down",))

        await engine.query_logs(TOKEN_FILTER, 0, 9)

        assert chain.log_requests == [(0, 4), (5, 9)]
        assert engine.last_stats.splits == 1


# =============================================================================
# Concurrency
# =============================================================================


class SlowChain(FakeChain):
    """FakeChain whose earlier log ranges answer later."""

    def __init__(self) -> None:
        super().__init__()
        self.active = 0
        self.peak = 0

    async def call(self, method: str, params: Sequence[Any] = ()) -> Any:
        if method != "eth_getLogs":
            return await super().call(method, params)
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            start = int(params[0]["fromBlock"], 16)
            await asyncio.sleep(0.005 * (10 - start // 10))
            return await super().call(method, params)
        finally:
            self.active -= 1


class TestConcurrency:
    """Tests for bounded concurrent sub-range fetching."""

    @pytest.mark.asyncio
    async def test_order_kept(self) -> None:
        """Out-of-order completion still yields ascending results."""
        chain = SlowChain()
        for block in range(0, 100, 7):
            add_transfer(chain, block)

        logs = await engine_for(chain, chunk_size=10, max_concurrency=4).query_logs(TOKEN_FILTER, 0, 99)

        assert [log.block_number for log in logs] == list(range(0, 100, 7))
        assert chain.log_requests != sorted(chain.log_requests)

    @pytest.mark.asyncio
    async def test_concurrency_bounded(self) -> None:
        """No more than max_concurrency requests are in flight."""
        chain = SlowChain()

        await engine_for(chain, chunk_size=10, max_concurrency=3).query_logs(TOKEN_FILTER, 0, 99)

        assert chain.peak == 3
        assert chain.counts["eth_getLogs"] == 10


# =============================================================================
# Event Streams
# =============================================================================


class TestEventStream:
    """Tests for EventStream."""

    @pytest.mark.asyncio
    async def test_decodes_and_restarts(self, chain: FakeChain) -> None:
        """Each iteration re-runs the query and decodes matching events."""
        add_transfer(chain, 3, amount=5)
        add_transfer(chain, 8, amount=6)
        engine = engine_for(chain, chunk_size=5)
        stream = engine.events([TRANSFER], LogFilter(addresses=(TOKEN,)), 0, 9)

        first = await stream.collect()
        second = [event async for event in stream]

        assert [event["value"] for event in first] == [5, 6]
        assert [event["value"] for event in second] == [5, 6]
        assert first[0]["from"] == HOLDER
        assert chain.counts["eth_getLogs"] == 4

    def test_topic0_added(self, chain: FakeChain) -> None:
        """Without a topic filter, the event topics become topic0 alternatives."""
        engine = engine_for(chain)

        single = engine.events([TRANSFER], LogFilter(), 0, 9)
        both = engine.events([TRANSFER, APPROVAL], LogFilter(), 0, 9)

        assert single.filter.topics == (TRANSFER.topic,)
        assert both.filter.topics == ((TRANSFER.topic, APPROVAL.topic),)

    @pytest.mark.asyncio
    async def test_unknown_topics_skipped(self, chain: FakeChain) -> None:
        """Logs for events not given are skipped."""
        add_transfer(chain, 1)
        chain.add_log(2, [APPROVAL.topic, address_topic(HOLDER), address_topic(RECIPIENT)], eth_abi.encode(["uint256"], [1]))
        both = LogFilter(addresses=(TOKEN,), topics=((TRANSFER.topic, APPROVAL.topic),))
        stream = EventStream(engine_for(chain), [TRANSFER], both, 0, 9)

        assert [event.name for event in await stream.collect()] == ["Transfer"]

    def test_requires_events(self, chain: FakeChain) -> None:
        """An empty event list is rejected."""
        with pytest.raises(ValidationError):
            engine_for(chain).events([], LogFilter(), 0, 9)

    def test_range_validated_eagerly(self, chain: FakeChain) -> None:
        """A bad range fails when the stream is created."""
        with pytest.raises(InvalidRange):
            engine_for(chain).events([TRANSFER], LogFilter(), 9, 0)


# =============================================================================
# Filters
# =============================================================================


class TestLogFilter:
    """Tests for LogFilter normalization."""

    def test_normalized(self) -> None:
        """Addresses are checksummed, topics lowercased and trailing wildcards dropped."""
        flt = LogFilter(addresses=TOKEN.lower(), topics=(TRANSFER.topic.upper().replace("0X", "0x"), None, None))

        assert flt.addresses == (TOKEN,)
        assert flt.topics == (TRANSFER.topic,)

    def test_to_rpc(self) -> None:
        """Several addresses become a list; alternatives become nested lists."""
        flt = LogFilter(addresses=(TOKEN, HOLDER), topics=(None, (address_topic(HOLDER), address_topic(RECIPIENT))))

        params = flt.to_rpc(1, 2)

        assert params["address"] == [TOKEN, HOLDER]
        assert params["topics"] == [None, [address_topic(HOLDER), address_topic(RECIPIENT)]]
        assert (params["fromBlock"], params["toBlock"]) == ("0x1", "0x2")
