"""
Event log query engine.

Providers cap ``eth_getLogs`` by block span or result count. The engine
splits ``[from_block, to_block]`` into fixed-width inclusive sub-ranges,
runs them with bounded concurrency, and bisects any sub-range the
provider rejects as too large until the width reaches one block. Results
are merged back in ascending ``(blockNumber, logIndex)`` order.

Example:
    >>> engine = LogQueryEngine(transport, LogQueryConfig(chunk_size=2000))
    >>> flt = LogFilter(addresses=(token,), topics=build_topic_filter(transfer, None, holder))
    >>> logs = await engine.query_logs(flt, 100, 6100)
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import (
    Any,
    AsyncIterator,
    Dict,
    List,
    Optional,
    Sequence,
    Set,
    Tuple,
    Union,
)

from ethlite.abi.codec import decode_log, encode_topic
from ethlite.abi.types import AbiEvent
from ethlite.config import LogQueryConfig
from ethlite.errors import AbiMismatch, ExecutionReverted, ProtocolViolation, RpcError, ValidationError
from ethlite.transport.base import Transport
from ethlite.types import LogEntry
from ethlite.utils.logging import get_logger
from ethlite.utils.validation import validate_address, validate_block_range, validate_hash

_logger = get_logger(__name__)

TopicSpec = Union[None, str, Tuple[str, ...]]


# ============================================================================
# Filters
# ============================================================================

@dataclass(frozen=True)
class LogFilter:
    """
    Address/topic filter for ``eth_getLogs``.

    Attributes:
        addresses: Emitting contracts; empty means any address
        topics: Per position, None (any), a topic, or a tuple of
            alternatives (OR)
    """

    addresses: Tuple[str, ...] = ()
    topics: Tuple[TopicSpec, ...] = ()

    def __post_init__(self) -> None:
        addresses = (self.addresses,) if isinstance(self.addresses, str) else self.addresses
        object.__setattr__(
            self,
            "addresses",
            tuple(validate_address(a, "filter address") for a in addresses),
        )
        topics: List[TopicSpec] = []
        for position, entry in enumerate(self.topics):
            label = f"topics[{position}]"
            if entry is None:
                topics.append(None)
            elif isinstance(entry, (list, tuple)):
                topics.append(tuple(validate_hash(t, label) for t in entry))
            else:
                topics.append(validate_hash(entry, label))
        while topics and topics[-1] is None:
            topics.pop()
        object.__setattr__(self, "topics", tuple(topics))

    def with_topic0(self, topic0: TopicSpec) -> "LogFilter":
        """Return a copy with the first topic position replaced."""
        rest = self.topics[1:] if self.topics else ()
        return LogFilter(addresses=self.addresses, topics=(topic0,) + tuple(rest))

    def to_rpc(self, from_block: int, to_block: int) -> Dict[str, Any]:
        params: Dict[str, Any] = {"fromBlock": hex(from_block), "toBlock": hex(to_block)}
        if len(self.addresses) == 1:
            params["address"] = self.addresses[0]
        elif self.addresses:
            params["address"] = list(self.addresses)
        if self.topics:
            params["topics"] = [list(t) if isinstance(t, tuple) else t for t in self.topics]
        return params


def build_topic_filter(event: AbiEvent, *indexed_values: Any) -> Tuple[TopicSpec, ...]:
    """
    Topic list matching ``event`` with the given indexed values.

    Values line up with the event's indexed parameters; None matches
    anything and a list gives alternatives. Static values are encoded as
    32-byte words, ``string``/``bytes`` as their keccak256 hash.

    Example:
        >>> build_topic_filter(transfer, None, holder)  # Transfer(any -> holder)
    """
    indexed = event.indexed_inputs
    if len(indexed_values) > len(indexed):
        raise AbiMismatch(
            f"{event.name} has {len(indexed)} indexed parameters, got {len(indexed_values)} values",
            name=event.name,
            expected=len(indexed),
            actual=len(indexed_values),
        )

    topics: List[TopicSpec] = [] if event.anonymous else [event.topic]
    for param, value in zip(indexed, indexed_values):
        if value is None:
            topics.append(None)
        elif isinstance(value, list):
            topics.append(tuple(encode_topic(param.type, v) for v in value))
        else:
            topics.append(encode_topic(param.type, value))
    while topics and topics[-1] is None:
        topics.pop()
    return tuple(topics)


# ============================================================================
# Results
# ============================================================================

@dataclass(frozen=True)
class DecodedEvent:
    """A log decoded against the event descriptor whose topic0 it carries."""

    event: AbiEvent
    args: Dict[str, Any]
    log: LogEntry

    @property
    def name(self) -> str:
        return self.event.name

    def __getitem__(self, key: str) -> Any:
        return self.args[key]


@dataclass
class LogQueryStats:
    """Counters for one or more queries."""

    requests: int = 0
    splits: int = 0
    logs: int = 0
    duplicates: int = 0
    removed: int = 0

    def add(self, other: "LogQueryStats") -> None:
        self.requests += other.requests
        self.splits += other.splits
        self.logs += other.logs
        self.duplicates += other.duplicates
        self.removed += other.removed


@dataclass
class _Merge:
    """Order-preserving dedupe across sub-range results."""

    stats: LogQueryStats
    max_logs: Optional[int]
    seen: Set[Tuple[int, int, str]] = field(default_factory=set)

    def accept(self, entries: Sequence[LogEntry]) -> List[LogEntry]:
        out: List[LogEntry] = []
        for entry in sorted(entries, key=lambda e: e.sort_key):
            if entry.removed:
                self.stats.removed += 1
                continue
            if entry.dedupe_key in self.seen:
                self.stats.duplicates += 1
                continue
            self.seen.add(entry.dedupe_key)
            out.append(entry)
        self.stats.logs += len(out)
        if self.max_logs is not None and self.stats.logs > self.max_logs:
            raise ValidationError(
                f"Query returned more than {self.max_logs} logs; narrow the range or filter",
                field="max_logs",
            )
        return out


# ============================================================================
# Engine
# ============================================================================

class LogQueryEngine:
    """
    Windowed ``eth_getLogs`` with adaptive bisection.

    Attributes:
        stats: Counters accumulated over every query run by this engine
        last_stats: Counters of the most recent query
    """

    def __init__(self, transport: Transport, config: Optional[LogQueryConfig] = None) -> None:
        self.transport = transport
        self.config = config or LogQueryConfig()
        self.stats = LogQueryStats()
        self.last_stats = LogQueryStats()

    def plan_ranges(self, from_block: int, to_block: int) -> List[Tuple[int, int]]:
        """
        Initial inclusive sub-ranges of ``chunk_size`` blocks.

        Raises:
            InvalidRange: For negative or inverted bounds
        """
        chunk = self.config.chunk_size
        validate_block_range(from_block, to_block, chunk)
        return [
            (start, min(start + chunk - 1, to_block))
            for start in range(from_block, to_block + 1, chunk)
        ]

    def _should_split(self, exc: RpcError) -> bool:
        if isinstance(exc, ExecutionReverted):
            return False
        text = f"{exc.rpc_message} {exc.data or ''}".lower()
        return any(pattern in text for pattern in self.config.split_error_patterns)

    async def _fetch(
        self,
        log_filter: LogFilter,
        start: int,
        end: int,
        stats: LogQueryStats,
    ) -> List[LogEntry]:
        stats.requests += 1
        _logger.debug("eth_getLogs", extra={"from_block": start, "to_block": end})
        try:
            raw = await self.transport.call("eth_getLogs", [log_filter.to_rpc(start, end)])
        except RpcError as exc:
            if start == end or not self._should_split(exc):
                raise
            mid = (start + end) // 2
            stats.splits += 1
            _logger.warning(
                "Provider rejected log range; bisecting",
                extra={"from_block": start, "to_block": end, "rpc_message": exc.rpc_message},
            )
            left = await self._fetch(log_filter, start, mid, stats)
            right = await self._fetch(log_filter, mid + 1, end, stats)
            return left + right

        if not isinstance(raw, list):
            raise ProtocolViolation(
                f"eth_getLogs returned {type(raw).__name__}, expected a list",
                method="eth_getLogs",
            )
        return [LogEntry.from_rpc(item) for item in raw]

    def _finish(self, stats: LogQueryStats) -> None:
        self.last_stats = stats
        self.stats.add(stats)
        _logger.debug(
            "Log query finished",
            extra={
                "requests": stats.requests,
                "splits": stats.splits,
                "logs": stats.logs,
                "duplicates": stats.duplicates,
            },
        )

    async def query_logs(
        self,
        log_filter: LogFilter,
        from_block: int,
        to_block: int,
    ) -> List[LogEntry]:
        """
        Fetch every matching log in ``[from_block, to_block]``.

        Returns:
            Logs in ascending ``(block_number, log_index)`` order, without
            duplicates or reorg-removed entries

        Raises:
            InvalidRange: Before any request, for a bad range
            RpcError: When a single-block range still fails, or for any
                non-range provider error
            ValidationError: If ``max_logs`` is exceeded
        """
        ranges = self.plan_ranges(from_block, to_block)
        stats = LogQueryStats()
        semaphore = asyncio.Semaphore(self.config.max_concurrency)

        async def run(start: int, end: int) -> List[LogEntry]:
            async with semaphore:
                return await self._fetch(log_filter, start, end, stats)

        tasks = [asyncio.ensure_future(run(start, end)) for start, end in ranges]
        try:
            chunks = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

        merge = _Merge(stats=stats, max_logs=self.config.max_logs)
        try:
            return [entry for chunk in chunks for entry in merge.accept(chunk)]
        finally:
            self._finish(stats)

    async def iter_logs(
        self,
        log_filter: LogFilter,
        from_block: int,
        to_block: int,
    ) -> AsyncIterator[LogEntry]:
        """Like ``query_logs`` but one sub-range at a time, yielding as it goes."""
        ranges = self.plan_ranges(from_block, to_block)
        stats = LogQueryStats()
        merge = _Merge(stats=stats, max_logs=self.config.max_logs)
        try:
            for start, end in ranges:
                for entry in merge.accept(await self._fetch(log_filter, start, end, stats)):
                    yield entry
        finally:
            self._finish(stats)

    def events(
        self,
        abi_events: Sequence[AbiEvent],
        log_filter: LogFilter,
        from_block: int,
        to_block: int,
    ) -> "EventStream":
        """
        Restartable stream of decoded events.

        When the filter has no topic0 constraint, one is added from the
        given events.
        """
        return EventStream(self, abi_events, log_filter, from_block, to_block)


class EventStream:
    """
    Async iterable of ``DecodedEvent``.

    Every ``async for`` runs the query again from the start. Logs whose
    topic0 matches none of the events are skipped. An anonymous event is
    matched only when it is the sole event given.
    """

    def __init__(
        self,
        engine: LogQueryEngine,
        abi_events: Sequence[AbiEvent],
        log_filter: LogFilter,
        from_block: int,
        to_block: int,
    ) -> None:
        if not abi_events:
            raise ValidationError("At least one event is required", field="events")
        self._engine = engine
        self._events = tuple(abi_events)
        self._anonymous = self._events[0] if len(self._events) == 1 and self._events[0].anonymous else None
        self._by_topic = {e.topic: e for e in self._events if not e.anonymous}
        if log_filter.topics or self._anonymous is not None:
            self._filter = log_filter
        else:
            topics = tuple(self._by_topic)
            self._filter = log_filter.with_topic0(topics[0] if len(topics) == 1 else topics)
        engine.plan_ranges(from_block, to_block)
        self._from_block = from_block
        self._to_block = to_block

    @property
    def filter(self) -> LogFilter:
        return self._filter

    def _match(self, log: LogEntry) -> Optional[AbiEvent]:
        if self._anonymous is not None:
            return self._anonymous
        return self._by_topic.get(log.topic0) if log.topic0 else None

    def __aiter__(self) -> AsyncIterator[DecodedEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[DecodedEvent]:
        async for log in self._engine.iter_logs(self._filter, self._from_block, self._to_block):
            event = self._match(log)
            if event is None:
                continue
            yield DecodedEvent(event=event, args=decode_log(event, log), log=log)

    async def collect(self) -> List[DecodedEvent]:
        return [item async for item in self]
