"""Asynchronous streams.

A stream is any ``AsyncIterable``. A value yielded is an emission, iterator
exhaustion is completion, and an exception raised from ``__anext__`` is an
error. Errors are re-raised by reference so callers can tell their own
dependency failures apart from generator failures. Closing an operator's
iterator (``aclose()``) cancels every upstream subscription it opened.

:class:`Subject` is the publish/subscribe primitive behind in-memory state,
the active-user stream and the key-availability signal.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import (
    Any,
    AsyncIterable,
    AsyncIterator,
    Awaitable,
    Callable,
    Generic,
    Optional,
    TypeVar,
)

T = TypeVar("T")
R = TypeVar("R")

_NEXT = "next"
_ERROR = "error"
_COMPLETE = "complete"
_MISSING: Any = object()


class Subject(Generic[T]):
    """Multicast channel that replays its latest value to new subscribers."""

    def __init__(self, value: Any = _MISSING) -> None:
        self._value = value
        self._queues: set[asyncio.Queue] = set()
        self._terminal: Optional[tuple[str, Any]] = None

    @property
    def value(self) -> T:
        if self._value is _MISSING:
            raise LookupError("subject has not emitted")
        return self._value

    @property
    def has_value(self) -> bool:
        return self._value is not _MISSING

    @property
    def closed(self) -> bool:
        return self._terminal is not None

    @property
    def observers(self) -> int:
        return len(self._queues)

    def next(self, value: T) -> None:
        if self._terminal is not None:
            return
        self._value = value
        for queue in list(self._queues):
            queue.put_nowait((_NEXT, value))

    def error(self, exc: BaseException) -> None:
        self._finish((_ERROR, exc))

    def complete(self) -> None:
        self._finish((_COMPLETE, None))

    def _finish(self, event: tuple[str, Any]) -> None:
        if self._terminal is not None:
            return
        self._terminal = event
        for queue in list(self._queues):
            queue.put_nowait(event)

    async def subscribe(self) -> AsyncIterator[T]:
        queue: asyncio.Queue = asyncio.Queue()
        if self._value is not _MISSING:
            queue.put_nowait((_NEXT, self._value))
        if self._terminal is not None:
            queue.put_nowait(self._terminal)
        else:
            self._queues.add(queue)

        try:
            while True:
                kind, value = await queue.get()
                if kind == _NEXT:
                    yield value
                elif kind == _ERROR:
                    raise value
                else:
                    return
        finally:
            self._queues.discard(queue)

    def __aiter__(self) -> AsyncIterator[T]:
        return self.subscribe()


# ---------------------------------------------------------------------------
# Plumbing
# ---------------------------------------------------------------------------


@asynccontextmanager
async def subscription(stream: AsyncIterable[T]) -> AsyncIterator[AsyncIterator[T]]:
    """Iterate *stream* and close its iterator on exit, however the block ends."""
    iterator = stream.__aiter__()
    try:
        yield iterator
    finally:
        aclose = getattr(iterator, "aclose", None)
        if aclose is not None:
            await aclose()


async def _pump(tag: Any, stream: AsyncIterable[Any], queue: asyncio.Queue) -> None:
    try:
        async with subscription(stream) as values:
            async for value in values:
                queue.put_nowait((tag, _NEXT, value))
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        queue.put_nowait((tag, _ERROR, exc))
    else:
        queue.put_nowait((tag, _COMPLETE, None))


async def _cancel(*tasks: Optional[asyncio.Task]) -> None:
    pending = [task for task in tasks if task is not None]
    for task in pending:
        task.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)


# ---------------------------------------------------------------------------
# Sources & sinks
# ---------------------------------------------------------------------------


async def just(*values: T) -> AsyncIterator[T]:
    """Emit *values* then complete."""
    for value in values:
        yield value


async def first(stream: AsyncIterable[T]) -> T:
    """Await the first emission of *stream* and unsubscribe."""
    async with subscription(stream) as values:
        async for value in values:
            return value
    raise LookupError("stream completed without emitting")


# ---------------------------------------------------------------------------
# Operators
# ---------------------------------------------------------------------------


async def map_stream(stream: AsyncIterable[T], fn: Callable[[T], R]) -> AsyncIterator[R]:
    async with subscription(stream) as values:
        async for value in values:
            yield fn(value)


async def filter_stream(
    stream: AsyncIterable[T], predicate: Callable[[T], bool]
) -> AsyncIterator[T]:
    async with subscription(stream) as values:
        async for value in values:
            if predicate(value):
                yield value


async def distinct_until_changed(stream: AsyncIterable[T]) -> AsyncIterator[T]:
    previous: Any = _MISSING
    async with subscription(stream) as values:
        async for value in values:
            if previous is _MISSING or value != previous:
                previous = value
                yield value


async def concat_map(
    stream: AsyncIterable[T], fn: Callable[[T], Awaitable[R]]
) -> AsyncIterator[R]:
    """Await *fn* for each emission in order; never overlaps two calls."""
    async with subscription(stream) as values:
        async for value in values:
            yield await fn(value)


async def combine_latest(*streams: AsyncIterable[Any]) -> AsyncIterator[tuple]:
    """Emit the latest value of every stream once each has emitted.

    Completes as soon as any input completes.
    """
    queue: asyncio.Queue = asyncio.Queue()
    tasks = [asyncio.create_task(_pump(i, s, queue)) for i, s in enumerate(streams)]
    latest = [_MISSING] * len(streams)
    try:
        while True:
            index, kind, value = await queue.get()
            if kind == _NEXT:
                latest[index] = value
                if _MISSING not in latest:
                    yield tuple(latest)
            elif kind == _ERROR:
                raise value
            else:
                return
    finally:
        await _cancel(*tasks)


async def with_latest_from(
    source: AsyncIterable[T], *others: AsyncIterable[Any]
) -> AsyncIterator[tuple]:
    """Pair each *source* emission with the latest value of *others*.

    A source value that arrives before every other stream is ready is held
    (only the most recent) and released once they are. Completion of any
    other stream completes the output.
    """
    queue: asyncio.Queue = asyncio.Queue()
    tasks = [asyncio.create_task(_pump(0, source, queue))]
    tasks += [asyncio.create_task(_pump(i, s, queue)) for i, s in enumerate(others, 1)]
    latest = [_MISSING] * len(others)
    pending: Any = _MISSING
    source_done = False
    try:
        while True:
            index, kind, value = await queue.get()
            if kind == _ERROR:
                raise value
            if index == 0:
                if kind == _COMPLETE:
                    if pending is _MISSING:
                        return
                    source_done = True
                    continue
                pending = value
            elif kind == _COMPLETE:
                return
            else:
                latest[index - 1] = value

            if pending is not _MISSING and _MISSING not in latest:
                emit, pending = pending, _MISSING
                yield (emit, *latest)
                if source_done:
                    return
    finally:
        await _cancel(*tasks)


async def switch_map(
    source: AsyncIterable[T], project: Callable[[T], AsyncIterable[R]]
) -> AsyncIterator[R]:
    """Follow the stream projected from the latest *source* value.

    The previous inner subscription is fully torn down before the next one
    starts, so values from two inner streams never interleave. Completion of
    *source* completes the output.
    """
    queue: asyncio.Queue = asyncio.Queue()
    outer = asyncio.create_task(_pump(-1, source, queue))
    inner: Optional[asyncio.Task] = None
    generation = 0
    try:
        while True:
            tag, kind, value = await queue.get()
            if tag == -1:
                if kind == _NEXT:
                    await _cancel(inner)
                    generation += 1
                    inner = asyncio.create_task(_pump(generation, project(value), queue))
                elif kind == _ERROR:
                    raise value
                else:
                    return
            elif tag == generation:
                if kind == _NEXT:
                    yield value
                elif kind == _ERROR:
                    raise value
                else:
                    inner = None
    finally:
        await _cancel(outer, inner)
