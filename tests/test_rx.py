"""Tests for credgen.rx stream operators."""

import asyncio

import pytest

from credgen.rx import (
    Subject,
    combine_latest,
    distinct_until_changed,
    filter_stream,
    first,
    just,
    map_stream,
    switch_map,
    with_latest_from,
)


async def _take(stream, n):
    values = []
    async for value in stream:
        values.append(value)
        if len(values) == n:
            break
    return values


async def _collect(stream):
    return [value async for value in stream]


class Boom(Exception):
    pass


# ---------------------------------------------------------------------------
# Subject
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_subject_replays_latest_value():
    subject = Subject(1)
    subject.next(2)
    assert await first(subject) == 2


@pytest.mark.asyncio
async def test_subject_completion_ends_subscribers():
    subject = Subject()
    stream = subject.subscribe()
    task = asyncio.ensure_future(_collect(stream))
    await asyncio.sleep(0)
    subject.next("a")
    subject.next("b")
    subject.complete()
    assert await task == ["a", "b"]
    assert subject.closed


@pytest.mark.asyncio
async def test_subject_error_is_raised_by_reference():
    error = Boom()
    subject = Subject()
    subject.error(error)
    with pytest.raises(Boom) as info:
        await first(subject)
    assert info.value is error


@pytest.mark.asyncio
async def test_first_of_empty_stream():
    with pytest.raises(LookupError):
        await first(just())


# ---------------------------------------------------------------------------
# Simple operators
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_map_filter_distinct():
    stream = distinct_until_changed(filter_stream(map_stream(just(1, 1, 2, 3, 3, 4), lambda v: v * 10), bool))
    assert await _collect(stream) == [10, 20, 30, 40]


@pytest.mark.asyncio
async def test_errors_pass_through_operators_unwrapped():
    error = Boom()

    async def failing():
        yield 1
        raise error

    with pytest.raises(Boom) as info:
        await _collect(map_stream(failing(), str))
    assert info.value is error


# ---------------------------------------------------------------------------
# Combinators
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_combine_latest_waits_for_every_input():
    a, b = Subject(), Subject()
    stream = combine_latest(a.subscribe(), b.subscribe())
    a.next(1)
    task = asyncio.ensure_future(_take(stream, 2))
    await asyncio.sleep(0.01)
    b.next("x")
    await asyncio.sleep(0.01)
    a.next(2)
    assert await asyncio.wait_for(task, 1) == [(1, "x"), (2, "x")]


@pytest.mark.asyncio
async def test_combine_latest_completes_when_any_input_completes():
    forever = Subject(0)
    assert await asyncio.wait_for(_collect(combine_latest(just(1), forever.subscribe())), 1) in ([], [(1, 0)])


@pytest.mark.asyncio
async def test_with_latest_from_holds_pending_source_value():
    source, other = Subject(), Subject()
    stream = with_latest_from(source.subscribe(), other.subscribe())
    task = asyncio.ensure_future(_take(stream, 2))
    await asyncio.sleep(0.01)
    source.next("early")
    await asyncio.sleep(0.01)
    assert not task.done()
    other.next(1)
    await asyncio.sleep(0.01)
    other.next(2)
    await asyncio.sleep(0.01)
    source.next("late")
    assert await asyncio.wait_for(task, 1) == [("early", 1), ("late", 2)]


@pytest.mark.asyncio
async def test_with_latest_from_completes_with_other():
    source, other = Subject("s"), Subject()
    other.complete()
    assert await asyncio.wait_for(_collect(with_latest_from(source.subscribe(), other.subscribe())), 1) == []


@pytest.mark.asyncio
async def test_switch_map_tears_down_previous_inner_first():
    events = []

    async def inner(name):
        events.append(f"open {name}")
        try:
            yield name
            await asyncio.Event().wait()
        finally:
            events.append(f"close {name}")

    outer = Subject("a")
    stream = switch_map(outer.subscribe(), inner)
    assert await stream.__anext__() == "a"
    outer.next("b")
    assert await asyncio.wait_for(stream.__anext__(), 1) == "b"
    await stream.aclose()

    assert events.index("close a") < events.index("open b")
    assert events[-1] == "close b"


@pytest.mark.asyncio
async def test_switch_map_completes_with_outer():
    outer = Subject("a")
    stream = switch_map(outer.subscribe(), lambda v: Subject(v).subscribe())
    assert await stream.__anext__() == "a"
    outer.complete()
    with pytest.raises(StopAsyncIteration):
        await asyncio.wait_for(stream.__anext__(), 1)


@pytest.mark.asyncio
async def test_switch_map_propagates_outer_error():
    error = Boom()
    outer = Subject("a")
    stream = switch_map(outer.subscribe(), lambda v: Subject(v).subscribe())
    await stream.__anext__()
    outer.error(error)
    with pytest.raises(Boom) as info:
        await asyncio.wait_for(stream.__anext__(), 1)
    assert info.value is error


@pytest.mark.asyncio
async def test_closing_cancels_upstream_subscriptions():
    a, b = Subject(1), Subject(2)
    stream = combine_latest(a.subscribe(), b.subscribe())
    assert await stream.__anext__() == (1, 2)
    assert a.observers == 1
    await stream.aclose()
    assert a.observers == 0 and b.observers == 0
