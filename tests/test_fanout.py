import asyncio

import pytest

from workspace_licenses.fanout import map_with_concurrency


def test_maps_every_item_once_and_omits_none():
    seen = []

    async def mapper(item):
        seen.append(item)
        await asyncio.sleep(0)
        return None if item % 3 == 0 else item * 10

    result = asyncio.run(map_with_concurrency(list(range(10)), 4, mapper))

    assert sorted(seen) == list(range(10))
    assert sorted(result) == [10, 20, 40, 50, 70, 80]


def test_respects_concurrency_cap():
    in_flight = 0
    peak = 0

    async def mapper(item):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.001)
        in_flight -= 1
        return item

    result = asyncio.run(map_with_concurrency(list(range(20)), 3, mapper))

    assert sorted(result) == list(range(20))
    assert peak == 3


def test_concurrency_is_floored_and_at_least_one():
    in_flight = 0
    peak = 0

    async def mapper(item):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0)
        in_flight -= 1
        return item

    asyncio.run(map_with_concurrency([1, 2, 3], 0, mapper))
    assert peak == 1

    peak = 0
    asyncio.run(map_with_concurrency([1, 2, 3, 4], 2.9, mapper))
    assert peak == 2


def test_results_arrive_in_completion_order():
    async def mapper(item):
        await asyncio.sleep(item / 100)
        return item

    result = asyncio.run(map_with_concurrency([3, 1, 2], 3, mapper))
    assert result == [1, 2, 3]


def test_empty_input():
    async def mapper(item):  # pragma: no cover - never called
        return item

    assert asyncio.run(map_with_concurrency([], 8, mapper)) == []


def test_failure_aborts_the_batch():
    async def mapper(item):
        await asyncio.sleep(0)
        if item == 2:
            raise RuntimeError("lookup failed")
        return item

    with pytest.raises(RuntimeError, match="lookup failed"):
        asyncio.run(map_with_concurrency([1, 2, 3, 4], 2, mapper))
