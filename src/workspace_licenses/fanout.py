from __future__ import annotations

import asyncio
import math
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar

T = TypeVar("T")
U = TypeVar("U")


async def map_with_concurrency(
    items: Sequence[T],
    concurrency: float,
    mapper: Callable[[T], Awaitable[Optional[U]]],
) -> List[U]:
    """Run ``mapper`` over ``items`` with at most ``concurrency`` calls in flight.

    Workers share one cursor, so every index is claimed exactly once. A
    ``None`` result omits the item. Results are collected in completion order;
    callers needing a stable order sort afterwards. The first failure cancels
    the remaining workers and propagates.
    """

    max_workers = min(max(1, math.floor(concurrency)), len(items))
    results: List[U] = []
    cursor = 0

    async def _worker() -> None:
        nonlocal cursor
        while cursor < len(items):
            # Claimed before the await, so no other worker can observe this index.
            index = cursor
            cursor += 1
            mapped = await mapper(items[index])
            if mapped is not None:
                results.append(mapped)

    if max_workers == 0:
        return results

    tasks = [asyncio.ensure_future(_worker()) for _ in range(max_workers)]
    try:
        await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
    return results
