import asyncio
from typing import Awaitable, List, Sequence, TypeVar

T = TypeVar('T')


async def join_all(aws: Sequence[Awaitable[T]]) -> List[T]:
    """
    Awaits every awaitable concurrently, returning results in input order.

    The first failure cancels the remaining tasks and is re-raised.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
