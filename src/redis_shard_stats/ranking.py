import asyncio
import logging
from operator import attrgetter
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from redis_shard_stats.log import logger
from redis_shard_stats.structs import RankedSlotList, SlotKeyCount, SlotRange
from redis_shard_stats.typedef import CountKeysInSlot


__all__ = (
    "SLOT_CONCURRENCY",
    "count_owned_slots",
    "iter_slots",
    "rank_by_slot_count",
    "rank_slots",
)


SLOT_CONCURRENCY = 16


def count_owned_slots(slot_ranges: Iterable[SlotRange]) -> int:
    return sum(r.size for r in slot_ranges)


def iter_slots(slot_ranges: Iterable[SlotRange]) -> Iterator[int]:
    for slot_range in slot_ranges:
        yield from slot_range.iter_slots()


def rank_by_slot_count(pairs: Iterable[SlotKeyCount]) -> RankedSlotList:
    """
    Order slots by key count descending.

    Sort is stable: slots with equal key count keep their input order.
    """

    return sorted(pairs, key=attrgetter("count"), reverse=True)


async def rank_slots(
    slot_ranges: Sequence[SlotRange],
    count_keys_in_slot: CountKeysInSlot,
    rank: Union[bool, int],
    *,
    concurrency: Optional[int] = None,
) -> Tuple[int, RankedSlotList]:
    """
    Count keys for every owned slot and rank slots by it.

    Returns owned slots count and ranked list. When ``rank`` is disabled
    no per-slot queries are issued and ranked list is empty.
    """

    owned_slot_count = count_owned_slots(slot_ranges)
    if int(rank) <= 0:
        return owned_slot_count, []

    if concurrency is None:
        concurrency = SLOT_CONCURRENCY
    elif concurrency < 1:
        raise ValueError("concurrency must be >= 1")

    semaphore = asyncio.Semaphore(concurrency)

    async def count_slot(slot: int) -> SlotKeyCount:
        async with semaphore:
            count = await count_keys_in_slot(slot)
        return SlotKeyCount(slot, count)

    tasks = [asyncio.ensure_future(count_slot(slot)) for slot in iter_slots(slot_ranges)]
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            "Count keys in %d slots with concurrency %d",
            len(tasks),
            concurrency,
        )

    try:
        pairs: List[SlotKeyCount] = await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    return owned_slot_count, rank_by_slot_count(pairs)
