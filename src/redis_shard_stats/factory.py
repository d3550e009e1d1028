import random
from typing import List, Optional, Sequence, Union

from redis_shard_stats.collector import ClusterStats, ShardStatsCollector
from redis_shard_stats.structs import Address
from redis_shard_stats.typedef import StartupAddress
from redis_shard_stats.util import parse_address


__all__ = (
    "create_collector",
    "collect_shard_stats",
)


def create_collector(
    startup_nodes: Sequence[StartupAddress],
    *,
    rank: Union[bool, int] = 0,
    fail_fast: bool = None,
    shard_concurrency: int = None,
    slot_concurrency: int = None,
    # node client options
    username: str = None,
    password: str = None,
    ssl: bool = None,
    connect_timeout: float = None,
    execute_timeout: float = None,
    shuffle_startup_nodes: Optional[bool] = None,
) -> ShardStatsCollector:
    corrected_nodes: List[Address] = [parse_address(addr) for addr in startup_nodes]

    # distribute CLUSTER NODES load between startup nodes
    if shuffle_startup_nodes and len(corrected_nodes) > 1:
        random.shuffle(corrected_nodes)

    return ShardStatsCollector(
        corrected_nodes,
        rank=rank,
        fail_fast=fail_fast,
        shard_concurrency=shard_concurrency,
        slot_concurrency=slot_concurrency,
        username=username,
        password=password,
        ssl=ssl,
        connect_timeout=connect_timeout,
        execute_timeout=execute_timeout,
    )


async def collect_shard_stats(
    startup_nodes: Sequence[StartupAddress],
    *,
    rank: Union[bool, int] = 0,
    fail_fast: bool = None,
    shard_concurrency: int = None,
    slot_concurrency: int = None,
    username: str = None,
    password: str = None,
    ssl: bool = None,
    connect_timeout: float = None,
    execute_timeout: float = None,
) -> ClusterStats:
    collector = create_collector(
        startup_nodes,
        rank=rank,
        fail_fast=fail_fast,
        shard_concurrency=shard_concurrency,
        slot_concurrency=slot_concurrency,
        username=username,
        password=password,
        ssl=ssl,
        connect_timeout=connect_timeout,
        execute_timeout=execute_timeout,
    )
    return await collector.collect()
