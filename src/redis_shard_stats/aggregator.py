from typing import Optional, Union

from redis.exceptions import RedisError

from redis_shard_stats.abc import AbcNodeClient
from redis_shard_stats.errors import AggregationError
from redis_shard_stats.log import logger
from redis_shard_stats.ranking import rank_slots
from redis_shard_stats.structs import ClusterNode, ShardReport
from redis_shard_stats.util import KEYSPACE_SECTION, parse_info, parse_keyspace


__all__ = (
    "MEMORY_SECTION",
    "KEYSPACE_SECTION",
    "USED_MEMORY_KEY",
    "build_shard_report",
    "fetch_used_memory",
)


MEMORY_SECTION = "memory"
USED_MEMORY_KEY = "used_memory"


async def fetch_used_memory(client: AbcNodeClient) -> str:
    raw_memory = await client.info_section(MEMORY_SECTION)
    used_memory = parse_info(raw_memory).get(USED_MEMORY_KEY, "")
    if not used_memory:
        logger.warning("Node %s does not report %s", client.address, USED_MEMORY_KEY)
    return used_memory


async def build_shard_report(
    node: ClusterNode,
    client: AbcNodeClient,
    rank: Union[bool, int] = 0,
    *,
    slot_concurrency: Optional[int] = None,
) -> ShardReport:
    """Collect slots, keyspace and memory stats of one master node."""

    try:
        used_memory = await fetch_used_memory(client)

        raw_keyspace = await client.info_section(KEYSPACE_SECTION)
        keyspace = parse_keyspace(raw_keyspace, addr=node.addr)

        owned_slot_count, ranked_slots = await rank_slots(
            node.slots,
            client.count_keys_in_slot,
            rank,
            concurrency=slot_concurrency,
        )
    except RedisError as e:
        raise AggregationError(node, e) from e

    logger.debug(
        "Shard %s: slots:%d keys:%d expires:%d used_memory:%s",
        node,
        owned_slot_count,
        keyspace.keys,
        keyspace.expires,
        used_memory,
    )

    return ShardReport(
        node=node,
        owned_slot_count=owned_slot_count,
        total_keys=keyspace.keys,
        total_expires=keyspace.expires,
        used_memory=used_memory,
        ranked_slots=ranked_slots,
    )
