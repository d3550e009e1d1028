import asyncio

import pytest

from redis_shard_stats.collector import ShardStatsCollector
from redis_shard_stats.errors import (
    AggregationError,
    NodeUnreachableError,
    StatParseError,
    TopologyError,
    UnexpectedReplyError,
)
from redis_shard_stats.structs import Address

from ._stats_data import make_keyspace_info, make_memory_info


ADDR1 = Address("127.0.0.1", 30001)
ADDR2 = Address("127.0.0.1", 30002)
ADDR3 = Address("127.0.0.1", 30003)


@pytest.fixture
def cluster_clients(node_client_mock, cluster_nodes_reply):
    return {
        ADDR1: node_client_mock(
            addr=ADDR1,
            memory=make_memory_info(1000),
            keyspace=make_keyspace_info((100, 1)),
            cluster_nodes=cluster_nodes_reply,
            slot_counts={0: 50, 1: 30},
        ),
        ADDR2: node_client_mock(
            addr=ADDR2,
            memory=make_memory_info(2000),
            keyspace=make_keyspace_info((200, 2), (20, 0)),
        ),
        ADDR3: node_client_mock(
            addr=ADDR3,
            memory=make_memory_info(3000),
            keyspace=make_keyspace_info((300, 3)),
        ),
    }


async def test_collect(fake_client_factory, cluster_clients):
    factory = fake_client_factory(cluster_clients)
    collector = ShardStatsCollector([ADDR1], client_factory=factory)

    stats = await collector.collect()

    assert [r.node.addr for r in stats.results] == [ADDR2, ADDR3, ADDR1]
    assert all(r.ok for r in stats.results)
    assert stats.failed == []
    assert [r.owned_slot_count for r in stats.reports] == [5462, 5461, 5461]
    assert [r.total_keys for r in stats.reports] == [220, 300, 100]
    assert [r.used_memory for r in stats.reports] == ["2000", "3000", "1000"]
    assert sorted(factory.closed) == sorted(factory.opened)
    for client in cluster_clients.values():
        client.count_keys_in_slot.assert_not_called()


async def test_collect__ranked(fake_client_factory, cluster_clients):
    collector = ShardStatsCollector(
        [ADDR1],
        rank=1,
        slot_concurrency=64,
        client_factory=fake_client_factory(cluster_clients),
    )

    stats = await collector.collect()

    report = stats.reports[2]
    assert report.node.addr == ADDR1
    assert report.top_slots(3) == [(0, 50), (1, 30), (2, 0)]
    assert len(report.ranked_slots) == 5461
    assert cluster_clients[ADDR2].count_keys_in_slot.call_count == 5462


async def test_collect__order_by_topology_not_completion(fake_client_factory, cluster_clients):
    slow_client = cluster_clients[ADDR2]
    info_section_se = slow_client.info_section.side_effect

    async def slow_info_section(name):
        await asyncio.sleep(0.05)
        return info_section_se(name)

    slow_client.info_section.side_effect = slow_info_section
    collector = ShardStatsCollector([ADDR1], client_factory=fake_client_factory(cluster_clients))

    stats = await collector.collect()

    assert [r.node.addr for r in stats.results] == [ADDR2, ADDR3, ADDR1]


async def test_collect__masters_in_cluster_nodes_order(node_client_mock, fake_client_factory):
    client1 = node_client_mock(
        addr=ADDR1,
        keyspace=make_keyspace_info((10, 0)),
        cluster_nodes=(
            "bbbb 127.0.0.1:30002@31002 master - 0 0 2 connected 8192-16383\n"
            "aaaa 127.0.0.1:30001@31001 myself,master - 0 0 1 connected 0-8191\n"
        ),
    )
    client2 = node_client_mock(addr=ADDR2, keyspace=make_keyspace_info((20, 0)))
    collector = ShardStatsCollector(
        [ADDR1],
        client_factory=fake_client_factory({ADDR1: client1, ADDR2: client2}),
    )

    stats = await collector.collect()

    assert [r.node.node_id for r in stats.results] == ["bbbb", "aaaa"]
    assert [r.total_keys for r in stats.reports] == [20, 10]


async def test_collect__shard_isolation(fake_client_factory, cluster_clients):
    unreachable = NodeUnreachableError(ADDR2, "INFO memory", "Connection refused")
    cluster_clients[ADDR2].info_section.side_effect = unreachable
    cluster_clients[ADDR3].info_section.side_effect = (
        lambda name: "db0:keys=abc,expires=0\r\n" if name == "keyspace" else ""
    )
    collector = ShardStatsCollector([ADDR1], client_factory=fake_client_factory(cluster_clients))

    stats = await collector.collect()

    assert [r.ok for r in stats.results] == [False, False, True]
    assert len(stats.reports) == 1
    assert [r.node.addr for r in stats.failed] == [ADDR2, ADDR3]
    assert isinstance(stats.results[0].error, AggregationError)
    assert stats.results[0].error.cause is unreachable
    assert isinstance(stats.results[1].error.cause, StatParseError)


async def test_collect__unexpected_reply_isolated(fake_client_factory, cluster_clients):
    bad_reply = UnexpectedReplyError(ADDR3, "CLUSTER COUNTKEYSINSLOT 10923", None)
    cluster_clients[ADDR3].count_keys_in_slot.side_effect = bad_reply
    collector = ShardStatsCollector(
        [ADDR1],
        rank=1,
        client_factory=fake_client_factory(cluster_clients),
    )

    stats = await collector.collect()

    assert [r.ok for r in stats.results] == [True, False, True]
    assert stats.results[1].error.cause is bad_reply


async def test_collect__fail_fast(fake_client_factory, cluster_clients):
    cluster_clients[ADDR2].info_section.side_effect = NodeUnreachableError(ADDR2, "INFO memory")
    collector = ShardStatsCollector(
        [ADDR1],
        fail_fast=True,
        client_factory=fake_client_factory(cluster_clients),
    )

    with pytest.raises(AggregationError) as exc_info:
        await collector.collect()

    assert exc_info.value.node.addr == ADDR2


async def test_collect__shard_concurrency(fake_client_factory, cluster_clients):
    in_flight = 0
    max_in_flight = 0

    def wrap(client):
        info_section_se = client.info_section.side_effect

        async def info_section(name):
            nonlocal in_flight, max_in_flight
            in_flight += 1
            max_in_flight = max(max_in_flight, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return info_section_se(name)

        client.info_section.side_effect = info_section

    for client in cluster_clients.values():
        wrap(client)

    collector = ShardStatsCollector(
        [ADDR1],
        shard_concurrency=1,
        client_factory=fake_client_factory(cluster_clients),
    )

    stats = await collector.collect()

    assert len(stats.reports) == 3
    assert max_in_flight == 1


async def test_collect__topology_error(node_client_mock, fake_client_factory):
    client = node_client_mock()
    client.cluster_nodes.side_effect = NodeUnreachableError(ADDR1, "CLUSTER NODES")
    collector = ShardStatsCollector([ADDR1], client_factory=fake_client_factory({ADDR1: client}))

    with pytest.raises(TopologyError):
        await collector.collect()


async def test_collect__no_masters(node_client_mock, fake_client_factory):
    client = node_client_mock(
        cluster_nodes="r1 127.0.0.1:30001@31001 myself,slave m1 0 0 1 connected\n"
    )
    collector = ShardStatsCollector([ADDR1], client_factory=fake_client_factory({ADDR1: client}))

    stats = await collector.collect()

    assert stats.results == []


@pytest.mark.parametrize(
    "kwargs, match",
    [
        ({"shard_concurrency": -1}, "shard_concurrency"),
        ({"slot_concurrency": 0}, "slot_concurrency"),
    ],
)
def test_collector_invalid_options(kwargs, match):
    with pytest.raises(ValueError, match=match):
        ShardStatsCollector([ADDR1], **kwargs)


def test_collector_no_startup_nodes():
    with pytest.raises(ValueError, match="startup_nodes"):
        ShardStatsCollector([])
