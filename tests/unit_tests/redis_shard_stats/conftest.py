from contextlib import asynccontextmanager

import mock
import pytest

from redis_shard_stats.structs import Address

from ._stats_data import CLUSTER_NODES_REPLY, make_keyspace_info, make_memory_info


@pytest.fixture
def cluster_nodes_reply():
    return CLUSTER_NODES_REPLY


@pytest.fixture
def node_client_mock():
    def factory(
        *,
        addr=Address("127.0.0.1", 7000),
        memory=None,
        keyspace=None,
        slot_counts=None,
        cluster_nodes=None,
    ):
        if memory is None:
            memory = make_memory_info(1024)
        if keyspace is None:
            keyspace = make_keyspace_info()
        if slot_counts is None:
            slot_counts = {}
        sections = {"memory": memory, "keyspace": keyspace}

        def info_section_se(name):
            value = sections[name]
            if isinstance(value, BaseException):
                raise value
            return value

        def count_keys_in_slot_se(slot):
            value = slot_counts.get(slot, 0)
            if isinstance(value, BaseException):
                raise value
            return value

        client = mock.NonCallableMock()
        client.address = addr
        client.info_section = mock.AsyncMock(side_effect=info_section_se)
        client.count_keys_in_slot = mock.AsyncMock(side_effect=count_keys_in_slot_se)
        client.cluster_nodes = mock.AsyncMock(return_value=cluster_nodes)
        client.close = mock.AsyncMock()
        return client

    return factory


class FakeClientFactory:
    def __init__(self, clients) -> None:
        self.clients = clients
        self.opened = []
        self.closed = []

    @asynccontextmanager
    async def client(self, addr):
        self.opened.append(addr)
        try:
            yield self.clients[addr]
        finally:
            self.closed.append(addr)


@pytest.fixture
def fake_client_factory():
    return FakeClientFactory
