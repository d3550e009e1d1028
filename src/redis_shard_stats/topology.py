import datetime
from typing import Dict, List, Optional, Sequence

from redis.exceptions import RedisError

from redis_shard_stats.errors import TopologyError
from redis_shard_stats.log import logger
from redis_shard_stats.structs import Address, ClusterNode
from redis_shard_stats.typedef import ClientOpener
from redis_shard_stats.util import parse_cluster_nodes


__all__ = (
    "ClusterTopology",
    "TopologyLoader",
    "create_cluster_topology",
)


class _ClusterTopologyData:
    """
    ClusterTopologyData only for internals
    """

    def __init__(self) -> None:
        self.state_from: Address
        self.nodes: List[ClusterNode] = []
        self.masters: List[ClusterNode] = []
        # master node id -> list of replicas
        self.replicas: Dict[str, List[ClusterNode]] = {}
        self.created_at = datetime.datetime.now()


def create_cluster_topology(
    nodes: Sequence[ClusterNode],
    state_from: Address,
) -> "ClusterTopology":
    data = _ClusterTopologyData()
    data.state_from = state_from
    data.nodes = list(nodes)

    masters: List[ClusterNode] = []
    for node in nodes:
        if node.is_master:
            masters.append(node)
            data.replicas.setdefault(node.node_id, [])

    for node in nodes:
        if node.is_master or node.master_id is None:
            continue
        if node.master_id not in data.replicas:
            logger.warning("Replica %s has unknown master %s", node, node.master_id)
            continue
        data.replicas[node.master_id].append(node)

    data.masters = masters

    return ClusterTopology(data)


class ClusterTopology:
    def __init__(self, data: _ClusterTopologyData) -> None:
        self._data = data

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.repr_stats()}>"

    def repr_stats(self) -> str:
        data = self._data
        num_of_replicas = sum(len(rs) for rs in data.replicas.values())
        repr_parts = [
            f"state_from:{data.state_from}",
            f"created:{data.created_at.isoformat()}",
            f"nodes:{len(data.nodes)}",
            f"masters:{len(data.masters)}",
            f"replicas:{num_of_replicas}",
            f"slots_assigned:{self.slots_assigned}",
        ]
        return ", ".join(repr_parts)

    @property
    def state_from(self) -> Address:
        return self._data.state_from

    @property
    def slots_assigned(self) -> int:
        return sum(r.size for node in self._data.masters for r in node.slots)

    def nodes(self) -> List[ClusterNode]:
        return list(self._data.nodes)

    def masters(self) -> List[ClusterNode]:
        return list(self._data.masters)


class TopologyLoader:
    def __init__(
        self,
        startup_nodes: Sequence[Address],
        open_client: ClientOpener,
    ) -> None:
        if len(startup_nodes) < 1:
            raise ValueError("startup_nodes must be one at least")

        self._startup_nodes = list(startup_nodes)
        self._open_client = open_client

    async def load(self) -> ClusterTopology:
        last_err: Optional[BaseException] = None

        logger.debug("Trying to obtain cluster topology from addrs: %r", self._startup_nodes)

        for addr in self._startup_nodes:
            logger.info("Obtain cluster topology from %s", addr)
            try:
                async with self._open_client(addr) as client:
                    raw_nodes = await client.cluster_nodes()
                nodes = parse_cluster_nodes(raw_nodes)
            except RedisError as e:
                last_err = e
                logger.warning("Unable to get cluster topology from %s: %r", addr, e)
                continue

            if not nodes:
                logger.warning("Node %s returns empty CLUSTER NODES reply", addr)
                continue

            topology = create_cluster_topology(nodes, addr)
            logger.info("Loaded cluster topology: %s", topology.repr_stats())
            return topology

        logger.error(
            "No available hosts to load cluster topology. Tried hosts: %r",
            self._startup_nodes,
        )
        if last_err is not None:
            raise TopologyError(f"Unable to load cluster topology: {last_err}") from last_err
        raise TopologyError("Unable to load cluster topology: no nodes returned")
