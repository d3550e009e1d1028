import asyncio
import dataclasses
from typing import List, Optional, Sequence, Union

from redis_shard_stats.aggregator import build_shard_report
from redis_shard_stats.client import NodeClientFactory
from redis_shard_stats.errors import AggregationError
from redis_shard_stats.log import logger
from redis_shard_stats.structs import Address, ClusterNode, ShardReport
from redis_shard_stats.topology import ClusterTopology, TopologyLoader


__all__ = (
    "ShardResult",
    "ClusterStats",
    "ShardStatsCollector",
)


@dataclasses.dataclass(frozen=True)
class ShardResult:
    node: ClusterNode
    report: Optional[ShardReport] = None
    error: Optional[AggregationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclasses.dataclass(frozen=True)
class ClusterStats:
    topology: ClusterTopology
    results: List[ShardResult]

    @property
    def failed(self) -> List[ShardResult]:
        return [r for r in self.results if not r.ok]

    @property
    def reports(self) -> List[ShardReport]:
        return [r.report for r in self.results if r.report is not None]


class ShardStatsCollector:
    # 0 is unlimited
    SHARD_CONCURRENCY = 0

    def __init__(
        self,
        startup_nodes: Sequence[Address],
        *,
        rank: Union[bool, int] = 0,
        fail_fast: Optional[bool] = None,
        shard_concurrency: Optional[int] = None,
        slot_concurrency: Optional[int] = None,
        # node client options
        client_factory: Optional[NodeClientFactory] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        ssl: Optional[bool] = None,
        connect_timeout: Optional[float] = None,
        execute_timeout: Optional[float] = None,
    ) -> None:
        if len(startup_nodes) < 1:
            raise ValueError("startup_nodes must be one at least")
        self._startup_nodes = list(startup_nodes)

        self._rank = rank

        if fail_fast is None:
            fail_fast = False
        self._fail_fast = fail_fast

        if shard_concurrency is None:
            shard_concurrency = self.SHARD_CONCURRENCY
        elif shard_concurrency < 0:
            raise ValueError("shard_concurrency must be >= 0")
        self._shard_concurrency = shard_concurrency

        if slot_concurrency is not None and slot_concurrency < 1:
            raise ValueError("slot_concurrency must be >= 1")
        self._slot_concurrency = slot_concurrency

        if client_factory is None:
            client_factory = NodeClientFactory(
                username=username,
                password=password,
                ssl=ssl,
                connect_timeout=connect_timeout,
                execute_timeout=execute_timeout,
            )
        self._client_factory = client_factory

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__} startup_nodes={self._startup_nodes!r} "
            f"rank={self._rank!r} fail_fast={self._fail_fast!r}>"
        )

    @property
    def fail_fast(self) -> bool:
        return self._fail_fast

    async def load_topology(self) -> ClusterTopology:
        loader = TopologyLoader(self._startup_nodes, self._client_factory.client)
        return await loader.load()

    async def collect(self) -> ClusterStats:
        topology = await self.load_topology()
        masters = topology.masters()
        if not masters:
            logger.warning("No master nodes found in cluster topology")

        results = await self._gather_shards(masters)
        return ClusterStats(topology=topology, results=results)

    async def collect_shard(self, node: ClusterNode) -> ShardResult:
        try:
            async with self._client_factory.client(node.addr) as client:
                report = await build_shard_report(
                    node,
                    client,
                    self._rank,
                    slot_concurrency=self._slot_concurrency,
                )
        except AggregationError as e:
            if self._fail_fast:
                raise
            logger.warning("Shard %s skipped: %s", node, e.cause)
            return ShardResult(node=node, error=e)

        return ShardResult(node=node, report=report)

    async def _gather_shards(self, masters: Sequence[ClusterNode]) -> List[ShardResult]:
        semaphore: Optional[asyncio.Semaphore] = None
        if self._shard_concurrency > 0:
            semaphore = asyncio.Semaphore(self._shard_concurrency)

        async def run(node: ClusterNode) -> ShardResult:
            if semaphore is None:
                return await self.collect_shard(node)
            async with semaphore:
                return await self.collect_shard(node)

        tasks = [asyncio.ensure_future(run(n)) for n in masters]
        try:
            # gather keeps masters order
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
