from ._version import __version__
from .aggregator import build_shard_report
from .client import NodeClient, NodeClientFactory
from .collector import ClusterStats, ShardResult, ShardStatsCollector
from .errors import (
    AggregationError,
    NodeUnreachableError,
    ShardStatsError,
    StatParseError,
    TopologyError,
    UnexpectedReplyError,
)
from .factory import collect_shard_stats, create_collector
from .ranking import rank_by_slot_count, rank_slots
from .structs import Address, ClusterNode, ShardReport, SlotKeyCount, SlotRange
from .topology import ClusterTopology, TopologyLoader

__all__ = [
    "__version__",
    # Classes
    "ShardStatsCollector",
    "NodeClient",
    "NodeClientFactory",
    "TopologyLoader",
    # Factories
    "create_collector",
    "collect_shard_stats",
    # Core
    "build_shard_report",
    "rank_slots",
    "rank_by_slot_count",
    # Errors
    "ShardStatsError",
    "TopologyError",
    "NodeUnreachableError",
    "StatParseError",
    "UnexpectedReplyError",
    "AggregationError",
    # public structs
    "Address",
    "ClusterNode",
    "SlotRange",
    "SlotKeyCount",
    "ShardReport",
    "ShardResult",
    "ClusterStats",
    "ClusterTopology",
]
