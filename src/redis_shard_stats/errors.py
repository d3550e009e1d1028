from typing import Any, Optional

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from redis_shard_stats.structs import Address, ClusterNode


__all__ = [
    "ShardStatsError",
    "TopologyError",
    "NodeUnreachableError",
    "StatParseError",
    "UnexpectedReplyError",
    "AggregationError",
]


class ShardStatsError(RedisError):
    """Base exception class for shard statistics errors."""


class TopologyError(ShardStatsError):
    """Raises than cluster topology cannot be obtained or parsed"""


class NodeUnreachableError(ShardStatsError):
    """Raises than query to a cluster node is failed by network reason"""

    def __init__(self, addr: Address, command: str, reason: Optional[str] = None) -> None:
        msg = f"Node {addr} is unreachable while executing {command}"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)

        self.addr = addr
        self.command = command


class StatParseError(ShardStatsError, ValueError):
    """Raises than introspection field is not a decimal integer"""

    def __init__(
        self,
        section: str,
        field: str,
        value: Optional[str],
        addr: Optional[Address] = None,
    ) -> None:
        where = f" from {addr}" if addr is not None else ""
        super().__init__(
            f"Unable to parse {field!r} of INFO {section}{where}: invalid integer {value!r}"
        )

        self.section = section
        self.field = field
        self.value = value
        self.addr = addr


class UnexpectedReplyError(ShardStatsError):
    """Raises than node reply has unexpected type or format"""

    def __init__(self, addr: Address, command: str, reply: Any) -> None:
        super().__init__(f"Unexpected reply from {addr} on {command}: {reply!r}")

        self.addr = addr
        self.command = command
        self.reply = reply


class AggregationError(ShardStatsError):
    """Raises than shard report cannot be built"""

    def __init__(self, node: ClusterNode, cause: BaseException) -> None:
        super().__init__(f"Unable to aggregate stats of shard {node}: {cause}")

        self.node = node
        self.cause = cause


network_errors = (RedisConnectionError, RedisTimeoutError, OSError)
