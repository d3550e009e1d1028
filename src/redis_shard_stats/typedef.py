from typing import AsyncContextManager, Awaitable, Callable, Tuple, Union

from redis_shard_stats.abc import AbcNodeClient
from redis_shard_stats.structs import Address

StartupAddress = Union[str, Tuple[str, int]]
CountKeysInSlot = Callable[[int], Awaitable[int]]
ClientOpener = Callable[[Address], AsyncContextManager[AbcNodeClient]]
