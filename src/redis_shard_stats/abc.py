from abc import ABC, abstractmethod

from redis_shard_stats.structs import Address


__all__ = [
    "AbcNodeClient",
]


class AbcNodeClient(ABC):
    @property
    @abstractmethod
    def address(self) -> Address:
        pass

    @abstractmethod
    async def info_section(self, name: str) -> str:
        pass

    @abstractmethod
    async def count_keys_in_slot(self, slot: int) -> int:
        pass

    @abstractmethod
    async def cluster_nodes(self) -> str:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass
