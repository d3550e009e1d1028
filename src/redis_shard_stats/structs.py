import dataclasses
from typing import Iterator, List, NamedTuple, Optional, Tuple


class Address(NamedTuple):
    host: str
    port: int

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


@dataclasses.dataclass(frozen=True, order=True)
class SlotRange:
    """Half-open range of hash slots ``[start, end)``"""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0 or self.end < self.start:
            raise ValueError(f"Invalid slot range: [{self.start}, {self.end})")

    @property
    def size(self) -> int:
        return self.end - self.start

    def iter_slots(self) -> Iterator[int]:
        return iter(range(self.start, self.end))

    def __str__(self) -> str:
        if self.end - self.start == 1:
            return str(self.start)
        return f"{self.start}-{self.end - 1}"


class SlotMigration(NamedTuple):
    slot: int
    node_id: str
    state: str


class ClusterNode(NamedTuple):
    node_id: str
    addr: Address
    flags: Tuple[str, ...] = ()
    master_id: Optional[str] = None
    slots: Tuple[SlotRange, ...] = ()
    migrations: Tuple[SlotMigration, ...] = ()

    @property
    def is_master(self) -> bool:
        return "master" in self.flags

    def __str__(self) -> str:
        return f"{self.node_id} {self.addr}"


class SlotKeyCount(NamedTuple):
    slot: int
    count: int


class KeyspaceTotals(NamedTuple):
    keys: int
    expires: int


RankedSlotList = List[SlotKeyCount]


@dataclasses.dataclass(frozen=True)
class ShardReport:
    node: ClusterNode
    owned_slot_count: int
    total_keys: int
    total_expires: int
    used_memory: str
    ranked_slots: RankedSlotList = dataclasses.field(default_factory=list, repr=False)

    @property
    def avg_keys_per_slot(self) -> Optional[int]:
        if self.owned_slot_count <= 0:
            return None
        return self.total_keys // self.owned_slot_count

    def top_slots(self, limit: int) -> RankedSlotList:
        if limit <= 0:
            return []
        return self.ranked_slots[:limit]
