from typing import Dict, List, Optional, Tuple, Union
from urllib.parse import urlsplit

from redis_shard_stats.errors import StatParseError, TopologyError
from redis_shard_stats.structs import (
    Address,
    ClusterNode,
    KeyspaceTotals,
    SlotMigration,
    SlotRange,
)


__all__ = [
    "parse_info",
    "parse_keyspace",
    "parse_address",
    "parse_node_slots",
    "parse_cluster_node_line",
    "parse_cluster_nodes",
]

KEYSPACE_SECTION = "keyspace"
KEYSPACE_DB_PREFIX = "db"
KEYSPACE_KEYS_FIELD = "keys"
KEYSPACE_EXPIRES_FIELD = "expires"

DEFAULT_PORT = 6379


def parse_info(info: str) -> Dict[str, str]:
    """
    Parse raw INFO section text into mapping.

    Lines are CRLF (or plain LF) terminated. Comment lines (``# Memory``)
    and lines without ``:`` are skipped, last occurrence of a key wins.
    """

    ret: Dict[str, str] = {}
    for line in info.split("\n"):
        line = line.rstrip("\r")
        if not line or line.startswith("#"):
            continue

        key, sep, value = line.partition(":")
        if not sep:
            continue

        ret[key] = value
    return ret


def _parse_int_field(
    fields: Dict[str, str],
    name: str,
    addr: Optional[Address],
) -> int:
    raw = fields.get(name)
    # decimal digits only
    if raw is None or not (raw.isascii() and raw.isdigit()):
        raise StatParseError(KEYSPACE_SECTION, name, raw, addr)
    return int(raw)


def _is_db_key(key: str) -> bool:
    num = key[len(KEYSPACE_DB_PREFIX) :]
    return key.startswith(KEYSPACE_DB_PREFIX) and num.isascii() and num.isdigit()


def parse_keyspace(info: str, *, addr: Address = None) -> KeyspaceTotals:
    """
    Sum ``keys`` and ``expires`` over all ``db<N>`` entries of INFO keyspace.

    @see: https://redis.io/commands/info#keyspace
    """

    keys = 0
    expires = 0
    for key, value in parse_info(info).items():
        if not _is_db_key(key):
            continue

        fields: Dict[str, str] = {}
        for pair in value.split(","):
            name, _, field_value = pair.partition("=")
            fields[name.strip()] = field_value.strip()

        keys += _parse_int_field(fields, KEYSPACE_KEYS_FIELD, addr)
        expires += _parse_int_field(fields, KEYSPACE_EXPIRES_FIELD, addr)

    return KeyspaceTotals(keys=keys, expires=expires)


def parse_address(mixed_addr: Union[str, Tuple[str, int]]) -> Address:
    if not isinstance(mixed_addr, str):
        return Address(mixed_addr[0], int(mixed_addr[1]))

    if "://" in mixed_addr:
        parsed = urlsplit(mixed_addr)
        if not parsed.hostname:
            raise ValueError(f"Invalid node address: {mixed_addr!r}")
        return Address(parsed.hostname, parsed.port or DEFAULT_PORT)

    host, sep, port = mixed_addr.rpartition(":")
    if not sep:
        return Address(mixed_addr, DEFAULT_PORT)
    if not host or not port.isdigit():
        raise ValueError(f"Invalid node address: {mixed_addr!r}")

    # [::1]:6379
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]

    return Address(host, int(port))


NodeSlots = Tuple[Tuple[SlotRange, ...], Tuple[SlotMigration, ...]]


def parse_node_slots(raw_slots: str) -> NodeSlots:
    """
    @see: https://redis.io/commands/cluster-nodes#serialization-format
    @see: https://redis.io/commands/cluster-nodes#special-slot-entries
    """

    slots: List[SlotRange] = []
    migrations: List[SlotMigration] = []
    migration_delimiter = "->-"
    import_delimiter = "-<-"
    range_delimiter = "-"
    migrating_state = "migrating"
    importing_state = "importing"

    for r in raw_slots.strip().split():
        if migration_delimiter in r:
            slot_id, dst_node_id = r[1:-1].split(migration_delimiter, 1)
            migrations.append(SlotMigration(int(slot_id), dst_node_id, migrating_state))
        elif import_delimiter in r:
            slot_id, src_node_id = r[1:-1].split(import_delimiter, 1)
            migrations.append(SlotMigration(int(slot_id), src_node_id, importing_state))
        elif range_delimiter in r:
            start, end = r.split(range_delimiter)
            # CLUSTER NODES reports closed ranges
            slots.append(SlotRange(int(start), int(end) + 1))
        else:
            slots.append(SlotRange(int(r), int(r) + 1))

    slots.sort()
    return tuple(slots), tuple(migrations)


def parse_cluster_node_line(line: str) -> ClusterNode:
    parts = line.split(None, 8)
    if len(parts) < 8:
        raise TopologyError(f"Malformed CLUSTER NODES line: {line!r}")

    self_id, addr, flags, master_id = parts[:4]

    # Since version 4.0.0 address has the format 192.1.2.3:7001@17001
    # and since 7.0.0 it may be followed by ",hostname"
    addr = addr.split(",", 1)[0].split("@", 1)[0]
    host, _, port = addr.rpartition(":")

    try:
        node_addr = Address(host, int(port))
        if len(parts) >= 9:
            slots, migrations = parse_node_slots(parts[8])
        else:
            slots, migrations = (), ()
    except ValueError as e:
        raise TopologyError(f"Malformed CLUSTER NODES line: {line!r}") from e

    return ClusterNode(
        node_id=self_id,
        addr=node_addr,
        flags=tuple(flags.split(",")),
        master_id=master_id if master_id != "-" else None,
        slots=slots,
        migrations=migrations,
    )


def parse_cluster_nodes(resp: str) -> List[ClusterNode]:
    """
    @see: https://redis.io/commands/cluster-nodes # list of string
    """

    return [parse_cluster_node_line(line) for line in resp.strip().splitlines() if line]
