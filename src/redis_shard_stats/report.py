from typing import Iterable, List

from redis_shard_stats.collector import ClusterStats, ShardResult
from redis_shard_stats.structs import ClusterNode, ShardReport


__all__ = (
    "format_flags",
    "format_node",
    "format_shard_report",
    "format_ranked_slots",
    "format_shard_error",
    "format_summary",
    "render_report",
)


NOT_AVAILABLE = "N/A"


def format_flags(flags: Iterable[str]) -> str:
    return "[" + ",".join(flags) + "]"


def format_node(node: ClusterNode) -> str:
    return f"{node.node_id} {node.addr} {format_flags(node.flags):<16}"


def format_shard_report(report: ShardReport) -> str:
    avg = report.avg_keys_per_slot
    avg_str = NOT_AVAILABLE if avg is None else str(avg)
    return (
        f"{format_node(report.node)}"
        f"slots:{report.owned_slot_count:5d} "
        f"count:{report.total_keys:8d} "
        f"expires:{report.total_expires:8d} "
        f"avg:{avg_str:>5} "
        f"used_memory:{report.used_memory:>12}"
    )


def format_ranked_slots(report: ShardReport, limit: int) -> List[str]:
    return [f"    slot:{p.slot:5d} count:{p.count:8d}" for p in report.top_slots(limit)]


def format_shard_error(result: ShardResult) -> str:
    cause = result.error.cause if result.error is not None else None
    return f"{format_node(result.node)}error: {cause}"


def format_summary(stats: ClusterStats) -> str:
    reports = stats.reports
    total_slots = sum(r.owned_slot_count for r in reports)
    total_keys = sum(r.total_keys for r in reports)
    total_expires = sum(r.total_expires for r in reports)
    return (
        f"masters:{len(stats.results)} failed:{len(stats.failed)} "
        f"slots:{total_slots} count:{total_keys} expires:{total_expires}"
    )


def render_report(stats: ClusterStats, *, rank: int = 0) -> List[str]:
    lines: List[str] = []
    for result in stats.results:
        if result.report is None:
            lines.append(format_shard_error(result))
            continue

        lines.append(format_shard_report(result.report))
        if rank > 0:
            lines.extend(format_ranked_slots(result.report, rank))

    lines.append(format_summary(stats))
    return lines
