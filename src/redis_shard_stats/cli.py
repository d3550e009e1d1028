import asyncio
import logging
import sys
from typing import Optional

import click

from redis_shard_stats._version import __version__
from redis_shard_stats.errors import AggregationError, TopologyError
from redis_shard_stats.factory import collect_shard_stats
from redis_shard_stats.report import render_report
from redis_shard_stats.structs import Address
from redis_shard_stats.util import parse_address


PROG_NAME = "redis-shard-stats"
DEFAULT_ADDRESS = "127.0.0.1:6379"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

EXIT_FATAL = 1
EXIT_PARTIAL = 2


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )


def _validate_address(ctx: click.Context, param: click.Parameter, value: str) -> Address:
    try:
        return parse_address(value)
    except ValueError as e:
        raise click.BadParameter(str(e))


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument(
    "address",
    default=DEFAULT_ADDRESS,
    metavar="<HOST:PORT>",
    callback=_validate_address,
)
@click.option(
    "--rank",
    type=click.IntRange(min=0),
    default=0,
    show_default=True,
    help="Count keys in every slot and print top N slots of each shard.",
)
@click.option("--username", help="ACL username.")
@click.option("--password", envvar="REDISCLI_AUTH", help="Password for every node.")
@click.option("--ssl", is_flag=True, help="Connect with TLS.")
@click.option("--connect-timeout", type=float, help="Connect timeout in seconds.")
@click.option("--timeout", type=float, help="Command timeout in seconds.")
@click.option(
    "--shard-concurrency",
    type=click.IntRange(min=0),
    help="Max shards processed at once, 0 is unlimited.",
)
@click.option(
    "--slot-concurrency",
    type=click.IntRange(min=1),
    help="Max concurrent per-slot queries of one shard.",
)
@click.option("--fail-fast", is_flag=True, help="Abort on first shard failure.")
@click.option("--verbose", "-v", is_flag=True, help="Print verbose messages.")
@click.version_option(version=__version__, prog_name=PROG_NAME)
def main(
    address: Address,
    rank: int,
    username: Optional[str],
    password: Optional[str],
    ssl: bool,
    connect_timeout: Optional[float],
    timeout: Optional[float],
    shard_concurrency: Optional[int],
    slot_concurrency: Optional[int],
    fail_fast: bool,
    verbose: bool,
) -> None:
    """Print slots, keys and memory usage of every master in a Redis Cluster.

    \b
    redis-shard-stats 127.0.0.1:7000
    redis-shard-stats --rank 10 redis://10.0.0.1:7000
    """

    setup_logging(verbose)

    try:
        stats = asyncio.run(
            collect_shard_stats(
                [address],
                rank=rank,
                fail_fast=fail_fast,
                shard_concurrency=shard_concurrency,
                slot_concurrency=slot_concurrency,
                username=username,
                password=password,
                ssl=ssl,
                connect_timeout=connect_timeout,
                execute_timeout=timeout,
            )
        )
    except (TopologyError, AggregationError, ValueError) as e:
        click.echo(f"{PROG_NAME}-{__version__} failed: {e}", err=True)
        sys.exit(EXIT_FATAL)

    for line in render_report(stats, rank=rank):
        click.echo(line)

    if stats.failed:
        sys.exit(EXIT_PARTIAL)
