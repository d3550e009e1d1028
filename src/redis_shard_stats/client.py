import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from async_timeout import timeout as atimeout
from redis.asyncio import Redis

from redis_shard_stats.abc import AbcNodeClient
from redis_shard_stats.errors import NodeUnreachableError, UnexpectedReplyError, network_errors
from redis_shard_stats.log import logger
from redis_shard_stats.structs import Address


__all__ = (
    "NodeClient",
    "NodeClientFactory",
)


def _raw_reply(response: Any, **options: Any) -> Any:
    return response


class NodeClient(AbcNodeClient):
    def __init__(self, addr: Address, redis: Redis, *, execute_timeout: float) -> None:
        self._addr = addr
        self._redis = redis
        self._execute_timeout = execute_timeout

        # INFO must stay raw text, it is parsed by redis_shard_stats.util
        self._redis.set_response_callback("INFO", _raw_reply)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self._addr}>"

    @property
    def address(self) -> Address:
        return self._addr

    async def info_section(self, name: str) -> str:
        return await self._execute_text("INFO", name)

    async def count_keys_in_slot(self, slot: int) -> int:
        result = await self._execute("CLUSTER", "COUNTKEYSINSLOT", slot)
        if not isinstance(result, int) or result < 0:
            raise UnexpectedReplyError(self._addr, f"CLUSTER COUNTKEYSINSLOT {slot}", result)
        return result

    async def cluster_nodes(self) -> str:
        return await self._execute_text("CLUSTER", "NODES")

    async def close(self) -> None:
        await self._redis.aclose()

    async def _execute_text(self, *args: Any) -> str:
        result = await self._execute(*args)
        if not isinstance(result, str):
            raise UnexpectedReplyError(self._addr, " ".join(str(a) for a in args), result)
        return result

    async def _execute(self, *args: Any) -> Any:
        command = " ".join(str(a) for a in args)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Execute %s on %s", command, self._addr)

        try:
            async with atimeout(self._execute_timeout):
                result = await self._redis.execute_command(*args)
        except asyncio.TimeoutError as e:
            logger.warning("Execute command %s on %s is timed out", command, self._addr)
            raise NodeUnreachableError(self._addr, command, "timed out") from e
        except network_errors as e:
            logger.warning("Connection problem with %s: %r", self._addr, e)
            raise NodeUnreachableError(self._addr, command, str(e) or repr(e)) from e

        return result


class NodeClientFactory:
    CONNECT_TIMEOUT = 1.0
    EXECUTE_TIMEOUT = 5.0

    def __init__(
        self,
        *,
        username: Optional[str] = None,
        password: Optional[str] = None,
        ssl: Optional[bool] = None,
        connect_timeout: Optional[float] = None,
        execute_timeout: Optional[float] = None,
    ) -> None:
        if connect_timeout is None:
            connect_timeout = self.CONNECT_TIMEOUT
        elif connect_timeout <= 0:
            raise ValueError("connect_timeout must be > 0")
        self._connect_timeout = float(connect_timeout)

        if execute_timeout is None:
            execute_timeout = self.EXECUTE_TIMEOUT
        elif execute_timeout <= 0:
            raise ValueError("execute_timeout must be > 0")
        self._execute_timeout = float(execute_timeout)

        self._username = username
        self._password = password
        self._ssl = bool(ssl)

    @property
    def connect_timeout(self) -> float:
        return self._connect_timeout

    @property
    def execute_timeout(self) -> float:
        return self._execute_timeout

    def create_client(self, addr: Address) -> NodeClient:
        logger.debug("Create client for %s", addr)
        redis = Redis(
            host=addr.host,
            port=addr.port,
            username=self._username,
            password=self._password,
            ssl=self._ssl,
            socket_connect_timeout=self._connect_timeout,
            decode_responses=True,
        )
        return NodeClient(addr, redis, execute_timeout=self._execute_timeout)

    @asynccontextmanager
    async def client(self, addr: Address) -> AsyncIterator[NodeClient]:
        node_client = self.create_client(addr)
        try:
            yield node_client
        finally:
            await node_client.close()
