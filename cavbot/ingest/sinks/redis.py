"""Redis event sink.

Pushes one JSON document per event onto a Redis list (``RPUSH``), where a
downstream aggregator drains it.  The client is a shared ``redis.asyncio``
connection pool, so concurrent requests need no extra locking.
"""

from __future__ import annotations

import json

import redis.asyncio as aioredis

from cavbot.models.events import AcceptedBatch


class RedisEventSink:
    """Queue accepted events on a Redis list."""

    def __init__(self, client: aioredis.Redis, key: str = "cavbot:events") -> None:
        self._client = client
        self._key = key

    @classmethod
    def from_url(cls, url: str, key: str = "cavbot:events") -> RedisEventSink:
        client = aioredis.from_url(
            url,
            decode_responses=False,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
        )
        return cls(client, key=key)

    async def write(self, batch: AcceptedBatch) -> None:
        docs = [json.dumps(doc, separators=(",", ":")) for doc in batch.event_documents()]
        if docs:
            await self._client.rpush(self._key, *docs)

    async def close(self) -> None:
        await self._client.aclose()
