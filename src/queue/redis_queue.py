# src/queue/redis_queue.py — v2
"""Redis-backed job queue (QUEUE_BACKEND=redis).

Requires 'redis' package: pip install redis.

Layout per logical queue ``{q}``:
    mp:queue:{q}:pending     LIST  message ids in FIFO order
    mp:queue:{q}:delayed     ZSET  id -> epoch when a retry becomes visible
    mp:queue:{q}:processing  ZSET  id -> epoch when the visibility lease ends
    mp:queue:{q}:expired     LIST  ids whose last attempt expired unsettled
    mp:queue:{q}:msg:{id}    HASH  body, attempts, receipt
    mp:queue:{q}:dead        LIST  dead-lettered ids

Every state change runs server side in one Lua script (receive, ack,
nack) or one MULTI/EXEC transaction (enqueue), so a crash or a lost
connection never leaves an id popped but not leased, or a hash without
its list entry.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from manuscript_pipeline.core.clock import Clock, SystemClock
from manuscript_pipeline.core.errors import QueueUnavailable
from manuscript_pipeline.core.models import QueueMessage
from manuscript_pipeline.queue.base_queue import BaseJobQueue, Delivery

logger = logging.getLogger(__name__)

# KEYS: pending, delayed, processing, expired
# ARGV: now, lease seconds, max attempts, new receipt, msg key prefix
# Returns {id, body, attempts, exhausted} or nil when idle.
_RECEIVE_LUA = """
local now = tonumber(ARGV[1])
local max_attempts = tonumber(ARGV[3])
local prefix = ARGV[5]
for _, id in ipairs(redis.call('ZRANGEBYSCORE', KEYS[2], '-inf', now)) do
  redis.call('ZREM', KEYS[2], id)
  redis.call('RPUSH', KEYS[1], id)
end
for _, id in ipairs(redis.call('ZRANGEBYSCORE', KEYS[3], '-inf', now)) do
  redis.call('ZREM', KEYS[3], id)
  redis.call('HSET', prefix .. id, 'receipt', '')
  if tonumber(redis.call('HGET', prefix .. id, 'attempts') or '0') >= max_attempts then
    redis.call('RPUSH', KEYS[4], id)
  else
    redis.call('RPUSH', KEYS[1], id)
  end
end
local exhausted = 1
local id = redis.call('LPOP', KEYS[4])
if not id then
  exhausted = 0
  id = redis.call('LPOP', KEYS[1])
  if not id then
    return nil
  end
  redis.call('HINCRBY', prefix .. id, 'attempts', 1)
end
redis.call('HSET', prefix .. id, 'receipt', ARGV[4])
redis.call('ZADD', KEYS[3], now + tonumber(ARGV[2]), id)
local fields = redis.call('HMGET', prefix .. id, 'body', 'attempts')
return {id, fields[1], fields[2], exhausted}
"""

# KEYS: msg hash, processing, target (dead list or delayed zset)
# ARGV: id, receipt, action (ack | dead | retry), retry score
# Returns 1 when settled, 0 for a stale receipt.
_SETTLE_LUA = """
if redis.call('HGET', KEYS[1], 'receipt') ~= ARGV[2] then
  return 0
end
if redis.call('ZREM', KEYS[2], ARGV[1]) == 0 then
  return 0
end
if ARGV[3] == 'ack' then
  redis.call('DEL', KEYS[1])
  return 1
end
redis.call('HSET', KEYS[1], 'receipt', '')
if ARGV[3] == 'dead' then
  redis.call('RPUSH', KEYS[3], ARGV[1])
else
  redis.call('ZADD', KEYS[3], ARGV[4], ARGV[1])
end
return 1
"""


class RedisJobQueue(BaseJobQueue):
    def __init__(
        self,
        redis_url: str,
        max_attempts: int = 5,
        visibility_timeout: int = 900,
        clock: Clock | None = None,
        client: Any = None,
        namespace: str = "mp:queue:",
    ) -> None:
        super().__init__(max_attempts, visibility_timeout)
        try:
            import redis.asyncio as aioredis
            from redis.exceptions import RedisError
        except ImportError as e:
            raise ImportError(
                "redis package required: pip install redis"
            ) from e
        self._client = client or aioredis.Redis.from_url(redis_url, decode_responses=True)
        self._errors: tuple[type[BaseException], ...] = (RedisError, OSError)
        self._clock = clock or SystemClock()
        self._ns = namespace
        self._receive_script = self._client.register_script(_RECEIVE_LUA)
        self._settle_script = self._client.register_script(_SETTLE_LUA)

    def _key(self, queue: str, part: str) -> str:
        return f"{self._ns}{queue}:{part}"

    def _msg_key(self, queue: str, message_id: str) -> str:
        return self._key(queue, f"msg:{message_id}")

    def _now(self) -> float:
        return self._clock.now().timestamp()

    async def enqueue(self, queue: str, message: QueueMessage) -> str:
        message_id = uuid.uuid4().hex
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.hset(
                    self._msg_key(queue, message_id),
                    mapping={"body": message.to_wire(), "attempts": 0, "receipt": ""},
                )
                pipe.rpush(self._key(queue, "pending"), message_id)
                await pipe.execute()
        except self._errors as e:
            raise QueueUnavailable(f"Could not enqueue job {message.report_id}") from e
        return message_id

    async def receive(self, queue: str) -> Delivery | None:
        now = self._clock.now()
        receipt = uuid.uuid4().hex
        try:
            row = await self._receive_script(
                keys=[
                    self._key(queue, "pending"),
                    self._key(queue, "delayed"),
                    self._key(queue, "processing"),
                    self._key(queue, "expired"),
                ],
                args=[
                    now.timestamp(),
                    self.visibility_timeout,
                    self.max_attempts,
                    receipt,
                    self._key(queue, "msg:"),
                ],
            )
        except self._errors as e:
            raise QueueUnavailable(f"Could not receive from {queue}") from e
        if row is None:
            return None

        message_id, body, attempts, exhausted = row
        attempts = int(attempts)
        exhausted = bool(int(exhausted))
        if exhausted:
            logger.warning("Message %s timed out on its last attempt", message_id)
        message = QueueMessage.from_wire(body).model_copy(update={"attempt": attempts})
        return Delivery(
            queue=queue,
            message_id=message_id,
            receipt=receipt,
            attempt=attempts,
            message=message,
            received_at=now,
            exhausted=exhausted,
        )

    async def _settle(self, delivery: Delivery, action: str, target: str, score: float = 0) -> bool:
        settled = await self._settle_script(
            keys=[
                self._msg_key(delivery.queue, delivery.message_id),
                self._key(delivery.queue, "processing"),
                target,
            ],
            args=[delivery.message_id, delivery.receipt, action, score],
        )
        return bool(int(settled))

    async def ack(self, delivery: Delivery) -> None:
        processing = self._key(delivery.queue, "processing")
        try:
            if not await self._settle(delivery, "ack", processing):
                logger.info("Ignoring stale ack for %s", delivery.message_id)
        except self._errors as e:
            raise QueueUnavailable(f"Could not ack {delivery.message_id}") from e

    async def nack(self, delivery: Delivery, retry_after: int = 0) -> bool:
        dead = delivery.attempt >= self.max_attempts
        try:
            if dead:
                settled = await self._settle(delivery, "dead", self._key(delivery.queue, "dead"))
            else:
                settled = await self._settle(
                    delivery, "retry", self._key(delivery.queue, "delayed"), self._now() + retry_after
                )
        except self._errors as e:
            raise QueueUnavailable(f"Could not nack {delivery.message_id}") from e
        if not settled:
            logger.info("Ignoring stale nack for %s", delivery.message_id)
            return False
        if dead:
            logger.warning(
                "Message %s dead-lettered after %d attempts", delivery.message_id, delivery.attempt
            )
        return dead

    async def dead_letters(self, queue: str) -> list[QueueMessage]:
        try:
            ids = await self._client.lrange(self._key(queue, "dead"), 0, -1)
            messages: list[QueueMessage] = []
            for message_id in ids:
                body, attempts = await self._client.hmget(
                    self._msg_key(queue, message_id), ["body", "attempts"]
                )
                if body is None:
                    continue
                messages.append(
                    QueueMessage.from_wire(body).model_copy(update={"attempt": int(attempts or 0)})
                )
            return messages
        except self._errors as e:
            raise QueueUnavailable(f"Could not read dead letters of {queue}") from e

    async def depth(self, queue: str) -> int:
        try:
            pending = await self._client.llen(self._key(queue, "pending"))
            delayed = await self._client.zcard(self._key(queue, "delayed"))
            expired = await self._client.llen(self._key(queue, "expired"))
        except self._errors as e:
            raise QueueUnavailable(f"Could not read depth of {queue}") from e
        return int(pending) + int(delayed) + int(expired)

    async def close(self) -> None:
        await self._client.aclose()
