"""
Redis Pub/Sub 백플레인

서버 프로세스가 여러 개일 때 방이 프로세스를 넘나들 수 있도록,
각 프로세스의 브로드캐스트를 Redis 채널로 발행하고 다른 프로세스가 받은 프레임을
자기 로컬 세션에만 전달한다. Pub/Sub은 fire-and-forget이므로 전달 보장 수준은
로컬 팬아웃과 같다 (최대 한 번).

채널: <backplane_channel_prefix>:fanout
"""

import asyncio
import json
import logging
import uuid
from typing import Any, Awaitable, Callable, Dict, Optional

import redis.asyncio as aioredis

from app.core.config import settings
from app.database.redis import get_redis

logger = logging.getLogger(__name__)


class RedisBackplane:
    """프로세스 간 방 팬아웃"""

    def __init__(
        self,
        manager,
        redis_factory: Callable[[], Awaitable[aioredis.Redis]] = get_redis,
        channel: Optional[str] = None,
        queue_size: int = 10000,
    ):
        self.manager = manager
        self.origin = uuid.uuid4().hex
        self.channel = channel or f"{settings.backplane_channel_prefix}:fanout"
        self._redis_factory = redis_factory
        self._outgoing: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._publisher: Optional[asyncio.Task] = None
        self._listener: Optional[asyncio.Task] = None
        self._pubsub = None
        self.running = False

    async def start(self):
        """구독 시작 및 매니저에 연결"""
        if self.running:
            logger.warning("Backplane is already running")
            return

        redis = await self._redis_factory()
        self._pubsub = redis.pubsub()
        await self._pubsub.subscribe(self.channel)

        self.running = True
        self._publisher = asyncio.create_task(self._publish_loop(redis))
        self._listener = asyncio.create_task(self._listen_loop())
        self.manager.backplane = self
        logger.info(f"Backplane started on channel {self.channel} (origin {self.origin})")

    async def stop(self):
        """구독 해제"""
        self.running = False
        if self.manager.backplane is self:
            self.manager.backplane = None

        for task in (self._publisher, self._listener):
            if task:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        if self._pubsub is not None:
            try:
                await self._pubsub.unsubscribe(self.channel)
                await self._pubsub.aclose()
            except Exception as e:
                logger.error(f"Error closing backplane pubsub: {e}")
            self._pubsub = None
        logger.info("Backplane stopped")

    def publish(self, room: str, frame: Dict[str, Any]):
        """브로드캐스트 프레임을 발행 큐에 적재 (동기, 순서 유지)"""
        if not self.running:
            return
        try:
            self._outgoing.put_nowait({"origin": self.origin, "room": room, "frame": frame})
        except asyncio.QueueFull:
            logger.warning(f"Backplane queue full, dropping {frame.get('event')} for {room}")

    async def _publish_loop(self, redis: aioredis.Redis):
        while True:
            envelope = await self._outgoing.get()
            try:
                await redis.publish(self.channel, json.dumps(envelope))
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Failed to publish to backplane: {e}")

    async def _listen_loop(self):
        try:
            async for message in self._pubsub.listen():
                if message.get("type") != "message":
                    continue
                self.handle_message(message.get("data"))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Backplane listener stopped: {e}")

    def handle_message(self, raw: Any) -> int:
        """다른 프로세스가 발행한 프레임을 로컬 세션에 전달"""
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        try:
            envelope = json.loads(raw)
            origin = envelope["origin"]
            room = envelope["room"]
            frame = envelope["frame"]
        except (TypeError, ValueError, KeyError) as e:
            logger.warning(f"Ignoring malformed backplane message: {e}")
            return 0

        if origin == self.origin:
            return 0
        return self.manager.deliver_local(room, frame)
