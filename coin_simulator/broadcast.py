# coin_simulator/broadcast.py

import json
import logging
from abc import ABC, abstractmethod
from collections import deque
from typing import Deque

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError

log = logging.getLogger(__name__)


class Broadcaster(ABC):
    """Fire-and-forget fan-out of JSON notifications to every listener."""

    @abstractmethod
    async def broadcast_to_all_rooms(self, message: dict): ...


class RedisBroadcaster(Broadcaster):
    def __init__(self, client: redis.Redis, channel: str):
        self.client = client
        self.channel = channel

    async def broadcast_to_all_rooms(self, message: dict):
        try:
            payload = json.dumps(message)
            await self.client.publish(self.channel, payload)
            log.debug(f"Published {message.get('type')} to {self.channel}")
        except RedisConnectionError:
            log.warning(f"Redis connection error publishing {message.get('type')} to {self.channel}")
        except Exception as e:
            log.error(f"Error publishing {message.get('type')} to {self.channel}: {e}", exc_info=True)


class LocalBroadcaster(Broadcaster):
    """Keeps the most recent messages in memory. Used when Redis is unavailable and in tests."""

    def __init__(self, maxlen: int = 1000):
        self.messages: Deque[dict] = deque(maxlen=maxlen)

    async def broadcast_to_all_rooms(self, message: dict):
        self.messages.append(message)

    def of_type(self, message_type: str) -> list[dict]:
        return [m for m in self.messages if m.get("type") == message_type]
