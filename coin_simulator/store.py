# coin_simulator/store.py

import json
import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, Generic, List, Optional, Type, TypeVar

import redis.asyncio as redis
from pydantic import BaseModel, ValidationError
from redis.exceptions import RedisError

log = logging.getLogger(__name__)

ChangeCallback = Callable[[str, str, Optional[dict]], None]
M = TypeVar("M", bound=BaseModel)


class StoreError(Exception):
    """A single store call failed (backend error or undecodable record)."""


class RecordStore(ABC):
    """Key-value record store addressed by (collection, id).

    Values are JSON-compatible dicts. Change callbacks receive
    (collection, id, value) after every set, and value=None after a delete.
    """

    def __init__(self):
        self._callbacks: List[ChangeCallback] = []

    def on_change(self, callback: ChangeCallback):
        self._callbacks.append(callback)

    def _notify(self, collection: str, record_id: str, value: Optional[dict]):
        for callback in self._callbacks:
            try:
                callback(collection, record_id, value)
            except Exception as e:
                log.error(f"Change callback failed for {collection}/{record_id}: {e}", exc_info=True)

    @abstractmethod
    async def get(self, collection: str, record_id: str) -> Optional[dict]: ...

    @abstractmethod
    async def set(self, collection: str, record_id: str, value: dict): ...

    @abstractmethod
    async def delete(self, collection: str, record_id: str) -> bool: ...

    @abstractmethod
    async def all_keys(self, collection: str) -> List[str]: ...


class MemoryStore(RecordStore):
    """In-process store. Values are copied through JSON so callers never share state."""

    def __init__(self):
        super().__init__()
        self._data: Dict[str, Dict[str, str]] = {}

    async def get(self, collection: str, record_id: str) -> Optional[dict]:
        raw = self._data.get(collection, {}).get(record_id)
        return json.loads(raw) if raw is not None else None

    async def set(self, collection: str, record_id: str, value: dict):
        try:
            raw = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StoreError(f"Cannot encode {collection}/{record_id}: {e}") from e
        self._data.setdefault(collection, {})[record_id] = raw
        self._notify(collection, record_id, value)

    async def delete(self, collection: str, record_id: str) -> bool:
        removed = self._data.get(collection, {}).pop(record_id, None) is not None
        if removed:
            self._notify(collection, record_id, None)
        return removed

    async def all_keys(self, collection: str) -> List[str]:
        return list(self._data.get(collection, {}).keys())


class RedisStore(RecordStore):
    """One Redis hash per collection: key `{prefix}:{collection}`, field = id, value = JSON."""

    def __init__(self, client: redis.Redis, prefix: str):
        super().__init__()
        self.client = client
        self.prefix = prefix

    def _key(self, collection: str) -> str:
        return f"{self.prefix}:{collection}"

    async def get(self, collection: str, record_id: str) -> Optional[dict]:
        try:
            raw = await self.client.hget(self._key(collection), record_id)
        except RedisError as e:
            raise StoreError(f"Redis HGET {collection}/{record_id} failed: {e}") from e
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise StoreError(f"Corrupt JSON in {collection}/{record_id}: {e}") from e

    async def set(self, collection: str, record_id: str, value: dict):
        try:
            await self.client.hset(self._key(collection), record_id, json.dumps(value))
        except (TypeError, ValueError) as e:
            raise StoreError(f"Cannot encode {collection}/{record_id}: {e}") from e
        except RedisError as e:
            raise StoreError(f"Redis HSET {collection}/{record_id} failed: {e}") from e
        self._notify(collection, record_id, value)

    async def delete(self, collection: str, record_id: str) -> bool:
        try:
            removed = await self.client.hdel(self._key(collection), record_id)
        except RedisError as e:
            raise StoreError(f"Redis HDEL {collection}/{record_id} failed: {e}") from e
        if removed:
            self._notify(collection, record_id, None)
        return bool(removed)

    async def all_keys(self, collection: str) -> List[str]:
        try:
            keys = await self.client.hkeys(self._key(collection))
        except RedisError as e:
            raise StoreError(f"Redis HKEYS {collection} failed: {e}") from e
        return [k.decode() if isinstance(k, bytes) else k for k in keys]


class Collection(Generic[M]):
    """Typed view of one store collection; records go in and out as pydantic models."""

    def __init__(self, store: RecordStore, name: str, model: Type[M]):
        self.store = store
        self.name = name
        self.model = model

    async def get(self, record_id: str) -> Optional[M]:
        raw = await self.store.get(self.name, record_id)
        if raw is None:
            return None
        try:
            return self.model.model_validate(raw)
        except ValidationError as e:
            raise StoreError(f"Invalid {self.name} record {record_id}: {e}") from e

    async def set(self, record_id: str, record: M):
        await self.store.set(self.name, record_id, record.model_dump(mode="json", by_alias=True))

    async def delete(self, record_id: str) -> bool:
        return await self.store.delete(self.name, record_id)

    async def keys(self) -> List[str]:
        return await self.store.all_keys(self.name)
