# tests/test_store.py
import json

import pytest

from coin_simulator.broadcast import LocalBroadcaster, RedisBroadcaster
from coin_simulator.models import Trade
from coin_simulator.store import Collection, MemoryStore, RedisStore, StoreError


class TestMemoryStore:
    @pytest.mark.asyncio
    async def test_set_get_delete(self):
        store = MemoryStore()
        await store.set("coins", "RCOIN", {"price": 1.0})

        assert await store.get("coins", "RCOIN") == {"price": 1.0}
        assert await store.get("coins", "NOPE") is None
        assert await store.all_keys("coins") == ["RCOIN"]
        assert await store.all_keys("bots") == []

        assert await store.delete("coins", "RCOIN") is True
        assert await store.delete("coins", "RCOIN") is False
        assert await store.get("coins", "RCOIN") is None

    @pytest.mark.asyncio
    async def test_values_are_copied(self):
        store = MemoryStore()
        value = {"holdings": {"RCOIN": 1}}
        await store.set("portfolios", "alice", value)
        value["holdings"]["RCOIN"] = 99

        assert await store.get("portfolios", "alice") == {"holdings": {"RCOIN": 1}}

    @pytest.mark.asyncio
    async def test_unencodable_value_raises(self):
        with pytest.raises(StoreError):
            await MemoryStore().set("coins", "RCOIN", {"bad": object()})

    @pytest.mark.asyncio
    async def test_change_callbacks(self):
        store = MemoryStore()
        seen = []
        store.on_change(lambda collection, record_id, value: seen.append((collection, record_id, value)))
        store.on_change(lambda *args: 1 / 0)

        await store.set("coins", "RCOIN", {"price": 2.0})
        await store.delete("coins", "RCOIN")
        await store.delete("coins", "RCOIN")

        assert seen == [("coins", "RCOIN", {"price": 2.0}), ("coins", "RCOIN", None)]


class TestRedisStore:
    @pytest.mark.asyncio
    async def test_uses_one_hash_per_collection(self, fake_redis):
        store = RedisStore(fake_redis, "coinsim")
        await store.set("coins", "RCOIN", {"price": 1.0})

        assert json.loads(fake_redis.hashes["coinsim:coins"]["RCOIN"]) == {"price": 1.0}
        assert await store.get("coins", "RCOIN") == {"price": 1.0}
        assert await store.all_keys("coins") == ["RCOIN"]
        assert await store.delete("coins", "RCOIN") is True
        assert await store.delete("coins", "RCOIN") is False

    @pytest.mark.asyncio
    async def test_backend_errors_become_store_errors(self, fake_redis):
        store = RedisStore(fake_redis, "coinsim")
        fake_redis.fail = True

        with pytest.raises(StoreError):
            await store.get("coins", "RCOIN")
        with pytest.raises(StoreError):
            await store.set("coins", "RCOIN", {"price": 1.0})
        with pytest.raises(StoreError):
            await store.all_keys("coins")

    @pytest.mark.asyncio
    async def test_corrupt_json_raises(self, fake_redis):
        fake_redis.hashes["coinsim:coins"] = {"RCOIN": "{not json"}
        with pytest.raises(StoreError):
            await RedisStore(fake_redis, "coinsim").get("coins", "RCOIN")

    @pytest.mark.asyncio
    async def test_bytes_keys_are_decoded(self, fake_redis):
        fake_redis.hashes["coinsim:bots"] = {b"bot-a-1": "{}"}
        assert await RedisStore(fake_redis, "coinsim").all_keys("bots") == ["bot-a-1"]


class TestCollection:
    @pytest.mark.asyncio
    async def test_records_use_camel_case_keys(self, clock):
        store = MemoryStore()
        trades = Collection(store, "trades", Trade)
        trade = Trade(id="trade-0", coin_id="RCOIN", price=1.5, amount=2.0,
                      buyer_id="alice", seller_id="market", timestamp=clock.now())

        await trades.set(trade.id, trade)

        raw = await store.get("trades", "trade-0")
        assert raw["coinId"] == "RCOIN"
        assert raw["buyerId"] == "alice"
        assert await trades.get("trade-0") == trade
        assert await trades.keys() == ["trade-0"]
        assert await trades.delete("trade-0") is True

    @pytest.mark.asyncio
    async def test_invalid_record_raises(self):
        store = MemoryStore()
        await store.set("trades", "trade-0", {"id": "trade-0", "price": "lots"})
        with pytest.raises(StoreError):
            await Collection(store, "trades", Trade).get("trade-0")


class TestBroadcasters:
    @pytest.mark.asyncio
    async def test_redis_broadcaster_publishes_json(self, fake_redis):
        await RedisBroadcaster(fake_redis, "market:broadcast").broadcast_to_all_rooms({"type": "price_update"})
        channel, payload = fake_redis.published[0]
        assert channel == "market:broadcast"
        assert json.loads(payload) == {"type": "price_update"}

    @pytest.mark.asyncio
    async def test_redis_broadcaster_swallows_connection_errors(self, fake_redis):
        fake_redis.fail = True
        await RedisBroadcaster(fake_redis, "market:broadcast").broadcast_to_all_rooms({"type": "trade"})
        assert fake_redis.published == []

    @pytest.mark.asyncio
    async def test_local_broadcaster_filters_by_type(self):
        broadcaster = LocalBroadcaster(maxlen=2)
        for kind in ["trade", "price_update", "trade"]:
            await broadcaster.broadcast_to_all_rooms({"type": kind})
        assert len(broadcaster.messages) == 2
        assert broadcaster.of_type("trade") == [{"type": "trade"}]
