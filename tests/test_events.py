# tests/test_events.py
import random

import pytest

from coin_simulator.coin import Coin
from coin_simulator.events import MarketEventsSystem, event_parameters
from coin_simulator.price_history import PriceHistoryManager


@pytest.fixture
def coins(clock):
    return {
        "RCOIN": Coin("RCOIN", "RealCoin", 10.0, 0.015, 5000.0, clock=clock),
        "TOAST": Coin("TOAST", "ToastCoin", 2.0, 0.025, 1000.0, clock=clock),
    }


@pytest.fixture
def events(broadcaster, clock):
    return MarketEventsSystem(broadcaster, clock)


@pytest.fixture
def no_noise(monkeypatch):
    monkeypatch.setattr(random, "random", lambda: 0.5)


@pytest.mark.parametrize("event_type,severity,expected", [
    ('flash_crash', 'extreme', (0.4, 5.0, 120.0)),
    ('flash_crash', 'minor', (0.9, 2.0, 60.0)),
    ('pump', 'major', (2.2, 2.5, 120.0)),
    ('whale_dump', 'minor', (0.7, 3.0, 60.0)),
    ('rug_pull', 'minor', (0.1, 10.0, 300.0)),
    ('liquidity_crisis', 'major', (0.6, 4.0, 240.0)),
])
def test_event_parameters(event_type, severity, expected):
    price, vol, duration, message = event_parameters(event_type, severity, "ToastCoin")
    assert (price, vol, duration) == expected
    assert message


def test_unknown_event_type_raises():
    with pytest.raises(ValueError):
        event_parameters('meteor', 'major', "ToastCoin")


@pytest.mark.asyncio
async def test_create_event_announces(events, coins, broadcaster, clock):
    event = await events.create_event('flash_crash', 'extreme', 'TOAST', coins)

    assert event.id == "event-0"
    assert event.timestamp == clock.now()
    assert "ToastCoin" in event.message
    assert "60%" in event.message
    assert events.get_active_events() == [event]

    [message] = broadcaster.of_type("market_event")
    assert message["event"]["id"] == "event-0"
    assert message["event"]["targetCoin"] == "TOAST"

    second = await events.create_event('pump', 'minor', 'RCOIN', coins)
    assert second.id == "event-1"


@pytest.mark.asyncio
async def test_rug_pull_shock_lands_once(events, coins, clock, no_noise):
    await events.create_event('rug_pull', 'extreme', 'RCOIN', coins)

    await events.apply_event_effects(coins)
    assert coins["RCOIN"].price == pytest.approx(1.0)

    clock.advance(1)
    await events.apply_event_effects(coins)
    assert coins["RCOIN"].price == pytest.approx(1.0)
    assert coins["TOAST"].price == 2.0


@pytest.mark.asyncio
async def test_late_first_application_skips_the_shock(events, coins, clock, no_noise):
    await events.create_event('rug_pull', 'extreme', 'RCOIN', coins)
    clock.advance(5)
    await events.apply_event_effects(coins)
    assert coins["RCOIN"].price == 10.0


@pytest.mark.asyncio
async def test_event_expires_after_duration(events, coins, clock, broadcaster, no_noise):
    event = await events.create_event('rug_pull', 'extreme', 'RCOIN', coins)

    clock.advance(300)
    await events.apply_event_effects(coins)
    assert event.id in events.active_events

    clock.advance(1)
    await events.apply_event_effects(coins)
    assert events.get_active_events() == []
    assert event.active is False
    assert broadcaster.of_type("market_event_ended") == [{"type": "market_event_ended", "eventId": event.id}]


@pytest.mark.asyncio
async def test_correlation_break_hits_every_coin(events, coins, no_noise):
    event = await events.create_event('correlation_break', 'major', 'RCOIN', coins)
    assert event.target_coin is None
    assert event.price_multiplier == 0.8

    await events.apply_event_effects(coins)

    assert coins["RCOIN"].price == pytest.approx(10.0 * 0.94)
    assert coins["TOAST"].price == pytest.approx(2.0 * 0.94)


@pytest.mark.asyncio
async def test_effects_are_recorded(events, coins, clock, no_noise):
    history = PriceHistoryManager(clock)
    await events.create_event('pump', 'extreme', 'TOAST', coins)
    await events.apply_event_effects(coins, history)

    assert coins["TOAST"].price == pytest.approx(6.0)
    assert [p.price for p in history.get_points("TOAST")] == [coins["TOAST"].price]


@pytest.mark.asyncio
async def test_random_event_probability(events, coins, broadcaster, no_noise):
    assert await events.generate_random_event(coins, probability=0.0) is None
    assert await events.generate_random_event({}, probability=1.0) is None
    assert len(broadcaster.messages) == 0

    event = await events.generate_random_event(coins, probability=1.0)
    assert event is not None
    assert event.id in events.active_events
    assert len(broadcaster.of_type("market_event")) == 1