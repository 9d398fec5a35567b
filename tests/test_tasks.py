# tests/test_tasks.py
import asyncio

import pytest

from coin_simulator.tasks import batch_save_loop, monitor_tasks, simulation_loop


@pytest.mark.asyncio
async def test_simulation_loop_survives_tick_errors(engine, monkeypatch):
    real_tick = engine.tick
    calls = []

    async def flaky_tick():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("bad tick")
        await real_tick()

    monkeypatch.setattr(engine, "tick", flaky_tick)
    task = asyncio.create_task(simulation_loop(engine, interval=0.01))
    await asyncio.sleep(0.1)
    task.cancel()
    await task

    assert len(calls) > 1
    assert engine.tick_count == len(calls) - 1


@pytest.mark.asyncio
async def test_batch_save_loop_flushes_queues(engine):
    engine.queue_coin_save("TOAST")
    task = asyncio.create_task(batch_save_loop(engine, interval=0.01))
    await asyncio.sleep(0.05)
    task.cancel()
    await task

    assert engine.coin_save_queue == set()
    assert await engine.coins_db.get("TOAST") is not None


@pytest.mark.asyncio
async def test_monitor_exits_when_tasks_finish():
    done = asyncio.create_task(asyncio.sleep(0))
    await done
    await asyncio.wait_for(monitor_tasks([done, None], interval=0.01), timeout=1.0)
