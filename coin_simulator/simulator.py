# coin_simulator/simulator.py (Main Entry Point)

import asyncio
import logging

import redis.asyncio as redis

from . import config
from .broadcast import Broadcaster, LocalBroadcaster, RedisBroadcaster
from .engine import MarketEngine
from .store import MemoryStore, RecordStore, RedisStore
from .tasks import batch_save_loop, monitor_tasks, simulation_loop

logging.basicConfig(level=config.LOG_LEVEL, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
log = logging.getLogger("CoinSimulatorMain")


async def connect_redis() -> redis.Redis | None:
    try:
        log.info(f"Connecting to Redis at {config.REDIS_URL}...")
        client = redis.from_url(config.REDIS_URL, decode_responses=True)
        await client.ping()
        log.info("Redis connected.")
        return client
    except Exception as e:
        log.error(f"FAILED to connect to Redis: {e}")
        return None


async def main():
    log.info("Initializing Coin Simulator...")
    redis_client = await connect_redis()

    store: RecordStore
    broadcaster: Broadcaster
    if redis_client:
        store = RedisStore(redis_client, config.STORE_KEY_PREFIX)
        broadcaster = RedisBroadcaster(redis_client, config.MARKET_BROADCAST_CHANNEL)
    else:
        log.warning("Redis unavailable. Using in-memory store and broadcaster; state will not survive restart.")
        store = MemoryStore()
        broadcaster = LocalBroadcaster()

    engine = MarketEngine(store, broadcaster)
    simulation_task, save_task, monitor_task = None, None, None
    tasks_to_await: list[asyncio.Task] = []

    try:
        await engine.init()
        log.info(f"Market ready: {len(engine.coins)} coins, {len(engine.bots)} bots.")

        simulation_task = asyncio.create_task(simulation_loop(engine), name="SimulationLoop")
        save_task = asyncio.create_task(batch_save_loop(engine), name="BatchSaveLoop")
        tasks_to_await = [simulation_task, save_task]
        monitor_task = asyncio.create_task(monitor_tasks(tasks_to_await), name="MonitorTasks")

        log.info("Running main event loop - waiting for tasks to complete...")
        done, pending = await asyncio.wait(tasks_to_await, return_when=asyncio.FIRST_COMPLETED)
        log.warning(f"An essential task completed or failed. Initiating shutdown. Done: {len(done)}, Pending: {len(pending)}")
        for task in done:
            try:
                task.result()
                log.info(f"Task {task.get_name()} completed normally.")
            except asyncio.CancelledError:
                log.info(f"Task {task.get_name()} was cancelled.")
            except Exception as e:
                log.error(f"Task {task.get_name()} failed with exception: {e}", exc_info=True)

    except asyncio.CancelledError:
        log.info("Main execution task cancelled.")
    except Exception as e:
        log.error(f"Unhandled error during main execution: {e}", exc_info=True)
    finally:
        log.info("Initiating graceful shutdown...")
        all_tasks = [t for t in tasks_to_await + [monitor_task] if t]
        for task in all_tasks:
            if not task.done():
                task.cancel()
        try:
            await asyncio.wait_for(asyncio.gather(*all_tasks, return_exceptions=True), timeout=5.0)
            log.info("All tasks cancelled or finished.")
        except asyncio.TimeoutError:
            log.warning("Timeout waiting for tasks to cancel during shutdown.")

        if engine.state == 'running':
            try:
                await engine.shutdown()
            except Exception as e:
                log.error(f"Error saving market state on shutdown: {e}", exc_info=True)

        if redis_client:
            try:
                await redis_client.aclose()
                log.debug("Closed Redis client.")
            except Exception as e:
                log.error(f"Error closing Redis client: {e}")

        log.info("Coin Simulator finished.")


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        log.info("Simulator stopped by user (KeyboardInterrupt).")
    except Exception as e:
        log.critical(f"Unhandled exception at top level: {e}", exc_info=True)


if __name__ == "__main__":
    run()
