# coin_simulator/tasks.py

import asyncio
import logging

from .config import BATCH_SAVE_INTERVAL_SECONDS, MONITOR_INTERVAL_SECONDS, TICK_INTERVAL_SECONDS
from .engine import MarketEngine

log = logging.getLogger(__name__)


async def simulation_loop(engine: MarketEngine, interval: float = TICK_INTERVAL_SECONDS):
    """Runs one market tick per interval. A failing tick is logged and the next one proceeds."""
    log.info(f"Starting simulation loop: {len(engine.coins)} coins, {len(engine.bots)} bots, every {interval}s")
    loop = asyncio.get_running_loop()
    try:
        while True:
            start_time = loop.time()
            try:
                await engine.tick()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                log.error(f"Market tick error: {e}", exc_info=True)

            elapsed = loop.time() - start_time
            if elapsed > interval:
                log.warning(f"Tick {engine.tick_count} took {elapsed:.3f}s (interval {interval}s)")
            await asyncio.sleep(max(0, interval - elapsed))
    except asyncio.CancelledError:
        log.info("Simulation loop cancelled.")
    finally:
        log.info("Simulation loop finished.")


async def batch_save_loop(engine: MarketEngine, interval: float = BATCH_SAVE_INTERVAL_SECONDS):
    """Drains the write-behind queues. A failing flush is logged and retried next cycle."""
    log.info(f"[Batch Save] Starting, flushing every {interval}s")
    try:
        while True:
            await asyncio.sleep(interval)
            try:
                written = await engine.flush_save_queues()
                if written:
                    log.debug(f"[Batch Save] Wrote {written} records")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                log.error(f"[Batch Save] Batch save error: {e}", exc_info=True)
    except asyncio.CancelledError:
        log.info("[Batch Save] Cancelled.")
    finally:
        log.info("[Batch Save] Stopped.")


async def monitor_tasks(tasks: list[asyncio.Task | None], interval: float = MONITOR_INTERVAL_SECONDS):
    """Periodically checks the status of essential running tasks."""
    log.info("[Monitor] Starting task monitor...")
    try:
        while True:
            await asyncio.sleep(interval)
            active_tasks = [task for task in tasks if task and not task.done()]
            if not active_tasks:
                log.info("[Monitor] All monitored essential tasks appear done. Exiting monitor.")
                break
            task_names = [t.get_name() for t in active_tasks]
            log.debug(f"[Monitor] {len(active_tasks)} essential tasks still running: {task_names}")
    except asyncio.CancelledError:
        log.info("[Monitor] Task monitor cancelled.")
    except Exception as e:
        log.error(f"[Monitor] Error in monitor loop: {e}", exc_info=True)
    finally:
        log.info("[Monitor] Task monitor stopped.")
