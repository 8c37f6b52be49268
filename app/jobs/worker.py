"""
Standalone messaging worker: runs the publish and cleanup loops without the HTTP API.

    python -m app.jobs.worker

Run exactly one worker per database, or set SCHEDULER_ENABLED=false on the API replicas,
so each job has a single runner.
"""
import asyncio
import logging
from typing import Optional

from app.core.container import build_messaging
from app.core.db import init_db, close_db

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
log = logging.getLogger("messaging_worker")


async def run_worker(stop: Optional[asyncio.Event] = None):
    """Main loop for the worker service. Returns once 'stop' is set."""
    await init_db()
    messaging = build_messaging()
    stop = stop or asyncio.Event()
    try:
        await messaging.scheduler.start()
        log.info("--- Messaging Worker Started ---")
        await stop.wait()
    finally:
        await messaging.scheduler.stop()
        await close_db()


if __name__ == "__main__":
    try:
        asyncio.run(run_worker())
    except KeyboardInterrupt:
        print("Messaging worker stopped.")
