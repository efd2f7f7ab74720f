"""
Mark past confirmed bookings as completed.

Meant to be run by an external scheduler (cron, Kubernetes CronJob) once a
day shortly after midnight in BOOKING_TIMEZONE:

    python run_booking_sweep.py
"""

import asyncio

from app.core.logging import setup_logging, get_logger
from app.db.session import AsyncSessionLocal, engine
from app.services.lifecycle_service import complete_past_bookings


async def main() -> int:
    setup_logging()
    logger = get_logger("booking_sweep")

    async with AsyncSessionLocal() as session:
        completed = await complete_past_bookings(session)

    await engine.dispose()
    logger.info("booking_sweep_finished", completed=completed)
    return completed


if __name__ == "__main__":
    asyncio.run(main())
