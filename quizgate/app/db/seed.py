"""Simulated quiz results.

The percentile transform was calibrated against a population of synthetic
results with every dimension drawn uniformly from the possible score range.
"""

import random
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncEngine

from quizgate.app.core.logging import get_logger
from quizgate.app.core.utils import utcnow
from quizgate.app.db.async_session import get_async_session_maker, init_async_db
from quizgate.app.db.models import SimulatedTest
from quizgate.app.services.rankings import DIMENSIONS

logger = get_logger(__name__)

MIN_SCORE = 7
MAX_SCORE = 35


def generate_simulated_test(rng: random.Random) -> dict[str, int]:
    return {dim: rng.randint(MIN_SCORE, MAX_SCORE) for dim in DIMENSIONS}


async def seed_simulated_tests(
    engine: AsyncEngine,
    count: int = 1000,
    rng: Optional[random.Random] = None,
) -> int:
    """Replace the contents of ``simulated_tests`` with ``count`` random rows.

    Returns:
        Number of rows in the table afterwards.
    """
    rng = rng or random.Random()
    await init_async_db(engine)

    session_maker = get_async_session_maker(engine)
    async with session_maker() as session:
        result = await session.execute(delete(SimulatedTest))
        logger.info(f"Removed {result.rowcount} existing simulated tests")

        now = utcnow()
        session.add_all(
            SimulatedTest(created_at=now, **generate_simulated_test(rng))
            for _ in range(count)
        )
        await session.commit()

        total = await session.scalar(select(func.count()).select_from(SimulatedTest))

    logger.info(f"Inserted {count} simulated tests")
    return total
