"""Application composition root.

Wires settings, the DB pool and the taxonomy together for the bot runtime.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from psycopg_pool import AsyncConnectionPool

from src.config.settings import Settings
from src.db.pool import create_pool
from src.search.taxonomy import Taxonomy, load_taxonomy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class App:
    """Shared dependencies injected into handlers."""

    settings: Settings
    pool: AsyncConnectionPool
    taxonomy: Taxonomy

    async def start(self) -> None:
        await self.pool.open(wait=True)
        logger.info(
            "started default_mode=%s llm_enabled=%s categories=%d",
            self.settings.search_default_mode,
            self.settings.llm_enabled,
            len(self.taxonomy.categories),
        )

    async def stop(self) -> None:
        await self.pool.close()
        logger.info("stopped")


def create_app(settings: Settings) -> App:
    """Build the container; the taxonomy is loaded eagerly so a bad file fails at startup.

    The pool is not opened here; call `await app.start()`.
    """

    taxonomy = load_taxonomy(settings.taxonomy_path)
    pool = create_pool(settings.database_url, max_size=10)
    return App(settings=settings, pool=pool, taxonomy=taxonomy)
