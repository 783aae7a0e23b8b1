"""
Backend Factory
Centralizes the logic for selecting the storage and notification adapters.
"""

import logging

from forgetmenot.application.config import AppConfig
from forgetmenot.domain.reminders.ports import Notifier
from forgetmenot.infrastructure.notifications.log_notifier import LogNotifier
from forgetmenot.infrastructure.persistence.database import create_engine, init_database
from forgetmenot.infrastructure.persistence.memory_repository import InMemoryNoteRepository
from forgetmenot.infrastructure.persistence.sqlalchemy_repository import (
    SqlAlchemyNoteRepository,
)

logger = logging.getLogger(__name__)


async def get_note_repository(
    config: AppConfig,
) -> SqlAlchemyNoteRepository | InMemoryNoteRepository:
    """
    Returns the repository implementation selected by `config.backend`.

    Both implementations also act as the reminder SubscriptionStore.
    """
    if config.backend == "memory":
        logger.info("Backend: memory")
        return InMemoryNoteRepository()

    logger.info(f"Backend: {config.database_url}")
    engine = create_engine(config.database_url)
    await init_database(engine)
    return SqlAlchemyNoteRepository(engine)


def get_notifier(config: AppConfig) -> Notifier:
    """Returns the reminder delivery adapter."""
    return LogNotifier(frontend_url=config.frontend_url)
