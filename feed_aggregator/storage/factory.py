"""Builds the configured video store."""

import logging

from feed_aggregator.collector.error_handler import ConfigurationError
from feed_aggregator.config import StorageConfig
from feed_aggregator.storage.base import VideoStore
from feed_aggregator.storage.database import create_session_factory
from feed_aggregator.storage.memory import MemoryVideoStore
from feed_aggregator.storage.sqlalchemy_store import SQLAlchemyVideoStore

logger = logging.getLogger(__name__)


def create_store(config: StorageConfig) -> VideoStore:
    """
    Create the video store named by ``config.backend``.

    Raises:
        ConfigurationError: If the backend is unknown
    """
    if config.backend == "memory":
        logger.info("Using in-memory video store")
        return MemoryVideoStore(seed_demo_videos=config.seed_demo_videos)

    if config.backend == "sqlalchemy":
        logger.info("Using SQLAlchemy video store")
        return SQLAlchemyVideoStore(create_session_factory(config.url))

    raise ConfigurationError(f"Unknown storage backend: {config.backend!r}")
