"""
Service Factory
Centralizes wiring of the collection store and the study service.
"""

import logging

from spacedeck.application.config import AppConfig
from spacedeck.application.study_service import StudyService
from spacedeck.domain.ports import CollectionStore
from spacedeck.infrastructure.stores.json_file import JsonCollectionStore

logger = logging.getLogger(__name__)


def get_collection_store(config: AppConfig) -> CollectionStore:
    """
    Returns the CollectionStore implementation for the configured collection.
    """
    logger.debug(f"Collection: {config.collection_path}")
    return JsonCollectionStore(config.collection_path)


def get_study_service(config: AppConfig, store: CollectionStore | None = None) -> StudyService:
    return StudyService(
        store=store or get_collection_store(config),
        config=config.scheduler_config(),
    )
