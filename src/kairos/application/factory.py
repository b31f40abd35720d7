"""
Repository Factory
Centralizes the logic for selecting the storage adapter and wiring the service.
"""

from kairos.application.config import AppConfig
from kairos.application.scheduling.scheduler import Scheduler
from kairos.application.scheduling.service import ReviewSessionService
from kairos.domain.scheduling.ports import CardRepository, Clock
from kairos.infrastructure.adapters.clock import SystemClock
from kairos.infrastructure.adapters.memory_store import InMemoryCardRepository
from kairos.infrastructure.adapters.yaml_store import YamlCardRepository


def get_card_repository(config: AppConfig) -> CardRepository:
    """
    Returns the CardRepository implementation selected by config.
    """
    if config.backend == "memory":
        return InMemoryCardRepository()
    return YamlCardRepository(config.store_path)


def get_review_service(config: AppConfig, clock: Clock | None = None) -> ReviewSessionService:
    """
    Builds a ReviewSessionService from config.

    Raises:
        InvalidParameter: If the configured model parameters are invalid.
    """
    scheduler = Scheduler(config.to_parameters())
    return ReviewSessionService(
        cards=get_card_repository(config),
        clock=clock or SystemClock(),
        scheduler=scheduler,
    )
