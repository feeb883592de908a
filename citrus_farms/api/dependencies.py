"""
Dependency injection for FastAPI.
"""
from typing import Annotated, Optional
import logging

from fastapi import Depends, Query, Request

from citrus_farms.config import Settings
from citrus_farms.infrastructure.memory_store import (
    InMemoryFarmRepository,
    JsonFileFarmRepository,
)
from citrus_farms.infrastructure.remote_api_client import RemoteFarmRepository
from citrus_farms.infrastructure.repository import FarmRepository
from citrus_farms.infrastructure.sql_repository import SqlFarmRepository
from citrus_farms.services.application.farm_service import FarmService
from citrus_farms.services.domain.farm_filter import (
    FilterCriteria,
    ServiceFilter,
    YesNoFilter,
)

logger = logging.getLogger(__name__)


def build_repository(config: Settings) -> FarmRepository:
    """
    Create the persistence gateway selected by configuration.

    Args:
        config: Application settings

    Returns:
        FarmRepository for the configured storage backend
    """
    logger.info(f"Using {config.storage_backend} storage backend")
    if config.storage_backend == "memory":
        return InMemoryFarmRepository()
    if config.storage_backend == "file":
        return JsonFileFarmRepository(config.data_file)
    if config.storage_backend == "remote":
        return RemoteFarmRepository(config=config)
    return SqlFarmRepository.from_url(config.database_url)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_repository(request: Request) -> FarmRepository:
    """
    Dependency factory for the application's repository.

    The repository is created on first use and shared by every request.
    """
    state = request.app.state
    if state.repository is None:
        state.repository = build_repository(state.settings)
    return state.repository


def get_farm_service(
    repository: Annotated[FarmRepository, Depends(get_repository)],
    config: Annotated[Settings, Depends(get_settings)],
) -> FarmService:
    """
    Dependency factory for FarmService.

    Args:
        repository: Persistence gateway (injected)
        config: Application settings (injected)

    Returns:
        FarmService instance
    """
    return FarmService(repository=repository, config=config)


def get_filter_criteria(
    search_term: Annotated[str, Query(description="Substring of name or contact")] = "",
    service_filter: ServiceFilter = ServiceFilter.ALL,
    support_filter: YesNoFilter = YesNoFilter.ALL,
    support_year_start: Optional[int] = None,
    support_year_end: Optional[int] = None,
    project_filter: Annotated[
        Optional[str],
        Query(description="Predefined project name, or the 'other' name"),
    ] = None,
    alternate_bearing_filter: YesNoFilter = YesNoFilter.ALL,
    alternate_bearing_year: Optional[int] = None,
) -> FilterCriteria:
    """Collect filter criteria from query parameters."""
    return FilterCriteria(
        search_term=search_term,
        service_filter=service_filter,
        support_filter=support_filter,
        support_year_start=support_year_start,
        support_year_end=support_year_end,
        project_filter=project_filter,
        alternate_bearing_filter=alternate_bearing_filter,
        alternate_bearing_year=alternate_bearing_year,
    )


# Type aliases for cleaner route signatures
FarmServiceDep = Annotated[FarmService, Depends(get_farm_service)]
FilterCriteriaDep = Annotated[FilterCriteria, Depends(get_filter_criteria)]
