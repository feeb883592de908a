"""
Infrastructure layer: Persistence gateway contract for farm records.

Every backend (in-memory, JSON file, relational, remote API) implements the
same upsert/delete/replace semantics so the application layer can swap them
through configuration.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional
import math

from citrus_farms.domain.models import Farm


@dataclass
class FarmPage:
    """One page of farms plus the total page count."""
    farms: list[Farm] = field(default_factory=list)
    total_pages: int = 0


class FarmRepository(ABC):
    """
    Gateway to a backing store of farm records.

    Semantics shared by all implementations:
    - save is an upsert; the submitted farm replaces the stored one whole,
      including every plot and child collection (last write wins)
    - delete is idempotent and cascades to all owned records
    - replace_all installs the new set completely or leaves the store as it was
    """

    @abstractmethod
    def load_all(
        self,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
    ) -> FarmPage:
        """
        Load farms, optionally one page at a time.

        Args:
            page: 1-based page number; None loads every farm
            page_size: Farms per page (required when page is given)

        Returns:
            FarmPage; paginated pages are sorted by name ascending
        """

    @abstractmethod
    def get(self, farm_id: str) -> Farm:
        """
        Load one farm.

        Raises:
            FarmNotFoundError: If no farm has this id
        """

    @abstractmethod
    def save(self, farm: Farm) -> Farm:
        """Insert the farm, or replace the stored farm with the same id."""

    @abstractmethod
    def insert(self, farm: Farm) -> Farm:
        """
        Insert a farm whose id must be new.

        Raises:
            DuplicateFarmError: If the id is already stored
        """

    @abstractmethod
    def delete(self, farm_id: str) -> None:
        """Delete a farm and everything it owns; unknown ids are ignored."""

    @abstractmethod
    def replace_all(self, farms: list[Farm]) -> None:
        """Atomically discard every stored farm and install the given set."""

    def close(self) -> None:
        """Release connections or clients held by the repository."""


def count_pages(total: int, page_size: int) -> int:
    """
    Number of pages needed to show all records.

    Args:
        total: Record count
        page_size: Records per page

    Returns:
        Page count (0 for an empty store)
    """
    if total <= 0:
        return 0
    return math.ceil(total / page_size)


def paginate(farms: list[Farm], page: Optional[int], page_size: Optional[int]) -> FarmPage:
    """
    Slice an in-memory collection the way the relational backend pages.

    Args:
        farms: Every stored farm
        page: 1-based page number; None returns all farms in stored order
        page_size: Farms per page

    Returns:
        FarmPage for the requested page
    """
    if page is None:
        return FarmPage(farms=list(farms), total_pages=1 if farms else 0)

    size = validate_page_size(page_size)
    ordered = sorted(farms, key=lambda farm: (farm.name, farm.id))
    offset = (max(page, 1) - 1) * size
    return FarmPage(
        farms=ordered[offset:offset + size],
        total_pages=count_pages(len(ordered), size),
    )


def validate_page_size(page_size: Optional[int]) -> int:
    if page_size is None or page_size < 1:
        raise ValueError("page_size must be a positive integer when paginating")
    return page_size
