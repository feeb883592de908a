"""
Application service: Orchestration layer for farm record operations.
"""
from datetime import date
from typing import Any, Optional, Tuple
import json
import logging

from citrus_farms.config import Settings, settings
from citrus_farms.domain.errors import FarmValidationError
from citrus_farms.domain.models import Farm, dump_farms
from citrus_farms.infrastructure.repository import FarmPage, FarmRepository
from citrus_farms.services.domain.farm_filter import FilterCriteria, filter_farms
from citrus_farms.services.domain.report_builder import (
    build_contacts_report,
    build_report,
    report_filename,
    workbook_to_bytes,
)
from citrus_farms.services.domain.schema_migration import normalize, normalize_record
from citrus_farms.utils.coercion import as_str

logger = logging.getLogger(__name__)

REPORT_LABEL = "farm_report"
CONTACTS_LABEL = "farm_contacts"


class FarmService:
    """
    Application service for farm records.

    Coordinates the persistence gateway with the migration, filtering and
    report domain services. No business rules live here.
    """

    def __init__(
        self,
        repository: FarmRepository,
        config: Optional[Settings] = None,
    ):
        """
        Initialize the service with dependencies.

        Args:
            repository: Persistence gateway for farm records
            config: Settings for paging, search and export options
        """
        self.repository = repository
        self.config = config or settings

    def list_farms(
        self,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
    ) -> FarmPage:
        """
        List farms, one page at a time when a page is given.

        Args:
            page: 1-based page number; None lists every farm
            page_size: Farms per page, capped at max_page_size

        Returns:
            FarmPage with the farms and the total page count
        """
        if page is None:
            return self.repository.load_all()
        if page < 1:
            raise FarmValidationError("page must be 1 or greater")

        size = page_size or self.config.default_page_size
        if size < 1:
            raise FarmValidationError("limit must be 1 or greater")
        size = min(size, self.config.max_page_size)
        return self.repository.load_all(page=page, page_size=size)

    def get_farm(self, farm_id: str) -> Farm:
        return self.repository.get(farm_id)

    def search_farms(self, criteria: FilterCriteria) -> list[Farm]:
        """
        Load every farm and keep those matching the criteria.

        Args:
            criteria: Search and filter options

        Returns:
            Matching farms in stored order
        """
        farms = self.repository.load_all().farms
        return filter_farms(farms, criteria, self.config.contact_separator)

    def save_farm(self, payload: Any, strict: bool = False) -> Farm:
        """
        Validate and store a complete farm record.

        The payload may use any stored record shape; it is normalized to the
        current shape before saving.

        Args:
            payload: Farm record as decoded JSON
            strict: Reject ids that already exist instead of replacing

        Returns:
            The stored farm

        Raises:
            FarmValidationError: If the id or name is missing
            DuplicateFarmError: If strict and the id exists
        """
        if not isinstance(payload, dict):
            raise FarmValidationError("Farm payload must be a JSON object")
        if not as_str(payload.get("id")).strip():
            raise FarmValidationError("Farm id is required")

        farm = normalize_record(payload)
        if not farm.name.strip():
            raise FarmValidationError("Farm name is required")

        if strict:
            return self.repository.insert(farm)
        return self.repository.save(farm)

    def delete_farm(self, farm_id: str) -> None:
        self.repository.delete(farm_id)
        logger.info(f"Deleted farm {farm_id}")

    def backup(self, day: Optional[date] = None) -> Tuple[str, str]:
        """
        Serialize every farm as a JSON backup.

        Args:
            day: Backup date used in the filename (defaults to today)

        Returns:
            Tuple of (filename, JSON text with 2-space indentation)
        """
        day = day or date.today()
        farms = self.repository.load_all().farms
        body = json.dumps(dump_farms(farms), ensure_ascii=False, indent=2)
        logger.info(f"Backed up {len(farms)} farms")
        return f"backup_{day.isoformat()}.json", body

    def restore(self, payload: Any) -> int:
        """
        Replace every stored farm with a backup.

        Backups in any stored record shape are accepted and migrated.

        Args:
            payload: Decoded backup; must be a JSON array

        Returns:
            Number of farms restored

        Raises:
            FarmValidationError: If the payload is not an array (nothing is touched)
        """
        if not isinstance(payload, list):
            raise FarmValidationError("Backup must be a JSON array of farms")

        farms = normalize(payload)
        self.repository.replace_all(farms)
        logger.info(f"Restored {len(farms)} farms from backup")
        return len(farms)

    def export_report(
        self,
        criteria: Optional[FilterCriteria] = None,
        day: Optional[date] = None,
    ) -> Tuple[str, bytes]:
        """
        Build the full spreadsheet report for the filtered farms.

        Returns:
            Tuple of (filename, .xlsx bytes)
        """
        farms = self.search_farms(criteria or FilterCriteria())
        wb = build_report(farms, self.config.sheet_name_max_length)
        return report_filename(REPORT_LABEL, day), workbook_to_bytes(wb)

    def export_contacts(
        self,
        criteria: Optional[FilterCriteria] = None,
        day: Optional[date] = None,
    ) -> Tuple[str, bytes]:
        """
        Build the name and contact spreadsheet for the filtered farms.

        Returns:
            Tuple of (filename, .xlsx bytes)
        """
        farms = self.search_farms(criteria or FilterCriteria())
        wb = build_contacts_report(farms)
        return report_filename(CONTACTS_LABEL, day), workbook_to_bytes(wb)
