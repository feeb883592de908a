"""
Unit tests for the farm application service.
"""
import io
import json
from datetime import date
from unittest.mock import MagicMock

import pytest
from openpyxl import load_workbook

from citrus_farms.domain.errors import DuplicateFarmError, FarmValidationError
from citrus_farms.domain.models import dump_farms
from citrus_farms.infrastructure.repository import FarmRepository
from citrus_farms.services.application.farm_service import FarmService
from citrus_farms.services.domain.farm_filter import FilterCriteria, ServiceFilter


class TestSaveFarm:
    def test_saves_current_record(self, farm_service, moon_farm):
        saved = farm_service.save_farm(moon_farm.to_record())

        assert saved == moon_farm
        assert farm_service.get_farm("farm-moon") == moon_farm

    def test_normalizes_legacy_payload(self, farm_service, legacy_record):
        saved = farm_service.save_farm(legacy_record)

        assert saved.name == "A"
        assert len(saved.plots) == 1

    @pytest.mark.parametrize("payload", [
        {"name": "No Id"},
        {"id": "  ", "name": "Blank Id"},
        {"id": "farm-x"},
        {"id": "farm-x", "name": " "},
        ["not", "an", "object"],
    ])
    def test_rejects_missing_required_fields(self, farm_service, payload):
        with pytest.raises(FarmValidationError):
            farm_service.save_farm(payload)

        assert farm_service.list_farms().farms == []

    def test_strict_rejects_existing_id(self, farm_service, sun_farm):
        farm_service.save_farm(sun_farm.to_record(), strict=True)

        with pytest.raises(DuplicateFarmError):
            farm_service.save_farm(sun_farm.to_record(), strict=True)

    def test_upsert_replaces(self, farm_service, sun_farm):
        farm_service.save_farm(sun_farm.to_record())
        record = sun_farm.to_record()
        record["contact"] = "010-0000-0000"
        farm_service.save_farm(record)

        farms = farm_service.list_farms().farms
        assert len(farms) == 1
        assert farms[0].contact == "010-0000-0000"


class TestListAndSearch:
    def test_page_size_capped(self, test_settings):
        repository = MagicMock(spec=FarmRepository)
        service = FarmService(repository=repository, config=test_settings)

        service.list_farms(page=1, page_size=1000)

        repository.load_all.assert_called_once_with(page=1, page_size=test_settings.max_page_size)

    def test_default_page_size(self, test_settings):
        repository = MagicMock(spec=FarmRepository)
        service = FarmService(repository=repository, config=test_settings)

        service.list_farms(page=2)

        repository.load_all.assert_called_once_with(page=2, page_size=test_settings.default_page_size)

    def test_invalid_page(self, farm_service):
        with pytest.raises(FarmValidationError):
            farm_service.list_farms(page=0)

    def test_search(self, farm_service, repository, sample_farms):
        repository.replace_all(sample_farms)

        result = farm_service.search_farms(FilterCriteria(service_filter=ServiceFilter.CORPORATE))

        assert [farm.id for farm in result] == ["farm-moon"]


class TestBackupRestore:
    def test_backup_format(self, farm_service, repository, sample_farms):
        repository.replace_all(sample_farms)

        filename, body = farm_service.backup(day=date(2024, 5, 1))

        assert filename == "backup_2024-05-01.json"
        assert json.loads(body) == dump_farms(sample_farms)
        assert body.startswith('[\n  {')

    def test_restore_rejects_non_array(self, farm_service, repository, sun_farm):
        repository.save(sun_farm)

        with pytest.raises(FarmValidationError):
            farm_service.restore({"farms": []})

        assert [farm.id for farm in repository.load_all().farms] == ["farm-sun"]

    def test_restore_migrates_and_replaces(self, farm_service, repository, sun_farm, legacy_record, farm_level_record):
        repository.save(sun_farm)

        count = farm_service.restore([legacy_record, farm_level_record])

        farms = repository.load_all().farms
        assert count == 2
        assert [farm.id for farm in farms] == ["farm-legacy", "farm-partial"]
        assert farms[0].plots[0].address == "addr"

    def test_backup_restore_round_trip(self, farm_service, repository, sample_farms):
        repository.replace_all(sample_farms)
        _, body = farm_service.backup()

        repository.replace_all([])
        farm_service.restore(json.loads(body))

        assert repository.load_all().farms == sample_farms


class TestExports:
    def test_report_uses_filter(self, farm_service, repository, sample_farms):
        repository.replace_all(sample_farms)

        filename, content = farm_service.export_report(
            FilterCriteria(search_term="sun"),
            day=date(2024, 5, 1),
        )
        wb = load_workbook(io.BytesIO(content))

        assert filename == "farm_report_2024-05-01.xlsx"
        assert wb.sheetnames == ["Summary", "Sun Farm"]

    def test_empty_report(self, farm_service):
        _, content = farm_service.export_report()

        assert load_workbook(io.BytesIO(content)).sheetnames == ["No Data"]

    def test_contacts(self, farm_service, repository, sample_farms):
        repository.replace_all(sample_farms)

        filename, content = farm_service.export_contacts(day=date(2024, 5, 1))
        rows = list(load_workbook(io.BytesIO(content)).active.iter_rows(values_only=True))

        assert filename == "farm_contacts_2024-05-01.xlsx"
        assert len(rows) == 3
