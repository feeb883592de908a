"""
Unit tests for the schema migration engine.

Tests cover:
- Structural detection of each stored record shape
- Lifting legacy basicInfo records into a single plot
- Moving farm-level fields onto the first plot
- Backfilling defaults without overwriting present values
- Idempotence and JSON round trips
- Malformed input handling
"""
import json

import pytest

from citrus_farms.domain.models import (
    ConsultationCategory,
    CoveringType,
    Farm,
    dump_farms,
)
from citrus_farms.services.domain.schema_migration import (
    SchemaGeneration,
    detect_generation,
    normalize,
    normalize_record,
    normalize_records,
)


# ============================================================
# Detection Tests
# ============================================================

class TestDetectGeneration:
    """Tests for structural detection of raw records."""

    def test_basic_info_wrapper_is_legacy(self, legacy_record):
        assert detect_generation(legacy_record) is SchemaGeneration.LEGACY_BASIC_INFO

    def test_farm_level_fields_detected(self, farm_level_record):
        assert detect_generation(farm_level_record) is SchemaGeneration.FARM_LEVEL_FIELDS

    def test_plot_only_record_is_current(self, sun_farm):
        assert detect_generation(sun_farm.to_record()) is SchemaGeneration.CURRENT

    def test_non_dict_treated_as_current(self):
        assert detect_generation("not a farm") is SchemaGeneration.CURRENT


# ============================================================
# Legacy Shape Tests
# ============================================================

class TestLegacyMigration:
    """Tests for records with an embedded basicInfo block."""

    def test_basic_info_becomes_single_plot(self):
        """Name stays on the farm; address and area move to one plot."""
        farms = normalize([{"basicInfo": {"name": "A", "address": "addr", "areaPyeong": 10}}])

        assert len(farms) == 1
        farm = farms[0]
        assert farm.name == "A"
        assert len(farm.plots) == 1
        assert farm.plots[0].address == "addr"
        assert farm.plots[0].area_pyeong == 10

    def test_embedded_data_moves_to_plot(self, legacy_record):
        farm = normalize_record(legacy_record)
        plot = farm.plots[0]

        assert farm.id == "farm-legacy"
        assert farm.contact == "010-1111-2222"
        assert plot.cultivar == "Setoka"
        assert plot.tree_count == 120
        assert plot.facility_info.has_power is True
        assert plot.facility_info.covering_type == CoveringType.TYVEK
        assert plot.service_info.sugar_meter_info == "meter-1"
        assert [p.id for p in plot.support_programs] == ["sp-a1"]
        assert plot.annual_data[0].has_alternate_bearing is True
        assert plot.id

    def test_wrapper_is_discarded(self, legacy_record):
        record = normalize_record(legacy_record).to_record()

        assert "basicInfo" not in record
        assert "supportPrograms" not in record
        assert "facilityInfo" not in record

    def test_corporate_logs_split_out_of_details(self, legacy_corporate_record):
        plot = normalize_record(legacy_corporate_record).plots[0]

        assert plot.is_corporate is True
        assert plot.area_pyeong == 2500
        assert plot.corporate_farm_details.is_contracted is True
        assert plot.corporate_farm_details.down_payment == 100000
        assert [log.id for log in plot.consultation_logs] == ["log-b1"]
        assert plot.consultation_logs[0].category == ConsultationCategory.PRUNING
        details = plot.corporate_farm_details.model_dump(by_alias=True)
        assert "consultationLogs" not in details


# ============================================================
# Farm-Level Field Tests
# ============================================================

class TestFarmLevelMigration:
    """Tests for plot-era farms with leftover farm-level fields."""

    def test_fields_move_to_first_plot(self, farm_level_record):
        farm = normalize_record(farm_level_record)
        plot = farm.plots[0]

        assert len(farm.plots) == 1
        assert plot.id == "plot-c1"
        assert plot.is_corporate is True
        assert plot.service_info.use_sensor_service is True
        assert plot.service_info.sensor_info == "soil sensor"

    def test_plot_values_take_precedence(self, farm_level_record):
        """Lists are merged with plot entries first; scalars keep the plot value."""
        farm_level_record["plots"][0]["serviceInfo"] = {"useSugarService": True}
        plot = normalize_record(farm_level_record).plots[0]

        assert [p.id for p in plot.support_programs] == ["sp-c1", "sp-farm"]
        assert plot.service_info.use_sugar_service is True
        assert plot.service_info.use_sensor_service is False

    def test_placeholder_plot_created(self):
        farm = normalize_record({
            "id": "farm-d",
            "name": "D",
            "isCorporate": True,
            "corporateFarmDetails": {
                "year": 2022,
                "consultationLogs": [{"id": "log-d1", "content": "visit"}],
            },
        })

        assert len(farm.plots) == 1
        plot = farm.plots[0]
        assert plot.id
        assert plot.is_corporate is True
        assert plot.corporate_farm_details.year == 2022
        assert [log.id for log in plot.consultation_logs] == ["log-d1"]

    def test_nested_logs_deduplicated_by_id(self):
        farm = normalize_record({
            "id": "farm-e",
            "name": "E",
            "plots": [{"id": "plot-e1", "consultationLogs": [{"id": "log-e1", "content": "plot"}]}],
            "corporateFarmDetails": {"consultationLogs": [{"id": "log-e1", "content": "farm"}]},
        })

        logs = farm.plots[0].consultation_logs
        assert [log.content for log in logs] == ["plot"]


# ============================================================
# Backfill Tests
# ============================================================

class TestBackfill:
    """Tests for defaulting missing and malformed fields."""

    def test_missing_plot_fields_defaulted(self):
        farm = normalize_record({"id": "farm-f", "name": "F", "plots": [{"address": "f-addr"}]})
        plot = farm.plots[0]

        assert plot.id
        assert plot.address == "f-addr"
        assert plot.is_corporate is False
        assert plot.support_programs == []
        assert plot.annual_data == []
        assert plot.consultation_logs == []
        assert plot.facility_info.slope == ""
        assert plot.service_info.use_sugar_service is False

    def test_present_fields_not_overwritten(self, moon_farm):
        assert normalize_record(moon_farm.to_record()) == moon_farm

    def test_child_records_get_ids(self):
        farm = normalize_record({
            "id": "farm-g",
            "plots": [{"id": "plot-g1", "annualData": [{"year": 2022}], "supportPrograms": [{"year": 2021}]}],
        })

        assert farm.plots[0].annual_data[0].id
        assert farm.plots[0].support_programs[0].id

    def test_malformed_fields_defaulted(self):
        farm = normalize_record({
            "id": "farm-h",
            "name": None,
            "plots": [{
                "id": "plot-h1",
                "areaPyeong": "not a number",
                "treeCount": -5,
                "facilityInfo": None,
                "serviceInfo": ["wrong"],
                "supportPrograms": "none",
                "annualData": [None, {"year": "2022", "avgBrix": "11.5"}],
            }],
        })
        plot = farm.plots[0]

        assert farm.name == ""
        assert plot.area_pyeong == 0
        assert plot.tree_count == 0
        assert plot.support_programs == []
        assert len(plot.annual_data) == 1
        assert plot.annual_data[0].year == 2022
        assert plot.annual_data[0].avg_brix == 11.5

    def test_oversized_numbers_defaulted(self):
        farm = normalize_record({
            "id": "farm-n",
            "plots": [{"id": "plot-n1", "areaPyeong": 10**400, "treeCount": 10**400}],
        })
        plot = farm.plots[0]

        assert plot.area_pyeong == 0
        assert plot.tree_count == 0

    def test_non_dict_record_becomes_empty_farm(self):
        farms = normalize([None, 42, {"id": "farm-i", "name": "I"}])

        assert len(farms) == 3
        assert farms[0].id and farms[0].plots == []
        assert farms[2].id == "farm-i"

    def test_non_list_input_returns_empty(self):
        assert normalize({"id": "farm-j"}) == []

    def test_non_corporate_plot_drops_details(self):
        farm = normalize_record({
            "id": "farm-k",
            "plots": [{"id": "plot-k1", "isCorporate": False, "corporateFarmDetails": {"year": 2020}}],
        })

        assert farm.plots[0].corporate_farm_details is None

    def test_uncontracted_details_drop_contract_fields(self):
        farm = normalize_record({
            "id": "farm-l",
            "plots": [{
                "id": "plot-l1",
                "isCorporate": True,
                "corporateFarmDetails": {"isContracted": False, "contractDate": "2024-01-01", "downPayment": 5},
            }],
        })
        details = farm.plots[0].corporate_farm_details

        assert details.contract_date is None
        assert details.down_payment is None


# ============================================================
# Idempotence Tests
# ============================================================

class TestIdempotence:
    """Running the migration on its own output changes nothing."""

    @pytest.mark.parametrize("fixture_name", [
        "legacy_record",
        "legacy_corporate_record",
        "farm_level_record",
    ])
    def test_second_pass_is_noop(self, request, fixture_name):
        raw = [request.getfixturevalue(fixture_name)]
        once = normalize(raw)
        twice = normalize(dump_farms(once))

        assert twice == once

    def test_mixed_generations(self, legacy_record, legacy_corporate_record, farm_level_record, sun_farm):
        raw = [legacy_record, sun_farm.to_record(), legacy_corporate_record, farm_level_record]
        once = normalize(raw)
        twice = normalize(dump_farms(once))

        assert [farm.id for farm in once] == [
            "farm-legacy", "farm-sun", "farm-legacy-corp", "farm-partial",
        ]
        assert twice == once

    def test_json_round_trip_of_current_farms(self, sample_farms):
        text = json.dumps(dump_farms(sample_farms))

        assert normalize(json.loads(text)) == sample_farms

    def test_parsed_farms_pass_through(self, legacy_record, farm_level_record, sun_farm):
        """Farm instances are accepted as input and come back unchanged."""
        once = normalize([legacy_record, sun_farm.to_record(), farm_level_record])
        result = normalize_records(once)

        assert normalize(once) == once
        assert result.changed is False
        assert once[0].plots[0].address == "addr"

    def test_single_parsed_farm(self, moon_farm):
        assert detect_generation(moon_farm) is SchemaGeneration.CURRENT
        assert normalize_record(moon_farm) == moon_farm


# ============================================================
# Change Detection Tests
# ============================================================

class TestNormalizeRecords:
    """Tests for the changed flag used to persist migrated snapshots."""

    def test_current_records_unchanged(self, sample_farms):
        result = normalize_records(dump_farms(sample_farms))

        assert result.changed is False
        assert result.farms == sample_farms

    def test_legacy_records_changed(self, legacy_record):
        result = normalize_records([legacy_record])

        assert result.changed is True
        assert isinstance(result.farms[0], Farm)

    def test_backfilled_records_changed(self):
        result = normalize_records([{"id": "farm-m", "name": "M", "contact": "", "plots": []}])

        assert result.changed is False
        result = normalize_records([{"id": "farm-m", "name": "M"}])
        assert result.changed is True
