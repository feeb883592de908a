"""
Domain service: Upgrade stored farm records to the current plot-based shape.

Three record shapes exist in stored snapshots and backups:
- Legacy farms with an embedded ``basicInfo`` block and no plots
- Plot-era farms still carrying farm-level fields (corporate flag, support
  programs, corporate details, service info) from a partial migration
- Current farms holding a list of plots

Each record is inspected independently, mapped into the current shape, and
backfilled with defaults. Running the migration on its own output is a no-op.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable
import logging

from pydantic import BaseModel

from citrus_farms.domain.models import (
    ConsultationCategory,
    CoveringType,
    Farm,
)
from citrus_farms.utils.coercion import (
    as_bool,
    as_dict,
    as_enum_value,
    as_float,
    as_int,
    as_list,
    as_optional_int,
    as_optional_str,
    as_str,
    new_id,
)

logger = logging.getLogger(__name__)


class SchemaGeneration(str, Enum):
    """Record shapes recognised by structural probing."""
    LEGACY_BASIC_INFO = "legacy_basic_info"
    FARM_LEVEL_FIELDS = "farm_level_fields"
    CURRENT = "current"


# Farm-level fields that belong on a plot in the current shape
FARM_LEVEL_PLOT_FIELDS = (
    "isCorporate",
    "supportPrograms",
    "corporateFarmDetails",
    "serviceInfo",
    "facilityInfo",
    "annualData",
    "consultationLogs",
)

LIST_FIELDS = ("supportPrograms", "annualData", "consultationLogs")

FACILITY_FLAGS = (
    "hasCovering",
    "hasPower",
    "hasInternet",
    "hasUmbrellaSystem",
    "hasDripHose",
    "hasSprinkler",
    "hasWindbreak",
    "hasOpener",
)


@dataclass
class MigrationResult:
    """Normalized farms plus whether anything differs from the input."""
    farms: list[Farm] = field(default_factory=list)
    changed: bool = False


def detect_generation(record: Any) -> SchemaGeneration:
    """
    Inspect a raw record for the shape it was stored in.

    Args:
        record: One element of a loaded snapshot

    Returns:
        The detected schema generation
    """
    record = _as_raw(record)
    if not isinstance(record, dict):
        return SchemaGeneration.CURRENT
    if "basicInfo" in record:
        return SchemaGeneration.LEGACY_BASIC_INFO
    if any(key in record for key in FARM_LEVEL_PLOT_FIELDS):
        return SchemaGeneration.FARM_LEVEL_FIELDS
    return SchemaGeneration.CURRENT


def normalize(raw_records: Any) -> list[Farm]:
    """
    Normalize a loaded record collection into current-shape farms.

    Args:
        raw_records: Parsed JSON list of farm records of any generation

    Returns:
        One Farm per input record, in input order
    """
    return normalize_records(raw_records).farms


def normalize_records(raw_records: Any) -> MigrationResult:
    """
    Normalize records and report whether the result differs from the input.

    Callers persist the farms back to their store when ``changed`` is set so
    later loads skip re-migration.

    Args:
        raw_records: Parsed JSON list of farm records of any generation

    Returns:
        MigrationResult with normalized farms and the changed flag
    """
    records = as_list(raw_records)
    result = MigrationResult()
    migrated = 0

    for record in map(_as_raw, records):
        generation = detect_generation(record)
        farm = normalize_record(record)
        result.farms.append(farm)

        if generation is not SchemaGeneration.CURRENT:
            migrated += 1
            logger.debug(f"Migrated farm {farm.id} from {generation.value} shape")
        if farm.to_record() != record:
            result.changed = True

    if migrated:
        logger.info(f"Migrated {migrated} of {len(records)} farm records to the plot-based shape")
    return result


def normalize_record(record: Any) -> Farm:
    """
    Normalize a single raw record.

    Args:
        record: Raw farm record of any generation

    Returns:
        Current-shape Farm
    """
    record = _as_raw(record)
    generation = detect_generation(record)
    upgrade = _UPGRADERS[generation]
    return Farm.model_validate(_canonical_farm(upgrade(as_dict(record))))


def _as_raw(record: Any) -> Any:
    # Already-parsed models are re-read through their wire shape
    if isinstance(record, BaseModel):
        return record.model_dump(mode="json", by_alias=True)
    return record


# ============================================================
# Per-generation upgrades (raw dict -> plot-based raw dict)
# ============================================================

def _upgrade_legacy(record: dict) -> dict:
    """Lift the basicInfo wrapper into a farm holding exactly one new plot."""
    basic = as_dict(record.get("basicInfo"))

    plot = {
        "id": new_id(),
        "address": basic.get("address"),
        "areaPyeong": basic.get("areaPyeong"),
        "cultivar": basic.get("cultivar"),
        "treeCount": basic.get("treeCount"),
        "isCorporate": basic.get("isCorporate", record.get("isCorporate")),
    }
    for key in FARM_LEVEL_PLOT_FIELDS:
        if key != "isCorporate" and key in record:
            plot[key] = record[key]

    existing_plots = [p for p in as_list(record.get("plots")) if isinstance(p, dict)]
    return {
        "id": record.get("id"),
        "name": basic.get("name", record.get("name")),
        "contact": basic.get("contact", record.get("contact")),
        "plots": [plot] + existing_plots,
    }


def _upgrade_farm_level_fields(record: dict) -> dict:
    """Move farm-level fields onto the first plot; plot values win."""
    farm = {key: value for key, value in record.items() if key not in FARM_LEVEL_PLOT_FIELDS}
    plots = [dict(p) for p in as_list(record.get("plots")) if isinstance(p, dict)]
    if not plots:
        plots = [{"id": new_id()}]

    first = plots[0]
    for key in FARM_LEVEL_PLOT_FIELDS:
        if key not in record:
            continue
        incoming = record[key]
        if key in LIST_FIELDS:
            first[key] = _merge_by_id(as_list(first.get(key)), as_list(incoming))
        elif key == "corporateFarmDetails":
            # Nested logs travel even when the plot keeps its own details
            incoming = as_dict(incoming)
            nested_logs = as_list(incoming.get("consultationLogs"))
            first["consultationLogs"] = _merge_by_id(
                as_list(first.get("consultationLogs")), nested_logs
            )
            if not _is_present(first.get(key)):
                first[key] = {k: v for k, v in incoming.items() if k != "consultationLogs"}
        elif not _is_present(first.get(key)):
            first[key] = incoming

    farm["plots"] = plots
    return farm


def _upgrade_current(record: dict) -> dict:
    return record


_UPGRADERS: dict[SchemaGeneration, Callable[[dict], dict]] = {
    SchemaGeneration.LEGACY_BASIC_INFO: _upgrade_legacy,
    SchemaGeneration.FARM_LEVEL_FIELDS: _upgrade_farm_level_fields,
    SchemaGeneration.CURRENT: _upgrade_current,
}


def _is_present(value: Any) -> bool:
    return value is not None and value != [] and value != {}


def _merge_by_id(primary: list, secondary: list) -> list:
    """Concatenate two child lists, skipping secondary items whose id is taken."""
    seen = {item.get("id") for item in primary if isinstance(item, dict) and item.get("id")}
    merged = list(primary)
    for item in secondary:
        item_id = item.get("id") if isinstance(item, dict) else None
        if item_id and item_id in seen:
            continue
        merged.append(item)
    return merged


# ============================================================
# Canonicalization and backfill (plot-based raw dict -> typed dict)
# ============================================================

def _canonical_farm(raw: dict) -> dict:
    return {
        "id": as_str(raw.get("id")) or new_id(),
        "name": as_str(raw.get("name")),
        "contact": as_str(raw.get("contact")),
        "plots": [_canonical_plot(as_dict(plot)) for plot in as_list(raw.get("plots"))],
    }


def _canonical_plot(raw: dict) -> dict:
    details = as_dict(raw.get("corporateFarmDetails"))
    logs = as_list(raw.get("consultationLogs"))
    if "consultationLogs" in details:
        logs = _merge_by_id(logs, as_list(details.get("consultationLogs")))

    return {
        "id": as_str(raw.get("id")) or new_id(),
        "address": as_str(raw.get("address")),
        "areaPyeong": as_float(raw.get("areaPyeong"), minimum=0.0),
        "cultivar": as_str(raw.get("cultivar")),
        "treeCount": as_int(raw.get("treeCount"), minimum=0),
        "isCorporate": as_bool(raw.get("isCorporate")),
        "facilityInfo": _canonical_facility(as_dict(raw.get("facilityInfo"))),
        "serviceInfo": _canonical_service(as_dict(raw.get("serviceInfo"))),
        "annualData": _canonical_children(raw.get("annualData"), _canonical_annual),
        "consultationLogs": _canonical_children(logs, _canonical_log),
        "supportPrograms": _canonical_children(raw.get("supportPrograms"), _canonical_program),
        "corporateFarmDetails": _canonical_details(details) if details else None,
    }


def _canonical_children(items: Any, convert: Callable[[dict], dict]) -> list[dict]:
    return [convert(as_dict(item)) for item in as_list(items) if item is not None]


def _canonical_facility(raw: dict) -> dict:
    facility = {
        "slope": as_str(raw.get("slope")),
        "plantingDistance": as_str(raw.get("plantingDistance")),
        "coveringType": as_enum_value(raw.get("coveringType"), CoveringType),
    }
    for flag in FACILITY_FLAGS:
        facility[flag] = as_bool(raw.get(flag))
    return facility


def _canonical_service(raw: dict) -> dict:
    return {
        "jacheongbiId": as_str(raw.get("jacheongbiId")),
        "jacheongbiPw": as_str(raw.get("jacheongbiPw")),
        "useSugarService": as_bool(raw.get("useSugarService")),
        "sugarMeterInfo": as_optional_str(raw.get("sugarMeterInfo")),
        "useSensorService": as_bool(raw.get("useSensorService")),
        "sensorInfo": as_optional_str(raw.get("sensorInfo")),
    }


def _canonical_program(raw: dict) -> dict:
    return {
        "id": as_str(raw.get("id")) or new_id(),
        "year": as_int(raw.get("year")),
        "projectName": as_str(raw.get("projectName")),
        "projectDescription": as_str(raw.get("projectDescription")),
        "localGovtFund": as_int(raw.get("localGovtFund"), minimum=0),
        "selfFund": as_int(raw.get("selfFund"), minimum=0),
        "isSelected": as_bool(raw.get("isSelected")),
    }


def _canonical_annual(raw: dict) -> dict:
    return {
        "id": as_str(raw.get("id")) or new_id(),
        "year": as_int(raw.get("year")),
        "avgBrix": as_float(raw.get("avgBrix")),
        "hasAlternateBearing": as_bool(raw.get("hasAlternateBearing")),
        "estimatedYield": as_int(raw.get("estimatedYield")),
        "pricePerGwan": as_int(raw.get("pricePerGwan")),
        "shippingSeason": as_str(raw.get("shippingSeason")),
        "notes": as_str(raw.get("notes")),
    }


def _canonical_log(raw: dict) -> dict:
    return {
        "id": as_str(raw.get("id")) or new_id(),
        "date": as_str(raw.get("date")),
        "category": as_enum_value(raw.get("category"), ConsultationCategory),
        "content": as_str(raw.get("content")),
        "notes": as_str(raw.get("notes")),
    }


def _canonical_details(raw: dict) -> dict:
    return {
        "year": as_int(raw.get("year")),
        "consultationDate": as_str(raw.get("consultationDate")),
        "estimatedQuantity": as_int(raw.get("estimatedQuantity")),
        "contractedQuantity": as_int(raw.get("contractedQuantity")),
        "isContracted": as_bool(raw.get("isContracted")),
        "specialNotes": as_str(raw.get("specialNotes")),
        "contractDate": as_optional_str(raw.get("contractDate")),
        "downPayment": as_optional_int(raw.get("downPayment"), minimum=0),
        "balanceDueDate": as_optional_str(raw.get("balanceDueDate")),
        "balancePayment": as_optional_int(raw.get("balancePayment"), minimum=0),
        "mulchingWorkDate": as_optional_str(raw.get("mulchingWorkDate")),
    }
