"""
Domain service: Multi-criteria filtering of farm collections.

Every criterion is optional; active criteria are AND-ed together. Plot-level
conditions aggregate to the farm: a farm matches when any of its plots does.
"""
from enum import Enum
from typing import Iterator, Optional

from pydantic import BaseModel, Field

from citrus_farms.domain.models import (
    AnnualData,
    Farm,
    PredefinedProjectName,
    SupportProgram,
)
from citrus_farms.utils.coercion import as_enum_value


class ServiceFilter(str, Enum):
    """Service usage or farm type a farm must show on at least one plot."""
    ALL = "all"
    SUGAR = "sugar"
    SENSOR = "sensor"
    CORPORATE = "corporate"


class YesNoFilter(str, Enum):
    ALL = "all"
    YES = "yes"
    NO = "no"


class FilterCriteria(BaseModel):
    """Search and filter options for a farm list."""
    search_term: str = Field(default="", description="Substring of name or contact")
    service_filter: ServiceFilter = ServiceFilter.ALL
    support_filter: YesNoFilter = YesNoFilter.ALL
    support_year_start: Optional[int] = Field(
        default=None,
        description="Inclusive lower bound on support program year"
    )
    support_year_end: Optional[int] = Field(
        default=None,
        description="Inclusive upper bound on support program year"
    )
    project_filter: Optional[str] = Field(
        default=None,
        description="Predefined project name, or the 'other' name for free-text projects"
    )
    alternate_bearing_filter: YesNoFilter = YesNoFilter.ALL
    alternate_bearing_year: Optional[int] = None

    @property
    def is_empty(self) -> bool:
        return (
            not self.search_term.strip()
            and self.service_filter is ServiceFilter.ALL
            and self.support_filter is YesNoFilter.ALL
            and _project_target(self.project_filter) is None
            and not self.alternate_bearing_active
        )

    @property
    def alternate_bearing_active(self) -> bool:
        return (
            self.alternate_bearing_filter is not YesNoFilter.ALL
            and self.alternate_bearing_year is not None
        )


def filter_farms(
    farms: list[Farm],
    criteria: FilterCriteria,
    contact_separator: str = "-",
) -> list[Farm]:
    """
    Select the farms satisfying every active criterion.

    Args:
        farms: Farms to filter (not modified)
        criteria: Filter options
        contact_separator: Character ignored when matching contacts

    Returns:
        New list with matching farms in their original order
    """
    if criteria.is_empty:
        return list(farms)
    return [
        farm for farm in farms
        if matches(farm, criteria, contact_separator)
    ]


def matches(farm: Farm, criteria: FilterCriteria, contact_separator: str = "-") -> bool:
    """Evaluate all criteria against one farm."""
    return (
        _matches_search(farm, criteria.search_term, contact_separator)
        and _matches_service(farm, criteria.service_filter)
        and _matches_support(farm, criteria)
        and _matches_project(farm, criteria.project_filter)
        and _matches_alternate_bearing(farm, criteria)
    )


def _support_programs(farm: Farm) -> Iterator[SupportProgram]:
    for plot in farm.plots:
        yield from plot.support_programs


def _annual_data(farm: Farm) -> Iterator[AnnualData]:
    for plot in farm.plots:
        yield from plot.annual_data


def _matches_search(farm: Farm, search_term: str, separator: str) -> bool:
    term = search_term.strip().lower()
    if not term:
        return True
    if term in farm.name.lower():
        return True

    contact = farm.contact.lower()
    if separator:
        stripped_term = term.replace(separator, "")
        if stripped_term:
            return stripped_term in contact.replace(separator, "")
    return term in contact


def _matches_service(farm: Farm, service_filter: ServiceFilter) -> bool:
    if service_filter is ServiceFilter.SUGAR:
        return any(plot.service_info.use_sugar_service for plot in farm.plots)
    if service_filter is ServiceFilter.SENSOR:
        return any(plot.service_info.use_sensor_service for plot in farm.plots)
    if service_filter is ServiceFilter.CORPORATE:
        return any(plot.is_corporate for plot in farm.plots)
    return True


def _matches_support(farm: Farm, criteria: FilterCriteria) -> bool:
    if criteria.support_filter is YesNoFilter.NO:
        return not any(True for _ in _support_programs(farm))
    if criteria.support_filter is YesNoFilter.YES:
        start = criteria.support_year_start
        end = criteria.support_year_end
        return any(
            (start is None or program.year >= start)
            and (end is None or program.year <= end)
            for program in _support_programs(farm)
        )
    return True


def _project_target(project_filter: Optional[str]) -> Optional[str]:
    """Resolve a project filter to a stored name, or None when inactive."""
    if project_filter is None:
        return None
    value = project_filter.strip()
    if not value or value.lower() == "all":
        return None
    return as_enum_value(value, PredefinedProjectName) or value


def _matches_project(farm: Farm, project_filter: Optional[str]) -> bool:
    target = _project_target(project_filter)
    if target is None:
        return True
    if target == PredefinedProjectName.ETC.value:
        # "Other" covers free-text names outside the predefined list
        return any(
            program.project_name == target
            or not program.is_predefined
            for program in _support_programs(farm)
        )
    return any(program.project_name == target for program in _support_programs(farm))


def _matches_alternate_bearing(farm: Farm, criteria: FilterCriteria) -> bool:
    if not criteria.alternate_bearing_active:
        return True
    year = criteria.alternate_bearing_year
    occurred = any(
        data.year == year and data.has_alternate_bearing
        for data in _annual_data(farm)
    )
    if criteria.alternate_bearing_filter is YesNoFilter.YES:
        return occurred
    # A year with no data counts as "did not occur"
    return not occurred
