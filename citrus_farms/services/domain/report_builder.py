"""
Domain service: Spreadsheet reports for farm collections.

A full report holds one summary sheet with a row per farm linking to that
farm's own detail sheet. Detail sheets list labelled key-value blocks followed
by tables; tables without rows are left out. A contacts report is a single
two-column sheet.
"""
from datetime import date
from typing import Any, Iterable, Optional
import io
import logging
import re

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Font
from openpyxl.worksheet.hyperlink import Hyperlink
from openpyxl.worksheet.worksheet import Worksheet

from citrus_farms.domain.models import (
    Contracted,
    Corporate,
    Farm,
    Plot,
)

logger = logging.getLogger(__name__)

SUMMARY_SHEET_TITLE = "Summary"
CONTACTS_SHEET_TITLE = "Contacts"
PLACEHOLDER_SHEET_TITLE = "No Data"
DEFAULT_SHEET_NAME_MAX_LENGTH = 31

_ILLEGAL_SHEET_CHARS = re.compile(r"[\[\]:*?/\\]")
_BOLD = Font(bold=True)

SUMMARY_HEADERS = [
    "Farm Name", "Contact", "Plots", "Total Area (pyeong)",
    "Cultivars", "Corporate", "Details",
]


def yes_no(value: bool) -> str:
    return "Y" if value else "N"


def sheet_title(
    name: str,
    taken: set[str],
    max_length: int = DEFAULT_SHEET_NAME_MAX_LENGTH,
) -> str:
    """
    Derive a unique, legal worksheet title from a farm name.

    Args:
        name: Farm name
        taken: Titles already used in the workbook (compared case-insensitively)
        max_length: Maximum title length

    Returns:
        Sanitized title, suffixed with " (2)", " (3)", ... on collision
    """
    base = _ILLEGAL_SHEET_CHARS.sub("", ILLEGAL_CHARACTERS_RE.sub("", name)).strip().strip("'")
    base = base[:max_length].strip() or "Farm"
    lowered = {title.lower() for title in taken}

    candidate = base
    counter = 2
    while candidate.lower() in lowered:
        suffix = f" ({counter})"
        candidate = base[:max_length - len(suffix)].rstrip() + suffix
        counter += 1
    return candidate


def build_report(
    farms: list[Farm],
    sheet_name_max_length: int = DEFAULT_SHEET_NAME_MAX_LENGTH,
) -> Workbook:
    """
    Build the full farm report.

    Args:
        farms: Farms to export, in display order
        sheet_name_max_length: Maximum worksheet title length

    Returns:
        Workbook with a summary sheet and one detail sheet per farm, or a
        single placeholder sheet when there are no farms
    """
    wb = Workbook()
    summary = wb.active

    if not farms:
        summary.title = PLACEHOLDER_SHEET_TITLE
        _append_row(summary, ["No farms to export"])
        return wb

    summary.title = SUMMARY_SHEET_TITLE
    _append_header(summary, SUMMARY_HEADERS)
    taken = {SUMMARY_SHEET_TITLE}

    for farm in farms:
        title = sheet_title(farm.name, taken, sheet_name_max_length)
        taken.add(title)

        cultivars = sorted({plot.cultivar for plot in farm.plots if plot.cultivar})
        _append_row(summary, [
            farm.name,
            farm.contact,
            len(farm.plots),
            farm.total_area,
            ", ".join(cultivars),
            yes_no(any(plot.is_corporate for plot in farm.plots)),
            title,
        ])
        link = summary.cell(row=summary.max_row, column=len(SUMMARY_HEADERS))
        link.hyperlink = Hyperlink(ref=link.coordinate, location=f"{_quoted(title)}!A1")
        link.style = "Hyperlink"

        _write_farm_sheet(wb.create_sheet(title), farm)

    logger.info(f"Built report with {len(farms)} farm sheets")
    return wb


def build_contacts_report(farms: list[Farm]) -> Workbook:
    """
    Build the name and contact list.

    Args:
        farms: Farms to export

    Returns:
        Workbook with a single two-column sheet
    """
    wb = Workbook()
    ws = wb.active
    ws.title = CONTACTS_SHEET_TITLE
    _append_header(ws, ["Farm Name", "Contact"])
    for farm in farms:
        _append_row(ws, [farm.name, farm.contact])
    return wb


def workbook_to_bytes(wb: Workbook) -> bytes:
    """Serialize a workbook to .xlsx bytes."""
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def report_filename(label: str, day: Optional[date] = None) -> str:
    """
    Download filename for an export.

    Args:
        label: Human-readable label
        day: Export date (defaults to today)

    Returns:
        "<label>_<YYYY-MM-DD>.xlsx"
    """
    day = day or date.today()
    return f"{label}_{day.isoformat()}.xlsx"


# ============================================================
# Detail sheet layout
# ============================================================

def _quoted(title: str) -> str:
    return "'" + title.replace("'", "''") + "'"


def _cell_value(value: Any) -> Any:
    if isinstance(value, str):
        return ILLEGAL_CHARACTERS_RE.sub("", value)
    return value


def _append_row(ws: Worksheet, values: list[Any]) -> None:
    """Append user values as literal cells: control characters dropped, no formulas."""
    ws.append([_cell_value(value) for value in values])
    for cell in ws[ws.max_row]:
        if cell.data_type == "f":
            cell.data_type = "s"


def _append_header(ws: Worksheet, headers: list[str]) -> None:
    _append_row(ws, headers)
    for cell in ws[ws.max_row]:
        cell.font = _BOLD


def _append_title(ws: Worksheet, title: str) -> None:
    if ws.max_row > 1 or ws.cell(row=1, column=1).value is not None:
        ws.append([])
    ws.append([title])
    ws.cell(row=ws.max_row, column=1).font = _BOLD


def _append_block(ws: Worksheet, title: str, items: Iterable[tuple[str, Any]]) -> None:
    """Labelled key-value block."""
    _append_title(ws, title)
    for label, value in items:
        _append_row(ws, [label, value])


def _append_table(ws: Worksheet, title: str, headers: list[str], rows: list[list[Any]]) -> None:
    """Table block; skipped entirely when it has no rows."""
    if not rows:
        return
    _append_title(ws, title)
    _append_header(ws, headers)
    for row in rows:
        _append_row(ws, row)


def _write_farm_sheet(ws: Worksheet, farm: Farm) -> None:
    _append_block(ws, "Basic Info", [
        ("Farm Name", farm.name),
        ("Contact", farm.contact),
        ("Plots", len(farm.plots)),
        ("Total Area (pyeong)", farm.total_area),
    ])
    for number, plot in enumerate(farm.plots, start=1):
        _write_plot(ws, plot, f"Plot {number}")


def _write_plot(ws: Worksheet, plot: Plot, label: str) -> None:
    _append_block(ws, f"{label} - Basic Info", [
        ("Address", plot.address),
        ("Area (pyeong)", plot.area_pyeong),
        ("Cultivar", plot.cultivar),
        ("Tree Count", plot.tree_count),
        ("Corporate", yes_no(plot.is_corporate)),
    ])

    status = plot.corporate_status
    if isinstance(status, Corporate):
        details = status.details
        _append_block(ws, f"{label} - Corporate Info", [
            ("Year", details.year),
            ("Consultation Date", details.consultation_date),
            ("Estimated Quantity (gwan)", details.estimated_quantity),
            ("Contracted Quantity (gwan)", details.contracted_quantity),
            ("Contracted", yes_no(details.is_contracted)),
            ("Special Notes", details.special_notes),
        ])
        contract = details.contract_status
        if isinstance(contract, Contracted):
            terms = contract.terms
            _append_block(ws, f"{label} - Contract", [
                ("Contract Date", terms.contract_date or ""),
                ("Down Payment", terms.down_payment),
                ("Balance Due Date", terms.balance_due_date or ""),
                ("Balance Payment", terms.balance_payment),
                ("Mulching Work Date", terms.mulching_work_date or ""),
            ])

    facility = plot.facility_info
    _append_block(ws, f"{label} - Facility Info", [
        ("Slope", facility.slope),
        ("Planting Distance", facility.planting_distance),
        ("Covering", yes_no(facility.has_covering)),
        ("Covering Type", _text(facility.covering_type)),
        ("Power", yes_no(facility.has_power)),
        ("Internet", yes_no(facility.has_internet)),
        ("Umbrella System", yes_no(facility.has_umbrella_system)),
        ("Drip Hose", yes_no(facility.has_drip_hose)),
        ("Sprinkler", yes_no(facility.has_sprinkler)),
        ("Windbreak", yes_no(facility.has_windbreak)),
        ("Opener", yes_no(facility.has_opener)),
    ])

    service = plot.service_info
    _append_block(ws, f"{label} - Service Info", [
        ("Jacheongbi ID", service.jacheongbi_id),
        ("Sugar Service", yes_no(service.use_sugar_service)),
        ("Sugar Meter", service.sugar_meter_info or ""),
        ("Sensor Service", yes_no(service.use_sensor_service)),
        ("Sensor", service.sensor_info or ""),
    ])

    _append_table(
        ws,
        f"{label} - Support Programs",
        ["Year", "Project", "Description", "Local Govt Fund", "Self Fund", "Selected"],
        [
            [p.year, p.project_name, p.project_description,
             p.local_govt_fund, p.self_fund, yes_no(p.is_selected)]
            for p in plot.support_programs
        ],
    )
    _append_table(
        ws,
        f"{label} - Annual Data",
        ["Year", "Avg Brix", "Estimated Yield (gwan)", "Price per Gwan",
         "Shipping Season", "Alternate Bearing", "Notes"],
        [
            [d.year, d.avg_brix, d.estimated_yield, d.price_per_gwan,
             d.shipping_season, yes_no(d.has_alternate_bearing), d.notes]
            for d in plot.annual_data
        ],
    )
    _append_table(
        ws,
        f"{label} - Consultation Logs",
        ["Date", "Category", "Content", "Notes"],
        [
            [log.date, _text(log.category), log.content, log.notes]
            for log in plot.consultation_logs
        ],
    )


def _text(value: Any) -> str:
    return getattr(value, "value", value) or ""
