"""
API router for farm record endpoints.

Routers only translate HTTP to service calls; domain errors are mapped to
status codes by the error handling middleware.
"""
from typing import Annotated, Any, List, Optional

from fastapi import APIRouter, Body, Path, Query, Response, status

from citrus_farms.api.dependencies import FarmServiceDep, FilterCriteriaDep
from citrus_farms.api.v1.models.responses import FarmListResponse, RestoreResponse
from citrus_farms.domain.models import Farm
from citrus_farms.infrastructure.api_constants import APIConstants, FarmAPIEndpoints


router = APIRouter(
    prefix=FarmAPIEndpoints.FARMS,
    tags=["farms"],
)

RATE_LIMITED = {429: {"description": "Too many requests"}}


def _attachment(content: Any, media_type: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get(
    "",
    response_model=FarmListResponse,
    summary="List farms",
    description="""
    List farm records. With `page`, farms are sorted by name and returned
    `limit` at a time together with the total page count.
    """,
    responses={**RATE_LIMITED},
)
def list_farms(
    farm_service: FarmServiceDep,
    page: Annotated[Optional[int], Query(description="1-based page number")] = None,
    limit: Annotated[Optional[int], Query(description="Farms per page")] = None,
) -> FarmListResponse:
    result = farm_service.list_farms(page=page, page_size=limit)
    return FarmListResponse(farms=result.farms, total_pages=result.total_pages)


@router.get(
    "/search",
    response_model=List[Farm],
    summary="Search and filter farms",
    responses={**RATE_LIMITED},
)
def search_farms(
    farm_service: FarmServiceDep,
    criteria: FilterCriteriaDep,
) -> List[Farm]:
    return farm_service.search_farms(criteria)


@router.get(
    "/backup",
    summary="Download a JSON backup of every farm",
    responses={
        200: {"content": {APIConstants.CONTENT_TYPE_JSON: {}}},
        **RATE_LIMITED,
    },
)
def backup_farms(farm_service: FarmServiceDep) -> Response:
    filename, body = farm_service.backup()
    return _attachment(body.encode("utf-8"), APIConstants.CONTENT_TYPE_JSON, filename)


@router.post(
    "/restore",
    response_model=RestoreResponse,
    summary="Replace every farm with a backup",
    description="""
    Replace all stored farms with the posted JSON array. Older record shapes
    are migrated on import. Anything other than an array is rejected before
    any data is touched.
    """,
    responses={
        400: {"description": "Body is not a JSON array"},
        **RATE_LIMITED,
    },
)
def restore_farms(
    farm_service: FarmServiceDep,
    payload: Annotated[Any, Body(description="JSON array of farm records")],
) -> RestoreResponse:
    count = farm_service.restore(payload)
    return RestoreResponse(message=f"Restored {count} farms", count=count)


@router.get(
    "/export/report",
    summary="Download the spreadsheet report for filtered farms",
    responses={
        200: {"content": {APIConstants.CONTENT_TYPE_XLSX: {}}},
        **RATE_LIMITED,
    },
)
def export_report(
    farm_service: FarmServiceDep,
    criteria: FilterCriteriaDep,
) -> Response:
    filename, content = farm_service.export_report(criteria)
    return _attachment(content, APIConstants.CONTENT_TYPE_XLSX, filename)


@router.get(
    "/export/contacts",
    summary="Download names and contacts of filtered farms",
    responses={
        200: {"content": {APIConstants.CONTENT_TYPE_XLSX: {}}},
        **RATE_LIMITED,
    },
)
def export_contacts(
    farm_service: FarmServiceDep,
    criteria: FilterCriteriaDep,
) -> Response:
    filename, content = farm_service.export_contacts(criteria)
    return _attachment(content, APIConstants.CONTENT_TYPE_XLSX, filename)


@router.get(
    "/{farm_id}",
    response_model=Farm,
    summary="Get one farm",
    responses={
        404: {"description": "Farm not found"},
        **RATE_LIMITED,
    },
)
def get_farm(
    farm_id: Annotated[str, Path(description="Farm identifier")],
    farm_service: FarmServiceDep,
) -> Farm:
    return farm_service.get_farm(farm_id)


@router.post(
    "",
    response_model=Farm,
    status_code=status.HTTP_201_CREATED,
    summary="Create or replace a farm",
    description="""
    Store a complete farm record, replacing any farm with the same id along
    with all of its plots and child records. With `strict=true` an existing
    id is rejected instead.
    """,
    responses={
        400: {"description": "Farm id or name is missing"},
        409: {"description": "Farm id already exists (strict insert)"},
        **RATE_LIMITED,
    },
)
def save_farm(
    farm_service: FarmServiceDep,
    payload: Annotated[Any, Body(description="Complete farm record")],
    strict: Annotated[bool, Query(description="Reject existing ids")] = False,
) -> Farm:
    return farm_service.save_farm(payload, strict=strict)


@router.delete(
    "/{farm_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a farm and everything it owns",
    responses={**RATE_LIMITED},
)
def delete_farm(
    farm_id: Annotated[str, Path(description="Farm identifier")],
    farm_service: FarmServiceDep,
) -> Response:
    farm_service.delete_farm(farm_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
