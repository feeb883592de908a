"""
API response models using Pydantic.
"""
from typing import List

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from citrus_farms.domain.models import Farm, RecordModel


class FarmListResponse(RecordModel):
    """Response model for the farm list endpoint."""
    farms: List[Farm] = Field(
        description="Farms on the requested page"
    )
    total_pages: int = Field(
        description="Number of pages at the requested page size"
    )

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "farms": [
                    {
                        "id": "3f2a9c1e5b7d4e8f9a0b1c2d3e4f5a6b",
                        "name": "Sun Farm",
                        "contact": "010-1234-5678",
                        "plots": [],
                    }
                ],
                "totalPages": 1,
            }
        },
    )


class RestoreResponse(RecordModel):
    """Response model for the restore endpoint."""
    message: str = Field(
        description="Confirmation message"
    )
    count: int = Field(
        description="Number of farms restored"
    )
