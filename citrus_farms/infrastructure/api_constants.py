"""
API endpoint constants and configuration.

This module contains the farm records API endpoint paths and related
constants. The server routes and the remote repository both read them, so the
two sides cannot drift apart.
"""


# Farm Records API Endpoints
class FarmAPIEndpoints:
    """Farm records API endpoint paths (relative to the versioned base URL)."""

    # Base paths
    FARMS = "/farms"

    # Farm endpoints
    FARM_BY_ID = f"{FARMS}/{{farm_id}}"
    RESTORE = f"{FARMS}/restore"

    @classmethod
    def farm_by_id(cls, farm_id: str) -> str:
        """
        Get the endpoint for a single farm.

        Args:
            farm_id: Farm identifier

        Returns:
            Formatted endpoint path
        """
        return cls.FARM_BY_ID.format(farm_id=farm_id)


# API Configuration Constants
class APIConstants:
    """General API configuration constants."""

    # HTTP Headers
    CONTENT_TYPE_JSON = "application/json"
    CONTENT_TYPE_XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

    # Pagination
    DEFAULT_PAGE_SIZE = 10
    MAX_PAGE_SIZE = 100
