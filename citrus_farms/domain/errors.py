"""
Domain exceptions shared by the gateways, the service layer and the API.
"""


class FarmRecordsError(Exception):
    """Base class for farm record errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class FarmValidationError(FarmRecordsError):
    """A payload is missing required fields or has the wrong shape."""
    pass


class FarmNotFoundError(FarmRecordsError):
    """No farm exists with the requested identifier."""

    def __init__(self, farm_id: str):
        super().__init__(f"Farm '{farm_id}' not found")
        self.farm_id = farm_id


class DuplicateFarmError(FarmRecordsError):
    """A strict insert collided with an existing identifier."""

    def __init__(self, farm_id: str):
        super().__init__(f"Farm '{farm_id}' already exists")
        self.farm_id = farm_id


class StorageError(FarmRecordsError):
    """The backing store failed; any multi-step write was rolled back."""
    pass
