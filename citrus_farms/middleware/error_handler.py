"""
Global error handling middleware.
"""
import logging
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from typing import Callable

from citrus_farms.domain.errors import (
    DuplicateFarmError,
    FarmNotFoundError,
    FarmRecordsError,
    FarmValidationError,
)
from citrus_farms.infrastructure.remote_api_client import RemoteAPIError


logger = logging.getLogger(__name__)

# Client-facing domain errors and their status codes
DOMAIN_ERROR_STATUS = (
    (FarmValidationError, status.HTTP_400_BAD_REQUEST, "Invalid request"),
    (FarmNotFoundError, status.HTTP_404_NOT_FOUND, "Not found"),
    (DuplicateFarmError, status.HTTP_409_CONFLICT, "Conflict"),
)


def _error_response(status_code: int, error: str, detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "detail": detail,
        }
    )


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Global error handling middleware.

    Maps domain errors to status codes and catches unhandled exceptions so
    every failure returns a consistent JSON body.
    """

    async def dispatch(self, request: Request, call_next: Callable):
        """
        Process the request and handle any exceptions.

        Args:
            request: The incoming request
            call_next: The next middleware or route handler

        Returns:
            Response object
        """
        context = {
            "path": request.url.path,
            "method": request.method,
        }
        try:
            response = await call_next(request)
            return response

        except RemoteAPIError as e:
            logger.error(
                f"Remote API error: {e.message}",
                extra={**context, "status_code": e.status_code},
            )
            # Pass through the original status code from the remote API
            return _error_response(e.status_code, "Remote API error", e.message)

        except FarmRecordsError as e:
            for error_cls, status_code, label in DOMAIN_ERROR_STATUS:
                if isinstance(e, error_cls):
                    logger.warning(f"{label}: {e.message}", extra=context)
                    return _error_response(status_code, label, e.message)

            # Storage failures; the write has already been rolled back
            logger.exception(f"Storage error: {e.message}", extra=context)
            return _error_response(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "Storage error",
                e.message,
            )

        except ValueError as e:
            logger.warning(f"Validation error: {str(e)}", extra=context)
            return _error_response(
                status.HTTP_400_BAD_REQUEST,
                "Invalid request",
                str(e),
            )

        except Exception as e:
            logger.exception(f"Unhandled exception: {str(e)}", extra=context)
            return _error_response(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "Internal server error",
                "An unexpected error occurred",
            )
