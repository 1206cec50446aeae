"""
Global error handling middleware.

Run-fatal analysis conditions are raised by the services and turned into
HTTP responses here, so routers only call the service.
"""
import logging
from typing import Callable, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from forest_biomass.services.application.acquisition import (
    AcquisitionError,
    MissingCredentialError,
)
from forest_biomass.services.domain.growth_model import UnknownSpeciesError


logger = logging.getLogger(__name__)


def error_response(
    status_code: int,
    error: str,
    detail: str,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    """Build the JSON body shared by every error response."""
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "detail": detail},
        headers=headers,
    )


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Maps exceptions escaping the routers to consistent error responses.

    - MissingCredentialError: 401 with a Bearer challenge
    - Other AcquisitionError and UnknownSpeciesError: 400
    - Any other ValueError: 400
    - Anything else: 500, with exception details only in debug mode
    """

    def __init__(self, app: ASGIApp, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next: Callable):
        context = {"path": request.url.path, "method": request.method}
        try:
            return await call_next(request)

        except MissingCredentialError as e:
            logger.info(f"Rejected analysis without credential: {e}", extra=context)
            return error_response(
                status.HTTP_401_UNAUTHORIZED,
                "Missing credential",
                str(e),
                headers={"WWW-Authenticate": "Bearer"},
            )

        except (AcquisitionError, UnknownSpeciesError) as e:
            logger.warning(f"Analysis rejected: {e}", extra=context)
            return error_response(status.HTTP_400_BAD_REQUEST, "Invalid analysis request", str(e))

        except ValueError as e:
            logger.warning(f"Validation error: {e}", extra=context)
            return error_response(status.HTTP_400_BAD_REQUEST, "Invalid request", str(e))

        except Exception as e:
            logger.exception(f"Unhandled exception: {e}", extra=context)
            detail = f"{type(e).__name__}: {e}" if self.debug else "An unexpected error occurred"
            return error_response(
                status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", detail
            )
