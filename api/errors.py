"""Global exception handlers for FastAPI.

Auth-domain errors are mapped in the routes. These handlers cover
infrastructure failures that can surface from any endpoint, plus
HTTPExceptions raised by route guards.
"""

import logging

import psycopg2
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from clients.email_client import EmailGatewayError
from clients.valkey_client import StoreUnavailableError
from clients.zalo_client import ZaloGatewayError

logger = logging.getLogger(__name__)

_STATUS_TO_CODE = {
    401: ErrorCodes.NOT_AUTHENTICATED,
    403: ErrorCodes.FORBIDDEN,
    404: ErrorCodes.NOT_FOUND,
    503: ErrorCodes.SERVICE_UNAVAILABLE,
}


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app."""

    @app.exception_handler(StoreUnavailableError)
    async def store_unavailable_handler(request: Request, exc: StoreUnavailableError):
        logger.error(f"Valkey unavailable on {request.url.path}: {exc}")
        return JSONResponse(
            status_code=503,
            content=error_response(
                ErrorCodes.SERVICE_UNAVAILABLE,
                "Service temporarily unavailable",
            ).model_dump(mode="json"),
        )

    @app.exception_handler(psycopg2.OperationalError)
    async def database_unavailable_handler(request: Request, exc: psycopg2.OperationalError):
        logger.error(f"Database unavailable on {request.url.path}: {exc}")
        return JSONResponse(
            status_code=503,
            content=error_response(
                ErrorCodes.SERVICE_UNAVAILABLE,
                "Service temporarily unavailable",
            ).model_dump(mode="json"),
        )

    @app.exception_handler(EmailGatewayError)
    async def email_gateway_handler(request: Request, exc: EmailGatewayError):
        logger.error(f"Email delivery failed: {exc}")
        return JSONResponse(
            status_code=502,
            content=error_response(
                ErrorCodes.EMAIL_DELIVERY_FAILED,
                "Could not send the login code. Please try again.",
            ).model_dump(mode="json"),
        )

    @app.exception_handler(ZaloGatewayError)
    async def zalo_gateway_handler(request: Request, exc: ZaloGatewayError):
        logger.error(f"Zalo verification unavailable: {exc}")
        return JSONResponse(
            status_code=502,
            content=error_response(
                ErrorCodes.EXTERNAL_AUTH_UNAVAILABLE,
                "Could not verify the Zalo sign-in. Please try again.",
            ).model_dump(mode="json"),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        # Route guards and unknown paths get the same envelope as everything else
        code = _STATUS_TO_CODE.get(exc.status_code, ErrorCodes.INVALID_REQUEST)
        return JSONResponse(
            status_code=exc.status_code,
            headers=exc.headers,
            content=error_response(code, str(exc.detail)).model_dump(mode="json"),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content=error_response(
                ErrorCodes.VALIDATION_ERROR,
                str(exc.errors()),
            ).model_dump(mode="json"),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return JSONResponse(
            status_code=500,
            content=error_response(
                ErrorCodes.INTERNAL_ERROR,
                "An internal error occurred",
            ).model_dump(mode="json"),
        )
