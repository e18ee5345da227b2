"""HTTP surface shared by the portal routers: envelope, errors, request IDs."""

from api.base import (
    APIError,
    APIMeta,
    APIResponse,
    success_response,
    error_response,
    ErrorCodes,
)
from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware, current_request_id
