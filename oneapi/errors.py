from __future__ import annotations

import uuid

from fastapi import Request, status
from fastapi.responses import PlainTextResponse

from .logging_config import logger


class GatewayError(Exception):
    """
    Base class for errors resolved by the gateway itself.

    These are rendered as plain-text responses; upstream provider errors are
    never wrapped in this type, they are relayed verbatim.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class UnauthorizedError(GatewayError):
    status_code = status.HTTP_401_UNAUTHORIZED


class QuotaExceededError(GatewayError):
    """The token has consumed its whole budget."""

    status_code = status.HTTP_402_PAYMENT_REQUIRED

    def __init__(self, message: str, *, usage: float, total_quota: float) -> None:
        super().__init__(message)
        self.usage = usage
        self.total_quota = total_quota


class BadRequestError(GatewayError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(GatewayError):
    status_code = status.HTTP_404_NOT_FOUND


class UpstreamUnavailableError(GatewayError):
    status_code = status.HTTP_502_BAD_GATEWAY


class DeploymentNotMappedError(GatewayError):
    """Raised by an adapter when the body reaching it carries no deployment model."""


async def handle_gateway_error(request: Request, exc: GatewayError) -> PlainTextResponse:
    return PlainTextResponse(exc.message, status_code=exc.status_code)


async def handle_unexpected_error(request: Request, exc: Exception) -> PlainTextResponse:
    error_id = uuid.uuid4().hex
    logger.exception(
        "Unhandled error %s %s (error_id=%s)",
        request.method,
        request.url.path,
        error_id,
    )
    return PlainTextResponse(
        f"Internal server error (error_id={error_id})",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


__all__ = [
    "BadRequestError",
    "DeploymentNotMappedError",
    "GatewayError",
    "NotFoundError",
    "QuotaExceededError",
    "UnauthorizedError",
    "UpstreamUnavailableError",
    "handle_gateway_error",
    "handle_unexpected_error",
]
