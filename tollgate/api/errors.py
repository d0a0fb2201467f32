"""Domain exceptions and Falcon error handlers for the API layer.

Usage
-----
Register error handlers on the Falcon app::

    from tollgate.api.errors import InvalidInputError, handle_invalid_input

    app.add_error_handler(InvalidInputError, handle_invalid_input)

"""

from __future__ import annotations

import typing as typ

import falcon

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from tollgate.contracts.errors import ResolutionError
    from tollgate.dispatch.errors import DispatchNotFoundError
    from tollgate.webhooks.errors import AuthenticationError

__all__ = [
    "InvalidInputError",
    "handle_authentication_error",
    "handle_dispatch_not_found",
    "handle_invalid_input",
    "handle_resolution_error",
]


class InvalidInputError(Exception):
    """Raised for client validation errors that should map to HTTP 400.

    Use this instead of ``ValueError`` so that only *intentional*
    validation failures are surfaced to the caller, while genuine
    programmer mistakes still propagate as unhandled 500s.

    Attributes
    ----------
    reason
        Human-readable description of the validation failure.
    field
        Optional name of the input field that failed validation.

    """

    def __init__(self, reason: str, *, field: str | None = None) -> None:
        """Initialize with a validation reason and optional field name."""
        self.reason = reason
        self.field = field
        message = f"{field}: {reason}" if field is not None else reason
        super().__init__(message)


async def handle_invalid_input(
    _req: Request,
    resp: Response,
    ex: InvalidInputError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``InvalidInputError`` to an HTTP 400 JSON response."""
    resp.status = falcon.HTTP_400
    media: dict[str, str] = {
        "title": "Invalid input",
        "description": ex.reason,
    }
    if ex.field is not None:
        media["field"] = ex.field
    resp.media = media


async def handle_authentication_error(
    _req: Request,
    resp: Response,
    ex: AuthenticationError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``AuthenticationError`` to an HTTP 401 JSON response.

    Only the short reason code is returned; the message may describe the
    payload and stays in the logs.
    """
    resp.status = falcon.HTTP_401
    resp.media = {
        "title": "Authentication failed",
        "reason": ex.reason,
    }


async def handle_dispatch_not_found(
    _req: Request,
    resp: Response,
    ex: DispatchNotFoundError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``DispatchNotFoundError`` to an HTTP 404 JSON response."""
    resp.status = falcon.HTTP_404
    resp.media = {
        "title": "Dispatch not found",
        "description": str(ex),
    }


async def handle_resolution_error(
    _req: Request,
    resp: Response,
    ex: ResolutionError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``ResolutionError`` to an HTTP 422 JSON response listing issues."""
    resp.status = falcon.HTTP_422
    resp.media = {
        "title": "Contract data rejected",
        "issues": list(ex.issues),
    }
