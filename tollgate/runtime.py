"""Process entrypoint: the Granian server and the ASGI app factory it loads.

``tollgate.runtime:create_app`` is the factory Granian imports. It has two
shapes:

- With ``TOLLGATE_DATABASE_URL`` set, it builds the full service: the webhook,
  callback and reload endpoints, plus the lifecycle middleware that creates
  tables, loads contracts and runs the sweeper and contract watcher.
- Without it, only ``/health`` and ``/ready`` are served, which is enough for
  smoke-testing a container image.

:func:`main` reads ``TOLLGATE_HOST`` (default ``0.0.0.0``), ``TOLLGATE_PORT``
(default ``8080``) and ``TOLLGATE_LOG_LEVEL`` (default ``INFO``), configures
logging and serves the factory. Run it with ``python -m tollgate.runtime`` or
the ``tollgate`` console script.
"""

from __future__ import annotations

import dataclasses as dc
import os
import typing as typ

from tollgate.logging import (
    configure_logging,
    get_logger,
    log_error,
    log_info,
    log_warning,
)

if typ.TYPE_CHECKING:
    import falcon.asgi

__all__ = ["RuntimeSettings", "create_app", "main"]

logger = get_logger(__name__)

_MIN_PORT = 1
_MAX_PORT = 65535
_DEFAULT_HOST = "0.0.0.0"  # noqa: S104 - containers listen on every interface
_DEFAULT_PORT = "8080"
_DEFAULT_LOG_LEVEL = "INFO"


def _parse_port(port_str: str) -> int:
    """Return ``port_str`` as a TCP port, exiting with status 1 if invalid."""
    try:
        port = int(port_str)
    except ValueError as exc:
        _reject_port(port_str, "not an integer")
        raise SystemExit(1) from exc
    if not _MIN_PORT <= port <= _MAX_PORT:
        _reject_port(port_str, "out of range")
        raise SystemExit(1)
    return port


def _reject_port(port_str: str, problem: str) -> None:
    log_error(
        logger,
        "Invalid TOLLGATE_PORT %r (%s; expected %d-%d)",
        port_str,
        problem,
        _MIN_PORT,
        _MAX_PORT,
    )


@dc.dataclass(frozen=True, slots=True)
class RuntimeSettings:
    """Where the server listens and how loudly it logs."""

    host: str = _DEFAULT_HOST
    port: int = int(_DEFAULT_PORT)
    log_level: str = _DEFAULT_LOG_LEVEL

    @classmethod
    def from_env(cls) -> RuntimeSettings:
        """Read the listener settings; an invalid port exits the process."""
        return cls(
            host=os.environ.get("TOLLGATE_HOST", "").strip() or _DEFAULT_HOST,
            port=_parse_port(os.environ.get("TOLLGATE_PORT", _DEFAULT_PORT).strip()),
            log_level=os.environ.get("TOLLGATE_LOG_LEVEL", "").strip()
            or _DEFAULT_LOG_LEVEL,
        )


def create_app() -> falcon.asgi.App:
    """Build the ASGI app for the current environment."""
    from tollgate.api.app import create_app as create_api_app

    database_url = os.environ.get("TOLLGATE_DATABASE_URL", "").strip()
    if not database_url:
        log_info(logger, "TOLLGATE_DATABASE_URL unset; serving health endpoints only")
        return create_api_app()

    from tollgate.api.factory import build_service
    from tollgate.api.middleware import ServiceLifecycle

    service = build_service(database_url)
    app = create_api_app(service.app_dependencies())
    app.add_middleware(ServiceLifecycle(service))
    return app


def main() -> None:
    """Configure logging and serve :func:`create_app` with Granian."""
    from granian import Granian
    from granian.constants import Interfaces

    settings = RuntimeSettings.from_env()
    level, invalid = configure_logging(settings.log_level)
    if invalid:
        log_warning(
            logger,
            "Invalid TOLLGATE_LOG_LEVEL %r, falling back to %s",
            settings.log_level,
            level,
        )
    log_info(logger, "Starting Tollgate on %s:%d (log_level=%s)", settings.host, settings.port, level)

    # One worker: dispatch locks and in-process tasks live in this process.
    Granian(
        "tollgate.runtime:create_app",
        address=settings.host,
        port=settings.port,
        interface=Interfaces.ASGI,
        factory=True,
        workers=1,
    ).serve()


if __name__ == "__main__":
    main()
