"""Application factory for the Tollgate Falcon ASGI application.

This module provides ``create_app()`` which builds the Falcon ASGI
application with health endpoints and, when domain dependencies are
available, the webhook intake, validator callback and contract reload
endpoints.

Usage
-----
Create a health-only app::

    app = create_app()

Create a full app with domain endpoints::

    from tollgate.api.app import AppDependencies, create_app

    deps = AppDependencies(
        orchestrator=orchestrator,
        registry=registry,
        webhook_config=WebhookConfig.from_env(),
    )
    app = create_app(deps)

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import falcon.asgi

from tollgate.api.errors import (
    InvalidInputError,
    handle_authentication_error,
    handle_dispatch_not_found,
    handle_invalid_input,
    handle_resolution_error,
)
from tollgate.api.health.resources import HealthResource, ReadyResource
from tollgate.contracts.errors import ResolutionError
from tollgate.dispatch.errors import DispatchNotFoundError
from tollgate.webhooks.errors import AuthenticationError

if typ.TYPE_CHECKING:
    from tollgate.contracts.registry import ContractRegistry
    from tollgate.dispatch.orchestrator import DispatchOrchestrator
    from tollgate.webhooks.config import WebhookConfig

__all__ = ["AppDependencies", "create_app"]


@dc.dataclass(frozen=True, slots=True)
class AppDependencies:
    """Dependencies for the Falcon ASGI application.

    Attributes
    ----------
    orchestrator
        Dispatch orchestrator receiving events and callbacks.
    registry
        Contract registry; gates readiness and serves reloads.
    webhook_config
        Secrets for webhook, callback and reload signatures.

    """

    orchestrator: DispatchOrchestrator
    registry: ContractRegistry
    webhook_config: WebhookConfig


def create_app(
    dependencies: AppDependencies | None = None,
) -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    Parameters
    ----------
    dependencies
        Optional application dependencies. When ``None``, only ``/health``
        and ``/ready`` are available.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    app = falcon.asgi.App()

    app.add_route("/health", HealthResource())
    app.add_route(
        "/ready",
        ReadyResource(dependencies.registry if dependencies is not None else None),
    )

    if dependencies is not None:
        from tollgate.api.contracts.resources import ContractReloadResource
        from tollgate.api.results.resources import ValidationResultResource
        from tollgate.api.webhooks.resources import GitHubWebhookResource
        from tollgate.webhooks.authenticator import WebhookAuthenticator

        config = dependencies.webhook_config
        app.add_route(
            "/webhooks/github",
            GitHubWebhookResource(
                authenticator=WebhookAuthenticator(config.webhook_secret),
                orchestrator=dependencies.orchestrator,
            ),
        )
        app.add_route(
            "/validation-results",
            ValidationResultResource(
                secret=config.callback_secret,
                orchestrator=dependencies.orchestrator,
            ),
        )
        app.add_route(
            "/contracts/reload",
            ContractReloadResource(
                secret=config.webhook_secret,
                registry=dependencies.registry,
            ),
        )

    app.add_error_handler(AuthenticationError, handle_authentication_error)
    app.add_error_handler(InvalidInputError, handle_invalid_input)
    app.add_error_handler(DispatchNotFoundError, handle_dispatch_not_found)
    app.add_error_handler(ResolutionError, handle_resolution_error)

    return app
