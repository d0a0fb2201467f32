"""Tollgate HTTP API layer.

This package provides the Falcon Asynchronous Server Gateway Interface
(ASGI) application for the Tollgate runtime HTTP surface.

Usage
-----
Create and run the application::

    from tollgate.api import create_app

    app = create_app()              # health-only mode
    app = create_app(dependencies)  # full mode with domain endpoints

Public API
----------
create_app
    Application factory that configures the Falcon ASGI app with health
    endpoints and, when dependencies are provided, the webhook, callback
    and reload endpoints.
"""

from tollgate.api.app import create_app

__all__ = ["create_app"]
