"""Liveness and readiness endpoints.

``/health`` answers whenever the process is up. ``/ready`` also waits for the
first contract snapshot when the full service is running::

    from tollgate.api.health.resources import HealthResource, ReadyResource
"""
