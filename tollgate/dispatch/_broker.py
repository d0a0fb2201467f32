"""Dramatiq broker selection for dispatch messages.

The API process sends dispatch messages and workers consume them; both call
:func:`ensure_broker_configured` before any actor is declared or used. The
broker is chosen once per process, in this order:

1. ``TOLLGATE_BROKER_URL`` with a ``redis://`` or ``rediss://`` scheme selects
   a Redis broker, ``amqp://`` or ``amqps://`` a RabbitMQ broker.
2. A broker already installed (for example by the ``dramatiq`` CLI) is kept.
3. A ``StubBroker`` is installed under pytest or when
   ``TOLLGATE_ALLOW_STUB_BROKER`` is truthy.
"""

from __future__ import annotations

import os
import sys
import threading

import dramatiq
from dramatiq.brokers.stub import StubBroker

_BROKER_LOCK = threading.Lock()
_broker_configured = False

_REDIS_SCHEMES = frozenset({"redis", "rediss"})
_AMQP_SCHEMES = frozenset({"amqp", "amqps"})
_TRUTHY = frozenset({"1", "true", "yes"})


def _is_running_tests() -> bool:
    return "pytest" in sys.modules or any(
        key in os.environ
        for key in ("PYTEST_CURRENT_TEST", "PYTEST_XDIST_WORKER", "PYTEST_ADDOPTS")
    )


def _stub_allowed() -> bool:
    raw = os.environ.get("TOLLGATE_ALLOW_STUB_BROKER", "").strip().lower()
    return raw in _TRUTHY or _is_running_tests()


def broker_from_url(url: str) -> dramatiq.Broker:
    """Build a Redis or RabbitMQ broker for ``url``.

    The client libraries are optional extras (``tollgate[redis]`` or
    ``tollgate[rabbitmq]``) and are imported only for the selected scheme.

    Raises
    ------
    ValueError
        If the URL scheme is neither Redis nor AMQP.

    """
    scheme = url.partition("://")[0].lower()
    if scheme in _REDIS_SCHEMES:
        from dramatiq.brokers.redis import RedisBroker

        return RedisBroker(url=url)
    if scheme in _AMQP_SCHEMES:
        from dramatiq.brokers.rabbitmq import RabbitmqBroker

        return RabbitmqBroker(url=url)
    msg = f"TOLLGATE_BROKER_URL must use a redis or amqp scheme, got {scheme!r}"
    raise ValueError(msg)


def _installed_broker() -> dramatiq.Broker | None:
    try:
        return dramatiq.get_broker()
    except (ImportError, LookupError):
        # get_broker() falls back to a local RabbitMQ broker, which needs pika
        return None


def ensure_broker_configured() -> None:
    """Install the process-wide Dramatiq broker if none has been chosen yet.

    Thread-safe and idempotent: Dramatiq worker threads may call it
    concurrently.

    Raises
    ------
    RuntimeError
        If no broker URL is set, none is installed and a stub is not allowed.
    ValueError
        If ``TOLLGATE_BROKER_URL`` has an unsupported scheme.

    """
    global _broker_configured

    if _broker_configured:
        return

    with _BROKER_LOCK:
        if _broker_configured:
            return

        url = os.environ.get("TOLLGATE_BROKER_URL", "").strip()
        if url:
            dramatiq.set_broker(broker_from_url(url))
        elif _installed_broker() is None:
            if not _stub_allowed():
                msg = (
                    "No Dramatiq broker configured. Set TOLLGATE_BROKER_URL, "
                    "or TOLLGATE_ALLOW_STUB_BROKER=1 for local runs."
                )
                raise RuntimeError(msg)
            dramatiq.set_broker(StubBroker())

        _broker_configured = True
