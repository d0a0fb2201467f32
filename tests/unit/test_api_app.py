"""Unit tests for tollgate.api.app and the endpoints it registers.

Usage
-----
Run with pytest::

    pytest tests/unit/test_api_app.py

"""

from __future__ import annotations

import typing as typ

import falcon.asgi
import falcon.testing
import msgspec
import pytest
from sqlalchemy import select

from tests.helpers.dispatch_world import DispatchWorld, build_world
from tests.helpers.github_events import (
    CALLBACK_SECRET,
    WEBHOOK_SECRET,
    pull_request_body,
    signed_headers,
)
from tollgate.api.app import AppDependencies, create_app
from tollgate.api.results.resources import CALLBACK_SIGNATURE_HEADER
from tollgate.common.keys import DispatchKey
from tollgate.contracts.registry import ContractRegistry
from tollgate.dispatch import DispatchRecord, DispatchState
from tollgate.webhooks.authenticator import compute_signature
from tollgate.webhooks.config import WebhookConfig

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from tollgate.contracts.loader import ContractSource

KEY = DispatchKey.build("acme/checkout-service", 42, "abc123")


@pytest.fixture
def world(
    session_factory: async_sessionmaker[AsyncSession],
    contract_source: ContractSource,
) -> DispatchWorld:
    """Return an orchestrator wired over fakes and a loaded registry."""
    return build_world(session_factory, contract_source)


@pytest.fixture
def app(world: DispatchWorld) -> falcon.asgi.App:
    """Build the full application over the test world."""
    return create_app(
        AppDependencies(
            orchestrator=world.orchestrator,
            registry=world.registry,
            webhook_config=WebhookConfig(
                webhook_secret=WEBHOOK_SECRET, callback_secret=CALLBACK_SECRET
            ),
        )
    )


def _callback(payload: dict[str, typ.Any]) -> tuple[bytes, dict[str, str]]:
    body = msgspec.json.encode(payload)
    return body, {
        CALLBACK_SIGNATURE_HEADER: compute_signature(CALLBACK_SECRET, body),
        "Content-Type": "application/json",
    }


def _completed(severity: str = "BREAKING_P0") -> dict[str, typ.Any]:
    return {
        "dispatch_key": {
            "repository": "acme/checkout-service",
            "pull_request": 42,
            "head_sha": "abc123",
        },
        "outcome": "completed",
        "severity": severity,
        "findings": [{"field": "order_total", "problem": "renamed to amount"}],
    }


class TestCreateAppHealthOnly:
    """Tests for create_app() without domain dependencies."""

    def test_returns_falcon_app(self) -> None:
        """Create_app() returns a Falcon ASGI App."""
        app = create_app()
        assert isinstance(app, falcon.asgi.App), "expected Falcon ASGI App"

    def test_ready_without_registry(self) -> None:
        """Health-only mode is always ready."""
        result = falcon.testing.TestClient(create_app()).simulate_get("/ready")
        assert result.status == falcon.HTTP_200, "expected HTTP 200 from /ready"
        assert result.json == {"status": "ready"}, "wrong /ready body"

    def test_domain_endpoints_not_registered(self) -> None:
        """Without deps, the webhook endpoint returns 404."""
        result = falcon.testing.TestClient(create_app()).simulate_post("/webhooks/github")
        assert result.status == falcon.HTTP_404, "expected HTTP 404"


class TestReadiness:
    """Tests for /ready gating on the contract registry."""

    def test_not_ready_until_contracts_load(
        self, world: DispatchWorld, contract_source: ContractSource
    ) -> None:
        """An unloaded registry keeps readiness at 503."""
        app = create_app(
            AppDependencies(
                orchestrator=world.orchestrator,
                registry=ContractRegistry(contract_source),
                webhook_config=WebhookConfig(
                    webhook_secret=WEBHOOK_SECRET, callback_secret=CALLBACK_SECRET
                ),
            )
        )
        result = falcon.testing.TestClient(app).simulate_get("/ready")
        assert result.status == falcon.HTTP_503, "expected HTTP 503 from /ready"
        assert result.json["status"] == "loading"

    def test_ready_reports_fingerprint(
        self, app: falcon.asgi.App, world: DispatchWorld
    ) -> None:
        """A loaded registry is ready and exposes its fingerprint."""
        result = falcon.testing.TestClient(app).simulate_get("/ready")
        assert result.status == falcon.HTTP_200, "expected HTTP 200 from /ready"
        assert result.json["contracts_fingerprint"] == world.registry.snapshot.fingerprint


class TestWebhookEndpoint:
    """Tests for POST /webhooks/github."""

    @pytest.mark.asyncio
    async def test_admits_signed_pull_request_event(
        self, app: falcon.asgi.App, world: DispatchWorld
    ) -> None:
        """A signed synchronize event is admitted and scheduled."""
        body = pull_request_body()
        async with falcon.testing.ASGIConductor(app) as conductor:
            result = await conductor.simulate_post(
                "/webhooks/github",
                body=body,
                headers=signed_headers(body, delivery_id="delivery-a"),
            )

        assert result.status == falcon.HTTP_202, "expected HTTP 202"
        assert result.json == {
            "status": "admitted",
            "delivery_id": "delivery-a",
            "dispatch_key": "acme/checkout-service#42@abc123",
        }
        assert world.scheduler.scheduled == [KEY]

    @pytest.mark.asyncio
    async def test_redelivery_is_reported_as_duplicate(
        self, app: falcon.asgi.App, world: DispatchWorld
    ) -> None:
        """Redelivering the same head never schedules a second run."""
        body = pull_request_body()
        async with falcon.testing.ASGIConductor(app) as conductor:
            await conductor.simulate_post(
                "/webhooks/github", body=body, headers=signed_headers(body)
            )
            result = await conductor.simulate_post(
                "/webhooks/github", body=body, headers=signed_headers(body)
            )

        assert result.json["status"] == "duplicate"
        assert world.scheduler.scheduled == [KEY]

    @pytest.mark.asyncio
    async def test_irrelevant_events_are_acknowledged(
        self, app: falcon.asgi.App, world: DispatchWorld
    ) -> None:
        """Closed pull requests and other events are ignored with 202."""
        closed = pull_request_body(action="closed")
        push = b'{"ref": "refs/heads/main"}'
        async with falcon.testing.ASGIConductor(app) as conductor:
            closed_result = await conductor.simulate_post(
                "/webhooks/github", body=closed, headers=signed_headers(closed)
            )
            push_result = await conductor.simulate_post(
                "/webhooks/github", body=push, headers=signed_headers(push, event="push")
            )

        assert closed_result.status == falcon.HTTP_202
        assert closed_result.json["status"] == "ignored"
        assert push_result.json["status"] == "ignored"
        assert world.scheduler.scheduled == []

    @pytest.mark.asyncio
    async def test_bad_signature_is_rejected(
        self,
        app: falcon.asgi.App,
        world: DispatchWorld,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        """Deliveries signed with another secret never reach admission."""
        body = pull_request_body()
        async with falcon.testing.ASGIConductor(app) as conductor:
            result = await conductor.simulate_post(
                "/webhooks/github",
                body=body,
                headers=signed_headers(body, secret="not-the-secret"),  # noqa: S106
            )

        assert result.status == falcon.HTTP_401, "expected HTTP 401"
        assert result.json["reason"] == "signature_mismatch"
        assert world.scheduler.scheduled == []
        async with session_factory() as session:
            rows = (await session.scalars(select(DispatchRecord))).all()
        assert rows == [], "no dispatch record is written"

    @pytest.mark.asyncio
    async def test_late_older_push_is_reported_superseded(
        self, app: falcon.asgi.App, world: DispatchWorld
    ) -> None:
        """A push delivered after its successor is never scheduled."""
        newer = pull_request_body(head_sha="def456", before="abc123")
        older = pull_request_body(head_sha="abc123")
        async with falcon.testing.ASGIConductor(app) as conductor:
            await conductor.simulate_post(
                "/webhooks/github", body=newer, headers=signed_headers(newer)
            )
            result = await conductor.simulate_post(
                "/webhooks/github", body=older, headers=signed_headers(older)
            )

        assert result.status == falcon.HTTP_202, "expected HTTP 202"
        assert result.json["status"] == "superseded"
        assert [key.head_sha for key in world.scheduler.scheduled] == ["def456"]


class TestValidationResultEndpoint:
    """Tests for POST /validation-results."""

    @pytest.mark.asyncio
    async def test_completed_callback_publishes(
        self, app: falcon.asgi.App, world: DispatchWorld
    ) -> None:
        """A result for a running dispatch is published to the pull request."""
        body = pull_request_body()
        async with falcon.testing.ASGIConductor(app) as conductor:
            await conductor.simulate_post(
                "/webhooks/github", body=body, headers=signed_headers(body)
            )
            assert await world.orchestrator.advance(KEY) is DispatchState.RUNNING
            callback_body, headers = _callback(_completed())
            result = await conductor.simulate_post(
                "/validation-results", body=callback_body, headers=headers
            )

        assert result.status == falcon.HTTP_200, "expected HTTP 200"
        assert result.json == {
            "status": "completed",
            "dispatch_key": "acme/checkout-service#42@abc123",
        }
        [comment] = world.surface.comments_for("acme/checkout-service", 42)
        assert "order_total" in comment.body

    @pytest.mark.asyncio
    async def test_unknown_dispatch_key_is_404(self, app: falcon.asgi.App) -> None:
        """Callbacks for keys Tollgate never admitted are rejected."""
        callback_body, headers = _callback(_completed())
        async with falcon.testing.ASGIConductor(app) as conductor:
            result = await conductor.simulate_post(
                "/validation-results", body=callback_body, headers=headers
            )

        assert result.status == falcon.HTTP_404, "expected HTTP 404"

    @pytest.mark.asyncio
    async def test_malformed_callback_is_400(self, app: falcon.asgi.App) -> None:
        """Bodies that do not decode as callbacks are client errors."""
        callback_body, headers = _callback({"outcome": "completed"})
        async with falcon.testing.ASGIConductor(app) as conductor:
            result = await conductor.simulate_post(
                "/validation-results", body=callback_body, headers=headers
            )

        assert result.status == falcon.HTTP_400, "expected HTTP 400"

    @pytest.mark.asyncio
    async def test_completed_callback_requires_severity(self, app: falcon.asgi.App) -> None:
        """A completed outcome without a severity is rejected."""
        payload = _completed()
        del payload["severity"]
        callback_body, headers = _callback(payload)
        async with falcon.testing.ASGIConductor(app) as conductor:
            result = await conductor.simulate_post(
                "/validation-results", body=callback_body, headers=headers
            )

        assert result.status == falcon.HTTP_400, "expected HTTP 400"
        assert result.json["field"] == "severity"

    @pytest.mark.asyncio
    async def test_webhook_secret_cannot_sign_callbacks(self, app: falcon.asgi.App) -> None:
        """Callbacks must be signed with the callback secret."""
        callback_body = msgspec.json.encode(_completed())
        async with falcon.testing.ASGIConductor(app) as conductor:
            result = await conductor.simulate_post(
                "/validation-results",
                body=callback_body,
                headers={
                    CALLBACK_SIGNATURE_HEADER: compute_signature(WEBHOOK_SECRET, callback_body)
                },
            )

        assert result.status == falcon.HTTP_401, "expected HTTP 401"


class TestContractReloadEndpoint:
    """Tests for POST /contracts/reload."""

    @pytest.mark.asyncio
    async def test_signed_reload_swaps_snapshot(
        self,
        app: falcon.asgi.App,
        world: DispatchWorld,
        contract_source: ContractSource,
    ) -> None:
        """A valid source is reloaded and summarised."""
        contract_source.mapping_path.write_text(
            "version: 1\nproducers:\n  - repository: acme/checkout-service\n"
            "    contracts: [orders, payments]\n",
            encoding="utf-8",
        )
        body = b"{}"
        async with falcon.testing.ASGIConductor(app) as conductor:
            result = await conductor.simulate_post(
                "/contracts/reload",
                body=body,
                headers={"X-Hub-Signature-256": compute_signature(WEBHOOK_SECRET, body)},
            )

        assert result.status == falcon.HTTP_200, "expected HTTP 200"
        assert result.json["status"] == "reloaded"
        assert result.json["producers"] == 1
        assert [c.id for c in world.registry.resolve("acme/checkout-service")] == [
            "orders",
            "payments",
        ]

    @pytest.mark.asyncio
    async def test_broken_source_keeps_previous_snapshot(
        self,
        app: falcon.asgi.App,
        world: DispatchWorld,
        contract_source: ContractSource,
    ) -> None:
        """A rejected reload answers 422 and leaves the registry unchanged."""
        before = world.registry.snapshot.fingerprint
        contract_source.mapping_path.write_text("producers: [", encoding="utf-8")
        body = b""
        async with falcon.testing.ASGIConductor(app) as conductor:
            result = await conductor.simulate_post(
                "/contracts/reload",
                body=body,
                headers={"X-Hub-Signature-256": compute_signature(WEBHOOK_SECRET, body)},
            )

        assert result.status == falcon.HTTP_422, "expected HTTP 422"
        assert result.json["issues"]
        assert world.registry.snapshot.fingerprint == before

    @pytest.mark.asyncio
    async def test_unsigned_reload_is_rejected(self, app: falcon.asgi.App) -> None:
        """Reloads require the webhook secret."""
        async with falcon.testing.ASGIConductor(app) as conductor:
            result = await conductor.simulate_post("/contracts/reload", body=b"")

        assert result.status == falcon.HTTP_401, "expected HTTP 401"
        assert result.json["reason"] == "missing_signature"
