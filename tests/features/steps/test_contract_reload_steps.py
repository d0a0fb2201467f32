"""Behavioural coverage for reloading the contract registry over HTTP.

Usage
-----
Run with pytest::

    pytest tests/features/steps/test_contract_reload_steps.py

"""

from __future__ import annotations

import typing as typ

from pytest_bdd import given, parsers, scenario, then, when

from tests.features.steps._tollgate_context import TollgateContext, build_context, post
from tests.helpers.contracts import ORDERS_CONTRACT
from tests.helpers.github_events import WEBHOOK_SECRET
from tollgate.webhooks.authenticator import compute_signature

if typ.TYPE_CHECKING:
    import asyncio

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from tollgate.contracts.loader import ContractSource

FEATURE = "../contract_reload.feature"


@scenario(FEATURE, "A new mapping takes effect after reload")
def test_mapping_change_reloads() -> None:
    """Wrapper for pytest-bdd scenario."""


@scenario(FEATURE, "A broken contract keeps the previous contracts in service")
def test_broken_contract_rejected() -> None:
    """Wrapper for pytest-bdd scenario."""


@given(
    "a Tollgate service with contracts for checkout-service",
    target_fixture="tollgate_context",
)
def given_service(
    runner: asyncio.Runner,
    bdd_session_factory: async_sessionmaker[AsyncSession],
    contract_source: ContractSource,
) -> TollgateContext:
    """Wire the service with the default contract source."""
    return build_context(runner, bdd_session_factory, contract_source)


@when(parsers.parse('the mapping adds "{contract_id}" for checkout-service'))
def when_mapping_extended(tollgate_context: TollgateContext, contract_id: str) -> None:
    """Rewrite the mapping so checkout-service also produces ``contract_id``."""
    tollgate_context["source"].mapping_path.write_text(
        "version: 1\n"
        "producers:\n"
        "  - repository: acme/checkout-service\n"
        f"    contracts: [orders, {contract_id}]\n",
        encoding="utf-8",
    )


@when(parsers.parse('the orders contract declares "{field}" twice'))
def when_field_duplicated(tollgate_context: TollgateContext, field: str) -> None:
    """Append a second declaration of ``field`` to the orders contract."""
    broken = f"{ORDERS_CONTRACT}  - name: {field}\n    type: string\n"
    path = tollgate_context["source"].contracts_dir / "orders.yaml"
    path.write_text(broken, encoding="utf-8")


@when("the contracts repository requests a reload")
def when_reload_requested(tollgate_context: TollgateContext) -> None:
    """Post a signed reload request."""
    body = b'{"ref": "refs/heads/main"}'
    headers = {"X-Hub-Signature-256": compute_signature(WEBHOOK_SECRET, body)}
    post(tollgate_context, "/contracts/reload", body, headers)


@then("the reload succeeds")
def then_reload_succeeds(tollgate_context: TollgateContext) -> None:
    """The endpoint reports the new snapshot."""
    response = tollgate_context["response"]
    assert response.status_code == 200, response.text
    assert response.json["status"] == "reloaded"


@then(parsers.parse('the reload is rejected with an issue mentioning "{text}"'))
def then_reload_rejected(tollgate_context: TollgateContext, text: str) -> None:
    """The endpoint answers 422 and lists the offending issue."""
    response = tollgate_context["response"]
    assert response.status_code == 422, response.text
    assert any(text in issue for issue in response.json["issues"]), response.json


@then(parsers.parse('checkout-service resolves to "{contract_ids}"'))
def then_resolves(tollgate_context: TollgateContext, contract_ids: str) -> None:
    """The registry in service maps checkout-service to the listed contracts."""
    resolved = tollgate_context["world"].registry.resolve("acme/checkout-service")
    assert ", ".join(contract.id for contract in resolved) == contract_ids
