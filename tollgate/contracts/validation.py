"""Structural validation rules for contract and mapping documents."""

from __future__ import annotations

import re
import typing as typ

from tollgate.common.slug import normalize_repo_slug

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from .models import ContractDocument, FieldSpec, MappingDocument, RangeRule

CONTRACT_ID_PATTERN = re.compile(r"^[a-z0-9](?:[a-z0-9_-]{0,62}[a-z0-9])?$")

NUMERIC_TYPES = frozenset(
    {"int", "integer", "long", "float", "double", "decimal", "number", "numeric"}
)


def validate_contract(contract: ContractDocument) -> list[str]:
    """Return the structural problems found in ``contract``."""
    issues: list[str] = []

    if not CONTRACT_ID_PATTERN.match(contract.id):
        issues.append(
            f"contract id '{contract.id}' must match {CONTRACT_ID_PATTERN.pattern}"
        )

    seen: set[str] = set()
    for spec in contract.fields:
        if not spec.name.strip():
            issues.append(f"contract {contract.id} has a field without a name")
            continue
        if spec.name in seen:
            issues.append(f"contract {contract.id} declares field '{spec.name}' twice")
        seen.add(spec.name)
        issues.extend(_validate_field(contract.id, spec))

    return issues


def _validate_field(contract_id: str, spec: FieldSpec) -> list[str]:
    issues: list[str] = []
    label = f"contract {contract_id} field {spec.name}"

    if not spec.type.strip():
        issues.append(f"{label} is missing a type")

    if spec.enum is not None:
        if not spec.enum.values:
            issues.append(f"{label} declares an enum without values")
        if len(set(spec.enum.values)) != len(spec.enum.values):
            issues.append(f"{label} lists duplicate enum values")

    for rule in spec.quality:
        issues.extend(_validate_range(label, spec, rule))

    return issues


def _validate_range(label: str, spec: FieldSpec, rule: RangeRule) -> list[str]:
    issues: list[str] = []
    if rule.minimum is None and rule.maximum is None:
        issues.append(f"{label} range rule needs at least one of min or max")
    elif (
        rule.minimum is not None
        and rule.maximum is not None
        and rule.minimum > rule.maximum
    ):
        issues.append(
            f"{label} range rule has min {rule.minimum} greater than max {rule.maximum}"
        )
    if spec.type.strip().lower() not in NUMERIC_TYPES:
        issues.append(f"{label} range rule applies to non-numeric type '{spec.type}'")
    return issues


def validate_mapping(
    mapping: MappingDocument,
    known_contracts: cabc.Collection[str],
) -> list[str]:
    """Return the problems in ``mapping`` given the loaded contract ids."""
    issues: list[str] = []

    if mapping.version < 1:
        issues.append("mapping.version must be >= 1")

    seen_repos: set[str] = set()
    for producer in mapping.producers:
        try:
            slug = normalize_repo_slug(producer.repository)
        except ValueError as exc:
            issues.append(str(exc))
            continue

        if slug in seen_repos:
            issues.append(f"producer {slug} is mapped more than once")
        seen_repos.add(slug)

        if len(set(producer.contracts)) != len(producer.contracts):
            issues.append(f"producer {slug} lists a contract more than once")

        issues.extend(
            f"producer {slug} references unknown contract '{contract_id}'"
            for contract_id in producer.contracts
            if contract_id not in known_contracts
        )

    return issues
