"""JSON Schema generation for contract and mapping documents."""

from __future__ import annotations

import json
import typing as typ
from pathlib import Path  # noqa: TC003

import msgspec

from .models import ContractDocument, MappingDocument

CONTRACT_SCHEMA_ID = "https://tollgate.example/schemas/contract.json"
MAPPING_SCHEMA_ID = "https://tollgate.example/schemas/mapping.json"


def build_contract_schema() -> dict[str, typ.Any]:
    """Return the JSON Schema for a single contract document."""
    schema = msgspec.json.schema(ContractDocument)
    schema["$id"] = CONTRACT_SCHEMA_ID
    return schema


def build_mapping_schema() -> dict[str, typ.Any]:
    """Return the JSON Schema for the producer mapping document."""
    schema = msgspec.json.schema(MappingDocument)
    schema["$id"] = MAPPING_SCHEMA_ID
    return schema


def write_schemas(directory: Path) -> tuple[Path, Path]:
    """Write ``contract.schema.json`` and ``mapping.schema.json`` to ``directory``.

    Returns
    -------
    tuple[Path, Path]
        The contract schema path and the mapping schema path.

    """
    directory.mkdir(parents=True, exist_ok=True)
    contract_path = directory / "contract.schema.json"
    mapping_path = directory / "mapping.schema.json"
    contract_path.write_text(
        json.dumps(build_contract_schema(), indent=2), encoding="utf-8"
    )
    mapping_path.write_text(json.dumps(build_mapping_schema(), indent=2), encoding="utf-8")
    return contract_path, mapping_path
