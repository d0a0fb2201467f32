"""Contract registry: documents, producer mappings, and hot reload.

Contracts are YAML documents describing a topic's fields, enums, and quality
rules. A mapping document binds producer repositories to the ordered list of
contracts each one must satisfy. The registry validates both together and
serves immutable snapshots; a bad edit is rejected without disturbing the
snapshot already in service.

Quick examples
--------------

Lint a contract repository::

    >>> from pathlib import Path
    >>> from tollgate.contracts import ContractSource, load_contracts
    >>> load_contracts(ContractSource(Path("mapping.yaml"), Path("contracts")))

Resolve a producer::

    >>> registry = ContractRegistry(ContractSource.from_env())
    >>> registry.load()
    >>> registry.resolve("acme/checkout-service")
"""

from __future__ import annotations

from .errors import RegistryNotLoadedError, ResolutionError
from .loader import (
    ContractSource,
    LoadedContracts,
    load_contract,
    load_contracts,
    load_mapping,
    source_fingerprint,
)
from .models import (
    ContractDocument,
    EnumEvolution,
    EnumSpec,
    FieldSpec,
    MappingDocument,
    ProducerMapping,
    RangeRule,
)
from .registry import ContractMapping, ContractRegistry, RegistrySnapshot
from .schema import build_contract_schema, build_mapping_schema, write_schemas
from .validation import validate_contract, validate_mapping
from .watch import ContractSourceWatcher

__all__ = [
    "ContractDocument",
    "ContractMapping",
    "ContractRegistry",
    "ContractSource",
    "ContractSourceWatcher",
    "EnumEvolution",
    "EnumSpec",
    "FieldSpec",
    "LoadedContracts",
    "MappingDocument",
    "ProducerMapping",
    "RangeRule",
    "RegistryNotLoadedError",
    "RegistrySnapshot",
    "ResolutionError",
    "build_contract_schema",
    "build_mapping_schema",
    "load_contract",
    "load_contracts",
    "load_mapping",
    "source_fingerprint",
    "validate_contract",
    "validate_mapping",
    "write_schemas",
]
