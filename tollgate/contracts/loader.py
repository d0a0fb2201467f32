"""YAML loaders for contract and mapping documents."""

from __future__ import annotations

import dataclasses as dc
import hashlib
import os
import typing as typ
from pathlib import Path

import msgspec
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .errors import ResolutionError
from .models import ContractDocument, MappingDocument
from .validation import validate_contract, validate_mapping

YAML_VERSION = (1, 2)
CONTRACT_SUFFIXES = (".yaml", ".yml")

_T = typ.TypeVar("_T")


@dc.dataclass(frozen=True, slots=True)
class ContractSource:
    """Filesystem locations of the mapping document and contract documents.

    Attributes
    ----------
    mapping_path
        YAML file mapping producer repositories to contract ids.
    contracts_dir
        Directory holding one YAML contract document per file.

    """

    mapping_path: Path
    contracts_dir: Path

    @classmethod
    def from_env(cls) -> ContractSource:
        """Build the source from ``TOLLGATE_CONTRACTS_MAPPING``/``_DIR``."""
        mapping = os.environ.get("TOLLGATE_CONTRACTS_MAPPING", "").strip()
        contracts_dir = os.environ.get("TOLLGATE_CONTRACTS_DIR", "").strip()
        missing = [
            name
            for name, value in (
                ("TOLLGATE_CONTRACTS_MAPPING", mapping),
                ("TOLLGATE_CONTRACTS_DIR", contracts_dir),
            )
            if not value
        ]
        if missing:
            msg = f"{', '.join(missing)} must be set"
            raise ValueError(msg)
        return cls(mapping_path=Path(mapping), contracts_dir=Path(contracts_dir))

    def contract_paths(self) -> list[Path]:
        """Return contract document paths in a stable order."""
        if not self.contracts_dir.is_dir():
            return []
        mapping = self.mapping_path.resolve()
        return sorted(
            path
            for path in self.contracts_dir.rglob("*")
            if path.is_file()
            and path.suffix in CONTRACT_SUFFIXES
            and path.resolve() != mapping
        )


@dc.dataclass(frozen=True, slots=True)
class LoadedContracts:
    """Validated documents read from a :class:`ContractSource`."""

    mapping: MappingDocument
    contracts: tuple[ContractDocument, ...]
    fingerprint: str


def source_fingerprint(source: ContractSource) -> str:
    """Hash file names and contents so any edit yields a new fingerprint."""
    digest = hashlib.sha256()
    for path in (source.mapping_path, *source.contract_paths()):
        digest.update(str(path).encode("utf-8"))
        digest.update(b"\0")
        try:
            digest.update(path.read_bytes())
        except OSError:
            digest.update(b"<unreadable>")
        digest.update(b"\0")
    return digest.hexdigest()


def load_contract(path: Path | str) -> ContractDocument:
    """Parse and validate a single contract document."""
    path_obj = Path(path)
    contract = _load_document(path_obj, ContractDocument)
    issues = validate_contract(contract)
    if issues:
        raise ResolutionError.for_source(str(path_obj), issues)
    return contract


def load_mapping(path: Path | str) -> MappingDocument:
    """Parse a mapping document without cross-checking contract ids."""
    return _load_document(Path(path), MappingDocument)


def load_contracts(source: ContractSource) -> LoadedContracts:
    """Load every document in ``source`` and validate them together.

    All files are read before failing so operators see every problem at
    once.

    Raises
    ------
    ResolutionError
        If any document is unreadable, fails schema conversion, or breaks a
        structural rule, or if the mapping references unknown contracts.

    """
    fingerprint = source_fingerprint(source)
    issues: list[str] = []
    contracts: dict[str, ContractDocument] = {}

    paths = source.contract_paths()
    if not paths:
        issues.append(f"{source.contracts_dir}: no contract documents found")

    for path in paths:
        try:
            contract = load_contract(path)
        except ResolutionError as exc:
            issues.extend(exc.issues)
            continue
        if contract.id in contracts:
            issues.append(f"{path}: duplicate contract id '{contract.id}'")
            continue
        contracts[contract.id] = contract

    try:
        mapping = load_mapping(source.mapping_path)
    except ResolutionError as exc:
        issues.extend(exc.issues)
    else:
        issues.extend(
            f"{source.mapping_path}: {issue}"
            for issue in validate_mapping(mapping, contracts.keys())
        )

    if issues:
        raise ResolutionError(issues)

    return LoadedContracts(
        mapping=mapping,
        contracts=tuple(contracts.values()),
        fingerprint=fingerprint,
    )


def _load_document(path: Path, document_type: type[_T]) -> _T:
    try:
        loaded = _yaml().load(path.read_text(encoding="utf-8"))
    except (OSError, YAMLError) as exc:
        raise ResolutionError.for_source(
            str(path), [f"failed to parse YAML: {exc}"]
        ) from exc

    if loaded is None:
        raise ResolutionError.for_source(str(path), ["document is empty"])

    try:
        return msgspec.convert(loaded, type=document_type)
    except msgspec.ValidationError as exc:
        raise ResolutionError.for_source(
            str(path), [f"schema validation failed: {exc}"]
        ) from exc


def _yaml() -> YAML:
    yaml = YAML(typ="safe")
    yaml.version = YAML_VERSION
    yaml.allow_duplicate_keys = False
    return yaml
