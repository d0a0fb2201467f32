"""In-memory contract registry with atomic snapshot reloads.

Readers call :meth:`ContractRegistry.resolve` without locking: each call reads
the current :class:`RegistrySnapshot` reference once and works against that
immutable object. :meth:`ContractRegistry.reload` builds a complete
replacement snapshot first and only then swaps the reference, so a reader
sees either the old mapping or the new one, never a mix.

Usage
-----
>>> registry = ContractRegistry(ContractSource(mapping_path, contracts_dir))
>>> registry.load()
>>> [contract.id for contract in registry.resolve("acme/checkout-service")]
['orders']

"""

from __future__ import annotations

import dataclasses as dc
import threading
import types
import typing as typ

from tollgate.common.slug import normalize_repo_slug
from tollgate.common.time import utcnow
from tollgate.logging import get_logger, log_error, log_info

from .errors import RegistryNotLoadedError, ResolutionError
from .loader import load_contracts

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from .loader import ContractSource, LoadedContracts
    from .models import ContractDocument

logger = get_logger(__name__)


@dc.dataclass(frozen=True, slots=True)
class ContractMapping:
    """Ordered contract ids a producer repository must satisfy."""

    producer_repo: str
    contract_ids: tuple[str, ...]


@dc.dataclass(frozen=True, slots=True)
class RegistrySnapshot:
    """Immutable view of one successful load.

    Attributes
    ----------
    contracts
        Contract documents keyed by contract id.
    mappings
        Producer mappings keyed by normalised repository slug.
    fingerprint
        Hash of the source files this snapshot was built from.
    loaded_at
        When the snapshot was built.

    """

    contracts: cabc.Mapping[str, ContractDocument]
    mappings: cabc.Mapping[str, ContractMapping]
    fingerprint: str
    loaded_at: dt.datetime

    @classmethod
    def build(cls, loaded: LoadedContracts) -> RegistrySnapshot:
        """Index validated documents into a read-only snapshot."""
        contracts = {contract.id: contract for contract in loaded.contracts}
        mappings: dict[str, ContractMapping] = {}
        for producer in loaded.mapping.producers:
            slug = normalize_repo_slug(producer.repository)
            mappings[slug] = ContractMapping(
                producer_repo=slug,
                contract_ids=tuple(producer.contracts),
            )
        return cls(
            contracts=types.MappingProxyType(contracts),
            mappings=types.MappingProxyType(mappings),
            fingerprint=loaded.fingerprint,
            loaded_at=utcnow(),
        )

    def mapping_for(self, producer_repo: str) -> ContractMapping | None:
        """Return the mapping for ``producer_repo`` or ``None`` when unmapped."""
        try:
            slug = normalize_repo_slug(producer_repo)
        except ValueError:
            return None
        return self.mappings.get(slug)

    def resolve(self, producer_repo: str) -> tuple[ContractDocument, ...]:
        """Return the contracts bound to ``producer_repo`` in mapping order."""
        mapping = self.mapping_for(producer_repo)
        if mapping is None:
            return ()
        return tuple(self.contracts[contract_id] for contract_id in mapping.contract_ids)


class ContractRegistry:
    """Resolve producer repositories to the contracts they must satisfy.

    Parameters
    ----------
    source
        Where the mapping and contract documents live.

    """

    def __init__(self, source: ContractSource) -> None:
        """Store the source; nothing is read until :meth:`load`."""
        self._source = source
        self._snapshot: RegistrySnapshot | None = None
        self._reload_lock = threading.Lock()

    @property
    def source(self) -> ContractSource:
        """Return the configured contract source."""
        return self._source

    @property
    def is_loaded(self) -> bool:
        """Return whether at least one load has succeeded."""
        return self._snapshot is not None

    @property
    def snapshot(self) -> RegistrySnapshot:
        """Return the snapshot currently in service.

        Raises
        ------
        RegistryNotLoadedError
            If no load has succeeded yet.

        """
        snapshot = self._snapshot
        if snapshot is None:
            raise RegistryNotLoadedError
        return snapshot

    def load(self) -> RegistrySnapshot:
        """Load the registry for the first time; alias of :meth:`reload`."""
        return self.reload()

    def reload(self) -> RegistrySnapshot:
        """Rebuild the snapshot from source and swap it in atomically.

        On failure the previous snapshot stays in service and the
        :class:`ResolutionError` propagates to the caller.
        """
        with self._reload_lock:
            try:
                snapshot = RegistrySnapshot.build(load_contracts(self._source))
            except ResolutionError as exc:
                log_error(
                    logger,
                    "Contract reload failed with %d issue(s); keeping %s snapshot",
                    len(exc.issues),
                    "previous" if self._snapshot is not None else "no",
                )
                raise
            self._snapshot = snapshot

        log_info(
            logger,
            "Loaded %d contract(s) for %d producer(s) fingerprint=%s",
            len(snapshot.contracts),
            len(snapshot.mappings),
            snapshot.fingerprint[:12],
        )
        return snapshot

    def resolve(self, producer_repo: str) -> tuple[ContractDocument, ...]:
        """Return the contracts for ``producer_repo``; empty when unmapped."""
        return self.snapshot.resolve(producer_repo)
