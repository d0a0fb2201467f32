"""Typed contract and mapping document structures."""

from __future__ import annotations

import enum

import msgspec


class EnumEvolution(enum.StrEnum):
    """How a contract tolerates enum values it does not list."""

    STRICT = "strict"
    ADDITIVE = "additive"


class EnumSpec(msgspec.Struct, kw_only=True, frozen=True):
    """Allowed values for an enumerated field.

    Attributes
    ----------
    values
        Values the contract knows about. Under ``strict`` evolution these are
        the sole source of truth for allowed values.
    evolution
        ``strict`` rejects new values until the contract is updated;
        ``additive`` tolerates new values.

    """

    values: tuple[str, ...]
    evolution: EnumEvolution = EnumEvolution.STRICT


class RangeRule(msgspec.Struct, kw_only=True, frozen=True, tag="range", tag_field="type"):
    """Numeric range quality rule (``type: range``).

    Attributes
    ----------
    minimum
        Inclusive lower bound, written as ``min`` in YAML.
    maximum
        Inclusive upper bound, written as ``max`` in YAML.

    """

    minimum: float | None = msgspec.field(default=None, name="min")
    maximum: float | None = msgspec.field(default=None, name="max")


# Range is the only rule kind today; new kinds join this alias as a tagged union.
type QualityRule = RangeRule


class FieldSpec(msgspec.Struct, kw_only=True, frozen=True):
    """One field of a data contract.

    Attributes
    ----------
    name
        Field name, unique within the contract.
    type
        Declared type as written in the contract (``string``, ``decimal``...).
    required
        Whether producers must always populate the field.
    description
        Optional free text for reviewers.
    enum
        Optional enumerated values with their evolution policy.
    quality
        Quality rules applied to the field's values.

    """

    name: str
    type: str
    required: bool = False
    description: str | None = None
    enum: EnumSpec | None = None
    quality: tuple[RangeRule, ...] = ()


class ContractDocument(msgspec.Struct, kw_only=True, frozen=True):
    """A data contract describing one topic's schema and rules.

    Attributes
    ----------
    id
        Contract identifier referenced from the mapping document.
    version
        Contract version as published by its owners.
    topic
        Optional name of the data topic the contract governs.
    owner
        Optional owning team.
    description
        Optional narrative.
    fields
        Field specifications in declaration order.

    """

    id: str
    version: int | str
    topic: str | None = None
    owner: str | None = None
    description: str | None = None
    fields: tuple[FieldSpec, ...] = ()

    @property
    def field_names(self) -> tuple[str, ...]:
        """Return field names in declaration order."""
        return tuple(spec.name for spec in self.fields)

    def get_field(self, name: str) -> FieldSpec | None:
        """Return the field called ``name`` or ``None``."""
        return next((spec for spec in self.fields if spec.name == name), None)


class ProducerMapping(msgspec.Struct, kw_only=True, frozen=True):
    """Contracts a single producer repository is bound to."""

    repository: str
    contracts: tuple[str, ...]


class MappingDocument(msgspec.Struct, kw_only=True, frozen=True):
    """Top-level producer-to-contract mapping document.

    Attributes
    ----------
    version
        Schema version number for the mapping file.
    producers
        Producer repositories and the ordered contracts each must satisfy.

    """

    version: int
    producers: tuple[ProducerMapping, ...] = ()
