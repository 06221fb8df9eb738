"""Mapping rules, one per (source type, destination type) pair.

Three shapes are supported:

- ``DirectMapping`` copies matching field names (optionally renamed or
  flattened through dotted paths) into a freshly constructed destination.
- ``ConverterMapping`` delegates construction to a factory, for read views
  that have no setters.
- ``PresetEntityMapping`` applies matched fields onto the persisted entity
  loaded by the source id, so updates land on the session-managed instance.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from crudgeneric.errors import ConfigurationError, InvalidArgumentError, NotFoundError
from crudgeneric.mapping.fields import (
    construct,
    field_names,
    primary_key_name,
    read_path,
    required_field_names,
)
from crudgeneric.schemas import is_new

logger = logging.getLogger(__name__)


class MappingRule:
    def __init__(self, source: type, destination: type):
        self.source = source
        self.destination = destination

    @property
    def key(self) -> tuple[type, type]:
        return (self.source, self.destination)

    def register(self, registry) -> None:
        registry.add_rule(self)

    def apply(self, source: Any, *, db=None, skip_none: bool = True) -> Any:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.source.__name__} -> {self.destination.__name__})"


class _FieldMatchingRule(MappingRule):
    def __init__(
        self,
        source: type,
        destination: type,
        *,
        fields: dict[str, str] | None = None,
        specific: Callable[[Any, Any], None] | None = None,
    ):
        super().__init__(source, destination)
        self.fields = dict(fields or {})
        self.specific = specific
        self._paths: dict[str, str] | None = None

    def register(self, registry) -> None:
        self._paths = self._resolve_paths()
        super().register(registry)

    def _resolve_paths(self) -> dict[str, str]:
        destination_names = field_names(self.destination)
        unknown = sorted(set(self.fields) - set(destination_names))
        if unknown:
            raise ConfigurationError(
                f"{self!r}: unknown destination fields {', '.join(unknown)}"
            )
        source_names = set(field_names(self.source))
        paths = {}
        for name in destination_names:
            if name in self.fields:
                paths[name] = self.fields[name]
            elif name in source_names:
                paths[name] = name
        return paths

    def matched_values(self, source: Any, skip_none: bool) -> dict[str, Any]:
        if self._paths is None:
            self._paths = self._resolve_paths()
        values = {}
        for name, path in self._paths.items():
            value = read_path(source, path)
            if value is None and skip_none:
                continue
            values[name] = value
        return values


class DirectMapping(_FieldMatchingRule):
    def apply(self, source: Any, *, db=None, skip_none: bool = True) -> Any:
        values = self.matched_values(source, skip_none=False)
        if skip_none:
            # Required destination fields still receive None and let validation decide.
            required = required_field_names(self.destination)
            values = {k: v for k, v in values.items() if v is not None or k in required}
        destination = construct(self.destination, values)
        if self.specific is not None:
            self.specific(source, destination)
        return destination


class ConverterMapping(MappingRule):
    def __init__(self, source: type, destination: type, factory: Callable[[Any], Any]):
        super().__init__(source, destination)
        self.factory = factory

    def apply(self, source: Any, *, db=None, skip_none: bool = True) -> Any:
        return self.factory(source)


class PresetEntityMapping(_FieldMatchingRule):
    def apply(self, source: Any, *, db=None, skip_none: bool = True) -> Any:
        if db is None:
            raise ConfigurationError(f"{self!r} requires a database session")
        entity_id = getattr(source, "id", None)
        if is_new(entity_id):
            raise InvalidArgumentError(f"{self!r} applies only to persisted entities")
        persisted = db.get(self.destination, entity_id)
        if persisted is None:
            raise NotFoundError(
                f"{self.destination.__name__} id: {entity_id} was not found",
                details={"id": entity_id},
            )
        pk_name = primary_key_name(self.destination)
        for name, value in self.matched_values(source, skip_none).items():
            if name != pk_name:
                setattr(persisted, name, value)
        if self.specific is not None:
            self.specific(source, persisted)
        logger.debug("Applied %r onto persisted id %s", self, entity_id)
        return persisted
