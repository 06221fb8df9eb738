from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from crudgeneric.errors import ConfigurationError
from crudgeneric.mapping.fields import entity_mapper
from crudgeneric.mapping.registry import reference


class RelationMapper:
    """Build an entity from a create payload and attach it to a related row.

    The relation attribute is either named explicitly or found as the single
    many-to-one/one-to-one relationship targeting ``related``. Resolution
    happens on construction, so misconfiguration fails at startup.
    """

    def __init__(self, create_dto: type, entity: type, related: type, *, field: str | None = None):
        self.create_dto = create_dto
        self.entity = entity
        self.related = related
        self.field = self._resolve_field(field)

    def _resolve_field(self, field: str | None) -> str:
        mapper = entity_mapper(self.entity)
        if mapper is None:
            raise ConfigurationError(f"{self.entity.__name__} is not a mapped entity")
        candidates = [
            rel.key
            for rel in mapper.relationships
            if rel.mapper.class_ is self.related and not rel.uselist
        ]
        if field is not None:
            if field not in candidates:
                raise ConfigurationError(
                    f"Field {field!r} of {self.entity.__name__} is not a relation "
                    f"to {self.related.__name__}"
                )
            return field
        if not candidates:
            raise ConfigurationError(
                f"Field with type: {self.related.__name__} was not found in "
                f"object: {self.entity.__name__}"
            )
        if len(candidates) > 1:
            raise ConfigurationError(
                f"Multiple fields of type: {self.related.__name__} found in "
                f"object: {self.entity.__name__}",
                details={"fields": candidates},
            )
        return candidates[0]

    def map(self, registry, db, relation_id: Any, dto: Any) -> Any:
        entity = registry.map(dto, self.entity, db)
        setattr(entity, self.field, reference(db, self.related, relation_id))
        return entity

    def map_all(self, registry, db, relation_id: Any, dtos: Iterable) -> list:
        return [self.map(registry, db, relation_id, dto) for dto in dtos]
