"""Generic service capabilities composed per resource.

A resource service subclasses the capabilities it supports, for example::

    class Trackers(Creator, Updater, Deleter):
        entity = Tracker
        read_dto = TrackerRead
        update_dto = TrackerUpdate
        create_dto = TrackerCreate

Every method takes the SQLAlchemy session first. Mutating methods commit on
success and roll back on failure.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy import true
from sqlalchemy.orm import Session

from crudgeneric.errors import ConfigurationError, InvalidArgumentError, NotFoundError
from crudgeneric.field_copy import DEFAULT_IGNORE, copy_fields
from crudgeneric.hooks import ServiceHooks
from crudgeneric.mapping.fields import entity_mapper, primary_key_name
from crudgeneric.mapping.registry import MappingRegistry
from crudgeneric.mapping.relation import RelationMapper
from crudgeneric.paging import FilterGroup, PageFilterRequest, PageQueryBuilder, PageRequest
from crudgeneric.schemas import Page, is_new

logger = logging.getLogger(__name__)

TEntity = TypeVar("TEntity")
TRead = TypeVar("TRead")


@contextmanager
def transaction(db: Session) -> Iterator[None]:
    try:
        yield
        db.commit()
    except Exception:
        db.rollback()
        raise


class ServiceBase(Generic[TEntity, TRead]):
    entity: type[TEntity] | None = None
    read_dto: type[TRead] | None = None

    def __init__(self, registry: MappingRegistry, hooks: ServiceHooks | None = None):
        self.registry = registry
        self.hooks = hooks or ServiceHooks()

    @classmethod
    def _require(cls, name: str) -> type:
        value = getattr(cls, name, None)
        if value is None:
            raise ConfigurationError(f"{cls.__name__}.{name} must be set")
        return value

    @property
    def entity_name(self) -> str:
        return self._require("entity").__name__

    def required_mappings(self) -> list[tuple[type, type]]:
        return []

    def _pk_column(self):
        entity = self._require("entity")
        mapper = entity_mapper(entity)
        if mapper is None:
            raise ConfigurationError(f"{entity.__name__} is not a mapped entity")
        return getattr(entity, primary_key_name(entity))

    def _map_read(self, db: Session, entity: TEntity) -> TRead:
        return self.registry.map(entity, self._require("read_dto"), db)

    def _map_entity(self, db: Session, obj: Any) -> TEntity:
        return self.registry.map(obj, self._require("entity"), db)

    def _not_found(self, entity_id: Any) -> NotFoundError:
        return NotFoundError(
            f"Entity {self.entity_name} id: {entity_id} was not found",
            details={"id": entity_id},
        )


class Reader(ServiceBase[TEntity, TRead]):
    def required_mappings(self) -> list[tuple[type, type]]:
        entity, read_dto = self._require("entity"), self._require("read_dto")
        return super().required_mappings() + [(entity, read_dto), (read_dto, entity)]

    def get_by_id_optional(self, db: Session, entity_id: Any) -> TRead | None:
        entity = db.get(self._require("entity"), entity_id)
        if entity is None:
            return None
        return self._map_read(db, entity)

    def get_by_id(self, db: Session, entity_id: Any) -> TRead:
        dto = self.get_by_id_optional(db, entity_id)
        if dto is None:
            raise self._not_found(entity_id)
        return dto

    def get_by_ids(self, db: Session, entity_ids: Iterable[Any]) -> list[TRead]:
        ids = list(dict.fromkeys(entity_ids))
        if not ids:
            return []
        pk = self._pk_column()
        pk_name = pk.key
        rows = db.query(self._require("entity")).filter(pk.in_(ids)).all()
        by_id = {getattr(row, pk_name): row for row in rows}
        return [self._map_read(db, by_id[i]) for i in ids if i in by_id]

    def exists(self, db: Session, entity_id: Any) -> bool:
        pk = self._pk_column()
        query = db.query(self._require("entity")).filter(pk == entity_id)
        return db.query(query.exists()).scalar()

    def count(self, db: Session) -> int:
        return db.query(self._require("entity")).count()

    def list(self, db: Session) -> list[TRead]:
        rows = db.query(self._require("entity")).order_by(self._pk_column()).all()
        return [self._map_read(db, row) for row in rows]

    def list_page(
        self,
        db: Session,
        page_request: PageRequest,
        *predicates,
        filters: FilterGroup | None = None,
        field_paths: Mapping[str, str] | None = None,
    ) -> Page[TRead]:
        entity = self._require("entity")
        builder = PageQueryBuilder(db.query(entity), entity, field_paths)
        conditions = list(predicates)
        if filters is not None and not filters.is_empty():
            conditions.append(filters.to_predicate(builder))
        builder.where(conditions or [true()]).order(page_request.sort)
        total = builder.count()
        rows = builder.paginate(page_request.page, page_request.size).all()
        return Page[self._require("read_dto")](
            items=[self._map_read(db, row) for row in rows],
            total=total,
            page=page_request.page,
            size=page_request.size,
        )

    def list_filtered(
        self,
        db: Session,
        request: PageFilterRequest,
        field_paths: Mapping[str, str] | None = None,
    ) -> Page[TRead]:
        return self.list_page(
            db, request.page_request, filters=request.group, field_paths=field_paths
        )


class Updater(Reader[TEntity, TRead]):
    update_dto: type | None = None
    ignore_partial_fields: frozenset[str] = DEFAULT_IGNORE

    def required_mappings(self) -> list[tuple[type, type]]:
        return super().required_mappings() + [
            (self._require("update_dto"), self._require("entity"))
        ]

    def update(self, db: Session, dto: Any) -> TRead:
        return self._run_update(db, dto)

    def update_partial(self, db: Session, entity_id: Any, partial: Any) -> TRead:
        self._check_id(entity_id, self._require("read_dto"))
        target = self.get_by_id(db, entity_id)
        target = copy_fields(partial, target, self.ignore_partial_fields)
        return self._run_update(db, self._revalidate(target))

    def _revalidate(self, target: Any) -> Any:
        # Assignment is not validated, so check the patched projection as a whole.
        if not isinstance(target, BaseModel):
            return target
        values = {name: getattr(target, name) for name in type(target).model_fields}
        try:
            return type(target).model_validate(values)
        except ValidationError as exc:
            logger.warning("Rejected partial update of %s", type(target).__name__)
            raise InvalidArgumentError(
                f"Invalid partial update of {self.entity_name}",
                details={
                    "errors": exc.errors(
                        include_url=False, include_context=False, include_input=False
                    )
                },
            ) from exc

    def _check_id(self, entity_id: Any, kind: type) -> None:
        if is_new(entity_id):
            logger.warning("Rejected update of %s without id", kind.__name__)
            raise InvalidArgumentError(
                f"Updated entity: {kind.__name__} should have id: (not null OR 0), "
                f"but was id: {entity_id}"
            )

    def _run_update(self, db: Session, dto: Any) -> TRead:
        entity_id = getattr(dto, "id", None)
        self._check_id(entity_id, type(dto))
        if db.get(self._require("entity"), entity_id) is None:
            raise self._not_found(entity_id)
        with transaction(db):
            entity = self._map_entity(db, dto)
            self.hooks.run("before_update", entity)
            entity = db.merge(entity)
        db.refresh(entity)
        result = self._map_read(db, entity)
        self.hooks.run("after_update", result)
        return result


class Deleter(ServiceBase[TEntity, TRead]):
    def delete(self, db: Session, entity_id: Any) -> None:
        self.hooks.run("before_delete", entity_id)
        with transaction(db):
            entity = db.get(self._require("entity"), entity_id)
            if entity is None:
                raise self._not_found(entity_id)
            db.delete(entity)
        self.hooks.run("after_delete", entity_id)

    def delete_all(self, db: Session, items: Iterable[Any]) -> int:
        """Delete every existing row among ``items``; unknown ids are skipped."""
        entity_type = self._require("entity")
        deleted = 0
        with transaction(db):
            for item in items:
                entity_id = getattr(item, "id", item)
                entity = db.get(entity_type, entity_id)
                if entity is None:
                    continue
                db.delete(entity)
                deleted += 1
        return deleted


class _CreatorBase(ServiceBase[TEntity, TRead]):
    def _ensure_new(self, entity: TEntity) -> TEntity:
        pk_name = primary_key_name(type(entity))
        entity_id = getattr(entity, pk_name, None)
        if not is_new(entity_id):
            raise InvalidArgumentError(
                f"wrong id: {entity_id} to save new entity id should be null"
            )
        if entity_id is not None:
            setattr(entity, pk_name, None)
        return entity

    def _persist(self, db: Session, entities: list[TEntity]) -> None:
        db.add_all(entities)
        db.flush()


class Creator(_CreatorBase[TEntity, TRead]):
    create_dto: type | None = None

    def required_mappings(self) -> list[tuple[type, type]]:
        return super().required_mappings() + [
            (self._require("create_dto"), self._require("entity"))
        ]

    def create(self, db: Session, dto: Any) -> TRead:
        self.hooks.run("before_create", dto)
        with transaction(db):
            entity = self._ensure_new(self._map_entity(db, dto))
            self._persist(db, [entity])
        db.refresh(entity)
        result = self._map_read(db, entity)
        self.hooks.run("after_create", result)
        return result

    def create_all(self, db: Session, dtos: Iterable[Any]) -> list[TRead]:
        dtos = list(dtos)
        self.hooks.run("before_create_all", dtos)
        with transaction(db):
            entities = [self._ensure_new(self._map_entity(db, dto)) for dto in dtos]
            self._persist(db, entities)
        results = []
        for entity in entities:
            db.refresh(entity)
            results.append(self._map_read(db, entity))
        self.hooks.run("after_create_all", results)
        return results


class RelationCreator(_CreatorBase[TEntity, TRead]):
    relation: RelationMapper | None = None

    def required_mappings(self) -> list[tuple[type, type]]:
        relation = self._require("relation")
        return super().required_mappings() + [(relation.create_dto, relation.entity)]

    def create_for(self, db: Session, relation_id: Any, dto: Any) -> TRead:
        relation = self._require("relation")
        self.hooks.run("before_create_for", relation_id, dto)
        with transaction(db):
            entity = self._ensure_new(relation.map(self.registry, db, relation_id, dto))
            self._persist(db, [entity])
        db.refresh(entity)
        result = self._map_read(db, entity)
        self.hooks.run("after_create_for", relation_id, result)
        return result

    def create_all_for(self, db: Session, relation_id: Any, dtos: Iterable[Any]) -> list[TRead]:
        relation = self._require("relation")
        dtos = list(dtos)
        with transaction(db):
            # Every entity is checked before any of the batch is added.
            entities = [
                self._ensure_new(entity)
                for entity in relation.map_all(self.registry, db, relation_id, dtos)
            ]
            self._persist(db, entities)
        results = []
        for entity in entities:
            db.refresh(entity)
            results.append(self._map_read(db, entity))
        return results
