"""Page, sort and filter translation into SQLAlchemy queries.

Sort syntax is a comma-separated list of tokens, each an optional sign
(``-`` descending, ``+`` or nothing ascending) followed by a logical field
name. Logical names are rewritten through a field-path dictionary before
they are resolved against the model; dotted paths join relationships.
"""

from __future__ import annotations

import enum
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, Field, field_validator
from sqlalchemy import and_, or_

from crudgeneric.config import settings
from crudgeneric.errors import InvalidArgumentError
from crudgeneric.mapping.fields import entity_mapper

SORT_TOKEN = re.compile(r"^([+-]?)([A-Za-z_][\w.]*)$")


class PageRequest(BaseModel):
    page: int = Field(default=0, ge=0)
    size: int = Field(default_factory=lambda: settings.default_page_size, ge=1)
    sort: str = Field(default_factory=lambda: settings.default_sort)

    @field_validator("size", mode="after")
    @classmethod
    def validate_size(cls, v: int) -> int:
        if v > settings.max_page_size:
            raise ValueError(f"size must not exceed {settings.max_page_size}")
        return v


@dataclass(frozen=True)
class SortOrder:
    field: str
    descending: bool = False

    @property
    def token(self) -> str:
        return f"-{self.field}" if self.descending else self.field


def parse_sort(sort: str | None) -> list[SortOrder]:
    orders = []
    for raw in (sort or "").split(","):
        token = raw.strip()
        if not token:
            continue
        match = SORT_TOKEN.match(token)
        if match is None:
            raise InvalidArgumentError(f"Invalid sort token: {token!r}")
        sign, name = match.groups()
        orders.append(SortOrder(name, sign == "-"))
    return orders


def rewrite_sort(sort: str | None, field_paths: Mapping[str, str] | None) -> str:
    """Rewrite the field of every sort token through ``field_paths``."""
    paths = field_paths or {}
    return ",".join(
        SortOrder(paths.get(order.field, order.field), order.descending).token
        for order in parse_sort(sort)
    )


def and_predicates(*predicates):
    if not predicates:
        raise InvalidArgumentError("expect at least one predicate")
    if len(predicates) == 1:
        return predicates[0]
    return and_(*predicates)


def or_predicates(*predicates):
    if not predicates:
        raise InvalidArgumentError("expect at least one predicate")
    if len(predicates) == 1:
        return predicates[0]
    return or_(*predicates)


class PageQueryBuilder:
    """Resolve logical fields to columns and build a paged query."""

    def __init__(self, query, model: type, field_paths: Mapping[str, str] | None = None):
        self.query = query
        self.model = model
        self.field_paths = dict(field_paths or {})
        self._joined: set[str] = set()

    def column(self, name: str):
        """Resolve a logical field name through the field paths."""
        return self.resolve(self.field_paths.get(name, name), name)

    def resolve(self, path: str, name: str | None = None):
        """Resolve a model attribute path, joining relationships on the way."""
        name = name or path
        current = self.model
        parts = path.split(".")
        for depth, part in enumerate(parts[:-1]):
            mapper = entity_mapper(current)
            if mapper is None or part not in mapper.relationships:
                raise InvalidArgumentError(f"Invalid field: {name}")
            join_key = ".".join(parts[: depth + 1])
            if join_key not in self._joined:
                self.query = self.query.join(getattr(current, part))
                self._joined.add(join_key)
            current = mapper.relationships[part].mapper.class_
        mapper = entity_mapper(current)
        if mapper is None or parts[-1] not in mapper.column_attrs:
            raise InvalidArgumentError(f"Invalid field: {name}")
        return getattr(current, parts[-1])

    def where(self, predicates: Iterable) -> "PageQueryBuilder":
        self.query = self.query.filter(and_predicates(*predicates))
        return self

    def order(self, sort: str | None) -> "PageQueryBuilder":
        # Resolve every column first; resolution may add joins to self.query.
        columns = []
        for order in parse_sort(rewrite_sort(sort, self.field_paths)):
            column = self.resolve(order.field)
            columns.append(column.desc() if order.descending else column.asc())
        if columns:
            self.query = self.query.order_by(*columns)
        return self

    def count(self) -> int:
        return self.query.order_by(None).count()

    def paginate(self, page: int, size: int):
        return self.query.limit(size).offset(page * size)

    def build(self, page_request: PageRequest, predicates: Iterable):
        return self.where(predicates).order(page_request.sort).paginate(
            page_request.page, page_request.size
        )


def build_page_query(
    query,
    model: type,
    page_request: PageRequest,
    predicates: Iterable,
    field_paths: Mapping[str, str] | None = None,
):
    """Apply predicates, sort and pagination. Zero predicates is an error."""
    predicates = list(predicates)
    if not predicates:
        raise InvalidArgumentError("expect at least one predicate")
    return PageQueryBuilder(query, model, field_paths).build(page_request, predicates)


class Condition(enum.Enum):
    AND = "and"
    OR = "or"


@dataclass(frozen=True)
class Filter:
    name: str
    value: Any
    op: str = "eq"

    def is_empty(self) -> bool:
        return self.value is None or self.value == ""

    def to_predicate(self, builder: PageQueryBuilder):
        column = builder.column(self.name)
        if self.op == "eq":
            return column == self._coerce(column)
        if self.op == "like":
            return column.ilike(f"%{self.value}%")
        raise InvalidArgumentError(f"Unsupported filter operation: {self.op}")

    def _coerce(self, column):
        # Query string values arrive as text; compare them as the column type.
        if not isinstance(self.value, str):
            return self.value
        try:
            python_type = column.expression.type.python_type
        except NotImplementedError:
            return self.value
        if python_type is str:
            return self.value
        if python_type is bool:
            return self.value.lower() in ("true", "1", "yes")
        try:
            return python_type(self.value)
        except (TypeError, ValueError) as exc:
            raise InvalidArgumentError(
                f"Invalid value for {self.name}: {self.value!r}"
            ) from exc


@dataclass(frozen=True)
class FilterGroup:
    filters: tuple[Filter, ...] = ()
    condition: Condition = Condition.AND
    subgroups: tuple["FilterGroup", ...] = field(default=())

    def is_empty(self) -> bool:
        return not self.filters and all(group.is_empty() for group in self.subgroups)

    def to_predicate(self, builder: PageQueryBuilder):
        parts = [f.to_predicate(builder) for f in self.filters]
        parts.extend(g.to_predicate(builder) for g in self.subgroups if not g.is_empty())
        if self.condition is Condition.OR:
            return or_predicates(*parts)
        return and_predicates(*parts)


@dataclass(frozen=True)
class PageFilterRequest:
    page: int
    size: int
    sort: str
    group: FilterGroup

    @property
    def page_request(self) -> PageRequest:
        return PageRequest(page=self.page, size=self.size, sort=self.sort)


def _page_filter_request(page_request: PageRequest, condition: Condition, filters) -> PageFilterRequest:
    kept = tuple(f for f in filters if not f.is_empty())
    return PageFilterRequest(
        page=page_request.page,
        size=page_request.size,
        sort=page_request.sort,
        group=FilterGroup(kept, condition),
    )


def page_request_and(page_request: PageRequest, *filters: Filter) -> PageFilterRequest:
    return _page_filter_request(page_request, Condition.AND, filters)


def page_request_or(page_request: PageRequest, *filters: Filter) -> PageFilterRequest:
    return _page_filter_request(page_request, Condition.OR, filters)
