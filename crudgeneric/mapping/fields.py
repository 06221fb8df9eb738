"""Field discovery and construction helpers shared by mapping rules."""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Mapper


def entity_mapper(tp: type) -> Mapper | None:
    mapper = sa_inspect(tp, raiseerr=False)
    return mapper if isinstance(mapper, Mapper) else None


def field_names(tp: type) -> list[str]:
    """Return the attribute names a type exposes for field matching."""
    if isinstance(tp, type) and issubclass(tp, BaseModel):
        return list(tp.model_fields)
    if dataclasses.is_dataclass(tp):
        return [f.name for f in dataclasses.fields(tp)]
    mapper = entity_mapper(tp)
    if mapper is not None:
        return [attr.key for attr in mapper.attrs]
    return list(getattr(tp, "__annotations__", {}))


def primary_key_name(tp: type) -> str:
    mapper = entity_mapper(tp)
    if mapper is None:
        return "id"
    return mapper.get_property_by_column(mapper.primary_key[0]).key


def read_path(source: Any, path: str) -> Any:
    """Resolve a dotted attribute path, returning None on the first gap."""
    value = source
    for part in path.split("."):
        if value is None:
            return None
        if isinstance(value, Mapping):
            value = value.get(part)
        else:
            value = getattr(value, part, None)
    return value


def construct(tp: type, values: dict[str, Any]) -> Any:
    if isinstance(tp, type) and issubclass(tp, BaseModel):
        return tp.model_validate(values, from_attributes=True)
    return tp(**values)


def required_field_names(tp: type) -> set[str]:
    """Names a constructor cannot omit. Mapped entities accept any subset."""
    if isinstance(tp, type) and issubclass(tp, BaseModel):
        return {name for name, info in tp.model_fields.items() if info.is_required()}
    if dataclasses.is_dataclass(tp):
        return {
            f.name
            for f in dataclasses.fields(tp)
            if f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING
        }
    return set()
