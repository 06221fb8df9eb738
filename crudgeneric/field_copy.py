"""Copy named fields from a loosely typed source onto a typed target.

Used for partial updates: only fields present on the source are written,
everything else on the target keeps its current value.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Mapping
from typing import Any, TypeVar

from pydantic import BaseModel

T = TypeVar("T")

DEFAULT_IGNORE = frozenset({"id"})


def source_fields(source: Any, ignore: Iterable[str] = ()) -> dict[str, Any]:
    """Return the name -> value pairs present on ``source``.

    Pydantic models contribute only explicitly set fields, so defaults never
    masquerade as payload values.
    """
    ignored = set(ignore)
    if source is None:
        return {}
    if isinstance(source, Mapping):
        items = dict(source)
    elif isinstance(source, BaseModel):
        items = {name: getattr(source, name) for name in source.model_fields_set}
    elif dataclasses.is_dataclass(source) and not isinstance(source, type):
        items = {f.name: getattr(source, f.name) for f in dataclasses.fields(source)}
    elif hasattr(source, "__dict__"):
        items = {k: v for k, v in vars(source).items() if not k.startswith("_")}
    else:
        raise TypeError(f"Cannot read fields from {type(source).__name__}")
    return {name: value for name, value in items.items() if name not in ignored}


def _is_settable(target: Any, name: str) -> bool:
    if isinstance(target, BaseModel):
        return name in type(target).model_fields
    if dataclasses.is_dataclass(target):
        return name in {f.name for f in dataclasses.fields(target)}
    attr = getattr(type(target), name, None)
    if isinstance(attr, property):
        return attr.fset is not None
    if attr is not None:
        # Class-level descriptors such as SQLAlchemy instrumented attributes.
        return hasattr(attr, "__set__") or not callable(attr)
    return name in getattr(target, "__dict__", {})


def copy_fields(source: Any, target: T, ignore: Iterable[str] = DEFAULT_IGNORE) -> T:
    """Assign every matching source field onto ``target``.

    Unmatched source names are skipped silently. The target is mutated in
    place and returned, except for frozen pydantic models which are copied
    with the update applied.
    """
    updates = {
        name: value
        for name, value in source_fields(source, ignore).items()
        if _is_settable(target, name)
    }
    if isinstance(target, BaseModel) and target.model_config.get("frozen"):
        return target.model_copy(update=updates)
    for name, value in updates.items():
        setattr(target, name, value)
    return target
