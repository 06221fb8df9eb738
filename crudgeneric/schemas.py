from __future__ import annotations

from numbers import Number
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict

T = TypeVar("T")


def is_new(value: Any) -> bool:
    """Return True when an identifier (or an object's ``id``) is unset.

    An id is unset when it is None or a number equal to zero.
    """
    if value is not None and not isinstance(value, (Number, str, bytes)) and hasattr(value, "id"):
        value = value.id
    if value is None:
        return True
    if isinstance(value, Number) and not isinstance(value, bool):
        return value == 0
    return False


class ReadDto(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Any = None

    def is_new(self) -> bool:
        return is_new(self.id)


class UpdateDto(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Any

    def is_new(self) -> bool:
        return is_new(self.id)


class CreateDto(BaseModel):
    # No id field: a create payload never refers to a persisted row.
    model_config = ConfigDict(extra="forbid")


class Page(BaseModel, Generic[T]):
    items: list[T]
    total: int
    page: int
    size: int
