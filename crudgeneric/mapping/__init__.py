from crudgeneric.mapping.checker import MappingChecker
from crudgeneric.mapping.registry import MappingRegistry, reference
from crudgeneric.mapping.relation import RelationMapper
from crudgeneric.mapping.rules import (
    ConverterMapping,
    DirectMapping,
    MappingRule,
    PresetEntityMapping,
)

__all__ = [
    "ConverterMapping",
    "DirectMapping",
    "MappingChecker",
    "MappingRegistry",
    "MappingRule",
    "PresetEntityMapping",
    "RelationMapper",
    "reference",
]
