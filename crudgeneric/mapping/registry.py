from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from sqlalchemy.orm import Session, make_transient_to_detached

from crudgeneric.config import settings
from crudgeneric.errors import ConfigurationError
from crudgeneric.mapping.checker import MappingChecker
from crudgeneric.mapping.fields import entity_mapper, primary_key_name
from crudgeneric.mapping.rules import MappingRule

logger = logging.getLogger(__name__)


def _pair_name(source_type: type, destination_type: type) -> str:
    return f"{source_type.__name__} -> {destination_type.__name__}"


class MappingRegistry:
    """Process-wide table of mapping rules.

    Rules are registered once through `configure`; afterwards the registry is
    read-only and safe to share between request threads.
    """

    def __init__(self, *, skip_none: bool | None = None):
        self.skip_none = settings.skip_none if skip_none is None else skip_none
        self._rules: dict[tuple[type, type], MappingRule] = {}
        self._configured = False

    @property
    def configured(self) -> bool:
        return self._configured

    def add_rule(self, rule: MappingRule) -> None:
        if self._configured:
            raise ConfigurationError(
                f"Cannot register {rule!r}: mapping registry is already configured"
            )
        if rule.key in self._rules:
            raise ConfigurationError(
                f"Mapping {_pair_name(*rule.key)} is registered more than once"
            )
        self._rules[rule.key] = rule
        logger.debug("Registered mapping rule %r", rule)

    def configure(self, mappings: Iterable, services: Iterable = ()) -> None:
        """Register every declared mapping, freeze, then verify services."""
        if self._configured:
            raise ConfigurationError("Mapping registry is already configured")
        for mapping in mappings:
            mapping.register(self)
        self._configured = True
        MappingChecker(self).check(services)
        logger.info("Mapping registry configured with %d rules", len(self._rules))

    def has_rule(self, source_type: type, destination_type: type) -> bool:
        return (source_type, destination_type) in self._rules

    def rule_for(self, source_type: type, destination_type: type) -> MappingRule:
        if not self._configured:
            raise ConfigurationError(
                f"Mapping {_pair_name(source_type, destination_type)} requested "
                "before the mapping registry was configured"
            )
        rule = self._rules.get((source_type, destination_type))
        if rule is None:
            raise ConfigurationError(
                f"TypeMap for mapping {_pair_name(source_type, destination_type)} does not exist"
            )
        return rule

    def map(self, source: Any, destination_type: type, db: Session | None = None) -> Any:
        if source is None:
            return None
        rule = self.rule_for(type(source), destination_type)
        return rule.apply(source, db=db, skip_none=self.skip_none)

    def map_all(
        self, sources: Iterable | None, destination_type: type, db: Session | None = None
    ) -> list | None:
        if sources is None:
            return None
        return [self.map(source, destination_type, db) for source in sources]


def reference(db: Session, entity_type: type, entity_id: Any) -> Any:
    """Return a session-attached instance for ``entity_id`` without a SELECT.

    An instance already in the identity map is reused; otherwise a stub
    carrying only the primary key is attached as persistent. A missing row
    surfaces as an integrity error on flush.
    """
    mapper = entity_mapper(entity_type)
    if mapper is None:
        raise ConfigurationError(f"{entity_type.__name__} is not a mapped entity")
    if len(mapper.primary_key) != 1:
        raise ConfigurationError(
            f"{entity_type.__name__} has a composite primary key; references need a single id"
        )
    existing = db.identity_map.get(db.identity_key(entity_type, entity_id))
    if existing is not None:
        return existing
    stub = entity_type()
    setattr(stub, primary_key_name(entity_type), entity_id)
    make_transient_to_detached(stub)
    db.add(stub)
    return stub
