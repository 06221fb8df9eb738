from __future__ import annotations

import logging
from collections.abc import Iterable

from crudgeneric.errors import ConfigurationError

logger = logging.getLogger(__name__)


class MappingChecker:
    """Verify every service finds the mapping pairs it needs."""

    def __init__(self, registry):
        self.registry = registry

    def missing_pairs(self, services: Iterable) -> list[tuple[type, type]]:
        missing: list[tuple[type, type]] = []
        for service in services:
            for pair in service.required_mappings():
                if not self.registry.has_rule(*pair) and pair not in missing:
                    missing.append(pair)
        return missing

    def check(self, services: Iterable) -> None:
        missing = self.missing_pairs(services)
        if not missing:
            return
        names = [f"{src.__name__} -> {dst.__name__}" for src, dst in missing]
        logger.error("Missing mapping rules: %s", ", ".join(names))
        raise ConfigurationError(
            f"TypeMap for mapping {', '.join(names)} does not exist",
            details={"missing": names},
        )
