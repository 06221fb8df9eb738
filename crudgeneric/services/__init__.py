from crudgeneric.services.crud import (
    Creator,
    Deleter,
    Reader,
    RelationCreator,
    ServiceBase,
    Updater,
    transaction,
)

__all__ = [
    "Creator",
    "Deleter",
    "Reader",
    "RelationCreator",
    "ServiceBase",
    "Updater",
    "transaction",
]
