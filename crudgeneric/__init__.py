from crudgeneric.api import build_crud_router
from crudgeneric.errors import (
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
    CrudError,
    InvalidArgumentError,
    NotFoundError,
    register_error_handlers,
)
from crudgeneric.field_copy import copy_fields
from crudgeneric.hooks import RouterGuards, ServiceHooks
from crudgeneric.main import create_app, crud_lifespan
from crudgeneric.mapping import (
    ConverterMapping,
    DirectMapping,
    MappingRegistry,
    PresetEntityMapping,
    RelationMapper,
)
from crudgeneric.paging import Filter, PageRequest, page_request_and, page_request_or
from crudgeneric.schemas import CreateDto, Page, ReadDto, UpdateDto
from crudgeneric.services import Creator, Deleter, Reader, RelationCreator, Updater

__all__ = [
    "AuthenticationError",
    "AuthorizationError",
    "ConfigurationError",
    "ConverterMapping",
    "CreateDto",
    "Creator",
    "CrudError",
    "Deleter",
    "DirectMapping",
    "Filter",
    "InvalidArgumentError",
    "MappingRegistry",
    "NotFoundError",
    "Page",
    "PageRequest",
    "PresetEntityMapping",
    "ReadDto",
    "Reader",
    "RelationCreator",
    "RelationMapper",
    "RouterGuards",
    "ServiceHooks",
    "UpdateDto",
    "Updater",
    "build_crud_router",
    "copy_fields",
    "create_app",
    "crud_lifespan",
    "page_request_and",
    "page_request_or",
    "register_error_handlers",
]
