import logging
from collections.abc import Callable, Mapping
from typing import Any

from fastapi import APIRouter, Body, Depends, Query, Request, status
from sqlalchemy.orm import Session

from crudgeneric.config import settings
from crudgeneric.db import get_db as default_get_db
from crudgeneric.errors import ConfigurationError, InvalidArgumentError
from crudgeneric.hooks import RouterGuards
from crudgeneric.paging import Filter, PageRequest, page_request_and
from crudgeneric.schemas import Page
from crudgeneric.services.crud import Creator, Deleter, Reader, RelationCreator, Updater

logger = logging.getLogger(__name__)


def _identity(dto):
    return dto


def build_crud_router(
    service,
    *,
    prefix: str = "",
    tags: list[str] | None = None,
    get_db: Callable = default_get_db,
    id_type: type = int,
    guards: RouterGuards | None = None,
    view: Callable[[Any], Any] | None = None,
    view_model: type | None = None,
    field_paths: Mapping[str, str] | None = None,
    filter_fields: Mapping[str, str] | None = None,
    relation_path: str = "/relation/{relation_id}",
    relation_id_type: type | None = None,
) -> APIRouter:
    """Build an APIRouter exposing the capabilities ``service`` implements.

    Args:
        service: A service composed from Reader/Updater/Deleter/Creator/RelationCreator.
        prefix: Route prefix (e.g., "/trackers").
        get_db: Session dependency; defaults to crudgeneric.db.get_db.
        id_type: Type of the path identifier.
        guards: Callbacks run before operations; may raise AuthenticationError
            or AuthorizationError to abort the request.
        view: Post-processing applied to every outgoing DTO.
        view_model: Response model when ``view`` changes the shape.
        field_paths: Logical field name -> model attribute path for sort and filters.
        filter_fields: Query parameter name -> filter operation ("eq" or "like").
        relation_path: Path of the relation create route; must contain {relation_id}.

    Returns:
        Configured APIRouter instance
    """
    router = APIRouter(prefix=prefix, tags=list(tags or []))
    root = "" if prefix else "/"
    guards = guards or RouterGuards()
    present = view or _identity
    response_model = view_model if view is not None else service.read_dto

    if isinstance(service, Reader):
        _add_read_routes(
            router, root, service, get_db, id_type, guards, present, response_model,
            field_paths, filter_fields or {},
        )
    if isinstance(service, Creator):
        _add_create_route(router, root, service, get_db, guards, present, response_model)
    if isinstance(service, RelationCreator):
        if "{relation_id}" not in relation_path:
            raise ConfigurationError(f"relation_path {relation_path!r} must contain {{relation_id}}")
        _add_relation_create_route(
            router, service, get_db, relation_id_type or id_type, relation_path,
            guards, present, response_model,
        )
    if isinstance(service, Updater):
        _add_update_routes(router, service, get_db, id_type, guards, present, response_model)
    if isinstance(service, Deleter):
        _add_delete_route(router, service, get_db, id_type, guards)

    logger.debug(
        "Created CRUD router for %s",
        type(service).__name__,
        extra={"prefix": prefix, "routes": [route.path for route in router.routes]},
    )
    return router


def _add_read_routes(
    router, root, service, get_db, id_type, guards, present, response_model,
    field_paths, filter_fields,
):
    page_model = Page[response_model] if response_model is not None else None

    def list_items(
        request: Request,
        page: int = Query(default=0, ge=0),
        size: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
        sort: str = Query(default=settings.default_sort),
        db: Session = Depends(get_db),
    ):
        guards.run("before_read", request, None)
        filters = [
            Filter(name, request.query_params[name], op)
            for name, op in filter_fields.items()
            if name in request.query_params
        ]
        result = service.list_filtered(
            db,
            page_request_and(PageRequest(page=page, size=size, sort=sort), *filters),
            field_paths=field_paths,
        )
        for dto in result.items:
            guards.run("after_read", request, dto)
        return {
            "items": [present(dto) for dto in result.items],
            "total": result.total,
            "page": result.page,
            "size": result.size,
        }

    def get_item(item_id: id_type, request: Request, db: Session = Depends(get_db)):
        guards.run("before_read", request, item_id)
        dto = service.get_by_id(db, item_id)
        guards.run("after_read", request, dto)
        return present(dto)

    router.add_api_route(
        root, list_items, methods=["GET"], response_model=page_model, summary="List page"
    )
    router.add_api_route(
        "/{item_id}", get_item, methods=["GET"], response_model=response_model, summary="Get by id"
    )


def _add_create_route(router, root, service, get_db, guards, present, response_model):
    create_dto = service.create_dto

    def create_item(payload: create_dto, request: Request, db: Session = Depends(get_db)):
        guards.run("before_create", request, payload)
        return present(service.create(db, payload))

    router.add_api_route(
        root,
        create_item,
        methods=["POST"],
        response_model=response_model,
        status_code=status.HTTP_200_OK,
        summary="Save new",
    )


def _add_relation_create_route(
    router, service, get_db, relation_id_type, relation_path, guards, present, response_model
):
    create_dto = service.relation.create_dto

    def create_related_item(
        relation_id: relation_id_type,
        payload: create_dto,
        request: Request,
        db: Session = Depends(get_db),
    ):
        guards.run("before_create", request, payload)
        return present(service.create_for(db, relation_id, payload))

    router.add_api_route(
        relation_path,
        create_related_item,
        methods=["POST"],
        response_model=response_model,
        status_code=status.HTTP_200_OK,
        summary="Save new with relation",
    )


def _add_update_routes(router, service, get_db, id_type, guards, present, response_model):
    update_dto = service.update_dto

    def update_item(
        item_id: id_type, payload: update_dto, request: Request, db: Session = Depends(get_db)
    ):
        if item_id != payload.id:
            raise InvalidArgumentError("wrong id", details={"path_id": item_id, "body_id": payload.id})
        guards.run("before_update", request, payload)
        return present(service.update(db, payload))

    def update_item_partial(
        item_id: id_type,
        request: Request,
        payload: dict[str, Any] = Body(...),
        db: Session = Depends(get_db),
    ):
        guards.run("before_update", request, payload)
        return present(service.update_partial(db, item_id, payload))

    router.add_api_route(
        "/{item_id}", update_item, methods=["PUT"], response_model=response_model, summary="Update"
    )
    router.add_api_route(
        "/{item_id}",
        update_item_partial,
        methods=["PATCH"],
        response_model=response_model,
        summary="Partial update",
    )


def _add_delete_route(router, service, get_db, id_type, guards):
    def delete_item(item_id: id_type, request: Request, db: Session = Depends(get_db)):
        guards.run("before_delete", request, item_id)
        service.delete(db, item_id)

    router.add_api_route(
        "/{item_id}",
        delete_item,
        methods=["DELETE"],
        status_code=status.HTTP_204_NO_CONTENT,
        summary="Delete by id",
    )
