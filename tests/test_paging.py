import pytest
from pydantic import ValidationError

from crudgeneric.config import settings
from crudgeneric.errors import InvalidArgumentError
from crudgeneric.paging import (
    Condition,
    Filter,
    FilterGroup,
    PageQueryBuilder,
    PageRequest,
    SortOrder,
    and_predicates,
    build_page_query,
    or_predicates,
    page_request_and,
    page_request_or,
    parse_sort,
    rewrite_sort,
)
from tests.sample_app import Driver, Tracker, TrackerCreate


def test_page_request_defaults():
    request = PageRequest()
    assert request.page == 0
    assert request.size == settings.default_page_size
    assert request.sort == "-id"


def test_page_request_bounds():
    with pytest.raises(ValidationError):
        PageRequest(page=-1)
    with pytest.raises(ValidationError):
        PageRequest(size=0)
    with pytest.raises(ValidationError):
        PageRequest(size=settings.max_page_size + 1)


def test_parse_sort():
    assert parse_sort("-name, +age,id") == [
        SortOrder("name", True),
        SortOrder("age", False),
        SortOrder("id", False),
    ]
    assert parse_sort("") == []
    with pytest.raises(InvalidArgumentError, match="Invalid sort token"):
        parse_sort("name;drop")


def test_rewrite_sort_uses_exact_names():
    paths = {"userName": "user.name", "name": "full_name"}
    assert rewrite_sort("-userName,+name,id", paths) == "-user.name,full_name,id"
    assert rewrite_sort("-userNameX", paths) == "-userNameX"
    assert rewrite_sort("-name", None) == "-name"


def test_rewrite_sort_is_idempotent_for_rewritten_fields():
    paths = {"userName": "user.name"}
    once = rewrite_sort("-userName", paths)
    assert rewrite_sort(once, paths) == once


def test_combinators_need_at_least_one_predicate():
    with pytest.raises(InvalidArgumentError, match="expect at least one predicate"):
        and_predicates()
    with pytest.raises(InvalidArgumentError, match="expect at least one predicate"):
        or_predicates()
    single = Tracker.imei == "1"
    assert and_predicates(single) is single
    assert or_predicates(single) is single


def test_page_request_constructors_drop_empty_filters():
    request = page_request_and(
        PageRequest(page=2, size=5, sort="imei"),
        Filter("imei", "1"),
        Filter("phone", ""),
        Filter("name", None),
    )
    assert request.group == FilterGroup((Filter("imei", "1"),), Condition.AND)
    assert request.page_request == PageRequest(page=2, size=5, sort="imei")
    assert page_request_or(PageRequest()).group.condition is Condition.OR
    assert page_request_or(PageRequest()).group.is_empty()


def test_build_page_query_rejects_zero_predicates(db_session):
    with pytest.raises(InvalidArgumentError):
        build_page_query(db_session.query(Tracker), Tracker, PageRequest(), [])


def test_build_page_query_rejects_unknown_sort_field(db_session):
    with pytest.raises(InvalidArgumentError, match="Invalid field: colour"):
        build_page_query(
            db_session.query(Tracker), Tracker, PageRequest(sort="colour"), [Tracker.id > 0]
        )


def test_build_page_query_pages_and_sorts(db_session, services):
    services.trackers.create_all(
        db_session, [TrackerCreate(imei=str(n)) for n in range(1, 6)]
    )
    query = build_page_query(
        db_session.query(Tracker),
        Tracker,
        PageRequest(page=1, size=2, sort="-serial"),
        [Tracker.imei != "5"],
        field_paths={"serial": "imei"},
    )
    assert [row.imei for row in query.all()] == ["2", "1"]


def test_column_joins_relation_once(db_session):
    builder = PageQueryBuilder(db_session.query(Driver), Driver, {"userName": "user.name"})
    builder.column("userName")
    builder.column("user.id")
    assert builder._joined == {"user"}
    with pytest.raises(InvalidArgumentError):
        builder.column("user.missing")
    with pytest.raises(InvalidArgumentError):
        builder.column("vehicle.name")


def test_filter_coerces_query_string_to_column_type(db_session, services):
    created = services.trackers.create(db_session, TrackerCreate(imei="1"))
    builder = PageQueryBuilder(db_session.query(Tracker), Tracker)
    predicate = Filter("id", str(created.id)).to_predicate(builder)
    assert builder.where([predicate]).query.one().id == created.id
    with pytest.raises(InvalidArgumentError, match="Invalid value for id"):
        Filter("id", "abc").to_predicate(builder)


def test_unsupported_filter_operation(db_session):
    builder = PageQueryBuilder(db_session.query(Tracker), Tracker)
    with pytest.raises(InvalidArgumentError, match="Unsupported filter operation"):
        Filter("imei", "1", "gt").to_predicate(builder)


def test_nested_filter_groups(db_session, services):
    services.trackers.create_all(
        db_session,
        [
            TrackerCreate(imei="1", phone_number="+372"),
            TrackerCreate(imei="2", phone_number="+358"),
            TrackerCreate(imei="3", phone_number="+372"),
        ],
    )
    group = FilterGroup(
        (Filter("phone_number", "+372"),),
        Condition.AND,
        (FilterGroup((Filter("imei", "1"), Filter("imei", "2")), Condition.OR),),
    )
    page = services.trackers.list_page(db_session, PageRequest(sort="imei"), filters=group)
    assert [dto.imei for dto in page.items] == ["1"]


def test_order_rewrites_sort_fields_once(db_session, services):
    services.trackers.create_all(
        db_session,
        [
            TrackerCreate(imei="1", phone_number="+2"),
            TrackerCreate(imei="2", phone_number="+1"),
        ],
    )
    builder = PageQueryBuilder(
        db_session.query(Tracker), Tracker, {"serial": "imei", "imei": "phone_number"}
    )
    rows = builder.order("-serial").query.all()
    assert [row.imei for row in rows] == ["2", "1"]
