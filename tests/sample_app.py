"""Small tracker/driver application used by the test suite."""

from types import SimpleNamespace

from pydantic import ConfigDict
from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crudgeneric.api import build_crud_router
from crudgeneric.db import Base, get_db
from crudgeneric.main import create_app
from crudgeneric.mapping import (
    ConverterMapping,
    DirectMapping,
    MappingRegistry,
    PresetEntityMapping,
    RelationMapper,
)
from crudgeneric.schemas import CreateDto, ReadDto, UpdateDto
from crudgeneric.services import Creator, Deleter, Reader, RelationCreator, Updater


class Tracker(Base):
    __tablename__ = "trackers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    imei: Mapped[str | None] = mapped_column(String(20))
    phone_number: Mapped[str | None] = mapped_column(String(20))


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str | None] = mapped_column(String(80))


class Driver(Base):
    __tablename__ = "drivers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str | None] = mapped_column(String(80))
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"))

    user: Mapped[User | None] = relationship()


class Shipment(Base):
    __tablename__ = "shipments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    label: Mapped[str | None] = mapped_column(String(40))
    sender_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"))
    receiver_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"))

    sender: Mapped[User | None] = relationship(foreign_keys=[sender_id])
    receiver: Mapped[User | None] = relationship(foreign_keys=[receiver_id])


class TrackerRead(ReadDto):
    id: int | None = None
    imei: str | None = None
    phone_number: str | None = None


class TrackerView(ReadDto):
    model_config = ConfigDict(frozen=True)

    id: int | None = None
    label: str


class TrackerCreate(CreateDto):
    imei: str
    phone_number: str | None = None


class TrackerUpdate(UpdateDto):
    id: int
    imei: str | None = None
    phone_number: str | None = None


class UserRead(ReadDto):
    id: int | None = None
    name: str | None = None


class UserCreate(CreateDto):
    name: str


class DriverRead(ReadDto):
    id: int | None = None
    name: str | None = None
    user_id: int | None = None
    user_name: str | None = None


class DriverCreate(CreateDto):
    name: str


class DriverUpdate(UpdateDto):
    id: int
    name: str | None = None


class ShipmentCreate(CreateDto):
    label: str


class Trackers(Creator, Updater, Deleter):
    entity = Tracker
    read_dto = TrackerRead
    update_dto = TrackerUpdate
    create_dto = TrackerCreate


class Users(Creator, Reader):
    entity = User
    read_dto = UserRead
    create_dto = UserCreate


class Drivers(Creator, RelationCreator, Updater, Deleter):
    entity = Driver
    read_dto = DriverRead
    update_dto = DriverUpdate
    create_dto = DriverCreate
    relation = RelationMapper(DriverCreate, Driver, User)


def tracker_view(tracker: Tracker) -> TrackerView:
    return TrackerView(id=tracker.id, label=f"{tracker.imei} / {tracker.phone_number}")


def mappings() -> list:
    return [
        DirectMapping(Tracker, TrackerRead),
        DirectMapping(TrackerRead, Tracker),
        DirectMapping(TrackerCreate, Tracker),
        DirectMapping(TrackerUpdate, Tracker),
        ConverterMapping(Tracker, TrackerView, tracker_view),
        DirectMapping(User, UserRead),
        DirectMapping(UserRead, User),
        DirectMapping(UserCreate, User),
        DirectMapping(Driver, DriverRead, fields={"user_name": "user.name"}),
        DirectMapping(DriverRead, Driver),
        DirectMapping(DriverCreate, Driver),
        PresetEntityMapping(DriverUpdate, Driver),
    ]


def build_services(registry: MappingRegistry | None = None) -> SimpleNamespace:
    registry = registry or MappingRegistry()
    return SimpleNamespace(
        registry=registry,
        trackers=Trackers(registry),
        users=Users(registry),
        drivers=Drivers(registry),
    )


def all_services(services: SimpleNamespace) -> list:
    return [services.trackers, services.users, services.drivers]


def build_app(db_session, guards=None, view=None, view_model=None):
    """FastAPI app over the sample services, bound to ``db_session``."""
    services = build_services()
    routers = [
        build_crud_router(
            services.trackers,
            prefix="/trackers",
            tags=["trackers"],
            guards=guards,
            view=view,
            view_model=view_model,
            field_paths={"phone": "phone_number"},
            filter_fields={"imei": "eq", "phone": "like"},
        ),
        build_crud_router(services.users, prefix="/users", tags=["users"]),
        build_crud_router(
            services.drivers,
            prefix="/drivers",
            tags=["drivers"],
            field_paths={"userName": "user.name"},
        ),
    ]
    app = create_app(
        services.registry,
        mappings(),
        all_services(services),
        routers,
        title="crudgeneric-test",
    )

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    return app
