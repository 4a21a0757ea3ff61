"""Pytest configuration and fixtures."""

from datetime import date

import pytest
from dependency_injector import providers
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from core.base import Base
from core.config import settings
from core.containers import TransportContainer, transport_config_from_settings
from core.rate_limiter import limiter
from src.transport_bc.route.infrastructure.models import RouteModel, RouteStopModel, StopModel
from src.transport_bc.trip.infrastructure.models import StudentTripRecordModel, TripModel, TripStatusEnum
from src.transport_bc.vehicle.infrastructure.models import VehicleModel
from src.transport_bc.location.infrastructure.models import GPSLocationModel  # noqa: F401
from src.transport_bc.location.infrastructure.repositories import SqlAlchemyLocationHistoryRepository
from src.transport_bc.trip.infrastructure.repositories import SqlAlchemyTripRepository
from src.transport_bc.shared.infrastructure.event_publisher import InMemoryEventPublisher
from src.transport_bc.shared.infrastructure.kv_store import InMemoryKeyValueStore

from tests.seed_data import (
    START_TIMESTAMP,
    SCHOOL_ID,
    OTHER_SCHOOL_ID,
    VEHICLE_ID,
    OTHER_VEHICLE_ID,
    ROUTE_ID,
    TRIP_ID,
    OTHER_TRIP_ID,
    STOPS,
)


class FakeClock:
    """Callable clock returning epoch seconds, advanced by hand."""

    def __init__(self, start: float = START_TIMESTAMP):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@pytest.fixture
def seed(session_factory):
    """School 1 runs route-1 (4 stops) with trip-1; school 2 owns bus-2 and trip-2."""
    with session_factory() as session:
        session.add_all([
            VehicleModel(id=VEHICLE_ID, school_id=SCHOOL_ID, registration_number="1234-ABC", capacity=40),
            VehicleModel(id=OTHER_VEHICLE_ID, school_id=OTHER_SCHOOL_ID, registration_number="9876-XYZ"),
        ])
        for stop_id, name, lat, lon in STOPS:
            session.add(StopModel(id=stop_id, school_id=SCHOOL_ID, name=name, latitude=lat, longitude=lon))
        session.add(StopModel(id="stop-x", school_id=OTHER_SCHOOL_ID, name="Other", latitude=41.0, longitude=2.0))
        session.add(RouteModel(id=ROUTE_ID, school_id=SCHOOL_ID, name="Morning Route A"))
        session.add(RouteModel(id="route-2", school_id=OTHER_SCHOOL_ID, name="Other Route"))
        session.flush()

        for sequence, (stop_id, _, _, _) in enumerate(STOPS, start=1):
            session.add(RouteStopModel(route_id=ROUTE_ID, stop_id=stop_id, sequence=sequence, wait_time_minutes=2))
        session.add(RouteStopModel(route_id="route-2", stop_id="stop-x", sequence=1))

        session.add(TripModel(
            id=TRIP_ID, school_id=SCHOOL_ID, route_id=ROUTE_ID, vehicle_id=VEHICLE_ID,
            status=TripStatusEnum.SCHEDULED, trip_date=date(2025, 10, 9),
        ))
        session.add(TripModel(
            id=OTHER_TRIP_ID, school_id=OTHER_SCHOOL_ID, route_id="route-2", vehicle_id=OTHER_VEHICLE_ID,
            status=TripStatusEnum.SCHEDULED, trip_date=date(2025, 10, 9),
        ))
        session.flush()

        session.add_all([
            StudentTripRecordModel(id="rec-1", trip_id=TRIP_ID, student_id="ana",
                                   pickup_stop_id="stop-1", drop_stop_id="stop-3"),
            StudentTripRecordModel(id="rec-2", trip_id=TRIP_ID, student_id="luis",
                                   pickup_stop_id="stop-2", drop_stop_id="stop-4"),
            StudentTripRecordModel(id="rec-3", trip_id=TRIP_ID, student_id="marta",
                                   pickup_stop_id="stop-1", drop_stop_id="stop-4", absent=True),
        ])
        session.commit()


@pytest.fixture
def kv_store(clock):
    return InMemoryKeyValueStore(clock=clock)


@pytest.fixture
def publisher():
    return InMemoryEventPublisher()


@pytest.fixture
def trip_repository(session_factory, seed):
    return SqlAlchemyTripRepository(session_factory)


@pytest.fixture
def history_repository(session_factory, seed):
    return SqlAlchemyLocationHistoryRepository(session_factory)


@pytest.fixture
def container(session_factory, seed, clock, kv_store, publisher):
    """Transport container wired to SQLite, the in-memory store and the fake clock."""
    config = transport_config_from_settings(settings)
    config["kv_store_backend"] = "memory"
    config["event_publisher_backend"] = "memory"
    config["tracking"]["stop_event_dispatch"] = "inline"

    container = TransportContainer()
    container.config.from_dict(config)
    container.session_factory.override(providers.Object(session_factory))
    container.clock.override(providers.Object(clock))
    container.kv_store.override(providers.Object(kv_store))
    container.event_publisher.override(providers.Object(publisher))
    yield container
    container.reset_singletons()
    container.reset_override()


@pytest.fixture
def client(container):
    """Test client without lifespan, so no background snapshot sweep runs."""
    from app import create_app

    limiter.reset()
    return TestClient(create_app(container))


@pytest.fixture
def headers():
    return {"X-School-Id": SCHOOL_ID, "X-User-Id": "driver-1"}


@pytest.fixture
def api_base_url():
    """Base URL for transport API endpoints."""
    return "/api/v1/transport"
