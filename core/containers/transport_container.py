import time

from dependency_injector import containers, providers

from core.database import SessionLocal
from core.redis_client import create_redis_client

# Ephemeral store and fan-out
from src.transport_bc.shared.infrastructure.kv_store import InMemoryKeyValueStore, RedisKeyValueStore
from src.transport_bc.shared.infrastructure.event_publisher import InMemoryEventPublisher, RedisEventPublisher

# Repositories
from src.transport_bc.location.infrastructure.repositories import SqlAlchemyLocationHistoryRepository
from src.transport_bc.trip.infrastructure.repositories import SqlAlchemyTripRepository

# Services
from src.transport_bc.rate_limit.infrastructure.services import SlidingWindowRateLimiter, GpsSubmissionLimiter
from src.transport_bc.location.infrastructure.services import LocationStore, LocationIngestService
from src.transport_bc.location.infrastructure.services.snapshot_scheduler import SnapshotScheduler
from src.transport_bc.geofence.domain.entities import GeofenceThresholds
from src.transport_bc.geofence.infrastructure.services import GeofenceDetector
from src.transport_bc.eta.infrastructure.services import ETAEstimator
from src.transport_bc.trip.infrastructure.services import (
    BoardingRecorder,
    CeleryStopEventQueue,
    InlineStopEventQueue,
    TripProgressTracker,
)


class TransportContainer(containers.DeclarativeContainer):
    """Dependency injection container for the transport tracking context.

    Every service is a singleton: repositories open a session per call and
    the ephemeral store is safe for concurrent use, so nothing here is
    request-scoped. Tests override ``session_factory``, ``clock``,
    ``kv_store`` and ``event_publisher``.
    """

    config = providers.Configuration()

    session_factory = providers.Object(SessionLocal)
    clock = providers.Object(time.time)

    # ===== Infrastructure =====
    redis_client = providers.Singleton(
        create_redis_client,
        url=config.redis_url,
        socket_timeout=config.redis_socket_timeout,
    )

    kv_store = providers.Selector(
        config.kv_store_backend,
        redis=providers.Singleton(RedisKeyValueStore, client=redis_client),
        memory=providers.Singleton(InMemoryKeyValueStore, clock=clock),
    )

    event_publisher = providers.Selector(
        config.event_publisher_backend,
        redis=providers.Singleton(RedisEventPublisher, client=redis_client),
        memory=providers.Singleton(InMemoryEventPublisher),
    )

    # ===== Repositories =====
    location_history_repository = providers.Singleton(
        SqlAlchemyLocationHistoryRepository,
        session_factory=session_factory,
    )

    trip_repository = providers.Singleton(
        SqlAlchemyTripRepository,
        session_factory=session_factory,
    )

    # ===== Services =====
    rate_limiter = providers.Singleton(
        SlidingWindowRateLimiter,
        store=kv_store,
        clock=clock,
    )

    submission_limiter = providers.Singleton(
        GpsSubmissionLimiter,
        limiter=rate_limiter,
        vehicle_max_updates=config.tracking.vehicle_max_updates,
        driver_max_updates=config.tracking.driver_max_updates,
        window_seconds=config.tracking.rate_limit_window_seconds,
    )

    location_store = providers.Singleton(
        LocationStore,
        store=kv_store,
        history_repository=location_history_repository,
        publisher=event_publisher,
        clock=clock,
        ttl_seconds=config.tracking.location_ttl_seconds,
        snapshot_interval_seconds=config.tracking.snapshot_interval_seconds,
    )

    boarding_recorder = providers.Singleton(
        BoardingRecorder,
        trip_repository=trip_repository,
    )

    stop_event_queue = providers.Selector(
        config.tracking.stop_event_dispatch,
        inline=providers.Singleton(InlineStopEventQueue, recorder=boarding_recorder),
        celery=providers.Singleton(CeleryStopEventQueue),
    )

    geofence_thresholds = providers.Singleton(
        GeofenceThresholds,
        approaching_meters=config.tracking.geofence_approaching_meters,
        arrival_meters=config.tracking.geofence_arrival_meters,
        departure_meters=config.tracking.geofence_departure_meters,
    )

    geofence_detector = providers.Singleton(
        GeofenceDetector,
        store=kv_store,
        trip_repository=trip_repository,
        publisher=event_publisher,
        stop_events=stop_event_queue,
        thresholds=geofence_thresholds,
        clock=clock,
        state_ttl_seconds=config.tracking.geofence_state_ttl_seconds,
    )

    eta_estimator = providers.Singleton(
        ETAEstimator,
        store=kv_store,
        history_repository=location_history_repository,
        trip_repository=trip_repository,
        clock=clock,
        fallback_speed_kmh=config.tracking.fallback_speed_kmh,
        speed_buffer_size=config.tracking.speed_buffer_size,
        speed_history_ttl_seconds=config.tracking.speed_history_ttl_seconds,
    )

    progress_tracker = providers.Singleton(
        TripProgressTracker,
        store=kv_store,
        trip_repository=trip_repository,
        eta_estimator=eta_estimator,
        clock=clock,
        cache_ttl_seconds=config.tracking.trip_progress_ttl_seconds,
    )

    ingest_service = providers.Singleton(
        LocationIngestService,
        submission_limiter=submission_limiter,
        location_store=location_store,
        geofence_detector=geofence_detector,
        progress_tracker=progress_tracker,
        eta_estimator=eta_estimator,
        publisher=event_publisher,
    )

    snapshot_scheduler = providers.Singleton(
        SnapshotScheduler,
        location_store=location_store,
        interval_seconds=config.tracking.snapshot_sweep_interval_seconds,
    )


def transport_config_from_settings(settings) -> dict:
    """Flatten Settings into the container's configuration tree."""
    tracking = settings.tracking
    return {
        "redis_url": settings.REDIS_URL,
        "redis_socket_timeout": settings.REDIS_SOCKET_TIMEOUT,
        "kv_store_backend": settings.KV_STORE_BACKEND,
        "event_publisher_backend": settings.EVENT_PUBLISHER_BACKEND,
        "tracking": {
            "location_ttl_seconds": tracking.LOCATION_TTL_SECONDS,
            "snapshot_interval_seconds": tracking.SNAPSHOT_INTERVAL_SECONDS,
            "snapshot_sweep_interval_seconds": tracking.SNAPSHOT_SWEEP_INTERVAL_SECONDS,
            "vehicle_max_updates": tracking.VEHICLE_MAX_UPDATES,
            "driver_max_updates": tracking.DRIVER_MAX_UPDATES,
            "rate_limit_window_seconds": tracking.RATE_LIMIT_WINDOW_SECONDS,
            "geofence_approaching_meters": tracking.GEOFENCE_APPROACHING_METERS,
            "geofence_arrival_meters": tracking.GEOFENCE_ARRIVAL_METERS,
            "geofence_departure_meters": tracking.GEOFENCE_DEPARTURE_METERS,
            "geofence_state_ttl_seconds": tracking.GEOFENCE_STATE_TTL_SECONDS,
            "trip_progress_ttl_seconds": tracking.TRIP_PROGRESS_TTL_SECONDS,
            "speed_buffer_size": tracking.SPEED_BUFFER_SIZE,
            "speed_history_ttl_seconds": tracking.SPEED_HISTORY_TTL_SECONDS,
            "fallback_speed_kmh": tracking.FALLBACK_SPEED_KMH,
            "stop_event_dispatch": tracking.STOP_EVENT_DISPATCH,
        },
    }


def build_transport_container(settings) -> TransportContainer:
    container = TransportContainer()
    container.config.from_dict(transport_config_from_settings(settings))
    return container
