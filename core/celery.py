from celery import Celery

from core.config import settings

celery_app = Celery(
    "school_transport",
    broker=settings.celery.CELERY_BROKER_URL,
    backend=settings.celery.CELERY_RESULT_BACKEND,
)

# Configure Celery
celery_app.conf.update(
    # Task settings
    task_time_limit=settings.celery.CELERY_TASK_TIME_LIMIT,
    task_soft_time_limit=settings.celery.CELERY_TASK_SOFT_TIME_LIMIT,

    # Result settings
    result_expires=3600,  # Results expire after 1 hour

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    # Serialization settings
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],

    # Timezone
    timezone="UTC",
    enable_utc=True,

    # Task routes
    task_routes={
        "src.transport_bc.location.infrastructure.tasks.*": {"queue": "transport_snapshots"},
        "src.transport_bc.trip.infrastructure.tasks.*": {"queue": "transport_stop_events"},
    },

    # Beat schedule for periodic tasks
    beat_schedule={
        "snapshot-active-vehicles-every-minute": {
            "task": "src.transport_bc.location.infrastructure.tasks.snapshot_active_vehicles",
            "schedule": float(settings.tracking.SNAPSHOT_SWEEP_INTERVAL_SECONDS),
            "options": {"queue": "transport_snapshots"},
        },
    },
)

# Autodiscover tasks
celery_app.autodiscover_tasks([
    "src.transport_bc.location.infrastructure",
    "src.transport_bc.trip.infrastructure",
])
