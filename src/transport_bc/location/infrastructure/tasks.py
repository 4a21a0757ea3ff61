import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3, default_retry_delay=10)
def snapshot_active_vehicles(self):
    """Store a durable snapshot for every cached vehicle that is due one.

    Runs from Celery beat for deployments where the API lifespan sweep is
    disabled or the API runs many workers.
    """
    from core.containers import get_transport_container

    try:
        stored = get_transport_container().location_store().snapshot_sweep()
        logger.info(f"Snapshot sweep task stored {stored} positions")
        return {"snapshots_stored": stored}
    except Exception as e:
        logger.error(f"Snapshot sweep task failed: {e}")
        raise self.retry(exc=e)
