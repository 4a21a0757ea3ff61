import logging
from datetime import datetime

from celery import shared_task

from src.transport_bc.trip.infrastructure.services.stop_event_queue import StopEventKind

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3, default_retry_delay=10)
def record_stop_event(self, kind: str, trip_id: str, stop_id: str, at: str):
    """Apply an ARRIVED/DEPARTED stop event to the student trip records."""
    from core.containers import get_transport_container

    try:
        recorder = get_transport_container().boarding_recorder()
        changed = recorder.apply(StopEventKind(kind), trip_id, stop_id, datetime.fromisoformat(at))
        return {"trip_id": trip_id, "stop_id": stop_id, "event": kind, "records_updated": changed}
    except Exception as e:
        logger.error(f"Stop event {kind} for trip {trip_id} at {stop_id} failed: {e}")
        raise self.retry(exc=e)
