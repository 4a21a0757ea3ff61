from .location_store import LocationStore
from .location_ingest_service import LocationIngestService, IngestResult

__all__ = ["LocationStore", "LocationIngestService", "IngestResult"]
