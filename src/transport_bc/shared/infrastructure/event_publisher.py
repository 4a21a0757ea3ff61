"""Best-effort fan-out of tracking events.

Topics:
    location:{vehicle_id}   position updates and offline notices
    trip:{trip_id}          trip progress snapshots
    geofence:{vehicle_id}   APPROACHING / ARRIVED / DEPARTED transitions

Delivery is at-most-once. publish() never raises, so ingestion never blocks
on subscriber presence or a broken broker connection.
"""
import json
import logging
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Any, Callable, Dict, List, Tuple

import redis

logger = logging.getLogger(__name__)

Subscriber = Callable[[str, Dict[str, Any]], None]


def location_topic(vehicle_id: str) -> str:
    return f"location:{vehicle_id}"


def trip_topic(trip_id: str) -> str:
    return f"trip:{trip_id}"


def geofence_topic(vehicle_id: str) -> str:
    return f"geofence:{vehicle_id}"


class EventPublisher(ABC):
    """Publishes JSON payloads to named topics."""

    def publish(self, topic: str, payload: Dict[str, Any]) -> bool:
        """Publish a payload, logging and swallowing delivery failures."""
        try:
            self._send(topic, payload)
            return True
        except Exception as e:
            logger.warning(f"Failed to publish event on {topic}: {e}")
            return False

    @abstractmethod
    def _send(self, topic: str, payload: Dict[str, Any]) -> None:
        pass


class RedisEventPublisher(EventPublisher):
    """Publishes to Redis Pub/Sub so every API instance can relay to its sockets."""

    CHANNEL_PREFIX = "transport:"

    def __init__(self, client: redis.Redis):
        self.client = client

    def _send(self, topic: str, payload: Dict[str, Any]) -> None:
        self.client.publish(f"{self.CHANNEL_PREFIX}{topic}", json.dumps(payload, default=str))


class InMemoryEventPublisher(EventPublisher):
    """In-process publisher. Keeps a log of published events and calls subscribers."""

    def __init__(self):
        self._lock = threading.Lock()
        self.published: List[Tuple[str, Dict[str, Any]]] = []
        self._subscribers: Dict[str, List[Subscriber]] = defaultdict(list)

    def subscribe(self, topic: str, callback: Subscriber) -> None:
        with self._lock:
            self._subscribers[topic].append(callback)

    def events_for(self, topic: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [payload for t, payload in self.published if t == topic]

    def _send(self, topic: str, payload: Dict[str, Any]) -> None:
        with self._lock:
            self.published.append((topic, payload))
            callbacks = list(self._subscribers.get(topic, []))
        for callback in callbacks:
            callback(topic, payload)
