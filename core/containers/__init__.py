from typing import Optional

from core.config import settings

from .transport_container import TransportContainer, build_transport_container, transport_config_from_settings

_transport_container: Optional[TransportContainer] = None


def get_transport_container() -> TransportContainer:
    """Process-wide container built from settings on first use (Celery workers, CLI)."""
    global _transport_container
    if _transport_container is None:
        _transport_container = build_transport_container(settings)
    return _transport_container


__all__ = [
    "TransportContainer",
    "build_transport_container",
    "transport_config_from_settings",
    "get_transport_container",
]
