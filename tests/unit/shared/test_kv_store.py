"""Unit tests for the in-process key-value store."""

import pytest

from src.transport_bc.shared.domain.errors import DependencyUnavailableError


class TestSwapUnless:
    """Tests for InMemoryKeyValueStore.swap_unless()."""

    def test_replaces_and_returns_previous(self, kv_store):
        assert kv_store.swap_unless("k", "A", 60) is None
        assert kv_store.swap_unless("k", "B", 60) == "A"
        assert kv_store.get("k") == "B"

    def test_kept_value_stays_stored(self, kv_store):
        kv_store.set("k", "ARRIVED", 60)

        assert kv_store.swap_unless("k", "APPROACHING", 60, keep=["ARRIVED"]) == "ARRIVED"
        assert kv_store.get("k") == "ARRIVED"

    def test_kept_value_ttl_is_refreshed(self, kv_store, clock):
        kv_store.set("k", "ARRIVED", 60)
        clock.advance(50)

        kv_store.swap_unless("k", "APPROACHING", 60, keep=["ARRIVED"])
        clock.advance(50)

        assert kv_store.get("k") == "ARRIVED"

    def test_expired_value_is_not_kept(self, kv_store, clock):
        kv_store.set("k", "ARRIVED", 60)
        clock.advance(61)

        assert kv_store.swap_unless("k", "APPROACHING", 60, keep=["ARRIVED"]) is None
        assert kv_store.get("k") == "APPROACHING"

    def test_unavailable(self, kv_store):
        kv_store.available = False

        with pytest.raises(DependencyUnavailableError):
            kv_store.swap_unless("k", "A", 60)
