"""Tests for pgcrate.settings.registry: immutable settings registry."""

from __future__ import annotations

import threading

import pytest

from pgcrate.core.errors import ConfigurationError
from pgcrate.settings.registry import DEFAULT_INSTANCE, RegistryStore, SettingsRegistry


@pytest.fixture()
def registry() -> SettingsRegistry:
    return SettingsRegistry().with_settings("debian", {"version": "9.0"})


class TestWithSettings:
    def test_default_cluster_registered(self, registry):
        assert registry.cluster_names() == ["main"]
        assert registry.default_cluster_name() == "main"
        assert registry.cluster()["options"]["data_directory"] == "/var/lib/postgresql/9.0/main"

    def test_returns_new_registry(self):
        empty = SettingsRegistry()
        updated = empty.with_settings("debian")
        assert empty.instances == []
        assert updated.instances == [DEFAULT_INSTANCE]

    def test_instances_independent(self, registry):
        both = registry.with_settings("centos", {"version": "9.0"}, instance="rpm")
        assert both.cluster_names("rpm") == ["data"]
        assert both.cluster()["service"] == "postgresql"
        assert both.cluster(instance="rpm")["service"] == "postgresql-9.0"
        assert both.os_family("rpm") == "centos"
        assert both.os_family() == "debian"

    def test_settings_change_recomputes_clusters(self, registry):
        registry = registry.with_cluster("replica", {"options": {"port": 5433}})
        updated = registry.with_settings("debian", {"version": "9.0", "options": {"ssl": True}})
        assert updated.cluster("replica")["options"]["ssl"] is True
        assert updated.cluster("replica")["options"]["port"] == 5433
        assert registry.cluster("replica")["options"]["ssl"] is False

    def test_settings_includes_resolved_clusters(self, registry):
        assert set(registry.settings()["clusters"]) == {"main"}


class TestWithCluster:
    def test_adds_cluster_with_variant(self, registry):
        updated = registry.with_cluster(
            "replica",
            {"options": {"port": 5433}},
            variant="hot-standby-replica",
        )
        replica = updated.cluster("replica")
        assert replica["options"]["port"] == 5433
        assert replica["recovery"]["standby_mode"] == "on"
        assert updated.cluster_names() == ["main", "replica"]
        assert registry.cluster("replica") is None

    def test_unknown_instance(self):
        with pytest.raises(ConfigurationError):
            SettingsRegistry().with_cluster("main")

    def test_unknown_variant_leaves_registry_unchanged(self, registry):
        with pytest.raises(ConfigurationError):
            registry.with_cluster("replica", {}, variant="bogus")
        assert registry.cluster_names() == ["main"]


class TestReads:
    def test_reads_are_copies(self, registry):
        registry.cluster()["options"]["port"] = 1
        registry.settings()["owner"] = "nobody"
        assert registry.cluster()["options"]["port"] == 5432
        assert registry.settings()["owner"] == "postgres"

    def test_unknown_lookups(self, registry):
        assert registry.settings("nope") is None
        assert registry.cluster("nope") is None
        assert registry.cluster(instance="nope") is None
        assert registry.cluster_names("nope") == []
        assert registry.default_cluster_name("nope") is None
        assert registry.has_instance() is True
        assert registry.has_instance("nope") is False


class TestRegistryStore:
    def test_update(self):
        store = RegistryStore()
        store.update(lambda r: r.with_settings("debian"))
        assert store.current.has_instance()

    def test_failed_update_keeps_registry(self, registry):
        store = RegistryStore(registry)

        def broken(r):
            return r.with_cluster("x", instance="missing")

        with pytest.raises(ConfigurationError):
            store.update(broken)
        assert store.current is registry

    def test_concurrent_updates_serialised(self):
        store = RegistryStore(SettingsRegistry().with_settings("debian"))

        def add(index: int) -> None:
            store.update(lambda r: r.with_cluster(f"c{index}", {"options": {"port": 6000 + index}}))

        threads = [threading.Thread(target=add, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(store.current.cluster_names()) == 9
