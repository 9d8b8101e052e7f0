"""Tests for pgcrate.settings.cluster: per-cluster resolution and variants."""

from __future__ import annotations

import pytest

from pgcrate.core.errors import ConfigurationError
from pgcrate.settings.cluster import (
    apply_variant,
    cluster_settings,
    resolve_cluster,
    start_file_path,
)
from pgcrate.settings.template import find_placeholders


class TestResolveCluster:
    def test_debian_default_cluster(self, debian_global):
        tree = resolve_cluster("main", {}, debian_global)
        assert tree["service"] == "postgresql"
        assert tree["options"]["data_directory"] == "/var/lib/postgresql/9.0/main"
        assert tree["options"]["hba_file"] == "/etc/postgresql/9.0/main/pg_hba.conf"
        assert tree["options"]["external_pid_file"] == "/var/run/postgresql/9.0-main.pid"
        assert tree["postgresql_file"] == "/etc/postgresql/9.0/main/postgresql.conf"
        assert tree["recovery_file"] == "/var/lib/postgresql/9.0/main/recovery.conf"
        assert tree["start_file"] == "/etc/postgresql/9.0/main/start.conf"
        assert tree["wal_directory"] == "/var/lib/postgresql/9.0/main/archive"

    def test_clusters_key_dropped(self, debian_global):
        tree = resolve_cluster("main", {}, {**debian_global, "clusters": {"main": {}}})
        assert "clusters" not in tree

    def test_overrides_merged(self, debian_global):
        tree = resolve_cluster("main", {"options": {"port": 5433}}, debian_global)
        assert tree["options"]["port"] == 5433
        assert tree["options"]["ssl"] is False

    def test_default_cluster_uses_default_service(self, centos_global):
        assert resolve_cluster("data", {}, centos_global)["service"] == "postgresql-9.0"

    def test_other_cluster_uses_expanded_service(self, centos_global):
        assert resolve_cluster("replica", {}, centos_global)["service"] == "postgresql-9.0-replica"

    def test_pidfile_uses_port(self, centos_global):
        tree = resolve_cluster("replica", {"options": {"port": 5433}}, centos_global)
        assert tree["options"]["external_pid_file"] == "/var/run/postmaster-9.0-5433.pid"

    def test_global_tree_not_mutated(self, debian_global):
        before = repr(debian_global)
        resolve_cluster("main", {"options": {"port": 1}}, debian_global)
        assert repr(debian_global) == before

    @pytest.mark.parametrize("name", ["main", "data", "replica", "x"])
    @pytest.mark.parametrize("family", ["debian", "ubuntu", "centos", "fedora", "rhel", "arch"])
    def test_no_placeholder_survives(self, family, name):
        from pgcrate.settings.defaults import global_settings

        tree = resolve_cluster(name, {}, global_settings(family, {"version": "9.0"}))
        assert find_placeholders(tree) == []

    def test_leftover_placeholder_in_override_rejected(self, debian_global):
        with pytest.raises(ConfigurationError) as exc_info:
            resolve_cluster("main", {"options": {"hba_file": "/etc/%s/pg_hba.conf"}}, debian_global)
        assert exc_info.value.missing == ["options.hba_file"]


class TestStartFilePath:
    def test_replaces_file_name(self):
        assert start_file_path("/etc/postgresql/9.0/main/postgresql.conf") == (
            "/etc/postgresql/9.0/main/start.conf"
        )


class TestVariants:
    def test_hot_standby_master(self, debian_global):
        tree = cluster_settings("main", {}, debian_global, variant="hot-standby-master")
        options = tree["options"]
        assert options["wal_level"] == "hot_standby"
        assert options["max_wal_senders"] == 5
        assert options["wal_keep_segments"] == 32
        assert options["archive_mode"] == "on"
        assert options["archive_command"] == "cp %p /var/lib/postgresql/9.0/main/archive/%f"

    def test_hot_standby_replica(self, debian_global):
        tree = cluster_settings("main", {}, debian_global, variant="hot-standby-replica")
        assert tree["options"]["hot_standby"] == "on"
        assert tree["recovery"] == {
            "standby_mode": "on",
            "trigger_file": "/var/lib/postgresql/9.0/main/pg-failover",
            "restore_command": 'cp /var/lib/postgresql/9.0/main/archive/%f "%p"',
        }

    def test_cluster_values_win_over_variant(self, debian_global):
        tree = cluster_settings(
            "main",
            {"options": {"max_wal_senders": 10}},
            debian_global,
            variant="hot-standby-master",
        )
        assert tree["options"]["max_wal_senders"] == 10

    def test_no_variant(self):
        tree = {"options": {"port": 1}}
        assert apply_variant(tree, None) is tree

    def test_unknown_variant(self):
        with pytest.raises(ConfigurationError) as exc_info:
            apply_variant({}, "warm-standby")
        assert exc_info.value.missing == ["variant"]
