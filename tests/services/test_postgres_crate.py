"""Tests for pgcrate.services.provisioning.PostgresCrate."""

from __future__ import annotations

import pytest

from pgcrate.collaborators.base import ScriptResult
from pgcrate.collaborators.recording import RecordingCollaborators
from pgcrate.core.errors import ConfigurationError
from pgcrate.core.types import ServiceAction
from pgcrate.render.generator import CONFIG_CHANGED_FLAG
from pgcrate.services.provisioning import PostgresCrate, debian_release_name
from pgcrate.settings.registry import SettingsRegistry


def _crate(registry, recorder=None, **kwargs) -> tuple[PostgresCrate, RecordingCollaborators]:
    rec = recorder or RecordingCollaborators()
    crate = PostgresCrate(
        registry,
        files=rec,
        packages=rec,
        services=rec,
        shell=rec,
        **kwargs,
    )
    return crate, rec


def _of(rec, action):
    return [a for a in rec.actions if a.action == action]


@pytest.fixture()
def debian_registry() -> SettingsRegistry:
    return SettingsRegistry().with_settings("debian", {"version": "9.0"})


@pytest.fixture()
def centos_registry() -> SettingsRegistry:
    return (
        SettingsRegistry()
        .with_settings("centos", {"version": "9.0"})
        .with_cluster("extra", {"options": {"port": 5433}})
    )


class TestDebianReleaseName:
    @pytest.mark.parametrize(
        "version,expected",
        [("6.0.5", "squeeze"), ("7", "wheezy"), ("squeeze", "squeeze"), (None, None)],
    )
    def test_mapping(self, version, expected):
        assert debian_release_name(version) == expected


class TestSettingsAccess:
    def test_missing_instance(self):
        crate, _ = _crate(SettingsRegistry())
        with pytest.raises(ConfigurationError):
            crate.settings()

    def test_unknown_cluster(self, debian_registry):
        crate, _ = _crate(debian_registry)
        with pytest.raises(ConfigurationError):
            crate.cluster_settings("nope")

    def test_default_cluster(self, debian_registry):
        crate, _ = _crate(debian_registry)
        assert crate.cluster_settings()["options"]["port"] == 5432


class TestInstall:
    def test_debian_backports(self, debian_registry):
        crate, rec = _crate(debian_registry, target_release="6.0.5")
        assert crate.install() == ["libpq5", "postgresql-9.0"]
        repo = _of(rec, "repository")[0]
        assert repo.details["url"] == "squeeze-backports"
        assert [a.target for a in _of(rec, "package")] == ["libpq5", "postgresql-9.0"]

    def test_debian_backports_needs_release(self, debian_registry):
        crate, _ = _crate(debian_registry)
        with pytest.raises(ConfigurationError) as exc_info:
            crate.install()
        assert exc_info.value.missing == ["target.os_version"]

    def test_ubuntu_ppa(self):
        registry = SettingsRegistry().with_settings("ubuntu", {"version": "9.0"})
        crate, rec = _crate(registry)
        crate.install()
        assert _of(rec, "repository")[0].details == {"kind": "apt-ppa", "url": "ppa:pitti/postgresql"}

    def test_pgdg(self, centos_registry):
        crate, rec = _crate(centos_registry)
        assert crate.install() == ["postgresql90-server", "postgresql90-contrib"]
        assert _of(rec, "repository")[0].details["url"] == (
            "http://yum.pgrpms.org/reporpms/9.0/pgdg-centos-9.0-2.noarch.rpm"
        )

    def test_native_has_no_repository(self):
        registry = SettingsRegistry().with_settings("debian", {"version": "8.4"})
        crate, rec = _crate(registry)
        crate.install()
        assert _of(rec, "repository") == []


class TestConfigFiles:
    def test_hba_conf(self, debian_registry):
        crate, rec = _crate(debian_registry)
        generated = crate.hba_conf()
        write = _of(rec, "file")[0]
        assert write.target == generated.path == "/etc/postgresql/9.0/main/pg_hba.conf"
        assert write.details["owner"] == "postgres"
        assert write.details["mode"] == "0600"
        assert write.details["directory_mode"] == "0700"
        assert write.details["flag"] == CONFIG_CHANGED_FLAG

    def test_modes_configurable(self, debian_registry):
        crate, rec = _crate(debian_registry, file_mode="0640")
        crate.postgresql_conf("main")
        assert _of(rec, "file")[0].details["mode"] == "0640"

    def test_recovery_conf_needs_recovery(self, debian_registry):
        crate, _ = _crate(debian_registry)
        with pytest.raises(ConfigurationError):
            crate.recovery_conf()

    def test_restart_only_when_changed(self, debian_registry):
        rec = RecordingCollaborators()
        crate, _ = _crate(debian_registry, rec)
        crate.postgresql_conf()
        crate.service(ServiceAction.RESTART, if_config_changed=True)
        assert _of(rec, "service")[-1].details["flag_set"] is True


class TestServices:
    def test_debian_start_conf(self, debian_registry):
        crate, rec = _crate(debian_registry)
        crate.service_config()
        assert _of(rec, "file")[0].target == "/etc/postgresql/9.0/main/start.conf"
        assert _of(rec, "command") == []

    def test_debian_single_service(self, debian_registry):
        crate, rec = _crate(debian_registry.with_cluster("other", {"options": {"port": 5433}}))
        assert crate.service("reload") == ["postgresql"]
        assert _of(rec, "service")[0].details["if_flag"] is None

    def test_rh_install_service(self, centos_registry):
        crate, rec = _crate(centos_registry)
        assert crate.install_service() == ["postgresql-9.0-extra"]
        command = _of(rec, "command")[0]
        assert command.details["command"] == (
            "cp -p /etc/init.d/postgresql-9.0 /etc/init.d/postgresql-9.0-extra"
            " && chmod 0755 /etc/init.d/postgresql-9.0-extra"
        )
        sysconfig = _of(rec, "file")[0]
        assert sysconfig.target == "/etc/sysconfig/pgsql/postgresql-9.0-extra"
        assert sysconfig.details["content"] == "PGDATA=/var/lib/pgsql/9.0/extra\nPGPORT=5433\n"
        assert _of(rec, "service")[0].details["action"] == "enable"

    def test_rh_disabled_cluster(self):
        registry = (
            SettingsRegistry()
            .with_settings("centos", {"version": "9.0"})
            .with_cluster("cold", {"options": {"port": 5434}, "start": {"start": "disabled"}})
        )
        crate, rec = _crate(registry)
        crate.service_config()
        assert _of(rec, "service")[0].details["action"] == "disable"
        assert crate.service(ServiceAction.START) == ["postgresql-9.0"]

    def test_rh_services_per_cluster(self, centos_registry):
        crate, _ = _crate(centos_registry)
        assert crate.service("restart") == ["postgresql-9.0", "postgresql-9.0-extra"]


class TestInitdb:
    def test_initdb_command(self, centos_registry):
        crate, rec = _crate(centos_registry)
        crate.initdb()
        command = _of(rec, "command")[0]
        assert command.target == "initdb"
        assert "/usr/pgsql-9.0/bin/initdb -D /var/lib/pgsql/9.0/data" in command.details["command"]

    def test_initdb_via_service(self):
        registry = SettingsRegistry().with_settings(
            "centos", {"version": "9.0", "initdb-via": "service"},
        )
        crate, rec = _crate(registry)
        assert crate.initdb() is None
        assert _of(rec, "service")[0].details["action"] == "initdb"

    def test_controldata(self, debian_registry):
        crate, rec = _crate(debian_registry)
        assert crate.controldata().success
        assert _of(rec, "command")[0].details["command"] == (
            "sudo -u postgres /usr/lib/postgresql/9.0/bin/pg_controldata"
            " /var/lib/postgresql/9.0/main"
        )


class TestScripts:
    def test_create_database_ignores_failure(self, debian_registry):
        crate, rec = _crate(debian_registry)
        crate.create_database("app", ["ENCODING", "'UTF8'"])
        command = _of(rec, "command")[0]
        assert command.target == "psql script - create database app"
        assert command.details["ignore_failure"] is True
        assert _of(rec, "file")[0].details["content"] == "CREATE DATABASE app ENCODING 'UTF8';"

    def test_create_role_uses_version(self, debian_registry):
        crate, rec = _crate(debian_registry)
        crate.create_role("app", ["LOGIN"])
        assert _of(rec, "file")[0].details["content"].startswith("do $$declare")

    def test_explicit_script_runner(self, debian_registry):
        rec = RecordingCollaborators()
        crate, _ = _crate(debian_registry, rec, scripts=rec)
        crate.postgresql_script("select 1;", db_name="app", title="probe")
        script = _of(rec, "script")[0]
        assert script.details["database"] == "app"
        assert script.details["user"] == "postgres"

    def test_failed_script_returned(self, debian_registry):
        class Failing(RecordingCollaborators):
            def run(self, script, **kwargs):
                return ScriptResult(success=False, errors=("boom",))

        failing = Failing()
        crate, _ = _crate(debian_registry, scripts=failing)
        result = crate.postgresql_script("select 1;")
        assert not result.success
        assert result.errors == ("boom",)
