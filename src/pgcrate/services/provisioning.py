"""PostgreSQL provisioning service.

:class:`PostgresCrate` turns the resolved settings of one instance into
collaborator calls: package installation, configuration files, service
setup, cluster initialisation and SQL scripts.  It never touches the
host itself, so the same operations produce a real deployment with the
local collaborators and a plan with
:class:`~pgcrate.collaborators.recording.RecordingCollaborators`.

Usage::

    recorder = RecordingCollaborators()
    crate = PostgresCrate(
        registry,
        files=recorder, packages=recorder, services=recorder,
        shell=recorder, target_release="squeeze",
    )
    crate.install()
    crate.hba_conf()
    crate.service(ServiceAction.RESTART, if_config_changed=True)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pgcrate.collaborators.base import RepositoryDescriptor
from pgcrate.collaborators.shell import PsqlShellRunner
from pgcrate.core.errors import ConfigurationError
from pgcrate.core.types import InitdbVia, MaskPolicy, PackageSource, ServiceAction, StartMode
from pgcrate.render.generator import CONFIG_CHANGED_FLAG, FileKind, generate_file
from pgcrate.render.scripts import (
    controldata_command,
    copy_init_script_command,
    create_database_sql,
    create_role_sql,
    init_script_path,
    initdb_command,
    sysconfig_defaults,
    sysconfig_path,
)
from pgcrate.settings.defaults import PGDG_REPO_VERSIONS
from pgcrate.settings.registry import DEFAULT_INSTANCE

if TYPE_CHECKING:
    from collections.abc import Sequence

    from pgcrate.collaborators.base import (
        FileWriter,
        PackageInstaller,
        ScriptResult,
        ScriptRunner,
        ServiceController,
        ShellRunner,
    )
    from pgcrate.render.generator import GeneratedFile
    from pgcrate.settings.registry import SettingsRegistry

log = logging.getLogger(__name__)

MARTIN_PITT_PPA = "ppa:pitti/postgresql"
PGDG_RPM_URL = "http://yum.pgrpms.org/reporpms/{version}/pgdg-{os_family}-{release}.noarch.rpm"

# Debian major version -> release codename, for the backports channel.
DEBIAN_CODENAMES: dict[str, str] = {
    "5": "lenny",
    "6": "squeeze",
    "7": "wheezy",
    "8": "jessie",
    "9": "stretch",
    "10": "buster",
    "11": "bullseye",
    "12": "bookworm",
}


def debian_release_name(os_version: str | None) -> str | None:
    """Map a Debian version (``"6.0.5"``) to its codename.

    Values that are not a known version number are assumed to be a
    codename already and returned unchanged.
    """
    if not os_version:
        return None
    major = str(os_version).split(".")[0]
    return DEBIAN_CODENAMES.get(major, str(os_version))


class PostgresCrate:
    """Provision one PostgreSQL instance from a settings registry.

    Parameters
    ----------
    registry:
        Registry holding the instance's resolved settings.
    files, packages, services, shell:
        Collaborators receiving the side effects.
    scripts:
        SQL runner.  When omitted, SQL runs through ``psql`` on the
        target cluster using *files* and *shell*.
    instance:
        Instance id within *registry*.
    mask_policy:
        How pg_hba.conf host records tell a mask from an auth method.
    file_mode, directory_mode:
        Permission bits of configuration files and their directories.
    target_release:
        OS release of the target host (version or codename), used for
        the Debian backports channel.

    """

    def __init__(  # noqa: PLR0913
        self,
        registry: SettingsRegistry,
        *,
        files: FileWriter,
        packages: PackageInstaller,
        services: ServiceController,
        shell: ShellRunner,
        scripts: ScriptRunner | None = None,
        instance: str = DEFAULT_INSTANCE,
        mask_policy: MaskPolicy = MaskPolicy.DOTTED_QUAD,
        file_mode: str = "0600",
        directory_mode: str = "0700",
        target_release: str | None = None,
    ) -> None:
        self._registry = registry
        self._files = files
        self._packages = packages
        self._services = services
        self._shell = shell
        self._scripts = scripts
        self._instance = instance
        self._mask_policy = mask_policy
        self._file_mode = file_mode
        self._directory_mode = directory_mode
        self._target_release = target_release

    # -- settings access -------------------------------------------------------

    @property
    def instance(self) -> str:
        return self._instance

    def settings(self) -> dict[str, Any]:
        """Instance-level settings.

        Raises
        ------
        ConfigurationError
            If the registry has no settings for the instance.

        """
        tree = self._registry.settings(self._instance)
        if tree is None:
            msg = f"No settings found for instance '{self._instance}'"
            raise ConfigurationError(msg, missing=["settings"])
        return tree

    def cluster_settings(self, cluster: str | None = None) -> dict[str, Any]:
        name = cluster or self.settings().get("default-cluster-name")
        tree = self._registry.cluster(name, instance=self._instance)
        if tree is None:
            msg = f"No settings found for cluster '{name}' of instance '{self._instance}'"
            raise ConfigurationError(msg, missing=["clusters", str(name)])
        return tree

    def _cluster_name(self, cluster: str | None) -> str:
        name = cluster or self.settings().get("default-cluster-name")
        if not name:
            msg = "No cluster given and no default cluster configured"
            raise ConfigurationError(msg, missing=["default-cluster-name"])
        return str(name)

    def log_settings(self, level: int = logging.INFO) -> None:
        """Log the instance settings."""
        log.log(level, "Postgresql %s %s", self._instance, self.settings())

    # -- installation ----------------------------------------------------------

    def _repository(self, settings: dict[str, Any]) -> RepositoryDescriptor | None:
        source = settings.get("package-source", PackageSource.NATIVE.value)
        version = str(settings.get("version"))

        if source == PackageSource.MARTIN_PITT_BACKPORTS:
            return RepositoryDescriptor("Martin Pitt backports", "apt-ppa", MARTIN_PITT_PPA)

        if source == PackageSource.DEBIAN_BACKPORTS:
            release = debian_release_name(self._target_release)
            if release is None:
                msg = "Debian backports need the target OS release"
                raise ConfigurationError(msg, missing=["target.os_version"])
            return RepositoryDescriptor("Debian backports", "apt-backports", f"{release}-backports")

        if source == PackageSource.PGDG:
            repo_version = PGDG_REPO_VERSIONS.get(version)
            if repo_version is None:
                msg = f"No PGDG repository release known for PostgreSQL {version}"
                raise ConfigurationError(msg, missing=["pgdg-repo-version"])
            url = PGDG_RPM_URL.format(
                version=version,
                os_family=self._registry.os_family(self._instance),
                release=repo_version,
            )
            return RepositoryDescriptor("pgdg.rpm", "rpm", url)

        return None

    def install(self) -> list[str]:
        """Enable the package source and install the PostgreSQL packages.

        Returns
        -------
        list[str]
            The packages requested, in installation order.

        """
        settings = self.settings()
        packages = [str(p) for p in settings.get("packages") or []]
        repository = self._repository(settings)
        if settings.get("package-source") == PackageSource.DEBIAN_BACKPORTS:
            # the client library must come from the same channel as the server
            packages = ["libpq5", *packages]

        log.info(
            "postgresql %s from %s packages [%s]",
            settings.get("version"),
            settings.get("package-source"),
            ", ".join(packages),
            extra={"instance": self._instance},
        )
        self._packages.install(packages, repository=repository)
        return packages

    # -- configuration files ---------------------------------------------------

    def conf_file(self, kind: FileKind | str, cluster: str | None = None) -> GeneratedFile:
        """Generate and write one configuration file of *cluster*."""
        settings = self.settings()
        name = self._cluster_name(cluster)
        generated = generate_file(
            kind,
            self.cluster_settings(name),
            mask_policy=self._mask_policy,
        )
        changed = self._files.write(
            generated.path,
            generated.content,
            owner=settings.get("owner"),
            mode=self._file_mode,
            directory_mode=self._directory_mode,
            literal=True,
            flag=CONFIG_CHANGED_FLAG,
        )
        log.info(
            "%s %s",
            "Wrote" if changed else "Unchanged",
            generated.path,
            extra={"instance": self._instance, "cluster": name},
        )
        return generated

    def hba_conf(self, cluster: str | None = None) -> GeneratedFile:
        """Write pg_hba.conf.

        pg_hba.conf is case sensitive: ``all`` means all databases,
        ``ALL`` is a database named ALL.  Keep a record giving the owner
        ident access over ``local`` if later scripts must connect.
        """
        return self.conf_file(FileKind.HBA, cluster)

    def postgresql_conf(self, cluster: str | None = None) -> GeneratedFile:
        return self.conf_file(FileKind.POSTGRESQL, cluster)

    def recovery_conf(self, cluster: str | None = None) -> GeneratedFile:
        return self.conf_file(FileKind.RECOVERY, cluster)

    def start_conf(self, cluster: str | None = None) -> GeneratedFile:
        """Write the Debian specific start.conf; see :meth:`service_config`."""
        return self.conf_file(FileKind.START, cluster)

    # -- services --------------------------------------------------------------

    def install_service(self) -> list[str]:
        """Set up one init service per non-default cluster.

        For distributions without a multi-cluster service.  Each extra
        cluster gets a copy of the default service's init script, a
        sysconfig file with its data directory and port, and is enabled
        or disabled according to its start mode.

        Returns
        -------
        list[str]
            The services set up.

        """
        settings = self.settings()
        default_cluster = settings.get("default-cluster-name")
        source_service = settings.get("default-service") or settings.get("service")
        installed: list[str] = []

        for name in self._registry.cluster_names(self._instance):
            if name == default_cluster:
                continue
            cluster = self.cluster_settings(name)
            service = str(cluster["service"])
            options = cluster.get("options") or {}
            self._shell.run_command(
                copy_init_script_command(service, str(source_service)),
                title=f"init script {init_script_path(service)}",
            )
            self._files.write(
                sysconfig_path(service),
                sysconfig_defaults(options.get("data_directory"), options.get("port")),
                owner="root",
                mode="0644",
            )
            start = (cluster.get("start") or {}).get("start")
            action = ServiceAction.ENABLE if start == StartMode.AUTO else ServiceAction.DISABLE
            self._services.control(service, action)
            log.info(
                "Installed service %s (%s)",
                service,
                action,
                extra={"instance": self._instance, "cluster": name},
            )
            installed.append(service)
        return installed

    def service_config(self, cluster: str | None = None) -> None:
        """Configure the service architecture of the distribution."""
        if self.settings().get("has-multicluster-service"):
            self.start_conf(cluster)
        else:
            self.install_service()

    def service(self, action: ServiceAction | str, *, if_config_changed: bool = False) -> list[str]:
        """Control the PostgreSQL service(s).

        With a multi-cluster service the single instance service is
        controlled; otherwise the service of every auto-start cluster.
        With *if_config_changed* the action is conditional on the
        configuration change flag.

        Returns
        -------
        list[str]
            The services the action was sent to.

        """
        action = ServiceAction(action)
        settings = self.settings()
        if_flag = CONFIG_CHANGED_FLAG if if_config_changed else None

        if settings.get("has-multicluster-service"):
            targets = [str(settings["service"])]
        else:
            targets = []
            for name in self._registry.cluster_names(self._instance):
                cluster = self.cluster_settings(name)
                if (cluster.get("start") or {}).get("start") == StartMode.AUTO:
                    targets.append(str(cluster["service"]))

        for target in targets:
            self._services.control(target, action, if_flag=if_flag)
        return targets

    # -- cluster initialisation ------------------------------------------------

    def initdb(self, cluster: str | None = None) -> ScriptResult | None:
        """Initialise the data directory of *cluster* unless already done."""
        settings = self.settings()
        if settings.get("initdb-via", InitdbVia.INITDB) == InitdbVia.SERVICE:
            self.service(ServiceAction.INITDB)
            return None

        name = self._cluster_name(cluster)
        data_dir = (self.cluster_settings(name).get("options") or {}).get("data_directory")
        if not data_dir:
            msg = f"Cluster '{name}' has no data directory"
            raise ConfigurationError(msg, missing=["options.data_directory"])
        command = initdb_command(
            str(data_dir),
            owner=str(settings.get("owner") or "postgres"),
            bin_dir=settings.get("bin"),
        )
        return self._shell.run_command(command, title="initdb")

    def controldata_script(self, cluster: str | None = None, *, as_user: str | None = None) -> str:
        """Return the ``pg_controldata`` command line for *cluster*."""
        settings = self.settings()
        name = self._cluster_name(cluster)
        data_dir = (self.cluster_settings(name).get("options") or {}).get("data_directory")
        return controldata_command(
            str(data_dir),
            owner=as_user or str(settings.get("owner") or "postgres"),
            bin_dir=settings.get("bin"),
        )

    def controldata(self, cluster: str | None = None, *, as_user: str | None = None) -> ScriptResult:
        """Run ``pg_controldata`` on *cluster*."""
        return self._shell.run_command(
            self.controldata_script(cluster, as_user=as_user),
            title="pg_controldata",
        )

    # -- SQL scripts -----------------------------------------------------------

    def _script_runner(self, cluster: str) -> ScriptRunner:
        if self._scripts is not None:
            return self._scripts
        return PsqlShellRunner(
            files=self._files,
            shell=self._shell,
            global_settings=self.settings(),
            cluster_settings=self.cluster_settings(cluster),
            cluster_name=cluster,
        )

    def postgresql_script(  # noqa: PLR0913
        self,
        content: str,
        *,
        as_user: str | None = None,
        cluster: str | None = None,
        db_name: str | None = None,
        ignore_result: bool = False,
        title: str | None = None,
    ) -> ScriptResult:
        """Execute a SQL script against *cluster*.

        Parameters
        ----------
        content:
            The SQL text.
        as_user:
            System and database user to run as; defaults to the owner.
        cluster:
            Target cluster; defaults to the default cluster.
        db_name:
            Database to connect to.
        ignore_result:
            Treat a failing script as success.
        title:
            Label used in logs and plans.

        """
        name = self._cluster_name(cluster)
        user = as_user or str(self.settings().get("owner") or "postgres")
        result = self._script_runner(name).run(
            content,
            user=user,
            database=db_name,
            ignore_failure=ignore_result,
            title=title,
        )
        if not result.success:
            log.error(
                "psql script%s failed: %s",
                f" - {title}" if title else "",
                "; ".join(result.errors),
                extra={"instance": self._instance, "cluster": name},
            )
        return result

    def create_database(
        self,
        name: str,
        parameters: Sequence[Any] = (),
        **script_options: Any,  # noqa: ANN401
    ) -> ScriptResult:
        """Create database *name* if it does not exist.

        An existing database makes ``CREATE DATABASE`` fail without
        effect, so the failure is always ignored.
        """
        script_options["ignore_result"] = True
        script_options.setdefault("title", f"create database {name}")
        return self.postgresql_script(create_database_sql(name, parameters), **script_options)

    def create_role(
        self,
        name: str,
        parameters: Sequence[Any] = (),
        **script_options: Any,  # noqa: ANN401
    ) -> ScriptResult:
        """Create role *name* if it does not exist.

        Example: ``create_role("app", ["ENCRYPTED", "PASSWORD", "'secret'"])``.
        """
        version = str(self.settings().get("version"))
        script_options.setdefault("title", f"create role {name}")
        return self.postgresql_script(create_role_sql(name, parameters, version), **script_options)

    def __repr__(self) -> str:
        return f"<PostgresCrate instance={self._instance}>"
