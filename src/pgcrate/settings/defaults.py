"""Distribution and package-source specific default settings.

Default paths, package names and service naming depend on where
PostgreSQL comes from.  The package source is picked first, from the
OS family and the requested version (:func:`select_package_source`),
then the defaults tree is looked up in a strategy table keyed by
``(BaseDistribution, PackageSource)``.

Strategies may build on another strategy with :func:`extends`, e.g. the
PGDG repository variant for Red Hat starts from the native Red Hat
defaults and overrides package names, binary directories and service
naming only.

String values containing ``%s`` are cluster-name templates, expanded by
:mod:`pgcrate.settings.template` when a cluster is resolved.

Usage::

    from pgcrate.settings.defaults import global_settings

    tree = global_settings("debian", {"version": "9.0"})
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pgcrate.core.errors import UnsupportedConfiguration
from pgcrate.core.types import (
    BaseDistribution,
    InitdbVia,
    OsFamily,
    PackageSource,
    StartMode,
    base_distribution,
)
from pgcrate.settings.merge import merge_all, merge_settings

if TYPE_CHECKING:
    from collections.abc import Callable

    DefaultsStrategy = Callable[[dict[str, Any]], dict[str, Any]]

log = logging.getLogger(__name__)

DEFAULT_VERSION = "9.0"

DEFAULT_SETTINGS: dict[str, Any] = {
    "version": DEFAULT_VERSION,
    "components": ["server", "contrib"],
    "owner": "postgres",
    "options": {
        "port": 5432,
        "max_connections": 100,
        "ssl": False,
        "shared_buffers": "24MB",
        "log_line_prefix": "%t ",
        "datestyle": "iso, ymd",
        "default_text_search_config": "pg_catalog.english",
        "listen_addresses": "127.0.0.1",
    },
    "permissions": [
        ["local", "all", "postgres", "ident", ""],
        ["local", "postgres", "postgres", "ident", ""],
    ],
    "start": {"start": StartMode.AUTO.value},
}

ALLOW_IDENT_PERMISSIONS: list[list[str]] = [
    ["host", "all", "all", "127.0.0.1/32", "ident"],
    ["host", "all", "all", "::1/128", "ident"],
]

# PGDG repository rpm release per PostgreSQL version.
PGDG_REPO_VERSIONS: dict[str, str] = {"9.0": "9.0-2"}

# (os family, version) -> package source.  Anything absent is native.
_PACKAGE_SOURCES: dict[tuple[OsFamily, str], PackageSource] = {
    (OsFamily.DEBIAN, "9.0"): PackageSource.DEBIAN_BACKPORTS,
    (OsFamily.UBUNTU, "9.0"): PackageSource.MARTIN_PITT_BACKPORTS,
    (OsFamily.CENTOS, "9.0"): PackageSource.PGDG,
    (OsFamily.FEDORA, "9.0"): PackageSource.PGDG,
}


def select_package_source(os_family: str, version: str) -> PackageSource:
    """Decide where PostgreSQL packages for *version* come from."""
    try:
        family = OsFamily(os_family)
    except ValueError:
        return PackageSource.NATIVE
    return _PACKAGE_SOURCES.get((family, str(version)), PackageSource.NATIVE)


def settings_map(user_settings: dict[str, Any] | None = None) -> dict[str, Any]:
    """Merge *user_settings* over :data:`DEFAULT_SETTINGS`."""
    return merge_settings(DEFAULT_SETTINGS, user_settings or {})


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


def _version(settings: dict[str, Any]) -> str:
    return str(settings.get("version", DEFAULT_VERSION))


def _components(settings: dict[str, Any], fallback: tuple[str, ...]) -> list[str]:
    components = settings.get("components")
    if components is None:
        components = fallback
    return list(dict.fromkeys(str(c) for c in components))


def base_settings() -> dict[str, Any]:
    """Settings shared by every distribution."""
    return {
        "service": "postgresql",
        "owner": "postgres",
        "initdb-via": InitdbVia.INITDB.value,
        "options": {"external_pid_file": "/var/run/postgresql.pid"},
    }


def _debian_native(settings: dict[str, Any]) -> dict[str, Any]:
    v = _version(settings)
    return merge_settings(
        base_settings(),
        {
            "packages": ["postgresql"],
            "default-cluster-name": "main",
            "bin": f"/usr/lib/postgresql/{v}/bin/",
            "share": f"/usr/lib/postgresql/{v}/share/",
            "wal_directory": f"/var/lib/postgresql/{v}/%s/archive",
            "postgresql_file": f"/etc/postgresql/{v}/%s/postgresql.conf",
            "has-pg-wrapper": True,
            "has-multicluster-service": True,
            "options": {
                "data_directory": f"/var/lib/postgresql/{v}/%s",
                "hba_file": f"/etc/postgresql/{v}/%s/pg_hba.conf",
                "ident_file": f"/etc/postgresql/{v}/%s/pg_ident.conf",
                "external_pid_file": f"/var/run/postgresql/{v}-%s.pid",
                "unix_socket_directory": "/var/run/postgresql",
            },
        },
    )


def _rh_native(settings: dict[str, Any]) -> dict[str, Any]:
    v = _version(settings)
    return merge_settings(
        base_settings(),
        {
            "packages": [
                f"postgresql-{c}" for c in _components(settings, ("server", "libs"))
            ],
            "default-cluster-name": "data",
            "wal_directory": f"/var/lib/pgsql/{v}/%s/archive",
            "postgresql_file": f"/var/lib/pgsql/{v}/%s/postgresql.conf",
            "options": {
                "data_directory": f"/var/lib/pgsql/{v}/%s",
                "hba_file": f"/var/lib/pgsql/{v}/%s/pg_hba.conf",
                "ident_file": f"/var/lib/pgsql/{v}/%s/pg_ident.conf",
                "external_pid_file": f"/var/run/postmaster-{v}-%s.pid",
            },
        },
    )


def _arch_native(settings: dict[str, Any]) -> dict[str, Any]:  # noqa: ARG001
    return merge_settings(
        base_settings(),
        {
            "components": [],
            "packages": ["postgresql"],
            "default-cluster-name": "data",
            "wal_directory": "/var/lib/postgres/%s/archive",
            "postgresql_file": "/var/lib/postgres/%s/postgresql.conf",
            "options": {
                "data_directory": "/var/lib/postgres/%s",
                "hba_file": "/var/lib/postgres/%s/pg_hba.conf",
                "ident_file": "/var/lib/postgres/%s/pg_ident.conf",
            },
        },
    )


def _debian_backports_overrides(settings: dict[str, Any]) -> dict[str, Any]:
    return {"packages": [f"postgresql-{_version(settings)}"]}


def _pgdg_overrides(settings: dict[str, Any]) -> dict[str, Any]:
    v = _version(settings)
    short = v.replace(".", "")
    return {
        "packages": [
            f"postgresql{short}-{c}" for c in _components(settings, ("server", "libs"))
        ],
        "bin": f"/usr/pgsql-{v}/bin/",
        "share": f"/usr/pgsql-{v}/share/",
        "service": f"postgresql-{v}-%s",
        "default-service": f"postgresql-{v}",
        "use-port-in-pidfile": True,
    }


def extends(
    parent: tuple[BaseDistribution, PackageSource],
    overrides: DefaultsStrategy | None = None,
) -> DefaultsStrategy:
    """Build a strategy that starts from *parent*'s result.

    *overrides* receives the user settings and returns the tree merged
    on top of the parent defaults.  Without *overrides* the strategy is
    an alias of *parent*.
    """

    def strategy(settings: dict[str, Any]) -> dict[str, Any]:
        inherited = _STRATEGIES[parent](settings)
        if overrides is None:
            return inherited
        return merge_settings(inherited, overrides(settings))

    strategy.__qualname__ = f"extends({parent[0].value}, {parent[1].value})"
    return strategy


_STRATEGIES: dict[tuple[BaseDistribution, PackageSource], DefaultsStrategy] = {
    (BaseDistribution.DEBIAN, PackageSource.NATIVE): _debian_native,
    (BaseDistribution.DEBIAN, PackageSource.DEBIAN_BACKPORTS): extends(
        (BaseDistribution.DEBIAN, PackageSource.NATIVE),
        _debian_backports_overrides,
    ),
    (BaseDistribution.DEBIAN, PackageSource.MARTIN_PITT_BACKPORTS): extends(
        (BaseDistribution.DEBIAN, PackageSource.DEBIAN_BACKPORTS),
    ),
    (BaseDistribution.RH, PackageSource.NATIVE): _rh_native,
    (BaseDistribution.RH, PackageSource.PGDG): extends(
        (BaseDistribution.RH, PackageSource.NATIVE),
        _pgdg_overrides,
    ),
    (BaseDistribution.ARCH, PackageSource.NATIVE): _arch_native,
}


def resolve_defaults(
    os_family: str,
    package_source: str,
    user_settings: dict[str, Any],
) -> dict[str, Any]:
    """Return the defaults tree for *os_family* and *package_source*.

    Falls back to the native strategy of the base distribution when
    the exact pair has no rule.

    Raises
    ------
    UnsupportedConfiguration
        If neither the pair nor the distribution's native rule exists.

    """
    try:
        base = base_distribution(OsFamily(os_family))
        source = PackageSource(package_source)
    except ValueError:
        raise UnsupportedConfiguration(str(os_family), str(package_source)) from None

    strategy = _STRATEGIES.get((base, source))
    if strategy is None:
        strategy = _STRATEGIES.get((base, PackageSource.NATIVE))
        if strategy is None:
            raise UnsupportedConfiguration(str(os_family), str(package_source))
        log.warning(
            "No defaults for %s packages on %s, using native defaults",
            source.value,
            base.value,
        )
    log.debug("Resolving defaults for (%s, %s)", base.value, source.value)
    return strategy(user_settings)


def global_settings(os_family: str, user_settings: dict[str, Any] | None = None) -> dict[str, Any]:
    """Build the global (instance level) settings tree.

    The user settings are merged over :data:`DEFAULT_SETTINGS`, the
    package source is selected from the resulting version, and the
    distribution defaults are layered underneath the user input.
    """
    requested = settings_map(user_settings)
    source = select_package_source(os_family, _version(requested))
    return merge_all(
        {"package-source": source.value},
        resolve_defaults(os_family, source, requested),
        requested,
    )
