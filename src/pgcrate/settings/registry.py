"""Settings registry keyed by PostgreSQL instance.

:class:`SettingsRegistry` is an immutable value: every update returns a
new registry and leaves the original untouched, so resolving settings
for different instances concurrently cannot interfere.  The registry
stores the cluster *inputs* (overrides and variant) next to the
resolved trees and recomputes every cluster whenever the instance
settings change.

:class:`RegistryStore` is the shared holder for callers that need a
single current registry; it serialises read-modify-write updates.

Usage::

    registry = SettingsRegistry().with_settings("debian", {"version": "9.0"})
    registry = registry.with_cluster("replica", {"options": {"port": 5433}},
                                     variant="hot-standby-replica")
    tree = registry.cluster("replica")
"""

from __future__ import annotations

import copy
import logging
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from pgcrate.core.errors import ConfigurationError
from pgcrate.settings.cluster import cluster_settings
from pgcrate.settings.defaults import global_settings

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

log = logging.getLogger(__name__)

DEFAULT_INSTANCE = "default"


@dataclass(frozen=True)
class ClusterInput:
    """What the caller asked for one cluster."""

    overrides: Mapping[str, Any] = field(default_factory=dict)
    variant: str | None = None


@dataclass(frozen=True)
class InstanceEntry:
    """Everything the registry knows about one instance."""

    os_family: str
    user_settings: Mapping[str, Any]
    settings: Mapping[str, Any]
    cluster_inputs: Mapping[str, ClusterInput]


def _frozen(value: dict) -> MappingProxyType:
    return MappingProxyType(copy.deepcopy(value))


class SettingsRegistry:
    """Immutable mapping of instance id to resolved settings."""

    def __init__(self, entries: Mapping[str, InstanceEntry] | None = None) -> None:
        self._entries: Mapping[str, InstanceEntry] = MappingProxyType(dict(entries or {}))

    # -- updates (return new registries) -------------------------------------

    def with_settings(
        self,
        os_family: str,
        user_settings: dict[str, Any] | None = None,
        *,
        instance: str = DEFAULT_INSTANCE,
    ) -> SettingsRegistry:
        """Register instance-level settings and re-resolve its clusters.

        The default cluster of the distribution is always registered,
        with no overrides unless the caller already registered it.
        """
        user_settings = dict(user_settings or {})
        previous = self._entries.get(instance)
        inputs = dict(previous.cluster_inputs) if previous else {}

        tree = global_settings(os_family, user_settings)
        default_cluster = tree.get("default-cluster-name")
        if default_cluster and default_cluster not in inputs:
            inputs[default_cluster] = ClusterInput()

        log.debug("Registering settings for instance %s", instance, extra={"instance": instance})
        entry = self._build_entry(instance, os_family, user_settings, tree, inputs)
        return self._replace(instance, entry)

    def with_cluster(
        self,
        cluster_name: str,
        overrides: dict[str, Any] | None = None,
        *,
        variant: str | None = None,
        instance: str = DEFAULT_INSTANCE,
    ) -> SettingsRegistry:
        """Register (or replace) the settings of one cluster.

        Raises
        ------
        ConfigurationError
            If *instance* has no settings yet.

        """
        entry = self._require(instance)
        inputs = dict(entry.cluster_inputs)
        inputs[cluster_name] = ClusterInput(overrides=_frozen(overrides or {}), variant=variant)
        tree = {k: v for k, v in copy.deepcopy(dict(entry.settings)).items() if k != "clusters"}
        new_entry = self._build_entry(
            instance, entry.os_family, dict(entry.user_settings), tree, inputs
        )
        return self._replace(instance, new_entry)

    def _build_entry(
        self,
        instance: str,
        os_family: str,
        user_settings: dict[str, Any],
        tree: dict[str, Any],
        inputs: dict[str, ClusterInput],
    ) -> InstanceEntry:
        clusters: dict[str, Any] = {}
        for name, cluster_input in inputs.items():
            clusters[name] = cluster_settings(
                name,
                copy.deepcopy(dict(cluster_input.overrides)),
                tree,
                variant=cluster_input.variant,
            )
            log.debug(
                "Resolved cluster %s",
                name,
                extra={"instance": instance, "cluster": name},
            )
        tree = dict(tree)
        tree["clusters"] = clusters
        return InstanceEntry(
            os_family=os_family,
            user_settings=_frozen(user_settings),
            settings=_frozen(tree),
            cluster_inputs=MappingProxyType(inputs),
        )

    def _replace(self, instance: str, entry: InstanceEntry) -> SettingsRegistry:
        entries = dict(self._entries)
        entries[instance] = entry
        return SettingsRegistry(entries)

    def _require(self, instance: str) -> InstanceEntry:
        entry = self._entries.get(instance)
        if entry is None:
            msg = f"No settings registered for instance '{instance}'"
            raise ConfigurationError(msg, missing=[instance])
        return entry

    # -- reads (return copies) ----------------------------------------------

    @property
    def instances(self) -> list[str]:
        return list(self._entries)

    def has_instance(self, instance: str = DEFAULT_INSTANCE) -> bool:
        return instance in self._entries

    def settings(self, instance: str = DEFAULT_INSTANCE) -> dict[str, Any] | None:
        """Return a copy of the instance-level tree, or ``None``."""
        entry = self._entries.get(instance)
        if entry is None:
            return None
        return copy.deepcopy(dict(entry.settings))

    def cluster(
        self,
        cluster_name: str | None = None,
        *,
        instance: str = DEFAULT_INSTANCE,
    ) -> dict[str, Any] | None:
        """Return a copy of the resolved settings of *cluster_name*.

        Defaults to the instance's default cluster.  Returns ``None``
        when the instance or the cluster is unknown.
        """
        entry = self._entries.get(instance)
        if entry is None:
            return None
        name = cluster_name or entry.settings.get("default-cluster-name")
        resolved = entry.settings.get("clusters", {}).get(name)
        return copy.deepcopy(resolved) if resolved is not None else None

    def cluster_names(self, instance: str = DEFAULT_INSTANCE) -> list[str]:
        entry = self._entries.get(instance)
        return list(entry.cluster_inputs) if entry else []

    def default_cluster_name(self, instance: str = DEFAULT_INSTANCE) -> str | None:
        entry = self._entries.get(instance)
        return entry.settings.get("default-cluster-name") if entry else None

    def os_family(self, instance: str = DEFAULT_INSTANCE) -> str | None:
        entry = self._entries.get(instance)
        return entry.os_family if entry else None

    def __repr__(self) -> str:
        return f"<SettingsRegistry instances={self.instances}>"


class RegistryStore:
    """Thread-safe holder of the current :class:`SettingsRegistry`."""

    def __init__(self, registry: SettingsRegistry | None = None) -> None:
        self._registry = registry or SettingsRegistry()
        self._lock = threading.Lock()

    @property
    def current(self) -> SettingsRegistry:
        return self._registry

    def update(self, fn: Callable[[SettingsRegistry], SettingsRegistry]) -> SettingsRegistry:
        """Apply *fn* to the current registry atomically and store the result.

        If *fn* raises, the stored registry is left unchanged.
        """
        with self._lock:
            self._registry = fn(self._registry)
            return self._registry
