"""Settings resolution.

Public API::

    from pgcrate.settings import SettingsRegistry

    registry = SettingsRegistry().with_settings("ubuntu", {"version": "9.0"})
    main = registry.cluster("main")
"""

from pgcrate.settings.cluster import apply_variant, cluster_settings, resolve_cluster
from pgcrate.settings.defaults import global_settings, resolve_defaults, select_package_source
from pgcrate.settings.merge import merge_all, merge_settings
from pgcrate.settings.registry import RegistryStore, SettingsRegistry
from pgcrate.settings.template import expand, expand_tree, find_placeholders

__all__ = [
    "RegistryStore",
    "SettingsRegistry",
    "apply_variant",
    "cluster_settings",
    "expand",
    "expand_tree",
    "find_placeholders",
    "global_settings",
    "merge_all",
    "merge_settings",
    "resolve_cluster",
    "resolve_defaults",
    "select_package_source",
]
