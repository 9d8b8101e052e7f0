"""Configuration subsystem for pgcrate.

Public API::

    from pgcrate.config import get_config, PgCrateConfig

    # At startup (CLI only):
    PgCrateConfig(config_file="config.yaml")

    # Everywhere else:
    cfg      = get_config()
    family   = cfg.settings.target.os_family    # typed access
    registry = cfg.build_registry()             # resolved instances
"""

from pgcrate.config.pgcrate_config import (
    ConfigValidationError,
    PgCrateConfig,
    build_registry,
    get_config,
)
from pgcrate.config.settings import (
    ClusterEntrySettings,
    InstanceSettings,
    LoggingSettings,
    PgCrateSettings,
    RenderSettings,
    TargetSettings,
    build_settings,
)

__all__ = [
    "ClusterEntrySettings",
    "ConfigValidationError",
    "InstanceSettings",
    "LoggingSettings",
    "PgCrateConfig",
    "PgCrateSettings",
    "RenderSettings",
    "TargetSettings",
    "build_registry",
    "build_settings",
    "get_config",
]
