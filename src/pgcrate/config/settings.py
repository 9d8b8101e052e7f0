"""Typed, frozen dataclasses for every configuration section.

This module is the **single source of truth** for default values.
JSON Schema defaults exist only for documentation; these builders are
what the application actually reads.

The PostgreSQL settings trees themselves (``instances.*.settings`` and
``instances.*.clusters.*.settings``) are kept as plain mappings: their
shape is owned by :mod:`pgcrate.settings`, not by this module.

Access pattern::

    from pgcrate.config import get_config

    target = get_config().settings.target
    print(target.os_family, target.os_version)
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any

from pgcrate.core.types import MaskPolicy

# ---------------------------------------------------------------------------
# Target
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TargetSettings:
    """The host PostgreSQL is provisioned on."""

    os_family: str
    os_version: str | None


def _build_target(data: dict | None) -> TargetSettings:
    d = data or {}
    version = d.get("os_version")
    return TargetSettings(
        os_family=d["os_family"],
        os_version=str(version) if version is not None else None,
    )


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoggingSettings:
    level: str
    format: str


def _build_logging(data: dict | None) -> LoggingSettings:
    d = data or {}
    return LoggingSettings(
        level=d.get("level", "INFO"),
        format=d.get("format", "text"),
    )


# ---------------------------------------------------------------------------
# Render
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RenderSettings:
    """Where and how generated files are written."""

    output_dir: str
    mask_policy: MaskPolicy
    file_mode: str
    directory_mode: str


def _build_render(data: dict | None) -> RenderSettings:
    d = data or {}
    return RenderSettings(
        output_dir=d.get("output_dir", "/"),
        mask_policy=MaskPolicy(d.get("mask_policy", MaskPolicy.DOTTED_QUAD.value)),
        file_mode=str(d.get("file_mode", "0600")),
        directory_mode=str(d.get("directory_mode", "0700")),
    )


# ---------------------------------------------------------------------------
# Instances
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClusterEntrySettings:
    """Overrides and deployment variant requested for one cluster."""

    name: str
    settings: dict[str, Any] = field(default_factory=dict)
    variant: str | None = None


@dataclass(frozen=True)
class InstanceSettings:
    """One PostgreSQL installation and its clusters."""

    instance_id: str
    settings: dict[str, Any]
    clusters: tuple[ClusterEntrySettings, ...]


def _build_cluster(name: str, data: dict | None) -> ClusterEntrySettings:
    d = data or {}
    return ClusterEntrySettings(
        name=name,
        settings=copy.deepcopy(d.get("settings") or {}),
        variant=d.get("variant"),
    )


def _build_instances(data: dict | None) -> tuple[InstanceSettings, ...]:
    d = data or {}
    instances = []
    for instance_id, raw in d.items():
        raw = raw or {}  # noqa: PLW2901
        clusters = raw.get("clusters") or {}
        instances.append(
            InstanceSettings(
                instance_id=str(instance_id),
                settings=copy.deepcopy(raw.get("settings") or {}),
                clusters=tuple(_build_cluster(str(n), c) for n, c in clusters.items()),
            )
        )
    return tuple(instances)


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PgCrateSettings:
    """Root of the typed settings tree."""

    target: TargetSettings
    logging: LoggingSettings
    render: RenderSettings
    instances: tuple[InstanceSettings, ...]

    def instance(self, instance_id: str) -> InstanceSettings | None:
        for entry in self.instances:
            if entry.instance_id == instance_id:
                return entry
        return None


def build_settings(data: dict) -> PgCrateSettings:
    """Build the full typed settings tree from raw config data.

    Called once during :class:`~pgcrate.config.PgCrateConfig`
    initialization after environment-variable resolution and schema
    validation.
    """
    return PgCrateSettings(
        target=_build_target(data.get("target")),
        logging=_build_logging(data.get("logging")),
        render=_build_render(data.get("render")),
        instances=_build_instances(data.get("instances")),
    )
