"""pgcrate configuration loader.

Lifecycle::

    # 1. CLI creates the singleton (once, at startup)
    PgCrateConfig(config_file="/etc/pgcrate/config.yaml")

    # 2. Any module retrieves it afterwards
    from pgcrate.config import get_config
    cfg = get_config()
    cfg.settings.target.os_family  # typed access

    # 3. Resolved PostgreSQL settings of every instance
    registry = cfg.build_registry()

Loading runs in a fixed order: parse YAML/JSON, resolve ``${VAR}``
references, validate against the bundled JSON Schema, run the
cross-field checks, then build the typed settings tree.
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from jsonschema import Draft202012Validator

from pgcrate.config.settings import InstanceSettings, PgCrateSettings, build_settings
from pgcrate.core.result import attempt
from pgcrate.settings.registry import SettingsRegistry

_SCHEMA_PATH = Path(__file__).parent / "schema.json"

_ENV_RE = re.compile(
    r"^\$\{([^}:]+?)(?::-(.*))?\}$",
    re.DOTALL,
)

_DEFAULT_PORT = 5432

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level singleton reference
# ---------------------------------------------------------------------------
_instance: PgCrateConfig | None = None


def get_config() -> PgCrateConfig:
    """Return the initialised configuration singleton.

    Raises :class:`RuntimeError` if :class:`PgCrateConfig` has not been
    created yet (i.e. the CLI entry point has not run).
    """
    if _instance is None:
        msg = (
            "Configuration not initialised. "
            "PgCrateConfig must be created with config_file= before calling get_config()."
        )
        raise RuntimeError(msg)
    return _instance


# ---------------------------------------------------------------------------
# Validation error collector
# ---------------------------------------------------------------------------


class ConfigValidationError(Exception):
    """Raised when schema or cross-field validation finds problems."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        body = "\n".join(f"  - {e}" for e in errors)
        super().__init__(f"Configuration validation failed:\n{body}")


# ---------------------------------------------------------------------------
# Environment variable resolution
# ---------------------------------------------------------------------------


def _resolve_value(value: str, path: str) -> str:
    """Replace ``${VAR}`` or ``${VAR:-default}`` with env var value."""
    match = _ENV_RE.match(value)
    if match is None:
        return value
    var_name = match.group(1)
    fallback = match.group(2)
    resolved = os.environ.get(var_name)
    if resolved is not None:
        return resolved
    if fallback is not None:
        return fallback
    raise ConfigValidationError(
        [
            f"Environment variable '${{{var_name}}}' referenced "
            f"at '{path}' is not set and has no default",
        ],
    )


def _resolve_env_vars(
    data: Any,  # noqa: ANN401
    path: str = "",
) -> None:
    """Walk *data* in-place and resolve ``${VAR}``/``${VAR:-default}`` strings."""
    if isinstance(data, dict):
        for key in data:
            child_path = f"{path}.{key}" if path else str(key)
            if isinstance(data[key], str):
                data[key] = _resolve_value(data[key], child_path)
            elif isinstance(data[key], (dict, list)):
                _resolve_env_vars(data[key], child_path)
    elif isinstance(data, list):
        for idx, item in enumerate(data):
            child_path = f"{path}[{idx}]"
            if isinstance(item, str):
                data[idx] = _resolve_value(item, child_path)
            elif isinstance(item, (dict, list)):
                _resolve_env_vars(item, child_path)


def _read_document(path: Path) -> dict[str, Any]:
    with path.open(encoding="utf-8") as f:
        if path.suffix in {".yaml", ".yml"}:
            data = yaml.safe_load(f)
        else:
            data = json.load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"{path}: top level must be a mapping"
        raise ConfigValidationError([msg])
    return data


def _schema_errors(data: dict[str, Any]) -> list[str]:
    schema = json.loads(_SCHEMA_PATH.read_text(encoding="utf-8"))
    validator = Draft202012Validator(schema)
    errors = []
    for error in sorted(validator.iter_errors(data), key=lambda e: list(e.absolute_path)):
        location = ".".join(str(p) for p in error.absolute_path) or "<root>"
        errors.append(f"{location}: {error.message}")
    return errors


# ---------------------------------------------------------------------------
# Registry construction
# ---------------------------------------------------------------------------


def build_registry(settings: PgCrateSettings) -> SettingsRegistry:
    """Resolve every configured instance and cluster into a registry.

    Raises
    ------
    PgCrateError
        If any instance or cluster fails to resolve.

    """
    registry = SettingsRegistry()
    for instance in settings.instances:
        registry = _register_instance(registry, settings.target.os_family, instance)
    return registry


def _register_instance(
    registry: SettingsRegistry,
    os_family: str,
    instance: InstanceSettings,
) -> SettingsRegistry:
    registry = registry.with_settings(
        os_family,
        instance.settings,
        instance=instance.instance_id,
    )
    for cluster in instance.clusters:
        registry = registry.with_cluster(
            cluster.name,
            cluster.settings,
            variant=cluster.variant,
            instance=instance.instance_id,
        )
    return registry


def _port_conflicts(registry: SettingsRegistry, instance_id: str) -> list[str]:
    """Report clusters of one instance that resolve to the same port."""
    errors = []
    owners: dict[str, str] = {}
    for name in registry.cluster_names(instance_id):
        cluster = registry.cluster(name, instance=instance_id) or {}
        port = str((cluster.get("options") or {}).get("port", _DEFAULT_PORT))
        if port in owners:
            errors.append(
                f"instances.{instance_id}: clusters '{owners[port]}' and '{name}' "
                f"both use port {port}",
            )
        else:
            owners[port] = name
    return errors


# ---------------------------------------------------------------------------
# Config class
# ---------------------------------------------------------------------------


class PgCrateConfig:
    """Central configuration for pgcrate.

    The JSON schema is bundled at ``config/schema.json``; users supply
    only ``config_file``.

    After construction the typed settings tree is available at
    :pyattr:`settings` and the raw dict via :pyattr:`data`.
    """

    def __init__(self, *, config_file: str | Path) -> None:
        """Load, validate and publish the configuration singleton.

        Parameters
        ----------
        config_file:
            Path to the YAML/JSON configuration file.

        Raises
        ------
        ConfigValidationError
            If the file fails schema or cross-field validation.
        FileNotFoundError
            If *config_file* does not exist.

        """
        global _instance  # noqa: PLW0603

        self._path = Path(config_file)
        self._data: dict[str, Any] = {}
        self._load()
        self._validate()
        self.additional_checks()
        self._settings: PgCrateSettings = build_settings(self._data)
        _instance = self
        log.debug("Loaded configuration from %s", self._path)

    # -- lifecycle -----------------------------------------------------------

    def _load(self) -> None:
        """Load the config file then resolve ``${VAR}`` env-var references.

        Resolution runs before schema validation so substituted values
        (e.g. ``${PGCRATE_LOG_LEVEL:-INFO}``) are checked against the
        enum constraints of the schema.
        """
        data = _read_document(self._path)
        _resolve_env_vars(data)
        data["_source"] = str(self._path)
        self._data = data

    def _validate(self) -> None:
        errors = _schema_errors(self._data)
        if errors:
            raise ConfigValidationError(errors)

    # -- typed access --------------------------------------------------------

    @property
    def settings(self) -> PgCrateSettings:
        """Fully-typed, frozen settings tree."""
        return self._settings

    @property
    def data(self) -> dict[str, Any]:
        return self._data

    def build_registry(self) -> SettingsRegistry:
        return build_registry(self._settings)

    # -- cross-field validation ----------------------------------------------

    def additional_checks(self) -> None:
        """Semantic & cross-field validation.

        Runs after schema validation.  Every instance is resolved once so
        that unsupported distributions, unknown variants and leftover
        path templates are reported at load time.
        """
        errors: list[str] = []
        warnings: list[str] = []

        target = self._data.get("target") or {}
        os_family = target.get("os_family")
        instances = self._data.get("instances") or {}

        for instance_id, raw in instances.items():
            raw = raw or {}  # noqa: PLW2901
            inst_settings = raw.get("settings") or {}
            clusters = raw.get("clusters") or {}

            if "clusters" in inst_settings:
                errors.append(
                    f"instances.{instance_id}.settings.clusters is not allowed; "
                    f"declare clusters under instances.{instance_id}.clusters",
                )

            version = inst_settings.get("version")
            if isinstance(version, float):
                warnings.append(
                    f"instances.{instance_id}.settings.version is a number ({version}); "
                    "quote it to keep versions like '9.10' intact",
                )
            if (
                os_family == "debian"
                and str(version or "9.0") == "9.0"
                and not target.get("os_version")
            ):
                warnings.append(
                    f"instances.{instance_id} installs from Debian backports "
                    "but target.os_version is not set",
                )

            for cluster_name, cluster in clusters.items():
                cluster_tree = (cluster or {}).get("settings") or {}
                if "clusters" in cluster_tree:
                    errors.append(
                        f"instances.{instance_id}.clusters.{cluster_name}.settings "
                        "must not contain 'clusters'",
                    )

        if not errors and os_family:
            for instance in build_settings(self._data).instances:
                result = attempt(_register_instance, SettingsRegistry(), os_family, instance)
                if not result.ok:
                    errors.append(f"instances.{instance.instance_id}: {result.error}")
                    continue
                errors.extend(_port_conflicts(result.value, instance.instance_id))

        for w in warnings:
            log.warning("Config warning: %s", w)

        if errors:
            raise ConfigValidationError(errors)

    # -- helpers -------------------------------------------------------------

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton -- testing only."""
        global _instance  # noqa: PLW0603
        _instance = None

    def __repr__(self) -> str:
        return f"<PgCrateConfig config_file={self._path}>"
