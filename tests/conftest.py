"""Root conftest for the pgcrate test suite."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest
import yaml

# ---------------------------------------------------------------------------
# Make ``src/`` importable without installing the package
# ---------------------------------------------------------------------------
_SRC = str(Path(__file__).resolve().parent.parent / "src")
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)


# ---------------------------------------------------------------------------
# Minimal config data shared by multiple test modules
# ---------------------------------------------------------------------------


@pytest.fixture()
def minimal_config_data() -> dict:
    """Return a dict containing the minimum required config fields."""
    return {
        "target": {"os_family": "ubuntu", "os_version": "10.04"},
        "instances": {"default": {"settings": {"version": "9.0"}}},
    }


@pytest.fixture()
def tmp_config_file(tmp_path: Path, minimal_config_data: dict) -> Path:
    """Write *minimal_config_data* to a temp YAML file and return its path."""
    cfg = tmp_path / "config.yaml"
    cfg.write_text(
        yaml.safe_dump(minimal_config_data, default_flow_style=False, sort_keys=False),
        encoding="utf-8",
    )
    return cfg


@pytest.fixture()
def debian_global() -> dict:
    """Instance-level settings for PostgreSQL 9.0 on Debian."""
    from pgcrate.settings.defaults import global_settings

    return global_settings("debian", {"version": "9.0"})


@pytest.fixture()
def centos_global() -> dict:
    """Instance-level settings for PostgreSQL 9.0 from PGDG on CentOS."""
    from pgcrate.settings.defaults import global_settings

    return global_settings("centos", {"version": "9.0"})


# ---------------------------------------------------------------------------
# Config singleton cleanup, autouse so every test gets a fresh slate
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def fresh_config():
    """Reset the PgCrateConfig singleton before and after every test."""
    from pgcrate.config.pgcrate_config import PgCrateConfig

    PgCrateConfig.reset()
    yield
    PgCrateConfig.reset()


@pytest.fixture(autouse=True)
def restore_pgcrate_logger():
    """Undo ``configure_logging`` so caplog keeps seeing pgcrate records."""
    import logging

    logger = logging.getLogger("pgcrate")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate
