"""pgcrate command-line entry point.

Usage::

    pgcrate -c /etc/pgcrate/config.yaml --validate-only
    pgcrate -c config.yaml settings --cluster main
    pgcrate -c config.yaml render --kind hba --kind postgresql --dry-run
    pgcrate -c config.yaml render --output /srv/staging
    pgcrate -c config.yaml plan
    pgcrate -c config.yaml script create-database app --param "ENCODING 'UTF8'"
    pgcrate -c config.yaml script create-role app --param LOGIN
    pgcrate -c config.yaml script create-database app --execute
    python -m pgcrate -c config.yaml settings
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

log = logging.getLogger(__name__)

_FILE_KINDS = ("hba", "postgresql", "recovery", "start")


def _get_version() -> str:
    from pgcrate import __version__

    return __version__


def _add_target_arguments(parser: argparse.ArgumentParser, *, cluster: bool = True) -> None:
    parser.add_argument(
        "--instance",
        default="default",
        help="Instance id from the configuration (default: %(default)s).",
    )
    if cluster:
        parser.add_argument(
            "--cluster",
            default=None,
            help="Cluster name (default: the distribution's default cluster).",
        )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pgcrate",
        description="pgcrate: PostgreSQL settings resolution and config file generation",
    )
    parser.add_argument(
        "-c",
        "--config",
        required=True,
        metavar="PATH",
        help="Path to the configuration file (YAML or JSON).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Enable debug output (full tracebacks, verbose logging).",
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Validate the configuration file and exit.",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    subparsers = parser.add_subparsers(dest="command")

    # settings
    settings_parser = subparsers.add_parser("settings", help="Print resolved settings as YAML")
    _add_target_arguments(settings_parser)
    settings_parser.add_argument(
        "--global",
        dest="global_only",
        action="store_true",
        default=False,
        help="Print the instance-level tree instead of one cluster.",
    )

    # render
    render_parser = subparsers.add_parser("render", help="Generate configuration files")
    _add_target_arguments(render_parser)
    render_parser.add_argument(
        "--kind",
        action="append",
        choices=_FILE_KINDS,
        help="File kind to render; repeatable (default: hba, postgresql, start).",
    )
    render_parser.add_argument(
        "--output",
        metavar="DIR",
        default=None,
        help="Directory standing in for the target's / (default: render.output_dir).",
    )
    render_parser.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        help="Print the files instead of writing them.",
    )

    # plan
    plan_parser = subparsers.add_parser("plan", help="Print the provisioning plan as JSON")
    _add_target_arguments(plan_parser, cluster=False)

    # script
    script_parser = subparsers.add_parser("script", help="Print or run generated SQL")
    script_sub = script_parser.add_subparsers(dest="script_command")
    for name, help_text in [
        ("create-database", "SQL creating a database unless it exists"),
        ("create-role", "SQL creating a role unless it exists"),
    ]:
        p = script_sub.add_parser(name, help=help_text)
        p.add_argument("name", help="Database or role name")
        p.add_argument(
            "--param",
            action="append",
            default=[],
            dest="parameters",
            help="Statement parameter, appended verbatim; repeatable.",
        )
        p.add_argument(
            "--execute",
            action="store_true",
            default=False,
            help="Run the SQL on the cluster through psycopg instead of printing it.",
        )
        _add_target_arguments(p)

    return parser


def _print_error(message: str) -> None:
    """Print a user-facing error to stderr."""
    sys.stderr.write(f"pgcrate: error: {message}\n")


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.  Parses arguments, loads config, runs a command."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    # -- resolve config path ---
    config_path = Path(args.config)
    if not config_path.is_file():
        _print_error(f"configuration file not found: {config_path}")
        sys.exit(1)

    # -- bootstrap logging early (basic stderr until config is loaded) ---
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    # -- load & validate config ---
    try:
        from pgcrate.config import ConfigValidationError, PgCrateConfig

        config = PgCrateConfig(config_file=str(config_path))
    except ConfigValidationError as exc:
        _print_error(str(exc))
        sys.exit(1)
    except Exception as exc:
        if args.debug:
            raise
        _print_error(f"failed to load configuration: {exc}")
        sys.exit(1)

    # -- replace bootstrap logging with structured logging ---
    from pgcrate.logging import configure_logging

    configure_logging(config.settings.logging)
    if args.debug:
        logging.getLogger("pgcrate").setLevel(logging.DEBUG)

    if args.validate_only:
        _print_settings_summary(config)
        sys.exit(0)

    # -- dispatch subcommand ---
    command = args.command

    if command == "settings":
        from pgcrate.cli.commands.settings import run_settings

        run_settings(config, args)
    elif command == "render":
        from pgcrate.cli.commands.render import run_render

        run_render(config, args)
    elif command == "plan":
        from pgcrate.cli.commands.plan import run_plan

        run_plan(config, args)
    elif command == "script":
        from pgcrate.cli.commands.script import run_script

        run_script(config, args)
    else:
        parser.print_help(sys.stderr)
        sys.exit(2)


def _print_settings_summary(config) -> None:
    """Print a short summary of the loaded configuration."""
    settings = config.settings
    lines = [
        f"configuration OK: {config.data.get('_source')}",
        f"  target: {settings.target.os_family} {settings.target.os_version or ''}".rstrip(),
    ]
    for instance in settings.instances:
        clusters = ", ".join(c.name for c in instance.clusters) or "(default only)"
        lines.append(f"  instance {instance.instance_id}: clusters {clusters}")
    sys.stdout.write("\n".join(lines) + "\n")
