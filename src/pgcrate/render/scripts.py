"""SQL and shell command text for provisioning operations.

Everything here is pure string building from resolved settings; the
provisioning service hands the results to a
:class:`~pgcrate.collaborators.base.ScriptRunner` or
:class:`~pgcrate.collaborators.base.ShellRunner`.

PostgreSQL has no ``CREATE DATABASE IF NOT EXISTS`` and the statement
cannot run inside a function, so :func:`create_database_sql` relies on
the caller ignoring the "already exists" failure.  Roles are created
through a PL/pgSQL block instead.
"""

from __future__ import annotations

import posixpath
import re
import shlex
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

INIT_SCRIPT_DIR = "/etc/init.d"
SYSCONFIG_DIR = "/etc/sysconfig/pgsql"

# Versions with anonymous DO blocks but no CREATE ROLE IF NOT EXISTS
# equivalent; the block also re-applies parameters to an existing role.
_DO_BLOCK_VERSIONS = re.compile(r"9\.[0-2]")

_ROLE_DO_BLOCK = """\
do $$declare user_rec record;
BEGIN
 select into user_rec * from pg_roles where rolname='{name}';
 if user_rec.rolname is null then
     create role {name} {parameters};
 else
     alter role {name} {parameters};
 end if;
END$$;"""

_ROLE_TEMP_FUNCTION = """\
create or replace function pg_temp.createuser() returns void as $$
 declare user_rec record;
 begin
 select into user_rec * from pg_roles where rolname='{name}';
 if user_rec.rolname is null then
     create role {name} {parameters};
 end if;
 end;
 $$ language plpgsql;
 select pg_temp.createuser();"""


def _join_parameters(parameters: Sequence[Any]) -> str:
    return " ".join(str(p) for p in parameters)


# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------


def create_database_sql(name: str, parameters: Sequence[Any] = ()) -> str:
    """Return the ``CREATE DATABASE`` statement for *name*.

    *parameters* are appended verbatim, in order, e.g.
    ``["ENCODING", "'LATIN1'"]``.
    """
    clause = _join_parameters(parameters)
    return f"CREATE DATABASE {name} {clause};" if clause else f"CREATE DATABASE {name};"


def create_role_sql(name: str, parameters: Sequence[Any], version: str) -> str:
    """Return SQL creating role *name* unless it already exists.

    Parameters
    ----------
    name:
        Role name.
    parameters:
        Role options, rendered after ``WITH`` (e.g.
        ``["ENCRYPTED", "PASSWORD", "'secret'"]``).
    version:
        Server version; 9.0 to 9.2 get an anonymous ``DO`` block, other
        versions a temporary function.

    """
    clause = _join_parameters(parameters)
    with_clause = f"WITH {clause}" if clause.strip() else ""
    template = _ROLE_DO_BLOCK if _DO_BLOCK_VERSIONS.fullmatch(str(version)) else _ROLE_TEMP_FUNCTION
    return template.format(name=name, parameters=with_clause)


# ---------------------------------------------------------------------------
# Shell
# ---------------------------------------------------------------------------


def _bin_path(bin_dir: str | None, program: str) -> str:
    return posixpath.join(bin_dir, program) if bin_dir else program


def psql_command(  # noqa: PLR0913
    script_path: str,
    *,
    as_user: str,
    global_settings: Mapping[str, Any],
    cluster_settings: Mapping[str, Any],
    cluster_name: str,
    db_name: str | None = None,
    show_stdout: bool = True,
    ignore_result: bool = False,
) -> str:
    """Return the shell line running *script_path* through ``psql``.

    Distributions with the Debian ``pg_wrapper`` select the cluster with
    ``--cluster <version>/<cluster>``; elsewhere ``PGDATA`` and
    ``PGPORT`` are set in the environment.  The command runs in a
    subshell from the user's home directory.
    """
    options = cluster_settings.get("options") or {}
    parts = [f"cd ~{as_user}", "&&", "sudo", "-u", shlex.quote(as_user)]
    has_wrapper = bool(global_settings.get("has-pg-wrapper"))
    if not has_wrapper:
        parts += [
            "env",
            f"PGDATA={shlex.quote(str(options.get('data_directory', '')))}",
            f"PGPORT={shlex.quote(str(options.get('port', '')))}",
        ]
    parts.append("psql")
    if has_wrapper:
        parts += ["--cluster", f"{global_settings.get('version')}/{cluster_name}"]
    if db_name:
        parts += ["-d", shlex.quote(db_name)]
    parts += ["-f", shlex.quote(script_path)]
    if not show_stdout:
        parts.append(">/dev/null")
    if ignore_result:
        parts += ["2>/dev/null", "||", "true"]
    return "(\n" + " ".join(parts) + "\n)"


def initdb_command(data_dir: str, *, owner: str, bin_dir: str | None = None) -> str:
    """Return the guarded ``initdb`` invocation for *data_dir*.

    Creates the data directory (mode ``0700``) and only initialises it
    when no ``PG_VERSION`` file exists yet.
    """
    quoted_dir = shlex.quote(data_dir)
    quoted_owner = shlex.quote(owner)
    initdb = shlex.quote(_bin_path(bin_dir, "initdb"))
    return (
        f"mkdir -p {quoted_dir} && chown {quoted_owner} {quoted_dir} && chmod 0700 {quoted_dir}\n"
        f"if [ ! -e {shlex.quote(posixpath.join(data_dir, 'PG_VERSION'))} ]; then\n"
        f"  sudo -u {quoted_owner} {initdb} -D {quoted_dir}\n"
        "fi"
    )


def controldata_command(data_dir: str, *, owner: str, bin_dir: str | None = None) -> str:
    """Return the ``pg_controldata`` invocation for *data_dir*."""
    program = shlex.quote(_bin_path(bin_dir, "pg_controldata"))
    return f"sudo -u {shlex.quote(owner)} {program} {shlex.quote(data_dir)}"


def init_script_path(service: str) -> str:
    return posixpath.join(INIT_SCRIPT_DIR, service)


def sysconfig_path(service: str) -> str:
    return posixpath.join(SYSCONFIG_DIR, service)


def copy_init_script_command(service: str, source_service: str) -> str:
    """Return the command installing *service*'s init script.

    The script is a copy of *source_service*'s; Red Hat init scripts
    read their data directory and port from the sysconfig file named
    after the script.
    """
    source = shlex.quote(init_script_path(source_service))
    target = shlex.quote(init_script_path(service))
    return f"cp -p {source} {target} && chmod 0755 {target}"


def sysconfig_defaults(data_dir: str, port: Any) -> str:  # noqa: ANN401
    """Return the sysconfig file content for one cluster service."""
    return f"PGDATA={data_dir}\nPGPORT={port}\n"
