"""Shell based runners.

:class:`LocalShellRunner` executes commands on the local machine with
:mod:`subprocess`.  :class:`PsqlShellRunner` is a
:class:`~pgcrate.collaborators.base.ScriptRunner` that works like the
``psql`` command-line client: the SQL is written to a temporary file,
``psql`` runs it as the cluster owner, and the file is removed again.
It only needs a file writer and a shell runner, so it also works with
:class:`~pgcrate.collaborators.recording.RecordingCollaborators` to
produce a plan.
"""

from __future__ import annotations

import getpass
import hashlib
import logging
import posixpath
import subprocess
from typing import TYPE_CHECKING, Any

from pgcrate.collaborators.base import ScriptResult, ScriptRunner, ShellRunner
from pgcrate.render.scripts import psql_command

if TYPE_CHECKING:
    from collections.abc import Mapping

    from pgcrate.collaborators.base import FileWriter

log = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 300


class LocalShellRunner(ShellRunner):
    """Run commands with ``sh -c`` on this machine.

    Parameters
    ----------
    timeout:
        Seconds before a command is killed.

    """

    def __init__(self, *, timeout: int = _DEFAULT_TIMEOUT) -> None:
        self._timeout = timeout

    def run_command(
        self,
        command: str,
        *,
        user: str | None = None,
        ignore_failure: bool = False,
        title: str | None = None,
    ) -> ScriptResult:
        label = title or "command"
        argv = ["sh", "-c", command]
        if user and user != getpass.getuser():
            argv = ["sudo", "-u", user, *argv]

        log.debug("Running %s: %s", label, command)
        try:
            proc = subprocess.run(  # noqa: S603
                argv,
                capture_output=True,
                text=True,
                timeout=self._timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            log.error("%s could not run: %s", label, exc)  # noqa: TRY400
            return ScriptResult(success=ignore_failure, errors=(str(exc),))

        errors = (proc.stderr.strip(),) if proc.stderr.strip() else ()
        if proc.returncode != 0:
            if ignore_failure:
                log.info("%s exited %d (ignored)", label, proc.returncode)
            else:
                log.error("%s exited %d: %s", label, proc.returncode, proc.stderr.strip())
            return ScriptResult(success=ignore_failure, output=proc.stdout, errors=errors)

        log.info("%s succeeded", label)
        return ScriptResult(success=True, output=proc.stdout, errors=errors)


class PsqlShellRunner(ScriptRunner):
    """Run SQL through the ``psql`` client of one cluster.

    Parameters
    ----------
    files:
        Writes (and deletes) the temporary script file.
    shell:
        Executes the ``psql`` command line.
    global_settings:
        Instance-level settings (``version``, ``has-pg-wrapper``).
    cluster_settings:
        Resolved settings of the target cluster.
    cluster_name:
        Name of the target cluster.
    tmp_dir:
        Directory for the temporary script file.

    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        files: FileWriter,
        shell: ShellRunner,
        global_settings: Mapping[str, Any],
        cluster_settings: Mapping[str, Any],
        cluster_name: str,
        tmp_dir: str = "/tmp",  # noqa: S108
    ) -> None:
        self._files = files
        self._shell = shell
        self._global = global_settings
        self._cluster = cluster_settings
        self._cluster_name = cluster_name
        self._tmp_dir = tmp_dir

    def _script_path(self, script: str) -> str:
        digest = hashlib.sha256(script.encode("utf-8")).hexdigest()[:16]
        return posixpath.join(self._tmp_dir, f"pgcrate-{digest}.sql")

    def run(
        self,
        script: str,
        *,
        user: str,
        database: str | None = None,
        ignore_failure: bool = False,
        title: str | None = None,
    ) -> ScriptResult:
        path = self._script_path(script)
        self._files.write(path, script, owner=user, mode="0600")
        command = psql_command(
            path,
            as_user=user,
            global_settings=self._global,
            cluster_settings=self._cluster,
            cluster_name=self._cluster_name,
            db_name=database,
            ignore_result=ignore_failure,
        )
        label = "psql script" + (f" - {title}" if title else "")
        try:
            return self._shell.run_command(command, ignore_failure=ignore_failure, title=label)
        finally:
            self._files.delete(path)
