"""Script runner executing SQL through psycopg.

Connects to one cluster (socket directory or listen address, and port,
taken from the resolved cluster settings) and runs the script in
autocommit mode, which ``CREATE DATABASE`` requires.  Server notices
and the final command status are returned as the script output.

Usage::

    runner = PsqlScriptRunner.for_cluster(registry.cluster("main"))
    result = runner.run("CREATE DATABASE app;", user="postgres",
                        ignore_failure=True)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import psycopg

from pgcrate.collaborators.base import ScriptResult, ScriptRunner

if TYPE_CHECKING:
    from collections.abc import Mapping

log = logging.getLogger(__name__)

_DEFAULT_CONNECT_TIMEOUT = 10


class PsqlScriptRunner(ScriptRunner):
    """Run SQL scripts against one PostgreSQL cluster.

    Parameters
    ----------
    host:
        Unix socket directory or host name.
    port:
        Server port.
    password:
        Optional password, for clusters not using peer/ident auth.
    connect_timeout:
        Seconds to wait for a connection.

    """

    def __init__(
        self,
        *,
        host: str,
        port: int,
        password: str | None = None,
        connect_timeout: int = _DEFAULT_CONNECT_TIMEOUT,
    ) -> None:
        self._host = host
        self._port = port
        self._password = password
        self._connect_timeout = connect_timeout

    @classmethod
    def for_cluster(
        cls,
        cluster_settings: Mapping[str, Any],
        *,
        password: str | None = None,
    ) -> PsqlScriptRunner:
        """Build a runner from resolved cluster settings."""
        options = cluster_settings.get("options") or {}
        host = options.get("unix_socket_directory")
        if not host:
            listen = str(options.get("listen_addresses") or "localhost")
            host = listen.split(",")[0].strip()
            if host in {"*", "0.0.0.0", "::"}:  # noqa: S104
                host = "localhost"
        return cls(host=host, port=int(options.get("port", 5432)), password=password)

    def run(
        self,
        script: str,
        *,
        user: str,
        database: str | None = None,
        ignore_failure: bool = False,
        title: str | None = None,
    ) -> ScriptResult:
        label = title or "psql script"
        notices: list[str] = []
        conninfo: dict[str, Any] = {
            "host": self._host,
            "port": self._port,
            "user": user,
            "dbname": database or user,
            "connect_timeout": self._connect_timeout,
        }
        if self._password:
            conninfo["password"] = self._password

        try:
            with psycopg.connect(autocommit=True, **conninfo) as conn:
                conn.add_notice_handler(lambda diag: notices.append(diag.message_primary or ""))
                cursor = conn.execute(script)
                if cursor.statusmessage:
                    notices.append(cursor.statusmessage)
        except psycopg.Error as exc:
            if ignore_failure:
                log.info("%s failed (ignored): %s", label, exc)
            else:
                log.error("%s failed: %s", label, exc)  # noqa: TRY400
            # an ignored failure counts as success, errors are still reported
            return ScriptResult(
                success=ignore_failure,
                output="\n".join(notices),
                errors=(str(exc),),
            )

        log.info("%s succeeded on %s:%s", label, self._host, self._port)
        return ScriptResult(success=True, output="\n".join(notices))
