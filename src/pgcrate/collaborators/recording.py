"""Collaborators that record what they are asked to do.

Used for dry runs and ``pgcrate plan``: every call becomes a
:class:`PlannedAction`, in call order, and nothing touches the host.
Change flags follow the same rule as a real writer (content differs
from the previous write of the same path), so conditional service
actions are recorded with the flag state they would see.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any

from pgcrate.collaborators.base import (
    FileWriter,
    PackageInstaller,
    ScriptResult,
    ScriptRunner,
    ServiceController,
    ShellRunner,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from pgcrate.collaborators.base import RepositoryDescriptor
    from pgcrate.core.types import ServiceAction

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlannedAction:
    """One recorded collaborator call."""

    action: str
    target: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class RecordingCollaborators(
    FileWriter, PackageInstaller, ServiceController, ScriptRunner, ShellRunner
):
    """Every collaborator interface in one recorder."""

    def __init__(self) -> None:
        self.actions: list[PlannedAction] = []
        self._contents: dict[str, str] = {}
        self._flags: set[str] = set()

    def _record(self, action: str, target: str, /, **details: Any) -> None:  # noqa: ANN401
        self.actions.append(PlannedAction(action=action, target=target, details=details))
        log.debug("Planned %s %s", action, target)

    # -- FileWriter ------------------------------------------------------------

    def write(
        self,
        path: str,
        content: str,
        *,
        owner: str | None = None,
        mode: str | None = None,
        directory_mode: str | None = None,
        literal: bool = True,
        flag: str | None = None,
    ) -> bool:
        changed = self._contents.get(path) != content
        self._contents[path] = content
        if changed and flag:
            self._flags.add(flag)
        self._record(
            "file",
            path,
            content=content,
            owner=owner,
            mode=mode,
            directory_mode=directory_mode,
            literal=literal,
            flag=flag,
            changed=changed,
        )
        return changed

    def delete(self, path: str) -> None:
        self._contents.pop(path, None)
        self._record("delete", path)

    def is_flag_set(self, flag: str) -> bool:
        return flag in self._flags

    def content_of(self, path: str) -> str | None:
        """Return the last content written to *path*."""
        return self._contents.get(path)

    # -- PackageInstaller ------------------------------------------------------

    def install(
        self,
        packages: Sequence[str],
        *,
        repository: RepositoryDescriptor | None = None,
    ) -> None:
        if repository is not None:
            self._record(
                "repository",
                repository.name,
                kind=repository.kind,
                url=repository.url,
            )
        for package in packages:
            self._record("package", package)

    # -- ServiceController ------------------------------------------------------

    def control(
        self,
        service: str,
        action: ServiceAction,
        *,
        if_flag: str | None = None,
    ) -> None:
        self._record(
            "service",
            service,
            action=str(action),
            if_flag=if_flag,
            flag_set=self.is_flag_set(if_flag) if if_flag else None,
        )

    # -- ScriptRunner ------------------------------------------------------------

    def run(
        self,
        script: str,
        *,
        user: str,
        database: str | None = None,
        ignore_failure: bool = False,
        title: str | None = None,
    ) -> ScriptResult:
        self._record(
            "script",
            title or "script",
            script=script,
            user=user,
            database=database,
            ignore_failure=ignore_failure,
        )
        return ScriptResult(success=True)

    # -- ShellRunner -------------------------------------------------------------

    def run_command(
        self,
        command: str,
        *,
        user: str | None = None,
        ignore_failure: bool = False,
        title: str | None = None,
    ) -> ScriptResult:
        self._record(
            "command",
            title or "command",
            command=command,
            user=user,
            ignore_failure=ignore_failure,
        )
        return ScriptResult(success=True)

    def to_list(self) -> list[dict[str, Any]]:
        return [a.to_dict() for a in self.actions]
