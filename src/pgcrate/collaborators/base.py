"""Abstract interfaces for the side-effecting collaborators.

The resolution and rendering engine never performs I/O.  Provisioning
operations (:mod:`pgcrate.services.provisioning`) hand their effects to
the collaborators below:

- :class:`FileWriter` writes files (creating parent directories) and
  raises a named change flag when content differs from the last write;
- :class:`PackageInstaller` installs packages, optionally after adding
  an extra repository;
- :class:`ServiceController` drives system services, optionally only
  when a change flag is set;
- :class:`ScriptRunner` executes SQL scripts against a cluster;
- :class:`ShellRunner` executes shell commands (initdb, pg_controldata).

Implementations must be safe to call repeatedly with the same input.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from pgcrate.core.types import ServiceAction


@dataclass(frozen=True)
class RepositoryDescriptor:
    """An extra package repository to enable before installing.

    Attributes
    ----------
    name:
        Human-readable repository name.
    kind:
        ``"apt-ppa"``, ``"apt-backports"`` or ``"rpm"``.
    url:
        PPA name, release channel or rpm URL.

    """

    name: str
    kind: str
    url: str


@dataclass(frozen=True)
class ScriptResult:
    """Outcome of a script execution."""

    success: bool
    output: str = ""
    errors: tuple[str, ...] = field(default_factory=tuple)


class FileWriter(abc.ABC):
    """Writes configuration and script files."""

    @abc.abstractmethod
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
        """Write *content* to *path*.

        Parent directories are created with *owner* and
        *directory_mode*.  With *literal* false the content may be
        treated as a template by the implementation.

        Returns
        -------
        bool
            ``True`` if the content differs from the previous write.
            When it does and *flag* is given, the flag is set.

        """

    @abc.abstractmethod
    def delete(self, path: str) -> None:
        """Remove *path* if it exists."""

    @abc.abstractmethod
    def is_flag_set(self, flag: str) -> bool:
        """Whether a write has raised *flag*."""


class PackageInstaller(abc.ABC):
    """Installs system packages."""

    @abc.abstractmethod
    def install(
        self,
        packages: Sequence[str],
        *,
        repository: RepositoryDescriptor | None = None,
    ) -> None:
        """Install *packages* in order, enabling *repository* first."""


class ServiceController(abc.ABC):
    """Controls system services."""

    @abc.abstractmethod
    def control(
        self,
        service: str,
        action: ServiceAction,
        *,
        if_flag: str | None = None,
    ) -> None:
        """Apply *action* to *service*.

        With *if_flag* the action only runs when that change flag is set.
        """


class ScriptRunner(abc.ABC):
    """Executes SQL scripts on the target host."""

    @abc.abstractmethod
    def run(
        self,
        script: str,
        *,
        user: str,
        database: str | None = None,
        ignore_failure: bool = False,
        title: str | None = None,
    ) -> ScriptResult:
        """Execute *script* as *user*, connected to *database* if given."""


class ShellRunner(abc.ABC):
    """Executes shell commands on the target host."""

    @abc.abstractmethod
    def run_command(
        self,
        command: str,
        *,
        user: str | None = None,
        ignore_failure: bool = False,
        title: str | None = None,
    ) -> ScriptResult:
        """Execute *command*, as *user* when given."""
