"""Side-effecting collaborators.

Exports the abstract interfaces and the bundled implementations.
"""

from pgcrate.collaborators.base import (
    FileWriter,
    PackageInstaller,
    RepositoryDescriptor,
    ScriptResult,
    ScriptRunner,
    ServiceController,
    ShellRunner,
)
from pgcrate.collaborators.local import LocalFileWriter
from pgcrate.collaborators.psql import PsqlScriptRunner
from pgcrate.collaborators.recording import PlannedAction, RecordingCollaborators
from pgcrate.collaborators.shell import LocalShellRunner, PsqlShellRunner

__all__ = [
    "FileWriter",
    "LocalFileWriter",
    "LocalShellRunner",
    "PackageInstaller",
    "PlannedAction",
    "PsqlScriptRunner",
    "PsqlShellRunner",
    "RecordingCollaborators",
    "RepositoryDescriptor",
    "ScriptResult",
    "ScriptRunner",
    "ServiceController",
    "ShellRunner",
]
