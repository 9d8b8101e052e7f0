"""File writer for the local filesystem.

Target paths are absolute paths on the database host; they are written
below ``root`` (``/etc/postgresql/9.0/main/pg_hba.conf`` lands in
``<root>/etc/postgresql/9.0/main/pg_hba.conf``).  With ``root="/"`` the
writer provisions the local machine.

Content is replaced atomically.  Ownership is applied when the process
is allowed to; otherwise a warning is logged and the file is kept.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path

from pgcrate.collaborators.base import FileWriter

log = logging.getLogger(__name__)


class LocalFileWriter(FileWriter):
    """Writes files below a root directory.

    Parameters
    ----------
    root:
        Directory standing in for the host's ``/``.
    apply_ownership:
        Whether to ``chown`` written files and created directories.

    """

    def __init__(self, root: str | Path, *, apply_ownership: bool = False) -> None:
        self._root = Path(root)
        self._apply_ownership = apply_ownership
        self._flags: set[str] = set()

    def _local(self, path: str) -> Path:
        return self._root / path.lstrip("/")

    def _chown(self, path: Path, owner: str | None) -> None:
        if not (self._apply_ownership and owner):
            return
        try:
            shutil.chown(path, user=owner)
        except (OSError, LookupError) as exc:
            log.warning("Could not set owner of %s to %s: %s", path, owner, exc)

    def _make_parents(self, target: Path, owner: str | None, directory_mode: str | None) -> None:
        missing = [p for p in reversed(target.parents) if not p.exists()]
        for directory in missing:
            directory.mkdir()
            if directory_mode:
                directory.chmod(int(directory_mode, 8))
            self._chown(directory, owner)

    def write(
        self,
        path: str,
        content: str,
        *,
        owner: str | None = None,
        mode: str | None = None,
        directory_mode: str | None = None,
        literal: bool = True,  # noqa: ARG002
        flag: str | None = None,
    ) -> bool:
        target = self._local(path)
        previous = target.read_text(encoding="utf-8") if target.is_file() else None
        changed = previous != content
        if not changed:
            log.debug("Unchanged %s", target)
            return False

        self._make_parents(target, owner, directory_mode)
        fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(content)
            if mode:
                os.chmod(tmp_name, int(mode, 8))  # noqa: PTH101
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        self._chown(target, owner)

        if flag:
            self._flags.add(flag)
        log.info("Wrote %s", target)
        return True

    def delete(self, path: str) -> None:
        self._local(path).unlink(missing_ok=True)

    def is_flag_set(self, flag: str) -> bool:
        return flag in self._flags
