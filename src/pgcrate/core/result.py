"""Returned-value error signalling.

Engine functions raise :class:`~pgcrate.core.errors.PgCrateError`.  At
façade boundaries (the CLI, batch rendering) a failure is more useful
as a value: :func:`attempt` runs a callable and wraps either outcome
in a :class:`Result`.

Usage::

    result = attempt(generate_file, FileKind.HBA, cluster_settings)
    if result.ok:
        write(result.value)
    else:
        log.error("%s", result.error.detail)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from pgcrate.core.errors import PgCrateError

if TYPE_CHECKING:
    from collections.abc import Callable

    from pgcrate.core.types import ErrorKind

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Either a value or a :class:`PgCrateError`, never both."""

    value: T | None = None
    error: PgCrateError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> ErrorKind | None:
        return self.error.kind if self.error is not None else None

    def unwrap(self) -> T:
        """Return the value, re-raising the captured error if there is one."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


def attempt(fn: Callable[..., T], *args: Any, **kwargs: Any) -> Result[T]:  # noqa: ANN401
    """Call *fn* and capture engine errors as a :class:`Result`.

    Only :class:`PgCrateError` is captured; anything else is a bug and
    propagates.
    """
    try:
        return Result(value=fn(*args, **kwargs))
    except PgCrateError as exc:
        return Result(error=exc)
