"""Error taxonomy for settings resolution and file generation.

Every failure raised by the engine is a :class:`PgCrateError` carrying
an :class:`~pgcrate.core.types.ErrorKind` and the offending payload
(the record, the parameter value, the missing keys, or the
unsupported dispatch pair), so callers can report precisely what was
rejected without parsing messages.

Usage::

    raise InvalidParameter("port", {"not": "a scalar"})
"""

from __future__ import annotations

from typing import Any

from pgcrate.core.types import ErrorKind


class PgCrateError(Exception):
    """Base class for all engine errors.

    Parameters
    ----------
    detail:
        Human-readable description of the failure.
    payload:
        The value that caused the failure.

    """

    kind: ErrorKind

    def __init__(self, detail: str, *, payload: Any = None) -> None:  # noqa: ANN401
        self.detail = detail
        self.payload = payload
        super().__init__(detail)

    def to_dict(self) -> dict[str, Any]:
        """Serialise to a JSON-friendly structure."""
        return {
            "kind": self.kind.value,
            "detail": self.detail,
            "payload": self.payload,
        }


class ConfigurationError(PgCrateError):
    """Required settings or keys are absent at generation time."""

    kind = ErrorKind.CONFIGURATION

    def __init__(self, detail: str, *, missing: list[str] | None = None) -> None:
        self.missing = list(missing or [])
        super().__init__(detail, payload=self.missing)


class InvalidRecord(PgCrateError):
    """An auth record is malformed or uses an unrecognised value."""

    kind = ErrorKind.INVALID_RECORD

    def __init__(self, detail: str, record: Any) -> None:  # noqa: ANN401
        self.record = record
        super().__init__(detail, payload=record)


class InvalidParameter(PgCrateError):
    """A parameter value has a type the parameter file cannot express."""

    kind = ErrorKind.INVALID_PARAMETER

    def __init__(self, name: str, value: Any) -> None:  # noqa: ANN401
        self.name = name
        self.value = value
        super().__init__(
            "Parameters must be numbers, booleans, strings, or lists of strings. "
            f"Invalid value for {name!r}: {value!r}",
            payload=value,
        )


class UnsupportedConfiguration(PgCrateError):
    """No defaults rule exists for an OS family / package source pair."""

    kind = ErrorKind.UNSUPPORTED_CONFIGURATION

    def __init__(self, os_family: str, package_source: str) -> None:
        self.os_family = os_family
        self.package_source = package_source
        super().__init__(
            f"No default settings for os family '{os_family}' "
            f"with package source '{package_source}'",
            payload=[os_family, package_source],
        )
