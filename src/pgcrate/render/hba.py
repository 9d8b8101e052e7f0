"""pg_hba.conf record parsing, validation and formatting.

A record is given either positionally::

    ["host", "all", "all", "10.0.0.0", "255.255.255.0", "md5"]

or as a mapping with the canonical field names::

    {"connection-type": "hostssl", "database": "all", "user": "app",
     "address": "10.0.0.0/8", "auth-method": "cert",
     "auth-options": {"clientcert": "1"}}

Positional records are canonicalised by one parse function per
connection type.  For ``host`` style records the element after the
address is either an IP mask or the auth method; the decision is made
by a :class:`~pgcrate.core.types.MaskPolicy`.  The default
``dotted-quad`` policy is a loose four-group digit match: it does not
understand CIDR and accepts any separator between the groups.

Invalid records raise :class:`~pgcrate.core.errors.InvalidRecord`; a
pg_hba.conf is never rendered with a record silently dropped.
"""

from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pgcrate.core.errors import InvalidRecord
from pgcrate.core.types import AuthMethod, ConnectionType, MaskPolicy

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

AUTH_METHODS = frozenset(m.value for m in AuthMethod)
CONNECTION_TYPES = frozenset(c.value for c in ConnectionType)
HOST_TYPES = frozenset(
    {ConnectionType.HOST.value, ConnectionType.HOSTSSL.value, ConnectionType.HOSTNOSSL.value}
)

_DOTTED_QUAD_RE = re.compile(r"[0-9]{1,3}.[0-9]{1,3}.[0-9]{1,3}.[0-9]{1,3}")

FIELD_ORDER: tuple[str, ...] = (
    "connection-type",
    "database",
    "user",
    "address",
    "ip-mask",
    "auth-method",
    "auth-options",
)


# ---------------------------------------------------------------------------
# Record types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PositionalRecord:
    """A record given as an ordered list of fields."""

    fields: tuple[Any, ...]


@dataclass(frozen=True)
class CanonicalRecord:
    """A record with every field named."""

    connection_type: str
    database: str | None
    user: str | None
    auth_method: str | None
    address: str | None = None
    ip_mask: str | None = None
    auth_options: Mapping[str, Any] | str = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        """Return the record keyed by the canonical hyphenated names."""
        data: dict[str, Any] = {
            "connection-type": self.connection_type,
            "database": self.database,
            "user": self.user,
        }
        if self.address is not None:
            data["address"] = self.address
        if self.ip_mask is not None:
            data["ip-mask"] = self.ip_mask
        data["auth-method"] = self.auth_method
        data["auth-options"] = self.auth_options
        return data


AuthRecord = PositionalRecord | CanonicalRecord


# ---------------------------------------------------------------------------
# Mask detection
# ---------------------------------------------------------------------------


def _is_dotted_quad(token: str) -> bool:
    return _DOTTED_QUAD_RE.fullmatch(token) is not None


def _is_ipv4(token: str) -> bool:
    try:
        ipaddress.IPv4Address(token)
    except ValueError:
        return False
    return True


_MASK_TESTS: dict[MaskPolicy, Callable[[str], bool]] = {
    MaskPolicy.DOTTED_QUAD: _is_dotted_quad,
    MaskPolicy.IPV4: _is_ipv4,
}


def looks_like_mask(token: Any, policy: MaskPolicy = MaskPolicy.DOTTED_QUAD) -> bool:  # noqa: ANN401
    """Whether *token* is read as an IP mask under *policy*."""
    return isinstance(token, str) and _MASK_TESTS[MaskPolicy(policy)](token)


# ---------------------------------------------------------------------------
# Canonicalisation
# ---------------------------------------------------------------------------


def _at(fields: Sequence[Any], index: int) -> Any:  # noqa: ANN401
    return fields[index] if index < len(fields) else None


def _parse_local(fields: Sequence[Any], policy: MaskPolicy) -> CanonicalRecord:  # noqa: ARG001
    return CanonicalRecord(
        connection_type=str(fields[0]),
        database=_at(fields, 1),
        user=_at(fields, 2),
        auth_method=_at(fields, 3),
        auth_options=_at(fields, 4) or {},
    )


def _parse_host(fields: Sequence[Any], policy: MaskPolicy) -> CanonicalRecord:
    tail = list(fields[4:])
    if tail and looks_like_mask(tail[0], policy):
        ip_mask, auth_method, auth_options = tail[0], _at(tail, 1), _at(tail, 2)
    else:
        ip_mask, auth_method, auth_options = None, _at(tail, 0), _at(tail, 1)
    return CanonicalRecord(
        connection_type=str(fields[0]),
        database=_at(fields, 1),
        user=_at(fields, 2),
        address=_at(fields, 3),
        ip_mask=ip_mask,
        auth_method=auth_method,
        auth_options=auth_options or {},
    )


_PARSERS: dict[str, Callable[[Sequence[Any], MaskPolicy], CanonicalRecord]] = {
    ConnectionType.LOCAL.value: _parse_local,
    ConnectionType.HOST.value: _parse_host,
    ConnectionType.HOSTSSL.value: _parse_host,
    ConnectionType.HOSTNOSSL.value: _parse_host,
}


def _from_mapping(record: Mapping[str, Any]) -> CanonicalRecord:
    data = {str(k).replace("_", "-"): v for k, v in record.items()}
    return CanonicalRecord(
        connection_type=str(data.get("connection-type", "")),
        database=data.get("database"),
        user=data.get("user"),
        address=data.get("address"),
        ip_mask=data.get("ip-mask"),
        auth_method=data.get("auth-method"),
        auth_options=data.get("auth-options") or {},
    )


def to_auth_record(record: Any) -> AuthRecord:  # noqa: ANN401
    """Tag a raw settings value as a positional or canonical record."""
    if isinstance(record, (CanonicalRecord, PositionalRecord)):
        return record
    if isinstance(record, dict):
        return _from_mapping(record)
    if isinstance(record, (list, tuple)):
        return PositionalRecord(fields=tuple(record))
    msg = f"The record {record!r} must be a list or a mapping"
    raise InvalidRecord(msg, record)


def canonicalize(
    record: Any,  # noqa: ANN401
    policy: MaskPolicy = MaskPolicy.DOTTED_QUAD,
) -> CanonicalRecord:
    """Return the canonical form of *record*.

    Raises
    ------
    InvalidRecord
        If the record is neither a list nor a mapping, is empty, or
        names an unknown connection type.

    """
    tagged = to_auth_record(record)
    if isinstance(tagged, CanonicalRecord):
        return tagged
    if not tagged.fields:
        msg = "An empty list is not a pg_hba.conf record"
        raise InvalidRecord(msg, record)
    parser = _PARSERS.get(str(tagged.fields[0]))
    if parser is None:
        msg = f"The first item in {list(tagged.fields)!r} is not a valid connection type"
        raise InvalidRecord(msg, record)
    return parser(tagged.fields, policy)


# ---------------------------------------------------------------------------
# Validation and formatting
# ---------------------------------------------------------------------------


def validate(canonical: CanonicalRecord, original: Any = None) -> CanonicalRecord:  # noqa: ANN401
    """Check that *canonical* could be a valid pg_hba.conf line."""
    offending = original if original is not None else canonical.as_dict()
    if canonical.connection_type not in CONNECTION_TYPES:
        msg = f"Unknown connection type '{canonical.connection_type}'"
        raise InvalidRecord(msg, offending)
    for name in ("database", "user", "auth_method"):
        if not getattr(canonical, name):
            msg = f"Record is missing its {name.replace('_', '-')}"
            raise InvalidRecord(msg, offending)
    if str(canonical.auth_method) not in AUTH_METHODS:
        msg = (
            f"'{canonical.auth_method}' does not appear to be an IP mask or "
            f"an auth method. Known auth methods: {sorted(AUTH_METHODS)}"
        )
        raise InvalidRecord(msg, offending)
    if canonical.connection_type in HOST_TYPES and not canonical.address:
        msg = f"A '{canonical.connection_type}' record needs an address"
        raise InvalidRecord(msg, offending)
    return canonical


def format_auth_options(auth_options: Mapping[str, Any] | str | None) -> str:
    """Render auth options as ``key1=value1,key2=value2``."""
    if not auth_options:
        return ""
    if isinstance(auth_options, str):
        return auth_options
    return ",".join(f"{key}={value}" for key, value in auth_options.items())


def format_hba_record(
    record: Any,  # noqa: ANN401
    policy: MaskPolicy = MaskPolicy.DOTTED_QUAD,
) -> str:
    """Render one pg_hba.conf line (tab separated, newline terminated)."""
    canonical = validate(canonicalize(record, policy), record)
    values = {
        "connection-type": canonical.connection_type,
        "database": canonical.database,
        "user": canonical.user,
        "address": canonical.address,
        "ip-mask": canonical.ip_mask,
        "auth-method": canonical.auth_method,
        "auth-options": format_auth_options(canonical.auth_options),
    }
    return "\t".join("" if values[name] is None else str(values[name]) for name in FIELD_ORDER) + "\n"


def hba_formatter(policy: MaskPolicy = MaskPolicy.DOTTED_QUAD) -> Callable[[Any], str]:
    """Return a single-argument record formatter bound to *policy*."""

    def formatter(record: Any) -> str:  # noqa: ANN401
        return format_hba_record(record, policy)

    return formatter
