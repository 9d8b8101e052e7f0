"""Enumerated types shared across pgcrate.

All enums inherit from ``StrEnum`` so their ``.value`` is the plain
string that appears in YAML settings files and in the rendered
configuration files.
"""

from __future__ import annotations

from enum import StrEnum

# ---------------------------------------------------------------------------
# Target platform
# ---------------------------------------------------------------------------


class OsFamily(StrEnum):
    DEBIAN = "debian"
    UBUNTU = "ubuntu"
    CENTOS = "centos"
    FEDORA = "fedora"
    RHEL = "rhel"
    AMZN_LINUX = "amzn-linux"
    ARCH = "arch"


class BaseDistribution(StrEnum):
    """Distribution lineage an OS family inherits its packaging from."""

    DEBIAN = "debian"
    RH = "rh"
    ARCH = "arch"


_BASE_DISTRIBUTIONS: dict[OsFamily, BaseDistribution] = {
    OsFamily.DEBIAN: BaseDistribution.DEBIAN,
    OsFamily.UBUNTU: BaseDistribution.DEBIAN,
    OsFamily.CENTOS: BaseDistribution.RH,
    OsFamily.FEDORA: BaseDistribution.RH,
    OsFamily.RHEL: BaseDistribution.RH,
    OsFamily.AMZN_LINUX: BaseDistribution.RH,
    OsFamily.ARCH: BaseDistribution.ARCH,
}


def base_distribution(os_family: OsFamily) -> BaseDistribution:
    """Return the base distribution for *os_family*."""
    return _BASE_DISTRIBUTIONS[OsFamily(os_family)]


# ---------------------------------------------------------------------------
# Packaging
# ---------------------------------------------------------------------------


class PackageSource(StrEnum):
    NATIVE = "native"
    DEBIAN_BACKPORTS = "debian-backports"
    MARTIN_PITT_BACKPORTS = "martin-pitt-backports"
    PGDG = "pgdg"


# ---------------------------------------------------------------------------
# pg_hba.conf
# ---------------------------------------------------------------------------


class ConnectionType(StrEnum):
    LOCAL = "local"
    HOST = "host"
    HOSTSSL = "hostssl"
    HOSTNOSSL = "hostnossl"


class AuthMethod(StrEnum):
    TRUST = "trust"
    REJECT = "reject"
    MD5 = "md5"
    PASSWORD = "password"
    GSS = "gss"
    SSPI = "sspi"
    KRB5 = "krb5"
    IDENT = "ident"
    LDAP = "ldap"
    RADIUS = "radius"
    CERT = "cert"
    PAM = "pam"


class MaskPolicy(StrEnum):
    """How the element after a host address is recognised as an IP mask.

    ``dotted-quad`` is a loose four-group digit match (any separator
    character is accepted between groups).  ``ipv4`` accepts only a
    well-formed dotted-decimal IPv4 address.
    """

    DOTTED_QUAD = "dotted-quad"
    IPV4 = "ipv4"


# ---------------------------------------------------------------------------
# Cluster lifecycle
# ---------------------------------------------------------------------------


class StartMode(StrEnum):
    AUTO = "auto"
    MANUAL = "manual"
    DISABLED = "disabled"


class Variant(StrEnum):
    HOT_STANDBY_MASTER = "hot-standby-master"
    HOT_STANDBY_REPLICA = "hot-standby-replica"


class InitdbVia(StrEnum):
    INITDB = "initdb"
    SERVICE = "service"


class ServiceAction(StrEnum):
    START = "start"
    STOP = "stop"
    RESTART = "restart"
    RELOAD = "reload"
    ENABLE = "enable"
    DISABLE = "disable"
    INITDB = "initdb"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ErrorKind(StrEnum):
    CONFIGURATION = "configuration"
    INVALID_RECORD = "invalid-record"
    INVALID_PARAMETER = "invalid-parameter"
    UNSUPPORTED_CONFIGURATION = "unsupported-configuration"
