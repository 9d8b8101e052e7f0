"""Tests for pgcrate.core.errors and pgcrate.core.result."""

from __future__ import annotations

import pytest

from pgcrate.core.errors import (
    ConfigurationError,
    InvalidParameter,
    InvalidRecord,
    PgCrateError,
    UnsupportedConfiguration,
)
from pgcrate.core.result import attempt
from pgcrate.core.types import BaseDistribution, ErrorKind, OsFamily, base_distribution


class TestErrors:
    def test_configuration_payload(self):
        err = ConfigurationError("missing", missing=["options.hba_file"])
        assert err.kind == ErrorKind.CONFIGURATION
        assert err.to_dict() == {
            "kind": "configuration",
            "detail": "missing",
            "payload": ["options.hba_file"],
        }

    def test_invalid_record_payload(self):
        err = InvalidRecord("bad", ["local"])
        assert err.record == ["local"]
        assert err.kind == ErrorKind.INVALID_RECORD

    def test_invalid_parameter_message(self):
        err = InvalidParameter("port", None)
        assert "'port'" in str(err)

    def test_unsupported_payload(self):
        err = UnsupportedConfiguration("solaris", "native")
        assert err.payload == ["solaris", "native"]
        assert isinstance(err, PgCrateError)


class TestAttempt:
    def test_value(self):
        result = attempt(lambda x: x + 1, 1)
        assert result.ok
        assert result.value == 2
        assert result.kind is None
        assert result.unwrap() == 2

    def test_engine_error_captured(self):
        def fail():
            raise InvalidParameter("x", {})

        result = attempt(fail)
        assert not result.ok
        assert result.kind == ErrorKind.INVALID_PARAMETER
        with pytest.raises(InvalidParameter):
            result.unwrap()

    def test_other_errors_propagate(self):
        def fail():
            raise KeyError("bug")

        with pytest.raises(KeyError):
            attempt(fail)


class TestBaseDistribution:
    @pytest.mark.parametrize(
        "family,base",
        [
            (OsFamily.UBUNTU, BaseDistribution.DEBIAN),
            ("amzn-linux", BaseDistribution.RH),
            ("arch", BaseDistribution.ARCH),
        ],
    )
    def test_mapping(self, family, base):
        assert base_distribution(family) == base
