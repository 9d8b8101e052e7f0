"""Tests for pgcrate.render.hba: pg_hba.conf records."""

from __future__ import annotations

import pytest

from pgcrate.core.errors import InvalidRecord
from pgcrate.core.types import ErrorKind, MaskPolicy
from pgcrate.render.hba import (
    CanonicalRecord,
    PositionalRecord,
    canonicalize,
    format_auth_options,
    format_hba_record,
    looks_like_mask,
    to_auth_record,
)


class TestCanonicalize:
    def test_host_with_cidr_address(self):
        record = canonicalize(["host", "all", "all", "127.0.0.1/32", "ident"])
        assert record.as_dict() == {
            "connection-type": "host",
            "database": "all",
            "user": "all",
            "address": "127.0.0.1/32",
            "auth-method": "ident",
            "auth-options": {},
        }
        assert record.ip_mask is None

    def test_host_with_mask(self):
        record = canonicalize(["host", "all", "all", "10.0.0.0", "255.255.255.0", "md5"])
        assert record.ip_mask == "255.255.255.0"
        assert record.auth_method == "md5"

    def test_local(self):
        record = canonicalize(["local", "all", "postgres", "ident", {"map": "admins"}])
        assert record == CanonicalRecord(
            connection_type="local",
            database="all",
            user="postgres",
            auth_method="ident",
            auth_options={"map": "admins"},
        )

    def test_mapping_with_underscore_keys(self):
        record = canonicalize(
            {"connection_type": "hostssl", "database": "db", "user": "u",
             "address": "::1/128", "auth_method": "cert"}
        )
        assert record.connection_type == "hostssl"
        assert record.auth_method == "cert"

    def test_unknown_connection_type(self):
        with pytest.raises(InvalidRecord) as exc_info:
            canonicalize(["socket", "all", "all", "trust"])
        assert exc_info.value.kind == ErrorKind.INVALID_RECORD
        assert exc_info.value.record == ["socket", "all", "all", "trust"]

    def test_not_a_record(self):
        with pytest.raises(InvalidRecord):
            canonicalize("host all all trust")

    def test_empty_list(self):
        with pytest.raises(InvalidRecord):
            canonicalize([])


class TestToAuthRecord:
    def test_tags(self):
        assert isinstance(to_auth_record(["local", "all", "all", "trust"]), PositionalRecord)
        assert isinstance(to_auth_record(("local", "all", "all", "trust")), PositionalRecord)
        assert isinstance(
            to_auth_record({"connection-type": "local", "database": "all"}), CanonicalRecord
        )


class TestMaskPolicy:
    def test_dotted_quad_is_loose(self):
        assert looks_like_mask("255.255.255.0")
        assert looks_like_mask("999-999-999-999")
        assert not looks_like_mask("md5")
        assert not looks_like_mask("10.0.0.0/8")

    def test_ipv4_is_strict(self):
        assert looks_like_mask("255.255.255.0", MaskPolicy.IPV4)
        assert not looks_like_mask("999.1.1.1", MaskPolicy.IPV4)
        assert not looks_like_mask("999-999-999-999", MaskPolicy.IPV4)

    def test_policies_differ_on_malformed_mask(self):
        record = ["host", "all", "all", "10.0.0.0", "300.1.1.1", "md5"]
        assert canonicalize(record, MaskPolicy.DOTTED_QUAD).ip_mask == "300.1.1.1"
        # under the strict policy the token is taken as the auth method
        with pytest.raises(InvalidRecord):
            format_hba_record(record, MaskPolicy.IPV4)


class TestFormatHbaRecord:
    def test_cidr_host(self):
        line = format_hba_record(["host", "all", "all", "127.0.0.1/32", "ident"])
        assert line == "host\tall\tall\t127.0.0.1/32\t\tident\t\n"

    def test_host_with_mask(self):
        line = format_hba_record(["host", "all", "all", "10.0.0.0", "255.255.255.0", "md5"])
        assert line == "host\tall\tall\t10.0.0.0\t255.255.255.0\tmd5\t\n"

    def test_local_has_empty_address_and_mask(self):
        assert format_hba_record(["local", "all", "postgres", "ident", ""]) == (
            "local\tall\tpostgres\t\t\tident\t\n"
        )

    def test_mapping_with_auth_options(self):
        line = format_hba_record(
            {
                "connection-type": "hostssl",
                "database": "all",
                "user": "app",
                "address": "10.0.0.0/8",
                "auth-method": "ldap",
                "auth-options": {"ldapserver": "ldap.example.com", "ldapport": 389},
            }
        )
        assert line == (
            "hostssl\tall\tapp\t10.0.0.0/8\t\tldap\tldapserver=ldap.example.com,ldapport=389\n"
        )

    def test_bogus_auth_method(self):
        with pytest.raises(InvalidRecord):
            format_hba_record(["host", "all", "all", "127.0.0.1/32", "bogus"])

    def test_bogus_auth_method_in_mapping(self):
        record = {"connection-type": "local", "database": "all", "user": "all", "auth-method": "bogus"}
        with pytest.raises(InvalidRecord) as exc_info:
            format_hba_record(record)
        assert exc_info.value.payload == record

    def test_missing_user(self):
        with pytest.raises(InvalidRecord, match="user"):
            format_hba_record(["local", "all"])

    def test_host_without_address(self):
        record = {"connection-type": "host", "database": "all", "user": "all", "auth-method": "md5"}
        with pytest.raises(InvalidRecord, match="address"):
            format_hba_record(record)


class TestFormatAuthOptions:
    def test_empty(self):
        assert format_auth_options({}) == ""
        assert format_auth_options(None) == ""

    def test_ordered(self):
        assert format_auth_options({"b": 1, "a": 2}) == "b=1,a=2"

    def test_preformatted_string(self):
        assert format_auth_options("map=admins") == "map=admins"
