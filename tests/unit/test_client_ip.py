"""Tests for forwarded client address extraction and local classification."""

from __future__ import annotations

import ipaddress

import pytest
from starlette.datastructures import Headers

from blockpaths.gate.client_ip import (
    ClientAddresses,
    extract_client_ips,
    is_local_address,
    parse_ip,
)


def _headers(**values: str) -> Headers:
    raw = {name.replace("_", "-"): value for name, value in values.items()}
    return Headers(headers=raw)


class TestExtractClientIps:
    def test_no_headers_yields_empty_result(self):
        result = extract_client_ips(Headers(headers={}))
        assert result == ClientAddresses()
        assert result.addresses == ()
        assert result.errors == ()

    def test_empty_header_values_yield_empty_result(self):
        result = extract_client_ips(_headers(X_Forwarded_For="", X_Real_IP=""))
        assert result.addresses == ()
        assert result.errors == ()

    def test_single_forwarded_for(self):
        result = extract_client_ips(_headers(X_Forwarded_For="2.56.20.0"))
        assert result.addresses == (ipaddress.ip_address("2.56.20.0"),)

    def test_forwarded_for_list_is_trimmed_and_ordered(self):
        result = extract_client_ips(_headers(X_Forwarded_For="203.0.113.7 ,10.0.0.1,  ::1"))
        assert [str(a) for a in result.addresses] == ["203.0.113.7", "10.0.0.1", "::1"]

    def test_empty_tokens_are_skipped(self):
        result = extract_client_ips(_headers(X_Forwarded_For=",8.8.8.8,,"))
        assert [str(a) for a in result.addresses] == ["8.8.8.8"]
        assert result.errors == ()

    def test_forwarded_for_precedes_real_ip(self):
        result = extract_client_ips(
            _headers(X_Real_IP="192.168.1.1", X_Forwarded_For="8.8.8.8")
        )
        assert [str(a) for a in result.addresses] == ["8.8.8.8", "192.168.1.1"]

    def test_header_lookup_is_case_insensitive(self):
        headers = Headers(headers={"x-real-ip": "192.168.1.1"})
        result = extract_client_ips(headers)
        assert [str(a) for a in result.addresses] == ["192.168.1.1"]

    def test_unparsable_token_reported_and_extraction_continues(self):
        result = extract_client_ips(_headers(X_Forwarded_For="not-an-ip, 8.8.8.8"))
        assert [str(a) for a in result.addresses] == ["8.8.8.8"]
        assert len(result.errors) == 1
        error = result.errors[0]
        assert error.header == "X-Forwarded-For"
        assert error.token == "not-an-ip"
        assert "not-an-ip" in error.reason

    def test_errors_from_both_headers_accumulate(self):
        result = extract_client_ips(
            _headers(X_Forwarded_For="bogus, 1.1.1.1", X_Real_IP="also-bogus")
        )
        assert [str(a) for a in result.addresses] == ["1.1.1.1"]
        assert [e.token for e in result.errors] == ["bogus", "also-bogus"]

    def test_host_port_form_is_not_an_address(self):
        result = extract_client_ips(_headers(X_Real_IP="1.2.3.4:8080"))
        assert result.addresses == ()
        assert [e.token for e in result.errors] == ["1.2.3.4:8080"]

    def test_str_joins_addresses(self):
        result = extract_client_ips(_headers(X_Forwarded_For="1.1.1.1, 2001:db8::1"))
        assert str(result) == "1.1.1.1, 2001:db8::1"


class TestParseIp:
    def test_ipv4(self):
        assert parse_ip("127.0.0.1") == ipaddress.IPv4Address("127.0.0.1")

    def test_ipv6(self):
        assert parse_ip("fe80::1") == ipaddress.IPv6Address("fe80::1")

    def test_invalid_raises_value_error(self):
        with pytest.raises(ValueError, match=r"unable to parse IP from address \[nope\]"):
            parse_ip("nope")


class TestIsLocalAddress:
    @pytest.mark.parametrize(
        "address",
        [
            "10.0.0.1",
            "10.255.255.255",
            "172.16.0.1",
            "172.31.255.254",
            "192.168.1.1",
            "127.0.0.1",
            "127.8.8.8",
            "169.254.10.20",
            "fc00::1",
            "fd12:3456:789a::1",
            "::1",
            "fe80::1",
            "::ffff:192.168.1.1",
        ],
    )
    def test_local(self, address):
        assert is_local_address(ipaddress.ip_address(address)) is True

    @pytest.mark.parametrize(
        "address",
        [
            "8.8.8.8",
            "2.56.20.0",
            "172.15.255.255",
            "172.32.0.0",
            "192.0.2.1",      # documentation, not a local network
            "100.64.0.1",     # shared address space (CGNAT)
            "0.0.0.0",
            "2001:db8::1",
            "2606:4700::1111",
            "::ffff:8.8.8.8",
        ],
    )
    def test_not_local(self, address):
        assert is_local_address(ipaddress.ip_address(address)) is False
