"""Tests for proxy header filtering."""

from __future__ import annotations

import httpx

from blockpaths.proxy.headers import (
    HOP_BY_HOP_HEADERS,
    build_client_response_headers,
    build_upstream_headers,
)


class TestBuildUpstreamHeaders:
    def test_hop_by_hop_stripped(self):
        headers = build_upstream_headers(
            [
                ("Host", "gate.example"),
                ("Connection", "keep-alive"),
                ("Content-Length", "12"),
                ("Transfer-Encoding", "chunked"),
                ("Accept", "text/html"),
            ]
        )
        assert headers == [("Accept", "text/html")]

    def test_forwarding_headers_pass_through(self):
        headers = build_upstream_headers(
            [("X-Forwarded-For", "192.168.1.1, 8.8.8.8"), ("X-Real-IP", "8.8.8.8")]
        )
        assert headers == [
            ("X-Forwarded-For", "192.168.1.1, 8.8.8.8"),
            ("X-Real-IP", "8.8.8.8"),
        ]

    def test_repeated_forwarded_for_lines_all_kept(self):
        headers = build_upstream_headers(
            [("x-forwarded-for", "10.0.0.1"), ("x-forwarded-for", "8.8.8.8")]
        )
        assert headers == [
            ("x-forwarded-for", "10.0.0.1"),
            ("x-forwarded-for", "8.8.8.8"),
        ]

    def test_every_hop_by_hop_header_is_lowercase(self):
        assert all(name == name.lower() for name in HOP_BY_HOP_HEADERS)


class TestBuildClientResponseHeaders:
    def test_hop_by_hop_stripped(self):
        upstream = httpx.Headers(
            {
                "content-type": "text/html",
                "connection": "close",
                "transfer-encoding": "chunked",
                "x-upstream": "yes",
            }
        )
        assert build_client_response_headers(upstream) == [
            ("content-type", "text/html"),
            ("x-upstream", "yes"),
        ]

    def test_each_set_cookie_kept_separately(self):
        upstream = httpx.Headers(
            [("set-cookie", "a=1; Path=/"), ("set-cookie", "b=2; Path=/")]
        )
        assert build_client_response_headers(upstream) == [
            ("set-cookie", "a=1; Path=/"),
            ("set-cookie", "b=2; Path=/"),
        ]
