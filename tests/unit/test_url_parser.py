"""
Unit tests for URL parsing.

Tests cover:
  - Scheme handling
  - Hostname lowering
  - Default port removal
  - Fragment removal
  - Location resolution
  - Output file name derivation
"""

import pytest

from httpfetch.core.exceptions import UrlValidationError
from httpfetch.utils.url_parser import (
    output_filename,
    parse_target_url,
    request_target,
    resolve_location,
)


class TestParseTargetUrl:
    """Tests for the parse_target_url function."""

    def test_adds_http_scheme_when_missing(self):
        """Should default to http:// if no scheme is provided."""
        assert parse_target_url("example.com/a") == "http://example.com/a"

    def test_lowercase_scheme_and_host(self):
        """Should lowercase the scheme and hostname but not the path."""
        result = parse_target_url("HTTP://EXAMPLE.COM/Path")
        assert result == "http://example.com/Path"

    def test_removes_default_http_port(self):
        assert parse_target_url("http://example.com:80/path") == "http://example.com/path"

    def test_removes_default_https_port(self):
        assert parse_target_url("https://example.com:443/path") == "https://example.com/path"

    def test_preserves_non_default_port(self):
        assert parse_target_url("http://example.com:8080/path") == "http://example.com:8080/path"

    def test_removes_fragment(self):
        assert parse_target_url("https://example.com/page#section") == "https://example.com/page"

    def test_keeps_query_order(self):
        """Should not reorder query parameters."""
        result = parse_target_url("https://example.com/search?z=1&a=2")
        assert result == "https://example.com/search?z=1&a=2"

    def test_empty_path_becomes_root(self):
        assert parse_target_url("https://example.com") == "https://example.com/"

    def test_keeps_trailing_slash(self):
        assert parse_target_url("http://example.com/dir/") == "http://example.com/dir/"

    def test_ipv6_literal(self):
        assert parse_target_url("http://[::1]:8080/") == "http://[::1]:8080/"

    def test_keeps_userinfo(self):
        assert parse_target_url("http://user:pw@example.com/") == "http://user:pw@example.com/"

    @pytest.mark.parametrize(
        "url",
        [
            "",
            "ftp://example.com/file",
            "http://",
            "http://example.com:notaport/",
            "http://[::1/",
        ],
    )
    def test_rejects_invalid_urls(self, url):
        with pytest.raises(UrlValidationError):
            parse_target_url(url)


class TestResolveLocation:
    """Tests for resolve_location."""

    def test_absolute_location(self):
        assert resolve_location("http://a.com/x", "https://b.com/y") == "https://b.com/y"

    def test_absolute_path(self):
        assert resolve_location("http://a.com/x/y", "/z") == "http://a.com/z"

    def test_relative_path(self):
        assert resolve_location("http://a.com/x/y", "z") == "http://a.com/x/z"

    def test_scheme_relative(self):
        assert resolve_location("https://a.com/x", "//b.com/y") == "https://b.com/y"

    @pytest.mark.parametrize("location", ["ftp://mirror/file", "http://[broken/x"])
    def test_unrequestable_location(self, location):
        with pytest.raises(UrlValidationError):
            resolve_location("http://a.com/x", location)


class TestRequestTarget:
    def test_path_and_query(self):
        assert request_target("http://a.com/p/q?x=1#frag") == "/p/q?x=1"

    def test_root(self):
        assert request_target("http://a.com") == "/"


class TestOutputFilename:
    """Tests for output_filename."""

    def test_last_segment(self):
        assert output_filename("/pub/file.tar.gz") == "file.tar.gz"

    def test_trailing_slashes_stripped(self):
        assert output_filename("/pub/dir//") == "dir"

    def test_root_is_index(self):
        assert output_filename("/") == "index.html"

    def test_cut_at_semicolon(self):
        assert output_filename("/a/b.cgi;jsessionid=1/c") == "b.cgi"

    def test_cut_at_ampersand(self):
        assert output_filename("/dl?id=3&name=x/y") == "dl?id=3"
