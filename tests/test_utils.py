import pytest

from utils import (format_search_results, host_of, is_admissible,
                   normalize_text, normalize_url, truncate_chars)


class TestNormalizeUrl:

    def test_drops_fragment(self):
        assert normalize_url("https://example.com/a#b") == "https://example.com/a"

    def test_lowercases_scheme_and_host_only(self):
        assert normalize_url("HTTPS://Example.COM/Path?Q=1") == "https://example.com/Path?Q=1"

    def test_empty_path_becomes_slash(self):
        assert normalize_url("https://example.com") == "https://example.com/"

    def test_keeps_query_and_port(self):
        assert normalize_url("http://example.com:8080/x?a=1#top") == "http://example.com:8080/x?a=1"

    @pytest.mark.parametrize("url,key", [
        ("https://example.com:443/a", "https://example.com/a"),
        ("http://Example.com:80", "http://example.com/"),
        ("http://[::1]:80/x", "http://[::1]/x"),
        ("https://example.com:80/a", "https://example.com:80/a"),
        ("http://example.com:8080/a", "http://example.com:8080/a"),
    ])
    def test_default_port_is_dropped(self, url, key):
        assert normalize_url(url) == key

    def test_non_web_and_broken_urls_only_lose_fragment(self):
        assert normalize_url("mailto:a@b.c#x") == "mailto:a@b.c"
        assert normalize_url("http://[::1/x#y") == "http://[::1/x"


class TestAdmissibility:

    @pytest.mark.parametrize("url", [
        "https://example.com/",
        "http://93.184.216.34/index.html",
        "https://[2606:2800:220:1:248:1893:25c8:1946]/",
    ])
    def test_public_web_urls(self, url):
        assert is_admissible(url)

    @pytest.mark.parametrize("url", [
        "ftp://example.com/file",
        "javascript:alert(1)",
        "https:///nohost",
        "http://localhost/",
        "http://api.localhost:3000/",
        "http://127.0.0.1/",
        "http://10.0.0.5/",
        "http://172.16.3.4/",
        "http://192.168.0.1/",
        "http://169.254.169.254/latest/meta-data/",
        "http://0.0.0.0/",
        "http://[::1]/",
        "http://[fd00::1]/",
        "http://[fe80::1]/",
        "http://[::1/",
    ])
    def test_rejected_by_default(self, url):
        assert not is_admissible(url)

    def test_allow_local_opens_loopback_and_private(self):
        assert is_admissible("http://127.0.0.1:8000/", allow_local=True)
        assert is_admissible("http://localhost/", allow_local=True)
        assert is_admissible("http://192.168.0.1/", allow_local=True)

    def test_allow_local_still_requires_web_scheme(self):
        assert not is_admissible("file:///etc/passwd", allow_local=True)


class TestHelpers:

    def test_host_of(self):
        assert host_of("https://Docs.Python.org:443/x") == "docs.python.org"
        assert host_of("mailto:x@y.z") is None

    def test_normalize_text(self):
        assert normalize_text("  a\n\tb   c  ") == "a b c"

    def test_truncate_chars_counts_characters(self):
        assert truncate_chars("日本語テキスト", 3) == "日本語"
        assert truncate_chars("abc", 0) == ""

    def test_format_search_results(self):
        text = format_search_results([{"title": "T", "href": "https://e.com/"}])
        assert "1. T" in text and "https://e.com/" in text
        assert format_search_results([]) == "No results found."
