"""Traversal-safe path joining and static resolution tests."""

import os

import pytest

from models.route_outcome import DIRECTORY_INDEX_NOT_FOUND, OutcomeKind
from models.server_config import LocationKind, LocationRule, ServerConfig
from services.static_resolver import (
    DEFAULT_CONTENT_TYPE, StaticResolver, get_content_type, safe_join
)


TRAVERSAL_PATHS = [
    "/../../etc/passwd",
    "/%2e%2e/%2e%2e/etc/passwd",
    "/%2E%2E/etc/passwd",
    "/%252e%252e/%252e%252e/etc/passwd",
    "/..%2f..%2fetc/passwd",
    "/..%5c..%5cetc/passwd",
    "/.%2e/etc/passwd",
    "\\..\\..\\etc\\passwd",
    "/a/../../secret.txt",
    "/index.html%00.txt",
    "/index.html\x00",
]


@pytest.fixture
def html_root(site):
    return os.path.realpath(site / "html")


@pytest.fixture
def config(site):
    return ServerConfig(document_root=str(site / "html"), base_dir=str(site))


def location(**kwargs):
    return LocationRule(kind=LocationKind.PREFIX, matcher="/", **kwargs)


class TestSafeJoin:
    """Tests for safe_join."""

    @pytest.mark.parametrize("request_path", TRAVERSAL_PATHS)
    def test_traversal_is_rejected(self, html_root, request_path):
        assert safe_join(html_root, request_path) is None

    def test_plain_path(self, html_root):
        assert safe_join(html_root, "/app.js") == os.path.join(html_root, "app.js")

    def test_root_itself(self, html_root):
        assert safe_join(html_root, "/") == html_root
        assert safe_join(html_root, "") == html_root
        assert safe_join(html_root, None) == html_root

    def test_dot_segments_inside_root_collapse(self, html_root):
        assert safe_join(html_root, "/docs/./../index.html") == os.path.join(html_root, "index.html")
        assert safe_join(html_root, "//docs//index.htm") == os.path.join(html_root, "docs", "index.htm")

    def test_missing_file_still_joined(self, html_root):
        assert safe_join(html_root, "/nope/x.css") == os.path.join(html_root, "nope", "x.css")

    def test_sibling_with_common_prefix_is_rejected(self, site):
        (site / "html-private").mkdir()
        (site / "html" / "peek").symlink_to(site / "html-private")
        assert safe_join(str(site / "html"), "/peek") is None

    def test_symlink_escaping_root_is_rejected(self, site, html_root):
        (site / "html" / "leak.txt").symlink_to(site / "secret.txt")
        assert safe_join(html_root, "/leak.txt") is None

    def test_symlink_inside_root_is_allowed(self, site, html_root):
        (site / "html" / "alias.js").symlink_to(site / "html" / "app.js")
        assert safe_join(html_root, "/alias.js") == os.path.join(html_root, "app.js")


class TestContentType:
    """Tests for get_content_type."""

    @pytest.mark.parametrize("file_name,expected", [
        ("index.html", "text/html"),
        ("INDEX.HTM", "text/html"),
        ("app.js", "application/javascript"),
        ("style.css", "text/css"),
        ("logo.svg", "image/svg+xml"),
        ("data.bin", DEFAULT_CONTENT_TYPE),
        ("Makefile", DEFAULT_CONTENT_TYPE),
    ])
    def test_known_extensions(self, file_name, expected):
        assert get_content_type(file_name) == expected


class TestStaticResolver:
    """Tests for StaticResolver.resolve."""

    def setup_method(self):
        self.resolver = StaticResolver()

    def test_serves_existing_file(self, config, html_root):
        outcome = self.resolver.resolve(config, None, "/app.js")
        assert outcome.kind == OutcomeKind.SERVE_FILE
        assert outcome.file_path == os.path.join(html_root, "app.js")
        assert outcome.content_type == "application/javascript"
        assert outcome.status_code == 200

    def test_directory_index(self, config, html_root):
        assert self.resolver.resolve(config, None, "/").file_path == os.path.join(html_root, "index.html")
        docs = self.resolver.resolve(config, None, "/docs/")
        assert docs.file_path == os.path.join(html_root, "docs", "index.htm")
        assert docs.content_type == "text/html"

    def test_index_order_follows_config(self, site, html_root):
        (site / "html" / "docs" / "index.html").write_text("first", encoding="utf-8")
        config = ServerConfig(document_root=str(site / "html"), base_dir=str(site),
                              index_files=["index.htm", "index.html"])
        outcome = self.resolver.resolve(config, None, "/docs")
        assert outcome.file_path == os.path.join(html_root, "docs", "index.htm")

    def test_index_names_cannot_escape_directory(self, site, html_root):
        config = ServerConfig(document_root=str(site / "html"), base_dir=str(site),
                              index_files=["../../secret.txt", "/../secret.txt", "index.htm"])
        outcome = self.resolver.resolve(config, None, "/docs")
        assert outcome.file_path == os.path.join(html_root, "docs", "index.htm")

        escaping_only = ServerConfig(document_root=str(site / "html"), base_dir=str(site),
                                     index_files=["../../secret.txt", str(site / "secret.txt")])
        outcome = self.resolver.resolve(escaping_only, None, "/docs")
        assert outcome.kind == OutcomeKind.NOT_FOUND
        assert outcome.reason == DIRECTORY_INDEX_NOT_FOUND

    def test_directory_without_index_is_not_found(self, config):
        outcome = self.resolver.resolve(config, location(), "/empty")
        assert outcome.kind == OutcomeKind.NOT_FOUND
        assert outcome.reason == DIRECTORY_INDEX_NOT_FOUND
        assert outcome.status_code == 404

    def test_directory_falls_back_to_try_files(self, config, html_root):
        rule = location(try_files=["$uri", "$uri/", "/missing.html", "/fallback.html", "=404"])
        outcome = self.resolver.resolve(config, rule, "/empty")
        assert outcome.kind == OutcomeKind.SERVE_FILE
        assert outcome.file_path == os.path.join(html_root, "fallback.html")

    def test_missing_file_falls_back_to_try_files(self, config, html_root):
        rule = location(try_files=["/fallback.html"])
        outcome = self.resolver.resolve(config, rule, "/spa/route")
        assert outcome.file_path == os.path.join(html_root, "fallback.html")

    def test_missing_file_without_fallback(self, config):
        outcome = self.resolver.resolve(config, location(try_files=["/missing.html"]), "/nope.css")
        assert outcome.kind == OutcomeKind.NOT_FOUND
        assert outcome.reason != DIRECTORY_INDEX_NOT_FOUND

    def test_try_files_cannot_escape_root(self, config):
        outcome = self.resolver.resolve(config, location(try_files=["/../secret.txt"]), "/nope")
        assert outcome.kind == OutcomeKind.NOT_FOUND

    def test_try_files_directory_is_not_served(self, config):
        outcome = self.resolver.resolve(config, location(try_files=["/docs"]), "/nope")
        assert outcome.kind == OutcomeKind.NOT_FOUND

    @pytest.mark.parametrize("request_path", TRAVERSAL_PATHS)
    def test_traversal_is_forbidden(self, config, request_path):
        outcome = self.resolver.resolve(config, None, request_path)
        assert outcome.kind == OutcomeKind.FORBIDDEN
        assert outcome.status_code == 403

    def test_proxy_short_circuits(self, config):
        rule = location(proxy_target="http://127.0.0.1:3000")
        outcome = self.resolver.resolve(config, rule, "/../../etc/passwd")
        assert outcome.kind == OutcomeKind.PROXY
        assert outcome.proxy_target == "http://127.0.0.1:3000"
        assert outcome.location is rule

    def test_location_root_override(self, config, html_root):
        rule = location(root_override="html/docs")
        outcome = self.resolver.resolve(config, rule, "/index.htm")
        assert outcome.file_path == os.path.join(html_root, "docs", "index.htm")

    def test_idempotent(self, config):
        rule = location(try_files=["/fallback.html"])
        for request_path in ("/", "/empty", "/nope", "/../x"):
            first = self.resolver.resolve(config, rule, request_path)
            second = self.resolver.resolve(config, rule, request_path)
            assert first == second
