"""Location precedence tests."""

import re

from models.server_config import LocationKind, LocationRule
from services.location_matcher import pick_location


def prefix(matcher, stop=False, **kwargs):
    return LocationRule(kind=LocationKind.PREFIX, matcher=matcher, stop_on_match=stop, **kwargs)


def exact(matcher):
    return LocationRule(kind=LocationKind.EXACT, matcher=matcher)


def regex(matcher, case_insensitive=False):
    flags = re.IGNORECASE if case_insensitive else 0
    return LocationRule(kind=LocationKind.REGEX, matcher=matcher, case_insensitive=case_insensitive,
                        pattern=re.compile(matcher, flags))


class TestPickLocation:
    """Tests for pick_location."""

    def test_stop_on_match_skips_regex(self):
        root, api, png = prefix("/"), prefix("/api", stop=True), regex(r"\.png$")
        assert pick_location([root, api, png], "/api/x.png") is api

    def test_regex_beats_plain_prefix(self):
        root, api, png = prefix("/"), prefix("/api"), regex(r"\.png$")
        assert pick_location([root, api, png], "/api/x.png") is png

    def test_exact_beats_prefix(self):
        health, root = exact("/health"), prefix("/")
        assert pick_location([root, health], "/health") is health
        assert pick_location([root, health], "/health/") is root

    def test_longest_prefix_wins(self):
        static, img = prefix("/static"), prefix("/static/img")
        assert pick_location([static, img], "/static/img/x.png") is img
        assert pick_location([img, static], "/static/css/a.css") is static

    def test_equal_length_prefix_first_wins(self):
        first, second = prefix("/a", root_override="one"), prefix("/a", root_override="two")
        assert pick_location([first, second], "/a/b") is first

    def test_regex_declaration_order(self):
        jpg_first, any_image = regex(r"\.jpg$"), regex(r"\.(jpg|png)$")
        assert pick_location([jpg_first, any_image], "/x.jpg") is jpg_first
        assert pick_location([any_image, jpg_first], "/x.jpg") is any_image

    def test_regex_case_sensitivity(self):
        sensitive, insensitive = regex(r"\.PNG$"), regex(r"\.gif$", case_insensitive=True)
        assert pick_location([sensitive], "/a.png") is None
        assert pick_location([insensitive], "/a.GIF") is insensitive

    def test_regex_search_is_unanchored(self):
        images = regex("/images/")
        assert pick_location([images], "/site/images/logo.svg") is images

    def test_prefix_fallback_when_no_regex_matches(self):
        root, png = prefix("/"), regex(r"\.png$")
        assert pick_location([root, png], "/index.html") is root

    def test_no_match(self):
        assert pick_location([], "/") is None
        assert pick_location([prefix("/api"), exact("/a")], "/other") is None

    def test_prefix_is_plain_string_prefix(self):
        api = prefix("/api")
        assert pick_location([api], "/apix") is api
