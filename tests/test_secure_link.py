"""Tests for proxy URL building and secure link signing."""

import base64
import hashlib
from urllib.parse import parse_qs, urlsplit

import pytest

from ngx_resizer.lib.secure_link import (
    ResizedURLBuilder,
    add_query_args,
    secure_link_hash,
    set_url_scheme,
    strip_scheme,
)

UPLOADS = "https://cdn.example.com/wp-content/uploads"
TEMPLATE = "%uri%|%w%|%h%|%crop%|%url% s3cret"


def expected_digest(text: str) -> str:
    encoded = base64.b64encode(hashlib.md5(text.encode()).digest()).decode()
    return encoded.replace("+", "-").replace("/", "_").replace("=", "")


class TestUrlHelpers:
    def test_strip_scheme(self):
        assert strip_scheme("https://a.test/x") == "//a.test/x"
        assert strip_scheme("HTTP://a.test/x") == "//a.test/x"
        assert strip_scheme("//a.test/x") == "//a.test/x"

    def test_set_url_scheme(self):
        assert set_url_scheme("http://a.test/x", "https") == "https://a.test/x"
        assert set_url_scheme("//a.test/x", "http") == "http://a.test/x"
        assert set_url_scheme("http://a.test/x", None) == "http://a.test/x"

    def test_add_query_args_keeps_existing(self):
        assert add_query_args("http://a.test/x.jpg?ver=2", {"w": "10"}) == (
            "http://a.test/x.jpg?ver=2&w=10"
        )

    def test_add_query_args_replaces_same_name(self):
        assert add_query_args("http://a.test/x.jpg?w=5&ver=2", {"w": "10"}) == (
            "http://a.test/x.jpg?ver=2&w=10"
        )

    def test_add_nothing(self):
        assert add_query_args("http://a.test/x.jpg", {}) == "http://a.test/x.jpg"


class TestSecureLinkHash:
    def test_matches_nginx_format(self):
        result = secure_link_hash(TEMPLATE, {"%uri%": "/a.jpg", "%w%": "300"})
        assert result == expected_digest("/a.jpg|300|%h%|%crop%|%url% s3cret")

    def test_url_safe_and_unpadded(self):
        for i in range(50):
            digest = secure_link_hash(f"value {i}", {})
            assert len(digest) == 22
            assert not set(digest) & set("+/=")


class TestResizedURLBuilder:
    @pytest.fixture
    def builder(self):
        return ResizedURLBuilder(UPLOADS)

    def test_local_image(self, builder):
        assert builder.build(f"{UPLOADS}/a.jpg", 300, 200) == f"{UPLOADS}/a.jpg?w=300&h=200"

    def test_local_image_with_crop(self, builder):
        assert builder.build(f"{UPLOADS}/a.jpg", 100, 100, True) == (
            f"{UPLOADS}/a.jpg?w=100&h=100&crop=1"
        )

    def test_zero_dimensions_are_omitted(self, builder):
        assert builder.build(f"{UPLOADS}/a.jpg") == f"{UPLOADS}/a.jpg"
        assert builder.build(f"{UPLOADS}/a.jpg", 0, 120) == f"{UPLOADS}/a.jpg?h=120"

    def test_negative_dimensions_use_absolute_value(self, builder):
        assert builder.build(f"{UPLOADS}/a.jpg", -30) == f"{UPLOADS}/a.jpg?w=30"

    def test_remote_image_goes_through_safe_image(self, builder):
        result = builder.build("https://other.org/pic.jpg?x=1", 100)
        assert result == (
            "https://cdn.example.com/safe_image?url=https%3A%2F%2Fother.org%2Fpic.jpg%3Fx%3D1&w=100"
        )
        assert parse_qs(urlsplit(result).query)["url"] == ["https://other.org/pic.jpg?x=1"]

    def test_locality_ignores_scheme(self, builder):
        assert builder.image_is_local("http://cdn.example.com/wp-content/uploads/a.jpg")
        assert builder.image_is_local("//cdn.example.com/wp-content/uploads/a.jpg")
        assert not builder.image_is_local("https://cdn.example.com/other/a.jpg")

    def test_empty_base_is_never_local(self):
        assert not ResizedURLBuilder("").image_is_local("https://a.test/a.jpg")

    def test_safe_image_url_keeps_port(self):
        builder = ResizedURLBuilder("http://localhost:8080/wp-content/uploads/")
        assert builder.safe_image_url == "http://localhost:8080/safe_image"

    def test_forced_scheme(self):
        builder = ResizedURLBuilder(UPLOADS, scheme="http")
        assert builder.build(f"{UPLOADS}/a.jpg", 10) == (
            "http://cdn.example.com/wp-content/uploads/a.jpg?w=10"
        )

    def test_signed_local_url(self):
        builder = ResizedURLBuilder(UPLOADS, secure_link=TEMPLATE)

        result = builder.build(f"{UPLOADS}/2024/a.jpg", 300, 200, True)

        digest = expected_digest("/wp-content/uploads/2024/a.jpg|300|200|1| s3cret")
        assert result == f"{UPLOADS}/2024/a.jpg?w=300&h=200&crop=1&d={digest}"

    def test_signed_remote_url(self):
        builder = ResizedURLBuilder(UPLOADS, secure_link=TEMPLATE)

        result = builder.build("https://other.org/pic.jpg", 50)

        digest = expected_digest("/safe_image|50|||https%3A%2F%2Fother.org%2Fpic.jpg s3cret")
        assert parse_qs(urlsplit(result).query)["d"] == [digest]

    def test_signature_is_deterministic(self):
        builder = ResizedURLBuilder(UPLOADS, secure_link=TEMPLATE)
        assert builder.build(f"{UPLOADS}/a.jpg", 1, 2) == builder.build(f"{UPLOADS}/a.jpg", 1, 2)

    def test_signature_changes_with_inputs(self):
        builder = ResizedURLBuilder(UPLOADS, secure_link=TEMPLATE)

        def digest(*args):
            return parse_qs(urlsplit(builder.build(*args)).query)["d"][0]

        base = digest(f"{UPLOADS}/a.jpg", 300, 200, True)
        assert digest(f"{UPLOADS}/b.jpg", 300, 200, True) != base
        assert digest(f"{UPLOADS}/a.jpg", 301, 200, True) != base
        assert digest(f"{UPLOADS}/a.jpg", 300, 201, True) != base
        assert digest(f"{UPLOADS}/a.jpg", 300, 200, False) != base

    def test_no_secure_link_no_digest(self, builder):
        assert "d=" not in builder.build(f"{UPLOADS}/a.jpg", 300)
