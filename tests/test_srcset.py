"""Tests for srcset and sizes rewriting."""

from ngx_resizer.lib.secure_link import ResizedURLBuilder
from ngx_resizer.lib.srcset import DEFAULT_CONTENT_WIDTH, SrcsetSource, rewrite_sizes, rewrite_srcset

UPLOADS = "http://site.test/up"


def rewrite(sources, **kwargs):
    return rewrite_srcset(sources, ResizedURLBuilder(UPLOADS), **kwargs)


class TestRewriteSrcset:
    def test_dimensions_from_filename(self):
        result = rewrite([SrcsetSource(f"{UPLOADS}/a-300x200.jpg", "w", 300)])

        assert result == [SrcsetSource(f"{UPLOADS}/a-300x200.jpg?w=300&h=200&crop=1", "w", 300)]

    def test_declared_width_wins_when_it_disagrees(self):
        result = rewrite([SrcsetSource(f"{UPLOADS}/a-300x200.jpg", "w", 600)])

        assert result[0].url == f"{UPLOADS}/a-300x200.jpg?w=600&h=200&crop=1"

    def test_width_only_without_suffix(self):
        result = rewrite([SrcsetSource(f"{UPLOADS}/a.jpg", "w", 768)])

        assert result[0].url == f"{UPLOADS}/a.jpg?w=768&crop=1"

    def test_density_descriptor_keeps_filename_dimensions(self):
        result = rewrite([SrcsetSource(f"{UPLOADS}/a-300x200.jpg", "x", 2)])

        assert result[0] == SrcsetSource(f"{UPLOADS}/a-300x200.jpg?w=300&h=200&crop=1", "x", 2)

    def test_attachment_url_replaces_candidate(self):
        result = rewrite(
            [SrcsetSource(f"{UPLOADS}/a-300x200.jpg", "w", 300)],
            attachment_url=f"{UPLOADS}/a.jpg",
        )

        assert result[0].url == f"{UPLOADS}/a.jpg?w=300&h=200&crop=1"

    def test_strip_callback(self):
        def strip(url):
            return url.replace("-300x200", "")

        result = rewrite([SrcsetSource(f"{UPLOADS}/a-300x200.jpg", "w", 300)], strip=strip)

        assert result[0].url == f"{UPLOADS}/a.jpg?w=300&h=200&crop=1"

    def test_invalid_url_passes_through(self):
        source = SrcsetSource("/relative/a-300x200.jpg", "w", 300)

        assert rewrite([source]) == [source]

    def test_returns_new_list(self):
        sources = [SrcsetSource(f"{UPLOADS}/a.jpg", "w", 100)]

        result = rewrite(sources)

        assert result is not sources
        assert sources[0].url == f"{UPLOADS}/a.jpg"


class TestRewriteSizes:
    SIZES = "(max-width: 300px) 100vw, 300px"

    def test_outside_content_is_untouched(self):
        assert rewrite_sizes(self.SIZES, (1200, 800), in_content=False) == self.SIZES

    def test_narrow_image_keeps_own_sizes(self):
        assert rewrite_sizes(self.SIZES, (300, 200)) == self.SIZES

    def test_wide_image_capped_at_default_width(self):
        assert rewrite_sizes(self.SIZES, (1200, 800)) == (
            f"(max-width: {DEFAULT_CONTENT_WIDTH}px) 100vw, {DEFAULT_CONTENT_WIDTH}px"
        )

    def test_content_width(self):
        assert rewrite_sizes(self.SIZES, [700, 400], content_width=640) == (
            "(max-width: 640px) 100vw, 640px"
        )

    def test_named_size_is_capped(self):
        assert rewrite_sizes(self.SIZES, "large", content_width=800) == (
            "(max-width: 800px) 100vw, 800px"
        )
