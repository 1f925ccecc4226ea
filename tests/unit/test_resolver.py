"""Unit tests for teeforge.core.resolver - which image reference is authoritative."""

from teeforge.core.models import Design, Template
from teeforge.core.resolver import (
    resolve_copy_thumbnail_reference,
    resolve_display_reference,
    resolve_edit_source_reference,
)


def _design(image_url="https://x/primary.png", thumbnail=None) -> Design:
    return Design(
        id="d1",
        user_id="u1",
        title="t",
        prompt="p",
        image_url=image_url,
        thumbnail_image_url=thumbnail,
    )


def _template(image_url="https://x/primary.png", thumbnail=None) -> Template:
    return Template(
        id="t1",
        title="t",
        prompt="p",
        image_url=image_url,
        thumbnail_image_url=thumbnail,
    )


class TestDisplayReference:
    """Tests for resolve_display_reference."""

    def test_prefers_thumbnail(self):
        design = _design(thumbnail="https://x/thumb.png")
        assert resolve_display_reference(design) == "https://x/thumb.png"

    def test_falls_back_to_primary(self):
        assert resolve_display_reference(_design()) == "https://x/primary.png"

    def test_empty_thumbnail_falls_back(self):
        assert resolve_display_reference(_design(thumbnail="")) == "https://x/primary.png"


class TestEditSourceReference:
    """Tests for resolve_edit_source_reference (template copy source)."""

    def test_differing_thumbnail_is_used(self):
        template = _template(thumbnail="https://x/newer.png")
        assert resolve_edit_source_reference(template) == "https://x/newer.png"

    def test_identical_thumbnail_uses_primary(self):
        template = _template(thumbnail="https://x/primary.png")
        assert resolve_edit_source_reference(template) == "https://x/primary.png"

    def test_missing_thumbnail_uses_primary(self):
        assert resolve_edit_source_reference(_template()) == "https://x/primary.png"


class TestCopyThumbnailReference:
    """Tests for resolve_copy_thumbnail_reference."""

    def test_thumbnail_if_present(self):
        template = _template(thumbnail="https://x/newer.png")
        assert resolve_copy_thumbnail_reference(template) == "https://x/newer.png"

    def test_primary_otherwise(self):
        assert resolve_copy_thumbnail_reference(_template()) == "https://x/primary.png"

    def test_rules_are_independent(self):
        """Both rules agree only because of the data, not because they share logic."""
        same = _template(thumbnail="https://x/primary.png")
        assert resolve_edit_source_reference(same) == resolve_copy_thumbnail_reference(same)

        stale = _template(image_url="https://x/v1.png", thumbnail="https://x/v2.png")
        assert resolve_edit_source_reference(stale) == "https://x/v2.png"
        assert resolve_copy_thumbnail_reference(stale) == "https://x/v2.png"
