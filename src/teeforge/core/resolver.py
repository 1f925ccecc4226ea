"""Asset reference resolution for designs and templates.

A design or template stores two image references: the primary ``image_url``
and an optional ``thumbnail_image_url``.  Which one is authoritative depends
on what the caller is about to do with it:

- **display** (listing, summaries): thumbnail if present, else primary.
- **copy source** (new design from a template): see
  :func:`resolve_edit_source_reference`.
- **copy thumbnail**: thumbnail if present, else primary.

The copy-source rule and the copy-thumbnail rule are deliberately different
and must stay independent.
"""

from __future__ import annotations

from .models import Design, Template


def resolve_display_reference(design: Design) -> str:
    """Return the reference to show when a design is listed or summarized."""
    return design.thumbnail_image_url or design.image_url


def resolve_edit_source_reference(template: Template) -> str:
    """Return the reference a copied design should use as its primary image.

    Templates saved before thumbnails tracked the latest iteration can carry a
    stale ``image_url`` while the thumbnail holds the corrected artwork.  A
    thumbnail that differs from the primary is therefore taken as the newer
    iteration.  This applies to every template, not just older ones; delete
    this function once template data has been cleaned up.
    """
    thumbnail = template.thumbnail_image_url
    if thumbnail and thumbnail != template.image_url:
        return thumbnail
    return template.image_url


def resolve_copy_thumbnail_reference(template: Template) -> str:
    """Return the thumbnail a copied design starts with."""
    return template.thumbnail_image_url or template.image_url
