"""Design, template and collection operations around the iteration pipeline.

Every function takes the caller and the record store explicitly.  Ownership
is always re-checked against the store: a design id from a request is only
honoured if the design belongs to the caller, and a mismatch is reported as
:class:`~teeforge.core.errors.NotFound` rather than a permission error so
design ids cannot be enumerated.
"""

from __future__ import annotations

import logging
from dataclasses import replace

from .errors import MissingInput, NotFound, SchemaNotProvisioned, Unauthorized
from .ledger import VariationLedger
from .models import Caller, Collection, Design, Template, TemplateMembership, Variation
from .resolver import (
    resolve_copy_thumbnail_reference,
    resolve_display_reference,
    resolve_edit_source_reference,
)
from .store import RecordStore
from .transforms import DEFAULT_GENERATE_ASPECT_RATIO, TITLE_MAX_LENGTH

logger = logging.getLogger(__name__)


def require_caller(caller: Caller) -> str:
    """Return the caller's user id or raise :class:`Unauthorized`."""
    if not caller.is_authenticated:
        raise Unauthorized("Unauthorized")
    return caller.user_id


def _owned_design(caller: Caller, store: RecordStore, design_id: str) -> Design:
    user_id = require_caller(caller)
    if not design_id:
        raise MissingInput("Design ID is required")

    design = store.get_design(design_id, user_id=user_id)
    if design is None:
        raise NotFound("Design not found or access denied")
    return design


# ----------------------------------------------------------------------
# Designs
# ----------------------------------------------------------------------


def create_design(
    caller: Caller,
    store: RecordStore,
    image_url: str | None,
    *,
    title: str | None = None,
    prompt: str | None = None,
    aspect_ratio: str | None = None,
) -> Design:
    """Save an existing image as a new design owned by the caller.

    The title falls back to the start of the prompt, then to ``Untitled``.
    """
    user_id = require_caller(caller)
    if not image_url or not image_url.strip():
        raise MissingInput("Image URL is required")

    prompt = (prompt or "").strip()
    design = store.insert_design(
        user_id=user_id,
        title=(title or "").strip() or prompt[:TITLE_MAX_LENGTH] or "Untitled",
        prompt=prompt,
        image_url=image_url.strip(),
        aspect_ratio=aspect_ratio or DEFAULT_GENERATE_ASPECT_RATIO,
    )
    logger.info(f"Created design {design.id} for {user_id}")
    return design


def list_designs(caller: Caller, store: RecordStore) -> list[Design]:
    """List the caller's designs with ``image_url`` set to the display reference."""
    user_id = require_caller(caller)
    return [
        replace(design, image_url=resolve_display_reference(design))
        for design in store.list_designs(user_id)
    ]


def load_design(
    caller: Caller, store: RecordStore, design_id: str
) -> tuple[Design, list[Variation]]:
    """Load a design and its variation history, oldest variation first.

    A missing variations table yields an empty history rather than an error.
    """
    design = _owned_design(caller, store, design_id)
    try:
        variations = VariationLedger(store).list_ordered(design_id)
    except SchemaNotProvisioned:
        logger.warning("Variations table not set up; returning design without history")
        variations = []
    return design, variations


def update_thumbnail(
    caller: Caller, store: RecordStore, design_id: str, thumbnail_url: str
) -> None:
    """Point a design's thumbnail at ``thumbnail_url``.

    Concurrent updates are last-writer-wins.
    """
    if not thumbnail_url:
        raise MissingInput("Design ID and thumbnail URL are required")
    design = _owned_design(caller, store, design_id)

    if not store.update_design_thumbnail(design.id, design.user_id, thumbnail_url):
        raise NotFound("Design not found or access denied")


def delete_design(caller: Caller, store: RecordStore, design_id: str) -> None:
    """Delete a design; its variations are removed by the store's cascade."""
    design = _owned_design(caller, store, design_id)
    if not store.delete_design(design.id, design.user_id):
        raise NotFound("Design not found or access denied")
    logger.info(f"Deleted design {design_id}")


def delete_variation(
    caller: Caller, store: RecordStore, design_id: str, variation_id: str
) -> None:
    """Delete one variation from one of the caller's designs."""
    if not variation_id:
        raise MissingInput("Design ID and variation ID are required")
    _owned_design(caller, store, design_id)
    VariationLedger(store).remove(design_id, variation_id)


# ----------------------------------------------------------------------
# Templates
# ----------------------------------------------------------------------


def list_templates(store: RecordStore) -> list[Template]:
    return store.list_templates()


def copy_template(caller: Caller, store: RecordStore, template_id: str) -> Design:
    """Create a new design for the caller from a template.

    The new design's primary reference and thumbnail are resolved by two
    independent rules; see :mod:`teeforge.core.resolver`.
    """
    user_id = require_caller(caller)
    if not template_id:
        raise MissingInput("Template design ID is required")

    template = store.get_template(template_id)
    if template is None:
        raise NotFound("Template not found")

    design = store.insert_design(
        user_id=user_id,
        title=f"{template.title or 'Untitled'} (copy)",
        prompt=template.prompt or "",
        image_url=resolve_edit_source_reference(template),
        thumbnail_image_url=resolve_copy_thumbnail_reference(template),
        aspect_ratio=template.aspect_ratio or "1:1",
    )
    logger.info(f"Copied template {template_id} into design {design.id} for {user_id}")
    return design


# ----------------------------------------------------------------------
# Collections
# ----------------------------------------------------------------------


def normalize_collection_name(name: str | None) -> str:
    """Trim and lower-case a collection name.

    Raises:
        MissingInput: If the name is blank
    """
    normalized = (name or "").strip().lower()
    if not normalized:
        raise MissingInput("Collection name is required")
    return normalized


def create_collection(store: RecordStore, name: str) -> Collection:
    """Create a collection, or return the existing one with the same name."""
    normalized = normalize_collection_name(name)
    existing = store.find_collection_by_name(normalized)
    if existing is not None:
        return existing
    return store.insert_collection(normalized)


def list_collections(store: RecordStore) -> list[Collection]:
    return store.list_collections()


def add_template_to_collection(
    store: RecordStore,
    collection_id: str,
    template_id: str,
    tags: list[str] | None = None,
) -> tuple[TemplateMembership, bool]:
    """Add a template to a collection, merging tags if it is already a member.

    Tags belong to the (template, collection) pair.  Merging keeps existing
    tags first and drops duplicates.

    Returns:
        Tuple of (membership, updated) where ``updated`` is True when an
        existing membership was changed
    """
    if not collection_id or not template_id:
        raise MissingInput("Collection ID and template ID are required")
    if store.get_collection(collection_id) is None:
        raise NotFound("Collection not found")
    if store.get_template(template_id) is None:
        raise NotFound("Template not found")

    new_tags = [tag for tag in (tags or []) if tag]
    existing = store.get_membership(collection_id, template_id)
    if existing is None:
        return store.insert_membership(collection_id, template_id, list(dict.fromkeys(new_tags))), False

    merged = list(dict.fromkeys([*existing.tags, *new_tags]))
    store.update_membership_tags(existing.id, merged)
    return replace(existing, tags=merged), True


def remove_template_from_collection(
    store: RecordStore, collection_id: str, template_id: str
) -> None:
    if not store.delete_membership(collection_id, template_id):
        raise NotFound("Template is not in this collection")


def list_collection_templates(
    store: RecordStore, collection_id: str, tag: str | None = None
) -> list[tuple[Template, TemplateMembership]]:
    """List a collection's templates, optionally only those carrying ``tag``."""
    if store.get_collection(collection_id) is None:
        raise NotFound("Collection not found")

    entries = store.list_collection_templates(collection_id)
    if tag:
        entries = [(template, m) for template, m in entries if tag in m.tags]
    return entries


def add_design_to_collection(
    caller: Caller,
    store: RecordStore,
    collection_id: str,
    design_id: str,
    tags: list[str] | None = None,
) -> tuple[Template, TemplateMembership, bool]:
    """Publish one of the caller's designs into a collection as a template.

    The first time a design is added, a template is built from its title,
    prompt, image, thumbnail and aspect ratio.  Later additions, to this or
    any other collection, reuse that template, so tags merge exactly as they
    do for :func:`add_template_to_collection`.

    Returns:
        Tuple of (template, membership, updated)
    """
    user_id = require_caller(caller)
    if not collection_id or not design_id:
        raise MissingInput("Collection ID and Design ID are required")
    if store.get_collection(collection_id) is None:
        raise NotFound("Collection not found")

    design = store.get_design(design_id, user_id=user_id)
    if design is None:
        raise NotFound("Design not found")

    template = store.find_template_by_source(design.id)
    if template is None:
        template = store.insert_template(
            title=design.title,
            prompt=design.prompt,
            image_url=design.image_url,
            thumbnail_image_url=design.thumbnail_image_url,
            aspect_ratio=design.aspect_ratio,
            source_design_id=design.id,
        )
        logger.info(f"Built template {template.id} from design {design.id}")

    membership, updated = add_template_to_collection(store, collection_id, template.id, tags)
    return template, membership, updated
