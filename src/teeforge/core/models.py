"""Data models for designs, variations, templates and collections."""

from __future__ import annotations

import json
import sqlite3
from dataclasses import asdict, dataclass, field


@dataclass(frozen=True)
class Design:
    """A user-owned artwork subject to iterative transformation.

    ``image_url`` is always set once the design exists.  ``thumbnail_image_url``
    is an optional display hint; it is the only field updated in place.
    """

    id: str
    user_id: str
    title: str
    prompt: str
    image_url: str
    thumbnail_image_url: str | None = None
    aspect_ratio: str = "1:1"
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Design:
        return cls(**{key: row[key] for key in row.keys()})

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Variation:
    """One immutable record of a transform applied to a design."""

    id: str
    design_id: str
    image_url: str
    variation_type: str
    prompt: str | None = None
    created_at: str = ""

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Variation:
        return cls(
            id=row["id"],
            design_id=row["design_id"],
            image_url=row["image_url"],
            variation_type=row["variation_type"],
            prompt=row["prompt"],
            created_at=row["created_at"],
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Template:
    """Reusable seed artwork that can be copied into a new design.

    ``source_design_id`` is set when the template was built from a user's
    design by adding that design to a collection.
    """

    id: str
    title: str
    prompt: str
    image_url: str
    thumbnail_image_url: str | None = None
    aspect_ratio: str | None = None
    featured: bool = False
    created_at: str = ""
    source_design_id: str | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Template:
        return cls(
            id=row["id"],
            title=row["title"],
            prompt=row["prompt"],
            image_url=row["image_url"],
            thumbnail_image_url=row["thumbnail_image_url"],
            aspect_ratio=row["aspect_ratio"],
            featured=bool(row["featured"]),
            created_at=row["created_at"],
            source_design_id=row["source_design_id"],
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Collection:
    """A named grouping of templates.  Names are stored lower-cased."""

    id: str
    name: str
    created_at: str = ""

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Collection:
        return cls(id=row["id"], name=row["name"], created_at=row["created_at"])

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class TemplateMembership:
    """Association of a template with a collection.

    The tag set belongs to the (template, collection) pair, so the same
    template can carry different tags in different collections.
    """

    id: str
    template_id: str
    collection_id: str
    tags: list[str] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> TemplateMembership:
        return cls(
            id=row["id"],
            template_id=row["template_id"],
            collection_id=row["collection_id"],
            tags=json.loads(row["tags"] or "[]"),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Caller:
    """Identity of the requesting user, or an anonymous caller.

    Authentication itself happens outside this service; the API layer only
    reads the resolved user id.
    """

    user_id: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)


ANONYMOUS = Caller()
