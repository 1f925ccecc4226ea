"""SQLite record store for designs, variations, templates and collections.

The store is a thin keyed read/insert/update/delete layer.  It owns no
business rules beyond what the schema enforces:

- variations reference their design with ``ON DELETE CASCADE``
- template memberships are unique per (template, collection) pair
- collection names are unique

Each public method opens its own connection, so a ``RecordStore`` instance
carries no per-request state and can be shared between concurrent requests.
SQLite serialises writers per database file; there is no locking at this
layer.

A missing table surfaces as :class:`~teeforge.core.errors.SchemaNotProvisioned`
so callers can tell an unprovisioned database from any other failure.
"""

from __future__ import annotations

import json
import logging
import re
import sqlite3
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from .errors import SchemaNotProvisioned
from .models import Collection, Design, Template, TemplateMembership, Variation

logger = logging.getLogger(__name__)

_MISSING_TABLE = re.compile(r"no such table: (\w+)")

SCHEMA = """
CREATE TABLE IF NOT EXISTS designs (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    title TEXT NOT NULL DEFAULT '',
    prompt TEXT NOT NULL DEFAULT '',
    image_url TEXT NOT NULL,
    thumbnail_image_url TEXT,
    aspect_ratio TEXT NOT NULL DEFAULT '1:1',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_designs_user ON designs(user_id, updated_at DESC);

CREATE TABLE IF NOT EXISTS design_variations (
    id TEXT PRIMARY KEY,
    design_id TEXT NOT NULL REFERENCES designs(id) ON DELETE CASCADE,
    image_url TEXT NOT NULL,
    variation_type TEXT NOT NULL,
    prompt TEXT,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_variations_design ON design_variations(design_id, created_at);

CREATE TABLE IF NOT EXISTS templates (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL DEFAULT '',
    prompt TEXT NOT NULL DEFAULT '',
    image_url TEXT NOT NULL,
    thumbnail_image_url TEXT,
    aspect_ratio TEXT,
    featured INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    source_design_id TEXT REFERENCES designs(id) ON DELETE SET NULL
);
CREATE INDEX IF NOT EXISTS idx_templates_source ON templates(source_design_id);

CREATE TABLE IF NOT EXISTS collections (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL UNIQUE,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS template_collections (
    id TEXT PRIMARY KEY,
    template_id TEXT NOT NULL REFERENCES templates(id) ON DELETE CASCADE,
    collection_id TEXT NOT NULL REFERENCES collections(id) ON DELETE CASCADE,
    tags TEXT NOT NULL DEFAULT '[]',
    UNIQUE (template_id, collection_id)
);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return str(uuid.uuid4())


class RecordStore:
    """Keyed access to the relational records used by the pipeline.

    Args:
        db_path: Path to the SQLite database file.  Parent directories are
            created; tables are not (call :meth:`initialize`).
    """

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def initialize(self) -> None:
        """Create all tables and indexes if they don't exist."""
        with sqlite3.connect(self.db_path) as conn:
            # Databases created before templates tracked their source design.
            columns = {row[1] for row in conn.execute("PRAGMA table_info(templates)")}
            if columns and "source_design_id" not in columns:
                conn.execute("ALTER TABLE templates ADD COLUMN source_design_id TEXT")
            conn.executescript(SCHEMA)
        logger.info(f"Provisioned schema at {self.db_path}")

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection with row mapping and foreign keys enabled.

        The transaction is committed when the block exits cleanly and rolled
        back otherwise.

        Raises:
            SchemaNotProvisioned: If a statement referenced a missing table.
        """
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            with conn:
                yield conn
        except sqlite3.OperationalError as e:
            match = _MISSING_TABLE.search(str(e))
            if match or "does not exist" in str(e):
                raise SchemaNotProvisioned(match.group(1) if match else None) from e
            raise
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Designs
    # ------------------------------------------------------------------

    def insert_design(
        self,
        *,
        user_id: str,
        title: str,
        prompt: str,
        image_url: str,
        thumbnail_image_url: str | None = None,
        aspect_ratio: str = "1:1",
    ) -> Design:
        now = _now()
        design = Design(
            id=_new_id(),
            user_id=user_id,
            title=title,
            prompt=prompt,
            image_url=image_url,
            thumbnail_image_url=thumbnail_image_url,
            aspect_ratio=aspect_ratio,
            created_at=now,
            updated_at=now,
        )
        with self.connect() as conn:
            conn.execute(
                """
                INSERT INTO designs (id, user_id, title, prompt, image_url,
                                     thumbnail_image_url, aspect_ratio, created_at, updated_at)
                VALUES (:id, :user_id, :title, :prompt, :image_url,
                        :thumbnail_image_url, :aspect_ratio, :created_at, :updated_at)
                """,
                design.to_dict(),
            )
        return design

    def get_design(self, design_id: str, *, user_id: str | None = None) -> Design | None:
        """Fetch a design, optionally restricted to one owner."""
        query = "SELECT * FROM designs WHERE id = ?"
        params: list[str] = [design_id]
        if user_id is not None:
            query += " AND user_id = ?"
            params.append(user_id)

        with self.connect() as conn:
            row = conn.execute(query, params).fetchone()
        return Design.from_row(row) if row else None

    def list_designs(self, user_id: str) -> list[Design]:
        """List a user's designs, most recently updated first."""
        with self.connect() as conn:
            rows = conn.execute(
                "SELECT * FROM designs WHERE user_id = ? ORDER BY updated_at DESC, rowid DESC",
                (user_id,),
            ).fetchall()
        return [Design.from_row(row) for row in rows]

    def update_design_thumbnail(self, design_id: str, user_id: str, thumbnail_url: str) -> bool:
        """Overwrite a design's thumbnail reference.

        Returns:
            True if a row owned by ``user_id`` was updated
        """
        with self.connect() as conn:
            cursor = conn.execute(
                """
                UPDATE designs SET thumbnail_image_url = ?, updated_at = ?
                WHERE id = ? AND user_id = ?
                """,
                (thumbnail_url, _now(), design_id, user_id),
            )
            return cursor.rowcount > 0

    def delete_design(self, design_id: str, user_id: str) -> bool:
        with self.connect() as conn:
            cursor = conn.execute(
                "DELETE FROM designs WHERE id = ? AND user_id = ?",
                (design_id, user_id),
            )
            return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Variations
    # ------------------------------------------------------------------

    def insert_variation(
        self,
        *,
        design_id: str,
        image_url: str,
        variation_type: str,
        prompt: str | None,
    ) -> Variation:
        variation = Variation(
            id=_new_id(),
            design_id=design_id,
            image_url=image_url,
            variation_type=variation_type,
            prompt=prompt,
            created_at=_now(),
        )
        with self.connect() as conn:
            conn.execute(
                """
                INSERT INTO design_variations (id, design_id, image_url, variation_type,
                                               prompt, created_at)
                VALUES (:id, :design_id, :image_url, :variation_type, :prompt, :created_at)
                """,
                variation.to_dict(),
            )
        return variation

    def list_variations(self, design_id: str) -> list[Variation]:
        """List a design's variations in ascending creation order.

        Rows created within the same timestamp keep their insertion order.
        """
        with self.connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM design_variations
                WHERE design_id = ?
                ORDER BY created_at ASC, rowid ASC
                """,
                (design_id,),
            ).fetchall()
        return [Variation.from_row(row) for row in rows]

    def delete_variation(self, design_id: str, variation_id: str) -> int:
        """Delete a variation only if it belongs to ``design_id``.

        Returns:
            Number of rows deleted (0 or 1)
        """
        with self.connect() as conn:
            cursor = conn.execute(
                "DELETE FROM design_variations WHERE id = ? AND design_id = ?",
                (variation_id, design_id),
            )
            return cursor.rowcount

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    def insert_template(
        self,
        *,
        title: str,
        prompt: str,
        image_url: str,
        thumbnail_image_url: str | None = None,
        aspect_ratio: str | None = None,
        featured: bool = False,
        source_design_id: str | None = None,
    ) -> Template:
        template = Template(
            id=_new_id(),
            title=title,
            prompt=prompt,
            image_url=image_url,
            thumbnail_image_url=thumbnail_image_url,
            aspect_ratio=aspect_ratio,
            featured=featured,
            created_at=_now(),
            source_design_id=source_design_id,
        )
        with self.connect() as conn:
            conn.execute(
                """
                INSERT INTO templates (id, title, prompt, image_url, thumbnail_image_url,
                                       aspect_ratio, featured, created_at, source_design_id)
                VALUES (:id, :title, :prompt, :image_url, :thumbnail_image_url,
                        :aspect_ratio, :featured, :created_at, :source_design_id)
                """,
                template.to_dict(),
            )
        return template

    def get_template(self, template_id: str) -> Template | None:
        with self.connect() as conn:
            row = conn.execute("SELECT * FROM templates WHERE id = ?", (template_id,)).fetchone()
        return Template.from_row(row) if row else None

    def find_template_by_source(self, design_id: str) -> Template | None:
        """Fetch the template built from ``design_id``, if there is one."""
        with self.connect() as conn:
            row = conn.execute(
                "SELECT * FROM templates WHERE source_design_id = ? ORDER BY rowid LIMIT 1",
                (design_id,),
            ).fetchone()
        return Template.from_row(row) if row else None

    def list_templates(self) -> list[Template]:
        """List templates, featured first, then newest first."""
        with self.connect() as conn:
            rows = conn.execute(
                "SELECT * FROM templates ORDER BY featured DESC, created_at DESC, rowid DESC"
            ).fetchall()
        return [Template.from_row(row) for row in rows]

    # ------------------------------------------------------------------
    # Collections and memberships
    # ------------------------------------------------------------------

    def insert_collection(self, name: str) -> Collection:
        collection = Collection(id=_new_id(), name=name, created_at=_now())
        with self.connect() as conn:
            conn.execute(
                "INSERT INTO collections (id, name, created_at) VALUES (:id, :name, :created_at)",
                collection.to_dict(),
            )
        return collection

    def get_collection(self, collection_id: str) -> Collection | None:
        with self.connect() as conn:
            row = conn.execute(
                "SELECT * FROM collections WHERE id = ?", (collection_id,)
            ).fetchone()
        return Collection.from_row(row) if row else None

    def find_collection_by_name(self, name: str) -> Collection | None:
        with self.connect() as conn:
            row = conn.execute("SELECT * FROM collections WHERE name = ?", (name,)).fetchone()
        return Collection.from_row(row) if row else None

    def list_collections(self) -> list[Collection]:
        with self.connect() as conn:
            rows = conn.execute("SELECT * FROM collections ORDER BY name ASC").fetchall()
        return [Collection.from_row(row) for row in rows]

    def get_membership(self, collection_id: str, template_id: str) -> TemplateMembership | None:
        with self.connect() as conn:
            row = conn.execute(
                """
                SELECT * FROM template_collections
                WHERE collection_id = ? AND template_id = ?
                """,
                (collection_id, template_id),
            ).fetchone()
        return TemplateMembership.from_row(row) if row else None

    def insert_membership(
        self, collection_id: str, template_id: str, tags: list[str]
    ) -> TemplateMembership:
        membership = TemplateMembership(
            id=_new_id(),
            template_id=template_id,
            collection_id=collection_id,
            tags=list(tags),
        )
        with self.connect() as conn:
            conn.execute(
                """
                INSERT INTO template_collections (id, template_id, collection_id, tags)
                VALUES (?, ?, ?, ?)
                """,
                (membership.id, template_id, collection_id, json.dumps(membership.tags)),
            )
        return membership

    def update_membership_tags(self, membership_id: str, tags: list[str]) -> None:
        with self.connect() as conn:
            conn.execute(
                "UPDATE template_collections SET tags = ? WHERE id = ?",
                (json.dumps(list(tags)), membership_id),
            )

    def delete_membership(self, collection_id: str, template_id: str) -> bool:
        with self.connect() as conn:
            cursor = conn.execute(
                "DELETE FROM template_collections WHERE collection_id = ? AND template_id = ?",
                (collection_id, template_id),
            )
            return cursor.rowcount > 0

    def list_collection_templates(
        self, collection_id: str
    ) -> list[tuple[Template, TemplateMembership]]:
        """List templates in a collection with their per-collection tags."""
        with self.connect() as conn:
            rows = conn.execute(
                """
                SELECT t.*, m.id AS membership_id, m.tags AS membership_tags
                FROM template_collections m
                JOIN templates t ON t.id = m.template_id
                WHERE m.collection_id = ?
                ORDER BY t.featured DESC, t.created_at DESC
                """,
                (collection_id,),
            ).fetchall()

        results = []
        for row in rows:
            membership = TemplateMembership(
                id=row["membership_id"],
                template_id=row["id"],
                collection_id=collection_id,
                tags=json.loads(row["membership_tags"] or "[]"),
            )
            results.append((Template.from_row(row), membership))
        return results
