"""Variation ledger: the append-only edit history of a design."""

from __future__ import annotations

import logging
import sqlite3

from .errors import LedgerWriteFailure, NotFound, SchemaNotProvisioned
from .models import Variation
from .store import RecordStore

logger = logging.getLogger(__name__)


class VariationLedger:
    """Record, read back and remove variations for a design.

    The ledger never re-checks that the design exists; the store's foreign
    key does that on insert.  Entries are never updated, only appended or
    removed one at a time.

    Args:
        store: Record store holding the ``design_variations`` table
    """

    def __init__(self, store: RecordStore):
        self.store = store

    def append(
        self,
        design_id: str,
        reference: str,
        kind: str,
        instruction: str | None = None,
    ) -> str:
        """Append a variation and return its id.

        Args:
            design_id: Parent design
            reference: Resulting asset reference
            kind: Transform label, e.g. ``"edited"``
            instruction: Instruction or prompt text used, if any

        Returns:
            The new variation id

        Raises:
            SchemaNotProvisioned: If the variations table does not exist
            LedgerWriteFailure: For any other storage failure
        """
        try:
            variation = self.store.insert_variation(
                design_id=design_id,
                image_url=reference,
                variation_type=kind,
                prompt=instruction,
            )
        except SchemaNotProvisioned:
            raise
        except sqlite3.Error as e:
            raise LedgerWriteFailure(f"Could not record variation for design {design_id}: {e}") from e

        logger.info(f"Recorded {kind} variation {variation.id} for design {design_id}")
        return variation.id

    def list_ordered(self, design_id: str) -> list[Variation]:
        """Return the design's variations, oldest first."""
        return self.store.list_variations(design_id)

    def remove(self, design_id: str, variation_id: str) -> None:
        """Delete one variation of one design.

        Both keys must match the same row, so a variation id belonging to
        another design is never deleted.

        Raises:
            NotFound: If no variation with this id exists under ``design_id``
        """
        deleted = self.store.delete_variation(design_id, variation_id)
        if not deleted:
            logger.warning(f"Variation {variation_id} not found under design {design_id}")
            raise NotFound("Variation not found or access denied")

        logger.info(f"Deleted variation {variation_id} from design {design_id}")
