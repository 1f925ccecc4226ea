"""Error taxonomy for the design-iteration pipeline.

Every error the pipeline raises on purpose derives from :class:`TeeforgeError`,
which carries the failure ``category`` and the HTTP-style ``status_code`` the
API layer reports.  The API installs a single exception handler for the base
class, so route handlers never translate errors themselves.

Propagation rules
-----------------
- ``Unauthorized``, ``MissingInput`` and ``NotFound`` are raised before any
  remote work and always reach the caller.
- ``RemoteTransformFailure`` reaches the caller; it is never retried.
- ``LedgerWriteFailure`` (and ``SchemaNotProvisioned``) is raised by the
  ledger but caught by the orchestrator after a successful transform.  It
  only reaches a caller from ledger-only operations such as deleting a
  variation.
"""

from __future__ import annotations


class TeeforgeError(Exception):
    """Base class for structured pipeline errors.

    Attributes:
        category: Failure category reported to callers.
        status_code: HTTP status used by the API layer.
    """

    category: str = "internal"
    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class Unauthorized(TeeforgeError):
    """No authenticated caller and public access is disabled."""

    category = "unauthorized"
    status_code = 401


class MissingInput(TeeforgeError):
    """A required request field is absent or blank."""

    category = "bad-input"
    status_code = 400


class NotFound(TeeforgeError):
    """A design, variation, template or collection does not exist for the caller."""

    category = "not-found"
    status_code = 404


class RemoteTransformFailure(TeeforgeError):
    """The remote transform provider failed or returned no asset reference."""

    category = "internal"
    status_code = 502


class LedgerWriteFailure(TeeforgeError):
    """A variation or design record could not be written."""

    category = "internal"
    status_code = 500


class SchemaNotProvisioned(LedgerWriteFailure):
    """The backing table does not exist yet."""

    def __init__(self, table: str | None = None) -> None:
        self.table = table
        target = f"table '{table}'" if table else "required tables"
        super().__init__(
            f"Database {target} not set up. Run the schema migration "
            "(RecordStore.initialize() or TEEFORGE_AUTO_PROVISION_SCHEMA=true)."
        )
