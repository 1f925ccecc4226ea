"""Core of the design-iteration pipeline.

This package holds everything between the HTTP surface and the outside
providers:

- **Transforms** (transforms.py): the closed set of transform kinds and their
  typed inputs, defaults and preconditions
- **Gateway** (gateway.py, adapters/): the remote transform boundary and its
  fal.ai implementation; raster.py holds the local pixel operations
- **Rewriter** (rewriter.py): advisory instruction rewriting for edits
- **Orchestrator** (orchestrator.py): validate, transform, then record
- **Ledger** (ledger.py): append-only variation history per design
- **Resolver** (resolver.py): which image reference is authoritative for
  display and for template copies
- **Catalog** (catalog.py): design, template and collection operations
- **Store** (store.py): SQLite record store
- **Errors** (errors.py) and **Config** (config.py)

Architecture Overview
---------------------
    caller -> IterationOrchestrator -> (InstructionRewriter) -> TransformGateway
           -> asset reference -> VariationLedger (best-effort) -> caller

The ledger write never turns a successful transform into a failure; see
:mod:`teeforge.core.orchestrator`.
"""

from teeforge.core.config import TeeforgeConfig, config
from teeforge.core.errors import (
    LedgerWriteFailure,
    MissingInput,
    NotFound,
    RemoteTransformFailure,
    SchemaNotProvisioned,
    TeeforgeError,
    Unauthorized,
)
from teeforge.core.gateway import TransformGateway
from teeforge.core.ledger import VariationLedger
from teeforge.core.models import Caller
from teeforge.core.orchestrator import (
    IterationOrchestrator,
    TransformSucceeded,
    TransformSucceededWithWarning,
)
from teeforge.core.store import RecordStore
from teeforge.core.transforms import TransformKind

__all__ = [
    "Caller",
    "IterationOrchestrator",
    "LedgerWriteFailure",
    "MissingInput",
    "NotFound",
    "RecordStore",
    "RemoteTransformFailure",
    "SchemaNotProvisioned",
    "TeeforgeConfig",
    "TeeforgeError",
    "TransformGateway",
    "TransformKind",
    "TransformSucceeded",
    "TransformSucceededWithWarning",
    "Unauthorized",
    "VariationLedger",
    "config",
]
