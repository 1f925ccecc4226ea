"""Iteration orchestrator: the coordinating step of the design-iteration pipeline.

A transform request flows through four phases:

1. **Authorize** - an anonymous caller is rejected unless public access is
   enabled.
2. **Validate** - the payload is parsed into the kind's typed input and its
   required fields are checked.  Nothing remote has happened yet.
3. **Transform** - for edits on the default model the instruction is first
   rewritten (advisory; failures keep the original text), then the gateway
   is called once.  Gateway failures propagate; there are no retries.
4. **Record** - when a design id was supplied and the caller is
   authenticated, a variation is appended to the ledger.  This phase is
   best-effort: its failures are logged and reported on the outcome, never
   raised.

The return value is a tagged outcome.  :class:`TransformSucceeded` and
:class:`TransformSucceededWithWarning` both carry the resulting reference;
the latter also carries the bookkeeping warning.  Callers that only need the
image use ``outcome.reference`` either way.

New designs start with :meth:`IterationOrchestrator.generate_design`, which
runs the same authorize, validate and transform phases on a text prompt and
then saves the result as a design instead of appending a variation.

Caller identity and the record store are passed into every call, so one
orchestrator instance serves all requests without per-request state.

Usage Example
-------------
    orchestrator = IterationOrchestrator(gateway, rewriter)
    outcome = orchestrator.apply_transform(
        TransformKind.EDIT,
        {"image_url": url, "instruction": "make the sky orange", "design_id": design_id},
        caller=Caller(user_id),
        store=store,
    )
    print(outcome.reference)
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Union

from .errors import (
    LedgerWriteFailure,
    RemoteTransformFailure,
    SchemaNotProvisioned,
    TeeforgeError,
    Unauthorized,
)
from .gateway import TransformGateway
from .ledger import VariationLedger
from .models import Caller, Design
from .rewriter import InstructionRewriter
from .store import RecordStore
from .transforms import (
    DEFAULT_EDIT_MODEL,
    EditInput,
    GenerateInput,
    TransformInput,
    TransformKind,
    parse_generate_input,
    parse_input,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SecondaryWarning:
    """A bookkeeping failure that followed a successful transform.

    Attributes:
        message: Human-readable description
        schema_missing: True when the variations table is not provisioned
    """

    message: str
    schema_missing: bool = False


@dataclass(frozen=True)
class TransformSucceeded:
    """The transform succeeded and any requested bookkeeping succeeded."""

    reference: str
    instruction: str | None = None
    variation_id: str | None = None


@dataclass(frozen=True)
class TransformSucceededWithWarning:
    """The transform succeeded but recording it did not."""

    reference: str
    warning: SecondaryWarning
    instruction: str | None = None


TransformOutcome = Union[TransformSucceeded, TransformSucceededWithWarning]


@dataclass(frozen=True)
class GenerationOutcome:
    """Result of generating new artwork.

    Attributes:
        reference: URL of the generated image
        design: The saved design, or None for anonymous callers and failed saves
        warning: Why the design was not saved, when saving was attempted
    """

    reference: str
    design: Design | None = None
    warning: SecondaryWarning | None = None


class IterationOrchestrator:
    """Validate, transform and record design iterations.

    Args:
        gateway: Transform provider
        rewriter: Optional instruction rewriter for default-model edits
        allow_public: Allow anonymous callers to run transforms (their
            results are never recorded)
        default_edit_model: Edit model for requests that do not name one
    """

    def __init__(
        self,
        gateway: TransformGateway,
        rewriter: InstructionRewriter | None = None,
        *,
        allow_public: bool = False,
        default_edit_model: str = DEFAULT_EDIT_MODEL,
    ) -> None:
        self.gateway = gateway
        self.rewriter = rewriter
        self.allow_public = allow_public
        self.default_edit_model = default_edit_model

    def apply_transform(
        self,
        kind: TransformKind | str,
        payload: Mapping[str, Any] | TransformInput,
        *,
        caller: Caller,
        store: RecordStore,
    ) -> TransformOutcome:
        """Apply one transform and return its outcome.

        Args:
            kind: Transform kind
            payload: Request fields (snake_case names) or a prepared input
            caller: Requesting user
            store: Record store for the best-effort ledger write

        Returns:
            TransformSucceeded or TransformSucceededWithWarning

        Raises:
            Unauthorized: Anonymous caller while public access is disabled
            MissingInput: A required field is absent (no remote call made)
            RemoteTransformFailure: The gateway failed
        """
        kind = TransformKind(kind)
        if not caller.is_authenticated and not self.allow_public:
            raise Unauthorized(f"Unauthorized. Please sign in to run {kind.value}.")

        inp = payload if isinstance(payload, TransformInput) else parse_input(kind, payload)
        if inp.kind is not kind:
            raise ValueError(f"Input for {inp.kind.value} passed as {kind.value}")
        inp.validate()

        if isinstance(inp, EditInput) and not inp.model:
            inp = dataclasses.replace(inp, model=self.default_edit_model)
        if isinstance(inp, EditInput) and inp.uses_default_model:
            inp = dataclasses.replace(inp, instruction=self._rewrite(inp.instruction))

        reference = self._invoke(inp, inp.kind.value)
        instruction = inp.instruction if isinstance(inp, EditInput) else None

        if not (inp.design_id and caller.is_authenticated and inp.variation_type):
            return TransformSucceeded(reference=reference, instruction=instruction)

        return self._record(inp, reference, caller=caller, store=store, instruction=instruction)

    def generate_design(
        self,
        payload: Mapping[str, Any] | GenerateInput,
        *,
        caller: Caller,
        store: RecordStore,
    ) -> GenerationOutcome:
        """Generate new artwork and save it as a design owned by the caller.

        The prompt is sent as written; it is never rewritten.  Saving the
        design is best-effort like variation recording: a failed save is
        logged and reported on the outcome while the image is still
        returned.  Anonymous callers (when public access is enabled) get the
        image without a design.

        Raises:
            Unauthorized: Anonymous caller while public access is disabled
            MissingInput: The prompt is blank (no remote call made)
            RemoteTransformFailure: The gateway failed
        """
        if not caller.is_authenticated and not self.allow_public:
            raise Unauthorized("Unauthorized. Please sign in to generate designs.")

        inp = payload if isinstance(payload, GenerateInput) else parse_generate_input(payload)
        inp.validate()
        if not inp.model:
            inp = dataclasses.replace(inp, model=self.default_edit_model)

        reference = self._invoke(inp, inp.label)
        if not caller.is_authenticated:
            return GenerationOutcome(reference=reference)

        try:
            design = store.insert_design(
                user_id=caller.user_id,
                title=inp.title,
                prompt=inp.prompt,
                image_url=reference,
                aspect_ratio=inp.aspect_ratio,
            )
        except SchemaNotProvisioned as e:
            logger.error(
                f"Database tables not set up. Run the schema migration before saving designs ({e.message})"
            )
            return GenerationOutcome(
                reference=reference, warning=SecondaryWarning(e.message, schema_missing=True)
            )
        except Exception as e:
            logger.error(f"Database error saving design (non-fatal): {e}")
            return GenerationOutcome(reference=reference, warning=SecondaryWarning(str(e)))

        logger.info(f"Design saved successfully: {design.id}")
        return GenerationOutcome(reference=reference, design=design)

    def _rewrite(self, instruction: str) -> str:
        if self.rewriter is None:
            return instruction

        try:
            rewritten = self.rewriter.rewrite(instruction)
        except Exception as e:
            logger.warning(f"Error generating optimized edit prompt, using original: {e}")
            return instruction

        if not rewritten or not rewritten.strip():
            logger.warning("Instruction rewrite returned no text, using original")
            return instruction
        return rewritten.strip()

    def _invoke(self, inp: TransformInput | GenerateInput, label: str) -> str:
        try:
            reference = inp.invoke(self.gateway)
        except TeeforgeError:
            raise
        except Exception as e:
            logger.error(f"{label} transform failed: {e}")
            raise RemoteTransformFailure(f"{label} failed: {e}") from e

        if not isinstance(reference, str) or not reference:
            raise RemoteTransformFailure(f"{label} returned no asset reference")
        return reference

    def _record(
        self,
        inp: TransformInput,
        reference: str,
        *,
        caller: Caller,
        store: RecordStore,
        instruction: str | None,
    ) -> TransformOutcome:
        label = inp.variation_type
        try:
            design = store.get_design(inp.design_id, user_id=caller.user_id)
            if design is None:
                message = f"Design {inp.design_id} not found for caller; {label} variation not recorded"
                logger.warning(message)
                return TransformSucceededWithWarning(
                    reference=reference,
                    warning=SecondaryWarning(message),
                    instruction=instruction,
                )

            variation_id = VariationLedger(store).append(
                inp.design_id, reference, label, inp.ledger_note()
            )
        except SchemaNotProvisioned as e:
            logger.error(
                "Database tables not set up. Run the schema migration before recording "
                f"variations ({e.message})"
            )
            return TransformSucceededWithWarning(
                reference=reference,
                warning=SecondaryWarning(e.message, schema_missing=True),
                instruction=instruction,
            )
        except LedgerWriteFailure as e:
            logger.error(f"Database error saving {label} variation (non-fatal): {e.message}")
            return TransformSucceededWithWarning(
                reference=reference,
                warning=SecondaryWarning(e.message),
                instruction=instruction,
            )
        except Exception as e:
            logger.error(f"Database error saving {label} variation (non-fatal): {e}")
            return TransformSucceededWithWarning(
                reference=reference,
                warning=SecondaryWarning(str(e)),
                instruction=instruction,
            )

        return TransformSucceeded(
            reference=reference,
            instruction=instruction,
            variation_id=variation_id,
        )
