"""Teeforge - FastAPI Application.

This module defines the FastAPI application, all REST routes, and the
``main()`` CLI function that launches the uvicorn server.

Architecture
------------
- **Transforms** go through :class:`~teeforge.core.orchestrator.IterationOrchestrator`,
  one endpoint per transform kind.  Handlers are plain ``def`` functions so
  the blocking provider call runs in FastAPI's threadpool.
- **Designs, templates and collections** go through
  :mod:`teeforge.core.catalog`.
- **Caller identity** is read from the ``X-User-Id`` header, which the
  authenticating proxy in front of this service sets.  No header means an
  anonymous caller.
- **Errors** derived from :class:`~teeforge.core.errors.TeeforgeError` are
  turned into ``{"error": ..., "category": ...}`` responses by a single
  exception handler.

Endpoints
---------
======  ==================================================  ===========================
Method  Path                                                Purpose
======  ==================================================  ===========================
POST    ``/api/designs/edit``                               Prompt-guided edit
POST    ``/api/designs/remove-background``                  Background removal
POST    ``/api/designs/knockout-color``                     Colour knockout
POST    ``/api/designs/upscale``                            Upscale
POST    ``/api/designs/prepare-print``                      Print preparation
POST    ``/api/designs/mockup``                             T-shirt mockup
POST    ``/api/designs/create-style``                       Custom style creation
POST    ``/api/designs/generate``                           Generate a new design
POST    ``/api/designs``                                    Save an image as a design
GET     ``/api/designs``                                    Caller's designs
GET     ``/api/designs/{id}``                               Design + variations
POST    ``/api/designs/{id}/thumbnail``                     Update thumbnail
DELETE  ``/api/designs/{id}``                               Delete design
DELETE  ``/api/designs/{id}/variations/{variation_id}``     Delete variation
GET     ``/api/templates``                                  List templates
POST    ``/api/templates/{id}/copy``                        Copy template into a design
GET     ``/api/collections``                                List collections
POST    ``/api/collections``                                Create collection
GET     ``/api/collections/{id}/templates``                 Templates in a collection
POST    ``/api/collections/{id}/templates``                 Add template with tags
POST    ``/api/collections/{id}/designs``                   Add design as a template
DELETE  ``/api/collections/{id}/templates/{template_id}``   Remove template
GET     ``/api/health``                                     Version and readiness
======  ==================================================  ===========================

Usage
-----
CLI (installed entry point)::

    teeforge

Direct invocation::

    python -m teeforge.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from teeforge import __version__
from teeforge.api.models import (
    CollectionCreateRequest,
    CollectionDesignRequest,
    CollectionTemplateRequest,
    CreateStyleRequest,
    DesignCreateRequest,
    EditRequest,
    GenerateRequest,
    KnockoutColorRequest,
    MockupRequest,
    PreparePrintRequest,
    RemoveBackgroundRequest,
    ThumbnailRequest,
    TransformRequest,
    UpscaleRequest,
)
from teeforge.core import catalog
from teeforge.core.config import TeeforgeConfig, config
from teeforge.core.errors import TeeforgeError
from teeforge.core.gateway import TransformGateway
from teeforge.core.models import Caller
from teeforge.core.orchestrator import IterationOrchestrator, TransformSucceededWithWarning
from teeforge.core.rewriter import GeminiInstructionRewriter, InstructionRewriter
from teeforge.core.store import RecordStore
from teeforge.core.transforms import TransformKind

logger = logging.getLogger(__name__)


def create_app(
    settings: TeeforgeConfig | None = None,
    *,
    store: RecordStore | None = None,
    gateway: TransformGateway | None = None,
    rewriter: InstructionRewriter | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Collaborators not passed in are built from ``settings`` when the
    application starts.

    Args:
        settings: Configuration (defaults to the global ``config``)
        store: Record store
        gateway: Transform gateway
        rewriter: Instruction rewriter

    Returns:
        Configured FastAPI application
    """
    settings = settings or config

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Create the store, gateway, rewriter and orchestrator on startup."""
        app.state.settings = settings
        app.state.store = store or RecordStore(settings.database_path)
        if settings.auto_provision_schema:
            app.state.store.initialize()

        if gateway is not None:
            app.state.gateway = gateway
        else:
            # Imported here so the fal client is only loaded by the real server.
            from teeforge.core.adapters import FalTransformGateway

            app.state.gateway = FalTransformGateway(
                settings.fal_key, http_timeout=settings.http_timeout
            )

        app.state.rewriter = rewriter or GeminiInstructionRewriter(
            settings.genai_api_key,
            model=settings.rewrite_model,
            temperature=settings.rewrite_temperature,
        )
        app.state.orchestrator = IterationOrchestrator(
            app.state.gateway,
            app.state.rewriter,
            allow_public=settings.allow_public_api,
            default_edit_model=settings.default_edit_model,
        )
        logger.info(f"Teeforge {__version__} started with {app.state.gateway.name} gateway")

        yield

        logger.info("Teeforge shutting down")

    app = FastAPI(
        title="Teeforge",
        description="AI design iteration for apparel-print artwork.",
        version=__version__,
        lifespan=lifespan,
    )

    # Allow cross-origin requests so the editor frontend can be served from a
    # different port during development.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(TeeforgeError)
    async def handle_teeforge_error(request: Request, exc: TeeforgeError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message, "category": exc.category},
        )

    app.include_router(_build_router())
    return app


# ---------------------------------------------------------------------------
# Dependencies.
# ---------------------------------------------------------------------------


def get_caller(x_user_id: str | None = Header(default=None)) -> Caller:
    """Resolve the caller from the ``X-User-Id`` header."""
    return Caller(user_id=x_user_id.strip() if x_user_id and x_user_id.strip() else None)


def get_store(request: Request) -> RecordStore:
    return request.app.state.store


def get_orchestrator(request: Request) -> IterationOrchestrator:
    return request.app.state.orchestrator


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------


def _build_router() -> APIRouter:
    router = APIRouter(prefix="/api")

    def run_transform(
        kind: TransformKind,
        req: TransformRequest,
        orchestrator: IterationOrchestrator,
        caller: Caller,
        store: RecordStore,
    ) -> str:
        outcome = orchestrator.apply_transform(
            kind, req.to_payload(), caller=caller, store=store
        )
        if isinstance(outcome, TransformSucceededWithWarning):
            logger.warning(f"{kind.value} succeeded without history: {outcome.warning.message}")
        return outcome.reference

    # --- Transforms --------------------------------------------------------

    @router.post("/designs/edit")
    def edit_design(
        req: EditRequest,
        orchestrator: IterationOrchestrator = Depends(get_orchestrator),
        caller: Caller = Depends(get_caller),
        store: RecordStore = Depends(get_store),
    ) -> dict:
        """Apply a prompt-guided edit; records an ``edited`` variation when ``designId`` is set."""
        return {"imageUrl": run_transform(TransformKind.EDIT, req, orchestrator, caller, store)}

    @router.post("/designs/remove-background")
    def remove_background(
        req: RemoveBackgroundRequest,
        orchestrator: IterationOrchestrator = Depends(get_orchestrator),
        caller: Caller = Depends(get_caller),
        store: RecordStore = Depends(get_store),
    ) -> dict:
        url = run_transform(TransformKind.REMOVE_BACKGROUND, req, orchestrator, caller, store)
        return {"imageUrl": url}

    @router.post("/designs/knockout-color")
    def knockout_color(
        req: KnockoutColorRequest,
        orchestrator: IterationOrchestrator = Depends(get_orchestrator),
        caller: Caller = Depends(get_caller),
        store: RecordStore = Depends(get_store),
    ) -> dict:
        url = run_transform(TransformKind.KNOCKOUT_COLOR, req, orchestrator, caller, store)
        return {"imageUrl": url}

    @router.post("/designs/upscale")
    def upscale(
        req: UpscaleRequest,
        orchestrator: IterationOrchestrator = Depends(get_orchestrator),
        caller: Caller = Depends(get_caller),
        store: RecordStore = Depends(get_store),
    ) -> dict:
        url = run_transform(TransformKind.UPSCALE, req, orchestrator, caller, store)
        return {"imageUrl": url}

    @router.post("/designs/prepare-print")
    def prepare_print(
        req: PreparePrintRequest,
        orchestrator: IterationOrchestrator = Depends(get_orchestrator),
        caller: Caller = Depends(get_caller),
        store: RecordStore = Depends(get_store),
    ) -> dict:
        url = run_transform(TransformKind.PREPARE_PRINT, req, orchestrator, caller, store)
        return {"imageUrl": url, "knockoutType": req.knockout_type or "auto"}

    @router.post("/designs/mockup")
    def mockup(
        req: MockupRequest,
        orchestrator: IterationOrchestrator = Depends(get_orchestrator),
        caller: Caller = Depends(get_caller),
        store: RecordStore = Depends(get_store),
    ) -> dict:
        url = run_transform(TransformKind.MOCKUP, req, orchestrator, caller, store)
        return {"imageUrl": url}

    @router.post("/designs/create-style")
    def create_style(
        req: CreateStyleRequest,
        orchestrator: IterationOrchestrator = Depends(get_orchestrator),
        caller: Caller = Depends(get_caller),
        store: RecordStore = Depends(get_store),
    ) -> dict:
        style_id = run_transform(TransformKind.CREATE_STYLE, req, orchestrator, caller, store)
        return {"styleId": style_id}

    # --- Designs -----------------------------------------------------------

    @router.post("/designs/generate")
    def generate_design(
        req: GenerateRequest,
        orchestrator: IterationOrchestrator = Depends(get_orchestrator),
        caller: Caller = Depends(get_caller),
        store: RecordStore = Depends(get_store),
    ) -> dict:
        """Generate artwork from a prompt; saves it as a design for signed-in callers."""
        outcome = orchestrator.generate_design(req.to_payload(), caller=caller, store=store)
        if outcome.warning is not None:
            logger.warning(f"Generated image was not saved as a design: {outcome.warning.message}")
        return {
            "imageUrl": outcome.reference,
            "design": outcome.design.to_dict() if outcome.design else None,
        }

    @router.post("/designs")
    def create_design(
        req: DesignCreateRequest,
        caller: Caller = Depends(get_caller),
        store: RecordStore = Depends(get_store),
    ) -> dict:
        """Save an existing image (an upload or an earlier result) as a new design."""
        design = catalog.create_design(
            caller,
            store,
            req.image_url,
            title=req.title,
            prompt=req.prompt,
            aspect_ratio=req.aspect_ratio,
        )
        return {"success": True, "design": design.to_dict()}

    @router.get("/designs")
    def get_designs(
        caller: Caller = Depends(get_caller),
        store: RecordStore = Depends(get_store),
    ) -> dict:
        """List the caller's designs; ``image_url`` is the display reference."""
        designs = catalog.list_designs(caller, store)
        return {"designs": [design.to_dict() for design in designs]}

    @router.get("/designs/{design_id}")
    def get_design(
        design_id: str,
        caller: Caller = Depends(get_caller),
        store: RecordStore = Depends(get_store),
    ) -> dict:
        design, variations = catalog.load_design(caller, store, design_id)
        return {
            "design": design.to_dict(),
            "variations": [variation.to_dict() for variation in variations],
        }

    @router.post("/designs/{design_id}/thumbnail")
    def update_thumbnail(
        design_id: str,
        req: ThumbnailRequest,
        caller: Caller = Depends(get_caller),
        store: RecordStore = Depends(get_store),
    ) -> dict:
        catalog.update_thumbnail(caller, store, design_id, req.thumbnail_url)
        return {"success": True}

    @router.delete("/designs/{design_id}")
    def delete_design(
        design_id: str,
        caller: Caller = Depends(get_caller),
        store: RecordStore = Depends(get_store),
    ) -> dict:
        catalog.delete_design(caller, store, design_id)
        return {"success": True, "deleted": design_id}

    @router.delete("/designs/{design_id}/variations/{variation_id}")
    def delete_variation(
        design_id: str,
        variation_id: str,
        caller: Caller = Depends(get_caller),
        store: RecordStore = Depends(get_store),
    ) -> dict:
        catalog.delete_variation(caller, store, design_id, variation_id)
        return {"success": True, "deleted": variation_id}

    # --- Templates ---------------------------------------------------------

    @router.get("/templates")
    def get_templates(
        caller: Caller = Depends(get_caller),
        store: RecordStore = Depends(get_store),
    ) -> dict:
        catalog.require_caller(caller)
        return {"templates": [template.to_dict() for template in catalog.list_templates(store)]}

    @router.post("/templates/{template_id}/copy")
    def copy_template(
        template_id: str,
        caller: Caller = Depends(get_caller),
        store: RecordStore = Depends(get_store),
    ) -> dict:
        design = catalog.copy_template(caller, store, template_id)
        return {"success": True, "design": design.to_dict()}

    # --- Collections -------------------------------------------------------

    @router.get("/collections")
    def get_collections(
        caller: Caller = Depends(get_caller),
        store: RecordStore = Depends(get_store),
    ) -> dict:
        catalog.require_caller(caller)
        return {"collections": [c.to_dict() for c in catalog.list_collections(store)]}

    @router.post("/collections")
    def create_collection(
        req: CollectionCreateRequest,
        caller: Caller = Depends(get_caller),
        store: RecordStore = Depends(get_store),
    ) -> dict:
        catalog.require_caller(caller)
        collection = catalog.create_collection(store, req.name)
        return {"collection": collection.to_dict()}

    @router.get("/collections/{collection_id}/templates")
    def get_collection_templates(
        collection_id: str,
        tag: str | None = None,
        caller: Caller = Depends(get_caller),
        store: RecordStore = Depends(get_store),
    ) -> dict:
        catalog.require_caller(caller)
        entries = catalog.list_collection_templates(store, collection_id, tag=tag)
        return {
            "templates": [
                {**template.to_dict(), "tags": membership.tags} for template, membership in entries
            ]
        }

    @router.post("/collections/{collection_id}/templates")
    def add_collection_template(
        collection_id: str,
        req: CollectionTemplateRequest,
        caller: Caller = Depends(get_caller),
        store: RecordStore = Depends(get_store),
    ) -> dict:
        catalog.require_caller(caller)
        membership, updated = catalog.add_template_to_collection(
            store, collection_id, req.template_id, req.tags
        )
        return {"success": True, "relationship": membership.to_dict(), "updated": updated}

    @router.post("/collections/{collection_id}/designs")
    def add_collection_design(
        collection_id: str,
        req: CollectionDesignRequest,
        caller: Caller = Depends(get_caller),
        store: RecordStore = Depends(get_store),
    ) -> dict:
        """Add one of the caller's designs to a collection as a template."""
        template, membership, updated = catalog.add_design_to_collection(
            caller, store, collection_id, req.design_id, req.tags
        )
        return {
            "success": True,
            "template": template.to_dict(),
            "relationship": membership.to_dict(),
            "updated": updated,
        }

    @router.delete("/collections/{collection_id}/templates/{template_id}")
    def remove_collection_template(
        collection_id: str,
        template_id: str,
        caller: Caller = Depends(get_caller),
        store: RecordStore = Depends(get_store),
    ) -> dict:
        catalog.require_caller(caller)
        catalog.remove_template_from_collection(store, collection_id, template_id)
        return {"success": True}

    # --- Health ------------------------------------------------------------

    @router.get("/health")
    def health(request: Request) -> dict:
        state = request.app.state
        rewriter_ready = getattr(state.rewriter, "is_configured", lambda: True)()
        return {
            "version": __version__,
            "gateway": state.gateway.name,
            "gatewayConfigured": state.gateway.is_configured(),
            "rewriterConfigured": rewriter_ready,
        }

    return router


# ---------------------------------------------------------------------------
# FastAPI application instance.
# ---------------------------------------------------------------------------
app = create_app()


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host, port and log level from :data:`~teeforge.core.config.config`
    (``TEEFORGE_SERVER_HOST``, ``TEEFORGE_SERVER_PORT``, ``TEEFORGE_LOG_LEVEL``).

    This function is registered as the ``teeforge`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    uvicorn.run(
        "teeforge.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
