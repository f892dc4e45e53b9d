"""Thumbcraft — FastAPI Application.

This module is the single entry point for the web service.  It defines the
FastAPI ``app`` instance, all REST API routes, and the ``main()`` CLI
function that launches the uvicorn server.

Architecture
------------
- **Prompt composition** is performed by
  :func:`~thumbcraft.core.prompt_composer.compose`, optionally followed by
  :class:`~thumbcraft.core.enhancer.PromptEnhancer`.
- **Image generation** is performed by
  :class:`~thumbcraft.core.orchestrator.GenerationOrchestrator`, built once
  from configuration at startup.
- **Image storage** writes buffers into the gallery directory, served by
  FastAPI's ``StaticFiles`` middleware.
- **History persistence** uses a single ``history.json`` file keyed by user.
- **User identity** is established upstream; this service trusts the
  ``X-User-Id`` header set by the authenticating proxy.

Endpoints
---------
========  ============================  ====================================
Method    Path                          Purpose
========  ============================  ====================================
GET       ``/health``                   Collaborator readiness
POST      ``/api/generate``             Text-to-image generation
POST      ``/api/generate-from-image``  Image-to-image generation
POST      ``/api/prompt/compile``       Preview the composed prompt
GET       ``/api/history``              Paginated generation history
DELETE    ``/api/history/{id}``         Delete one history entry
DELETE    ``/api/history``              Clear the history
========  ============================  ====================================

Usage
-----
CLI (installed entry point)::

    thumbcraft

Direct invocation::

    python -m thumbcraft.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import Depends, FastAPI, File, Form, Header, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from thumbcraft import __version__
from thumbcraft.api.history_store import HistoryStore
from thumbcraft.api.models import GenerateRequest
from thumbcraft.api.storage import LocalImageStorage
from thumbcraft.core.config import config
from thumbcraft.core.enhancer import PromptEnhancer
from thumbcraft.core.errors import HistoryStoreError, ProviderConfigurationError
from thumbcraft.core.mime import detect_mime_type
from thumbcraft.core.models import GenerationMode
from thumbcraft.core.orchestrator import GenerationOrchestrator
from thumbcraft.core.prompt_composer import compose

logger = logging.getLogger(__name__)

HISTORY_DB = config.data_dir / "history.json"

# ---------------------------------------------------------------------------
# Application lifecycle: collaborator setup.
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the service collaborators and report their readiness.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control back to the application for the duration of its lifetime.
    """
    app.state.orchestrator = GenerationOrchestrator.from_config(config)
    app.state.enhancer = PromptEnhancer(config)
    app.state.storage = LocalImageStorage(config.gallery_dir)
    app.state.history = HistoryStore(HISTORY_DB, limit=config.history_limit)

    for mode in GenerationMode:
        chain = config.provider_chain(mode)
        if app.state.orchestrator.is_ready(mode):
            logger.info("%s ready (chain: %s)", mode.value, ", ".join(chain))
        else:
            logger.warning("%s unavailable: no credentials for %s", mode.value, ", ".join(chain))
    if not app.state.enhancer.is_configured:
        logger.warning("Set OPENAI_API_KEY to enable prompt enhancement")

    yield


# ---------------------------------------------------------------------------
# FastAPI application instance.
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Thumbcraft",
    description="Thumbnail generation API with multi-provider fan-out.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.mount("/static", StaticFiles(directory=str(config.static_dir)), name="static")


@app.exception_handler(HistoryStoreError)
async def history_store_error_handler(request: Request, exc: HistoryStoreError) -> JSONResponse:
    """Answer a damaged history file with a JSON 500 instead of rewriting it."""
    logger.error("History store unavailable: %s", exc)
    return JSONResponse(status_code=500, content={"detail": "History is temporarily unavailable"})


# ---------------------------------------------------------------------------
# Identity dependencies.
# ---------------------------------------------------------------------------


def optional_user_id(x_user_id: str | None = Header(default=None)) -> str | None:
    """Return the caller's user id, if the upstream auth layer supplied one."""
    return x_user_id.strip() if x_user_id and x_user_id.strip() else None


def required_user_id(user_id: str | None = Depends(optional_user_id)) -> str:
    """Return the caller's user id or reject the request with 401."""
    if user_id is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return user_id


# ---------------------------------------------------------------------------
# Generation pipeline helper.
# ---------------------------------------------------------------------------


async def _run_generation(
    request: Request,
    req: GenerateRequest,
    mode: GenerationMode,
    user_id: str | None,
    reference_image: bytes | None = None,
    reference_meta: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Compose, enhance, generate, store, and record one request.

    Raises:
        HTTPException: 400 for a missing prompt, 503 when no provider is
            configured, 500 when storing the images or the history entry
            fails.
    """
    if not req.has_prompt():
        raise HTTPException(status_code=400, detail="Prompt is required")

    state = request.app.state
    fields = req.to_fields()
    count = req.resolved_count(config.default_image_count, config.max_image_count)

    final_prompt = compose(fields, mode)
    if req.enhance_prompt:
        final_prompt = await state.enhancer.enhance(final_prompt)

    try:
        images = await state.orchestrator.generate(
            final_prompt,
            count,
            reference_image=reference_image,
            reference_mime_type=(reference_meta or {}).get("mime_type"),
        )
    except ProviderConfigurationError as e:
        logger.error("Image generation unavailable: %s", e)
        raise HTTPException(status_code=503, detail=str(e)) from e

    try:
        image_urls = await state.storage.upload_many(images)
    except Exception as e:
        logger.error("Storing generated images failed: %s", e)
        raise HTTPException(status_code=500, detail="Failed to store generated images") from e

    if user_id:
        record: dict[str, Any] = {
            "type": mode.value,
            "original_prompt": req.prompt,
            "final_prompt": final_prompt,
            "enhanced_prompt": req.enhance_prompt,
            **fields.to_record(),
            "custom_prompt": req.custom_prompt,
            "images_generated": len(image_urls),
            "image_urls": image_urls,
        }
        if reference_meta is not None:
            record["input_image"] = reference_meta
        try:
            state.history.add_entry(user_id, record)
        except Exception as e:
            logger.error("Recording generation history failed: %s", e)
            raise HTTPException(status_code=500, detail="Failed to record generation history") from e

    return {
        "success": True,
        "images": image_urls,
        "prompt": final_prompt,
        "enhanced": req.enhance_prompt,
    }


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------


@app.get("/health")
async def health(request: Request) -> dict:
    """Report the readiness of every collaborator.

    Returns:
        Dictionary with ``status``, ``services`` (provider, enhancer, and
        storage readiness), and an ISO ``timestamp``.
    """
    state = request.app.state
    orchestrator: GenerationOrchestrator = state.orchestrator
    providers = {
        provider.name: provider.is_configured
        for mode in GenerationMode
        for provider in orchestrator.chain(mode)
    }
    return {
        "status": "ok",
        "services": {
            "server": "running",
            "text_to_image": orchestrator.is_ready(GenerationMode.TEXT_TO_IMAGE),
            "image_to_image": orchestrator.is_ready(GenerationMode.IMAGE_TO_IMAGE),
            "providers": providers,
            "enhancer": state.enhancer.is_configured,
            "storage": state.storage.is_configured,
        },
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.post("/api/generate")
async def generate_images(
    req: GenerateRequest,
    request: Request,
    user_id: str | None = Depends(optional_user_id),
) -> dict:
    """Generate thumbnails from a prompt and structured fields.

    This endpoint:

    1. Rejects requests with no prompt content (400).
    2. Composes the prompt from the structured fields.
    3. Optionally enhances it with the LLM.
    4. Generates up to ``image_count`` images (clamped to 1-4).
    5. Stores the images and records the call in the user's history.

    Returns:
        Dictionary with ``success``, ``images`` (URLs), ``prompt``, and
        ``enhanced``.  ``images`` may hold fewer entries than requested.
    """
    return await _run_generation(request, req, GenerationMode.TEXT_TO_IMAGE, user_id)


@app.post("/api/generate-from-image")
async def generate_from_image(
    request: Request,
    image: UploadFile | None = File(default=None),
    prompt: str | None = Form(default=None),
    enhance_prompt: str | None = Form(default=None, alias="enhancePrompt"),
    category: str | None = Form(default=None),
    mood: str | None = Form(default=None),
    theme: str | None = Form(default=None),
    primary_color: str | None = Form(default=None, alias="primaryColor"),
    include_text: str | None = Form(default=None, alias="includeText"),
    text_style: str | None = Form(default=None, alias="textStyle"),
    thumbnail_style: str | None = Form(default=None, alias="thumbnailStyle"),
    custom_prompt: str | None = Form(default=None, alias="customPrompt"),
    image_count: str | None = Form(default="4", alias="imageCount"),
    user_id: str | None = Depends(optional_user_id),
) -> dict:
    """Generate thumbnails that build on an uploaded reference image.

    Accepts ``multipart/form-data`` with an ``image`` file and the same
    prompt fields as ``POST /api/generate``.

    Returns:
        The ``/api/generate`` response plus ``input_image`` (name and size).

    Raises:
        HTTPException: 400 if the file is missing, not an image, or larger
            than ``max_upload_bytes``.
    """
    if image is None:
        raise HTTPException(status_code=400, detail="Image file is required")
    if not (image.content_type or "").startswith("image/"):
        raise HTTPException(status_code=400, detail="Only image files are allowed")

    data = await image.read()
    if not data:
        raise HTTPException(status_code=400, detail="Image file is empty")
    if len(data) > config.max_upload_bytes:
        limit_mb = config.max_upload_bytes // (1024 * 1024)
        raise HTTPException(status_code=400, detail=f"File too large. Maximum size is {limit_mb}MB.")

    req = GenerateRequest(
        prompt=prompt,
        enhance_prompt=enhance_prompt or False,
        category=category,
        mood=mood,
        theme=theme,
        primary_color=primary_color,
        include_text=include_text or False,
        text_style=text_style,
        thumbnail_style=thumbnail_style,
        custom_prompt=custom_prompt,
        image_count=image_count,
    )
    reference_meta = {
        "original_name": image.filename,
        "size": len(data),
        "mime_type": detect_mime_type(data),
    }

    result = await _run_generation(
        request,
        req,
        GenerationMode.IMAGE_TO_IMAGE,
        user_id,
        reference_image=data,
        reference_meta=reference_meta,
    )
    result["input_image"] = {"name": image.filename, "size": len(data)}
    return result


@app.post("/api/prompt/compile")
async def compile_prompt(req: GenerateRequest, mode: GenerationMode = GenerationMode.TEXT_TO_IMAGE) -> dict:
    """Preview the composed prompt without generating an image.

    Returns:
        Dictionary with ``compiled_prompt`` and ``mode``.
    """
    return {"compiled_prompt": compose(req.to_fields(), mode), "mode": mode.value}


@app.get("/api/history")
async def get_history(
    request: Request,
    limit: int = 20,
    offset: int = 0,
    user_id: str = Depends(required_user_id),
) -> dict:
    """Return a page of the caller's generation history, newest first.

    Returns:
        Dictionary with ``history``, ``total``, and ``has_more``.
    """
    return request.app.state.history.get_history(user_id, limit=limit, offset=offset)


@app.delete("/api/history/{entry_id}")
async def delete_history_entry(
    entry_id: str,
    request: Request,
    user_id: str = Depends(required_user_id),
) -> dict:
    """Delete one history entry.

    Raises:
        HTTPException: 404 if the entry does not exist.
    """
    if not request.app.state.history.delete_entry(user_id, entry_id):
        raise HTTPException(status_code=404, detail="History entry not found")
    return {"success": True, "message": "History entry deleted"}


@app.delete("/api/history")
async def clear_history(request: Request, user_id: str = Depends(required_user_id)) -> dict:
    """Delete every history entry for the caller."""
    request.app.state.history.clear_history(user_id)
    return {"success": True, "message": "History cleared"}


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host and port from :data:`~thumbcraft.core.config.config` (which
    loads from ``THUMBCRAFT_SERVER_HOST`` and ``THUMBCRAFT_SERVER_PORT``).

    This function is registered as the ``thumbcraft`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(
        "thumbcraft.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
