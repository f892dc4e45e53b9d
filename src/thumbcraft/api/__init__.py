"""Thumbcraft — FastAPI REST API layer.

This package contains the FastAPI application, the Pydantic request model,
and the file-backed collaborators the routes depend on.

Modules
-------
main
    FastAPI application with all route handlers and the ``main()`` CLI
    entry point.
models
    Pydantic model for generation request validation.
history_store
    Per-user, most-recent-first generation history in ``history.json``.
storage
    Local image storage under the static gallery directory.
"""
