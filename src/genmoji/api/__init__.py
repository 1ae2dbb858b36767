"""Genmoji FastAPI layer.

Modules
-------
main
    FastAPI application, lifespan wiring, exception handlers, and the
    ``main()`` CLI entry point.
models
    Pydantic request models and the response envelope helpers.
dependencies
    Accessors for the services stored on ``app.state`` and the client IP.
routes
    One router per endpoint group: ``/genmoji``, ``/action``,
    ``/translation``, and ``/analysis``.
"""
