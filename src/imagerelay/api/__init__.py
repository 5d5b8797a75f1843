"""Image Relay - FastAPI REST API layer.

Modules
-------
main
    FastAPI application factory, route handlers and the ``main()`` CLI
    entry point.
models
    Pydantic models for the request body and the four response shapes.
responses
    Mapping from pipeline outcomes to HTTP responses.
"""
