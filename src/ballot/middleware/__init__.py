"""Middleware registration."""

from fastapi import FastAPI

from ballot.config import Settings
from ballot.middleware.error_handler import setup_error_handlers
from ballot.middleware.logging import setup_logging
from ballot.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register logging, error handlers and request-id propagation."""
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)
