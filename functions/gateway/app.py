"""
FastAPI application entry point for the comments gateway.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI

from gateway.config import Settings, get_settings
from gateway.dependencies import GatewayServices, build_services
from gateway.routes import create_router


def create_app(
    settings: Settings | None = None, services: GatewayServices | None = None
) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level.upper())
    services = services or build_services(settings)

    app = FastAPI(title="Comments Gateway (FastAPI)", version="0.1.0")
    app.state.settings = settings
    app.state.services = services
    app.include_router(create_router(settings, services), prefix=settings.api_prefix)
    return app


app = create_app()
