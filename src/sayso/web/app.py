"""
sayso Web - FastAPI application.

Serves the onboarding API consumed by the client state machine.
"""

import logging

from fastapi import FastAPI

from sayso import __version__
from onboarding.api import router as onboarding_router

logger = logging.getLogger(__name__)

app = FastAPI(title="sayso", version=__version__)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__, "service": "sayso-onboarding"}


app.include_router(onboarding_router, prefix="/api")
