"""
============================================================================
Trade Journal Compliance v1.0.0
FastAPI Application Entry Point
============================================================================

Reliability Level: L6 Critical
Input Constraints: JSON requests from the journal client
Side Effects: Logging configuration, Prometheus registry exposure

Routes:
    /api/compliance/*   Rule catalog and trade evaluation
    /health             Liveness
    /metrics            Prometheus scrape endpoint

============================================================================
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from dotenv import load_dotenv
from fastapi import FastAPI, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from journal import __version__
from journal.api.compliance import router as compliance_router
from journal.config import get_compliance_config

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """
    Build the FastAPI application.

    Reads configuration once (failing fast on invalid values) and
    configures root logging at the configured level.
    """
    config = get_compliance_config()

    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format='%(asctime)s | %(levelname)s | %(name)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    app = FastAPI(
        title="Trade Journal Compliance",
        version=__version__,
        description="Strategy rule compliance evaluation for journal trades",
    )
    app.include_router(compliance_router, prefix="/api/compliance")

    @app.get("/health", tags=["System"])
    async def health() -> Dict[str, Any]:
        return {
            "status": "ok",
            "version": __version__,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/metrics", tags=["System"])
    async def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    logger.info(f"[COMPLIANCE-APP] Application created | version={__version__}")
    return app


app = create_app()
