"""
API - FastAPI routers.
"""

from journal.api.compliance import router as compliance_router

__all__ = ["compliance_router"]
