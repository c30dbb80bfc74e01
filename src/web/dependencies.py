"""
FastAPI dependencies for the lead workflow API.

The store and engine are created once per application by `create_app` and
kept on `app.state`.

Usage in endpoints:
    @router.post("/api/leads/{lead_id}/claim")
    def claim(lead_id: int, engine: LeadLifecycleEngine = Depends(get_engine)):
        ...
"""

from fastapi import Request

from database.lead_store import LeadStore
from lead_workflow.engine import LeadLifecycleEngine


def get_store(request: Request) -> LeadStore:
    """Get the application's lead store."""
    return request.app.state.lead_store


def get_engine(request: Request) -> LeadLifecycleEngine:
    """Get the application's lifecycle engine."""
    return request.app.state.engine
