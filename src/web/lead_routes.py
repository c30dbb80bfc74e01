"""
Lead Workflow Routes

Endpoints for lead intake, the claim queue, progress tracking and contact
logs. Read endpoints are gated on view_leads here; every workflow mutation is
authorized by the engine against the caller's stored role and permissions.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, status

from lead_workflow.engine import LeadLifecycleEngine
from rbac import AuthContext, Permission, require_auth, require_permission

from .common import format_success_response
from .dependencies import get_engine
from .schemas import (
    ClaimRequest,
    ContactLogRequest,
    LeadCreateRequest,
    ProgressUpdateRequest,
)

logger = logging.getLogger(__name__)

lead_router = APIRouter(prefix="/api/leads", tags=["Leads"])


# =============================================================================
# INTAKE & QUEUES
# =============================================================================

@lead_router.post("", status_code=status.HTTP_201_CREATED, operation_id="create_lead")
def create_lead(
    body: LeadCreateRequest,
    ctx: AuthContext = Depends(require_auth),
    engine: LeadLifecycleEngine = Depends(get_engine),
):
    """Create an unclaimed lead."""
    lead = engine.create_lead(ctx.user_id, body.to_new_lead())
    return format_success_response({"lead": lead.to_dict()})


@lead_router.get("", operation_id="list_leads")
def list_leads(
    ctx: AuthContext = Depends(require_permission(Permission.VIEW_LEADS)),
    engine: LeadLifecycleEngine = Depends(get_engine),
):
    leads = engine.list_leads()
    return format_success_response({
        "leads": [lead.to_dict() for lead in leads],
        "count": len(leads),
    })


@lead_router.get("/unclaimed", operation_id="list_unclaimed_leads")
def list_unclaimed_leads(
    ctx: AuthContext = Depends(require_permission(Permission.VIEW_LEADS)),
    engine: LeadLifecycleEngine = Depends(get_engine),
):
    """Claim queue, newest first."""
    leads = engine.list_unclaimed_leads()
    return format_success_response({
        "leads": [lead.to_dict() for lead in leads],
        "count": len(leads),
    })


@lead_router.get("/my-leads", operation_id="list_my_leads")
def list_my_leads(
    ctx: AuthContext = Depends(require_permission(Permission.VIEW_LEADS)),
    engine: LeadLifecycleEngine = Depends(get_engine),
):
    """Leads the caller has claimed, newest first."""
    leads = engine.list_my_leads(ctx.user_id)
    return format_success_response({
        "leads": [lead.to_dict() for lead in leads],
        "count": len(leads),
    })


@lead_router.get("/{lead_id}", operation_id="get_lead")
def get_lead(
    lead_id: int,
    ctx: AuthContext = Depends(require_permission(Permission.VIEW_LEADS)),
    engine: LeadLifecycleEngine = Depends(get_engine),
):
    """
    Lead details plus the workflow actions the caller may take on it.

    Clients should enable controls from `available_actions` rather than
    re-deriving the rules.
    """
    lead = engine.get_lead(lead_id)
    return format_success_response({
        "lead": lead.to_dict(),
        "available_actions": engine.available_actions(lead_id, ctx.user_id),
    })


# =============================================================================
# WORKFLOW
# =============================================================================

@lead_router.post("/{lead_id}/claim", operation_id="claim_lead")
def claim_lead(
    lead_id: int,
    body: Optional[ClaimRequest] = None,
    ctx: AuthContext = Depends(require_auth),
    engine: LeadLifecycleEngine = Depends(get_engine),
):
    """Claim an unclaimed lead. The response says where the client goes next."""
    result = engine.claim_lead(lead_id, ctx.user_id, notes=body.notes if body else None)
    return format_success_response(result.to_dict())


@lead_router.patch("/{lead_id}/progress", operation_id="update_lead_progress")
def update_lead_progress(
    lead_id: int,
    body: ProgressUpdateRequest,
    ctx: AuthContext = Depends(require_auth),
    engine: LeadLifecycleEngine = Depends(get_engine),
):
    """Set or clear progress steps. Returns the authoritative lead."""
    lead = engine.set_lead_progress(lead_id, ctx.user_id, body.to_update())
    return format_success_response({"lead": lead.to_dict()})


@lead_router.get("/{lead_id}/contact-logs", operation_id="list_contact_logs")
def list_contact_logs(
    lead_id: int,
    ctx: AuthContext = Depends(require_permission(Permission.VIEW_LEADS)),
    engine: LeadLifecycleEngine = Depends(get_engine),
):
    logs = engine.list_contact_logs(lead_id)
    return format_success_response({
        "contact_logs": [log.to_dict() for log in logs],
        "count": len(logs),
    })


@lead_router.post(
    "/{lead_id}/contact-logs",
    status_code=status.HTTP_201_CREATED,
    operation_id="log_contact",
)
def log_contact(
    lead_id: int,
    body: ContactLogRequest,
    ctx: AuthContext = Depends(require_auth),
    engine: LeadLifecycleEngine = Depends(get_engine),
):
    """Record a contact. The first one completes the contact step."""
    result = engine.log_contact(lead_id, ctx.user_id, body.contact_method, body.notes)
    return format_success_response(result.to_dict())


@lead_router.get("/{lead_id}/activity", operation_id="list_lead_activity")
def list_lead_activity(
    lead_id: int,
    ctx: AuthContext = Depends(require_permission(Permission.VIEW_LEADS)),
    engine: LeadLifecycleEngine = Depends(get_engine),
):
    activities = engine.list_activity(lead_id)
    return format_success_response({
        "activities": [activity.to_dict() for activity in activities],
        "count": len(activities),
    })
