"""
Lead Workflow

Claim, progress and contact-log lifecycle for sales leads.

Stages: UNCLAIMED -> CLAIMED -> CONTACT_COMPLETE -> ITEMS_CONFIRMED -> SUBMITTED_TO_DESIGN
"""

from .states import (
    LeadStage,
    ProgressStep,
    ContactMethod,
    PROGRESS_ORDER,
    PRECEDING_STEPS,
    STEP_PERMISSIONS,
    derive_stage,
    missing_preceding_steps,
    parse_contact_method,
)
from .errors import (
    ErrorCode,
    LeadWorkflowError,
    LeadNotFoundError,
    AlreadyClaimedError,
    NotClaimedError,
    PrecedingStepIncompleteError,
    MissingContactNotesError,
    InvalidContactMethodError,
    PermissionDeniedError,
    ConcurrentModificationError,
    InvalidLeadDataError,
)
from .models import (
    Principal,
    NewLead,
    Lead,
    ContactLog,
    Activity,
    ProgressUpdate,
    ClaimResult,
    ContactLogResult,
)
from .engine import LeadLifecycleEngine

__all__ = [
    # States
    "LeadStage",
    "ProgressStep",
    "ContactMethod",
    "PROGRESS_ORDER",
    "PRECEDING_STEPS",
    "STEP_PERMISSIONS",
    "derive_stage",
    "missing_preceding_steps",
    "parse_contact_method",
    # Errors
    "ErrorCode",
    "LeadWorkflowError",
    "LeadNotFoundError",
    "AlreadyClaimedError",
    "NotClaimedError",
    "PrecedingStepIncompleteError",
    "MissingContactNotesError",
    "InvalidContactMethodError",
    "PermissionDeniedError",
    "ConcurrentModificationError",
    "InvalidLeadDataError",
    # Records
    "Principal",
    "NewLead",
    "Lead",
    "ContactLog",
    "Activity",
    "ProgressUpdate",
    "ClaimResult",
    "ContactLogResult",
    # Engine
    "LeadLifecycleEngine",
]
