"""
Lead workflow error taxonomy.

Every rejected operation raises one of these; none of them leaves a partial
write behind. The web layer maps `code` to an HTTP status.
"""

from enum import Enum
from typing import Any, Dict, Iterable, Optional


class ErrorCode(str, Enum):
    """Error kinds surfaced to callers."""
    NOT_FOUND = "NOT_FOUND"
    ALREADY_CLAIMED = "ALREADY_CLAIMED"
    NOT_CLAIMED = "NOT_CLAIMED"
    PRECEDING_STEP_INCOMPLETE = "PRECEDING_STEP_INCOMPLETE"
    MISSING_CONTACT_NOTES = "MISSING_CONTACT_NOTES"
    INVALID_METHOD = "INVALID_METHOD"
    FORBIDDEN = "FORBIDDEN"
    CONCURRENT_MODIFICATION = "CONCURRENT_MODIFICATION"
    VALIDATION_ERROR = "VALIDATION_ERROR"


class LeadWorkflowError(Exception):
    """Base exception for lead workflow errors."""

    code: ErrorCode = ErrorCode.VALIDATION_ERROR

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
    ):
        self.message = message
        self.details = details or {}
        # User-friendly message (shown to end user)
        self.user_message = user_message or message
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        """Only store conflicts may be retried transparently."""
        return self.code == ErrorCode.CONCURRENT_MODIFICATION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": True,
            "code": self.code.value,
            "message": self.user_message,
            "details": self.details,
        }


class LeadNotFoundError(LeadWorkflowError):
    code = ErrorCode.NOT_FOUND

    def __init__(self, lead_id: int):
        self.lead_id = lead_id
        super().__init__(
            f"Lead not found: {lead_id}",
            details={"lead_id": lead_id},
        )


class AlreadyClaimedError(LeadWorkflowError):
    code = ErrorCode.ALREADY_CLAIMED

    def __init__(self, lead_id: int, claimed_by_id: Optional[int]):
        self.lead_id = lead_id
        self.claimed_by_id = claimed_by_id
        super().__init__(
            f"Lead {lead_id} is already claimed by user {claimed_by_id}",
            details={"lead_id": lead_id, "claimed_by_id": claimed_by_id},
            user_message="This lead has already been claimed.",
        )


class NotClaimedError(LeadWorkflowError):
    code = ErrorCode.NOT_CLAIMED

    def __init__(self, lead_id: int):
        self.lead_id = lead_id
        super().__init__(
            f"Lead {lead_id} must be claimed first",
            details={"lead_id": lead_id},
            user_message="Claim this lead before tracking its progress.",
        )


class PrecedingStepIncompleteError(LeadWorkflowError):
    code = ErrorCode.PRECEDING_STEP_INCOMPLETE

    def __init__(self, lead_id: int, step: Any, missing: Iterable[Any]):
        self.lead_id = lead_id
        self.step = step
        self.missing = list(missing)
        missing_values = [getattr(m, "value", str(m)) for m in self.missing]
        step_value = getattr(step, "value", str(step))
        super().__init__(
            f"Cannot complete {step_value} on lead {lead_id}: "
            f"{', '.join(missing_values)} not complete",
            details={"lead_id": lead_id, "step": step_value, "missing": missing_values},
            user_message="Complete the earlier steps first.",
        )


class MissingContactNotesError(LeadWorkflowError):
    code = ErrorCode.MISSING_CONTACT_NOTES

    def __init__(self, lead_id: int):
        self.lead_id = lead_id
        super().__init__(
            f"Contact notes are required (lead {lead_id})",
            details={"lead_id": lead_id},
            user_message="Add notes describing the contact.",
        )


class InvalidContactMethodError(LeadWorkflowError):
    code = ErrorCode.INVALID_METHOD

    def __init__(self, method: Any, allowed: Iterable[str]):
        self.method = method
        allowed_values = list(allowed)
        super().__init__(
            f"Unknown contact method: {method!r}",
            details={"method": method, "allowed": allowed_values},
            user_message=f"Contact method must be one of: {', '.join(allowed_values)}.",
        )


class PermissionDeniedError(LeadWorkflowError):
    code = ErrorCode.FORBIDDEN

    def __init__(self, actor_id: int, permission: Any, reason: Optional[str] = None):
        self.actor_id = actor_id
        self.permission = permission
        permission_value = getattr(permission, "value", str(permission))
        message = f"User {actor_id} lacks permission {permission_value}"
        if reason:
            message += f" ({reason})"
        super().__init__(
            message,
            details={"actor_id": actor_id, "permission": permission_value},
            user_message="You don't have permission to do that.",
        )


class ConcurrentModificationError(LeadWorkflowError):
    code = ErrorCode.CONCURRENT_MODIFICATION

    def __init__(self, lead_id: int, attempts: int):
        self.lead_id = lead_id
        self.attempts = attempts
        super().__init__(
            f"Lead {lead_id} was modified concurrently ({attempts} attempts)",
            details={"lead_id": lead_id, "attempts": attempts},
            user_message="This lead was changed by someone else. Please try again.",
        )


class InvalidLeadDataError(LeadWorkflowError):
    code = ErrorCode.VALIDATION_ERROR

    def __init__(self, field: str, reason: str):
        self.field = field
        super().__init__(
            f"Invalid lead {field}: {reason}",
            details={"field": field, "reason": reason},
            user_message=f"Please check the lead {field}.",
        )
