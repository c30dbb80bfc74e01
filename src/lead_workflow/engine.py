"""
Lead Lifecycle Engine

Validates and applies the lead workflow transitions:

- claim: an unclaimed lead gets an owner (compare-and-set, one winner)
- progress: the three ordered flags are set or cleared on a claimed lead
- contact log: an append-only note that also completes the contact step

Every operation checks the actor's permissions and the lead's current state,
then writes the change plus an activity row in one transaction. Nothing is
written when a check fails.
"""

import logging
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from config.logging_config import get_logger
from rbac.permissions import Permission

from .errors import (
    AlreadyClaimedError,
    ConcurrentModificationError,
    InvalidContactMethodError,
    InvalidLeadDataError,
    LeadNotFoundError,
    MissingContactNotesError,
    NotClaimedError,
    PermissionDeniedError,
    PrecedingStepIncompleteError,
)
from .models import (
    Activity,
    ClaimResult,
    ContactLog,
    ContactLogResult,
    Lead,
    NewLead,
    Principal,
    ProgressUpdate,
    utcnow,
)
from .states import (
    CLAIM_PERMISSION,
    CONTACT_LOG_PERMISSION,
    CREATE_PERMISSION,
    ContactMethod,
    PROGRESS_ORDER,
    STEP_PERMISSIONS,
    missing_preceding_steps,
    parse_contact_method,
)

if TYPE_CHECKING:
    from database.lead_repository import LeadRepository
    from database.lead_store import LeadStore

logger = logging.getLogger(__name__)


# Activity actions
ACTION_LEAD_CREATED = "lead_created"
ACTION_LEAD_CLAIMED = "lead_claimed"
ACTION_PROGRESS_UPDATED = "progress_updated"
ACTION_CONTACT_LOGGED = "contact_logged"

DEFAULT_MAX_CONFLICT_RETRIES = 3
DEFAULT_POST_CLAIM_NEXT_STEP = "create_order"


class LeadLifecycleEngine:
    """
    Permission-gated state machine over the lead store.

    The engine keeps no lead state of its own; every call reads the current
    row inside its transaction.
    """

    def __init__(
        self,
        store: "LeadStore",
        max_conflict_retries: int = DEFAULT_MAX_CONFLICT_RETRIES,
        post_claim_next_step: str = DEFAULT_POST_CLAIM_NEXT_STEP,
    ):
        """
        Initialize the engine.

        Args:
            store: Transactional lead store.
            max_conflict_retries: Attempts for a progress update that keeps
                losing version races before ConcurrentModificationError.
            post_claim_next_step: Next-step signal returned by claim_lead.
        """
        if max_conflict_retries < 1:
            raise ValueError("max_conflict_retries must be at least 1")
        self._store = store
        self._max_conflict_retries = max_conflict_retries
        self._post_claim_next_step = post_claim_next_step

    @classmethod
    def from_settings(cls, store: "LeadStore", settings=None) -> "LeadLifecycleEngine":
        from config.settings import get_settings

        settings = settings or get_settings()
        return cls(
            store,
            max_conflict_retries=settings.max_conflict_retries,
            post_claim_next_step=settings.post_claim_next_step,
        )

    @property
    def store(self) -> "LeadStore":
        return self._store

    # =========================================================================
    # CHECKS
    # =========================================================================

    def _authorize(
        self,
        repo: "LeadRepository",
        actor_id: int,
        permission: Permission,
    ) -> Principal:
        principal = repo.get_user(actor_id)
        if principal is None:
            raise PermissionDeniedError(actor_id, permission, reason="unknown user")
        if not principal.has_permission(permission):
            logger.info(f"Permission denied: user {actor_id} lacks {permission.value}")
            raise PermissionDeniedError(actor_id, permission)
        return principal

    def _require_lead(self, repo: "LeadRepository", lead_id: int) -> Lead:
        lead = repo.get_lead(lead_id)
        if lead is None:
            raise LeadNotFoundError(lead_id)
        return lead

    # =========================================================================
    # READS
    # =========================================================================

    def get_principal(self, user_id: int) -> Optional[Principal]:
        with self._store.transaction() as repo:
            return repo.get_user(user_id)

    def get_lead(self, lead_id: int) -> Lead:
        with self._store.transaction() as repo:
            return self._require_lead(repo, lead_id)

    def list_leads(self) -> List[Lead]:
        """All leads, newest first."""
        with self._store.transaction() as repo:
            return repo.list_leads()

    def list_unclaimed_leads(self) -> List[Lead]:
        """The claim queue, newest first."""
        with self._store.transaction() as repo:
            return repo.list_unclaimed_leads()

    def list_my_leads(self, actor_id: int) -> List[Lead]:
        """Leads claimed by `actor_id`, newest first."""
        with self._store.transaction() as repo:
            self._authorize(repo, actor_id, Permission.VIEW_LEADS)
            return repo.list_claimed_by(actor_id)

    def list_contact_logs(self, lead_id: int) -> List[ContactLog]:
        """Contact logs of a lead, oldest first."""
        with self._store.transaction() as repo:
            self._require_lead(repo, lead_id)
            return repo.list_contact_logs(lead_id)

    def list_activity(self, lead_id: int) -> List[Activity]:
        with self._store.transaction() as repo:
            self._require_lead(repo, lead_id)
            return repo.list_activities(lead_id)

    def available_actions(self, lead_id: int, actor_id: int) -> Dict[str, bool]:
        """
        Which workflow actions `actor_id` may take on the lead right now.

        Keys: claim, log_contact, and set_<step> / clear_<step> for each
        progress step. An unknown actor gets all False.
        """
        with self._store.transaction() as repo:
            lead = self._require_lead(repo, lead_id)
            principal = repo.get_user(actor_id)

        permissions = principal.permissions if principal is not None else frozenset()
        progress = lead.progress

        actions = {
            "claim": not lead.claimed and CLAIM_PERMISSION in permissions,
            "log_contact": lead.claimed and CONTACT_LOG_PERMISSION in permissions,
        }
        for step in PROGRESS_ORDER:
            allowed = lead.claimed and STEP_PERMISSIONS[step] in permissions
            actions[f"set_{step.value}"] = (
                allowed
                and not progress[step]
                and not missing_preceding_steps(progress, step)
            )
            actions[f"clear_{step.value}"] = allowed and progress[step]
        return actions

    # =========================================================================
    # INTAKE
    # =========================================================================

    def create_lead(self, actor_id: int, data: NewLead) -> Lead:
        """Create an unclaimed lead with every progress flag false."""
        if not data.name or not data.name.strip():
            raise InvalidLeadDataError("name", "a lead name is required")

        with self._store.transaction() as repo:
            self._authorize(repo, actor_id, CREATE_PERMISSION)
            lead = repo.insert_lead(data)
            repo.record_activity(
                lead.id,
                actor_id,
                ACTION_LEAD_CREATED,
                {"name": lead.name, "source": lead.source},
            )

        logger.info(f"Lead {lead.id} created by user {actor_id}")
        return lead

    # =========================================================================
    # CLAIM
    # =========================================================================

    def claim_lead(self, lead_id: int, actor_id: int, notes: Optional[str] = None) -> ClaimResult:
        """
        Claim an unclaimed lead for `actor_id`.

        Raises:
            PermissionDeniedError: actor lacks edit_leads
            LeadNotFoundError: no such lead
            AlreadyClaimedError: someone (possibly the actor) already owns it
        """
        with self._store.transaction() as repo:
            self._authorize(repo, actor_id, CLAIM_PERMISSION)
            lead = self._require_lead(repo, lead_id)
            if lead.claimed:
                raise AlreadyClaimedError(lead_id, lead.claimed_by_id)

            if not repo.claim_lead(lead_id, actor_id, utcnow()):
                # Lost the race between the read and the conditional update
                current = repo.get_lead(lead_id)
                if current is None:
                    raise LeadNotFoundError(lead_id)
                raise AlreadyClaimedError(lead_id, current.claimed_by_id)

            details: Dict[str, Any] = {}
            if notes and notes.strip():
                details["notes"] = notes.strip()
            repo.record_activity(lead_id, actor_id, ACTION_LEAD_CLAIMED, details)
            claimed = self._require_lead(repo, lead_id)

        log = get_logger(__name__, lead_id=lead_id, actor_id=actor_id)
        log.info(f"Lead {lead_id} claimed by user {actor_id}")
        return ClaimResult(lead=claimed, next_step=self._post_claim_next_step)

    # =========================================================================
    # PROGRESS
    # =========================================================================

    def set_lead_progress(self, lead_id: int, actor_id: int, updates: ProgressUpdate) -> Lead:
        """
        Set or clear progress flags on a claimed lead.

        Only the provided fields change. Setting a flag true requires every
        earlier flag to be true once this update is applied; clearing a flag
        is always allowed and leaves later flags alone.

        Raises:
            PermissionDeniedError, LeadNotFoundError, NotClaimedError,
            PrecedingStepIncompleteError, ConcurrentModificationError
        """
        requested = updates.changes()
        log = get_logger(__name__, lead_id=lead_id, actor_id=actor_id)

        for attempt in range(1, self._max_conflict_retries + 1):
            with self._store.transaction() as repo:
                for permission in self._progress_permissions(requested):
                    self._authorize(repo, actor_id, permission)
                lead = self._require_lead(repo, lead_id)
                if not lead.claimed:
                    raise NotClaimedError(lead_id)

                current = lead.progress
                effective = dict(current)
                effective.update(requested)
                for step, value in requested.items():
                    if not value:
                        continue
                    missing = missing_preceding_steps(effective, step)
                    if missing:
                        raise PrecedingStepIncompleteError(lead_id, step, missing)

                changed = {
                    step: value for step, value in requested.items() if current[step] != value
                }
                if not changed:
                    return lead

                if repo.update_progress(lead_id, changed, expected_version=lead.version):
                    repo.record_activity(
                        lead_id,
                        actor_id,
                        ACTION_PROGRESS_UPDATED,
                        {step.value: value for step, value in changed.items()},
                    )
                    updated = self._require_lead(repo, lead_id)
                    log.info(
                        f"Lead {lead_id} progress updated by user {actor_id}: "
                        + ", ".join(f"{step.value}={value}" for step, value in changed.items())
                    )
                    return updated

            log.warning(
                f"Version conflict updating lead {lead_id} "
                f"(attempt {attempt}/{self._max_conflict_retries})"
            )

        raise ConcurrentModificationError(lead_id, self._max_conflict_retries)

    @staticmethod
    def _progress_permissions(requested) -> List[Permission]:
        if not requested:
            return [STEP_PERMISSIONS[PROGRESS_ORDER[0]]]
        permissions: List[Permission] = []
        for step in requested:
            permission = STEP_PERMISSIONS[step]
            if permission not in permissions:
                permissions.append(permission)
        return permissions

    # =========================================================================
    # CONTACT LOGS
    # =========================================================================

    def log_contact(
        self,
        lead_id: int,
        actor_id: int,
        method: Any,
        notes: Optional[str],
    ) -> ContactLogResult:
        """
        Record a contact with a claimed lead.

        The first log also sets contact_complete, in the same transaction.

        Raises:
            PermissionDeniedError, InvalidContactMethodError,
            MissingContactNotesError, LeadNotFoundError, NotClaimedError
        """
        with self._store.transaction() as repo:
            self._authorize(repo, actor_id, CONTACT_LOG_PERMISSION)

            contact_method = parse_contact_method(method)
            if contact_method is None:
                raise InvalidContactMethodError(method, [m.value for m in ContactMethod])
            cleaned_notes = notes.strip() if isinstance(notes, str) else ""
            if not cleaned_notes:
                raise MissingContactNotesError(lead_id)

            lead = self._require_lead(repo, lead_id)
            if not lead.claimed:
                raise NotClaimedError(lead_id)

            contact_log = repo.insert_contact_log(lead_id, actor_id, contact_method, cleaned_notes)
            completed = False
            if not lead.contact_complete:
                completed = repo.mark_contact_complete(lead_id)

            repo.record_activity(
                lead_id,
                actor_id,
                ACTION_CONTACT_LOGGED,
                {
                    "contact_log_id": contact_log.id,
                    "contact_method": contact_method.value,
                    "contact_completed": completed,
                },
            )
            updated = self._require_lead(repo, lead_id)

        log = get_logger(__name__, lead_id=lead_id, actor_id=actor_id)
        log.info(
            f"Contact logged on lead {lead_id} by user {actor_id} ({contact_method.value})"
            + (" - contact step complete" if completed else "")
        )
        return ContactLogResult(contact_log=contact_log, lead=updated, contact_completed=completed)
