"""
Lead Stages, Progress Steps and Contact Methods

A lead moves through an ordered set of stages:

    UNCLAIMED -> CLAIMED -> CONTACT_COMPLETE -> ITEMS_CONFIRMED -> SUBMITTED_TO_DESIGN

Only `claimed` and the three progress flags are stored; the stage is derived.
The sales `status` field is independent of all of this.
"""

from enum import Enum, IntEnum
from typing import Dict, List, Mapping, Optional, Tuple, Union

from rbac.permissions import Permission


class LeadStage(IntEnum):
    """
    Lead workflow stages - ordered by progress.

    IntEnum allows comparison: ITEMS_CONFIRMED > CONTACT_COMPLETE
    """
    UNCLAIMED = 0
    CLAIMED = 1
    CONTACT_COMPLETE = 2
    ITEMS_CONFIRMED = 3
    SUBMITTED_TO_DESIGN = 4

    @property
    def display_name(self) -> str:
        """Human-readable stage name."""
        names = {
            LeadStage.UNCLAIMED: "Unclaimed",
            LeadStage.CLAIMED: "Claimed",
            LeadStage.CONTACT_COMPLETE: "Contact Complete",
            LeadStage.ITEMS_CONFIRMED: "Items Confirmed",
            LeadStage.SUBMITTED_TO_DESIGN: "Submitted to Design",
        }
        return names[self]

    @property
    def is_terminal(self) -> bool:
        """Last stage handled by the lead workflow; orders take over from here."""
        return self == LeadStage.SUBMITTED_TO_DESIGN


class ProgressStep(str, Enum):
    """
    The three ordered progress flags on a claimed lead.

    Values match the column names on the leads table.
    """
    CONTACT_COMPLETE = "contact_complete"
    ITEMS_CONFIRMED = "items_confirmed"
    SUBMITTED_TO_DESIGN = "submitted_to_design"

    @property
    def display_name(self) -> str:
        names = {
            ProgressStep.CONTACT_COMPLETE: "Initial Contact",
            ProgressStep.ITEMS_CONFIRMED: "Items Confirmed",
            ProgressStep.SUBMITTED_TO_DESIGN: "Submitted to Design",
        }
        return names[self]

    @property
    def stage(self) -> LeadStage:
        """Stage reached when this step (and all before it) is complete."""
        return STEP_STAGES[self]


PROGRESS_ORDER: Tuple[ProgressStep, ...] = (
    ProgressStep.CONTACT_COMPLETE,
    ProgressStep.ITEMS_CONFIRMED,
    ProgressStep.SUBMITTED_TO_DESIGN,
)

STEP_STAGES: Dict[ProgressStep, LeadStage] = {
    ProgressStep.CONTACT_COMPLETE: LeadStage.CONTACT_COMPLETE,
    ProgressStep.ITEMS_CONFIRMED: LeadStage.ITEMS_CONFIRMED,
    ProgressStep.SUBMITTED_TO_DESIGN: LeadStage.SUBMITTED_TO_DESIGN,
}

# Steps that must already be (or simultaneously become) true before a step
# may be set to true. Clearing a step has no preconditions.
PRECEDING_STEPS: Dict[ProgressStep, Tuple[ProgressStep, ...]] = {
    step: PROGRESS_ORDER[:index] for index, step in enumerate(PROGRESS_ORDER)
}

# Permission required to change each step
STEP_PERMISSIONS: Dict[ProgressStep, Permission] = {
    ProgressStep.CONTACT_COMPLETE: Permission.EDIT_LEADS,
    ProgressStep.ITEMS_CONFIRMED: Permission.EDIT_LEADS,
    ProgressStep.SUBMITTED_TO_DESIGN: Permission.EDIT_LEADS,
}

CLAIM_PERMISSION = Permission.EDIT_LEADS
CONTACT_LOG_PERMISSION = Permission.EDIT_LEADS
CREATE_PERMISSION = Permission.CREATE_LEADS


def derive_stage(claimed: bool, progress: Mapping[ProgressStep, bool]) -> LeadStage:
    """
    Derive the stage from the stored flags.

    The stage is the end of the contiguous run of completed steps, so a lead
    whose contact step was undone reports CLAIMED even if later flags are
    still set.
    """
    if not claimed:
        return LeadStage.UNCLAIMED
    stage = LeadStage.CLAIMED
    for step in PROGRESS_ORDER:
        if not progress.get(step, False):
            break
        stage = step.stage
    return stage


def missing_preceding_steps(
    effective: Mapping[ProgressStep, bool],
    step: ProgressStep,
) -> List[ProgressStep]:
    """Preceding steps that are not complete in `effective`."""
    return [before for before in PRECEDING_STEPS[step] if not effective.get(before, False)]


# =============================================================================
# CONTACT METHODS
# =============================================================================

class ContactMethod(str, Enum):
    """How a contact with the lead happened."""
    EMAIL = "email"
    PHONE = "phone"
    IN_PERSON = "in_person"
    VIDEO = "video"
    TEXT = "text"

    @property
    def display_name(self) -> str:
        names = {
            ContactMethod.EMAIL: "Email",
            ContactMethod.PHONE: "Phone",
            ContactMethod.IN_PERSON: "In Person",
            ContactMethod.VIDEO: "Video Call",
            ContactMethod.TEXT: "Text Message",
        }
        return names[self]


# Labels the UI has historically sent
_CONTACT_METHOD_ALIASES: Dict[str, ContactMethod] = {
    "video_call": ContactMethod.VIDEO,
    "text_message": ContactMethod.TEXT,
    "sms": ContactMethod.TEXT,
    "inperson": ContactMethod.IN_PERSON,
}


def parse_contact_method(value: Union[ContactMethod, str, None]) -> Optional[ContactMethod]:
    """
    Normalize a contact method.

    Accepts enum values ("in_person") and display labels ("In Person",
    "in-person", "Video Call"). Returns None for anything else.
    """
    if isinstance(value, ContactMethod):
        return value
    if not value or not isinstance(value, str):
        return None
    key = value.strip().lower().replace("-", "_").replace(" ", "_")
    try:
        return ContactMethod(key)
    except ValueError:
        return _CONTACT_METHOD_ALIASES.get(key)
