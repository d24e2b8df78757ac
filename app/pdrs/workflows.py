"""
Domain layer - pure, Django-unaware, state machine for PDRs.
Holds the transition table, the transition and requirement validators,
and the per-role, per-status permission resolver.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Mapping, Optional


class PDRTransitionError(Exception):
    """Custom exception for rejected PDR transitions."""

    def __init__(self, errors):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__(self.errors[0] if self.errors else "")


class PDRPermissionError(Exception):
    """Custom exception for permission failures on PDRs."""

    pass


class InvalidStatusError(ValueError):
    """Raised when a status string cannot be mapped to a PDRStatus."""

    pass


class PDRStatus(str, Enum):
    """PDR lifecycle statuses, declared in workflow order."""

    CREATED = "CREATED"
    SUBMITTED = "SUBMITTED"
    PLAN_LOCKED = "PLAN_LOCKED"
    MID_YEAR_SUBMITTED = "MID_YEAR_SUBMITTED"
    MID_YEAR_APPROVED = "MID_YEAR_APPROVED"
    END_YEAR_SUBMITTED = "END_YEAR_SUBMITTED"
    COMPLETED = "COMPLETED"

    def __str__(self):
        return self.value


class UserRole(str, Enum):
    EMPLOYEE = "EMPLOYEE"
    CEO = "CEO"

    def __str__(self):
        return self.value


class PDRAction(str, Enum):
    """Named actions; values are the identifiers used at the API boundary."""

    SUBMIT_INITIAL_PDR = "submitInitialPDR"
    APPROVE_PLAN = "approvePlan"
    RETURN_PLAN = "returnPlan"
    MARK_BOOKED = "markBooked"
    SUBMIT_MID_YEAR = "submitMidYear"
    APPROVE_MID_YEAR = "approveMidYear"
    RETURN_MID_YEAR = "returnMidYear"
    SUBMIT_END_YEAR = "submitEndYear"
    COMPLETE_FINAL_REVIEW = "completeFinalReview"
    RETURN_END_YEAR = "returnEndYear"

    def __str__(self):
        return self.value


# Older records and clients still send these informal values.
LEGACY_STATUS_ALIASES = {
    "Created": PDRStatus.CREATED,
    "DRAFT": PDRStatus.CREATED,
    "OPEN_FOR_REVIEW": PDRStatus.SUBMITTED,
    "UNDER_REVIEW": PDRStatus.SUBMITTED,
    "Plan - Locked": PDRStatus.PLAN_LOCKED,
    "LOCKED": PDRStatus.PLAN_LOCKED,
    "PDR_Booked": PDRStatus.PLAN_LOCKED,
    "PDR_BOOKED": PDRStatus.PLAN_LOCKED,
    "MID_YEAR_CHECK": PDRStatus.MID_YEAR_SUBMITTED,
    "END_YEAR_REVIEW": PDRStatus.END_YEAR_SUBMITTED,
}


def parse_status(value) -> PDRStatus:
    """
    Maps a stored or client-supplied status value to a PDRStatus.
    Accepts canonical values and known legacy aliases, rejects the rest.
    """
    if isinstance(value, PDRStatus):
        return value
    if isinstance(value, str):
        if value in LEGACY_STATUS_ALIASES:
            return LEGACY_STATUS_ALIASES[value]
        try:
            return PDRStatus(value)
        except ValueError:
            pass
    raise InvalidStatusError(f"Unrecognized PDR status: {value!r}")


STATUS_DISPLAY_NAMES = {
    PDRStatus.CREATED: "Draft",
    PDRStatus.SUBMITTED: "Submitted for Review",
    PDRStatus.PLAN_LOCKED: "Plan Approved",
    PDRStatus.MID_YEAR_SUBMITTED: "Mid-Year Submitted",
    PDRStatus.MID_YEAR_APPROVED: "Mid-Year Approved",
    PDRStatus.END_YEAR_SUBMITTED: "End-Year Submitted",
    PDRStatus.COMPLETED: "Completed",
}

STATUS_DESCRIPTIONS = {
    PDRStatus.CREATED: "PDR is being created by the employee",
    PDRStatus.SUBMITTED: "PDR has been submitted and is awaiting CEO review",
    PDRStatus.PLAN_LOCKED: "Initial PDR has been approved by CEO",
    PDRStatus.MID_YEAR_SUBMITTED: "Mid-year review has been submitted",
    PDRStatus.MID_YEAR_APPROVED: "Mid-year review has been approved by CEO",
    PDRStatus.END_YEAR_SUBMITTED: "End-year review has been submitted",
    PDRStatus.COMPLETED: "PDR cycle is complete",
}


def get_status_stage(status) -> str:
    """Groups a status into its phase of the annual cycle."""
    status = parse_status(status)
    if status in (
        PDRStatus.CREATED,
        PDRStatus.SUBMITTED,
        PDRStatus.PLAN_LOCKED,
    ):
        return "planning"
    if status in (PDRStatus.MID_YEAR_SUBMITTED, PDRStatus.MID_YEAR_APPROVED):
        return "mid-year"
    if status == PDRStatus.END_YEAR_SUBMITTED:
        return "end-year"
    return "complete"


def is_final_status(status) -> bool:
    return parse_status(status) == PDRStatus.COMPLETED


def is_submitted_status(status) -> bool:
    return STATUS_POLICIES[parse_status(status)].awaiting_review


# --- 1. Transition Table ---


@dataclass(frozen=True)
class StateTransition:
    from_status: PDRStatus
    to_status: PDRStatus
    action: PDRAction
    allowed_roles: tuple
    requires_validation: bool = False
    validation_fields: tuple = ()


@dataclass
class ValidationResult:
    """Outcome of a validator; valid exactly when no errors were recorded."""

    errors: list = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        return {"is_valid": self.is_valid, "errors": list(self.errors)}


EMPLOYEE_ONLY = (UserRole.EMPLOYEE,)
CEO_ONLY = (UserRole.CEO,)

# Ordered; lookups return the first matching row.
STATE_TRANSITIONS = (
    StateTransition(
        PDRStatus.CREATED,
        PDRStatus.SUBMITTED,
        PDRAction.SUBMIT_INITIAL_PDR,
        EMPLOYEE_ONLY,
        requires_validation=True,
        validation_fields=("goals", "behaviors"),
    ),
    StateTransition(
        PDRStatus.SUBMITTED,
        PDRStatus.PLAN_LOCKED,
        PDRAction.APPROVE_PLAN,
        CEO_ONLY,
        requires_validation=True,
        validation_fields=("ceo_fields",),
    ),
    StateTransition(
        PDRStatus.SUBMITTED,
        PDRStatus.CREATED,
        PDRAction.RETURN_PLAN,
        CEO_ONLY,
    ),
    # Booking the review meeting does not move the PDR on.
    StateTransition(
        PDRStatus.PLAN_LOCKED,
        PDRStatus.PLAN_LOCKED,
        PDRAction.MARK_BOOKED,
        CEO_ONLY,
    ),
    StateTransition(
        PDRStatus.PLAN_LOCKED,
        PDRStatus.MID_YEAR_SUBMITTED,
        PDRAction.SUBMIT_MID_YEAR,
        EMPLOYEE_ONLY,
        requires_validation=True,
        validation_fields=("mid_year_review",),
    ),
    # The CEO may approve mid-year without an employee submission.
    StateTransition(
        PDRStatus.PLAN_LOCKED,
        PDRStatus.MID_YEAR_APPROVED,
        PDRAction.APPROVE_MID_YEAR,
        CEO_ONLY,
        requires_validation=True,
        validation_fields=("mid_year_feedback",),
    ),
    # Mid-year check-ins are optional.
    StateTransition(
        PDRStatus.PLAN_LOCKED,
        PDRStatus.END_YEAR_SUBMITTED,
        PDRAction.SUBMIT_END_YEAR,
        EMPLOYEE_ONLY,
        requires_validation=True,
        validation_fields=("end_year_review",),
    ),
    StateTransition(
        PDRStatus.MID_YEAR_SUBMITTED,
        PDRStatus.MID_YEAR_APPROVED,
        PDRAction.APPROVE_MID_YEAR,
        CEO_ONLY,
        requires_validation=True,
        validation_fields=("mid_year_feedback",),
    ),
    StateTransition(
        PDRStatus.MID_YEAR_SUBMITTED,
        PDRStatus.PLAN_LOCKED,
        PDRAction.RETURN_MID_YEAR,
        CEO_ONLY,
    ),
    StateTransition(
        PDRStatus.MID_YEAR_APPROVED,
        PDRStatus.END_YEAR_SUBMITTED,
        PDRAction.SUBMIT_END_YEAR,
        EMPLOYEE_ONLY,
        requires_validation=True,
        validation_fields=("end_year_review",),
    ),
    StateTransition(
        PDRStatus.END_YEAR_SUBMITTED,
        PDRStatus.COMPLETED,
        PDRAction.COMPLETE_FINAL_REVIEW,
        CEO_ONLY,
        requires_validation=True,
        validation_fields=("final_review",),
    ),
    StateTransition(
        PDRStatus.END_YEAR_SUBMITTED,
        PDRStatus.MID_YEAR_APPROVED,
        PDRAction.RETURN_END_YEAR,
        CEO_ONLY,
    ),
)

# Activity feed wording for each committed action
ACTIVITY_MESSAGES = {
    PDRAction.SUBMIT_INITIAL_PDR: "submitted PDR for review",
    PDRAction.APPROVE_PLAN: "PDR plan approved",
    PDRAction.RETURN_PLAN: "returned PDR for changes",
    PDRAction.MARK_BOOKED: "booked PDR review meeting",
    PDRAction.SUBMIT_MID_YEAR: "submitted mid-year review",
    PDRAction.APPROVE_MID_YEAR: "mid-year review approved",
    PDRAction.RETURN_MID_YEAR: "returned mid-year review for changes",
    PDRAction.SUBMIT_END_YEAR: "submitted end-year review",
    PDRAction.COMPLETE_FINAL_REVIEW: "completed PDR",
    PDRAction.RETURN_END_YEAR: "returned end-year review for changes",
}


def describe_status_change(action, to_status) -> str:
    """Human-readable activity line for a recorded transition."""
    try:
        return ACTIVITY_MESSAGES[PDRAction(action)]
    except ValueError:
        status = getattr(to_status, "value", to_status)
        status = str(status).replace("_", " ").lower()
        return f"updated PDR status to {status}"


# --- 2. Transition Validation ---


def get_transition(
    from_status, to_status, action
) -> Optional[StateTransition]:
    """Returns the table row matching all three values exactly, if any."""
    for transition in STATE_TRANSITIONS:
        if (
            transition.from_status == from_status
            and transition.to_status == to_status
            and transition.action == action
        ):
            return transition
    return None


def validate_state_transition(
    from_status, to_status, action, role
) -> ValidationResult:
    """
    Checks a (from, to, action) triple against the transition table and
    the acting role against the matching row. Reports the first failure.
    """
    transition = get_transition(from_status, to_status, action)

    if transition is None:
        return ValidationResult(
            errors=[
                f"Invalid transition from '{from_status}' to '{to_status}' "
                f"with action '{action}'"
            ]
        )

    if role not in transition.allowed_roles:
        return ValidationResult(
            errors=[
                f"Role '{role}' is not allowed to perform action '{action}'"
            ]
        )

    return ValidationResult()


def get_valid_next_states(current_status, role) -> list:
    """
    Lists the {state, action} pairs the role may take from the current
    status, in table order. Empty for terminal statuses.
    """
    return [
        {"state": transition.to_status, "action": transition.action}
        for transition in STATE_TRANSITIONS
        if transition.from_status == current_status
        and role in transition.allowed_roles
    ]


# --- 3. Requirement Validation ---


def _is_blank(value) -> bool:
    return not isinstance(value, str) or not value.strip()


def _validate_goals(pdr_data: Mapping) -> list:
    goals = pdr_data.get("goals") or []
    if not goals:
        return ["At least one goal is required before submitting for review"]

    errors = []
    missing_titles = sum(1 for goal in goals if _is_blank(goal.get("title")))
    missing_descriptions = sum(
        1 for goal in goals if _is_blank(goal.get("description"))
    )
    if missing_titles:
        errors.append(
            f"All goals must have a title ({missing_titles} missing)"
        )
    if missing_descriptions:
        errors.append(
            "All goals must have a description "
            f"({missing_descriptions} missing)"
        )
    return errors


def _validate_behaviors(pdr_data: Mapping) -> list:
    behaviors = pdr_data.get("behaviors") or []
    if not behaviors:
        return [
            "At least one behavior assessment is required "
            "before submitting for review"
        ]

    missing = sum(
        1 for behavior in behaviors if _is_blank(behavior.get("description"))
    )
    if missing:
        return [
            "All behavior assessments must have a description "
            f"({missing} missing)"
        ]
    return []


def _validate_ceo_fields(pdr_data: Mapping) -> list:
    # Only behavior-level CEO comments gate plan approval.
    behaviors = pdr_data.get("behaviors") or []
    if any(not _is_blank(b.get("ceo_comments")) for b in behaviors):
        return []
    return ["CEO must provide comments on at least one behavior"]


def _review_value(pdr_data: Mapping, review_key: str, field_name: str):
    review = pdr_data.get(review_key) or {}
    return review.get(field_name)


def _validate_mid_year_review(pdr_data: Mapping) -> list:
    if _is_blank(
        _review_value(pdr_data, "mid_year_review", "progress_summary")
    ):
        return ["Mid-year progress summary is required"]
    return []


def _validate_mid_year_feedback(pdr_data: Mapping) -> list:
    if _is_blank(_review_value(pdr_data, "mid_year_review", "ceo_feedback")):
        return ["CEO feedback is required to approve the mid-year review"]
    return []


def _validate_end_year_review(pdr_data: Mapping) -> list:
    if _is_blank(
        _review_value(pdr_data, "end_year_review", "achievements_summary")
    ):
        return ["End-year achievements summary is required"]
    return []


def _validate_final_review(pdr_data: Mapping) -> list:
    if _is_blank(
        _review_value(pdr_data, "end_year_review", "ceo_final_comments")
    ):
        return ["CEO final comments are required to complete the review"]
    return []


REQUIREMENT_RULES = {
    "goals": _validate_goals,
    "behaviors": _validate_behaviors,
    "ceo_fields": _validate_ceo_fields,
    "mid_year_review": _validate_mid_year_review,
    "mid_year_feedback": _validate_mid_year_feedback,
    "end_year_review": _validate_end_year_review,
    "final_review": _validate_final_review,
}


def validate_transition_requirements(
    pdr_data: Mapping, transition: StateTransition
) -> ValidationResult:
    """
    Checks the PDR content required by a transition. Unlike
    validate_state_transition, every failing rule contributes its errors.
    """
    if not transition.requires_validation:
        return ValidationResult()

    errors = []
    for field_name in transition.validation_fields:
        rule = REQUIREMENT_RULES.get(field_name)
        if rule is None:
            errors.append(f"Unknown validation field: {field_name}")
            continue
        errors.extend(rule(pdr_data))

    return ValidationResult(errors=errors)


# --- 4. Permissions ---


@dataclass(frozen=True)
class PDRPermissions:
    can_view: bool = False
    can_edit: bool = False
    can_view_employee_fields: bool = False
    can_edit_employee_fields: bool = False
    can_view_ceo_fields: bool = False
    can_edit_ceo_fields: bool = False
    can_submit_for_review: bool = False
    can_submit_ceo_review: bool = False
    can_mark_booked: bool = False
    read_only_reason: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class StatusPolicy:
    """What each side of the review may do while a PDR sits in a status."""

    employee_can_edit: bool
    ceo_fields_visible_to_employee: bool
    awaiting_review: bool
    ceo_can_open: bool
    employee_read_only_reason: Optional[str] = None
    ceo_read_only_reason: Optional[str] = None


PENDING_REVIEW_REASON = "PDR is awaiting CEO review and cannot be edited"

STATUS_POLICIES = {
    PDRStatus.CREATED: StatusPolicy(
        employee_can_edit=True,
        ceo_fields_visible_to_employee=False,
        awaiting_review=False,
        ceo_can_open=False,
        ceo_read_only_reason="PDR not yet submitted for review",
    ),
    PDRStatus.SUBMITTED: StatusPolicy(
        employee_can_edit=False,
        ceo_fields_visible_to_employee=False,
        awaiting_review=True,
        ceo_can_open=True,
        employee_read_only_reason=PENDING_REVIEW_REASON,
    ),
    PDRStatus.PLAN_LOCKED: StatusPolicy(
        employee_can_edit=True,
        ceo_fields_visible_to_employee=True,
        awaiting_review=False,
        ceo_can_open=True,
    ),
    PDRStatus.MID_YEAR_SUBMITTED: StatusPolicy(
        employee_can_edit=False,
        ceo_fields_visible_to_employee=False,
        awaiting_review=True,
        ceo_can_open=True,
        employee_read_only_reason=PENDING_REVIEW_REASON,
    ),
    PDRStatus.MID_YEAR_APPROVED: StatusPolicy(
        employee_can_edit=True,
        ceo_fields_visible_to_employee=True,
        awaiting_review=False,
        ceo_can_open=True,
    ),
    PDRStatus.END_YEAR_SUBMITTED: StatusPolicy(
        employee_can_edit=False,
        ceo_fields_visible_to_employee=False,
        awaiting_review=True,
        ceo_can_open=True,
        employee_read_only_reason=PENDING_REVIEW_REASON,
    ),
    PDRStatus.COMPLETED: StatusPolicy(
        employee_can_edit=False,
        ceo_fields_visible_to_employee=True,
        awaiting_review=False,
        ceo_can_open=True,
        employee_read_only_reason="PDR cycle is complete and locked",
    ),
}


def _coerce(enum_cls, value):
    try:
        return enum_cls(value)
    except ValueError:
        return None


def _has_action(status: PDRStatus, role: UserRole, action=None) -> bool:
    return any(
        action is None or next_state["action"] == action
        for next_state in get_valid_next_states(status, role)
    )


def get_pdr_permissions(
    status, role, is_owner: bool = False
) -> PDRPermissions:
    """
    Resolves what a requester may see and do on a PDR in the given status.
    Employees only get rights on their own PDR; the CEO's rights do not
    depend on ownership. Unknown combinations get no rights at all.
    """
    status = _coerce(PDRStatus, status)
    role = _coerce(UserRole, role)
    if status is None or role is None:
        return PDRPermissions()

    policy = STATUS_POLICIES[status]

    if role == UserRole.EMPLOYEE:
        if not is_owner:
            return PDRPermissions()
        can_edit = policy.employee_can_edit
        return PDRPermissions(
            can_view=True,
            can_edit=can_edit,
            can_view_employee_fields=True,
            can_edit_employee_fields=can_edit,
            can_view_ceo_fields=policy.ceo_fields_visible_to_employee,
            can_submit_for_review=can_edit and _has_action(status, role),
            read_only_reason=(
                None if can_edit else policy.employee_read_only_reason
            ),
        )

    if not policy.ceo_can_open:
        # Listed for oversight, but not open for review yet.
        return PDRPermissions(
            can_view=True,
            read_only_reason=policy.ceo_read_only_reason,
        )

    return PDRPermissions(
        can_view=True,
        can_edit=True,
        can_view_employee_fields=True,
        can_view_ceo_fields=True,
        can_edit_ceo_fields=True,
        can_submit_ceo_review=policy.awaiting_review,
        can_mark_booked=_has_action(status, role, PDRAction.MARK_BOOKED),
    )


def is_pdr_editable(status, role, is_owner: bool = False) -> bool:
    return get_pdr_permissions(status, role, is_owner).can_edit


def get_pdr_read_only_reason(
    status, role, is_owner: bool = False
) -> Optional[str]:
    return get_pdr_permissions(status, role, is_owner).read_only_reason
