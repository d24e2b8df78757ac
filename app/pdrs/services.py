"""
Application layer - Django-aware orchestrator service for PDR objects.
Enforces business rules by running every state change through the
domain state machine, then persists it and notifies the owner.
"""

import logging

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone

from notifications.factory import NotificationType
from notifications.services import notify_pdr_event

from .models import (
    PDR,
    Goal,
    Behavior,
    CompanyValue,
    MidYearReview,
    EndYearReview,
    PDRStatusChange,
)
from .workflows import (
    PDRAction,
    PDRPermissionError,
    PDRPermissions,
    PDRStatus,
    PDRTransitionError,
    StateTransition,
    UserRole,
    get_pdr_permissions,
    get_transition,
    get_valid_next_states,
    is_final_status,
    validate_state_transition,
    validate_transition_requirements,
)

logger = logging.getLogger(__name__)

User = get_user_model()

# --- HELPER FUNCTIONS ---


def _lock(pdr: PDR) -> PDR:
    """Re-reads the PDR row, locked until the transaction ends."""
    return PDR.objects.select_for_update().get(pk=pdr.pk)


def _require_owner(pdr: PDR, user: User):
    """Employees may only act on their own PDR."""
    if user.role == UserRole.EMPLOYEE and not pdr.is_owned_by(user):
        raise PDRPermissionError(
            "Only the owner of this PDR can perform this action."
        )


def _check_transition(
    pdr: PDR, user: User, to_status: PDRStatus, action: PDRAction
) -> StateTransition:
    """
    Runs the transition validator for the PDR's current status.
    A known transition attempted by the wrong role is a permission error;
    anything else the table rejects is a transition error.
    """
    result = validate_state_transition(
        pdr.status, to_status, action, user.role
    )
    if result.is_valid:
        return get_transition(pdr.status, to_status, action)

    logger.warning(
        "Rejected %s on PDR %s (status %s) by user %s: %s",
        action.value,
        pdr.id,
        pdr.status,
        user.id,
        "; ".join(result.errors),
    )
    if get_transition(pdr.status, to_status, action) is not None:
        raise PDRPermissionError(result.errors[0])
    raise PDRTransitionError(result.errors)


def _check_requirements(pdr: PDR, user: User, transition: StateTransition):
    result = validate_transition_requirements(
        build_pdr_data(pdr), transition
    )
    if not result.is_valid:
        logger.warning(
            "PDR %s is not ready for %s (user %s): %s",
            pdr.id,
            transition.action.value,
            user.id,
            "; ".join(result.errors),
        )
        raise PDRTransitionError(result.errors)


def _apply_transition(
    *,
    pdr: PDR,
    user: User,
    transition: StateTransition,
    notification_type: NotificationType,
    update_fields=(),
) -> PDR:
    """Commits the new status, records it and notifies the owner."""
    from_status = pdr.status
    pdr.status = transition.to_status.value
    pdr.save(update_fields=["status", "updated_at", *update_fields])
    PDRStatusChange.objects.create(
        pdr=pdr,
        from_status=from_status,
        to_status=pdr.status,
        action=transition.action.value,
        actor=user,
    )

    logger.info(
        "PDR %s moved %s -> %s by user %s (%s)",
        pdr.id,
        from_status,
        pdr.status,
        user.id,
        transition.action.value,
    )
    notify_pdr_event(
        pdr=pdr,
        recipient=pdr.created_by,
        notification_type=notification_type,
        triggered_by=user,
    )
    return pdr


def _fill(instance, data: dict):
    for field_name, value in data.items():
        setattr(instance, field_name, value)


# --- PERMISSIONS AND CONTEXT ---


def get_permissions_for(pdr: PDR, user: User) -> PDRPermissions:
    return get_pdr_permissions(pdr.status, user.role, pdr.is_owned_by(user))


def get_pdr_visibility_filter(user: User, prefix: str = "") -> Q:
    """
    The CEO sees every PDR, employees only their own.
    `prefix` points at the PDR from a related model, e.g. "pdr__".
    """
    if user.role == UserRole.CEO:
        return Q()
    return Q(**{f"{prefix}created_by": user})


def get_pdr_context(pdr: PDR, user: User) -> dict:
    """
    [APPLICATION SERVICE]
    Gathers the contextual data for the PDRDetailSerializer.
    """
    permissions = get_permissions_for(pdr, user)

    available_transitions = []
    if permissions.can_view:
        available_transitions = [
            {
                "state": next_state["state"].value,
                "action": next_state["action"].value,
            }
            for next_state in get_valid_next_states(pdr.status, user.role)
        ]

    return {
        "permissions": permissions.to_dict(),
        "available_transitions": available_transitions,
    }


def get_visible_fields(permissions, model) -> set:
    """Field names of `model` the holder of `permissions` may see."""
    if isinstance(permissions, PDRPermissions):
        permissions = permissions.to_dict()
    fields = set()
    if permissions.get("can_view_employee_fields"):
        fields.update(model.EMPLOYEE_FIELDS)
    if permissions.get("can_view_ceo_fields"):
        fields.update(model.CEO_FIELDS)
    return fields


def get_editable_fields(permissions, model) -> set:
    """Field names of `model` the holder of `permissions` may change."""
    if isinstance(permissions, PDRPermissions):
        permissions = permissions.to_dict()
    fields = set()
    if permissions.get("can_edit_employee_fields"):
        fields.update(model.EMPLOYEE_FIELDS)
    if permissions.get("can_edit_ceo_fields"):
        fields.update(model.CEO_FIELDS)
    return fields


def build_pdr_data(pdr: PDR) -> dict:
    """Plain snapshot of the PDR content for the requirement validator."""
    mid_year_fields = MidYearReview.EMPLOYEE_FIELDS + MidYearReview.CEO_FIELDS
    end_year_fields = EndYearReview.EMPLOYEE_FIELDS + EndYearReview.CEO_FIELDS
    return {
        "goals": list(
            pdr.goals.values(*Goal.EMPLOYEE_FIELDS, *Goal.CEO_FIELDS)
        ),
        "behaviors": list(
            pdr.behaviors.values(
                *Behavior.EMPLOYEE_FIELDS, *Behavior.CEO_FIELDS
            )
        ),
        "ceo_fields": dict(pdr.ceo_fields or {}),
        "mid_year_review": MidYearReview.objects.filter(pdr=pdr)
        .values(*mid_year_fields)
        .first(),
        "end_year_review": EndYearReview.objects.filter(pdr=pdr)
        .values(*end_year_fields)
        .first(),
    }


# --- CREATE AND EDIT ---


@transaction.atomic
def create_pdr(*, user: User, financial_year: str) -> PDR:
    """
    Creates a new PDR in CREATED status for the requesting employee.
    One PDR per employee per financial year.
    """
    if user.role != UserRole.EMPLOYEE:
        raise PDRPermissionError("Only employees can create a PDR.")

    duplicate_error = PDRTransitionError(
        f"A PDR for financial year {financial_year} already exists."
    )
    if PDR.objects.filter(
        created_by=user, financial_year=financial_year
    ).exists():
        raise duplicate_error

    # A concurrent request can still win the race to the unique constraint
    try:
        with transaction.atomic():
            pdr = PDR.objects.create(
                created_by=user, financial_year=financial_year
            )
    except IntegrityError:
        logger.warning(
            "Duplicate PDR for %s by user %s rejected by the database",
            financial_year,
            user.id,
        )
        raise duplicate_error

    logger.info("PDR %s created by user %s", pdr.id, user.id)
    return pdr


def _check_writable(pdr: PDR, user: User, model, data: dict):
    permissions = get_permissions_for(pdr, user)
    editable = get_editable_fields(permissions, model)
    if not editable:
        raise PDRPermissionError(
            permissions.read_only_reason
            or "You do not have permission to edit this PDR."
        )

    forbidden = sorted(set(data) - editable)
    if forbidden:
        raise PDRPermissionError(
            "You cannot edit these fields in the current status: "
            + ", ".join(forbidden)
        )


def _check_employee_edit(pdr: PDR, user: User):
    permissions = get_permissions_for(pdr, user)
    if not permissions.can_edit_employee_fields:
        raise PDRPermissionError(
            permissions.read_only_reason
            or "Only the owner can add or remove items on this PDR."
        )


def _check_company_value(pdr: PDR, data: dict, item=None):
    """A behavior must assess an active value, at most once per PDR."""
    if "value" not in data:
        if item is None:
            raise PDRTransitionError("A company value is required.")
        return
    value = data["value"]
    if not isinstance(value, CompanyValue):
        value = CompanyValue.objects.filter(pk=value).first()
    # a behavior may keep a value that was retired after it was chosen
    kept = value is not None and item is not None and item.value_id == value.pk
    if value is None or not (value.is_active or kept):
        raise PDRTransitionError("Invalid or inactive company value.")

    duplicates = Behavior.objects.filter(pdr=pdr, value=value)
    if item is not None:
        duplicates = duplicates.exclude(pk=item.pk)
    if duplicates.exists():
        raise PDRTransitionError(
            "A behavior for this company value already exists on this PDR."
        )
    data["value"] = value


def _add_item(model, *, pdr: PDR, user: User, data: dict, clean=None):
    pdr = _lock(pdr)
    _check_employee_edit(pdr, user)
    _check_writable(pdr, user, model, data)
    if clean is not None:
        clean(pdr, data)
    return model.objects.create(pdr=pdr, **data)


def _update_item(item, *, user: User, data: dict, clean=None):
    pdr = _lock(item.pdr)
    _check_writable(pdr, user, type(item), data)
    if clean is not None:
        clean(pdr, data, item)
    _fill(item, data)
    item.save(update_fields=[*data, "updated_at"])
    return item


def _delete_item(item, *, user: User):
    pdr = _lock(item.pdr)
    _check_employee_edit(pdr, user)
    item.delete()


@transaction.atomic
def add_goal(*, pdr: PDR, user: User, **data) -> Goal:
    return _add_item(Goal, pdr=pdr, user=user, data=data)


@transaction.atomic
def update_goal(*, goal: Goal, user: User, **data) -> Goal:
    return _update_item(goal, user=user, data=data)


@transaction.atomic
def delete_goal(*, goal: Goal, user: User):
    _delete_item(goal, user=user)


@transaction.atomic
def add_behavior(*, pdr: PDR, user: User, **data) -> Behavior:
    return _add_item(
        Behavior,
        pdr=pdr,
        user=user,
        data=data,
        clean=_check_company_value,
    )


@transaction.atomic
def update_behavior(*, behavior: Behavior, user: User, **data) -> Behavior:
    return _update_item(
        behavior, user=user, data=data, clean=_check_company_value
    )


@transaction.atomic
def delete_behavior(*, behavior: Behavior, user: User):
    _delete_item(behavior, user=user)


@transaction.atomic
def update_ceo_fields(*, pdr: PDR, user: User, ceo_fields: dict) -> PDR:
    """Merges the given keys into the PDR-level CEO notes."""
    pdr = _lock(pdr)
    permissions = get_permissions_for(pdr, user)
    if not permissions.can_edit_ceo_fields:
        raise PDRPermissionError(
            permissions.read_only_reason
            or "Only the CEO can edit CEO fields."
        )

    pdr.ceo_fields = {**(pdr.ceo_fields or {}), **ceo_fields}
    pdr.save(update_fields=["ceo_fields", "updated_at"])
    return pdr


@transaction.atomic
def send_reminder(*, pdr: PDR, user: User):
    """Reminds the owner to finish their part of an open PDR."""
    if user.role != UserRole.CEO:
        raise PDRPermissionError("Only the CEO can send PDR reminders.")
    if is_final_status(pdr.status):
        raise PDRTransitionError("This PDR is already complete.")

    return notify_pdr_event(
        pdr=pdr,
        recipient=pdr.created_by,
        notification_type=NotificationType.PDR_REMINDER,
        triggered_by=user,
    )


# --- WORKFLOW ACTIONS: PLANNING ---


@transaction.atomic
def submit_initial_pdr(*, pdr: PDR, user: User) -> PDR:
    """
    Moves a PDR from CREATED to SUBMITTED.
    Permission: the owning employee. Needs complete goals and behaviors.
    """
    pdr = _lock(pdr)
    _require_owner(pdr, user)
    transition = _check_transition(
        pdr, user, PDRStatus.SUBMITTED, PDRAction.SUBMIT_INITIAL_PDR
    )
    _check_requirements(pdr, user, transition)

    pdr.submitted_at = timezone.now()
    return _apply_transition(
        pdr=pdr,
        user=user,
        transition=transition,
        notification_type=NotificationType.PDR_SUBMITTED,
        update_fields=["submitted_at"],
    )


@transaction.atomic
def approve_plan(*, pdr: PDR, user: User) -> PDR:
    """
    Moves a PDR from SUBMITTED to PLAN_LOCKED.
    Permission: CEO only, after commenting on at least one behavior.
    """
    pdr = _lock(pdr)
    transition = _check_transition(
        pdr, user, PDRStatus.PLAN_LOCKED, PDRAction.APPROVE_PLAN
    )
    _check_requirements(pdr, user, transition)

    pdr.locked_at = timezone.now()
    pdr.locked_by = user
    return _apply_transition(
        pdr=pdr,
        user=user,
        transition=transition,
        notification_type=NotificationType.PDR_LOCKED,
        update_fields=["locked_at", "locked_by"],
    )


@transaction.atomic
def return_plan(*, pdr: PDR, user: User) -> PDR:
    """Sends a submitted plan back to the employee (SUBMITTED -> CREATED)."""
    pdr = _lock(pdr)
    transition = _check_transition(
        pdr, user, PDRStatus.CREATED, PDRAction.RETURN_PLAN
    )
    return _apply_transition(
        pdr=pdr,
        user=user,
        transition=transition,
        notification_type=NotificationType.PDR_RETURNED,
    )


@transaction.atomic
def mark_booked(*, pdr: PDR, user: User) -> PDR:
    """
    Records that the PDR meeting has been booked.
    The status stays PLAN_LOCKED.
    """
    pdr = _lock(pdr)
    transition = _check_transition(
        pdr, user, PDRStatus.PLAN_LOCKED, PDRAction.MARK_BOOKED
    )

    pdr.meeting_booked = True
    pdr.meeting_booked_at = timezone.now()
    return _apply_transition(
        pdr=pdr,
        user=user,
        transition=transition,
        notification_type=NotificationType.MEETING_BOOKED,
        update_fields=["meeting_booked", "meeting_booked_at"],
    )


# --- WORKFLOW ACTIONS: MID-YEAR ---


@transaction.atomic
def submit_mid_year(*, pdr: PDR, user: User, **review_data) -> PDR:
    """
    Saves the employee's mid-year review and moves the PDR from
    PLAN_LOCKED to MID_YEAR_SUBMITTED. A progress summary is required.
    """
    pdr = _lock(pdr)
    _require_owner(pdr, user)
    transition = _check_transition(
        pdr, user, PDRStatus.MID_YEAR_SUBMITTED, PDRAction.SUBMIT_MID_YEAR
    )

    review, _ = MidYearReview.objects.get_or_create(pdr=pdr)
    _fill(review, review_data)
    review.submitted_at = timezone.now()
    review.save()

    _check_requirements(pdr, user, transition)
    return _apply_transition(
        pdr=pdr,
        user=user,
        transition=transition,
        notification_type=NotificationType.MID_YEAR_SUBMITTED,
    )


@transaction.atomic
def approve_mid_year(
    *, pdr: PDR, user: User, ceo_feedback: str = "", ceo_rating=None
) -> PDR:
    """
    Records CEO mid-year feedback and moves the PDR to MID_YEAR_APPROVED.
    Works from MID_YEAR_SUBMITTED, or straight from PLAN_LOCKED when the
    employee never submitted a check-in.
    """
    pdr = _lock(pdr)
    transition = _check_transition(
        pdr, user, PDRStatus.MID_YEAR_APPROVED, PDRAction.APPROVE_MID_YEAR
    )

    review, _ = MidYearReview.objects.get_or_create(pdr=pdr)
    review.ceo_feedback = ceo_feedback
    review.ceo_rating = ceo_rating
    review.save(update_fields=["ceo_feedback", "ceo_rating", "updated_at"])

    _check_requirements(pdr, user, transition)
    return _apply_transition(
        pdr=pdr,
        user=user,
        transition=transition,
        notification_type=NotificationType.MID_YEAR_APPROVED,
    )


@transaction.atomic
def return_mid_year(*, pdr: PDR, user: User) -> PDR:
    pdr = _lock(pdr)
    transition = _check_transition(
        pdr, user, PDRStatus.PLAN_LOCKED, PDRAction.RETURN_MID_YEAR
    )
    return _apply_transition(
        pdr=pdr,
        user=user,
        transition=transition,
        notification_type=NotificationType.PDR_RETURNED,
    )


# --- WORKFLOW ACTIONS: END-YEAR ---


@transaction.atomic
def submit_end_year(*, pdr: PDR, user: User, **review_data) -> PDR:
    """
    Saves the employee's end-year review and moves the PDR to
    END_YEAR_SUBMITTED. An achievements summary is required.
    """
    pdr = _lock(pdr)
    _require_owner(pdr, user)
    transition = _check_transition(
        pdr, user, PDRStatus.END_YEAR_SUBMITTED, PDRAction.SUBMIT_END_YEAR
    )

    review, _ = EndYearReview.objects.get_or_create(pdr=pdr)
    _fill(review, review_data)
    review.submitted_at = timezone.now()
    review.save()

    _check_requirements(pdr, user, transition)
    return _apply_transition(
        pdr=pdr,
        user=user,
        transition=transition,
        notification_type=NotificationType.END_YEAR_SUBMITTED,
    )


@transaction.atomic
def complete_final_review(
    *,
    pdr: PDR,
    user: User,
    ceo_final_comments: str = "",
    ceo_overall_rating=None,
) -> PDR:
    """
    Moves a PDR from END_YEAR_SUBMITTED to COMPLETED.
    Permission: CEO only. Final comments are required.
    """
    pdr = _lock(pdr)
    transition = _check_transition(
        pdr, user, PDRStatus.COMPLETED, PDRAction.COMPLETE_FINAL_REVIEW
    )

    review, _ = EndYearReview.objects.get_or_create(pdr=pdr)
    review.ceo_final_comments = ceo_final_comments
    review.ceo_overall_rating = ceo_overall_rating
    review.save(
        update_fields=[
            "ceo_final_comments",
            "ceo_overall_rating",
            "updated_at",
        ]
    )

    _check_requirements(pdr, user, transition)
    pdr.completed_at = timezone.now()
    return _apply_transition(
        pdr=pdr,
        user=user,
        transition=transition,
        notification_type=NotificationType.PDR_COMPLETED,
        update_fields=["completed_at"],
    )


@transaction.atomic
def return_end_year(*, pdr: PDR, user: User) -> PDR:
    pdr = _lock(pdr)
    transition = _check_transition(
        pdr, user, PDRStatus.MID_YEAR_APPROVED, PDRAction.RETURN_END_YEAR
    )
    return _apply_transition(
        pdr=pdr,
        user=user,
        transition=transition,
        notification_type=NotificationType.PDR_RETURNED,
    )
