"""
Tests for the pdrs service layer: the full review cycle against the DB.
"""

from unittest import mock

from django.contrib.auth import get_user_model
from django.db.models import QuerySet
from django.test import TestCase

from notifications.models import Notification
from pdrs import services
from pdrs.models import (
    PDR,
    Goal,
    Behavior,
    CompanyValue,
    MidYearReview,
    EndYearReview,
    PDRStatusChange,
)
from pdrs.workflows import PDRPermissionError, PDRTransitionError

User = get_user_model()


def create_user(email, role=User.Role.EMPLOYEE, **extra):
    return User.objects.create_user(
        email=email, password="tstpw123", role=role, **extra
    )


class PDRServiceTestBase(TestCase):
    """Base test class with an employee, a colleague and the CEO."""

    def setUp(self):
        self.ceo = create_user(
            "ceo@example.com",
            role=User.Role.CEO,
            first_name="Alex",
            last_name="Boss",
        )
        self.employee = create_user("emp@example.com")
        self.colleague = create_user("colleague@example.com")
        self.value = CompanyValue.objects.create(name="Ownership")
        self.pdr = services.create_pdr(
            user=self.employee, financial_year="2025-2026"
        )

    def fill_plan(self, pdr=None):
        pdr = pdr or self.pdr
        Goal.objects.create(
            pdr=pdr, title="Grow revenue", description="Close 10 deals"
        )
        Behavior.objects.create(
            pdr=pdr, value=self.value, description="Owns outcomes"
        )

    def set_status(self, status):
        PDR.objects.filter(pk=self.pdr.pk).update(status=status)
        self.pdr.refresh_from_db()

    def notification_types(self):
        return list(
            Notification.objects.filter(
                user=self.employee, pdr=self.pdr
            ).values_list("type", flat=True)
        )


class CreatePDRTests(PDRServiceTestBase):

    def test_create_pdr(self):
        self.assertEqual(self.pdr.status, PDR.Status.CREATED)
        self.assertEqual(self.pdr.created_by, self.employee)

    def test_ceo_cannot_create_pdr(self):
        with self.assertRaises(PDRPermissionError):
            services.create_pdr(user=self.ceo, financial_year="2025-2026")

    def test_duplicate_year_is_rejected(self):
        with self.assertRaises(PDRTransitionError) as ctx:
            services.create_pdr(
                user=self.employee, financial_year="2025-2026"
            )
        self.assertIn("already exists", str(ctx.exception))

    def test_duplicate_created_concurrently_is_rejected(self):
        """A request that passed the existence check loses at the DB."""
        with mock.patch.object(QuerySet, "exists", return_value=False):
            with self.assertRaises(PDRTransitionError) as ctx:
                services.create_pdr(
                    user=self.employee, financial_year="2025-2026"
                )

        self.assertIn("already exists", str(ctx.exception))
        self.assertEqual(
            PDR.objects.filter(created_by=self.employee).count(), 1
        )


class SubmitInitialPDRTests(PDRServiceTestBase):

    def test_submit_complete_plan(self):
        self.fill_plan()

        pdr = services.submit_initial_pdr(pdr=self.pdr, user=self.employee)

        self.assertEqual(pdr.status, PDR.Status.SUBMITTED)
        self.assertIsNotNone(pdr.submitted_at)
        self.assertEqual(self.notification_types(), ["PDR_SUBMITTED"])

    def test_submit_empty_plan_reports_all_problems(self):
        with self.assertRaises(PDRTransitionError) as ctx:
            services.submit_initial_pdr(pdr=self.pdr, user=self.employee)

        self.assertEqual(len(ctx.exception.errors), 2)
        self.pdr.refresh_from_db()
        self.assertEqual(self.pdr.status, PDR.Status.CREATED)
        self.assertEqual(self.notification_types(), [])

    def test_submit_with_untitled_goal_fails(self):
        self.fill_plan()
        Goal.objects.create(pdr=self.pdr, title="", description="x")

        with self.assertRaises(PDRTransitionError) as ctx:
            services.submit_initial_pdr(pdr=self.pdr, user=self.employee)

        self.assertEqual(
            ctx.exception.errors, ["All goals must have a title (1 missing)"]
        )

    def test_only_owner_can_submit(self):
        self.fill_plan()
        with self.assertRaises(PDRPermissionError):
            services.submit_initial_pdr(pdr=self.pdr, user=self.colleague)

    def test_ceo_cannot_submit_for_employee(self):
        self.fill_plan()
        with self.assertRaises(PDRPermissionError) as ctx:
            services.submit_initial_pdr(pdr=self.pdr, user=self.ceo)
        self.assertIn("Role 'CEO'", str(ctx.exception))

    def test_cannot_submit_twice(self):
        self.fill_plan()
        services.submit_initial_pdr(pdr=self.pdr, user=self.employee)

        with self.assertRaises(PDRTransitionError):
            services.submit_initial_pdr(pdr=self.pdr, user=self.employee)


class PlanReviewTests(PDRServiceTestBase):

    def setUp(self):
        super().setUp()
        self.fill_plan()
        self.pdr = services.submit_initial_pdr(
            pdr=self.pdr, user=self.employee
        )

    def test_approve_plan_needs_behavior_comment(self):
        with self.assertRaises(PDRTransitionError) as ctx:
            services.approve_plan(pdr=self.pdr, user=self.ceo)
        self.assertEqual(
            ctx.exception.errors,
            ["CEO must provide comments on at least one behavior"],
        )

    def test_approve_plan_locks_and_notifies(self):
        behavior = self.pdr.behaviors.get()
        services.update_behavior(
            behavior=behavior, user=self.ceo, ceo_comments="Well done"
        )

        pdr = services.approve_plan(pdr=self.pdr, user=self.ceo)

        self.assertEqual(pdr.status, PDR.Status.PLAN_LOCKED)
        self.assertEqual(pdr.locked_by, self.ceo)
        self.assertIsNotNone(pdr.locked_at)
        notification = Notification.objects.get(type="PDR_LOCKED")
        self.assertEqual(notification.user, self.employee)
        self.assertEqual(notification.triggered_by, self.ceo)
        self.assertEqual(
            notification.message,
            "Alex Boss has locked your review pending PDR meeting.",
        )

    def test_employee_cannot_approve_own_plan(self):
        with self.assertRaises(PDRPermissionError):
            services.approve_plan(pdr=self.pdr, user=self.employee)

    def test_return_plan(self):
        pdr = services.return_plan(pdr=self.pdr, user=self.ceo)

        self.assertEqual(pdr.status, PDR.Status.CREATED)
        self.assertIn("PDR_RETURNED", self.notification_types())

    def test_employee_cannot_edit_while_submitted(self):
        goal = self.pdr.goals.get()
        with self.assertRaises(PDRPermissionError) as ctx:
            services.update_goal(goal=goal, user=self.employee, title="New")
        self.assertIn("awaiting CEO review", str(ctx.exception))

    def test_ceo_cannot_edit_employee_fields(self):
        goal = self.pdr.goals.get()
        with self.assertRaises(PDRPermissionError) as ctx:
            services.update_goal(goal=goal, user=self.ceo, title="New")
        self.assertIn("title", str(ctx.exception))

    def test_update_ceo_fields_merges(self):
        services.update_ceo_fields(
            pdr=self.pdr, user=self.ceo, ceo_fields={"summary": "Solid"}
        )
        pdr = services.update_ceo_fields(
            pdr=self.pdr, user=self.ceo, ceo_fields={"focus": "Hiring"}
        )
        self.assertEqual(
            pdr.ceo_fields, {"summary": "Solid", "focus": "Hiring"}
        )

    def test_employee_cannot_update_ceo_fields(self):
        with self.assertRaises(PDRPermissionError):
            services.update_ceo_fields(
                pdr=self.pdr, user=self.employee, ceo_fields={"x": "y"}
            )


class LockedPlanTests(PDRServiceTestBase):

    def setUp(self):
        super().setUp()
        self.fill_plan()
        self.set_status(PDR.Status.PLAN_LOCKED)

    def test_mark_booked_keeps_status(self):
        pdr = services.mark_booked(pdr=self.pdr, user=self.ceo)

        self.assertEqual(pdr.status, PDR.Status.PLAN_LOCKED)
        self.assertTrue(pdr.meeting_booked)
        self.assertIsNotNone(pdr.meeting_booked_at)
        self.assertEqual(self.notification_types(), ["MEETING_BOOKED"])

    def test_employee_cannot_mark_booked(self):
        with self.assertRaises(PDRPermissionError):
            services.mark_booked(pdr=self.pdr, user=self.employee)

    def test_employee_can_edit_goals_again(self):
        goal = self.pdr.goals.get()
        goal = services.update_goal(
            goal=goal, user=self.employee, employee_progress="Halfway"
        )
        self.assertEqual(goal.employee_progress, "Halfway")

    def test_submit_mid_year_needs_progress_summary(self):
        with self.assertRaises(PDRTransitionError) as ctx:
            services.submit_mid_year(
                pdr=self.pdr, user=self.employee, support_needed="More time"
            )

        self.assertEqual(
            ctx.exception.errors, ["Mid-year progress summary is required"]
        )
        # the review draft is rolled back with the failed transition
        self.assertFalse(MidYearReview.objects.exists())

    def test_mid_year_cycle(self):
        pdr = services.submit_mid_year(
            pdr=self.pdr, user=self.employee, progress_summary="On track"
        )
        self.assertEqual(pdr.status, PDR.Status.MID_YEAR_SUBMITTED)
        self.assertIsNotNone(pdr.mid_year_review.submitted_at)

        pdr = services.return_mid_year(pdr=pdr, user=self.ceo)
        self.assertEqual(pdr.status, PDR.Status.PLAN_LOCKED)

        pdr = services.submit_mid_year(
            pdr=pdr, user=self.employee, progress_summary="Still on track"
        )
        pdr = services.approve_mid_year(
            pdr=pdr, user=self.ceo, ceo_feedback="Keep going", ceo_rating=4
        )

        self.assertEqual(pdr.status, PDR.Status.MID_YEAR_APPROVED)
        review = MidYearReview.objects.get(pdr=pdr)
        self.assertEqual(review.progress_summary, "Still on track")
        self.assertEqual(review.ceo_rating, 4)

    def test_ceo_can_approve_mid_year_without_submission(self):
        pdr = services.approve_mid_year(
            pdr=self.pdr, user=self.ceo, ceo_feedback="Checked in verbally"
        )

        self.assertEqual(pdr.status, PDR.Status.MID_YEAR_APPROVED)
        self.assertEqual(
            MidYearReview.objects.get(pdr=pdr).ceo_feedback,
            "Checked in verbally",
        )

    def test_approve_mid_year_needs_feedback(self):
        with self.assertRaises(PDRTransitionError):
            services.approve_mid_year(pdr=self.pdr, user=self.ceo)

    def test_end_year_can_skip_mid_year(self):
        pdr = services.submit_end_year(
            pdr=self.pdr, user=self.employee, achievements_summary="Shipped"
        )
        self.assertEqual(pdr.status, PDR.Status.END_YEAR_SUBMITTED)


class EndYearTests(PDRServiceTestBase):

    def setUp(self):
        super().setUp()
        self.fill_plan()
        self.set_status(PDR.Status.MID_YEAR_APPROVED)
        self.pdr = services.submit_end_year(
            pdr=self.pdr,
            user=self.employee,
            achievements_summary="Closed 12 deals",
            employee_overall_rating=4,
        )

    def test_complete_final_review(self):
        pdr = services.complete_final_review(
            pdr=self.pdr,
            user=self.ceo,
            ceo_final_comments="Excellent year",
            ceo_overall_rating=5,
        )

        self.assertEqual(pdr.status, PDR.Status.COMPLETED)
        self.assertIsNotNone(pdr.completed_at)
        review = EndYearReview.objects.get(pdr=pdr)
        self.assertEqual(review.ceo_overall_rating, 5)
        self.assertIn("PDR_COMPLETED", self.notification_types())

    def test_complete_needs_final_comments(self):
        with self.assertRaises(PDRTransitionError) as ctx:
            services.complete_final_review(pdr=self.pdr, user=self.ceo)
        self.assertEqual(
            ctx.exception.errors,
            ["CEO final comments are required to complete the review"],
        )

    def test_return_end_year(self):
        pdr = services.return_end_year(pdr=self.pdr, user=self.ceo)
        self.assertEqual(pdr.status, PDR.Status.MID_YEAR_APPROVED)

    def test_completed_pdr_is_frozen_for_employee(self):
        services.complete_final_review(
            pdr=self.pdr, user=self.ceo, ceo_final_comments="Done"
        )
        goal = self.pdr.goals.get()

        with self.assertRaises(PDRPermissionError):
            services.update_goal(goal=goal, user=self.employee, title="Late")
        with self.assertRaises(PDRPermissionError):
            services.delete_goal(goal=goal, user=self.employee)
        with self.assertRaises(PDRTransitionError):
            services.submit_end_year(
                pdr=self.pdr, user=self.employee, achievements_summary="x"
            )


class ItemServiceTests(PDRServiceTestBase):

    def test_owner_adds_and_removes_goals_on_draft(self):
        goal = services.add_goal(
            pdr=self.pdr, user=self.employee, title="Learn Go", priority="HIGH"
        )
        self.assertEqual(goal.pdr, self.pdr)

        services.delete_goal(goal=goal, user=self.employee)
        self.assertFalse(Goal.objects.exists())

    def test_owner_cannot_set_ceo_fields(self):
        with self.assertRaises(PDRPermissionError):
            services.add_behavior(
                pdr=self.pdr, user=self.employee, ceo_comments="Great"
            )

    def test_owner_adds_behavior_for_active_value(self):
        behavior = services.add_behavior(
            pdr=self.pdr,
            user=self.employee,
            value=self.value.id,
            description="Owns outcomes",
        )

        self.assertEqual(behavior.value, self.value)
        self.assertEqual(behavior.pdr, self.pdr)

    def test_behavior_needs_a_company_value(self):
        with self.assertRaises(PDRTransitionError) as ctx:
            services.add_behavior(
                pdr=self.pdr, user=self.employee, description="x"
            )
        self.assertEqual(str(ctx.exception), "A company value is required.")

    def test_inactive_company_value_is_rejected(self):
        retired = CompanyValue.objects.create(name="Retired", is_active=False)

        with self.assertRaises(PDRTransitionError) as ctx:
            services.add_behavior(
                pdr=self.pdr, user=self.employee, value=retired
            )
        self.assertEqual(
            str(ctx.exception), "Invalid or inactive company value."
        )
        self.assertFalse(Behavior.objects.exists())

    def test_behavior_keeps_value_retired_after_it_was_chosen(self):
        self.fill_plan()
        behavior = self.pdr.behaviors.get()
        CompanyValue.objects.filter(pk=self.value.pk).update(is_active=False)
        self.value.refresh_from_db()

        behavior = services.update_behavior(
            behavior=behavior,
            user=self.employee,
            value=self.value,
            description="Still owns outcomes",
        )

        self.assertEqual(behavior.description, "Still owns outcomes")

    def test_value_assessed_once_per_pdr(self):
        self.fill_plan()
        teamwork = CompanyValue.objects.create(name="Teamwork")
        other = services.add_behavior(
            pdr=self.pdr, user=self.employee, value=teamwork
        )

        with self.assertRaises(PDRTransitionError) as ctx:
            services.add_behavior(
                pdr=self.pdr, user=self.employee, value=self.value
            )
        self.assertIn("already exists", str(ctx.exception))

        with self.assertRaises(PDRTransitionError):
            services.update_behavior(
                behavior=other, user=self.employee, value=self.value
            )

        # re-saving a behavior with its own value is fine
        other = services.update_behavior(
            behavior=other, user=self.employee, value=teamwork
        )
        self.assertEqual(other.value, teamwork)

    def test_colleague_cannot_add_goal(self):
        with self.assertRaises(PDRPermissionError):
            services.add_goal(pdr=self.pdr, user=self.colleague, title="x")

    def test_ceo_cannot_touch_draft(self):
        self.fill_plan()
        with self.assertRaises(PDRPermissionError) as ctx:
            services.update_goal(
                goal=self.pdr.goals.get(), user=self.ceo, ceo_comments="x"
            )
        self.assertEqual(
            str(ctx.exception), "PDR not yet submitted for review"
        )


class ContextTests(PDRServiceTestBase):

    def test_context_for_owner(self):
        context = services.get_pdr_context(self.pdr, self.employee)

        self.assertTrue(context["permissions"]["can_submit_for_review"])
        self.assertEqual(
            context["available_transitions"],
            [{"state": "SUBMITTED", "action": "submitInitialPDR"}],
        )

    def test_context_for_colleague_is_empty(self):
        context = services.get_pdr_context(self.pdr, self.colleague)

        self.assertFalse(context["permissions"]["can_view"])
        self.assertEqual(context["available_transitions"], [])

    def test_build_pdr_data(self):
        self.fill_plan()
        data = services.build_pdr_data(self.pdr)

        self.assertEqual(data["goals"][0]["title"], "Grow revenue")
        self.assertEqual(data["behaviors"][0]["description"], "Owns outcomes")
        self.assertIsNone(data["mid_year_review"])
        self.assertIsNone(data["end_year_review"])

    def test_send_reminder(self):
        services.send_reminder(pdr=self.pdr, user=self.ceo)
        self.assertEqual(self.notification_types(), ["PDR_REMINDER"])

        with self.assertRaises(PDRPermissionError):
            services.send_reminder(pdr=self.pdr, user=self.employee)


class StatusHistoryTests(PDRServiceTestBase):

    def history(self):
        return list(
            PDRStatusChange.objects.filter(pdr=self.pdr)
            .order_by("id")
            .values_list("from_status", "to_status", "action", "actor")
        )

    def test_each_transition_is_recorded(self):
        self.fill_plan()
        pdr = services.submit_initial_pdr(pdr=self.pdr, user=self.employee)
        pdr = services.return_plan(pdr=pdr, user=self.ceo)
        pdr = services.submit_initial_pdr(pdr=pdr, user=self.employee)
        services.update_behavior(
            behavior=pdr.behaviors.get(), user=self.ceo, ceo_comments="Good"
        )
        pdr = services.approve_plan(pdr=pdr, user=self.ceo)
        services.mark_booked(pdr=pdr, user=self.ceo)

        self.assertEqual(
            self.history(),
            [
                ("CREATED", "SUBMITTED", "submitInitialPDR", self.employee.id),
                ("SUBMITTED", "CREATED", "returnPlan", self.ceo.id),
                ("CREATED", "SUBMITTED", "submitInitialPDR", self.employee.id),
                ("SUBMITTED", "PLAN_LOCKED", "approvePlan", self.ceo.id),
                ("PLAN_LOCKED", "PLAN_LOCKED", "markBooked", self.ceo.id),
            ],
        )

    def test_rejected_transition_is_not_recorded(self):
        with self.assertRaises(PDRTransitionError):
            services.submit_initial_pdr(pdr=self.pdr, user=self.employee)
        with self.assertRaises(PDRPermissionError):
            services.approve_plan(pdr=self.pdr, user=self.employee)

        self.assertEqual(self.history(), [])

    def test_history_rolls_back_with_failed_transition(self):
        self.fill_plan()

        with mock.patch(
            "pdrs.services.notify_pdr_event",
            side_effect=RuntimeError("mail server down"),
        ):
            with self.assertRaises(RuntimeError):
                services.submit_initial_pdr(
                    pdr=self.pdr, user=self.employee
                )

        self.assertEqual(self.history(), [])
        self.pdr.refresh_from_db()
        self.assertEqual(self.pdr.status, PDR.Status.CREATED)
