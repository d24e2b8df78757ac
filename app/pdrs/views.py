"""
Views for the pdrs APIs.
"""

from drf_spectacular.utils import extend_schema
from rest_framework import mixins, viewsets, status
from rest_framework.decorators import action
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from . import serializers
from . import services
from .filters import PDRFilter
from .models import PDR, Goal, Behavior, CompanyValue, PDRStatusChange
from .permissions import IsCEO, IsPDRParticipant
from .workflows import PDRTransitionError, PDRPermissionError


def error_response(e):
    """Maps a domain error to the 400/403 payload used across the API."""
    if isinstance(e, PDRPermissionError):
        return Response({"error": str(e)}, status=status.HTTP_403_FORBIDDEN)
    return Response(
        {"error": str(e), "errors": e.errors},
        status=status.HTTP_400_BAD_REQUEST,
    )


class StandardResultsSetPagination(PageNumberPagination):
    """Provides pagination for output."""

    page_size = 50
    page_size_query_param = "page_size"
    max_page_size = 100


class PDRViewSet(viewsets.ModelViewSet):
    """View for managing PDRs and moving them through the review cycle."""

    queryset = PDR.objects.all()
    permission_classes = [IsAuthenticated, IsPDRParticipant]
    pagination_class = StandardResultsSetPagination
    filterset_class = PDRFilter
    http_method_names = ["get", "post", "patch", "head", "options"]

    def get_queryset(self):
        """Data segregation: employees see their own PDRs only."""
        visibility_filter = services.get_pdr_visibility_filter(
            self.request.user
        )
        return (
            super()
            .get_queryset()
            .select_related("created_by", "locked_by")
            .filter(visibility_filter)
            .order_by("-created_at", "-id")
        )

    def get_serializer_class(self):
        """Return the serializer class for request based on action."""
        if self.action == "list":
            return serializers.PDRListSerializer
        if self.action == "create":
            return serializers.PDRCreateSerializer
        if self.action == "partial_update":
            return serializers.PDRCeoFieldsSerializer
        if self.action == "submit_mid_year":
            return serializers.MidYearSubmissionSerializer
        if self.action == "approve_mid_year":
            return serializers.MidYearApprovalSerializer
        if self.action == "submit_end_year":
            return serializers.EndYearSubmissionSerializer
        if self.action == "complete_final_review":
            return serializers.FinalReviewSerializer

        return serializers.PDRDetailSerializer

    def _detail_response(self, pdr, status_code=status.HTTP_200_OK):
        """Serializes a PDR with the requester's contextual data."""
        context = self.get_serializer_context()
        context.update(services.get_pdr_context(pdr, self.request.user))
        return Response(
            serializers.PDRDetailSerializer(pdr, context=context).data,
            status=status_code,
        )

    def _run(self, service, request, payload_serializer=False):
        """
        Runs a workflow service on the current PDR and renders the result.
        Domain errors become 400/403 responses.
        """
        pdr = self.get_object()
        data = {}
        if payload_serializer:
            serializer = self.get_serializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            data = serializer.validated_data
        try:
            updated_pdr = service(pdr=pdr, user=request.user, **data)
        except (PDRTransitionError, PDRPermissionError) as e:
            return error_response(e)
        return self._detail_response(updated_pdr)

    # --- Core CRUD Actions ---

    def retrieve(self, request, *args, **kwargs):
        """Retrieve a single PDR with contextual data."""
        return self._detail_response(self.get_object())

    @extend_schema(responses=serializers.PDRDetailSerializer)
    def create(self, request, *args, **kwargs):
        """
        Create a new PDR for the requesting employee.

        Returns:
        201 Created: PDR created in CREATED status
        400 Bad Request: a PDR already exists for the financial year
        403 Forbidden: the CEO cannot own a PDR
        """
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            pdr = services.create_pdr(
                user=request.user, **serializer.validated_data
            )
        except (PDRTransitionError, PDRPermissionError) as e:
            return error_response(e)
        return self._detail_response(pdr, status.HTTP_201_CREATED)

    @extend_schema(responses=serializers.PDRDetailSerializer)
    def partial_update(self, request, *args, **kwargs):
        """Update the PDR-level CEO fields. Permission: CEO only."""
        return self._run(services.update_ceo_fields, request, True)

    # --- Workflow Actions ---

    @extend_schema(request=None, responses=serializers.PDRDetailSerializer)
    @action(detail=True, methods=["post"])
    def submit(self, request, pk=None):
        """
        Action to move a PDR from CREATED to SUBMITTED.
        Permission: owning employee. Goals and behaviors must be complete.
        """
        return self._run(services.submit_initial_pdr, request)

    @extend_schema(request=None, responses=serializers.PDRDetailSerializer)
    @action(detail=True, methods=["post"])
    def approve_plan(self, request, pk=None):
        """Action to lock the plan (SUBMITTED to PLAN_LOCKED). CEO only."""
        return self._run(services.approve_plan, request)

    @extend_schema(request=None, responses=serializers.PDRDetailSerializer)
    @action(detail=True, methods=["post"])
    def return_plan(self, request, pk=None):
        """Action to send a submitted plan back to the employee."""
        return self._run(services.return_plan, request)

    @extend_schema(request=None, responses=serializers.PDRDetailSerializer)
    @action(detail=True, methods=["post"])
    def mark_booked(self, request, pk=None):
        """Action to record that the PDR meeting is booked."""
        return self._run(services.mark_booked, request)

    @extend_schema(responses=serializers.PDRDetailSerializer)
    @action(detail=True, methods=["post"])
    def submit_mid_year(self, request, pk=None):
        """Action to submit the employee's mid-year review."""
        return self._run(services.submit_mid_year, request, True)

    @extend_schema(responses=serializers.PDRDetailSerializer)
    @action(detail=True, methods=["post"])
    def approve_mid_year(self, request, pk=None):
        """
        Action to approve the mid-year review with CEO feedback.
        Also allowed straight from PLAN_LOCKED.
        """
        return self._run(services.approve_mid_year, request, True)

    @extend_schema(request=None, responses=serializers.PDRDetailSerializer)
    @action(detail=True, methods=["post"])
    def return_mid_year(self, request, pk=None):
        return self._run(services.return_mid_year, request)

    @extend_schema(responses=serializers.PDRDetailSerializer)
    @action(detail=True, methods=["post"])
    def submit_end_year(self, request, pk=None):
        """Action to submit the employee's end-year review."""
        return self._run(services.submit_end_year, request, True)

    @extend_schema(responses=serializers.PDRDetailSerializer)
    @action(detail=True, methods=["post"])
    def complete_final_review(self, request, pk=None):
        """Action to close the cycle (END_YEAR_SUBMITTED to COMPLETED)."""
        return self._run(services.complete_final_review, request, True)

    @extend_schema(request=None, responses=serializers.PDRDetailSerializer)
    @action(detail=True, methods=["post"])
    def return_end_year(self, request, pk=None):
        return self._run(services.return_end_year, request)

    @extend_schema(request=None, responses={201: None})
    @action(
        detail=True,
        methods=["post"],
        permission_classes=[IsAuthenticated, IsCEO],
    )
    def remind(self, request, pk=None):
        """Action to remind the owner to finish their part of the PDR."""
        pdr = self.get_object()
        try:
            services.send_reminder(pdr=pdr, user=request.user)
        except (PDRTransitionError, PDRPermissionError) as e:
            return error_response(e)
        return Response(status=status.HTTP_201_CREATED)


class PDRItemViewSet(viewsets.ModelViewSet):
    """
    Base view for goals and behaviors.
    Writes go through the service layer, which checks field groups
    against the requester's PDR permissions.
    """

    permission_classes = [IsAuthenticated, IsPDRParticipant]
    pagination_class = StandardResultsSetPagination
    filterset_fields = ["pdr"]
    http_method_names = ["get", "post", "patch", "delete", "head", "options"]

    def get_queryset(self):
        visibility_filter = services.get_pdr_visibility_filter(
            self.request.user, prefix="pdr__"
        )
        return (
            super()
            .get_queryset()
            .select_related("pdr")
            .filter(visibility_filter)
        )

    def create(self, request, *args, **kwargs):
        try:
            return super().create(request, *args, **kwargs)
        except (PDRTransitionError, PDRPermissionError) as e:
            return error_response(e)

    def update(self, request, *args, **kwargs):
        try:
            return super().update(request, *args, **kwargs)
        except (PDRTransitionError, PDRPermissionError) as e:
            return error_response(e)

    def destroy(self, request, *args, **kwargs):
        try:
            return super().destroy(request, *args, **kwargs)
        except (PDRTransitionError, PDRPermissionError) as e:
            return error_response(e)


class GoalViewSet(PDRItemViewSet):
    """View for managing PDR goals."""

    queryset = Goal.objects.all()
    serializer_class = serializers.GoalSerializer

    def perform_create(self, serializer):
        serializer.instance = services.add_goal(
            user=self.request.user, **serializer.validated_data
        )

    def perform_update(self, serializer):
        serializer.instance = services.update_goal(
            goal=serializer.instance,
            user=self.request.user,
            **serializer.validated_data,
        )

    def perform_destroy(self, instance):
        services.delete_goal(goal=instance, user=self.request.user)


class BehaviorViewSet(PDRItemViewSet):
    """View for managing PDR behavior assessments."""

    queryset = Behavior.objects.all()
    serializer_class = serializers.BehaviorSerializer

    def perform_create(self, serializer):
        serializer.instance = services.add_behavior(
            user=self.request.user, **serializer.validated_data
        )

    def perform_update(self, serializer):
        serializer.instance = services.update_behavior(
            behavior=serializer.instance,
            user=self.request.user,
            **serializer.validated_data,
        )

    def perform_destroy(self, instance):
        services.delete_behavior(behavior=instance, user=self.request.user)


class CompanyValueViewSet(viewsets.ReadOnlyModelViewSet):
    """Lists the active company values a behavior can assess."""

    queryset = CompanyValue.objects.filter(is_active=True)
    serializer_class = serializers.CompanyValueSerializer
    permission_classes = [IsAuthenticated]


class ActivityViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """Read-only feed of PDR status changes, newest first."""

    queryset = PDRStatusChange.objects.all()
    serializer_class = serializers.PDRStatusChangeSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = StandardResultsSetPagination
    filterset_fields = ["pdr", "action", "to_status"]

    def get_queryset(self):
        """Employees see the history of their own PDRs only."""
        visibility_filter = services.get_pdr_visibility_filter(
            self.request.user, prefix="pdr__"
        )
        return (
            super()
            .get_queryset()
            .select_related("actor", "pdr")
            .filter(visibility_filter)
        )
