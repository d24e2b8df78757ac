"""
Serializers for the pdrs API.
"""

from rest_framework import serializers

from users.serializers import UserNestedSerializer

from . import services
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
    STATUS_DESCRIPTIONS,
    STATUS_DISPLAY_NAMES,
    describe_status_change,
    get_status_stage,
    parse_status,
)

# --- Re-usable Action Payload Serializers ---


class PDRCeoFieldsSerializer(serializers.Serializer):
    ceo_fields = serializers.DictField()


class MidYearApprovalSerializer(serializers.Serializer):
    ceo_feedback = serializers.CharField(
        required=False, allow_blank=True, default="", max_length=5000
    )
    ceo_rating = serializers.IntegerField(
        required=False, allow_null=True, default=None, min_value=1, max_value=5
    )


class FinalReviewSerializer(serializers.Serializer):
    ceo_final_comments = serializers.CharField(
        required=False, allow_blank=True, default="", max_length=5000
    )
    ceo_overall_rating = serializers.IntegerField(
        required=False, allow_null=True, default=None, min_value=1, max_value=5
    )


class MidYearSubmissionSerializer(serializers.ModelSerializer):
    class Meta:
        model = MidYearReview
        fields = list(MidYearReview.EMPLOYEE_FIELDS)


class EndYearSubmissionSerializer(serializers.ModelSerializer):
    class Meta:
        model = EndYearReview
        fields = list(EndYearReview.EMPLOYEE_FIELDS)


# --- Field-group visibility ---


class FieldGroupSerializerMixin:
    """
    Drops the employee or CEO field groups the requester may not view.
    Permissions come from the context when a PDR detail is rendered,
    otherwise they are resolved for the instance's PDR.
    """

    pdr_lookup = "pdr"

    def _get_pdr(self, instance):
        if self.pdr_lookup is None:
            return instance
        return getattr(instance, self.pdr_lookup)

    def _get_permissions(self, instance):
        permissions = self.context.get("permissions")
        if permissions is not None:
            return permissions
        request = self.context.get("request")
        if request is None:
            return {}
        return services.get_permissions_for(
            self._get_pdr(instance), request.user
        ).to_dict()

    def to_representation(self, instance):
        data = super().to_representation(instance)
        model = self.Meta.model
        visible = services.get_visible_fields(
            self._get_permissions(instance), model
        )
        for field_name in model.EMPLOYEE_FIELDS + model.CEO_FIELDS:
            if field_name not in visible:
                data.pop(field_name, None)
        return data


class PDRItemSerializer(
    FieldGroupSerializerMixin, serializers.ModelSerializer
):
    """
    Base for goals and behaviors.
    Fields are made read-only based on the requester's PDR permissions.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)

        request = self.context.get("request")
        model = self.Meta.model
        if not request:
            return

        if self.instance is None or not isinstance(self.instance, model):
            # create: pdr is chosen once, CEO fields come later
            for field_name in model.CEO_FIELDS:
                self.fields[field_name].read_only = True
            return

        self.fields["pdr"].read_only = True
        editable_fields = services.get_editable_fields(
            services.get_permissions_for(self.instance.pdr, request.user),
            model,
        )
        for field_name in model.EMPLOYEE_FIELDS + model.CEO_FIELDS:
            if field_name not in editable_fields:
                self.fields[field_name].read_only = True

    def validate_pdr(self, value):
        request = self.context.get("request")
        if request and not PDR.objects.filter(
            services.get_pdr_visibility_filter(request.user), pk=value.pk
        ).exists():
            raise serializers.ValidationError("PDR not found.")
        return value


class GoalSerializer(PDRItemSerializer):
    pdr = serializers.PrimaryKeyRelatedField(queryset=PDR.objects.all())

    class Meta:
        model = Goal
        fields = [
            "id",
            "pdr",
            *Goal.EMPLOYEE_FIELDS,
            *Goal.CEO_FIELDS,
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]


class BehaviorSerializer(PDRItemSerializer):
    pdr = serializers.PrimaryKeyRelatedField(queryset=PDR.objects.all())
    value_name = serializers.CharField(source="value.name", read_only=True)

    class Meta:
        model = Behavior
        fields = [
            "id",
            "pdr",
            *Behavior.EMPLOYEE_FIELDS,
            "value_name",
            *Behavior.CEO_FIELDS,
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]


class MidYearReviewSerializer(
    FieldGroupSerializerMixin, serializers.ModelSerializer
):
    class Meta:
        model = MidYearReview
        fields = [
            *MidYearReview.EMPLOYEE_FIELDS,
            *MidYearReview.CEO_FIELDS,
            "submitted_at",
            "updated_at",
        ]
        read_only_fields = fields


class EndYearReviewSerializer(
    FieldGroupSerializerMixin, serializers.ModelSerializer
):
    class Meta:
        model = EndYearReview
        fields = [
            *EndYearReview.EMPLOYEE_FIELDS,
            *EndYearReview.CEO_FIELDS,
            "submitted_at",
            "updated_at",
        ]
        read_only_fields = fields


# --- Core Serializers ---


class PDRStatusMixin(serializers.Serializer):
    status_display = serializers.SerializerMethodField()
    status_description = serializers.SerializerMethodField()
    stage = serializers.SerializerMethodField()

    def get_status_display(self, obj) -> str:
        return STATUS_DISPLAY_NAMES[parse_status(obj.status)]

    def get_status_description(self, obj) -> str:
        return STATUS_DESCRIPTIONS[parse_status(obj.status)]

    def get_stage(self, obj) -> str:
        return get_status_stage(obj.status)


class PDRListSerializer(PDRStatusMixin, serializers.ModelSerializer):
    """Serializer for list view, with minimal nested data."""

    created_by = UserNestedSerializer(read_only=True)

    class Meta:
        model = PDR
        fields = [
            "id",
            "financial_year",
            "status",
            "status_display",
            "status_description",
            "stage",
            "created_by",
            "meeting_booked",
            "created_at",
            "updated_at",
        ]


class PDRCreateSerializer(serializers.ModelSerializer):
    """Serializer for creating a new PDR."""

    class Meta:
        model = PDR
        fields = ["financial_year"]


class PDRDetailSerializer(
    PDRStatusMixin, FieldGroupSerializerMixin, serializers.ModelSerializer
):
    """Full detail serializer with all computed and related fields."""

    pdr_lookup = None

    created_by = UserNestedSerializer(read_only=True)
    locked_by = UserNestedSerializer(read_only=True)
    goals = GoalSerializer(many=True, read_only=True)
    behaviors = BehaviorSerializer(many=True, read_only=True)
    mid_year_review = serializers.SerializerMethodField()
    end_year_review = serializers.SerializerMethodField()

    # --- Contextual Fields ---
    available_transitions = serializers.SerializerMethodField()
    permissions = serializers.SerializerMethodField()

    class Meta:
        model = PDR
        fields = [
            "id",
            "financial_year",
            "status",
            "status_display",
            "status_description",
            "stage",
            "created_by",
            "ceo_fields",
            "meeting_booked",
            "meeting_booked_at",
            "submitted_at",
            "locked_at",
            "locked_by",
            "completed_at",
            "created_at",
            "updated_at",
            "goals",
            "behaviors",
            "mid_year_review",
            "end_year_review",
            "available_transitions",
            "permissions",
        ]
        read_only_fields = fields

    def get_mid_year_review(self, obj):
        review = MidYearReview.objects.filter(pdr=obj).first()
        if review is None:
            return None
        return MidYearReviewSerializer(review, context=self.context).data

    def get_end_year_review(self, obj):
        review = EndYearReview.objects.filter(pdr=obj).first()
        if review is None:
            return None
        return EndYearReviewSerializer(review, context=self.context).data

    def get_available_transitions(self, obj):
        # Read from context (populated by ViewSet)
        return self.context.get("available_transitions", [])

    def get_permissions(self, obj):
        return self.context.get("permissions", {})


# --- Reference Data and Activity ---


class CompanyValueSerializer(serializers.ModelSerializer):
    class Meta:
        model = CompanyValue
        fields = ["id", "name", "description", "sort_order"]
        read_only_fields = fields


class PDRStatusChangeSerializer(serializers.ModelSerializer):
    """One entry of the PDR activity feed."""

    actor = UserNestedSerializer(read_only=True)
    message = serializers.SerializerMethodField()

    class Meta:
        model = PDRStatusChange
        fields = [
            "id",
            "pdr",
            "from_status",
            "to_status",
            "action",
            "actor",
            "message",
            "created_at",
        ]
        read_only_fields = fields

    def get_message(self, obj) -> str:
        return describe_status_change(obj.action, obj.to_status)
