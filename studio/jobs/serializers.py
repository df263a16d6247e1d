from rest_framework import serializers
from studio.core.serializers import UserSummarySerializer
from .models import Job, JobInput, JobOutput, JobNote, JobSubmission, SubmissionAsset


class JobSerializer(serializers.ModelSerializer):
    assigned_user_detail = UserSummarySerializer(source='assigned_user', read_only=True)
    created_by_detail = UserSummarySerializer(source='created_by', read_only=True)

    class Meta:
        model = Job
        fields = ['id', 'project_name', 'type', 'status', 'priority', 'assigned_user', 'assigned_user_detail',
                  'due_date', 'instructions', 'created_by', 'created_by_detail', 'started_at', 'total_active_ms',
                  'created_at', 'updated_at']
        read_only_fields = ['created_by', 'started_at', 'total_active_ms', 'created_at', 'updated_at']


class JobAssignSerializer(serializers.Serializer):
    user_id = serializers.IntegerField(required=False, allow_null=True)


class JobInputSerializer(serializers.ModelSerializer):
    class Meta:
        model = JobInput
        fields = ['id', 'job', 'label', 'file_url', 'created_at']
        read_only_fields = ['job', 'created_at']


class JobOutputSerializer(serializers.ModelSerializer):
    file_url = serializers.SerializerMethodField()
    uploaded_by_detail = UserSummarySerializer(source='uploaded_by', read_only=True)

    class Meta:
        model = JobOutput
        fields = ['id', 'job', 'file_url', 'label', 'uploaded_by', 'uploaded_by_detail', 'created_at']
        read_only_fields = fields

    def get_file_url(self, obj):
        return obj.file.url if obj.file else None


class JobNoteSerializer(serializers.ModelSerializer):
    author_detail = UserSummarySerializer(source='author', read_only=True)

    class Meta:
        model = JobNote
        fields = ['id', 'job', 'author', 'author_detail', 'body', 'created_at']
        read_only_fields = ['job', 'author', 'created_at']


class SubmissionAssetSerializer(serializers.ModelSerializer):
    file_url = serializers.SerializerMethodField()
    reviewed_by_detail = UserSummarySerializer(source='reviewed_by', read_only=True)

    class Meta:
        model = SubmissionAsset
        fields = ['id', 'submission', 'file_url', 'label', 'sort_index', 'revision_number', 'superseded_by',
                  'review_status', 'review_notes', 'reviewed_by', 'reviewed_by_detail', 'reviewed_at',
                  'created_at']
        read_only_fields = fields

    def get_file_url(self, obj):
        return obj.file.url if obj.file else None


class JobSubmissionSerializer(serializers.ModelSerializer):
    submitted_by_detail = UserSummarySerializer(source='submitted_by', read_only=True)
    assets = serializers.SerializerMethodField()

    class Meta:
        model = JobSubmission
        fields = ['id', 'job', 'version_number', 'status', 'submitted_by', 'submitted_by_detail',
                  'summary_notes', 'submitted_at', 'updated_at', 'assets']
        read_only_fields = fields

    def get_assets(self, obj):
        current = obj.assets.filter(superseded_by__isnull=True)
        return SubmissionAssetSerializer(current, many=True).data


class SubmissionStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=JobSubmission.STATUS_CHOICES)


class AssetReviewSerializer(serializers.Serializer):
    review_status = serializers.ChoiceField(choices=[SubmissionAsset.REVIEW_APPROVED,
                                                     SubmissionAsset.REVIEW_CHANGES_REQUESTED])
    review_notes = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):
        if attrs['review_status'] == SubmissionAsset.REVIEW_CHANGES_REQUESTED and not attrs.get('review_notes'):
            raise serializers.ValidationError({'review_notes': 'Notes are required when requesting changes'})
        return attrs
