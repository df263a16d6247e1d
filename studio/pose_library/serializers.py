from rest_framework import serializers
from .models import BrandPoseLibrary, LibraryPose
from .shot_types import ALL_SHOT_TYPES, get_shot_type_label
from . import services


class BrandPoseLibrarySerializer(serializers.ModelSerializer):
    brand_name = serializers.CharField(source='brand.name', read_only=True)
    min_poses_per_slot = serializers.IntegerField(read_only=True)
    locked_by_username = serializers.CharField(source='locked_by.username', read_only=True, default=None)
    summary = serializers.SerializerMethodField()

    class Meta:
        model = BrandPoseLibrary
        fields = ['id', 'brand', 'brand_name', 'version', 'status', 'config_json', 'min_poses_per_slot',
                  'locked_at', 'locked_by', 'locked_by_username', 'summary', 'created_at', 'updated_at']
        read_only_fields = ['brand', 'version', 'status', 'locked_at', 'locked_by', 'created_at', 'updated_at']

    def get_summary(self, obj):
        return services.library_summary(obj)


class LibraryCreateSerializer(serializers.Serializer):
    min_poses_per_slot = serializers.IntegerField(required=False, min_value=1, max_value=10000)


class LibraryStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=BrandPoseLibrary.STATUS_CHOICES)


class LibraryPoseSerializer(serializers.ModelSerializer):
    image_url = serializers.CharField(source='clay_image.stored_url', read_only=True)
    product_id = serializers.IntegerField(source='clay_image.product_image.product_id', read_only=True)
    product_name = serializers.CharField(source='clay_image.product_image.product.name', read_only=True)
    crop_target = serializers.CharField(source='clay_image.product_image.crop_target', read_only=True)
    shot_type_label = serializers.SerializerMethodField()

    class Meta:
        model = LibraryPose
        fields = ['id', 'library', 'clay_image', 'image_url', 'product_id', 'product_name', 'crop_target',
                  'slot', 'shot_type', 'shot_type_label', 'gender', 'product_type',
                  'curation_status', 'curation_notes', 'curated_by', 'curated_at', 'created_at']
        read_only_fields = fields

    def get_shot_type_label(self, obj):
        return get_shot_type_label(obj.shot_type)


class BulkPoseSerializer(serializers.Serializer):
    """Bulk action payload; `action` picks which of the optional fields is required"""
    ACTION_CHOICES = ['status', 'move', 'delete', 'crop_target']

    action = serializers.ChoiceField(choices=ACTION_CHOICES)
    pose_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)
    curation_status = serializers.ChoiceField(choices=LibraryPose.CURATION_CHOICES, required=False)
    notes = serializers.CharField(required=False, allow_blank=True)
    shot_type = serializers.ChoiceField(choices=ALL_SHOT_TYPES, required=False)
    crop_target = serializers.ChoiceField(choices=['top', 'trousers'], required=False, allow_null=True)

    def validate(self, attrs):
        action = attrs['action']
        if action == 'status' and not attrs.get('curation_status'):
            raise serializers.ValidationError({'curation_status': 'This field is required for status updates.'})
        if action == 'move' and not attrs.get('shot_type'):
            raise serializers.ValidationError({'shot_type': 'This field is required to move poses.'})
        if action == 'crop_target' and 'crop_target' not in attrs:
            raise serializers.ValidationError({'crop_target': 'This field is required to set crop targets.'})
        return attrs


class SelectionSerializer(serializers.Serializer):
    mode = serializers.ChoiceField(choices=['click', 'toggle', 'range', 'all', 'clear'])
    target = serializers.IntegerField(required=False, allow_null=True)
    anchor = serializers.IntegerField(required=False, allow_null=True)
    selected = serializers.ListField(child=serializers.IntegerField(), required=False, default=list)
    shot_type = serializers.CharField(required=False, allow_blank=True)
    gender = serializers.CharField(required=False, allow_blank=True)
    status = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):
        if attrs['mode'] in ('click', 'toggle', 'range') and attrs.get('target') is None:
            raise serializers.ValidationError({'target': 'This field is required for this selection mode.'})
        return attrs
