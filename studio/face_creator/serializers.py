from rest_framework import serializers
from .models import FaceScrapeRun, FaceScrapeImage, FaceIdentity, FaceIdentityImage, FaceCrop, GENDER_CHOICES


class FaceScrapeRunSerializer(serializers.ModelSerializer):
    image_count = serializers.SerializerMethodField()

    class Meta:
        model = FaceScrapeRun
        fields = ['id', 'brand_name', 'start_url', 'max_products', 'images_per_product', 'status',
                  'progress', 'total', 'logs', 'image_count', 'created_by', 'created_at', 'updated_at']
        read_only_fields = ['status', 'progress', 'total', 'logs', 'created_by', 'created_at', 'updated_at']

    def get_image_count(self, obj):
        return obj.images.count()


class StartRunSerializer(serializers.Serializer):
    brand_name = serializers.CharField(max_length=255)
    start_url = serializers.URLField(max_length=1000)
    max_products = serializers.IntegerField(required=False, default=200, min_value=1, max_value=5000)
    images_per_product = serializers.IntegerField(required=False, default=4, min_value=1, max_value=20)


class FaceCropSerializer(serializers.ModelSerializer):
    class Meta:
        model = FaceCrop
        fields = ['id', 'scrape_image', 'crop_x', 'crop_y', 'crop_width', 'crop_height', 'aspect_ratio',
                  'cropped_stored_url', 'is_auto', 'updated_at']
        read_only_fields = fields


class FaceScrapeImageSerializer(serializers.ModelSerializer):
    crop = FaceCropSerializer(read_only=True)
    identity_id = serializers.IntegerField(source='identity_link.identity_id', read_only=True, default=None)

    class Meta:
        model = FaceScrapeImage
        fields = ['id', 'run', 'source_url', 'stored_url', 'product_url', 'product_title', 'image_index',
                  'image_hash', 'gender', 'gender_source', 'identity_id', 'crop', 'created_at']
        read_only_fields = fields


class GenderUpdateSerializer(serializers.Serializer):
    image_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)
    gender = serializers.ChoiceField(choices=GENDER_CHOICES)


class FaceIdentityImageSerializer(serializers.ModelSerializer):
    scrape_image = FaceScrapeImageSerializer(read_only=True)

    class Meta:
        model = FaceIdentityImage
        fields = ['id', 'identity', 'scrape_image', 'view', 'view_source', 'is_ignored', 'created_at']
        read_only_fields = ['identity', 'scrape_image', 'created_at']


class FaceIdentitySerializer(serializers.ModelSerializer):
    representative_url = serializers.SerializerMethodField()

    class Meta:
        model = FaceIdentity
        fields = ['id', 'run', 'name', 'gender', 'representative_image', 'representative_url', 'image_count',
                  'created_at', 'updated_at']
        read_only_fields = ['run', 'image_count', 'created_at', 'updated_at']

    def get_representative_url(self, obj):
        image = obj.representative_image
        if not image:
            return None
        return image.stored_url or image.source_url


class IdentityCreateSerializer(serializers.Serializer):
    image_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)
    name = serializers.CharField(required=False, allow_blank=True, max_length=255)
    gender = serializers.ChoiceField(choices=GENDER_CHOICES, required=False)


class IdentityImagesSerializer(serializers.Serializer):
    """Identity-image link ids plus an optional target/name depending on the action"""
    identity_image_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=True)
    target_identity_id = serializers.IntegerField(required=False)
    name = serializers.CharField(required=False, allow_blank=True, max_length=255)
    ignored = serializers.BooleanField(required=False, default=True)


class MergeSerializer(serializers.Serializer):
    source_identity_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)


class IdentityDeleteSerializer(serializers.Serializer):
    identity_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)


class ViewUpdateSerializer(serializers.Serializer):
    view = serializers.ChoiceField(choices=FaceIdentityImage.VIEW_CHOICES)


class CropBoxSerializer(serializers.Serializer):
    x = serializers.FloatField(min_value=0, max_value=100)
    y = serializers.FloatField(min_value=0, max_value=100)
    width = serializers.FloatField(min_value=0, max_value=100)
    height = serializers.FloatField(min_value=0, max_value=100)


class DetectionSerializer(serializers.Serializer):
    box = CropBoxSerializer()
    confidence = serializers.FloatField(min_value=0, max_value=1)


class CropRequestSerializer(serializers.Serializer):
    """
    Either an explicit crop box, or face detections to derive one from.
    With neither, the centered default crop is used.
    """
    aspect_ratio = serializers.ChoiceField(choices=FaceCrop.ASPECT_CHOICES, default='1:1')
    crop = CropBoxSerializer(required=False)
    detections = DetectionSerializer(many=True, required=False)


class CropAdjustSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=['move', 'resize'])
    dx = serializers.FloatField()
    dy = serializers.FloatField(required=False, default=0)
    corner = serializers.ChoiceField(choices=['se', 'sw', 'ne', 'nw'], required=False)

    def validate(self, attrs):
        if attrs['action'] == 'resize' and not attrs.get('corner'):
            raise serializers.ValidationError({'corner': 'corner is required to resize'})
        return attrs
