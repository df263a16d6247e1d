from rest_framework import serializers
from .models import Project, BrandRef, ExpressionRecipe, DigitalModel, DigitalModelRef, GenerationJob, Output


class ProjectSerializer(serializers.ModelSerializer):
    created_by_username = serializers.CharField(source='created_by.username', read_only=True, default=None)
    brand_ref_count = serializers.SerializerMethodField()
    recipe_count = serializers.SerializerMethodField()
    model_count = serializers.SerializerMethodField()

    class Meta:
        model = Project
        fields = ['id', 'name', 'description', 'master_prompt', 'created_by', 'created_by_username',
                  'brand_ref_count', 'recipe_count', 'model_count', 'created_at', 'updated_at']
        read_only_fields = ['created_by', 'created_at', 'updated_at']

    def get_brand_ref_count(self, obj):
        return obj.brand_refs.count()

    def get_recipe_count(self, obj):
        return obj.recipes.count()

    def get_model_count(self, obj):
        return obj.digital_models.count()


def _file_url(obj):
    if obj.file:
        return obj.file.url
    return obj.image_url


class BrandRefSerializer(serializers.ModelSerializer):
    url = serializers.SerializerMethodField()

    class Meta:
        model = BrandRef
        fields = ['id', 'project', 'url', 'image_url', 'file_name', 'metadata', 'created_at']
        read_only_fields = ['project', 'image_url', 'created_at']

    def get_url(self, obj):
        return _file_url(obj)


class ExpressionRecipeSerializer(serializers.ModelSerializer):
    class Meta:
        model = ExpressionRecipe
        fields = ['id', 'project', 'name', 'recipe_json', 'delta_line', 'full_prompt_text',
                  'source_image_url', 'created_at', 'updated_at']
        read_only_fields = ['project', 'full_prompt_text', 'source_image_url', 'created_at', 'updated_at']

    def validate_recipe_json(self, value):
        intensity = value.get('intensity') if isinstance(value, dict) else None
        if intensity is not None:
            try:
                intensity = int(intensity)
            except (TypeError, ValueError):
                raise serializers.ValidationError('intensity must be a number between 0 and 3')
            if intensity < 0 or intensity > 3:
                raise serializers.ValidationError('intensity must be between 0 and 3')
        return value


class DigitalModelRefSerializer(serializers.ModelSerializer):
    url = serializers.SerializerMethodField()

    class Meta:
        model = DigitalModelRef
        fields = ['id', 'digital_model', 'url', 'image_url', 'file_name', 'created_at']
        read_only_fields = fields

    def get_url(self, obj):
        return _file_url(obj)


class DigitalModelSerializer(serializers.ModelSerializer):
    refs = DigitalModelRefSerializer(many=True, read_only=True)

    class Meta:
        model = DigitalModel
        fields = ['id', 'project', 'name', 'refs', 'created_at']
        read_only_fields = ['project', 'created_at']


class GenerationJobSerializer(serializers.ModelSerializer):
    class Meta:
        model = GenerationJob
        fields = ['id', 'project', 'type', 'status', 'progress', 'total', 'logs', 'result',
                  'created_by', 'created_at', 'updated_at']
        read_only_fields = fields


class OutputSerializer(serializers.ModelSerializer):
    model_name = serializers.CharField(source='digital_model.name', read_only=True)
    recipe_name = serializers.CharField(source='recipe.name', read_only=True)

    class Meta:
        model = Output
        fields = ['id', 'project', 'digital_model', 'model_name', 'recipe', 'recipe_name', 'job',
                  'image_path', 'image_url', 'prompt_used', 'status', 'metrics_json', 'created_at']
        read_only_fields = fields


class ExtractRequestSerializer(serializers.Serializer):
    custom_prompt = serializers.CharField(required=False, allow_blank=True)
    model = serializers.CharField(required=False, allow_blank=True)


class GenerateRequestSerializer(serializers.Serializer):
    model_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)
    recipe_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)
    variations = serializers.IntegerField(required=False, default=1)
    model = serializers.CharField(required=False, allow_blank=True)
