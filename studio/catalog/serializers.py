from rest_framework import serializers
from .models import Brand, Product, ProductImage, ClayImage


class BrandSerializer(serializers.ModelSerializer):
    product_count = serializers.SerializerMethodField()

    class Meta:
        model = Brand
        fields = ['id', 'name', 'slug', 'website_url', 'product_count', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']
        extra_kwargs = {'slug': {'required': False}}

    def get_product_count(self, obj):
        return obj.products.count()


class ProductImageSerializer(serializers.ModelSerializer):
    class Meta:
        model = ProductImage
        fields = ['id', 'product', 'slot', 'image_url', 'stored_url', 'crop_target', 'sort_index', 'created_at']
        read_only_fields = ['created_at']


class ProductSerializer(serializers.ModelSerializer):
    brand_name = serializers.CharField(source='brand.name', read_only=True)
    images = ProductImageSerializer(many=True, read_only=True)

    class Meta:
        model = Product
        fields = ['id', 'brand', 'brand_name', 'name', 'sku', 'gender', 'product_type', 'source_url',
                  'images', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']


class ClayImageSerializer(serializers.ModelSerializer):
    slot = serializers.CharField(source='product_image.slot', read_only=True)
    product_id = serializers.IntegerField(source='product_image.product_id', read_only=True)
    product_name = serializers.CharField(source='product_image.product.name', read_only=True)

    class Meta:
        model = ClayImage
        fields = ['id', 'product_image', 'product_id', 'product_name', 'slot', 'stored_url', 'created_at']
        read_only_fields = ['created_at']
