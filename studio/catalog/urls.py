from django.urls import path
from .views import (
    brand_list_create, brand_detail, brand_clay_images,
    product_list_create, product_detail, product_image_create,
)

urlpatterns = [
    path('brands/', brand_list_create, name='brand-list-create'),
    path('brands/<int:pk>/', brand_detail, name='brand-detail'),
    path('brands/<int:pk>/clay-images/', brand_clay_images, name='brand-clay-images'),
    path('products/', product_list_create, name='product-list-create'),
    path('products/<int:pk>/', product_detail, name='product-detail'),
    path('products/<int:pk>/images/', product_image_create, name='product-image-create'),
]
