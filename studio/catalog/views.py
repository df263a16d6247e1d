import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from django.db import IntegrityError
from studio.core.roles import is_staff_member
from .filters import ProductFilter
from .models import Brand, Product, ProductImage, ClayImage
from .serializers import BrandSerializer, ProductSerializer, ProductImageSerializer, ClayImageSerializer

logger = logging.getLogger('studio.catalog')


def _staff_only(request):
    if request.method != 'GET' and not is_staff_member(request.user):
        logger.warning(f"User {request.user.username} attempted {request.method} on catalog without staff role")
        return Response({'error': 'Only internal staff can modify the catalog'}, status=status.HTTP_403_FORBIDDEN)
    return None


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def brand_list_create(request):
    """List all brands or create a new brand"""
    denied = _staff_only(request)
    if denied:
        return denied

    if request.method == 'GET':
        brands = Brand.objects.all()
        search = request.query_params.get('search')
        if search:
            brands = brands.filter(name__icontains=search)
        serializer = BrandSerializer(brands, many=True)
        return Response(serializer.data)

    serializer = BrandSerializer(data=request.data)
    if serializer.is_valid():
        try:
            brand = serializer.save()
        except IntegrityError as e:
            logger.error(f"IntegrityError creating brand: {str(e)}", exc_info=True)
            return Response({'error': 'A brand with this name already exists'}, status=status.HTTP_400_BAD_REQUEST)
        logger.info(f"Brand '{brand.name}' created by {request.user.username}")
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def brand_detail(request, pk):
    """Retrieve, update or delete a brand"""
    denied = _staff_only(request)
    if denied:
        return denied
    brand = get_object_or_404(Brand, pk=pk)

    if request.method == 'GET':
        return Response(BrandSerializer(brand).data)
    elif request.method == 'PATCH':
        serializer = BrandSerializer(brand, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:
        logger.info(f"Brand '{brand.name}' deleted by {request.user.username}")
        brand.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def product_list_create(request):
    """List products (filter by brand, gender, product_type, search) or create one"""
    denied = _staff_only(request)
    if denied:
        return denied

    if request.method == 'GET':
        queryset = Product.objects.select_related('brand').prefetch_related('images')
        product_filter = ProductFilter(request.query_params, queryset=queryset)
        if not product_filter.is_valid():
            return Response(product_filter.errors, status=status.HTTP_400_BAD_REQUEST)
        serializer = ProductSerializer(product_filter.qs, many=True)
        return Response(serializer.data)

    serializer = ProductSerializer(data=request.data)
    if serializer.is_valid():
        serializer.save()
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def product_detail(request, pk):
    denied = _staff_only(request)
    if denied:
        return denied
    product = get_object_or_404(Product, pk=pk)

    if request.method == 'GET':
        return Response(ProductSerializer(product).data)
    elif request.method == 'PATCH':
        serializer = ProductSerializer(product, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:
        product.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def product_image_create(request, pk):
    """Attach an image to a product"""
    denied = _staff_only(request)
    if denied:
        return denied
    product = get_object_or_404(Product, pk=pk)
    data = request.data.copy()
    data['product'] = product.id
    serializer = ProductImageSerializer(data=data)
    if serializer.is_valid():
        serializer.save()
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def brand_clay_images(request, pk):
    """Clay renders for every product image of a brand"""
    denied = _staff_only(request)
    if denied:
        return denied
    brand = get_object_or_404(Brand, pk=pk)

    if request.method == 'GET':
        clay_images = ClayImage.objects.filter(
            product_image__product__brand=brand
        ).select_related('product_image', 'product_image__product')
        return Response(ClayImageSerializer(clay_images, many=True).data)

    product_image = get_object_or_404(
        ProductImage, pk=request.data.get('product_image'), product__brand=brand
    )
    serializer = ClayImageSerializer(data=request.data)
    if serializer.is_valid():
        serializer.save(product_image=product_image)
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
