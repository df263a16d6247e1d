from django.urls import path
from .views import (
    library_list_create, library_detail, library_status, library_coverage, library_initialize,
    pose_list, pose_bulk_action, pose_select,
)

urlpatterns = [
    path('brands/<int:brand_id>/libraries/', library_list_create, name='library-list-create'),
    path('libraries/<int:pk>/', library_detail, name='library-detail'),
    path('libraries/<int:pk>/status/', library_status, name='library-status'),
    path('libraries/<int:pk>/coverage/', library_coverage, name='library-coverage'),
    path('libraries/<int:pk>/initialize/', library_initialize, name='library-initialize'),
    path('libraries/<int:pk>/poses/', pose_list, name='library-pose-list'),
    path('libraries/<int:pk>/poses/bulk/', pose_bulk_action, name='library-pose-bulk'),
    path('libraries/<int:pk>/poses/select/', pose_select, name='library-pose-select'),
]
