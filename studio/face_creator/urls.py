from django.urls import path
from . import views

urlpatterns = [
    path('face-runs/', views.run_list_create, name='face-run-list-create'),
    path('face-runs/<int:pk>/', views.run_detail, name='face-run-detail'),
    path('face-runs/<int:pk>/resume/', views.run_resume, name='face-run-resume'),
    path('face-runs/<int:pk>/images/', views.run_images, name='face-run-images'),
    path('face-runs/<int:pk>/images/gender/', views.image_gender_update, name='face-run-image-gender'),
    path('face-runs/<int:pk>/identities/', views.identity_list_create, name='face-identity-list-create'),
    path('face-runs/<int:pk>/identities/delete/', views.identity_bulk_delete, name='face-identity-bulk-delete'),
    path('face-runs/<int:pk>/export/', views.run_export, name='face-run-export'),
    path('face-identities/<int:pk>/', views.identity_detail, name='face-identity-detail'),
    path('face-identities/<int:pk>/move/', views.identity_move_images, name='face-identity-move'),
    path('face-identities/<int:pk>/split/', views.identity_split, name='face-identity-split'),
    path('face-identities/<int:pk>/merge/', views.identity_merge, name='face-identity-merge'),
    path('face-identities/<int:pk>/ignore/', views.identity_ignore_images, name='face-identity-ignore'),
    path('face-identity-images/<int:pk>/', views.identity_image_view, name='face-identity-image-view'),
    path('face-images/<int:pk>/crop/', views.image_crop, name='face-image-crop'),
]
