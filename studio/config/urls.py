"""
URL configuration for the studio project.

Every app mounts its routes under ``api/v1/``. Uploaded and generated media
are served from MEDIA_ROOT.
"""
from django.contrib import admin
from django.urls import path, include, re_path
from django.conf import settings
from django.views.static import serve

admin.site.site_header = "Studio Pipeline Admin"
admin.site.site_title = "Studio Pipeline Admin Portal"
admin.site.index_title = "Production management"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('studio.core.urls')),
    path('api/v1/', include('studio.catalog.urls')),
    path('api/v1/', include('studio.pose_library.urls')),
    path('api/v1/', include('studio.expression_map.urls')),
    path('api/v1/', include('studio.face_creator.urls')),
    path('api/v1/', include('studio.jobs.urls')),
    re_path(r'^media/(?P<path>.*)$', serve, {'document_root': settings.MEDIA_ROOT}),
    re_path(r'^static/(?P<path>.*)$', serve, {'document_root': settings.STATIC_ROOT}),
]
