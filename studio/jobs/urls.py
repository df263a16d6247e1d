from django.urls import path
from . import views

urlpatterns = [
    path('jobs/', views.job_list_create, name='job-list-create'),
    path('jobs/<int:pk>/', views.job_detail, name='job-detail'),
    path('jobs/<int:pk>/assign/', views.job_assign, name='job-assign'),
    path('jobs/<int:pk>/reset/', views.job_reset, name='job-reset'),
    path('jobs/<int:pk>/claim/', views.job_claim, name='job-claim'),
    path('jobs/<int:pk>/abandon/', views.job_abandon, name='job-abandon'),
    path('jobs/<int:pk>/start/', views.job_start, name='job-start'),
    path('jobs/<int:pk>/inputs/', views.job_inputs, name='job-inputs'),
    path('jobs/<int:pk>/outputs/', views.job_outputs, name='job-outputs'),
    path('jobs/<int:pk>/notes/', views.job_notes, name='job-notes'),
    path('jobs/<int:pk>/submissions/', views.job_submissions, name='job-submissions'),
    path('jobs/<int:pk>/review-progress/', views.job_review_progress, name='job-review-progress'),
    path('submissions/<int:pk>/', views.submission_detail, name='submission-detail'),
    path('submissions/<int:pk>/status/', views.submission_status, name='submission-status'),
    path('submissions/<int:pk>/resubmit/', views.submission_resubmit, name='submission-resubmit'),
    path('assets/<int:pk>/review/', views.asset_review, name='asset-review'),
]
