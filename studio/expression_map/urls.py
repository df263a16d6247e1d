from django.urls import path
from . import views

urlpatterns = [
    path('projects/', views.project_list_create, name='expression-project-list-create'),
    path('projects/<int:pk>/', views.project_detail, name='expression-project-detail'),
    path('projects/<int:pk>/brand-refs/', views.brand_ref_list_create, name='expression-brand-ref-list-create'),
    path('projects/<int:pk>/extract-recipes/', views.extract_recipes, name='expression-extract-recipes'),
    path('projects/<int:pk>/recipes/', views.recipe_list, name='expression-recipe-list'),
    path('projects/<int:pk>/models/', views.model_list_create, name='expression-model-list-create'),
    path('projects/<int:pk>/generate/', views.generate, name='expression-generate'),
    path('projects/<int:pk>/jobs/', views.job_list, name='expression-job-list'),
    path('projects/<int:pk>/outputs/', views.output_list, name='expression-output-list'),
    path('projects/<int:pk>/prompts/export/', views.export_prompts, name='expression-prompt-export'),
    path('brand-refs/<int:pk>/', views.brand_ref_delete, name='expression-brand-ref-delete'),
    path('recipes/<int:pk>/', views.recipe_detail, name='expression-recipe-detail'),
    path('models/<int:pk>/', views.model_detail, name='expression-model-detail'),
    path('models/<int:pk>/refs/', views.model_ref_upload, name='expression-model-ref-upload'),
    path('model-refs/<int:pk>/', views.model_ref_delete, name='expression-model-ref-delete'),
    path('generation-jobs/<int:pk>/', views.job_detail, name='expression-job-detail'),
    path('generation-jobs/<int:pk>/stop/', views.job_stop, name='expression-job-stop'),
    path('generation-jobs/<int:pk>/skip/', views.job_skip, name='expression-job-skip'),
    path('outputs/<int:pk>/', views.output_delete, name='expression-output-delete'),
]
