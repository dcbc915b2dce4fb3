from django.urls import path

from . import views

urlpatterns = [
    path('tasks/<int:task_id>/dependencies/', views.task_dependencies, name='task-dependencies'),
    path('tasks/<int:task_id>/dependents/', views.task_dependents, name='task-dependents'),
    path('tasks/<int:task_id>/blocking/', views.task_blocking, name='task-blocking'),
    path('tasks/<int:task_id>/status/', views.task_status, name='task-status'),
    path('tasks/<int:task_id>/suggestions/', views.task_suggestions, name='task-suggestions'),
    path('dependencies/<int:dependency_id>/', views.dependency_detail, name='dependency-detail'),
    path('people/<int:person_id>/workload/', views.person_workload, name='person-workload'),
    path('moves/validate/', views.move_validate, name='move-validate'),
    path('moves/', views.move_commit, name='move-commit'),
    path('projects/<int:project_id>/dependency-graph/', views.project_dependency_graph, name='project-dependency-graph'),
]
