from django.urls import path
from . import views

app_name = 'users'

urlpatterns = [
    # Profile & lifecycle
    path('<int:user_id>/', views.user_detail, name='user-detail'),

    # Privileges
    path('<int:user_id>/privileges/', views.user_privileges, name='user-privileges'),

    # Statistics
    path('<int:user_id>/statistics/', views.user_statistics, name='user-statistics'),
    path('<int:user_id>/statistics/refresh/', views.refresh_statistics, name='refresh-statistics'),

    # Uploaded files
    path('<int:user_id>/files/', views.user_files, name='user-files'),
    path('<int:user_id>/files/<str:filename>/', views.user_file_detail, name='user-file-detail'),
]
