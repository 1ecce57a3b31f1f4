from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),

    # --- Authentication ---
    path('api/', include('users.urls')),

    # --- Student Exam Taking & Grading ---
    # Listed before the router so 'exams/attempts/' is not read as an exam pk
    path('api/', include('assessments.urls')),

    # --- Standard API Routes ---
    path('api/', include('exams.urls')),
]
