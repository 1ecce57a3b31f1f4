from django.urls import path
from rest_framework_simplejwt.views import TokenRefreshView

from .views import CustomLoginView

urlpatterns = [
    # --- Authentication ---
    path('auth/token/', CustomLoginView.as_view(), name='token-obtain'),
    path('auth/token/refresh/', TokenRefreshView.as_view(), name='token-refresh'),
]
