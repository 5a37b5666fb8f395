# vivi_project/urls.py

from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import path, include
from rest_framework_simplejwt.views import (
    TokenRefreshView,
)
from calculator.auth_views import PinTokenObtainPairView

urlpatterns = [
    path('admin/', admin.site.urls),

    path('api/', include('calculator.urls')),

    # JWT auth (master PIN)
    path('api/auth/pin/', PinTokenObtainPairView.as_view(), name='token_obtain_pin'),
    path('api/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),
]

if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
