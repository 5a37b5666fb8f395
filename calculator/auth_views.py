# calculator/auth_views.py

from rest_framework_simplejwt.views import TokenViewBase
from .auth_serializers import PinTokenObtainPairSerializer


class PinTokenObtainPairView(TokenViewBase):
    serializer_class = PinTokenObtainPairSerializer
