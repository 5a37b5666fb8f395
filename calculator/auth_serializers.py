# calculator/auth_serializers.py

from django.contrib.auth import get_user_model
from django.contrib.auth.models import update_last_login
from rest_framework import serializers
from rest_framework_simplejwt.settings import api_settings
from rest_framework_simplejwt.tokens import RefreshToken

User = get_user_model()


class PinTokenObtainPairSerializer(serializers.Serializer):
    """
    Masters and admins log in with a personal PIN instead of a password.
    Returns the usual SimpleJWT refresh/access pair plus the user's role.
    """
    pin = serializers.RegexField(r'^\d{4,6}$', write_only=True)

    def validate(self, attrs):
        user = User.objects.filter(pin=attrs['pin'], is_active=True).first()
        if user is None:
            raise serializers.ValidationError({'detail': 'Invalid PIN.'})

        refresh = RefreshToken.for_user(user)
        if api_settings.UPDATE_LAST_LOGIN:
            update_last_login(None, user)

        return {
            'refresh': str(refresh),
            'access': str(refresh.access_token),
            'user': {
                'id': user.id,
                'username': user.username,
                'name': user.get_full_name() or user.username,
                'role': 'admin' if user.is_admin_role else user.role,
            },
        }
